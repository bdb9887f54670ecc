"""Parallel Executor - bounded fan-out for independent per-job calls (segment synthesis)."""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Optional

from shortscreator.core.config import Settings


class ParallelExecutor:
    """Runs independent tasks concurrently and joins them in submission order."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize parallel executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.max_parallel_api_calls = getattr(settings, "max_parallel_api_calls", 5)

    def execute_api_calls(
        self,
        tasks: list[Callable[[], Any]],
        task_names: Optional[list[str]] = None,
        job_id: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> list[tuple[Any, Optional[Exception]]]:
        """
        Execute a batch of calls with controlled concurrency.

        Results come back in the order the tasks were given, regardless of
        completion order, so segment i of a narration stays segment i.

        Args:
            tasks: Callables taking no arguments
            task_names: Optional names for logging
            job_id: Optional job id for log prefixes
            max_workers: Worker cap (defaults to max_parallel_api_calls)

        Returns:
            List of (result, exception) tuples, one per task
        """
        if not tasks:
            return []

        max_workers = max_workers or self.max_parallel_api_calls
        log_prefix = f"[{job_id}] " if job_id else ""

        def name_of(index: int) -> str:
            if task_names and index < len(task_names):
                return task_names[index]
            return f"api_call_{index + 1}"

        # Sequential mode
        if max_workers == 1 or len(tasks) == 1:
            results: list[tuple[Any, Optional[Exception]]] = []
            for i, task in enumerate(tasks):
                try:
                    results.append((task(), None))
                except Exception as e:
                    self.logger.error(f"{log_prefix}❌ {name_of(i)} failed: {e}")
                    results.append((None, e))
            return results

        self.logger.debug(f"{log_prefix}Parallel calls: {len(tasks)} tasks with max {max_workers} workers")
        start_time = time.time()
        ordered: list[Optional[tuple[Any, Optional[Exception]]]] = [None] * len(tasks)
        completed_count = 0

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_index = {executor.submit(task): i for i, task in enumerate(tasks)}

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                completed_count += 1
                elapsed = time.time() - start_time
                try:
                    ordered[index] = (future.result(), None)
                    self.logger.debug(
                        f"{log_prefix}✅ {name_of(index)} completed ({completed_count}/{len(tasks)}) in {elapsed:.2f}s"
                    )
                except Exception as e:
                    ordered[index] = (None, e)
                    self.logger.warning(
                        f"{log_prefix}❌ {name_of(index)} failed ({completed_count}/{len(tasks)}) after {elapsed:.2f}s: {e}"
                    )

        successful = sum(1 for r in ordered if r and r[1] is None)
        self.logger.debug(
            f"{log_prefix}Batch complete: {successful}/{len(tasks)} successful in {time.time() - start_time:.2f}s"
        )
        return [r if r is not None else (None, None) for r in ordered]
