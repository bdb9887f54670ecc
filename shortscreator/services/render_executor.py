"""Render Executor - runs ffmpeg for a command plan and streams progress."""

import re
import subprocess
import threading
from collections import deque
from pathlib import Path
from typing import Any, Optional, Sequence

from shortscreator.core.config import Settings
from shortscreator.core.errors import RenderProcessError
from shortscreator.models.schemas import CommandPlan, RenderError, RenderErrorKind, RenderResult
from shortscreator.services.progress import NullProgressSink, ProgressSink
from shortscreator.services.video_composition_builder import SILENT_AUDIO_SOURCE
from shortscreator.utils.io_utils import delete_temporary_file, delete_temporary_files

TIME_PATTERN = re.compile(r"time=(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


def parse_progress_time(line: str) -> Optional[float]:
    """Elapsed output time in seconds from an ffmpeg status line, if present."""
    match = TIME_PATTERN.search(line)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def compute_percent(elapsed: float, target_duration: Optional[float]) -> Optional[float]:
    """
    Percentage of ``target_duration`` reached, clamped to [0, 100].

    Returns None when there is no usable target, in which case no progress
    should be reported at all.
    """
    if target_duration is None or target_duration <= 0:
        return None
    return min(100.0, max(0.0, 100.0 * elapsed / target_duration))


class _TerminalNotifier:
    """Delivers on_complete / on_error at most once."""

    def __init__(self, sink: ProgressSink):
        self.sink = sink
        self.delivered = False

    def complete(self) -> None:
        if not self.delivered:
            self.delivered = True
            self.sink.on_complete()

    def error(self) -> None:
        if not self.delivered:
            self.delivered = True
            self.sink.on_error()


class RenderHandle:
    """
    Process slot and cancellation state of one render execution.

    A handle can be created before the render starts and cancelled early;
    ``execute`` then returns CANCELLED without spawning the renderer. A
    handle belongs to a single execution.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self.cancelled = False
        self.timed_out = False
        self.finished = False

    def attach(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._process = process
            if self.cancelled:
                process.kill()

    def detach(self) -> None:
        with self._lock:
            self._process = None
            self.finished = True

    def cancel(self) -> bool:
        """
        Kill the render, or mark it cancelled if it has not started yet.

        Returns:
            False if the render already finished (its outcome is kept)
        """
        with self._lock:
            if self.finished:
                return False
            process = self._process
            if process is not None and process.poll() is not None:
                return False
            self.cancelled = True
            if process is not None:
                process.kill()
            return True

    def expire(self) -> None:
        """Timer callback: kill a still-running render and mark it timed out."""
        with self._lock:
            process = self._process
            if process is None or process.poll() is not None or self.cancelled:
                return
            self.timed_out = True
            process.kill()


class RenderExecutor:
    """
    Runs the renderer as a child process.

    The merged stdout/stderr pipe is read line by line until EOF; ffmpeg
    blocks once that pipe fills up, so it is drained even when nobody needs
    progress. Each execution keeps its process and flags in its own
    RenderHandle, so one executor can serve concurrent jobs.
    """

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize render executor.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self._lock = threading.Lock()
        self._active: set[RenderHandle] = set()

    # ------------------------------------------------------------------
    # Main render
    # ------------------------------------------------------------------

    def execute(
        self,
        plan: CommandPlan,
        sink: Optional[ProgressSink] = None,
        timeout: Optional[float] = None,
        handle: Optional[RenderHandle] = None,
    ) -> RenderResult:
        """
        Render a command plan.

        Args:
            plan: Finished plan from the composition builder
            sink: Receives progress and exactly one terminal callback
            timeout: Seconds before the render is killed (defaults to
                ``render_timeout_seconds``; None means no limit)
            handle: Cancellation handle for this execution; a handle that was
                cancelled beforehand makes the render return CANCELLED

        Returns:
            RenderResult with the output path, or the failure kind and diagnostics
        """
        handle = handle or RenderHandle()
        if handle.finished:
            raise ValueError("RenderHandle has already been used for an execution")

        notifier = _TerminalNotifier(sink or NullProgressSink())
        timeout = timeout if timeout is not None else self.settings.render_timeout_seconds
        tail: deque[str] = deque(maxlen=self.settings.diagnostics_tail_lines)

        self.logger.info(f"Rendering {plan.output_path.name} ({len(plan.arguments)} arguments)")
        self.logger.debug(f"Command: {' '.join(plan.arguments)}")

        with self._lock:
            self._active.add(handle)

        exit_code: Optional[int] = None
        spawn_error: Optional[OSError] = None
        try:
            if not handle.cancelled:
                exit_code = self._run(plan, handle, notifier.sink, timeout, tail)
        except OSError as e:
            spawn_error = e
        finally:
            handle.detach()
            with self._lock:
                self._active.discard(handle)
            failures = delete_temporary_files(plan.temp_files, self.logger)
            if failures:
                self.logger.warning(f"{failures} temporary file(s) could not be deleted")

        diagnostics = "\n".join(tail)

        if spawn_error is not None:
            notifier.error()
            self.logger.error(f"Could not start renderer {plan.arguments[0]}: {spawn_error}")
            return self._failure(plan, RenderErrorKind.SPAWN_FAILED, f"Could not start renderer: {spawn_error}", None, str(spawn_error))

        if handle.cancelled:
            notifier.error()
            self.logger.warning("Render cancelled")
            return self._failure(plan, RenderErrorKind.CANCELLED, "Render was cancelled", exit_code, diagnostics)

        if handle.timed_out:
            notifier.error()
            self.logger.error(f"Render timed out after {timeout}s")
            return self._failure(plan, RenderErrorKind.TIMED_OUT, f"Render exceeded {timeout}s", exit_code, diagnostics)

        if exit_code != 0:
            notifier.error()
            self.logger.error(f"Renderer exited with code {exit_code}")
            return self._failure(
                plan, RenderErrorKind.PROCESS_FAILED, f"Renderer exited with code {exit_code}", exit_code, diagnostics
            )

        notifier.complete()
        self.logger.info(f"Render complete: {plan.output_path}")
        return RenderResult(success=True, output_path=plan.output_path)

    def _run(
        self,
        plan: CommandPlan,
        handle: RenderHandle,
        sink: ProgressSink,
        timeout: Optional[float],
        tail: deque,
    ) -> int:
        process = subprocess.Popen(
            list(plan.arguments),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
            errors="replace",
        )
        handle.attach(process)

        timer: Optional[threading.Timer] = None
        if timeout:
            timer = threading.Timer(timeout, handle.expire)
            timer.daemon = True
            timer.start()

        last_percent: Optional[float] = None
        try:
            for raw_line in process.stdout:
                line = raw_line.rstrip()
                if not line:
                    continue
                tail.append(line)
                elapsed = parse_progress_time(line)
                if elapsed is None:
                    continue
                percent = compute_percent(elapsed, plan.target_duration)
                if percent is None:
                    continue
                if last_percent is not None and percent < last_percent:
                    continue
                last_percent = percent
                sink.on_progress(percent)
            return process.wait()
        finally:
            if timer is not None:
                timer.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()

    def _failure(
        self,
        plan: CommandPlan,
        kind: RenderErrorKind,
        message: str,
        exit_code: Optional[int],
        diagnostics: str,
    ) -> RenderResult:
        delete_temporary_file(plan.output_path, self.logger)
        return RenderResult(
            success=False,
            error=RenderError(kind=kind, message=message, exit_code=exit_code, diagnostics=diagnostics),
        )

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    def cancel(self, handle: Optional[RenderHandle] = None) -> bool:
        """
        Forcibly stop a render.

        Safe to call from another thread. With a handle only that execution
        is stopped; without one, every render currently running on this
        executor is. Temporary files are still cleaned up by ``execute``,
        which then returns a CANCELLED result.

        Returns:
            True if a render was killed or marked cancelled
        """
        if handle is not None:
            cancelled = handle.cancel()
        else:
            with self._lock:
                active = list(self._active)
            cancelled = any([h.cancel() for h in active])
        if cancelled:
            self.logger.info("Cancelled renderer process")
        return cancelled

    # ------------------------------------------------------------------
    # Audio primitives
    # ------------------------------------------------------------------

    def concat_audio(self, audio_paths: Sequence[Path], output_path: Path) -> Path:
        """
        Concatenate audio files in order into ``output_path``.

        Raises:
            ValueError: If no paths are given
            RenderProcessError: If ffmpeg cannot be started or fails
        """
        if not audio_paths:
            raise ValueError("concat_audio requires at least one input")

        arguments = [self.settings.ffmpeg_binary, "-y"]
        for path in audio_paths:
            arguments.extend(["-i", str(path)])
        streams = "".join(f"[{i}:a]" for i in range(len(audio_paths)))
        arguments.extend(["-filter_complex", f"{streams}concat=n={len(audio_paths)}:v=0:a=1[a]", "-map", "[a]"])
        arguments.append(str(output_path))

        self._run_simple(arguments, f"concatenating {len(audio_paths)} audio files")
        return output_path

    def generate_silence(self, duration: float, output_path: Path) -> Path:
        """Write ``duration`` seconds of silent stereo audio to ``output_path``."""
        arguments = [
            self.settings.ffmpeg_binary,
            "-y",
            "-f",
            "lavfi",
            "-i",
            SILENT_AUDIO_SOURCE,
            "-t",
            f"{duration:.3f}",
            str(output_path),
        ]
        self._run_simple(arguments, "generating silence")
        return output_path

    def _run_simple(self, arguments: list[str], operation: str) -> None:
        self.logger.debug(f"ffmpeg {operation}: {' '.join(arguments)}")
        try:
            completed = subprocess.run(
                arguments,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=self.settings.render_timeout_seconds,
            )
        except subprocess.TimeoutExpired as e:
            raise RenderProcessError(f"Timed out {operation}") from e
        except OSError as e:
            raise RenderProcessError(f"Could not start {arguments[0]} while {operation}: {e}") from e

        if completed.returncode != 0:
            lines = (completed.stdout or "").splitlines()
            diagnostics = "\n".join(lines[-self.settings.diagnostics_tail_lines:])
            raise RenderProcessError(
                f"ffmpeg failed {operation} (exit code {completed.returncode})",
                exit_code=completed.returncode,
                diagnostics=diagnostics,
            )
