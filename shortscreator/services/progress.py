"""Progress sinks - where the render executor reports fractional progress."""

from typing import Any, Callable, Protocol, runtime_checkable

from shortscreator.models.schemas import ProgressEvent, ProgressKind


@runtime_checkable
class ProgressSink(Protocol):
    """
    Receiver of render progress, owned by the caller.

    ``on_progress`` may be called zero or more times with a percentage in
    [0, 100]. Exactly one of ``on_complete`` / ``on_error`` is called at the
    end of an execution.
    """

    def on_progress(self, percent: float) -> None: ...

    def on_complete(self) -> None: ...

    def on_error(self) -> None: ...


class LoggingProgressSink:
    """Logs progress, throttled to one line per ``step`` percent."""

    def __init__(self, logger: Any, label: str = "render", step: float = 10.0):
        self.logger = logger
        self.label = label
        self.step = step
        self._last_logged = -step

    def on_progress(self, percent: float) -> None:
        if percent - self._last_logged >= self.step or percent >= 100.0:
            self.logger.info(f"{self.label}: {percent:.1f}%")
            self._last_logged = percent

    def on_complete(self) -> None:
        self.logger.info(f"{self.label}: completed")

    def on_error(self) -> None:
        self.logger.error(f"{self.label}: failed")


class CallbackProgressSink:
    """Turns sink calls into ProgressEvent objects handed to a callable."""

    def __init__(self, callback: Callable[[ProgressEvent], None]):
        self.callback = callback

    def on_progress(self, percent: float) -> None:
        self.callback(ProgressEvent(kind=ProgressKind.PROGRESS, percent=percent))

    def on_complete(self) -> None:
        self.callback(ProgressEvent(kind=ProgressKind.COMPLETED))

    def on_error(self) -> None:
        self.callback(ProgressEvent(kind=ProgressKind.FAILED))


class RecordingProgressSink(CallbackProgressSink):
    """Keeps every event; handy for tests and for summarising a job."""

    def __init__(self) -> None:
        self.events: list[ProgressEvent] = []
        super().__init__(self.events.append)

    @property
    def percentages(self) -> list[float]:
        return [e.percent for e in self.events if e.kind == ProgressKind.PROGRESS and e.percent is not None]

    @property
    def terminal_events(self) -> list[ProgressEvent]:
        return [e for e in self.events if e.kind != ProgressKind.PROGRESS]


class NullProgressSink:
    """Discards all progress."""

    def on_progress(self, percent: float) -> None:
        pass

    def on_complete(self) -> None:
        pass

    def on_error(self) -> None:
        pass
