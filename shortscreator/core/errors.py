"""Exception taxonomy for composition jobs.

Construction errors (builder call order, styling, output directory) are
raised synchronously before any external process starts. Combination and
render failures are reported as result models instead; the exceptions below
that relate to them are only used inside the services that produce those
results.
"""

from typing import Optional


class CompositionError(Exception):
    """Base class for all composition engine errors."""


class IllegalOrderError(CompositionError):
    """A builder method was called in an order the filter chain cannot express."""


class InvalidOutputDirError(CompositionError):
    """The output directory does not exist and cannot be created, or is not a directory."""


class EmptyStyleError(CompositionError):
    """Subtitle style is missing its font name."""


class RenderProcessError(CompositionError):
    """The renderer exited unsuccessfully or could not be started."""

    def __init__(self, message: str, exit_code: Optional[int] = None, diagnostics: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.diagnostics = diagnostics


class ProbeError(CompositionError):
    """Media probing failed, timed out, or returned unparseable output."""


class SynthesisError(CompositionError):
    """Opaque failure of a speech synthesis provider."""
