"""Error Handler - user-facing messages for failed composition jobs."""

from typing import Optional

from shortscreator.models.schemas import CombineError, RenderError, RenderErrorKind


def format_error_message(
    operation: str,
    error: Exception,
    context: Optional[dict] = None,
    suggestion: Optional[str] = None,
) -> str:
    """
    Format a user-friendly error message.

    Args:
        operation: What was being performed (e.g., "Combining narration")
        error: The exception that occurred
        context: Additional context (e.g., {"job_id": "job_123"})
        suggestion: Optional suggestion for how to fix the issue

    Returns:
        Formatted error message
    """
    context_str = ""
    if context:
        context_str = f" ({', '.join(f'{k}={v}' for k, v in context.items())})"

    message = f"❌ {operation} failed{context_str}\n"
    message += f"   Error: {type(error).__name__}: {error}"
    if suggestion:
        message += f"\n   💡 Suggestion: {suggestion}"
    return message


def describe_render_error(error: RenderError, tail_lines: int = 5) -> str:
    """One short paragraph describing a render failure, with the last diagnostic lines."""
    summary = f"{error.kind.value}: {error.message}"
    if error.exit_code is not None:
        summary += f" (exit code {error.exit_code})"
    tail = [line for line in error.diagnostics.splitlines() if line.strip()][-tail_lines:]
    if tail:
        summary += "\n   " + "\n   ".join(tail)
    return summary


def describe_combine_error(error: CombineError) -> str:
    """One line describing a narration combination failure."""
    if error.cause:
        return f"{error.kind.value}: {error.message} ({error.cause})"
    return f"{error.kind.value}: {error.message}"


def get_render_suggestion(error: RenderError) -> Optional[str]:
    """
    Suggest a fix for common renderer failures.

    Args:
        error: The render error

    Returns:
        Suggestion string or None
    """
    diagnostics = error.diagnostics.lower()

    if error.kind == RenderErrorKind.SPAWN_FAILED:
        return "Renderer binary not found. Install ffmpeg or set FFMPEG_BINARY in .env."
    elif error.kind == RenderErrorKind.TIMED_OUT:
        return "Render exceeded the job timeout. Raise RENDER_TIMEOUT_SECONDS or shorten the video."
    elif error.kind == RenderErrorKind.CANCELLED:
        return None
    elif "no such file" in diagnostics:
        return "An input asset is missing. Check background, image and narration paths."
    elif "no such filter" in diagnostics and "ass" in diagnostics:
        return "ffmpeg was built without libass. Install a build with subtitle support."
    elif "fontconfig" in diagnostics or ("font" in diagnostics and "not found" in diagnostics):
        return "Subtitle font not found. Set FONTS_DIR to a directory containing the font."
    return "Render failed. Check the renderer diagnostics in the logs."
