"""Media Metadata Service - ffprobe lookups for durations and dimensions."""

import json
import random
import subprocess
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from shortscreator.core.config import Settings
from shortscreator.core.errors import ProbeError
from shortscreator.models.schemas import MediaProbe


class FfprobeStream(BaseModel):
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None


class FfprobeFormat(BaseModel):
    duration: Optional[float] = None


class FfprobeOutput(BaseModel):
    """Subset of ``ffprobe -of json`` output used here."""

    streams: list[FfprobeStream] = Field(default_factory=list)
    format: Optional[FfprobeFormat] = None


def choose_background_start(
    background_duration: float,
    narration_duration: float,
    rng: Optional[random.Random] = None,
) -> float:
    """
    Random start offset so the background covers the whole narration.

    Uniform in ``[0, background - narration]``; 0 when the background is
    not longer than the narration.
    """
    slack = background_duration - narration_duration
    if slack <= 0:
        return 0.0
    return (rng or random).uniform(0.0, slack)


class MediaMetadataService:
    """Reads media metadata with ffprobe, bounded by ``probe_timeout_seconds``."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize media metadata service.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def _run_ffprobe(self, path: Path, arguments: list[str]) -> FfprobeOutput:
        if not path.exists():
            raise ProbeError(f"Media file not found: {path}")

        command = [self.settings.ffprobe_binary, "-v", "error", *arguments, "-of", "json", str(path)]
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.settings.probe_timeout_seconds,
            )
        except subprocess.TimeoutExpired as e:
            raise ProbeError(f"ffprobe timed out after {self.settings.probe_timeout_seconds}s for {path}") from e
        except OSError as e:
            raise ProbeError(f"Could not start {self.settings.ffprobe_binary}: {e}") from e

        if completed.returncode != 0:
            raise ProbeError(f"ffprobe failed for {path}: {completed.stderr.strip()}")

        try:
            return FfprobeOutput.model_validate(json.loads(completed.stdout or "{}"))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ProbeError(f"Unreadable ffprobe output for {path}: {e}") from e

    def probe(self, media_path: Union[str, Path]) -> MediaProbe:
        """
        Duration and, for video, dimensions of the first video stream.

        Raises:
            ProbeError: Missing file, timeout, ffprobe failure, or no duration reported
        """
        path = Path(media_path)
        output = self._run_ffprobe(
            path,
            ["-select_streams", "v:0", "-show_entries", "stream=width,height,duration:format=duration"],
        )
        stream = output.streams[0] if output.streams else FfprobeStream()
        duration = stream.duration
        if duration is None and output.format is not None:
            duration = output.format.duration
        if duration is None:
            raise ProbeError(f"No duration reported for {path}")

        result = MediaProbe(duration_seconds=duration, width=stream.width, height=stream.height)
        self.logger.debug(f"Probed {path.name}: {result.duration_seconds:.2f}s {result.width}x{result.height}")
        return result

    def get_audio_duration(self, audio_path: Union[str, Path]) -> float:
        """Container duration of an audio file in seconds."""
        path = Path(audio_path)
        output = self._run_ffprobe(path, ["-show_entries", "format=duration"])
        if output.format is None or output.format.duration is None:
            raise ProbeError(f"No duration reported for {path}")
        return output.format.duration

    def validate_background(self, background_path: Union[str, Path]) -> MediaProbe:
        """Probe a background and check that it is a video with a usable duration."""
        result = self.probe(background_path)
        if result.width is None or result.height is None:
            raise ProbeError(f"Background {background_path} has no video stream")
        if result.duration_seconds <= 0:
            raise ProbeError(f"Background {background_path} has zero duration")
        return result
