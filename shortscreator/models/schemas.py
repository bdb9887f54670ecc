"""Pydantic models and schemas for the composition engine."""

import uuid
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# Enums
# ============================================================================


class VerticalPosition(str, Enum):
    """Vertical placement of subtitle cues."""

    TOP = "top"
    CENTER = "center"
    BOTTOM = "bottom"


class ImagePosition(str, Enum):
    """Placement of an image overlay on the video canvas."""

    CENTER = "center"
    TOP_HALF = "top_half"


class ProgressKind(str, Enum):
    """Kind of a progress event emitted by the render executor."""

    PROGRESS = "progress"
    COMPLETED = "completed"
    FAILED = "failed"


class CombineErrorKind(str, Enum):
    """Failure categories of narration combination."""

    EMPTY_INPUT = "empty_input"
    CONCATENATION_FAILED = "concatenation_failed"


class RenderErrorKind(str, Enum):
    """Failure categories of a render execution."""

    PROCESS_FAILED = "process_failed"
    SPAWN_FAILED = "spawn_failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


# ============================================================================
# Timing Models
# ============================================================================


class TimeRange(BaseModel):
    """A timing interval with a start and end time in seconds."""

    model_config = ConfigDict(frozen=True)

    start: float = Field(..., ge=0.0, description="Start time in seconds")
    end: float = Field(..., ge=0.0, description="End time in seconds")

    @model_validator(mode="after")
    def _check_order(self) -> "TimeRange":
        if self.end < self.start:
            raise ValueError(f"end ({self.end}) must not precede start ({self.start})")
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start


class WordTiming(BaseModel):
    """A single word and its start and end time in an audio track."""

    model_config = ConfigDict(frozen=True)

    word: str = Field(..., description="Spoken word")
    start: float = Field(..., ge=0.0, description="Start time in seconds")
    end: float = Field(..., ge=0.0, description="End time in seconds")

    @model_validator(mode="after")
    def _check_order(self) -> "WordTiming":
        if self.end < self.start:
            raise ValueError(f"word '{self.word}': end ({self.end}) must not precede start ({self.start})")
        return self


class DialogueLineInfo(BaseModel):
    """Timing of one speaker line, used to sync character images with narration."""

    model_config = ConfigDict(frozen=True)

    speaker_id: str = Field(..., description="Speaker / character identifier")
    start: float = Field(..., ge=0.0, description="Line start in seconds")
    duration: float = Field(..., ge=0.0, description="Line duration in seconds")


class NarrationSegment(BaseModel):
    """One synthesized speech clip plus its duration and optional word timings."""

    model_config = ConfigDict(frozen=True)

    audio_path: Path = Field(..., description="Path to the segment audio file")
    duration: float = Field(..., ge=0.0, description="Declared audio duration in seconds (authoritative)")
    word_timings: tuple[WordTiming, ...] = Field(default=(), description="Word timings relative to segment start")

    @model_validator(mode="after")
    def _check_timings_within_duration(self) -> "NarrationSegment":
        if self.word_timings and self.word_timings[-1].end > self.duration:
            raise ValueError(
                f"last word ends at {self.word_timings[-1].end}s, beyond segment duration {self.duration}s"
            )
        return self


class TitledNarration(NarrationSegment):
    """Narration whose opening part is a title shown on screen."""

    title_duration: float = Field(..., ge=0.0, description="How long the title visual stays on screen")


class DialogueNarration(NarrationSegment):
    """Narration made of lines spoken by different speakers."""

    dialogue_lines: tuple[DialogueLineInfo, ...] = Field(default=(), description="Per-speaker line timings")


class Timeline(BaseModel):
    """The single narration produced by merging segments in order."""

    model_config = ConfigDict(frozen=True)

    audio_path: Path = Field(..., description="Combined narration audio")
    total_duration: float = Field(..., ge=0.0, description="Sum of the declared segment durations")
    combined_word_timings: tuple[WordTiming, ...] = Field(default=(), description="Word timings on the combined track")
    title_duration: Optional[float] = Field(default=None, description="Title display duration, if titled")
    dialogue_lines: tuple[DialogueLineInfo, ...] = Field(default=(), description="Speaker lines re-based to the combined track")


# ============================================================================
# Subtitle Models
# ============================================================================


class SubtitleStyle(BaseModel):
    """Subtitle styling parameters supplied with a job."""

    font: str = Field(default="Arial", description="Font family name")
    color: str = Field(default="#FFFFFF", description="Primary colour as #RRGGBB")
    vertical_position: str = Field(default="bottom", description="top, center or bottom")
    font_size: int = Field(default=18, gt=0, description="Font size in cue-script units")
    margin_v: int = Field(default=40, ge=0, description="Vertical margin in cue-script units")


class Cue(BaseModel):
    """A single timed caption."""

    model_config = ConfigDict(frozen=True)

    start: float = Field(..., ge=0.0, description="Cue start in seconds")
    end: float = Field(..., ge=0.0, description="Cue end in seconds")
    text: str = Field(..., description="Caption text")


class CueDocument(BaseModel):
    """A styled list of timed cues ready to be written as an .ass file."""

    model_config = ConfigDict(frozen=True)

    font: str = Field(..., description="Font family name")
    primary_colour: str = Field(..., description="Colour in cue-format channel order (&HBBGGRR&)")
    font_size: int = Field(default=18, description="Font size in cue-script units")
    alignment: int = Field(..., description="Numpad alignment code (2 bottom, 5 center, 8 top)")
    margin_v: int = Field(default=40, description="Vertical margin in cue-script units")
    cues: tuple[Cue, ...] = Field(default=(), description="Cues in input order")


# ============================================================================
# Render Models
# ============================================================================


class CommandInput(BaseModel):
    """One renderer input: a file path or a lavfi source, with its input options."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(..., description="File path or lavfi source expression")
    options: tuple[str, ...] = Field(default=(), description="Options placed before -i (e.g. -ss, -loop, -f)")

    def to_arguments(self) -> list[str]:
        return [*self.options, "-i", self.source]


class CommandPlan(BaseModel):
    """A finished renderer invocation produced by the composition builder."""

    model_config = ConfigDict(frozen=True)

    arguments: tuple[str, ...] = Field(..., description="Full argument list, executable first")
    inputs: tuple[CommandInput, ...] = Field(default=(), description="Inputs in index order")
    output_path: Path = Field(..., description="Where the renderer writes the final video")
    filter_graph: str = Field(default="", description="Joined filter graph string")
    fragments: tuple[str, ...] = Field(default=(), description="Filter fragments in call order")
    video_tag: str = Field(..., description="Stream tag mapped as the output video")
    target_duration: Optional[float] = Field(default=None, description="Output trim duration in seconds")
    temp_files: tuple[Path, ...] = Field(default=(), description="Inputs deleted after rendering")


class ProgressEvent(BaseModel):
    """A progress notification; percent is clamped to [0, 100]."""

    model_config = ConfigDict(frozen=True)

    kind: ProgressKind = Field(..., description="progress, completed or failed")
    percent: Optional[float] = Field(default=None, description="Completion percentage for progress events")

    @field_validator("percent")
    @classmethod
    def _clamp_percent(cls, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        return min(100.0, max(0.0, value))


class RenderError(BaseModel):
    """Why a render execution failed."""

    kind: RenderErrorKind = Field(..., description="Failure category")
    message: str = Field(..., description="Human readable summary")
    exit_code: Optional[int] = Field(default=None, description="Renderer exit code, if it ran")
    diagnostics: str = Field(default="", description="Captured renderer diagnostics (tail)")


class RenderResult(BaseModel):
    """Outcome of a render execution: a playable output path or an error."""

    success: bool = Field(..., description="True when the renderer exited with code 0")
    output_path: Optional[Path] = Field(default=None, description="Final video path on success")
    error: Optional[RenderError] = Field(default=None, description="Failure details")


class CombineError(BaseModel):
    """Why narration combination failed."""

    kind: CombineErrorKind = Field(..., description="Failure category")
    message: str = Field(..., description="Human readable summary")
    cause: Optional[str] = Field(default=None, description="Underlying failure, if any")


class CombineResult(BaseModel):
    """Outcome of narration combination: a timeline or an error."""

    success: bool = Field(..., description="True when a timeline was produced")
    timeline: Optional[Timeline] = Field(default=None, description="Combined timeline on success")
    error: Optional[CombineError] = Field(default=None, description="Failure details")


# ============================================================================
# Media & Overlay Models
# ============================================================================


class MediaProbe(BaseModel):
    """Metadata reported by the media probe."""

    model_config = ConfigDict(frozen=True)

    duration_seconds: float = Field(..., ge=0.0, description="Media duration in seconds")
    width: Optional[int] = Field(default=None, description="Video width in pixels")
    height: Optional[int] = Field(default=None, description="Video height in pixels")


class ImageOverlaySegment(BaseModel):
    """An image shown over the video during a time window."""

    model_config = ConfigDict(frozen=True)

    image_path: Path = Field(..., description="Image file")
    time_range: TimeRange = Field(..., description="Visibility window")
    position: ImagePosition = Field(default=ImagePosition.TOP_HALF, description="Placement on the canvas")


class ParsedVoiceId(BaseModel):
    """A global voice id split into provider and provider-specific voice."""

    model_config = ConfigDict(frozen=True)

    provider_id: str = Field(..., description="Provider key (e.g. 'openai', 'stub')")
    voice_id: str = Field(..., description="Voice identifier understood by the provider")


# ============================================================================
# Job Models
# ============================================================================


def _new_job_id() -> str:
    return f"job_{uuid.uuid4().hex[:12]}"


class StoryJobRequest(BaseModel):
    """A titled story: title narration, body narration, background and title card."""

    job_id: str = Field(default_factory=_new_job_id, description="Job identifier")
    title: str = Field(..., description="Title text, narrated first")
    body: list[str] = Field(..., min_length=1, description="Body paragraphs narrated after the title")
    voice: str = Field(..., description="Global voice id in 'provider_voice' form")
    background_path: Path = Field(..., description="Background video")
    title_image_path: Optional[Path] = Field(default=None, description="Title card shown while the title is read; generated when omitted")
    title_header: Optional[str] = Field(default=None, description="Header line of a generated title card")
    title_subheader: Optional[str] = Field(default=None, description="Smaller line under the header")
    title_footer: Optional[str] = Field(default=None, description="Footer line of a generated title card")
    title_theme: str = Field(default="dark", description="Generated title card theme: dark or light")
    subtitles: SubtitleStyle = Field(default_factory=SubtitleStyle, description="Subtitle styling")
    aspect_ratio: Optional[str] = Field(default=None, description="Aspect ratio like '9:16'; defaults to settings")


class DialogueLineRequest(BaseModel):
    """One line of a multi-speaker dialogue."""

    speaker_id: str = Field(..., description="Speaker id, also used as the provider voice")
    text: str = Field(..., description="Line text")
    image_paths: list[Path] = Field(default_factory=list, description="Images shown while the line is spoken")


class DialogueJobRequest(BaseModel):
    """A character dialogue over a background with speaker pop-ups."""

    job_id: str = Field(default_factory=_new_job_id, description="Job identifier")
    provider_id: str = Field(..., description="Synthesis provider key")
    lines: list[DialogueLineRequest] = Field(..., min_length=1, description="Dialogue lines in order")
    background_path: Path = Field(..., description="Background video")
    character_images: dict[str, Path] = Field(default_factory=dict, description="Speaker id -> character image")
    subtitles: SubtitleStyle = Field(default_factory=SubtitleStyle, description="Subtitle styling")


class JobResult(BaseModel):
    """Outcome of a composition job."""

    job_id: str = Field(..., description="Job identifier")
    success: bool = Field(..., description="True when a playable video was produced")
    output_path: Optional[Path] = Field(default=None, description="Final video path")
    duration_seconds: float = Field(default=0.0, description="Narration duration of the video")
    error_message: Optional[str] = Field(default=None, description="Failure summary")
