"""Video Composition Builder - assembles a linear ffmpeg filter graph and command line."""

import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union

from shortscreator.core.config import Settings
from shortscreator.core.errors import IllegalOrderError, InvalidOutputDirError
from shortscreator.models.schemas import CommandInput, CommandPlan, ImageOverlaySegment, ImagePosition

SILENT_AUDIO_SOURCE = "anullsrc=channel_layout=stereo:sample_rate=44100"
SUBTITLED_TAG = "v_subs"
BASE_TAG = "bg"
ENCODE_OPTIONS = ("-c:v", "libx264", "-pix_fmt", "yuv420p", "-c:a", "aac", "-y")
CENTERED_POSITION = ("(W-w)/2", "(H-h)/2")
TOP_HALF_POSITION = ("(W-w)/2", "(H/2-h)/2")


class BuilderState(str, Enum):
    """Where the builder is in the linear chain."""

    EMPTY = "empty"  # no video stream yet
    VIDEO = "video"  # a current output tag exists
    SUBTITLED = "subtitled"  # subtitles burned in, chain is closed


def escape_filter_path(path: Union[str, Path]) -> str:
    """Escape a path for use inside a filter argument (forward slashes, escaped colons)."""
    return str(path).replace("\\", "/").replace(":", "\\:")


class VideoCompositionBuilder:
    """
    Fluent builder for a single-pass composition.

    Each visual method appends filter fragments and moves the current output
    tag forward, so fragments joined with ``;`` in call order form one chain:
    background, then overlays, then subtitle burn-in.
    """

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize composition builder.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.width = settings.video_width
        self.height = settings.video_height

        self._state = BuilderState.EMPTY
        self._inputs: list[CommandInput] = []
        self._fragments: list[str] = []
        self._video_tag: Optional[str] = None
        self._narration_index: Optional[int] = None
        self._output_duration: Optional[float] = None
        self._looped_base_duration: Optional[float] = None
        self._temp_files: list[Path] = []

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def video_tag(self) -> Optional[str]:
        return self._video_tag

    @property
    def fragments(self) -> list[str]:
        return list(self._fragments)

    @property
    def filter_graph(self) -> str:
        return ";".join(self._fragments)

    @property
    def output_duration(self) -> Optional[float]:
        return self._output_duration

    # ------------------------------------------------------------------
    # Inputs and state checks
    # ------------------------------------------------------------------

    def _add_input(self, source: Union[str, Path], options: tuple[str, ...] = ()) -> int:
        self._inputs.append(CommandInput(source=str(source), options=options))
        return len(self._inputs) - 1

    def _require_open_chain(self, operation: str) -> None:
        if self._state == BuilderState.SUBTITLED:
            raise IllegalOrderError(f"{operation} called after with_subtitles; subtitles must be the last visual operation")

    def _require_video(self, operation: str) -> None:
        self._require_open_chain(operation)
        if self._state == BuilderState.EMPTY:
            raise IllegalOrderError(f"{operation} requires a video stream (call with_background first)")

    def _fill_frame(self) -> str:
        w, h = self.width, self.height
        return f"scale={w}:{h}:force_original_aspect_ratio=increase,crop={w}:{h},setsar=1"

    # ------------------------------------------------------------------
    # Fluent operations
    # ------------------------------------------------------------------

    def with_dimensions(self, width: int, height: int) -> "VideoCompositionBuilder":
        """Set the output frame size; only valid before the first visual operation."""
        if self._state != BuilderState.EMPTY:
            raise IllegalOrderError("with_dimensions must be called before any visual operation")
        if width <= 0 or height <= 0:
            raise ValueError(f"Invalid dimensions {width}x{height}")
        self.width, self.height = width, height
        return self

    def with_background(
        self,
        path: Union[str, Path],
        width: Optional[int] = None,
        height: Optional[int] = None,
        start_offset: float = 0.0,
    ) -> "VideoCompositionBuilder":
        """
        Use a video as the base layer, scaled and cropped to fill the frame.

        Args:
            path: Background video
            width: Frame width (defaults to the configured width)
            height: Frame height (defaults to the configured height)
            start_offset: Seconds to seek into the background before decoding

        Raises:
            IllegalOrderError: If a visual stream already exists
            ValueError: If only one of ``width`` and ``height`` is given
        """
        if self._state != BuilderState.EMPTY:
            raise IllegalOrderError("with_background must be the first visual operation")
        if (width is None) != (height is None):
            raise ValueError("with_background needs both width and height, or neither")
        if width is not None:
            self.with_dimensions(width, height)

        options: tuple[str, ...] = ()
        if start_offset > 0:
            options = ("-ss", f"{start_offset:.3f}")
        index = self._add_input(path, options)

        self._fragments.append(f"[{index}:v]setpts=PTS-STARTPTS,{self._fill_frame()}[{BASE_TAG}]")
        self._video_tag = BASE_TAG
        self._state = BuilderState.VIDEO
        self.logger.debug(f"Background input {index}: {path} (start {start_offset:.3f}s)")
        return self

    def with_narration(self, path: Union[str, Path], temporary: bool = False) -> "VideoCompositionBuilder":
        """Record the narration audio input; the video chain is not touched."""
        if self._narration_index is not None:
            raise IllegalOrderError("Narration has already been set")
        self._narration_index = self._add_input(path)
        if temporary:
            self.track_temp_file(Path(path))
        return self

    def with_overlay(
        self,
        image_path: Union[str, Path],
        visible_duration: float,
        scale_to_fit: bool = True,
    ) -> "VideoCompositionBuilder":
        """
        Show an image centred from t=0 until ``visible_duration``.

        Without a background the image becomes the (looped) base layer
        instead, filling the frame.
        """
        self._require_open_chain("with_overlay")
        if self._state == BuilderState.EMPTY:
            index = self._add_input(image_path, ("-loop", "1"))
            self._fragments.append(f"[{index}:v]{self._fill_frame()}[{BASE_TAG}]")
            self._video_tag = BASE_TAG
            self._looped_base_duration = visible_duration
            self._state = BuilderState.VIDEO
            self.logger.debug(f"Image {image_path} used as base layer")
            return self
        return self._append_overlay(image_path, 0.0, visible_duration, CENTERED_POSITION, scale_to_fit, "ovr_centered")

    def with_image_overlay(
        self,
        image_path: Union[str, Path],
        x: int,
        y: int,
        start: float,
        duration: float,
        scale_to_fit: bool = False,
    ) -> "VideoCompositionBuilder":
        """Place an image at pixel position (x, y), visible between ``start`` and ``start + duration``."""
        self._require_video("with_image_overlay")
        return self._append_overlay(image_path, start, start + duration, (str(x), str(y)), scale_to_fit, "ovr")

    def with_centered_overlay(
        self,
        image_path: Union[str, Path],
        start: float,
        duration: float,
        scale_to_fit: bool = True,
    ) -> "VideoCompositionBuilder":
        """Centre an image on the frame, visible between ``start`` and ``start + duration``."""
        self._require_video("with_centered_overlay")
        return self._append_overlay(image_path, start, start + duration, CENTERED_POSITION, scale_to_fit, "ovr_centered")

    def with_segment_overlay(self, segment: ImageOverlaySegment) -> "VideoCompositionBuilder":
        """Add a planned overlay, scaled to the frame width, at its named position."""
        self._require_video("with_segment_overlay")
        position = CENTERED_POSITION if segment.position == ImagePosition.CENTER else TOP_HALF_POSITION
        return self._append_overlay(
            segment.image_path, segment.time_range.start, segment.time_range.end, position, True, "ovr"
        )

    def _append_overlay(
        self,
        image_path: Union[str, Path],
        start: float,
        end: float,
        position: tuple[str, str],
        scale_to_fit: bool,
        tag_prefix: str,
    ) -> "VideoCompositionBuilder":
        index = self._add_input(image_path)
        image_tag = f"{index}:v"
        if scale_to_fit:
            image_tag = f"scaled_img{index}"
            self._fragments.append(f"[{index}:v]scale={self.width}:-2[{image_tag}]")

        output_tag = f"{tag_prefix}{index}"
        x, y = position
        self._fragments.append(
            f"[{self._video_tag}][{image_tag}]overlay={x}:{y}:enable='between(t,{start:.2f},{end:.2f})'[{output_tag}]"
        )
        self._video_tag = output_tag
        return self

    def with_subtitles(
        self,
        cue_path: Union[str, Path],
        fonts_dir: Optional[Union[str, Path]] = None,
    ) -> "VideoCompositionBuilder":
        """
        Burn a cue file into the current stream.

        The subtitle filter is chained onto the last fragment rather than
        appended as its own fragment, so the previous output tag is consumed
        and never left dangling. The cue file is tracked as temporary.

        Raises:
            IllegalOrderError: Without a video stream, or when subtitles were already added
        """
        if self._state == BuilderState.EMPTY:
            raise IllegalOrderError("with_subtitles requires a video stream; add a background or overlay first")
        if self._state == BuilderState.SUBTITLED:
            raise IllegalOrderError("Subtitles have already been added")

        fonts_dir = fonts_dir if fonts_dir is not None else self.settings.fonts_path
        subtitle_filter = f"ass=filename='{escape_filter_path(cue_path)}'"
        if fonts_dir:
            subtitle_filter += f":fontsdir='{escape_filter_path(fonts_dir)}'"

        current_suffix = f"[{self._video_tag}]"
        last = self._fragments[-1]
        if not last.endswith(current_suffix):
            raise IllegalOrderError(f"Last fragment does not produce the current stream [{self._video_tag}]")
        self._fragments[-1] = f"{last[: -len(current_suffix)]},{subtitle_filter}[{SUBTITLED_TAG}]"

        self._video_tag = SUBTITLED_TAG
        self._state = BuilderState.SUBTITLED
        self.track_temp_file(Path(cue_path))
        return self

    def with_output_duration(self, seconds: float) -> "VideoCompositionBuilder":
        """Trim the output to ``seconds``; calling again replaces the value."""
        if seconds <= 0:
            raise ValueError(f"Output duration must be positive, got {seconds}")
        self._output_duration = seconds
        return self

    def track_temp_file(self, path: Path) -> "VideoCompositionBuilder":
        """Register a file to be deleted once rendering finishes."""
        if path not in self._temp_files:
            self._temp_files.append(path)
        return self

    # ------------------------------------------------------------------
    # Finalisation
    # ------------------------------------------------------------------

    def _prepare_output_dir(self, output_dir: Path) -> None:
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InvalidOutputDirError(f"Cannot create output directory {output_dir}: {e}") from e
        if not output_dir.is_dir():
            raise InvalidOutputDirError(f"Output path {output_dir} is not a directory")

    def build(self, output_dir: Union[str, Path]) -> CommandPlan:
        """
        Finalize the command.

        Maps the final video tag and the narration (or a generated silent
        track, so the output always has audio) and appends encode options,
        the optional ``-t`` trim and ``-shortest``.

        Args:
            output_dir: Directory receiving ``final-video-<uuid>.mp4``

        Returns:
            Immutable CommandPlan

        Raises:
            IllegalOrderError: If no visual stream was added
            InvalidOutputDirError: If the output directory is unusable
        """
        if self._state == BuilderState.EMPTY or self._video_tag is None:
            raise IllegalOrderError("Cannot build a composition without a video stream")

        output_dir = Path(output_dir)
        self._prepare_output_dir(output_dir)
        output_path = output_dir / f"final-video-{uuid.uuid4()}.mp4"

        inputs = list(self._inputs)
        audio_index = self._narration_index
        if audio_index is None:
            inputs.append(CommandInput(source=SILENT_AUDIO_SOURCE, options=("-f", "lavfi")))
            audio_index = len(inputs) - 1

        target_duration = self._output_duration
        if target_duration is None and self._narration_index is None:
            # looped image + endless silence would never terminate
            target_duration = self._looped_base_duration

        filter_graph = ";".join(self._fragments)
        arguments = [self.settings.ffmpeg_binary]
        for command_input in inputs:
            arguments.extend(command_input.to_arguments())
        arguments.extend(["-filter_complex", filter_graph])
        arguments.extend(["-map", f"[{self._video_tag}]", "-map", f"{audio_index}:a"])
        arguments.extend(ENCODE_OPTIONS)
        if target_duration is not None:
            arguments.extend(["-t", f"{target_duration:.3f}"])
        arguments.extend(["-shortest", str(output_path)])

        self.logger.debug(f"Filter graph: {filter_graph}")
        return CommandPlan(
            arguments=tuple(arguments),
            inputs=tuple(inputs),
            output_path=output_path,
            filter_graph=filter_graph,
            fragments=tuple(self._fragments),
            video_tag=self._video_tag,
            target_duration=target_duration,
            temp_files=tuple(self._temp_files),
        )
