"""Short composition pipeline - narration → timeline → subtitles → filter graph → final video."""

import argparse
import json
import random
import sys
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError

from shortscreator.core.config import Settings, settings
from shortscreator.core.errors import CompositionError
from shortscreator.core.logging_config import get_logger, setup_logging
from shortscreator.models.schemas import (
    DialogueJobRequest,
    JobResult,
    StoryJobRequest,
    SubtitleStyle,
    Timeline,
)
from shortscreator.services.media_metadata import MediaMetadataService, choose_background_start
from shortscreator.services.narration_combiner import NarrationCombiner
from shortscreator.services.overlay_planner import (
    dimensions_for_aspect_ratio,
    image_dimensions,
    place_character,
    plan_image_overlays,
    speaker_order,
)
from shortscreator.services.progress import LoggingProgressSink, ProgressSink
from shortscreator.services.render_executor import RenderExecutor, RenderHandle
from shortscreator.services.speech_synthesis import (
    StubSpeechSynthesizer,
    SynthesisProviders,
    synthesize_segments,
)
from shortscreator.services.subtitle_service import SubtitleService
from shortscreator.services.title_card import TitleCardRenderer
from shortscreator.services.video_composition_builder import VideoCompositionBuilder
from shortscreator.utils.error_handler import (
    describe_combine_error,
    describe_render_error,
    format_error_message,
    get_render_suggestion,
)
from shortscreator.utils.io_utils import delete_temporary_files
from shortscreator.utils.parallel_executor import ParallelExecutor


class ShortComposer:
    """Runs story and dialogue composition jobs end to end."""

    def __init__(
        self,
        settings: Settings,
        logger: Any,
        providers: SynthesisProviders,
        executor: Optional[RenderExecutor] = None,
        media: Optional[MediaMetadataService] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize short composer.

        Args:
            settings: Application settings
            logger: Logger instance
            providers: Speech providers; each job resolves its provider once at start
            executor: Render executor (shared by concat, stub synthesis and rendering)
            media: Media probe service
            rng: Random source for the background start offset
        """
        self.settings = settings
        self.logger = logger
        self.providers = providers
        self.executor = executor or RenderExecutor(settings, logger)
        self.media = media or MediaMetadataService(settings, logger)
        self.combiner = NarrationCombiner(settings, logger, self.executor)
        self.subtitle_service = SubtitleService(settings, logger)
        self.title_cards = TitleCardRenderer(settings, logger)
        self.parallel_executor = ParallelExecutor(settings, logger)
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Story: title card + narrated body
    # ------------------------------------------------------------------

    def compose_story(
        self,
        request: StoryJobRequest,
        output_dir: Union[str, Path],
        sink: Optional[ProgressSink] = None,
        render_handle: Optional[RenderHandle] = None,
    ) -> JobResult:
        """
        Compose a titled story short.

        The title is narrated first while the title card is shown centred at
        its own size; without a ``title_image_path`` a card is drawn from the
        title. The body follows with word-by-word subtitles.

        Cancelling ``render_handle`` from another thread stops the render; a
        cancellation issued while narration is still being prepared takes
        effect before the renderer is started.
        """
        job_logger = self.logger.bind(job_id=request.job_id)
        job_logger.info("=" * 60)
        job_logger.info(f"Composing story: {request.title}")
        pending: list[Path] = []

        try:
            provider, voice_id = self.providers.resolve(request.voice)
            background = self.media.validate_background(request.background_path)

            lines = [(request.title, voice_id, False)] + [(paragraph, voice_id, True) for paragraph in request.body]
            job_logger.info(f"Step 1: Synthesizing {len(lines)} narration segments with '{provider.provider_id}'...")
            segments = synthesize_segments(
                provider, lines, self.parallel_executor, job_logger, job_id=request.job_id
            )

            job_logger.info("Step 2: Combining narration...")
            combined = self.combiner.combine_titled(segments[0], segments[1:])
            if not combined.success:
                return self._failed(request.job_id, "Combining narration", describe_combine_error(combined.error), job_logger)
            timeline = combined.timeline
            pending.append(timeline.audio_path)

            width, height = self.settings.video_width, self.settings.video_height
            if request.aspect_ratio:
                width, height = dimensions_for_aspect_ratio(request.aspect_ratio, width=self.settings.video_width)

            job_logger.info("Step 3: Building composition...")
            builder = (
                VideoCompositionBuilder(self.settings, job_logger)
                .with_dimensions(width, height)
                .with_background(
                    request.background_path,
                    start_offset=self._background_start(background.duration_seconds, timeline.total_duration),
                )
                .with_narration(timeline.audio_path, temporary=True)
            )
            if timeline.title_duration:
                title_image = request.title_image_path
                if title_image is None:
                    title_image = self.title_cards.create_title_card(
                        request.title,
                        header=request.title_header,
                        subheader=request.title_subheader,
                        footer=request.title_footer,
                        theme=request.title_theme,
                    )
                    pending.append(title_image)
                    builder.track_temp_file(title_image)
                # shown at its own size, centred
                builder.with_overlay(title_image, timeline.title_duration, scale_to_fit=False)

            return self._render(
                request.job_id, builder, timeline, request.subtitles, output_dir, sink, render_handle, pending, job_logger
            )
        except (CompositionError, ValueError, OSError) as e:
            return self._failed(request.job_id, "Composing story", e, job_logger)
        finally:
            delete_temporary_files(pending, job_logger)

    # ------------------------------------------------------------------
    # Dialogue: character pop-ups + searched images
    # ------------------------------------------------------------------

    def compose_dialogue(
        self,
        request: DialogueJobRequest,
        output_dir: Union[str, Path],
        sink: Optional[ProgressSink] = None,
        render_handle: Optional[RenderHandle] = None,
    ) -> JobResult:
        """
        Compose a multi-speaker dialogue short.

        Every line shows its speaker's character image (first speaker left,
        others right) while it is spoken, plus the line's images spread
        across the line in the top half of the frame.

        ``render_handle`` works as in ``compose_story``.
        """
        job_logger = self.logger.bind(job_id=request.job_id)
        job_logger.info("=" * 60)
        job_logger.info(f"Composing dialogue: {len(request.lines)} lines")
        pending: list[Path] = []

        try:
            provider = self.providers.get(request.provider_id)
            background = self.media.validate_background(request.background_path)

            job_logger.info(f"Step 1: Synthesizing {len(request.lines)} dialogue lines...")
            segments = synthesize_segments(
                provider,
                [(line.text, line.speaker_id, True) for line in request.lines],
                self.parallel_executor,
                job_logger,
                job_id=request.job_id,
            )
            overlays = plan_image_overlays(
                [segment.duration for segment in segments],
                [line.image_paths for line in request.lines],
            )

            job_logger.info("Step 2: Combining narration...")
            combined = self.combiner.combine_dialogue(segments, [line.speaker_id for line in request.lines])
            if not combined.success:
                return self._failed(request.job_id, "Combining narration", describe_combine_error(combined.error), job_logger)
            timeline = combined.timeline
            pending.append(timeline.audio_path)

            job_logger.info("Step 3: Building composition...")
            builder = (
                VideoCompositionBuilder(self.settings, job_logger)
                .with_background(
                    request.background_path,
                    start_offset=self._background_start(background.duration_seconds, timeline.total_duration),
                )
                .with_narration(timeline.audio_path, temporary=True)
            )
            self._add_character_overlays(builder, timeline, request.character_images, job_logger)
            for overlay in overlays:
                builder.with_segment_overlay(overlay)

            return self._render(
                request.job_id, builder, timeline, request.subtitles, output_dir, sink, render_handle, pending, job_logger
            )
        except (CompositionError, ValueError, OSError) as e:
            return self._failed(request.job_id, "Composing dialogue", e, job_logger)
        finally:
            delete_temporary_files(pending, job_logger)

    def _add_character_overlays(
        self,
        builder: VideoCompositionBuilder,
        timeline: Timeline,
        character_images: dict[str, Path],
        logger: Any,
    ) -> None:
        order = speaker_order(timeline.dialogue_lines)
        sizes: dict[Path, tuple[int, int]] = {}
        for line in timeline.dialogue_lines:
            image_path = character_images.get(line.speaker_id)
            if image_path is None:
                logger.warning(f"No character image for speaker '{line.speaker_id}', skipping pop-up")
                continue
            if image_path not in sizes:
                sizes[image_path] = image_dimensions(image_path)
            image_width, image_height = sizes[image_path]
            x, y = place_character(order.index(line.speaker_id), builder.width, builder.height, image_width, image_height)
            builder.with_image_overlay(image_path, x, y, line.start, line.duration, scale_to_fit=False)

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _background_start(self, background_duration: float, narration_duration: float) -> float:
        if not self.settings.background_seek_randomized:
            return 0.0
        return choose_background_start(background_duration, narration_duration, self.rng)

    def _render(
        self,
        job_id: str,
        builder: VideoCompositionBuilder,
        timeline: Timeline,
        style: SubtitleStyle,
        output_dir: Union[str, Path],
        sink: Optional[ProgressSink],
        render_handle: Optional[RenderHandle],
        pending: list[Path],
        logger: Any,
    ) -> JobResult:
        cue_path = self.subtitle_service.create_ass_file(timeline.combined_word_timings, style)
        pending.append(cue_path)
        plan = builder.with_subtitles(cue_path).with_output_duration(timeline.total_duration).build(output_dir)

        logger.info("Step 4: Rendering video...")
        result = self.executor.execute(plan, sink or LoggingProgressSink(logger, label=job_id), handle=render_handle)
        if not result.success:
            message = describe_render_error(result.error)
            suggestion = get_render_suggestion(result.error)
            if suggestion:
                message += f"\n   💡 Suggestion: {suggestion}"
            return self._failed(job_id, "Rendering video", message, logger)

        logger.info(f"Video ready: {result.output_path} ({timeline.total_duration:.2f}s)")
        return JobResult(
            job_id=job_id,
            success=True,
            output_path=result.output_path,
            duration_seconds=timeline.total_duration,
        )

    def _failed(self, job_id: str, operation: str, error: Union[Exception, str], logger: Any) -> JobResult:
        if isinstance(error, Exception):
            message = format_error_message(operation, error, context={"job_id": job_id})
        else:
            message = f"❌ {operation} failed (job_id={job_id})\n   {error}"
        logger.error(message)
        return JobResult(job_id=job_id, success=False, error_message=message)


def load_job(job_path: Path) -> Union[StoryJobRequest, DialogueJobRequest]:
    """
    Read a job file.

    The JSON object carries ``"type": "story"`` (default) or ``"dialogue"``
    plus the request fields.
    """
    with open(job_path, encoding="utf-8") as f:
        data = json.load(f)
    job_type = data.pop("type", "story")
    if job_type == "story":
        return StoryJobRequest.model_validate(data)
    if job_type == "dialogue":
        return DialogueJobRequest.model_validate(data)
    raise ValueError(f"Unknown job type '{job_type}' (expected 'story' or 'dialogue')")


def use_stub_voice(request: Union[StoryJobRequest, DialogueJobRequest]) -> Union[StoryJobRequest, DialogueJobRequest]:
    """Route a job to the silent stub provider, keeping the requested voice name."""
    if isinstance(request, StoryJobRequest):
        voice = request.voice.split("_", 1)[-1]
        return request.model_copy(update={"voice": f"{StubSpeechSynthesizer.provider_id}_{voice}"})
    return request.model_copy(update={"provider_id": StubSpeechSynthesizer.provider_id})


def main(argv: Optional[list[str]] = None) -> int:
    """Main entrypoint for composing a single short from a job file."""
    parser = argparse.ArgumentParser(
        description="Shorts Creator - compose a short video from a job file",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--job",
        type=Path,
        required=True,
        help="Path to a JSON job file (story or dialogue)",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path(settings.output_dir),
        help=f"Directory for the final video (default: {settings.output_dir})",
    )
    parser.add_argument(
        "--stub-voice",
        action="store_true",
        help="Use silent stub narration instead of the job's speech provider",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Kill the render after this many seconds (default: RENDER_TIMEOUT_SECONDS)",
    )

    args = parser.parse_args(argv)

    setup_logging(log_level=settings.log_level, log_file=Path(settings.log_file) if settings.log_file else None)
    if args.timeout is not None:
        settings.render_timeout_seconds = args.timeout

    try:
        request = load_job(args.job)
    except (OSError, ValueError, ValidationError) as e:
        get_logger(__name__).error(format_error_message("Loading job", e, context={"job": args.job}))
        return 1

    if args.stub_voice:
        request = use_stub_voice(request)

    logger = get_logger(__name__, job_id=request.job_id)
    logger.info(f"{settings.app_name} v{settings.app_version}")

    executor = RenderExecutor(settings, logger)
    providers = SynthesisProviders([StubSpeechSynthesizer(settings, logger, executor)])
    composer = ShortComposer(settings, logger, providers, executor=executor)
    render_handle = RenderHandle()

    try:
        if isinstance(request, StoryJobRequest):
            result = composer.compose_story(request, args.output_dir, render_handle=render_handle)
        else:
            result = composer.compose_dialogue(request, args.output_dir, render_handle=render_handle)
    except KeyboardInterrupt:
        executor.cancel(render_handle)
        logger.warning("Composition interrupted by user")
        return 1

    if not result.success:
        logger.error(f"Job {result.job_id} failed")
        return 1

    logger.info("=" * 60)
    logger.info(f"✅ Job {result.job_id} complete: {result.output_path} ({result.duration_seconds:.2f}s)")
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
