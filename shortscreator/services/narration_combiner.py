"""Narration Combiner - merges narration segments into one timeline."""

from typing import Any, Optional, Sequence

from shortscreator.core.config import Settings
from shortscreator.core.errors import RenderProcessError
from shortscreator.models.schemas import (
    CombineError,
    CombineErrorKind,
    CombineResult,
    DialogueLineInfo,
    DialogueNarration,
    NarrationSegment,
    Timeline,
    TitledNarration,
    WordTiming,
)
from shortscreator.services.render_executor import RenderExecutor
from shortscreator.services.timing import segment_offsets, shift_timings
from shortscreator.utils.io_utils import delete_temporary_file, delete_temporary_files, unique_temp_path


class NarrationCombiner:
    """Concatenates segment audio and re-bases word and line timings onto the combined track."""

    def __init__(self, settings: Settings, logger: Any, executor: Optional[RenderExecutor] = None):
        """
        Initialize narration combiner.

        Args:
            settings: Application settings
            logger: Logger instance
            executor: Render executor providing the concat primitive
        """
        self.settings = settings
        self.logger = logger
        self.executor = executor or RenderExecutor(settings, logger)

    def combine(self, segments: Sequence[NarrationSegment]) -> CombineResult:
        """
        Combine segments in order.

        The total duration is the sum of declared segment durations; segment
        i's word timings are shifted by the summed durations of segments
        before it. Segment audio files are deleted whether or not the
        combination succeeds.

        Args:
            segments: Narration segments, in playback order

        Returns:
            CombineResult holding the Timeline, or EMPTY_INPUT / CONCATENATION_FAILED
        """
        if not segments:
            return CombineResult(
                success=False,
                error=CombineError(kind=CombineErrorKind.EMPTY_INPUT, message="No narration segments to combine"),
            )

        output_path = None
        try:
            offsets = segment_offsets(segments)
            total_duration = offsets[-1] + segments[-1].duration

            combined_timings: list[WordTiming] = []
            dialogue_lines: list[DialogueLineInfo] = []
            for segment, offset in zip(segments, offsets):
                combined_timings.extend(shift_timings(segment.word_timings, offset))
                if isinstance(segment, DialogueNarration):
                    dialogue_lines.extend(
                        DialogueLineInfo(speaker_id=line.speaker_id, start=line.start + offset, duration=line.duration)
                        for line in segment.dialogue_lines
                    )

            title_duration = None
            if isinstance(segments[0], TitledNarration):
                title_duration = segments[0].title_duration

            output_path = unique_temp_path(
                self.settings.temp_path, "combined-narration", f".{self.settings.narration_audio_format}"
            )
            self.logger.info(f"Combining {len(segments)} narration segments ({total_duration:.2f}s)")
            try:
                self.executor.concat_audio([segment.audio_path for segment in segments], output_path)
            except (RenderProcessError, OSError) as e:
                delete_temporary_file(output_path, self.logger)
                self.logger.error(f"Narration concatenation failed: {e}")
                return CombineResult(
                    success=False,
                    error=CombineError(
                        kind=CombineErrorKind.CONCATENATION_FAILED,
                        message="Could not concatenate narration audio",
                        cause=str(e),
                    ),
                )

            timeline = Timeline(
                audio_path=output_path,
                total_duration=total_duration,
                combined_word_timings=tuple(combined_timings),
                title_duration=title_duration,
                dialogue_lines=tuple(dialogue_lines),
            )
            return CombineResult(success=True, timeline=timeline)
        finally:
            delete_temporary_files([segment.audio_path for segment in segments], self.logger)

    def combine_dialogue(self, segments: Sequence[NarrationSegment], speaker_ids: Sequence[str]) -> CombineResult:
        """
        Combine one segment per spoken line into a dialogue timeline.

        Each line starts where its segment starts on the combined track and
        lasts for the segment's own duration.

        Raises:
            ValueError: If the number of speakers does not match the number of segments
        """
        if len(segments) != len(speaker_ids):
            raise ValueError(f"Got {len(speaker_ids)} speaker ids for {len(segments)} segments")

        dialogue_segments = [
            DialogueNarration(
                audio_path=segment.audio_path,
                duration=segment.duration,
                word_timings=segment.word_timings,
                dialogue_lines=(DialogueLineInfo(speaker_id=speaker_id, start=0.0, duration=segment.duration),),
            )
            for segment, speaker_id in zip(segments, speaker_ids)
        ]
        return self.combine(dialogue_segments)

    def combine_titled(self, title_segment: NarrationSegment, body_segments: Sequence[NarrationSegment]) -> CombineResult:
        """Combine a title segment followed by body segments; the title duration is carried to the timeline."""
        titled = TitledNarration(
            audio_path=title_segment.audio_path,
            duration=title_segment.duration,
            word_timings=title_segment.word_timings,
            title_duration=title_segment.duration,
        )
        return self.combine([titled, *body_segments])
