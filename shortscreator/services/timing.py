"""Word timing helpers shared by the narration combiner and subtitle generation."""

from typing import Iterable, Sequence

from shortscreator.models.schemas import NarrationSegment, WordTiming


def shift_timings(timings: Iterable[WordTiming], offset: float) -> list[WordTiming]:
    """
    Move every word timing later by ``offset`` seconds.

    Args:
        timings: Word timings to shift (may be empty)
        offset: Seconds added to each start and end (non-negative)

    Returns:
        New list of shifted timings; the input is left untouched
    """
    return [
        WordTiming(word=timing.word, start=timing.start + offset, end=timing.end + offset)
        for timing in timings
    ]


def segment_offsets(segments: Sequence[NarrationSegment]) -> list[float]:
    """Prefix sums of declared durations: the start of each segment on the combined track."""
    offsets = []
    current = 0.0
    for segment in segments:
        offsets.append(current)
        current += segment.duration
    return offsets


def last_word_end(segment: NarrationSegment) -> float:
    """End of the last detected word, or the declared duration when there are no timings."""
    if not segment.word_timings:
        return segment.duration
    return segment.word_timings[-1].end
