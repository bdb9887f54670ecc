"""Tests for Narration Combiner service."""

from unittest.mock import MagicMock

import pytest

from shortscreator.core.errors import RenderProcessError
from shortscreator.models.schemas import (
    CombineErrorKind,
    DialogueLineInfo,
    DialogueNarration,
    NarrationSegment,
    TitledNarration,
    WordTiming,
)
from shortscreator.services.narration_combiner import NarrationCombiner
from shortscreator.services.render_executor import RenderExecutor


@pytest.fixture
def executor():
    mock_executor = MagicMock(spec=RenderExecutor)
    mock_executor.concat_audio.side_effect = lambda paths, output_path: output_path
    return mock_executor


@pytest.fixture
def combiner(settings, logger, executor):
    return NarrationCombiner(settings, logger, executor)


@pytest.fixture
def three_segments(make_audio):
    """Durations 2.0 / 3.5 / 1.0 with one word each."""
    return [
        NarrationSegment(
            audio_path=make_audio("one.mp3"),
            duration=2.0,
            word_timings=(WordTiming(word="one", start=0.0, end=1.5),),
        ),
        NarrationSegment(
            audio_path=make_audio("two.mp3"),
            duration=3.5,
            word_timings=(WordTiming(word="two", start=0.0, end=2.0),),
        ),
        NarrationSegment(
            audio_path=make_audio("three.mp3"),
            duration=1.0,
            word_timings=(WordTiming(word="three", start=0.0, end=0.8),),
        ),
    ]


def test_combine_empty_input(combiner, executor):
    """An empty sequence fails with EMPTY_INPUT and never calls the renderer."""
    result = combiner.combine([])

    assert not result.success
    assert result.timeline is None
    assert result.error.kind == CombineErrorKind.EMPTY_INPUT
    executor.concat_audio.assert_not_called()


def test_combine_three_segments(combiner, three_segments):
    """Total duration 6.5 and word starts 0.0 / 2.0 / 5.5."""
    result = combiner.combine(three_segments)

    assert result.success
    timeline = result.timeline
    assert timeline.total_duration == 6.5
    assert [t.start for t in timeline.combined_word_timings] == [0.0, 2.0, 5.5]
    assert [t.end for t in timeline.combined_word_timings] == pytest.approx([1.5, 4.0, 6.3])
    assert [t.word for t in timeline.combined_word_timings] == ["one", "two", "three"]
    assert timeline.title_duration is None


def test_total_duration_uses_declared_durations(combiner, make_audio):
    """Trailing silence after the last word still counts toward the total."""
    segments = [
        NarrationSegment(
            audio_path=make_audio("a.mp3"),
            duration=4.0,
            word_timings=(WordTiming(word="short", start=0.0, end=0.5),),
        ),
        NarrationSegment(audio_path=make_audio("b.mp3"), duration=1.25),
    ]

    result = combiner.combine(segments)

    assert result.timeline.total_duration == 5.25


def test_combine_concatenates_in_order(combiner, executor, three_segments, settings):
    """One concat call with the segment files in order, written to a unique temp file."""
    result = combiner.combine(three_segments)

    executor.concat_audio.assert_called_once()
    paths, output_path = executor.concat_audio.call_args.args
    assert [p.name for p in paths] == ["one.mp3", "two.mp3", "three.mp3"]
    assert output_path.parent == settings.temp_path
    assert output_path.name.startswith("combined-narration-")
    assert output_path.suffix == ".mp3"
    assert result.timeline.audio_path == output_path


def test_segment_files_deleted_after_success(combiner, three_segments):
    combiner.combine(three_segments)

    assert not any(segment.audio_path.exists() for segment in three_segments)


def test_concat_failure(combiner, executor, three_segments, settings):
    """Concat errors become CONCATENATION_FAILED; segments and partial output are removed."""

    def fail(paths, output_path):
        output_path.write_bytes(b"partial")
        raise RenderProcessError("ffmpeg failed concatenating 3 audio files (exit code 1)", exit_code=1)

    executor.concat_audio.side_effect = fail

    result = combiner.combine(three_segments)

    assert not result.success
    assert result.error.kind == CombineErrorKind.CONCATENATION_FAILED
    assert "exit code 1" in result.error.cause
    assert not any(segment.audio_path.exists() for segment in three_segments)
    assert list(settings.temp_path.glob("combined-narration-*")) == []


def test_titled_narration_carries_title_duration(combiner, make_audio):
    """The first segment's title duration reaches the timeline unshifted."""
    segments = [
        TitledNarration(audio_path=make_audio("title.mp3"), duration=2.5, title_duration=2.5),
        NarrationSegment(
            audio_path=make_audio("body.mp3"),
            duration=3.0,
            word_timings=(WordTiming(word="body", start=0.1, end=0.6),),
        ),
    ]

    result = combiner.combine(segments)

    assert result.timeline.title_duration == 2.5
    assert result.timeline.combined_word_timings[0].start == pytest.approx(2.6)


def test_combine_titled_uses_title_segment_duration(combiner, make_audio):
    title = NarrationSegment(audio_path=make_audio("title.mp3"), duration=1.75)
    body = [NarrationSegment(audio_path=make_audio("body.mp3"), duration=4.0)]

    result = combiner.combine_titled(title, body)

    assert result.timeline.title_duration == 1.75
    assert result.timeline.total_duration == 5.75


def test_dialogue_lines_rebased(combiner, make_audio):
    """Lines inside dialogue segments move by their segment's offset."""
    segments = [
        DialogueNarration(
            audio_path=make_audio("a.mp3"),
            duration=2.0,
            dialogue_lines=(DialogueLineInfo(speaker_id="alice", start=0.0, duration=2.0),),
        ),
        DialogueNarration(
            audio_path=make_audio("b.mp3"),
            duration=3.0,
            dialogue_lines=(
                DialogueLineInfo(speaker_id="bob", start=0.0, duration=1.0),
                DialogueLineInfo(speaker_id="alice", start=1.0, duration=2.0),
            ),
        ),
    ]

    lines = combiner.combine(segments).timeline.dialogue_lines

    assert [(l.speaker_id, l.start, l.duration) for l in lines] == [
        ("alice", 0.0, 2.0),
        ("bob", 2.0, 1.0),
        ("alice", 3.0, 2.0),
    ]


def test_combine_dialogue_one_line_per_segment(combiner, make_audio):
    segments = [
        NarrationSegment(audio_path=make_audio("1.mp3"), duration=1.5),
        NarrationSegment(audio_path=make_audio("2.mp3"), duration=2.25),
        NarrationSegment(audio_path=make_audio("3.mp3"), duration=1.0),
    ]

    result = combiner.combine_dialogue(segments, ["alice", "bob", "alice"])

    lines = result.timeline.dialogue_lines
    assert [l.speaker_id for l in lines] == ["alice", "bob", "alice"]
    assert [l.start for l in lines] == [0.0, 1.5, 3.75]
    assert [l.duration for l in lines] == [1.5, 2.25, 1.0]
    assert result.timeline.total_duration == 4.75


def test_combine_dialogue_requires_matching_speakers(combiner, make_audio):
    segments = [NarrationSegment(audio_path=make_audio("1.mp3"), duration=1.0)]

    with pytest.raises(ValueError):
        combiner.combine_dialogue(segments, ["alice", "bob"])
