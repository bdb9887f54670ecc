"""Tests for Subtitle Service."""

import io

import pytest

from shortscreator.core.errors import EmptyStyleError
from shortscreator.models.schemas import SubtitleStyle, VerticalPosition, WordTiming
from shortscreator.services.subtitle_service import (
    SubtitleService,
    alignment_for,
    format_ass_timestamp,
    generate_cues,
    render_ass,
    to_ass_colour,
    write_cue_document,
)


@pytest.fixture
def words():
    return [
        WordTiming(word="Hello", start=0.0, end=0.5),
        WordTiming(word="world", start=0.5, end=1.234),
    ]


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (3661.256, "1:01:01.25"),
        (0.0, "0:00:00.00"),
        (59.999, "0:00:59.99"),
        (0.29, "0:00:00.29"),
        (600.5, "0:10:00.50"),
    ],
)
def test_format_ass_timestamp_truncates(seconds, expected):
    assert format_ass_timestamp(seconds) == expected


def test_colour_channels_are_reversed():
    """#RRGGBB becomes &HBBGGRR&."""
    assert to_ass_colour("#112233") == "&H332211&"
    assert to_ass_colour("#a0b1c2") == "&HC2B1A0&"
    assert to_ass_colour("#FFFFFF") == "&HFFFFFF&"


def test_colour_rejects_malformed():
    with pytest.raises(ValueError):
        to_ass_colour("red")
    with pytest.raises(ValueError):
        to_ass_colour("#12345")


@pytest.mark.parametrize(
    "position, code",
    [("top", 8), ("center", 5), ("bottom", 2), ("TOP", 8), ("sideways", 2), (VerticalPosition.CENTER, 5)],
)
def test_alignment_codes(position, code):
    assert alignment_for(position) == code


def test_generate_cues_one_per_word(words):
    document = generate_cues(words, SubtitleStyle(font="Impact", color="#112233", vertical_position="top"))

    assert document.font == "Impact"
    assert document.primary_colour == "&H332211&"
    assert document.alignment == 8
    assert [(c.start, c.end, c.text) for c in document.cues] == [(0.0, 0.5, "Hello"), (0.5, 1.234, "world")]


def test_generate_cues_empty_font(words):
    with pytest.raises(EmptyStyleError):
        generate_cues(words, SubtitleStyle(font=""))
    with pytest.raises(EmptyStyleError):
        generate_cues(words, SubtitleStyle(font="   "))


def test_generate_cues_bad_colour_falls_back_to_white(words, logger):
    document = generate_cues(words, SubtitleStyle(font="Arial", color="not-a-colour"), logger)

    assert document.primary_colour == "&HFFFFFF&"


def test_generate_cues_accepts_empty_timings():
    document = generate_cues([], SubtitleStyle())

    assert document.cues == ()
    assert "Dialogue:" not in render_ass(document)


def test_render_ass_contains_style_and_dialogue(words):
    text = render_ass(generate_cues(words, SubtitleStyle()))

    assert "[Script Info]" in text
    assert (
        "Style: Default,Arial,18,&HFFFFFF&,&H000000FF,&H00000000,&H00000000,"
        "1,0,0,0,100,100,0,0,1,2,2,2,10,10,40,1\n"
    ) in text
    assert "Dialogue: 0,0:00:00.00,0:00:00.50,Default,,0,0,0,,Hello\n" in text
    assert "Dialogue: 0,0:00:00.50,0:00:01.23,Default,,0,0,0,,world\n" in text


def test_write_cue_document_leaves_sink_open(words):
    sink = io.StringIO()

    write_cue_document(generate_cues(words, SubtitleStyle()), sink)

    assert not sink.closed
    assert sink.getvalue().startswith("[Script Info]")


def test_create_ass_file_writes_unique_temp_file(settings, logger, words):
    service = SubtitleService(settings, logger)

    first = service.create_ass_file(words, SubtitleStyle())
    second = service.create_ass_file(words, SubtitleStyle())

    assert first != second
    assert first.parent == settings.temp_path
    assert first.name.startswith("subtitles-") and first.suffix == ".ass"
    assert "Hello" in first.read_text(encoding="utf-8")


def test_default_style_from_settings(settings, logger):
    style = SubtitleService(settings, logger).default_style()

    assert style.font == settings.subtitle_font
    assert style.color == settings.subtitle_color
    assert style.vertical_position == settings.subtitle_position


def test_render_ass_uses_style_size_and_margin(words):
    style = SubtitleStyle(font="Impact", font_size=30, margin_v=120, vertical_position="top")

    text = render_ass(generate_cues(words, style))

    assert "Style: Default,Impact,30,&HFFFFFF&," in text
    assert ",1,2,2,8,10,10,120,1\n" in text


def test_default_style_size_and_margin_from_settings(settings, logger):
    custom = settings.model_copy(update={"subtitle_font_size": 22, "subtitle_margin_v": 60})

    style = SubtitleService(custom, logger).default_style()

    assert style.font_size == 22
    assert style.margin_v == 60
