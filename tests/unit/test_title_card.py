"""Tests for generated story title cards."""

from unittest.mock import MagicMock

import pytest
from PIL import Image

from shortscreator.services.title_card import (
    FOOTER_HEIGHT,
    HEADER_HEIGHT,
    TITLE_FONT_SIZE,
    TitleCardRenderer,
    line_height,
    load_font,
    wrap_text,
)

LONG_TITLE = (
    "My roommate kept eating my food so I started labelling everything "
    "and what happened next surprised the whole building"
)


@pytest.fixture
def renderer(settings, logger):
    return TitleCardRenderer(settings, logger)


@pytest.fixture
def title_font(settings):
    return load_font(TITLE_FONT_SIZE, settings.title_card_font)


def test_card_layout_with_header(renderer, settings, title_font):
    card = renderer.render("Short title", header="r/stories", subheader="u/someone")

    block = len(wrap_text("Short title", title_font, settings.title_card_width - 50)) * line_height(title_font)
    assert card.mode == "RGBA"
    assert card.width == settings.title_card_width == 750
    assert card.height == HEADER_HEIGHT + block + FOOTER_HEIGHT


def test_header_is_optional(renderer):
    with_header = renderer.render("Short title", header="r/stories")
    without_header = renderer.render("Short title")

    assert with_header.height - without_header.height == HEADER_HEIGHT


def test_corners_are_transparent(renderer):
    card = renderer.render("Short title", header="r/stories")

    assert card.getpixel((0, 0))[3] == 0
    assert card.getpixel((card.width - 1, card.height - 1))[3] == 0
    assert card.getpixel((card.width // 2, card.height // 2))[3] == 255


def test_long_title_wraps(renderer, title_font, settings):
    short = renderer.render("Short title")
    long = renderer.render(LONG_TITLE)

    lines = wrap_text(LONG_TITLE, title_font, settings.title_card_width - 50)
    assert len(lines) > 1
    assert long.height > short.height
    assert long.width == short.width


def test_wrap_text_fits_width(title_font):
    lines = wrap_text(LONG_TITLE, title_font, 300)

    assert " ".join(lines) == LONG_TITLE
    assert all(title_font.getlength(line) < 300 for line in lines if " " in line)


def test_wrap_text_empty():
    assert wrap_text("   ", load_font(TITLE_FONT_SIZE), 300) == [""]


def test_unknown_theme_falls_back_to_dark(settings):
    logger = MagicMock()
    renderer = TitleCardRenderer(settings, logger)

    neon = renderer.render("Short title", theme="neon")
    dark = renderer.render("Short title", theme="dark")

    logger.warning.assert_called_once()
    assert neon.tobytes() == dark.tobytes()


def test_light_theme_background(renderer):
    card = renderer.render("Short title", header="r/stories", theme="light")

    # left of the header text, below the rounded corner
    assert card.getpixel((5, HEADER_HEIGHT - 10)) == (245, 245, 245, 255)


def test_create_title_card_writes_temp_png(renderer, settings):
    first = renderer.create_title_card("Short title", header="r/stories")
    second = renderer.create_title_card("Short title")

    assert first != second
    assert first.parent == settings.temp_path
    assert first.name.startswith("title-card-") and first.suffix == ".png"
    with Image.open(first) as image:
        assert image.size[0] == settings.title_card_width
        assert image.mode == "RGBA"

    first.unlink()
    second.unlink()
    assert list(settings.temp_path.glob("*")) == []
