"""Tests for overlay planning and placement."""

from pathlib import Path

import pytest
from PIL import Image

from shortscreator.models.schemas import DialogueLineInfo, ImagePosition
from shortscreator.services.overlay_planner import (
    dimensions_for_aspect_ratio,
    image_dimensions,
    place_character,
    plan_image_overlays,
    speaker_order,
)


def test_plan_image_overlays_slots():
    """Each image gets 1/5 lead-in and 3/5 visibility of its slot; empty lines advance the clock."""
    overlays = plan_image_overlays(
        [3.0, 2.0, 5.0],
        [[Path("a.png"), Path("b.png")], [], [Path("c.png")]],
    )

    assert [o.image_path.name for o in overlays] == ["a.png", "b.png", "c.png"]
    assert [o.time_range.start for o in overlays] == pytest.approx([0.3, 1.8, 6.0])
    assert [o.time_range.end for o in overlays] == pytest.approx([1.2, 2.7, 9.0])
    assert all(o.position == ImagePosition.TOP_HALF for o in overlays)


def test_plan_image_overlays_requires_matching_lengths():
    with pytest.raises(ValueError):
        plan_image_overlays([1.0], [])


def test_plan_image_overlays_no_images():
    assert plan_image_overlays([1.0, 2.0], [[], []]) == []


def test_speaker_order_first_appearance():
    lines = [
        DialogueLineInfo(speaker_id="bob", start=0.0, duration=1.0),
        DialogueLineInfo(speaker_id="alice", start=1.0, duration=1.0),
        DialogueLineInfo(speaker_id="bob", start=2.0, duration=1.0),
    ]
    assert speaker_order(lines) == ["bob", "alice"]


def test_place_character_left_and_right():
    assert place_character(0, 1080, 1920, 300, 400) == (50, 1520)
    assert place_character(1, 1080, 1920, 300, 400) == (730, 1520)
    assert place_character(2, 1080, 1920, 300, 400) == (730, 1520)


@pytest.mark.parametrize(
    "ratio, expected",
    [("9:16", (1080, 1920)), ("1:1", (1080, 1080)), ("4:5", (1080, 1350)), ("7:5", (1080, 772))],
)
def test_dimensions_for_aspect_ratio(ratio, expected):
    width, height = dimensions_for_aspect_ratio(ratio)

    assert (width, height) == expected
    assert height % 2 == 0


@pytest.mark.parametrize("ratio", ["16-9", "a:b", "0:16", "9:16:1"])
def test_dimensions_for_invalid_ratio(ratio):
    with pytest.raises(ValueError):
        dimensions_for_aspect_ratio(ratio)


def test_image_dimensions(tmp_path):
    path = tmp_path / "character.png"
    Image.new("RGBA", (320, 480)).save(path)

    assert image_dimensions(path) == (320, 480)
