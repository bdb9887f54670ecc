"""Overlay Planner - timing and placement of image overlays and character pop-ups."""

from pathlib import Path
from typing import Sequence, Union

from PIL import Image

from shortscreator.models.schemas import DialogueLineInfo, ImageOverlaySegment, ImagePosition, TimeRange

CHARACTER_MARGIN = 50
# Each image sits inside its slot: 1/5 lead-in, 3/5 visible, 1/5 gap
IMAGE_LEAD_IN_FRACTION = 1 / 5
IMAGE_VISIBLE_FRACTION = 3 / 5


def plan_image_overlays(
    line_durations: Sequence[float],
    image_paths_per_line: Sequence[Sequence[Path]],
    position: ImagePosition = ImagePosition.TOP_HALF,
) -> list[ImageOverlaySegment]:
    """
    Spread each line's images evenly across the time the line is spoken.

    Lines without images just advance the clock.

    Args:
        line_durations: Duration of each spoken line, in order
        image_paths_per_line: Images for each line (may be empty)
        position: Placement for every planned overlay

    Returns:
        Overlay segments on the combined narration track
    """
    if len(line_durations) != len(image_paths_per_line):
        raise ValueError("line_durations and image_paths_per_line must have the same length")

    overlays: list[ImageOverlaySegment] = []
    current_time = 0.0
    for duration, image_paths in zip(line_durations, image_paths_per_line):
        if not image_paths:
            current_time += duration
            continue

        slot = duration / len(image_paths)
        for image_path in image_paths:
            start = current_time + slot * IMAGE_LEAD_IN_FRACTION
            end = start + slot * IMAGE_VISIBLE_FRACTION
            overlays.append(
                ImageOverlaySegment(
                    image_path=Path(image_path),
                    time_range=TimeRange(start=start, end=end),
                    position=position,
                )
            )
            current_time += slot
    return overlays


def image_dimensions(image_path: Union[str, Path]) -> tuple[int, int]:
    """Width and height of an image file."""
    with Image.open(image_path) as img:
        return img.size


def speaker_order(lines: Sequence[DialogueLineInfo]) -> list[str]:
    """Distinct speaker ids in order of first appearance."""
    order: list[str] = []
    for line in lines:
        if line.speaker_id not in order:
            order.append(line.speaker_id)
    return order


def place_character(
    speaker_index: int,
    frame_width: int,
    frame_height: int,
    image_width: int,
    image_height: int,
    margin: int = CHARACTER_MARGIN,
) -> tuple[int, int]:
    """
    Pixel position of a character image.

    The first speaker stands on the left, everyone else on the right; both
    are bottom aligned.
    """
    y = frame_height - image_height
    if speaker_index == 0:
        return margin, y
    return frame_width - image_width - margin, y


def dimensions_for_aspect_ratio(aspect_ratio: str, width: int = 1080) -> tuple[int, int]:
    """
    Frame size for an aspect ratio like ``"9:16"`` at a fixed width.

    The height is rounded and bumped to the next even number, as H.264
    requires even dimensions.

    Raises:
        ValueError: If the ratio is not two positive integers separated by ':'
    """
    try:
        aspect_width, aspect_height = (int(part) for part in aspect_ratio.split(":"))
    except ValueError as e:
        raise ValueError(f"Invalid aspect ratio '{aspect_ratio}', expected W:H") from e
    if aspect_width <= 0 or aspect_height <= 0:
        raise ValueError(f"Invalid aspect ratio '{aspect_ratio}'")

    height = round(width / aspect_width * aspect_height)
    if height % 2:
        height += 1
    return width, height
