"""Title Card Renderer - draws the card shown while a story title is narrated."""

from pathlib import Path
from typing import Any, Optional, Sequence, Union

from PIL import Image, ImageDraw, ImageFont

from shortscreator.core.config import Settings
from shortscreator.utils.io_utils import unique_temp_path

HORIZONTAL_PADDING = 25
VERTICAL_PADDING = 10
HEADER_HEIGHT = 110
FOOTER_HEIGHT = 50
LINE_SPACING = 8
CORNER_RADIUS = 50

TITLE_FONT_SIZE = 36
HEADER_FONT_SIZE = 32
SUBHEADER_FONT_SIZE = 28
FOOTER_FONT_SIZE = 28

# theme -> (background, primary text, secondary text)
THEMES = {
    "dark": ((22, 22, 22, 255), (255, 255, 255, 255), (128, 128, 128, 255)),
    "light": ((245, 245, 245, 255), (0, 0, 0, 255), (64, 64, 64, 255)),
}

FONT_CANDIDATES = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",  # Linux
    "/System/Library/Fonts/Helvetica.ttc",  # macOS
    "C:/Windows/Fonts/arialbd.ttf",  # Windows
)

Color = tuple[int, int, int, int]


def load_font(size: int, font_path: Optional[Union[str, Path]] = None) -> Any:
    """First usable TrueType font (configured path, then system fonts), else Pillow's default."""
    candidates = [str(font_path)] if font_path else []
    candidates.extend(FONT_CANDIDATES)
    for path in candidates:
        if Path(path).exists():
            try:
                return ImageFont.truetype(path, size)
            except OSError:
                continue
    return ImageFont.load_default(size=size)


def line_height(font: Any) -> int:
    return font.getbbox("Ag")[3] + LINE_SPACING


def wrap_text(text: str, font: Any, max_width: int) -> list[str]:
    """
    Greedy word wrap so every line fits ``max_width`` pixels.

    A single word wider than the limit gets a line of its own.
    """
    words = text.split()
    if not words:
        return [""]

    lines: list[str] = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if font.getlength(candidate) < max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines


def render_text_block(
    text: str,
    font: Any,
    text_color: Color,
    background: Color,
    width: int,
    horizontal_padding: int = HORIZONTAL_PADDING,
    vertical_padding: int = 0,
) -> Image.Image:
    """Word-wrapped text on a solid band of the given width."""
    lines = wrap_text(text, font, width - 2 * horizontal_padding)
    step = line_height(font)
    height = len(lines) * step + 2 * vertical_padding

    image = Image.new("RGBA", (width, height), background)
    draw = ImageDraw.Draw(image)
    y = vertical_padding
    for line in lines:
        draw.text((horizontal_padding, y), line, fill=text_color, font=font)
        y += step
    return image


def combine_vertically(images: Sequence[Image.Image]) -> Image.Image:
    """Stack images top to bottom, each centred horizontally."""
    width = max(image.width for image in images)
    height = sum(image.height for image in images)
    combined = Image.new("RGBA", (width, height), (0, 0, 0, 0))

    y = 0
    for image in images:
        combined.paste(image, ((width - image.width) // 2, y))
        y += image.height
    return combined


def round_corners(image: Image.Image, radius: int = CORNER_RADIUS) -> Image.Image:
    """Copy of ``image`` with transparent rounded corners."""
    mask = Image.new("L", image.size, 0)
    ImageDraw.Draw(mask).rounded_rectangle((0, 0, image.width - 1, image.height - 1), radius=radius, fill=255)
    rounded = Image.new("RGBA", image.size, (0, 0, 0, 0))
    rounded.paste(image, (0, 0), mask)
    return rounded


class TitleCardRenderer:
    """Renders a post-style title card: optional header, wrapped title, footer band."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize title card renderer.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger
        self.width = settings.title_card_width

    def _theme(self, theme: str) -> tuple[Color, Color, Color]:
        colors = THEMES.get(theme.strip().lower())
        if colors is None:
            self.logger.warning(f"Unknown title card theme '{theme}', using dark")
            colors = THEMES["dark"]
        return colors

    def _header(self, header: str, subheader: Optional[str], background: Color, primary: Color, secondary: Color) -> Image.Image:
        image = Image.new("RGBA", (self.width, HEADER_HEIGHT), background)
        draw = ImageDraw.Draw(image)
        draw.text(
            (HORIZONTAL_PADDING, VERTICAL_PADDING + 10),
            header,
            fill=primary,
            font=load_font(HEADER_FONT_SIZE, self.settings.title_card_font),
        )
        if subheader:
            draw.text(
                (HORIZONTAL_PADDING, VERTICAL_PADDING + 55),
                subheader,
                fill=secondary,
                font=load_font(SUBHEADER_FONT_SIZE, self.settings.title_card_font),
            )
        return image

    def _footer(self, footer: Optional[str], background: Color, secondary: Color) -> Image.Image:
        image = Image.new("RGBA", (self.width, FOOTER_HEIGHT), background)
        if footer:
            ImageDraw.Draw(image).text(
                (HORIZONTAL_PADDING, VERTICAL_PADDING),
                footer,
                fill=secondary,
                font=load_font(FOOTER_FONT_SIZE, self.settings.title_card_font),
            )
        return image

    def render(
        self,
        title: str,
        header: Optional[str] = None,
        subheader: Optional[str] = None,
        footer: Optional[str] = None,
        theme: str = "dark",
    ) -> Image.Image:
        """Compose the card in memory."""
        background, primary, secondary = self._theme(theme)
        title_font = load_font(TITLE_FONT_SIZE, self.settings.title_card_font)

        sections = []
        if header:
            sections.append(self._header(header, subheader, background, primary, secondary))
        sections.append(render_text_block(title, title_font, primary, background, self.width))
        sections.append(self._footer(footer, background, secondary))
        return round_corners(combine_vertically(sections))

    def create_title_card(
        self,
        title: str,
        header: Optional[str] = None,
        subheader: Optional[str] = None,
        footer: Optional[str] = None,
        theme: str = "dark",
    ) -> Path:
        """
        Write a ``title-card-<uuid>.png`` into the temp directory.

        The caller owns the file and deletes it after rendering (usually by
        handing it to the composition builder).

        Raises:
            OSError: If the image cannot be written
        """
        card = self.render(title, header, subheader, footer, theme)
        card_path = unique_temp_path(self.settings.temp_path, "title-card", ".png")
        card.save(card_path, "PNG")
        self.logger.debug(f"Title card {card.width}x{card.height} written to {card_path}")
        return card_path
