"""Subtitle Service - turns word timings into styled .ass cue documents."""

import re
from decimal import ROUND_DOWN, Decimal
from pathlib import Path
from typing import Any, Iterable, TextIO

from shortscreator.core.config import Settings
from shortscreator.core.errors import EmptyStyleError
from shortscreator.models.schemas import Cue, CueDocument, SubtitleStyle, VerticalPosition, WordTiming
from shortscreator.utils.io_utils import unique_temp_path

DEFAULT_COLOR = "#FFFFFF"

# Numpad-style alignment codes understood by libass
ALIGNMENT_CODES = {
    VerticalPosition.TOP: 8,
    VerticalPosition.CENTER: 5,
    VerticalPosition.BOTTOM: 2,
}

_HEX_COLOR = re.compile(r"^#([0-9A-Fa-f]{2})([0-9A-Fa-f]{2})([0-9A-Fa-f]{2})$")

ASS_HEADER = """[Script Info]
ScriptType: v4.00+
PlayResX: 384
PlayResY: 288
ScaledBorderAndShadow: yes

[V4+ Styles]
Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding
Style: Default,{font},{font_size},{colour},&H000000FF,&H00000000,&H00000000,1,0,0,0,100,100,0,0,1,2,2,{alignment},10,10,{margin_v},1

[Events]
Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text
"""

DIALOGUE_LINE = "Dialogue: 0,{start},{end},Default,,0,0,0,,{text}\n"


def alignment_for(vertical_position: Any) -> int:
    """Map top/center/bottom to an alignment code; anything else is bottom."""
    if isinstance(vertical_position, VerticalPosition):
        return ALIGNMENT_CODES[vertical_position]
    try:
        return ALIGNMENT_CODES[VerticalPosition(str(vertical_position).strip().lower())]
    except ValueError:
        return ALIGNMENT_CODES[VerticalPosition.BOTTOM]


def to_ass_colour(color: str) -> str:
    """
    Re-encode ``#RRGGBB`` into the cue format's ``&HBBGGRR&`` channel order.

    Raises:
        ValueError: If ``color`` is not a six digit hex colour
    """
    match = _HEX_COLOR.match(color.strip())
    if not match:
        raise ValueError(f"Invalid colour '{color}', expected #RRGGBB")
    red, green, blue = (group.upper() for group in match.groups())
    return f"&H{blue}{green}{red}&"


def format_ass_timestamp(seconds: float) -> str:
    """
    Format seconds as ``H:MM:SS.cc``; centiseconds are truncated, never rounded.

    ``3661.256`` becomes ``1:01:01.25``.
    """
    # repr() keeps the shortest decimal form so 0.29 doesn't become 0.28999...
    total = Decimal(repr(max(0.0, float(seconds))))
    centis = int((total * 100).to_integral_value(rounding=ROUND_DOWN))
    hours, rest = divmod(centis, 360000)
    minutes, rest = divmod(rest, 6000)
    secs, cs = divmod(rest, 100)
    return f"{hours}:{minutes:02d}:{secs:02d}.{cs:02d}"


def _escape_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace("{", "\\{").replace("}", "\\}").replace("\n", "\\N")


def generate_cues(word_timings: Iterable[WordTiming], style: SubtitleStyle, logger: Any = None) -> CueDocument:
    """
    Build a cue document with one cue per word, in input order.

    Args:
        word_timings: Word timings on the combined narration track
        style: Font, size, colour, vertical position and margin
        logger: Optional logger used to report a colour fallback

    Returns:
        CueDocument ready to be written

    Raises:
        EmptyStyleError: If the style has no font name
    """
    if not style.font or not style.font.strip():
        raise EmptyStyleError("Subtitle style requires a font name")

    try:
        colour = to_ass_colour(style.color or DEFAULT_COLOR)
    except ValueError as e:
        if logger:
            logger.warning(f"{e}; falling back to {DEFAULT_COLOR}")
        colour = to_ass_colour(DEFAULT_COLOR)

    cues = tuple(Cue(start=t.start, end=t.end, text=t.word) for t in word_timings)
    return CueDocument(
        font=style.font.strip(),
        font_size=style.font_size,
        primary_colour=colour,
        alignment=alignment_for(style.vertical_position),
        margin_v=style.margin_v,
        cues=cues,
    )


def render_ass(document: CueDocument) -> str:
    """Full .ass text for a cue document."""
    parts = [
        ASS_HEADER.format(
            font=document.font,
            font_size=document.font_size,
            colour=document.primary_colour,
            alignment=document.alignment,
            margin_v=document.margin_v,
        )
    ]
    for cue in document.cues:
        parts.append(
            DIALOGUE_LINE.format(
                start=format_ass_timestamp(cue.start),
                end=format_ass_timestamp(cue.end),
                text=_escape_text(cue.text),
            )
        )
    return "".join(parts)


def write_cue_document(document: CueDocument, sink: TextIO) -> None:
    """Write the document into a caller-owned text sink; the sink is not closed."""
    sink.write(render_ass(document))
    sink.flush()


class SubtitleService:
    """Creates subtitle cue files for a narration timeline."""

    def __init__(self, settings: Settings, logger: Any):
        """
        Initialize subtitle service.

        Args:
            settings: Application settings
            logger: Logger instance
        """
        self.settings = settings
        self.logger = logger

    def default_style(self) -> SubtitleStyle:
        """Style built from the configured subtitle defaults."""
        return SubtitleStyle(
            font=self.settings.subtitle_font,
            color=self.settings.subtitle_color,
            vertical_position=self.settings.subtitle_position,
            font_size=self.settings.subtitle_font_size,
            margin_v=self.settings.subtitle_margin_v,
        )

    def create_ass_file(self, word_timings: Iterable[WordTiming], style: SubtitleStyle) -> Path:
        """
        Write a ``subtitles-<uuid>.ass`` file into the temp directory.

        The caller owns the returned file and must delete it after rendering
        (usually by handing it to the composition builder).

        Raises:
            EmptyStyleError: If the style has no font name
            OSError: If the file cannot be created
        """
        document = generate_cues(word_timings, style, self.logger)
        cue_path = unique_temp_path(self.settings.temp_path, "subtitles", ".ass")
        with open(cue_path, "w", encoding="utf-8") as sink:
            write_cue_document(document, sink)
        self.logger.debug(f"Wrote {len(document.cues)} cues to {cue_path}")
        return cue_path
