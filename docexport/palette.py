"""Highlight colour palette.

Highlight marks are keyed by a palette identifier (``yellow``, ``green``,
...).  The editor's light swatch hex codes are accepted as aliases for
documents saved before marks carried the key.  Colours outside the palette
are not mapped to anything.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from docx.enum.text import WD_COLOR_INDEX

logger = logging.getLogger(__name__)

DEFAULT_HIGHLIGHT = "yellow"


@dataclass(frozen=True)
class HighlightColor:
    """Rendering of one palette entry for both renderers."""
    key: str
    background: str          # swatch shown in the editor, PDF background
    text: str                # readable text colour on that background
    docx: WD_COLOR_INDEX     # nearest word-processor highlight


HIGHLIGHT_PALETTE: dict[str, HighlightColor] = {
    "yellow": HighlightColor("yellow", "#fef08a", "#854d0e", WD_COLOR_INDEX.YELLOW),
    "green": HighlightColor("green", "#bbf7d0", "#166534", WD_COLOR_INDEX.BRIGHT_GREEN),
    "blue": HighlightColor("blue", "#bfdbfe", "#1e40af", WD_COLOR_INDEX.TURQUOISE),
    "pink": HighlightColor("pink", "#fbcfe8", "#9d174d", WD_COLOR_INDEX.PINK),
    "orange": HighlightColor("orange", "#fed7aa", "#9a3412", WD_COLOR_INDEX.YELLOW),
    "purple": HighlightColor("purple", "#ddd6fe", "#5b21b6", WD_COLOR_INDEX.VIOLET),
}

_BY_SWATCH: dict[str, HighlightColor] = {
    entry.background: entry for entry in HIGHLIGHT_PALETTE.values()
}


def resolve_highlight(color: Optional[str]) -> Optional[HighlightColor]:
    """Return the palette entry for a highlight mark's ``color`` attribute.

    ``None``/empty gives the default highlighter colour.  A palette key or a
    palette swatch hex code gives that entry.  Anything else gives ``None``.
    """
    if not color:
        return HIGHLIGHT_PALETTE[DEFAULT_HIGHLIGHT]

    normalized = color.strip().lower()
    entry = HIGHLIGHT_PALETTE.get(normalized) or _BY_SWATCH.get(normalized)
    if entry is None:
        logger.warning("Highlight color %r is not in the palette; ignoring", color)
    return entry
