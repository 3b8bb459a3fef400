"""House style shared by the PDF and DOCX converters.

Both converters must produce the same document from the same tree, so the
rules that are not renderer specific live here: heading sizes and spacing,
default alignments, image limits and the list-item hoisting rule.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from docexport.models import DocumentNode, NodeType
from docexport.styles import ALIGNMENTS
from docexport.template import DEFAULT_COLORS, DEFAULT_HEADING_COLORS, heading_level_from_key
from docexport.units import parse_length_with_unit

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

HEADING_SIZE_MULTIPLIERS: dict[int, float] = {
    1: 1.75,
    2: 1.5,
    3: 1.25,
    4: 1.08,
    5: 1.0,
    6: 0.92,
}

# Points before/after a heading.
HEADING_SPACING: dict[int, tuple[int, int]] = {
    1: (24, 12),
    2: (18, 10),
    3: (14, 8),
    4: (12, 6),
}
DEFAULT_HEADING_SPACING = (12, 6)

DEFAULT_PARAGRAPH_ALIGNMENT = "justify"
DEFAULT_HEADING_ALIGNMENT = "left"
DEFAULT_IMAGE_ALIGNMENT = "center"

DEFAULT_IMAGE_WIDTH = 400
MAX_IMAGE_WIDTH = 500
EXTERNAL_IMAGE_PLACEHOLDER = "[external image not exported]"
PLACEHOLDER_COLOR = "#999999"

CODE_FONT = "Courier New"
CODE_FONT_SIZE = 10
INLINE_CODE_COLOR = "#c7254e"
LINK_COLOR = "#0066cc"
SCRIPT_FONT_SIZE = 8
QUOTE_RULE_COLOR = DEFAULT_COLORS["medium_blue"]
QUOTE_TEXT_COLOR = DEFAULT_COLORS["medium_gray"]
RULE_COLOR = DEFAULT_COLORS["border"]

LIST_SPACING_AFTER = 8
TASK_CHECKED = "[x] "
TASK_UNCHECKED = "[ ] "


# ── Helpers ────────────────────────────────────────────────────────────


def heading_font_size(base_size: float, level: int) -> int:
    """``base_size`` scaled by the fixed multiplier for *level*."""
    return round(base_size * HEADING_SIZE_MULTIPLIERS.get(level, 1.0))


def heading_level(node: DocumentNode) -> int:
    """Heading level clamped to 1..6."""
    try:
        level = int(node.attr("level", 1))
    except (TypeError, ValueError):
        logger.warning("Invalid heading level %r; using 1", node.attrs.get("level"))
        return 1
    return min(max(level, 1), 6)


def normalize_heading_colors(colors: Mapping[Any, str] | None) -> dict[int, str]:
    """Accept ``{1: ...}`` or ``{"h1": ...}`` keys; missing levels get defaults."""
    result = dict(DEFAULT_HEADING_COLORS)
    for key, value in (colors or {}).items():
        if not value:
            continue
        level = heading_level_from_key(key)
        if level is None:
            logger.warning("Ignoring heading color for unknown key %r", key)
            continue
        result[level] = value
    return result


def alignment_of(node: DocumentNode, default: str) -> str:
    value = node.attr("textAlign") or node.attr("align")
    return value if value in ALIGNMENTS else default


def image_alignment(node: DocumentNode) -> str:
    """Images keep their alignment in ``alignment``; centred by default."""
    value = node.attr("alignment")
    if value in ALIGNMENTS:
        return value
    return alignment_of(node, DEFAULT_IMAGE_ALIGNMENT)


def is_embedded_image(src: str) -> bool:
    """Only ``data:`` URIs are embedded; the renderers cannot fetch URLs."""
    return src.startswith("data:")


def image_width(node: DocumentNode) -> int:
    """Requested image width, clamped to :data:`MAX_IMAGE_WIDTH`."""
    raw = node.attr("width")
    width = parse_length_with_unit(raw, "px").value if raw is not None else 0
    if width <= 0:
        width = DEFAULT_IMAGE_WIDTH
    return int(min(width, MAX_IMAGE_WIDTH))


def task_prefix(item: DocumentNode) -> str:
    return TASK_CHECKED if item.attr("checked") else TASK_UNCHECKED


def is_table_cell(node: DocumentNode) -> bool:
    return node.type in (NodeType.TABLE_CELL.value, NodeType.TABLE_HEADER.value)


def split_list_item(item: DocumentNode) -> tuple[list[DocumentNode], list[DocumentNode]]:
    """Split a list item into hoisted inline nodes and remaining blocks.

    The first child paragraph's inline content becomes the item's own text;
    every other child (nested lists, extra paragraphs) is returned as-is.
    """
    children = list(item.content)
    if children and children[0].type == NodeType.PARAGRAPH.value:
        return list(children[0].content), children[1:]
    return [], children


def footnote_text(node: DocumentNode) -> str:
    """Footnote body: the ``content`` attribute, else the node's own text."""
    content = node.attr("content")
    if isinstance(content, str) and content:
        return content
    return node.plain_text()


def code_text(node: DocumentNode) -> str:
    return "\n".join(child.text or "" for child in node.content
                     if child.type == NodeType.TEXT.value)
