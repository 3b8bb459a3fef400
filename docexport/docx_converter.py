"""Abstract document tree to word-processor content tree.

Structurally equivalent to :mod:`docexport.converter` but typed for the
word-processor renderer: paragraphs made of runs, tables made of rows and
cells, borders, images and page-number fields.  All sizes are expressed in
the units python-docx works with natively (twips for spacing and indents,
half-points for font sizes, points for image widths).

The tree is assembled into a ``.docx`` document by
:class:`docexport.docx_builder.DocxBuilder`.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, NamedTuple, Optional, Union
from urllib.parse import unquote_to_bytes

from docx.enum.text import WD_COLOR_INDEX

from docexport import house_style as hs
from docexport.models import (
    DocumentNode,
    FootnoteCollector,
    FootnoteRecord,
    MarkType,
    NodeType,
)
from docexport.numbering import HeadingNumberer
from docexport.palette import resolve_highlight
from docexport.styles import EMPTY_STYLE, ElementStyle, pick
from docexport.units import (
    parse_length_with_unit,
    points_to_half_points,
    points_to_twips,
    to_twips,
)

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

CODE_SHADING = "F5F5F5"
QUOTE_BORDER_COLOR = "999999"
QUOTE_BORDER_SIZE = 12          # eighths of a point
QUOTE_INDENT = 720              # twips
LIST_INDENT_PER_LEVEL = 360     # twips
BULLET_PREFIX = "•  "
CELL_MARGIN_AFTER = 0


# ---------------------------------------------------------------------------
# Content tree types
# ---------------------------------------------------------------------------


class PageNumberKind(Enum):
    """Page-number field kinds and their field instructions."""
    CURRENT = "PAGE"
    TOTAL = "NUMPAGES"


@dataclass
class DocxRun:
    """A run of uniformly formatted text.

    ``break_type`` turns the run into a break (``"line"`` or ``"page"``)
    placed before its text.
    """
    text: str = ""
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    subscript: bool = False
    superscript: bool = False
    font: Optional[str] = None
    size: Optional[int] = None           # half-points
    color: Optional[str] = None          # RRGGBB, no '#'
    highlight: Optional[WD_COLOR_INDEX] = None
    link: Optional[str] = None
    break_type: Optional[str] = None


@dataclass
class PageNumberRun:
    """A run whose text is filled in by the renderer for each page."""
    kind: PageNumberKind = PageNumberKind.CURRENT
    size: Optional[int] = None
    color: Optional[str] = None


@dataclass
class DocxBorder:
    side: str = "left"
    size: int = QUOTE_BORDER_SIZE
    color: str = QUOTE_BORDER_COLOR
    space: int = 4


@dataclass
class DocxParagraph:
    """A paragraph with its formatting; spacing and indents are in twips."""
    runs: list[Union[DocxRun, PageNumberRun]] = field(default_factory=list)
    alignment: str = "left"
    first_line_indent: int = 0
    left_indent: int = 0
    space_before: int = 0
    space_after: int = 0
    heading_level: Optional[int] = None
    borders: list[DocxBorder] = field(default_factory=list)
    shading: Optional[str] = None
    tab_stops: list[tuple[str, int]] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(r.text for r in self.runs if isinstance(r, DocxRun))


@dataclass
class DocxImage:
    data: bytes
    width: int                   # points
    alignment: str = hs.DEFAULT_IMAGE_ALIGNMENT


@dataclass
class DocxTableCell:
    blocks: list[DocxBlock] = field(default_factory=list)


@dataclass
class DocxTableRow:
    cells: list[DocxTableCell] = field(default_factory=list)
    is_header: bool = False


@dataclass
class DocxTable:
    rows: list[DocxTableRow] = field(default_factory=list)
    header_rows: int = 1

    @property
    def column_count(self) -> int:
        return max((len(row.cells) for row in self.rows), default=0)


DocxBlock = Union[DocxParagraph, DocxTable, DocxImage]


class DocxConversionResult(NamedTuple):
    blocks: list[DocxBlock]
    footnotes: list[FootnoteRecord]


def _hex(color: Optional[str]) -> Optional[str]:
    """``#RRGGBB`` to ``RRGGBB``; expands the three-digit form."""
    if not color:
        return None
    value = color.lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        logger.warning("Ignoring invalid color '%s'", color)
        return None
    return value.upper()


def decode_data_uri(src: str) -> Optional[bytes]:
    """Payload of a ``data:`` URI, or ``None`` when it cannot be decoded."""
    header, sep, payload = src.partition(",")
    if not sep:
        return None
    try:
        if header.endswith(";base64"):
            return base64.b64decode(payload, validate=False)
        return unquote_to_bytes(payload)
    except (binascii.Error, ValueError):
        return None


# ---------------------------------------------------------------------------
# DocxContentConverter
# ---------------------------------------------------------------------------


class DocxContentConverter:
    """Recursive visitor producing the word-processor content tree.

    Takes the same settings as
    :class:`docexport.converter.ContentTreeConverter` and applies the same
    house rules, so both outputs of one document agree.
    """

    def __init__(
        self,
        numberer: HeadingNumberer | None = None,
        heading_colors: Mapping[Any, str] | None = None,
        base_font_size: float = 12,
        paragraph_indent: str | float = 0,
        paragraph_spacing: str | float = 6,
        element_styles: Mapping[str, ElementStyle] | None = None,
    ) -> None:
        self._numberer = numberer
        self._heading_colors = hs.normalize_heading_colors(heading_colors)
        self._base_font_size = base_font_size
        self._indent_twips = to_twips(paragraph_indent, "cm")
        self._spacing_twips = to_twips(paragraph_spacing, "pt")
        self._styles = dict(element_styles or {})
        self._footnotes = FootnoteCollector()

    def convert(
        self,
        root: DocumentNode,
        footnotes: FootnoteCollector | None = None,
    ) -> DocxConversionResult:
        """Convert *root*; footnotes go to *footnotes* (or a fresh collector)."""
        self._footnotes = footnotes if footnotes is not None else FootnoteCollector()
        blocks = self._convert_blocks(root.content if root.type == NodeType.DOC else [root])
        logger.debug(
            "Converted tree to %d DOCX block(s), %d footnote(s)",
            len(blocks), len(self._footnotes),
        )
        return DocxConversionResult(blocks, self._footnotes.records)

    # ── Block level ───────────────────────────────────────────────────

    def _convert_blocks(self, nodes: list[DocumentNode], depth: int = 0) -> list[DocxBlock]:
        blocks: list[DocxBlock] = []
        for node in nodes:
            blocks.extend(self._convert_block(node, depth))
        return blocks

    def _convert_block(self, node: DocumentNode, depth: int) -> list[DocxBlock]:
        match node.type:
            case NodeType.DOC:
                return self._convert_blocks(node.content, depth)
            case NodeType.PARAGRAPH:
                return [self._convert_paragraph(node)]
            case NodeType.HEADING:
                return [self._convert_heading(node)]
            case NodeType.BULLET_LIST:
                return self._convert_list(node, depth, ordered=False)
            case NodeType.ORDERED_LIST:
                return self._convert_list(node, depth, ordered=True)
            case NodeType.TASK_LIST:
                return self._convert_task_list(node, depth)
            case NodeType.BLOCKQUOTE:
                return self._convert_blockquote(node, depth)
            case NodeType.CODE_BLOCK:
                return [self._convert_code_block(node)]
            case NodeType.TABLE:
                return self._convert_table(node)
            case NodeType.HORIZONTAL_RULE:
                return [DocxParagraph(
                    borders=[DocxBorder(side="bottom", size=4,
                                        color=_hex(hs.RULE_COLOR), space=1)],
                    space_before=points_to_twips(16),
                    space_after=points_to_twips(16),
                )]
            case NodeType.PAGE_BREAK:
                return [DocxParagraph(runs=[DocxRun(break_type="page")])]
            case NodeType.IMAGE:
                return self._convert_image(node)
            case (NodeType.TEXT | NodeType.HARD_BREAK | NodeType.FOOTNOTE):
                # Stray inline content at block level gets its own paragraph.
                return [DocxParagraph(runs=self._convert_inline([node]),
                                      alignment=hs.DEFAULT_PARAGRAPH_ALIGNMENT,
                                      space_after=self._spacing_twips)]
            case _:
                logger.debug("Unknown node type '%s'; flattening children", node.type)
                return self._convert_blocks(node.content, depth)

    def _style(self, name: str) -> ElementStyle:
        return self._styles.get(name, EMPTY_STYLE)

    @staticmethod
    def _apply_run_style(runs: list[Union[DocxRun, PageNumberRun]],
                         style: ElementStyle) -> None:
        size = points_to_half_points(style.font_size) if style.font_size else None
        for run in runs:
            if not isinstance(run, DocxRun):
                continue
            if style.bold is not None:
                run.bold = run.bold or style.bold
            if style.italic is not None:
                run.italic = run.italic or style.italic
            run.size = run.size or size
            run.color = run.color or _hex(style.color)

    def _spacing(self, style: ElementStyle, before: int, after: int) -> tuple[int, int]:
        """Spacing in twips; *before* and *after* are the point defaults."""
        return (points_to_twips(pick(style.margin_top, before)),
                points_to_twips(pick(style.margin_bottom, after)))

    def _convert_paragraph(self, node: DocumentNode) -> DocxParagraph:
        style = self._style("p")
        runs = self._convert_inline(node.content)
        if not runs:
            runs = [DocxRun(" ")]
        self._apply_run_style(runs, style)

        indent = (points_to_twips(style.text_indent) if style.text_indent is not None
                  else self._indent_twips)
        after = (points_to_twips(style.margin_bottom) if style.margin_bottom is not None
                 else self._spacing_twips)
        return DocxParagraph(
            runs=runs,
            alignment=hs.alignment_of(
                node, style.alignment or hs.DEFAULT_PARAGRAPH_ALIGNMENT
            ),
            first_line_indent=max(indent, 0),
            left_indent=points_to_twips(style.margin_left or 0),
            space_before=points_to_twips(style.margin_top or 0),
            space_after=after,
        )

    def _convert_heading(self, node: DocumentNode) -> DocxParagraph:
        level = hs.heading_level(node)
        style = self._style(f"h{level}")
        size = points_to_half_points(
            pick(style.font_size, hs.heading_font_size(self._base_font_size, level))
        )
        color = _hex(style.color or self._heading_colors[level])
        bold = pick(style.bold, True)

        # Numbered before its content so nested headings follow in pre-order.
        runs: list[Union[DocxRun, PageNumberRun]] = []
        if self._numberer is not None:
            label = self._numberer.increment(level)
            if label:
                runs.append(DocxRun(f"{label} ", bold=True))
        runs.extend(self._convert_inline(node.content))

        for run in runs:
            if isinstance(run, DocxRun):
                run.bold = run.bold or bold
                run.italic = run.italic or bool(style.italic)
                run.size = run.size or size
                run.color = run.color or color

        before, after = self._spacing(
            style, *hs.HEADING_SPACING.get(level, hs.DEFAULT_HEADING_SPACING)
        )
        return DocxParagraph(
            runs=runs,
            alignment=hs.alignment_of(
                node, style.alignment or hs.DEFAULT_HEADING_ALIGNMENT
            ),
            left_indent=points_to_twips(style.margin_left or 0),
            space_before=before,
            space_after=after,
            heading_level=level,
        )

    def _list_item_blocks(self, item: DocumentNode, prefix: str,
                          depth: int) -> list[DocxBlock]:
        inline, rest = hs.split_list_item(item)
        runs: list[Union[DocxRun, PageNumberRun]] = [DocxRun(prefix)]
        runs.extend(self._convert_inline(inline))
        first = DocxParagraph(
            runs=runs,
            left_indent=LIST_INDENT_PER_LEVEL * (depth + 1),
            space_after=points_to_twips(hs.LIST_SPACING_AFTER // 2),
        )
        return [first, *self._convert_blocks(rest, depth + 1)]

    def _convert_items(self, node: DocumentNode, depth: int, item_type: NodeType,
                       prefix_for: Callable[[DocumentNode, int], str]) -> list[DocxBlock]:
        """Same traversal as the PDF converter: stray children stay in place."""
        blocks: list[DocxBlock] = []
        index = 0
        for child in node.content:
            if child.type == item_type.value:
                blocks.extend(self._list_item_blocks(child, prefix_for(child, index), depth))
                index += 1
            else:
                logger.debug("Unexpected '%s' in '%s'", child.type, node.type)
                blocks.extend(self._convert_block(child, depth + 1))
        return blocks

    def _convert_list(self, node: DocumentNode, depth: int,
                      ordered: bool) -> list[DocxBlock]:
        start = int(node.attr("start", 1))
        if ordered:
            return self._convert_items(node, depth, NodeType.LIST_ITEM,
                                       lambda _item, idx: f"{start + idx}. ")
        return self._convert_items(node, depth, NodeType.LIST_ITEM,
                                   lambda _item, _idx: BULLET_PREFIX)

    def _convert_task_list(self, node: DocumentNode, depth: int) -> list[DocxBlock]:
        return self._convert_items(node, depth, NodeType.TASK_ITEM,
                                   lambda item, _idx: hs.task_prefix(item))

    def _convert_blockquote(self, node: DocumentNode, depth: int) -> list[DocxBlock]:
        style = self._style("blockquote")
        italic = pick(style.italic, True)
        color = _hex(style.color or hs.QUOTE_TEXT_COLOR)
        size = points_to_half_points(style.font_size) if style.font_size else None

        blocks = self._convert_blocks(node.content, depth)
        for block in blocks:
            if not isinstance(block, DocxParagraph):
                continue
            block.left_indent += QUOTE_INDENT
            block.first_line_indent = 0
            block.borders.append(DocxBorder())
            for run in block.runs:
                if isinstance(run, DocxRun):
                    run.italic = run.italic or italic
                    run.color = run.color or color
                    run.size = run.size or size
        return blocks

    def _convert_code_block(self, node: DocumentNode) -> DocxParagraph:
        runs: list[Union[DocxRun, PageNumberRun]] = []
        for idx, line in enumerate(hs.code_text(node).split("\n")):
            runs.append(DocxRun(
                line,
                font=hs.CODE_FONT,
                size=points_to_half_points(hs.CODE_FONT_SIZE),
                break_type="line" if idx else None,
            ))
        return DocxParagraph(
            runs=runs,
            shading=CODE_SHADING,
            space_before=points_to_twips(10),
            space_after=points_to_twips(10),
        )

    def _convert_cell(self, cell: DocumentNode) -> DocxTableCell:
        if hs.is_table_cell(cell):
            blocks = self._convert_blocks(cell.content)
        else:
            blocks = self._convert_block(cell, 0)
        for block in blocks:
            if isinstance(block, DocxParagraph):
                block.space_after = CELL_MARGIN_AFTER
                block.first_line_indent = 0
        return DocxTableCell(blocks=blocks)

    def _convert_table(self, node: DocumentNode) -> list[DocxBlock]:
        rows: list[DocxTableRow] = []
        # Stray children are rendered after the table, in document order.
        extra: list[DocxBlock] = []
        for row in node.content:
            if row.type != NodeType.TABLE_ROW.value:
                logger.debug("Unexpected '%s' in table", row.type)
                extra.extend(self._convert_block(row, 0))
                continue
            cells = [self._convert_cell(cell) for cell in row.content]
            rows.append(DocxTableRow(cells=cells, is_header=not rows))

        if not rows:
            logger.debug("Skipping table without rows")
            return extra

        table = DocxTable(rows=rows)
        width = table.column_count
        for row in rows:
            row.cells.extend(DocxTableCell() for _ in range(width - len(row.cells)))
        return [table, *extra]

    def _convert_image(self, node: DocumentNode) -> list[DocxBlock]:
        src = node.attr("src")
        if not src:
            logger.debug("Skipping image without source")
            return []

        alignment = hs.image_alignment(node)
        data = decode_data_uri(src) if hs.is_embedded_image(src) else None
        if not data:
            logger.info("Image not exported: %.80s", src)
            return [DocxParagraph(
                runs=[DocxRun(hs.EXTERNAL_IMAGE_PLACEHOLDER, italic=True,
                              color=_hex(hs.PLACEHOLDER_COLOR))],
                alignment=alignment,
            )]
        return [DocxImage(data=data, width=hs.image_width(node), alignment=alignment)]

    # ── Inline level ──────────────────────────────────────────────────

    def _convert_inline(self, nodes: list[DocumentNode]) -> list[Union[DocxRun, PageNumberRun]]:
        runs: list[Union[DocxRun, PageNumberRun]] = []
        for node in nodes:
            match node.type:
                case NodeType.TEXT:
                    runs.append(self._convert_text(node))
                case NodeType.HARD_BREAK:
                    runs.append(DocxRun(break_type="line"))
                case NodeType.FOOTNOTE:
                    record = self._footnotes.add(hs.footnote_text(node))
                    runs.append(DocxRun(str(record.ordinal), superscript=True))
                case NodeType.IMAGE:
                    logger.debug("Inline image replaced by placeholder")
                    runs.append(DocxRun(hs.EXTERNAL_IMAGE_PLACEHOLDER, italic=True,
                                        color=_hex(hs.PLACEHOLDER_COLOR)))
                case NodeType.HEADING:
                    # Runs cannot hold a paragraph; keep the label and the text.
                    label = (self._numberer.increment(hs.heading_level(node))
                             if self._numberer is not None else None)
                    if label:
                        runs.append(DocxRun(f"{label} ", bold=True))
                    runs.extend(self._convert_inline(node.content))
                case _:
                    runs.extend(self._convert_inline(node.content))
        return runs

    def _convert_text(self, node: DocumentNode) -> DocxRun:
        run = DocxRun(node.text or "")
        for mark in node.marks:
            match mark.type:
                case MarkType.BOLD:
                    run.bold = True
                case MarkType.ITALIC:
                    run.italic = True
                case MarkType.UNDERLINE:
                    run.underline = True
                case MarkType.STRIKE:
                    run.strike = True
                case MarkType.CODE:
                    run.font = hs.CODE_FONT
                    run.size = points_to_half_points(hs.CODE_FONT_SIZE)
                    run.color = _hex(hs.INLINE_CODE_COLOR)
                case MarkType.HIGHLIGHT:
                    entry = resolve_highlight(mark.attrs.get("color"))
                    if entry is not None:
                        run.highlight = entry.docx
                case MarkType.LINK:
                    run.underline = True
                    run.color = _hex(hs.LINK_COLOR)
                    run.link = mark.attrs.get("href") or None
                case MarkType.SUBSCRIPT:
                    run.subscript = True
                case MarkType.SUPERSCRIPT:
                    run.superscript = True
                case MarkType.TEXT_STYLE:
                    if mark.attrs.get("color"):
                        run.color = _hex(mark.attrs["color"]) or run.color
                    if mark.attrs.get("fontSize"):
                        size = parse_length_with_unit(mark.attrs["fontSize"], "pt").value
                        if size > 0:
                            run.size = points_to_half_points(size)
                    if mark.attrs.get("fontFamily"):
                        run.font = mark.attrs["fontFamily"]
                case _:
                    logger.debug("Ignoring unknown mark '%s'", mark.type)
        return run


# ---------------------------------------------------------------------------
# Footnote section
# ---------------------------------------------------------------------------


def footnote_paragraphs(records: list[FootnoteRecord],
                        base_font_size: float = 12) -> list[DocxParagraph]:
    """Divider followed by one paragraph per footnote; empty without notes."""
    if not records:
        return []

    size = points_to_half_points(base_font_size - 2)
    paragraphs = [DocxParagraph(
        borders=[DocxBorder(side="top", size=4, color=_hex(hs.RULE_COLOR), space=1)],
        space_before=points_to_twips(20),
    )]
    for record in records:
        paragraphs.append(DocxParagraph(
            runs=[
                DocxRun(f"{record.ordinal}. ", bold=True, size=size),
                DocxRun(record.content, size=size),
            ],
            space_after=points_to_twips(4),
        ))
    return paragraphs
