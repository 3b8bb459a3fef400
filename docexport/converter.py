"""Abstract document tree to PDF content tree.

The output is a renderer-neutral tree of plain dicts in the shape the PDF
content-tree renderer consumes (pdfmake-style): text runs with style keys,
``ul``/``ol`` lists, ``table`` blocks, ``canvas`` line primitives, ``image``
placements and ``pageBreak`` markers.

Usage::

    from docexport.converter import ContentTreeConverter
    from docexport.numbering import HeadingNumberer

    converter = ContentTreeConverter(HeadingNumberer(config))
    content, footnotes = converter.convert(root)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, NamedTuple, Optional

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
from docexport.units import parse_length_with_unit, to_points

logger = logging.getLogger(__name__)

PdfNode = dict[str, Any]
PdfContent = Optional[PdfNode | list[PdfNode]]

_QUOTE_RULE_HEIGHT = 60
_RULE_WIDTH = 515


class ConversionResult(NamedTuple):
    """Body content plus the footnotes collected while converting it."""
    content: list[PdfNode]
    footnotes: list[FootnoteRecord]


def _flatten(items: list[PdfContent]) -> list[PdfNode]:
    result: list[PdfNode] = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, list):
            result.extend(item)
        else:
            result.append(item)
    return result


def _line(x2: float, y2: float, width: float, color: str) -> PdfNode:
    return {
        "type": "line",
        "x1": 0,
        "y1": 0,
        "x2": x2,
        "y2": y2,
        "lineWidth": width,
        "lineColor": color,
    }


# ---------------------------------------------------------------------------
# ContentTreeConverter
# ---------------------------------------------------------------------------


class ContentTreeConverter:
    """Recursive visitor producing the PDF content tree.

    Parameters
    ----------
    numberer : HeadingNumberer or None
        Heading numberer for this pass.  ``None`` disables heading labels.
    heading_colors : mapping, optional
        Colour per heading level (``{1: "#..."}`` or ``{"h1": "#..."}``).
    base_font_size : float
        Body font size in points; heading sizes are derived from it.
    paragraph_indent : str or float
        First-line indent of body paragraphs (bare numbers are centimetres).
    paragraph_spacing : str or float
        Space after body paragraphs (bare numbers are points).
    element_styles : mapping, optional
        Template overrides keyed by ``h1``..``h6``, ``p`` and ``blockquote``;
        a node's own alignment still wins over them.
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
        self._indent_pt = to_points(paragraph_indent, "cm")
        self._spacing_pt = to_points(paragraph_spacing, "pt")
        self._styles = dict(element_styles or {})
        self._footnotes = FootnoteCollector()

    # ── Public API ────────────────────────────────────────────────────

    def convert(
        self,
        root: DocumentNode,
        footnotes: FootnoteCollector | None = None,
    ) -> ConversionResult:
        """Convert *root* and return its content with the collected footnotes.

        Parameters
        ----------
        root:
            The tree to convert, usually a ``doc`` node.
        footnotes:
            Collector owned by the caller.  A fresh one is used when omitted.
        """
        self._footnotes = footnotes if footnotes is not None else FootnoteCollector()
        converted = self._convert_node(root)
        content = _flatten([converted])
        logger.debug(
            "Converted tree to %d block(s), %d footnote(s)",
            len(content), len(self._footnotes),
        )
        return ConversionResult(content, self._footnotes.records)

    # ── Dispatch ──────────────────────────────────────────────────────

    def _convert_node(self, node: DocumentNode) -> PdfContent:
        match node.type:
            case NodeType.DOC:
                return self._convert_children(node)
            case NodeType.PARAGRAPH:
                return self._convert_paragraph(node)
            case NodeType.HEADING:
                return self._convert_heading(node)
            case NodeType.TEXT:
                return self._convert_text(node)
            case NodeType.HARD_BREAK:
                return {"text": "\n"}
            case NodeType.BULLET_LIST:
                return self._convert_bullet_list(node)
            case NodeType.ORDERED_LIST:
                return self._convert_ordered_list(node)
            case NodeType.LIST_ITEM:
                return self._convert_list_item(node)
            case NodeType.TASK_LIST:
                return self._convert_task_list(node)
            case NodeType.TASK_ITEM:
                return self._convert_task_item(node)
            case NodeType.BLOCKQUOTE:
                return self._convert_blockquote(node)
            case NodeType.CODE_BLOCK:
                return self._convert_code_block(node)
            case NodeType.TABLE:
                return self._convert_table(node)
            case NodeType.TABLE_ROW | NodeType.TABLE_CELL | NodeType.TABLE_HEADER:
                return self._convert_children(node)
            case NodeType.HORIZONTAL_RULE:
                return {
                    "canvas": [_line(_RULE_WIDTH, 0, 0.5, hs.RULE_COLOR)],
                    "margin": [0, 16, 0, 16],
                }
            case NodeType.PAGE_BREAK:
                return {"text": "", "pageBreak": "after"}
            case NodeType.IMAGE:
                return self._convert_image(node)
            case NodeType.FOOTNOTE:
                return self._convert_footnote(node)
            case _:
                logger.debug("Unknown node type '%s'; flattening children", node.type)
                if not node.content:
                    return None
                return self._convert_children(node)

    def _convert_children(self, node: DocumentNode) -> list[PdfNode]:
        return _flatten([self._convert_node(child) for child in node.content])

    def _convert_inline(self, nodes: list[DocumentNode]) -> list[PdfNode]:
        return _flatten([self._convert_node(child) for child in nodes])

    def _style(self, name: str) -> ElementStyle:
        return self._styles.get(name, EMPTY_STYLE)

    # ── Blocks ────────────────────────────────────────────────────────

    def _convert_paragraph(self, node: DocumentNode) -> PdfNode:
        style = self._style("p")
        runs = self._convert_inline(node.content)
        margin = style.pdf_margin(0, 0, 0, self._spacing_pt)

        if not runs:
            # Keeps the vertical space of an empty line.
            return {"text": " ", "margin": margin}

        block: PdfNode = {
            "text": runs,
            "alignment": hs.alignment_of(
                node, style.alignment or hs.DEFAULT_PARAGRAPH_ALIGNMENT
            ),
            "margin": margin,
        }
        indent = pick(style.text_indent, self._indent_pt)
        if indent > 0:
            block["leadingIndent"] = indent
        block.update(style.pdf_text_props())
        return block

    def _convert_heading(self, node: DocumentNode) -> PdfNode:
        level = hs.heading_level(node)
        style = self._style(f"h{level}")

        # Numbered before its content so nested headings follow in pre-order.
        label = self._numberer.increment(level) if self._numberer is not None else None
        runs = self._convert_inline(node.content)
        if label:
            runs.insert(0, {"text": f"{label} ", "bold": True})

        before, after = hs.HEADING_SPACING.get(level, hs.DEFAULT_HEADING_SPACING)
        block: PdfNode = {
            "text": runs,
            "fontSize": pick(style.font_size,
                             hs.heading_font_size(self._base_font_size, level)),
            "bold": pick(style.bold, True),
            "color": style.color or self._heading_colors[level],
            "alignment": hs.alignment_of(
                node, style.alignment or hs.DEFAULT_HEADING_ALIGNMENT
            ),
            "margin": style.pdf_margin(0, before, 0, after),
            "headlineLevel": level,
        }
        if style.italic:
            block["italics"] = True
        return block

    def _convert_list_item(self, node: DocumentNode, prefix: str = "") -> PdfNode:
        inline, rest = hs.split_list_item(node)
        runs = self._convert_inline(inline)
        if prefix:
            runs.insert(0, {"text": prefix})
        item: PdfNode = {"text": runs or [{"text": ""}]}
        if rest:
            return {"stack": [item, *self._convert_inline(rest)]}
        return item

    def _convert_items(self, node: DocumentNode, item_type: NodeType,
                       prefix_for: Callable[[DocumentNode, int], str]) -> list[PdfNode]:
        """Convert the items of a list, numbering only *item_type* children.

        Other children are converted as they come and kept in place, so
        every heading below the list is still visited.
        """
        items: list[PdfNode] = []
        index = 0
        for child in node.content:
            if child.type == item_type.value:
                items.append(self._convert_list_item(child, prefix=prefix_for(child, index)))
                index += 1
            else:
                logger.debug("Unexpected '%s' in '%s'", child.type, node.type)
                items.extend(_flatten([self._convert_node(child)]))
        return items

    def _convert_bullet_list(self, node: DocumentNode) -> PdfNode:
        items = self._convert_items(node, NodeType.LIST_ITEM, lambda _item, _idx: "")
        return {"ul": items, "margin": [0, 0, 0, hs.LIST_SPACING_AFTER]}

    def _convert_ordered_list(self, node: DocumentNode) -> PdfNode:
        # The renderer's own numbering is switched off; prefixes are explicit.
        start = int(node.attr("start", 1))
        items = self._convert_items(
            node, NodeType.LIST_ITEM, lambda _item, idx: f"{start + idx}. "
        )
        return {"ol": items, "type": "none", "margin": [0, 0, 0, hs.LIST_SPACING_AFTER]}

    def _convert_task_item(self, node: DocumentNode) -> PdfNode:
        return self._convert_list_item(node, prefix=hs.task_prefix(node))

    def _convert_task_list(self, node: DocumentNode) -> PdfNode:
        items = self._convert_items(
            node, NodeType.TASK_ITEM, lambda item, _idx: hs.task_prefix(item)
        )
        return {"ul": items, "type": "none", "margin": [0, 0, 0, hs.LIST_SPACING_AFTER]}

    def _convert_blockquote(self, node: DocumentNode) -> PdfNode:
        style = self._style("blockquote")
        quoted = self._convert_children(node)
        return {
            "stack": [
                {"canvas": [_line(0, _QUOTE_RULE_HEIGHT, 3, hs.QUOTE_RULE_COLOR)]},
                {
                    "stack": quoted,
                    "italics": pick(style.italic, True),
                    "color": style.color or hs.QUOTE_TEXT_COLOR,
                    "fontSize": pick(style.font_size, self._base_font_size - 1),
                    "margin": [20, -_QUOTE_RULE_HEIGHT, 20, 0],
                },
            ],
            "margin": [20, 12, 20, 12],
        }

    def _convert_code_block(self, node: DocumentNode) -> PdfNode:
        return {
            "text": hs.code_text(node),
            "fontSize": hs.CODE_FONT_SIZE,
            "preserveLeadingSpaces": True,
            "margin": [20, 10, 20, 10],
        }

    def _convert_cell(self, cell: DocumentNode) -> PdfNode:
        if hs.is_table_cell(cell):
            blocks = self._convert_children(cell)
        else:
            blocks = _flatten([self._convert_node(cell)])
        if not blocks:
            return {"text": ""}
        if len(blocks) == 1:
            return blocks[0]
        return {"stack": blocks}

    def _convert_table(self, node: DocumentNode) -> PdfContent:
        body: list[list[PdfNode]] = []
        # Stray children are rendered after the table, in document order.
        extra: list[PdfNode] = []
        for row in node.content:
            if row.type != NodeType.TABLE_ROW.value:
                logger.debug("Unexpected '%s' in table", row.type)
                extra.extend(_flatten([self._convert_node(row)]))
                continue
            body.append([self._convert_cell(cell) for cell in row.content])

        if not body:
            logger.debug("Skipping table without rows")
            return extra or None

        col_count = max(len(cells) for cells in body) or 1
        for cells in body:
            cells.extend({"text": ""} for _ in range(col_count - len(cells)))

        table: PdfNode = {
            "table": {
                "headerRows": 1,
                "widths": ["*"] * col_count,
                "body": body,
            },
            "margin": [0, 10, 0, 10],
        }
        return [table, *extra] if extra else table

    def _convert_image(self, node: DocumentNode) -> PdfContent:
        src = node.attr("src")
        if not src:
            logger.debug("Skipping image without source")
            return None

        alignment = hs.image_alignment(node)
        if not hs.is_embedded_image(src):
            logger.info("External image not exported: %.80s", src)
            return {
                "text": hs.EXTERNAL_IMAGE_PLACEHOLDER,
                "italics": True,
                "color": hs.PLACEHOLDER_COLOR,
                "alignment": alignment,
            }

        return {
            "image": src,
            "width": hs.image_width(node),
            "alignment": alignment,
            "margin": [0, 10, 0, 10],
        }

    def _convert_footnote(self, node: DocumentNode) -> PdfNode:
        record = self._footnotes.add(hs.footnote_text(node))
        return {"text": str(record.ordinal), "sup": True, "fontSize": hs.SCRIPT_FONT_SIZE}

    # ── Inline text ───────────────────────────────────────────────────

    def _convert_text(self, node: DocumentNode) -> PdfNode:
        run: PdfNode = {"text": node.text or ""}
        decorations: list[str] = []

        for mark in node.marks:
            match mark.type:
                case MarkType.BOLD:
                    run["bold"] = True
                case MarkType.ITALIC:
                    run["italics"] = True
                case MarkType.UNDERLINE:
                    decorations.append("underline")
                case MarkType.STRIKE:
                    decorations.append("lineThrough")
                case MarkType.CODE:
                    run["font"] = hs.CODE_FONT
                    run["fontSize"] = hs.CODE_FONT_SIZE
                    run["color"] = hs.INLINE_CODE_COLOR
                case MarkType.HIGHLIGHT:
                    entry = resolve_highlight(mark.attrs.get("color"))
                    if entry is not None:
                        run["background"] = entry.background
                        run["color"] = entry.text
                case MarkType.LINK:
                    run["color"] = hs.LINK_COLOR
                    decorations.append("underline")
                    if mark.attrs.get("href"):
                        run["link"] = mark.attrs["href"]
                case MarkType.SUBSCRIPT:
                    run["sub"] = True
                    run["fontSize"] = hs.SCRIPT_FONT_SIZE
                case MarkType.SUPERSCRIPT:
                    run["sup"] = True
                    run["fontSize"] = hs.SCRIPT_FONT_SIZE
                case MarkType.TEXT_STYLE:
                    self._apply_text_style(run, mark.attrs)
                case _:
                    logger.debug("Ignoring unknown mark '%s'", mark.type)

        if decorations:
            run["decoration"] = decorations if len(decorations) > 1 else decorations[0]
        return run

    @staticmethod
    def _apply_text_style(run: PdfNode, attrs: dict[str, Any]) -> None:
        if attrs.get("color"):
            run["color"] = attrs["color"]
        if attrs.get("fontSize"):
            size = parse_length_with_unit(attrs["fontSize"], "pt").value
            if size > 0:
                run["fontSize"] = size
        if attrs.get("fontFamily"):
            run["font"] = attrs["fontFamily"]


# ---------------------------------------------------------------------------
# Footnote section
# ---------------------------------------------------------------------------


def footnote_section(records: list[FootnoteRecord],
                     base_font_size: float = 12) -> list[PdfNode]:
    """Divider line followed by one entry per footnote; empty without notes."""
    if not records:
        return []

    section: list[PdfNode] = [{
        "canvas": [_line(150, 0, 0.5, hs.RULE_COLOR)],
        "margin": [0, 20, 0, 8],
    }]
    for record in records:
        section.append({
            "text": [
                {"text": f"{record.ordinal}. ", "bold": True},
                {"text": record.content},
            ],
            "fontSize": base_font_size - 2,
            "margin": [0, 0, 0, 4],
        })
    return section
