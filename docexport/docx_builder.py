"""Assembles the word-processor content tree into a python-docx document.

Usage::

    from docexport.docx_builder import DocxBuilder, save

    builder = DocxBuilder(template)
    document = builder.build(blocks, metadata, header=header, footer=footer)
    save(document, "output/contrat.docx")
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, TYPE_CHECKING, Union

from docx import Document as new_docx
from docx.enum.section import WD_ORIENT
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_BREAK, WD_TAB_ALIGNMENT
from docx.image.exceptions import UnrecognizedImageError
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor, Twips

from docexport import house_style as hs
from docexport.docx_converter import (
    DocxBlock,
    DocxBorder,
    DocxImage,
    DocxParagraph,
    DocxRun,
    DocxTable,
    PageNumberRun,
)
from docexport.models import DocumentMetadata
from docexport.template import TemplateConfig
from docexport.units import page_size_twips, to_font_points, to_twips

if TYPE_CHECKING:
    from docx.document import Document
    from docx.text.paragraph import Paragraph

logger = logging.getLogger(__name__)

_ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}

_TAB_ALIGNMENTS = {
    "left": WD_TAB_ALIGNMENT.LEFT,
    "center": WD_TAB_ALIGNMENT.CENTER,
    "right": WD_TAB_ALIGNMENT.RIGHT,
}

_BREAKS = {
    "line": WD_BREAK.LINE,
    "page": WD_BREAK.PAGE,
}

# Schema order of the children of w:pBdr.
_BORDER_SIDES = ("top", "left", "bottom", "right")

_TABLE_BORDER_COLOR = "CBD5E0"

# A header or footer: one paragraph, or several stacked ones.
PartContent = Union[DocxParagraph, list[DocxParagraph]]


# ---------------------------------------------------------------------------
# OOXML helpers
# ---------------------------------------------------------------------------


def _set_paragraph_borders(para: Paragraph, borders: list[DocxBorder]) -> None:
    """Attach a ``w:pBdr`` with one child per border, in schema order."""
    p_pr = para._p.get_or_add_pPr()
    p_bdr = OxmlElement("w:pBdr")
    by_side = {border.side: border for border in borders}
    for side in _BORDER_SIDES:
        border = by_side.get(side)
        if border is None:
            continue
        el = OxmlElement(f"w:{side}")
        el.set(qn("w:val"), "single")
        el.set(qn("w:sz"), str(border.size))
        el.set(qn("w:space"), str(border.space))
        el.set(qn("w:color"), border.color.lstrip("#"))
        p_bdr.append(el)
    p_pr.append(p_bdr)


def _set_paragraph_shading(para: Paragraph, hex_color: str) -> None:
    shading_elm = OxmlElement("w:shd")
    shading_elm.set(qn("w:val"), "clear")
    shading_elm.set(qn("w:color"), "auto")
    shading_elm.set(qn("w:fill"), hex_color.lstrip("#"))
    para._p.get_or_add_pPr().append(shading_elm)


def _set_table_borders(table: Any, color: str = _TABLE_BORDER_COLOR,
                       size: int = 4) -> None:
    """Apply uniform single-line borders to every edge of *table*."""
    tbl = table._tbl
    tbl_pr = tbl.tblPr
    borders = OxmlElement("w:tblBorders")
    for edge in ("top", "left", "bottom", "right", "insideH", "insideV"):
        el = OxmlElement(f"w:{edge}")
        el.set(qn("w:val"), "single")
        el.set(qn("w:sz"), str(size))
        el.set(qn("w:space"), "0")
        el.set(qn("w:color"), color)
        borders.append(el)
    tbl_pr.append(borders)


def _mark_header_row(row: Any) -> None:
    """Repeat *row* at the top of every page the table spans."""
    tr_pr = row._tr.get_or_add_trPr()
    tbl_header = OxmlElement("w:tblHeader")
    tbl_header.set(qn("w:val"), "true")
    tr_pr.append(tbl_header)


def _wrap_in_hyperlink(para: Paragraph, run: Any, url: str) -> None:
    r_id = para.part.relate_to(url, RT.HYPERLINK, is_external=True)
    hyperlink = OxmlElement("w:hyperlink")
    hyperlink.set(qn("r:id"), r_id)
    run._r.addprevious(hyperlink)
    hyperlink.append(run._r)


def insert_page_field(para: Paragraph, instruction: str,
                      size_hp: int | None, color_hex: str | None,
                      font_name: str | None) -> None:
    """Append a simple field (``PAGE``, ``NUMPAGES``) to *para*.

    Produces::

        <w:fldSimple w:instr=" PAGE ">
          <w:r><w:rPr>...</w:rPr><w:t>1</w:t></w:r>
        </w:fldSimple>
    """
    fld_simple = OxmlElement("w:fldSimple")
    fld_simple.set(qn("w:instr"), f" {instruction} ")

    run_el = OxmlElement("w:r")
    r_pr = OxmlElement("w:rPr")
    if font_name:
        r_fonts = OxmlElement("w:rFonts")
        r_fonts.set(qn("w:ascii"), font_name)
        r_fonts.set(qn("w:hAnsi"), font_name)
        r_pr.append(r_fonts)
    if color_hex:
        color_el = OxmlElement("w:color")
        color_el.set(qn("w:val"), color_hex.lstrip("#"))
        r_pr.append(color_el)
    if size_hp:
        sz = OxmlElement("w:sz")
        sz.set(qn("w:val"), str(size_hp))
        r_pr.append(sz)
        sz_cs = OxmlElement("w:szCs")
        sz_cs.set(qn("w:val"), str(size_hp))
        r_pr.append(sz_cs)
    run_el.append(r_pr)

    # Placeholder replaced by the word processor on display.
    text_el = OxmlElement("w:t")
    text_el.text = "1"
    run_el.append(text_el)

    fld_simple.append(run_el)
    para._p.append(fld_simple)


# ---------------------------------------------------------------------------
# DocxBuilder
# ---------------------------------------------------------------------------


class DocxBuilder:
    """Builds a python-docx :class:`~docx.document.Document` from content blocks.

    Parameters
    ----------
    template : TemplateConfig
        Supplies page geometry and the base typography.
    """

    def __init__(self, template: TemplateConfig) -> None:
        self._template = template
        self._font = template.typography.font_family
        self._doc: Document | None = None
        self._page_width, self._page_height = page_size_twips(
            template.page.size, template.page.orientation
        )
        margins = template.page.margins
        self._margins = {
            side: to_twips(getattr(margins, side), "cm")
            for side in ("top", "right", "bottom", "left")
        }

    @property
    def usable_width(self) -> int:
        """Width between the left and right margins, in twips."""
        return self._page_width - self._margins["left"] - self._margins["right"]

    # ── Public API ────────────────────────────────────────────────────

    def build(
        self,
        blocks: list[DocxBlock],
        metadata: DocumentMetadata | None = None,
        header: PartContent | None = None,
        footer: PartContent | None = None,
        first_header: PartContent | None = None,
        first_footer: PartContent | None = None,
        different_first_page: bool = False,
    ) -> Document:
        """Create a document holding *blocks* and the running header/footer.

        With *different_first_page* the first page uses *first_header* and
        *first_footer*; ``None`` leaves that first-page part empty.
        """
        doc = new_docx()
        self._doc = doc
        self._setup_page(doc)
        self._setup_base_style(doc)

        if metadata is not None:
            doc.core_properties.title = metadata.title
            doc.core_properties.author = metadata.author
            doc.core_properties.identifier = metadata.number

        self._render_blocks(doc, blocks)

        section = doc.sections[0]
        if header is not None:
            self._render_into_part(section.header, header)
        if footer is not None:
            self._render_into_part(section.footer, footer)
        if different_first_page:
            section.different_first_page_header_footer = True
            if first_header is not None:
                self._render_into_part(section.first_page_header, first_header)
            if first_footer is not None:
                self._render_into_part(section.first_page_footer, first_footer)

        logger.info(
            "Assembled DOCX: %d block(s), header=%s, footer=%s, first page=%s",
            len(blocks), header is not None, footer is not None, different_first_page,
        )
        return doc

    # ── Page setup ────────────────────────────────────────────────────

    def _setup_page(self, doc: Document) -> None:
        section = doc.sections[0]
        if self._template.page.orientation == "landscape":
            section.orientation = WD_ORIENT.LANDSCAPE
        section.page_width = Twips(self._page_width)
        section.page_height = Twips(self._page_height)
        section.top_margin = Twips(self._margins["top"])
        section.right_margin = Twips(self._margins["right"])
        section.bottom_margin = Twips(self._margins["bottom"])
        section.left_margin = Twips(self._margins["left"])

        logger.debug(
            "Page: %dx%d DXA, margins T=%d R=%d B=%d L=%d",
            self._page_width, self._page_height,
            self._margins["top"], self._margins["right"],
            self._margins["bottom"], self._margins["left"],
        )

    def _setup_base_style(self, doc: Document) -> None:
        typography = self._template.typography
        normal = doc.styles["Normal"]
        normal.font.name = self._font
        normal.font.size = Pt(to_font_points(typography.base_font_size, default=12))
        normal.paragraph_format.line_spacing = typography.line_height

    # ── Blocks ────────────────────────────────────────────────────────

    def _render_blocks(self, container: Any, blocks: list[DocxBlock],
                       reuse: Paragraph | None = None) -> None:
        """Render *blocks* into a document or table cell.

        *reuse* is an existing empty paragraph taken by the first paragraph
        block (a new table cell already holds one).
        """
        for block in blocks:
            match block:
                case DocxParagraph():
                    para = reuse if reuse is not None else container.add_paragraph()
                    reuse = None
                    self._render_paragraph(para, block)
                case DocxTable():
                    self._render_table(container, block)
                case DocxImage():
                    para = reuse if reuse is not None else container.add_paragraph()
                    reuse = None
                    self._render_image(para, block)
                case _:
                    logger.warning("Unsupported block type: %s", type(block).__name__)

    def _render_into_part(self, part: Any, content: PartContent) -> None:
        paragraphs = content if isinstance(content, list) else [content]
        part.is_linked_to_previous = False
        para = part.paragraphs[0] if part.paragraphs else part.add_paragraph()
        para.clear()
        self._render_blocks(part, paragraphs, reuse=para)

    def _render_paragraph(self, para: Paragraph, block: DocxParagraph) -> None:
        if block.heading_level is not None:
            para.style = self._doc.styles[f"Heading {block.heading_level}"]

        para.alignment = _ALIGNMENTS.get(block.alignment, WD_ALIGN_PARAGRAPH.LEFT)
        fmt = para.paragraph_format
        fmt.left_indent = Twips(block.left_indent)
        fmt.first_line_indent = Twips(block.first_line_indent)
        fmt.space_before = Twips(block.space_before)
        fmt.space_after = Twips(block.space_after)

        for alignment, position in block.tab_stops:
            fmt.tab_stops.add_tab_stop(Twips(position), _TAB_ALIGNMENTS[alignment])
        if block.borders:
            _set_paragraph_borders(para, block.borders)
        if block.shading:
            _set_paragraph_shading(para, block.shading)

        for run in block.runs:
            if isinstance(run, PageNumberRun):
                insert_page_field(para, run.kind.value, run.size, run.color, self._font)
            else:
                self._render_run(para, run)

    def _render_run(self, para: Paragraph, item: DocxRun) -> None:
        if item.break_type:
            run = para.add_run()
            run.add_break(_BREAKS[item.break_type])
            if item.text:
                run.add_text(item.text)
        else:
            run = para.add_run(item.text)

        if item.bold:
            run.bold = True
        if item.italic:
            run.italic = True
        if item.underline:
            run.underline = True
        if item.strike:
            run.font.strike = True
        if item.subscript:
            run.font.subscript = True
        if item.superscript:
            run.font.superscript = True

        run.font.name = item.font or self._font
        if item.size:
            run.font.size = Pt(item.size / 2.0)
        if item.color:
            run.font.color.rgb = RGBColor.from_string(item.color)
        if item.highlight is not None:
            run.font.highlight_color = item.highlight

        if item.link:
            _wrap_in_hyperlink(para, run, item.link)

    def _render_table(self, container: Any, table: DocxTable) -> None:
        col_count = table.column_count
        if col_count == 0:
            logger.warning("Skipping empty table (no columns)")
            return

        docx_table = container.add_table(rows=len(table.rows), cols=col_count)
        docx_table.alignment = WD_TABLE_ALIGNMENT.CENTER
        _set_table_borders(docx_table)

        column_width = Twips(self.usable_width // col_count)
        for row_idx, row in enumerate(table.rows):
            docx_row = docx_table.rows[row_idx]
            if row_idx < table.header_rows:
                _mark_header_row(docx_row)
            for col_idx, cell in enumerate(row.cells):
                docx_cell = docx_row.cells[col_idx]
                docx_cell.width = column_width
                self._render_blocks(docx_cell, cell.blocks, reuse=docx_cell.paragraphs[0])
                if row_idx < table.header_rows:
                    for para in docx_cell.paragraphs:
                        for run in para.runs:
                            run.bold = True

        logger.debug("Rendered table: %d col(s), %d row(s)", col_count, len(table.rows))

    def _render_image(self, para: Paragraph, image: DocxImage) -> None:
        para.alignment = _ALIGNMENTS.get(image.alignment, WD_ALIGN_PARAGRAPH.CENTER)
        para.paragraph_format.space_before = Twips(200)
        para.paragraph_format.space_after = Twips(200)
        run = para.add_run()
        try:
            run.add_picture(io.BytesIO(image.data), width=Pt(image.width))
        except UnrecognizedImageError:
            logger.warning("Embedded image format not supported; using placeholder")
            self._render_run(para, DocxRun(
                hs.EXTERNAL_IMAGE_PLACEHOLDER, italic=True,
                color=hs.PLACEHOLDER_COLOR.lstrip("#").upper(),
            ))


def save(document: Document, output_path: Union[str, Path]) -> str:
    """Write *document* to *output_path* and return the absolute path."""
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    document.save(str(out))

    resolved_path = str(out.resolve())
    logger.info("Document saved to %s", resolved_path)
    return resolved_path
