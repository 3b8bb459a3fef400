"""Tests for the word-processor converter, header/footer slots and DOCX assembly."""

from __future__ import annotations

import base64
import os
import tempfile
from datetime import date

import pytest
from docx import Document as open_docx
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_COLOR_INDEX
from docx.shared import Pt, Twips
from lxml import etree

from docexport.docx_builder import DocxBuilder, save
from docexport.docx_converter import (
    DocxBorder,
    DocxContentConverter,
    DocxImage,
    DocxParagraph,
    DocxRun,
    DocxTable,
    DocxTableCell,
    DocxTableRow,
    PageNumberKind,
    PageNumberRun,
    decode_data_uri,
    footnote_paragraphs,
)
from docexport.headers import (
    docx_slot_paragraph,
    letterhead_paragraphs,
    make_letterhead_slot,
    make_page_number_footer,
    make_pdf_slot,
    page_number_footer_paragraph,
)
from docexport.models import DocumentMetadata, DocumentNode, FootnoteRecord, Letterhead
from docexport.numbering import HeadingNumberer, NumberingConfig
from docexport.styles import ElementStyle
from docexport.template import HeaderFooter, SlotContent, TemplateConfig
from docexport.toc import TocBuilder
from docexport.variables import VariableResolver

PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8BQDwAEhQGAhKmMIQAAAABJRU5ErkJggg=="
)
PNG_URI = f"data:image/png;base64,{PNG_B64}"
TODAY = date(2024, 3, 5)


def text(value, *marks):
    node = {"type": "text", "text": value}
    if marks:
        node["marks"] = [m if isinstance(m, dict) else {"type": m} for m in marks]
    return node


def para(*inline):
    return {"type": "paragraph", "content": list(inline)}


def heading(level, value):
    return {"type": "heading", "attrs": {"level": level}, "content": [text(value)]}


def item(*blocks):
    return {"type": "listItem", "content": list(blocks)}


def convert(*blocks, numberer=None, **settings):
    tree = DocumentNode.from_dict({"type": "doc", "content": list(blocks)})
    return DocxContentConverter(numberer, **settings).convert(tree)


# ── Content conversion ──────────────────────────────────────────────


class TestDocxParagraphs:
    def test_empty_paragraph_keeps_a_space(self):
        blocks, _ = convert(para())
        assert blocks[0].runs == [DocxRun(" ")]

    def test_house_rules(self):
        blocks, _ = convert(para(text("a")), paragraph_indent="1cm", paragraph_spacing="6pt")
        block = blocks[0]
        assert block.alignment == "justify"
        assert block.first_line_indent == 567
        assert block.space_after == 120

    def test_marks(self):
        blocks, _ = convert(para(text("x", "bold", "italic", "strike", "superscript")))
        run = blocks[0].runs[0]
        assert (run.bold, run.italic, run.strike, run.superscript) == (True, True, True, True)

    def test_highlight(self):
        blocks, _ = convert(para(
            text("a", {"type": "highlight", "attrs": {"color": "pink"}}),
            text("b", {"type": "highlight", "attrs": {"color": "#010203"}}),
        ))
        assert blocks[0].runs[0].highlight == WD_COLOR_INDEX.PINK
        assert blocks[0].runs[1].highlight is None

    def test_text_style_color(self):
        blocks, _ = convert(para(text("a", {"type": "textStyle", "attrs": {"color": "#c00"}})))
        assert blocks[0].runs[0].color == "CC0000"

    def test_hard_break(self):
        blocks, _ = convert(para(text("a"), {"type": "hardBreak"}))
        assert blocks[0].runs[1].break_type == "line"


class TestDocxHeadings:
    def test_label_size_and_color(self):
        blocks, _ = convert(heading(1, "Objet"), numberer=HeadingNumberer())
        block = blocks[0]
        assert block.heading_level == 1
        assert block.text == "I. Objet"
        assert all(run.bold for run in block.runs)
        assert block.runs[1].size == 42
        assert block.runs[1].color == "1E3A5F"
        assert block.space_before == 480

    def test_same_labels_as_pdf_converter(self):
        from docexport.converter import ContentTreeConverter

        tree = DocumentNode.from_dict({"type": "doc", "content": [
            heading(1, "Intro"), heading(2, "A"), heading(3, "x"), heading(2, "B"), heading(1, "Suite"),
        ]})
        config = NumberingConfig(max_level=2)
        docx_blocks, _ = DocxContentConverter(HeadingNumberer(config)).convert(tree)
        pdf_content, _ = ContentTreeConverter(HeadingNumberer(config)).convert(tree)

        pdf_texts = ["".join(run["text"] for run in block["text"]) for block in pdf_content]
        assert [block.text for block in docx_blocks] == pdf_texts
        assert pdf_texts == ["I. Intro", "A. A", "x", "B. B", "II. Suite"]

    def test_style_overrides(self):
        styles = {"h2": ElementStyle(font_size=16, color="#aa0000", bold=False,
                                     margin_top=4, alignment="center")}
        blocks, _ = convert(heading(2, "Titre"), element_styles=styles)
        block = blocks[0]
        assert block.runs[0].size == 32
        assert block.runs[0].color == "AA0000"
        assert block.runs[0].bold is False
        assert block.space_before == 80
        assert block.space_after == 200
        assert block.alignment == "center"

    def test_paragraph_and_quote_styles(self):
        styles = {
            "p": ElementStyle(text_indent=14, margin_bottom=3, alignment="left"),
            "blockquote": ElementStyle(color="#333333"),
        }
        blocks, _ = convert(para(text("a")),
                            {"type": "blockquote", "content": [para(text("b"))]},
                            element_styles=styles)
        assert blocks[0].first_line_indent == 280
        assert blocks[0].space_after == 60
        assert blocks[0].alignment == "left"
        assert blocks[1].runs[0].color == "333333"
        assert blocks[1].runs[0].italic is True

    def test_headings_in_lists_and_tables_match_toc(self):
        tree = DocumentNode.from_dict({"type": "doc", "content": [
            heading(1, "A"),
            {"type": "bulletList", "content": [heading(1, "Liste")]},
            {"type": "table", "content": [
                {"type": "tableRow", "content": [heading(1, "Ligne")]},
                heading(1, "Table"),
            ]},
            para(text("x "), heading(1, "Incise")),
            heading(1, "B"),
        ]})
        docx_blocks, _ = DocxContentConverter(HeadingNumberer()).convert(tree)

        texts = [block.text for block in docx_blocks if isinstance(block, DocxParagraph)]
        assert texts[0] == "I. A"
        assert texts[1] == "II. Liste"
        assert isinstance(docx_blocks[2], DocxTable)
        assert docx_blocks[2].rows[0].cells[0].blocks[0].text == "III. Ligne"
        assert "IV. Table" in texts
        assert "x V. Incise" in texts
        assert texts[-1] == "VI. B"
        toc = TocBuilder().build(tree)
        assert [e.display_text for e in toc] == [
            "I. A", "II. Liste", "III. Ligne", "IV. Table", "V. Incise", "VI. B",
        ]


class TestDocxBlocks:
    def test_lists(self):
        nested = {"type": "bulletList", "content": [item(para(text("deux")))]}
        blocks, _ = convert(
            {"type": "orderedList", "content": [item(para(text("un")), nested)]},
        )
        assert blocks[0].text == "1. un"
        assert blocks[0].left_indent == 360
        assert blocks[1].text == "•  deux"
        assert blocks[1].left_indent == 720

    def test_task_item(self):
        blocks, _ = convert({"type": "taskList", "content": [
            {"type": "taskItem", "attrs": {"checked": True}, "content": [para(text("fait"))]},
        ]})
        assert blocks[0].text == "[x] fait"

    def test_blockquote(self):
        blocks, _ = convert({"type": "blockquote", "content": [para(text("cité"))]})
        block = blocks[0]
        assert block.left_indent == 720
        assert block.borders == [DocxBorder(side="left", size=12, color="999999", space=4)]
        assert block.runs[0].italic is True

    def test_code_block(self):
        blocks, _ = convert({"type": "codeBlock", "content": [text("a\nb")]})
        block = blocks[0]
        assert block.shading == "F5F5F5"
        assert [r.text for r in block.runs] == ["a", "b"]
        assert block.runs[1].break_type == "line"
        assert block.runs[0].font == "Courier New"
        assert block.runs[0].size == 20

    def test_table(self):
        def cell(value):
            return {"type": "tableCell", "content": [para(text(value))]}

        blocks, _ = convert({"type": "table", "content": [
            {"type": "tableRow", "content": [cell("A"), cell("B")]},
            {"type": "tableRow", "content": [cell("1")]},
        ]})
        table = blocks[0]
        assert isinstance(table, DocxTable)
        assert table.header_rows == 1
        assert table.column_count == 2
        assert [row.is_header for row in table.rows] == [True, False]
        assert table.rows[1].cells[1].blocks == []

    def test_page_break(self):
        blocks, _ = convert({"type": "pageBreak"})
        assert blocks[0].runs[0].break_type == "page"

    def test_images(self):
        blocks, _ = convert(
            {"type": "image", "attrs": {"src": PNG_URI, "width": 900}},
            {"type": "image", "attrs": {"src": "http://example.org/x.png"}},
        )
        assert isinstance(blocks[0], DocxImage)
        assert blocks[0].data == base64.b64decode(PNG_B64)
        assert blocks[0].width == 500
        assert blocks[1].text == "[external image not exported]"

    @pytest.mark.parametrize("alignment", ["left", "right"])
    def test_image_alignment(self, alignment):
        blocks, _ = convert(
            {"type": "image", "attrs": {"src": PNG_URI, "alignment": alignment}},
            {"type": "image", "attrs": {"src": "http://example.org/x.png", "alignment": alignment}},
        )
        assert blocks[0].alignment == alignment
        assert blocks[1].alignment == alignment

    def test_image_centered_by_default(self):
        blocks, _ = convert({"type": "image", "attrs": {"src": PNG_URI}})
        assert blocks[0].alignment == "center"

    def test_footnotes(self):
        blocks, footnotes = convert(para(text("Vu"), {"type": "footnote", "attrs": {"content": "Note"}}))
        assert blocks[0].runs[1].text == "1"
        assert blocks[0].runs[1].superscript is True
        assert footnotes == [FootnoteRecord(1, "Note")]

    def test_footnote_paragraphs(self):
        paragraphs = footnote_paragraphs([FootnoteRecord(1, "Note")])
        assert paragraphs[0].borders[0].side == "top"
        assert paragraphs[1].text == "1. Note"
        assert footnote_paragraphs([]) == []


class TestDataUri:
    def test_base64(self):
        assert decode_data_uri("data:text/plain;base64,YWJj") == b"abc"

    def test_percent_encoded(self):
        assert decode_data_uri("data:text/plain,a%20b") == b"a b"

    def test_missing_payload(self):
        assert decode_data_uri("data:image/png;base64") is None


# ── Header / footer slots ───────────────────────────────────────────


def make_footer(enabled=True):
    return HeaderFooter(
        enabled=enabled,
        content=SlotContent(left="{{document.title}}", right="Page {{page.current}} / {{page.total}}"),
        font_size="9pt",
        color="#718096",
    )


class TestPdfSlots:
    def test_columns_per_page(self):
        slot = make_pdf_slot(make_footer(), VariableResolver("Contrat", today=TODAY), (71, 71))
        rendered = slot(2, 5)
        assert [c["text"] for c in rendered["columns"]] == ["Contrat", "", "Page 2 / 5"]
        assert rendered["fontSize"] == 9
        assert rendered["margin"] == [71, 20, 71, 0]

    def test_pure(self):
        slot = make_pdf_slot(make_footer(), VariableResolver("Contrat", today=TODAY), (71, 71))
        assert slot(3, 4) == slot(3, 4)
        assert slot(1, 4) != slot(2, 4)

    def test_first_page_disabled(self):
        slot = make_pdf_slot(make_footer(), VariableResolver(today=TODAY), (71, 71),
                             first_page=(False, SlotContent()))
        assert slot(1, 3) == {"text": ""}
        assert slot(2, 3)["columns"][2]["text"] == "Page 2 / 3"

    def test_first_page_content(self):
        slot = make_pdf_slot(make_footer(enabled=False), VariableResolver(today=TODAY), (71, 71),
                             first_page=(True, SlotContent(center="- {{page.current}} -")))
        assert slot(1, 3)["columns"][1]["text"] == "- 1 -"
        assert slot(2, 3) == {"text": ""}

    def test_disabled(self):
        slot = make_pdf_slot(make_footer(enabled=False), VariableResolver(today=TODAY), (71, 71))
        assert slot(1, 1) == {"text": ""}


class TestDocxSlots:
    def test_tabs_and_page_fields(self):
        paragraph = docx_slot_paragraph(make_footer(), VariableResolver("Contrat", today=TODAY), 9072)
        kinds = [
            run.kind if isinstance(run, PageNumberRun) else run.text
            for run in paragraph.runs
        ]
        assert kinds == [
            "Contrat", "\t", "\t", "Page ", PageNumberKind.CURRENT, " / ", PageNumberKind.TOTAL,
        ]
        assert paragraph.tab_stops == [("center", 4536), ("right", 9072)]
        assert paragraph.runs[0].size == 18
        assert paragraph.runs[0].color == "718096"


LETTERHEAD = Letterhead(
    firm="Cabinet Martin", civility="Me", first_name="Claire", last_name="Martin",
    address="12 rue de la Paix", postal_code="75002", city="Paris",
    phone="01 23 45 67 89", email="c.martin@example.fr", bar="Paris", bar_number="B123",
)


class TestLetterheadAndPageNumbers:
    def test_pdf_letterhead(self):
        slot = make_letterhead_slot(LETTERHEAD, (71, 71))
        block = slot(1, 3)
        assert block == slot(2, 3)
        assert block["alignment"] == "right"
        assert block["margin"] == [71, 15, 71, 10]
        assert [line["text"] for line in block["stack"]] == [
            "Cabinet Martin",
            "Me Claire Martin",
            "12 rue de la Paix, 75002 Paris",
            "Tél. 01 23 45 67 89 – c.martin@example.fr",
            "Barreau de Paris – Toque B123",
        ]
        assert block["stack"][0] == {"text": "Cabinet Martin", "fontSize": 12, "bold": True}
        assert block["stack"][4]["italics"] is True
        assert block["stack"][2]["color"] == "#666666"

    def test_pdf_letterhead_skips_empty_lines(self):
        slot = make_letterhead_slot(Letterhead(last_name="Martin"), (71, 71))
        assert slot(1, 1)["stack"] == [{"text": "Martin", "fontSize": 10}]

    def test_pdf_page_number_footer(self):
        slot = make_page_number_footer(VariableResolver(today=TODAY), (71, 71))
        assert slot(2, 5) == {
            "margin": [71, 0, 71, 20],
            "text": "Page 2 / 5",
            "fontSize": 9,
            "alignment": "center",
            "color": "#999999",
        }

    def test_pdf_page_number_footer_first_page(self):
        slot = make_page_number_footer(VariableResolver(today=TODAY), (71, 71),
                                       first_page=lambda current, total: {"text": "un"})
        assert slot(1, 3) == {"text": "un"}
        assert slot(2, 3)["text"] == "Page 2 / 3"

    def test_docx_letterhead(self):
        paragraphs = letterhead_paragraphs(LETTERHEAD)
        assert [p.text for p in paragraphs][:2] == ["Cabinet Martin", "Me Claire Martin"]
        assert all(p.alignment == "right" for p in paragraphs)
        firm, _, address, contact, bar = (p.runs[0] for p in paragraphs)
        assert (firm.bold, firm.size, firm.color) == (True, 24, None)
        assert (address.size, address.color) == (18, "666666")
        assert contact.size == 16
        assert bar.italic is True

    def test_docx_page_number_footer(self):
        paragraph = page_number_footer_paragraph(VariableResolver(today=TODAY))
        kinds = [
            run.kind if isinstance(run, PageNumberRun) else run.text
            for run in paragraph.runs
        ]
        assert kinds == ["Page ", PageNumberKind.CURRENT, " / ", PageNumberKind.TOTAL]
        assert paragraph.alignment == "center"
        assert paragraph.runs[0].size == 18
        assert paragraph.runs[1].color == "999999"


# ── DOCX assembly ───────────────────────────────────────────────────


class TestDocxBuilder:
    def build(self, blocks, **kwargs):
        builder = DocxBuilder(TemplateConfig())
        return builder, builder.build(blocks, DocumentMetadata(title="Contrat", author="Me X"), **kwargs)

    def test_page_setup(self):
        builder, doc = self.build([])
        section = doc.sections[0]
        assert section.page_width == Twips(11906)
        assert section.left_margin == Twips(1417)
        assert builder.usable_width == 11906 - 2 * 1417
        assert doc.core_properties.title == "Contrat"

    def test_paragraph_formatting(self):
        _, doc = self.build([
            DocxParagraph(runs=[DocxRun("Titre", bold=True, size=42, color="1E3A5F")],
                          heading_level=1, space_before=480),
            DocxParagraph(runs=[DocxRun("Corps", highlight=WD_COLOR_INDEX.YELLOW)],
                          alignment="justify", first_line_indent=567),
        ])
        title, body = doc.paragraphs
        assert title.style.name == "Heading 1"
        assert title.runs[0].bold is True
        assert title.runs[0].font.size == Pt(21)
        assert str(title.runs[0].font.color.rgb) == "1E3A5F"
        assert body.alignment == WD_ALIGN_PARAGRAPH.JUSTIFY
        assert body.paragraph_format.first_line_indent == Twips(567)
        assert body.runs[0].font.highlight_color == WD_COLOR_INDEX.YELLOW

    def test_borders_and_shading(self):
        _, doc = self.build([
            DocxParagraph(runs=[DocxRun("q")], borders=[DocxBorder()], shading="F5F5F5"),
        ])
        xml = etree.tostring(doc.paragraphs[0]._p, encoding="unicode")
        assert "w:pBdr" in xml
        assert 'w:fill="F5F5F5"' in xml

    def test_hyperlink(self):
        _, doc = self.build([
            DocxParagraph(runs=[DocxRun("lien", link="https://www.legifrance.gouv.fr")]),
        ])
        assert "w:hyperlink" in doc.paragraphs[0]._p.xml
        targets = [rel.target_ref for rel in doc.part.rels.values() if rel.is_external]
        assert "https://www.legifrance.gouv.fr" in targets

    def test_table(self):
        table = DocxTable(rows=[
            DocxTableRow(cells=[DocxTableCell([DocxParagraph(runs=[DocxRun("A")])]),
                                DocxTableCell([DocxParagraph(runs=[DocxRun("B")])])],
                         is_header=True),
            DocxTableRow(cells=[DocxTableCell([DocxParagraph(runs=[DocxRun("1")])]),
                                DocxTableCell()]),
        ])
        _, doc = self.build([table])
        docx_table = doc.tables[0]
        assert len(docx_table.rows) == 2
        assert docx_table.cell(0, 0).text == "A"
        assert docx_table.cell(0, 0).paragraphs[0].runs[0].bold is True
        assert docx_table.cell(1, 1).text == ""
        assert "w:tblHeader" in docx_table.rows[0]._tr.xml

    def test_image_and_unsupported_image(self):
        _, doc = self.build([
            DocxImage(data=base64.b64decode(PNG_B64), width=400),
            DocxImage(data=b"<svg xmlns='http://www.w3.org/2000/svg'/>", width=100),
        ])
        assert len(doc.inline_shapes) == 1
        assert doc.inline_shapes[0].width == Pt(400)
        assert doc.paragraphs[1].text == "[external image not exported]"

    def test_header_footer_fields(self):
        footer = DocxParagraph(runs=[
            DocxRun("Page "), PageNumberRun(PageNumberKind.CURRENT),
            DocxRun(" / "), PageNumberRun(PageNumberKind.TOTAL),
        ])
        _, doc = self.build([], footer=footer, different_first_page=True,
                            first_footer=DocxParagraph(runs=[DocxRun("Première")]))
        section = doc.sections[0]
        xml = etree.tostring(section.footer._element, encoding="unicode")
        assert 'w:instr=" PAGE "' in xml
        assert 'w:instr=" NUMPAGES "' in xml
        assert section.different_first_page_header_footer is True
        assert section.first_page_footer.paragraphs[0].text == "Première"

    def test_header_with_several_paragraphs(self):
        header = [DocxParagraph(runs=[DocxRun("Cabinet")], alignment="right"),
                  DocxParagraph(runs=[DocxRun("Me Martin")], alignment="right")]
        _, doc = self.build([], header=header)
        paragraphs = doc.sections[0].header.paragraphs
        assert [p.text for p in paragraphs] == ["Cabinet", "Me Martin"]
        assert paragraphs[1].alignment == WD_ALIGN_PARAGRAPH.RIGHT

    def test_save_round_trip(self):
        _, doc = self.build([DocxParagraph(runs=[DocxRun("Bonjour")])])
        with tempfile.NamedTemporaryFile(suffix=".docx", delete=False) as f:
            output_path = f.name
        try:
            result = save(doc, output_path)
            assert os.path.isfile(result)
            reopened = open_docx(result)
            assert reopened.paragraphs[0].text == "Bonjour"
        finally:
            if os.path.exists(output_path):
                os.unlink(output_path)

    def test_unknown_block_is_skipped(self):
        _, doc = self.build(["not a block", DocxParagraph(runs=[DocxRun("ok")])])
        assert [p.text for p in doc.paragraphs] == ["ok"]


@pytest.mark.parametrize("orientation", ["portrait", "landscape"])
def test_orientation(orientation):
    template = TemplateConfig.from_dict({"page": {"size": "A5", "orientation": orientation}})
    doc = DocxBuilder(template).build([])
    section = doc.sections[0]
    if orientation == "landscape":
        assert section.page_width == Twips(11906)
    else:
        assert section.page_width == Twips(8391)
