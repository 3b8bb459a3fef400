"""Export orchestration.

Wires the pieces together for one export of one document:

1. validate the abstract document tree;
2. build the table of contents with its own numberer;
3. convert the body with a second, fresh numberer and a fresh footnote
   collector;
4. append the footnote section;
5. attach the running header and footer, or the firm letterhead and a
   plain page-number footer in their place.

Every call starts from fresh state, so exports of different documents (or
repeated exports of the same one) never influence each other.

Usage::

    from docexport.exporter import build_docx, build_pdf_definition

    definition = build_pdf_definition(tree, template, numbering, metadata)
    document = build_docx(tree, template, numbering, metadata)
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, Mapping, TYPE_CHECKING, Union

from docexport.converter import ContentTreeConverter, footnote_section
from docexport.docx_builder import DocxBuilder, save
from docexport.docx_converter import DocxContentConverter, footnote_paragraphs
from docexport.errors import InvalidDocumentError, MissingTemplateError
from docexport.headers import (
    LETTERHEAD_TOP_MARGIN,
    docx_slot_paragraph,
    letterhead_paragraphs,
    make_letterhead_slot,
    make_page_number_footer,
    make_pdf_slot,
    page_number_footer_paragraph,
)
from docexport.models import (
    DocumentMetadata,
    DocumentNode,
    FootnoteCollector,
    Letterhead,
    NodeType,
)
from docexport.numbering import DEFAULT_NUMBERING_CONFIG, HeadingNumberer, NumberingConfig
from docexport.template import TemplateConfig
from docexport.toc import TocBuilder, toc_to_docx, toc_to_pdf
from docexport.units import page_size_for_pdf, to_font_points, to_points
from docexport.variables import VariableResolver

if TYPE_CHECKING:
    from docx.document import Document

logger = logging.getLogger(__name__)

DocumentInput = Union[DocumentNode, Mapping[str, Any]]


# ── Validation ─────────────────────────────────────────────────────────


def validate_document(document: DocumentInput | None) -> DocumentNode:
    """Return *document* as a :class:`DocumentNode` rooted at ``doc``.

    Raises
    ------
    InvalidDocumentError
        If *document* is missing, not a mapping/node, not rooted at a
        ``doc`` node, or its ``content`` is not a list.
    """
    if document is None:
        raise InvalidDocumentError("No document to export")

    if isinstance(document, DocumentNode):
        root = document
    elif isinstance(document, Mapping):
        content = document.get("content", [])
        if not isinstance(content, list):
            raise InvalidDocumentError(
                f"Document content must be a list, got {type(content).__name__}"
            )
        try:
            root = DocumentNode.from_dict(dict(document))
        except TypeError as exc:
            raise InvalidDocumentError(f"Malformed document tree: {exc}") from exc
    else:
        raise InvalidDocumentError(
            f"Expected a document tree, got {type(document).__name__}"
        )

    if root.type != NodeType.DOC.value:
        raise InvalidDocumentError(
            f"Document root must be a 'doc' node, got '{root.type or '<none>'}'"
        )
    return root


def _require_template(template: TemplateConfig | None) -> TemplateConfig:
    if template is None:
        raise MissingTemplateError("No template configuration supplied for the export")
    return template


def _converter_settings(template: TemplateConfig) -> dict[str, Any]:
    typography = template.typography
    return {
        "heading_colors": typography.heading_colors,
        "base_font_size": to_font_points(typography.base_font_size, default=12),
        "paragraph_indent": typography.paragraph_indent,
        "paragraph_spacing": typography.paragraph_spacing,
        "element_styles": template.styles,
    }


# ── PDF ────────────────────────────────────────────────────────────────


def _applied_letterhead(letterhead: Letterhead | None) -> Letterhead | None:
    if letterhead is None:
        return None
    if letterhead.is_empty():
        logger.debug("Letterhead has no firm or name; keeping the template header")
        return None
    return letterhead


def build_pdf_definition(
    document: DocumentInput,
    template: TemplateConfig | None,
    numbering: NumberingConfig | None = None,
    metadata: DocumentMetadata | None = None,
    include_toc: bool = True,
    today: date | None = None,
    letterhead: Letterhead | None = None,
    page_number_footer: bool = False,
) -> dict[str, Any]:
    """Build the PDF document definition for *document*.

    Parameters
    ----------
    document:
        Abstract document tree (editor JSON or :class:`DocumentNode`).
    template:
        Page layout, header/footer, typography and element styles.
    numbering:
        Heading numbering; defaults to :data:`DEFAULT_NUMBERING_CONFIG`.
    metadata:
        Values for ``{{document.title}}`` and ``{{document.numero}}``.
    include_toc:
        Prepend a table of contents when the document has headings.
    today:
        Date used for date placeholders; defaults to the current date.
    letterhead:
        Firm letterhead printed instead of the template header on every
        page.  The top margin grows by :data:`LETTERHEAD_TOP_MARGIN`.  An
        empty letterhead is ignored.
    page_number_footer:
        Print a ``Page X / Y`` footer on the pages the template gives no
        footer.

    Returns
    -------
    dict
        The definition.  ``header`` and ``footer``, when present, are
        callables ``(current_page, total_pages) -> dict``.

    Raises
    ------
    InvalidDocumentError
        If *document* is not a ``doc``-rooted tree.
    MissingTemplateError
        If *template* is ``None``.
    """
    template = _require_template(template)
    root = validate_document(document)
    numbering = numbering or DEFAULT_NUMBERING_CONFIG
    metadata = metadata or DocumentMetadata()
    settings = _converter_settings(template)
    letterhead = _applied_letterhead(letterhead)

    content: list[dict[str, Any]] = []
    if include_toc:
        content.extend(toc_to_pdf(TocBuilder(numbering).build(root),
                                  title_color=template.heading_color(1)))

    converter = ContentTreeConverter(HeadingNumberer(numbering), **settings)
    result = converter.convert(root, FootnoteCollector())
    content.extend(result.content)
    content.extend(footnote_section(result.footnotes, settings["base_font_size"]))

    page = template.page
    margins = {
        side: to_points(getattr(page.margins, side), "cm")
        for side in ("top", "right", "bottom", "left")
    }
    top = margins["top"]
    bottom = margins["bottom"]
    if template.header.enabled:
        top += to_points(template.header.height, "cm")
    if template.footer.enabled:
        bottom += to_points(template.footer.height, "cm")
    if letterhead is not None:
        top += LETTERHEAD_TOP_MARGIN

    definition: dict[str, Any] = {
        "pageSize": page_size_for_pdf(page.size),
        "pageOrientation": page.orientation,
        "pageMargins": [margins["left"], top, margins["right"], bottom],
        "defaultStyle": {
            "font": template.typography.font_family,
            "fontSize": settings["base_font_size"],
            "lineHeight": template.typography.line_height,
        },
        "info": {"title": metadata.title, "author": metadata.author},
        "content": content,
    }

    resolver = VariableResolver(metadata.title, metadata.number, today)
    first = template.first_page
    side_margins = (margins["left"], margins["right"])
    first_footer = first.different_first_page and first.footer_enabled

    if letterhead is not None:
        definition["header"] = make_letterhead_slot(letterhead, side_margins)
    elif template.header.enabled or (first.different_first_page and first.header_enabled):
        definition["header"] = make_pdf_slot(
            template.header, resolver, side_margins,
            first_page=(first.header_enabled, first.header_content)
            if first.different_first_page else None,
        )

    if template.footer.enabled:
        definition["footer"] = make_pdf_slot(
            template.footer, resolver, side_margins,
            first_page=(first.footer_enabled, first.footer_content)
            if first.different_first_page else None,
        )
    elif page_number_footer:
        definition["footer"] = make_page_number_footer(
            resolver, side_margins,
            first_page=make_pdf_slot(
                template.footer, resolver, side_margins,
                first_page=(True, first.footer_content),
            ) if first_footer else None,
        )
    elif first_footer:
        definition["footer"] = make_pdf_slot(
            template.footer, resolver, side_margins,
            first_page=(True, first.footer_content),
        )

    logger.info(
        "PDF definition built: %d block(s), %d footnote(s), page %s %s",
        len(content), len(result.footnotes), definition["pageSize"], page.orientation,
    )
    return definition


def preview_pdf_definition(definition: Mapping[str, Any], current_page: int = 1,
                           total_pages: int = 1) -> dict[str, Any]:
    """JSON-serialisable copy of *definition* with header/footer evaluated.

    The callables are replaced by ``header_preview``/``footer_preview``
    rendered for *current_page* of *total_pages*.
    """
    preview = {k: v for k, v in definition.items() if not callable(v)}
    for slot in ("header", "footer"):
        render = definition.get(slot)
        if callable(render):
            preview[f"{slot}_preview"] = render(current_page, total_pages)
    return preview


# ── DOCX ───────────────────────────────────────────────────────────────


def build_docx(
    document: DocumentInput,
    template: TemplateConfig | None,
    numbering: NumberingConfig | None = None,
    metadata: DocumentMetadata | None = None,
    include_toc: bool = True,
    today: date | None = None,
    letterhead: Letterhead | None = None,
    page_number_footer: bool = False,
) -> Document:
    """Build a python-docx document for *document*.

    Takes the same arguments and raises the same errors as
    :func:`build_pdf_definition`.  The word processor grows the header
    area to fit a letterhead, so the page margins are left unchanged.
    """
    template = _require_template(template)
    root = validate_document(document)
    numbering = numbering or DEFAULT_NUMBERING_CONFIG
    metadata = metadata or DocumentMetadata()
    settings = _converter_settings(template)
    letterhead = _applied_letterhead(letterhead)

    blocks: list[Any] = []
    if include_toc:
        blocks.extend(toc_to_docx(TocBuilder(numbering).build(root),
                                  title_color=template.heading_color(1)))

    converter = DocxContentConverter(HeadingNumberer(numbering), **settings)
    result = converter.convert(root, FootnoteCollector())
    blocks.extend(result.blocks)
    blocks.extend(footnote_paragraphs(result.footnotes, settings["base_font_size"]))

    builder = DocxBuilder(template)
    resolver = VariableResolver(metadata.title, metadata.number, today)
    width = builder.usable_width
    first = template.first_page
    fallback_footer = page_number_footer_paragraph(resolver) if page_number_footer else None

    if letterhead is not None:
        header = letterhead_paragraphs(letterhead)
    elif template.header.enabled:
        header = docx_slot_paragraph(template.header, resolver, width)
    else:
        header = None
    if template.footer.enabled:
        footer = docx_slot_paragraph(template.footer, resolver, width)
    else:
        footer = fallback_footer

    first_header = first_footer = None
    if first.different_first_page:
        if letterhead is not None:
            first_header = letterhead_paragraphs(letterhead)
        elif first.header_enabled:
            first_header = docx_slot_paragraph(
                template.header, resolver, width, content=first.header_content
            )
        if first.footer_enabled:
            first_footer = docx_slot_paragraph(
                template.footer, resolver, width, content=first.footer_content
            )
        else:
            first_footer = fallback_footer

    doc = builder.build(
        blocks,
        metadata,
        header=header,
        footer=footer,
        first_header=first_header,
        first_footer=first_footer,
        different_first_page=first.different_first_page,
    )
    logger.info(
        "DOCX built: %d block(s), %d footnote(s)", len(blocks), len(result.footnotes)
    )
    return doc


def export_docx(
    document: DocumentInput,
    template: TemplateConfig | None,
    output_path: Union[str, Path],
    numbering: NumberingConfig | None = None,
    metadata: DocumentMetadata | None = None,
    include_toc: bool = True,
    letterhead: Letterhead | None = None,
    page_number_footer: bool = False,
) -> str:
    """Build the DOCX for *document* and save it; returns the absolute path."""
    doc = build_docx(document, template, numbering, metadata, include_toc,
                     letterhead=letterhead, page_number_footer=page_number_footer)
    return save(doc, output_path)
