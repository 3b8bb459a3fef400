"""Running header and footer construction.

Header and footer text is resolved in two tiers.  Document title, number and
dates are substituted once, when the slot is built.  Page numbers are only
known to the renderer, so:

* for the PDF renderer each slot becomes a pure callable
  ``(current_page, total_pages) -> dict`` that the renderer calls once per
  physical page;
* for the word-processor renderer page tokens become
  :class:`~docexport.docx_converter.PageNumberRun` fields.

A firm letterhead can stand in for the template header, and a plain
``Page X / Y`` footer for a template without a footer.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from docexport.docx_converter import DocxParagraph, DocxRun, PageNumberKind, PageNumberRun
from docexport.models import Letterhead
from docexport.template import HeaderFooter, SlotContent
from docexport.units import points_to_half_points, to_font_points, to_half_points
from docexport.variables import (
    CurrentPageFragment,
    Fragment,
    LiteralFragment,
    TotalPagesFragment,
    VariableResolver,
    render_fragments,
)

logger = logging.getLogger(__name__)

PdfSlot = Callable[[int, int], dict[str, Any]]

HEADER_TOP_OFFSET = 20


def _empty_slot(_current: int, _total: int) -> dict[str, Any]:
    return {"text": ""}


def _columns(texts: tuple[str, str, str], margins: tuple[float, float],
             font_size: float, color: str) -> dict[str, Any]:
    left, center, right = texts
    return {
        "margin": [margins[0], HEADER_TOP_OFFSET, margins[1], 0],
        "columns": [
            {"text": left, "width": "*", "alignment": "left"},
            {"text": center, "width": "auto", "alignment": "center"},
            {"text": right, "width": "*", "alignment": "right"},
        ],
        "fontSize": font_size,
        "color": color,
    }


def make_pdf_slot(
    hf: HeaderFooter,
    resolver: VariableResolver,
    margins: tuple[float, float],
    first_page: Optional[tuple[bool, SlotContent]] = None,
) -> PdfSlot:
    """Build the per-page callable for a PDF header or footer.

    Parameters
    ----------
    hf:
        Header or footer settings; a disabled one yields empty text on every
        page (apart from an enabled first-page variant).
    resolver:
        Resolver holding this export's document values.
    margins:
        Left and right page margins in points.
    first_page:
        ``(enabled, content)`` of a distinct first-page variant, or ``None``
        when the first page looks like the others.

    Returns
    -------
    callable
        Pure function of ``(current_page, total_pages)``.
    """
    font_size = to_font_points(hf.font_size, default=9)
    color = hf.color

    def compile_slots(content: SlotContent) -> tuple[list[Fragment], ...]:
        return (
            resolver.resolve(content.left),
            resolver.resolve(content.center),
            resolver.resolve(content.right),
        )

    body = compile_slots(hf.content) if hf.enabled else None
    first: Optional[tuple[list[Fragment], ...]] = None
    if first_page is not None:
        enabled, first_content = first_page
        if enabled:
            first = compile_slots(first_content)

    def render(slots: tuple[list[Fragment], ...], current: int, total: int) -> dict[str, Any]:
        texts = tuple(render_fragments(frags, current, total) for frags in slots)
        return _columns(texts, margins, font_size, color)

    def slot(current_page: int, total_pages: int) -> dict[str, Any]:
        if current_page == 1 and first_page is not None:
            if first is None:
                return {"text": ""}
            return render(first, current_page, total_pages)
        if body is None:
            return {"text": ""}
        return render(body, current_page, total_pages)

    if body is None and first is None:
        return _empty_slot
    return slot


# ── Letterhead and page-number footer ───────────────────────────────────

# Extra top margin in points, so the body clears the letterhead.
LETTERHEAD_TOP_MARGIN = 60

PAGE_NUMBER_TEXT = "Page {{page.current}} / {{page.total}}"
PAGE_NUMBER_SIZE = 9
PAGE_NUMBER_COLOR = "#999999"

# (font size, bold, italic, color) per letterhead line.
_LETTERHEAD_LINES = {
    "firm": (12, True, False, None),
    "full_name": (10, False, False, None),
    "full_address": (9, False, False, "#666666"),
    "contact_line": (8, False, False, "#888888"),
    "bar_line": (8, False, True, "#888888"),
}


def _letterhead_lines(letterhead: Letterhead) -> list[tuple]:
    """``(text, size, bold, italic, color)`` for each non-empty line."""
    lines = []
    for name, (size, bold, italic, color) in _LETTERHEAD_LINES.items():
        text = getattr(letterhead, name)
        if text:
            lines.append((text, size, bold, italic, color))
    return lines


def make_letterhead_slot(letterhead: Letterhead, margins: tuple[float, float]) -> PdfSlot:
    """PDF header printing the firm's letterhead, right-aligned, on every page."""
    stack = []
    for text, size, bold, italic, color in _letterhead_lines(letterhead):
        line: dict[str, Any] = {"text": text, "fontSize": size}
        if bold:
            line["bold"] = True
        if italic:
            line["italics"] = True
        if color:
            line["color"] = color
        stack.append(line)

    block = {"margin": [margins[0], 15, margins[1], 10], "stack": stack,
             "alignment": "right"}

    def slot(_current: int, _total: int) -> dict[str, Any]:
        return block

    return slot


def make_page_number_footer(
    resolver: VariableResolver,
    margins: tuple[float, float],
    first_page: Optional[PdfSlot] = None,
) -> PdfSlot:
    """Centred ``Page X / Y`` footer for templates without a footer.

    *first_page*, when given, renders page 1 instead.
    """

    def slot(current_page: int, total_pages: int) -> dict[str, Any]:
        if current_page == 1 and first_page is not None:
            return first_page(current_page, total_pages)
        return {
            "margin": [margins[0], 0, margins[1], 20],
            "text": resolver.render(PAGE_NUMBER_TEXT, current_page, total_pages),
            "fontSize": PAGE_NUMBER_SIZE,
            "alignment": "center",
            "color": PAGE_NUMBER_COLOR,
        }

    return slot


# ── Word-processor slots ────────────────────────────────────────────────


def _fragment_runs(fragments: list[Fragment], size: int,
                   color: str) -> list[DocxRun | PageNumberRun]:
    runs: list[DocxRun | PageNumberRun] = []
    for fragment in fragments:
        match fragment:
            case LiteralFragment(text=text):
                if text:
                    runs.append(DocxRun(text, size=size, color=color))
            case CurrentPageFragment():
                runs.append(PageNumberRun(PageNumberKind.CURRENT, size=size, color=color))
            case TotalPagesFragment():
                runs.append(PageNumberRun(PageNumberKind.TOTAL, size=size, color=color))
    return runs


def docx_slot_paragraph(
    hf: HeaderFooter,
    resolver: VariableResolver,
    usable_width: int,
    content: SlotContent | None = None,
) -> DocxParagraph:
    """One paragraph holding the left, center and right slots.

    The slots are separated by tabs, with a center tab stop in the middle of
    the text area and a right tab stop at its edge.

    Parameters
    ----------
    usable_width:
        Width between the page margins, in twips.
    content:
        Slot texts; defaults to ``hf.content``.
    """
    slots = content or hf.content
    size = to_half_points(hf.font_size, default=9)
    color = hf.color.lstrip("#").upper()

    runs: list[DocxRun | PageNumberRun] = []
    runs.extend(_fragment_runs(resolver.resolve(slots.left), size, color))
    runs.append(DocxRun("\t", size=size))
    runs.extend(_fragment_runs(resolver.resolve(slots.center), size, color))
    runs.append(DocxRun("\t", size=size))
    runs.extend(_fragment_runs(resolver.resolve(slots.right), size, color))

    logger.debug("Built word-processor slot paragraph with %d run(s)", len(runs))
    return DocxParagraph(
        runs=runs,
        tab_stops=[("center", usable_width // 2), ("right", usable_width)],
    )


def letterhead_paragraphs(letterhead: Letterhead) -> list[DocxParagraph]:
    """The letterhead as right-aligned header paragraphs, one per line."""
    paragraphs = []
    for text, size, bold, italic, color in _letterhead_lines(letterhead):
        paragraphs.append(DocxParagraph(
            runs=[DocxRun(text, bold=bold, italic=italic,
                          size=points_to_half_points(size),
                          color=color.lstrip("#") if color else None)],
            alignment="right",
        ))
    return paragraphs


def page_number_footer_paragraph(resolver: VariableResolver) -> DocxParagraph:
    """Word-processor counterpart of :func:`make_page_number_footer`."""
    color = PAGE_NUMBER_COLOR.lstrip("#")
    size = points_to_half_points(PAGE_NUMBER_SIZE)
    runs = _fragment_runs(resolver.resolve(PAGE_NUMBER_TEXT), size, color)
    return DocxParagraph(runs=runs, alignment="center")
