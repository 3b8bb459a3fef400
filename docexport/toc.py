"""Table of contents derived from the document's headings.

:class:`TocBuilder` mirrors the numbering pass of the body converters: it
walks the headings they render (:meth:`DocumentNode.headings`) in the same
pre-order, with its own fresh :class:`~docexport.numbering.HeadingNumberer`
and the same :class:`~docexport.numbering.NumberingConfig`, so each entry
carries exactly the label the heading receives in the body.

The two render helpers produce the TOC section for each output format.  An
empty entry list produces no section at all.
"""

from __future__ import annotations

import logging

from docexport import house_style as hs
from docexport.docx_converter import DocxParagraph, DocxRun
from docexport.models import DocumentNode, TocEntry
from docexport.numbering import DEFAULT_NUMBERING_CONFIG, HeadingNumberer, NumberingConfig
from docexport.units import points_to_half_points, points_to_twips

logger = logging.getLogger(__name__)

DEFAULT_TOC_TITLE = "Table des matières"
DEFAULT_TITLE_COLOR = hs.DEFAULT_HEADING_COLORS[1]

_TITLE_SIZE = 18
_ENTRY_SIZE = 11
_INDENT_PER_LEVEL = 15          # points


class TocBuilder:
    """Collects TOC entries from a document tree.

    Parameters
    ----------
    config:
        Numbering configuration; must be the one the body conversion uses.
    """

    def __init__(self, config: NumberingConfig | None = None) -> None:
        self._config = config or DEFAULT_NUMBERING_CONFIG

    def build(self, root: DocumentNode) -> list[TocEntry]:
        """Return one entry per heading with non-empty text, in document order.

        Headings without text get no entry but still advance the numbering,
        because the body conversion numbers them as well.
        """
        numberer = HeadingNumberer(self._config)
        entries: list[TocEntry] = []

        for node in root.headings():
            level = hs.heading_level(node)
            label = numberer.increment(level)
            text = node.plain_text().strip()
            if not text:
                logger.debug("Heading level %d has no text; not listed", level)
                continue
            entries.append(TocEntry(level=level, number_label=label, text=text))

        logger.info("Table of contents: %d entr%s",
                    len(entries), "y" if len(entries) == 1 else "ies")
        return entries


def toc_to_pdf(entries: list[TocEntry], title: str = DEFAULT_TOC_TITLE,
               title_color: str = DEFAULT_TITLE_COLOR) -> list[dict]:
    """PDF content for the TOC section, ending with a page break."""
    if not entries:
        return []

    content: list[dict] = [{
        "text": title,
        "fontSize": _TITLE_SIZE,
        "bold": True,
        "color": title_color,
        "margin": [0, 0, 0, 20],
    }]
    for entry in entries:
        content.append({
            "text": entry.display_text,
            "fontSize": _ENTRY_SIZE,
            "bold": entry.level == 1,
            "margin": [_INDENT_PER_LEVEL * (entry.level - 1), 0, 0, 4],
        })
    content.append({"text": "", "pageBreak": "after"})
    return content


def toc_to_docx(entries: list[TocEntry],
                title: str = DEFAULT_TOC_TITLE,
                title_color: str = DEFAULT_TITLE_COLOR) -> list[DocxParagraph]:
    """Word-processor paragraphs for the TOC section, ending with a page break."""
    if not entries:
        return []

    paragraphs = [DocxParagraph(
        runs=[DocxRun(
            title,
            bold=True,
            size=points_to_half_points(_TITLE_SIZE),
            color=title_color.lstrip("#").upper(),
        )],
        space_after=points_to_twips(20),
    )]
    for entry in entries:
        paragraphs.append(DocxParagraph(
            runs=[DocxRun(
                entry.display_text,
                bold=entry.level == 1,
                size=points_to_half_points(_ENTRY_SIZE),
            )],
            left_indent=points_to_twips(_INDENT_PER_LEVEL * (entry.level - 1)),
            space_after=points_to_twips(4),
        ))
    paragraphs.append(DocxParagraph(runs=[DocxRun(break_type="page")]))
    return paragraphs
