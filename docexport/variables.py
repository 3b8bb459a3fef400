"""Template placeholder resolution for headers and footers.

Placeholders are resolved in two tiers:

1. **Static** -- ``{{document.title}}``, ``{{document.numero}}`` and
   ``{{date.format("DD/MM/YYYY")}}`` are replaced once, at export time.
2. **Page-aware** -- ``{{page.current}}`` and ``{{page.total}}`` are only
   known while the renderer draws a physical page.  :meth:`VariableResolver.resolve`
   returns typed fragments instead of a string; the renderer assembles them
   once per page with :func:`render_fragments`.

Unknown or malformed placeholders are left verbatim in the output.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Union

logger = logging.getLogger(__name__)

PAGE_CURRENT_TOKEN = "{{page.current}}"
PAGE_TOTAL_TOKEN = "{{page.total}}"

_TITLE_RE = re.compile(r"\{\{document\.title\}\}")
_NUMBER_RE = re.compile(r"\{\{document\.numero\}\}")
_DATE_RE = re.compile(r'\{\{date\.format\("([^"{}]+)"\)\}\}')
_PAGE_SPLIT_RE = re.compile(r"(\{\{page\.current\}\}|\{\{page\.total\}\})")
# Longest tokens first so that MMMM is not read as MM + MM.
_DATE_TOKEN_RE = re.compile(r"MMMM|YYYY|DD|MM|YY|D|M")

FRENCH_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]


# ── Fragments ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LiteralFragment:
    text: str


@dataclass(frozen=True)
class CurrentPageFragment:
    pass


@dataclass(frozen=True)
class TotalPagesFragment:
    pass


Fragment = Union[LiteralFragment, CurrentPageFragment, TotalPagesFragment]


def render_fragments(fragments: list[Fragment], current_page: int,
                     total_pages: int) -> str:
    """Assemble *fragments* for one physical page.  Pure."""
    parts: list[str] = []
    for fragment in fragments:
        match fragment:
            case LiteralFragment(text=text):
                parts.append(text)
            case CurrentPageFragment():
                parts.append(str(current_page))
            case TotalPagesFragment():
                parts.append(str(total_pages))
    return "".join(parts)


# ── Date formatting ────────────────────────────────────────────────────


def format_date(pattern: str, today: date) -> str:
    """Expand ``DD D MM M MMMM YYYY YY`` in *pattern*; other text is kept."""

    def _token(found: re.Match[str]) -> str:
        match found.group(0):
            case "DD":
                return f"{today.day:02d}"
            case "D":
                return str(today.day)
            case "MMMM":
                return FRENCH_MONTHS[today.month - 1]
            case "MM":
                return f"{today.month:02d}"
            case "M":
                return str(today.month)
            case "YYYY":
                return str(today.year)
            case "YY":
                return str(today.year)[-2:]
        return found.group(0)

    return _DATE_TOKEN_RE.sub(_token, pattern)


# ── VariableResolver ───────────────────────────────────────────────────


class VariableResolver:
    """Resolves placeholders for one export.

    Parameters
    ----------
    title : str
        Value of ``{{document.title}}``.
    number : str
        Value of ``{{document.numero}}`` (the document reference number).
    today : date or None
        Date used by ``{{date.format(...)}}``; defaults to the current date.
    """

    def __init__(self, title: str = "", number: str = "",
                 today: date | None = None) -> None:
        self._title = title
        self._number = number
        self._today = today or date.today()

    def resolve_static(self, text: str) -> str:
        """Replace every static placeholder; page tokens are left untouched."""
        if not text:
            return ""
        result = _TITLE_RE.sub(lambda _m: self._title, text)
        result = _NUMBER_RE.sub(lambda _m: self._number, result)
        result = _DATE_RE.sub(
            lambda m: format_date(m.group(1), self._today), result
        )
        return result

    def resolve(self, text: str) -> list[Fragment]:
        """Static substitution, then split around the page-aware tokens."""
        static = self.resolve_static(text)
        fragments: list[Fragment] = []
        for part in _PAGE_SPLIT_RE.split(static):
            if part == PAGE_CURRENT_TOKEN:
                fragments.append(CurrentPageFragment())
            elif part == PAGE_TOTAL_TOKEN:
                fragments.append(TotalPagesFragment())
            elif part:
                fragments.append(LiteralFragment(part))
        return fragments

    def render(self, text: str, current_page: int, total_pages: int) -> str:
        """Shortcut for ``render_fragments(self.resolve(text), ...)``."""
        return render_fragments(self.resolve(text), current_page, total_pages)
