"""Length and size conversions shared by the PDF and DOCX converters.

Template values arrive as loose strings (``"2.5cm"``, ``"11pt"``, ``"2.5"``)
and every renderer wants a different integer unit:

- PDF content tree: points (1 cm = 28.3465 pt)
- DOCX: twips, 1/20 pt (1 cm = 566.929 twips), font sizes in half-points
"""

from __future__ import annotations

import logging
import re
from typing import NamedTuple

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

CM_TO_POINTS = 28.3465
CM_TO_TWIPS = 566.929
POINTS_PER_INCH = 72
TWIPS_PER_POINT = 20
TWIPS_PER_INCH = 1440
MM_PER_CM = 10

_LENGTH_RE = re.compile(r"^\s*([-+]?\d*\.?\d+)\s*([a-z%]*)\s*$", re.IGNORECASE)
_LEADING_NUMBER_RE = re.compile(r"^\s*([-+]?\d*\.?\d+)")

# Portrait page dimensions in twips.
PAGE_SIZES_TWIPS: dict[str, tuple[int, int]] = {
    "A4": (11906, 16838),
    "A5": (8391, 11906),
    "Letter": (12240, 15840),
    "Legal": (12240, 20160),
}

_PDF_PAGE_SIZES = {
    "A4": "A4",
    "A5": "A5",
    "Letter": "LETTER",
    "Legal": "LEGAL",
}


class Length(NamedTuple):
    """A parsed length: numeric *value* and lower-case *unit*."""
    value: float
    unit: str


# ── Parsing ────────────────────────────────────────────────────────────


def parse_length_with_unit(raw: str | float | int | None,
                           default_unit: str = "cm") -> Length:
    """Parse ``"2.5cm"``, ``"11 pt"`` or ``"2.5"`` into a :class:`Length`.

    Bare numbers take *default_unit*.  Strings that do not match the
    ``<number><unit>`` shape keep their leading numeric prefix, if any, in
    the default unit; anything else parses as ``0``.  Never raises.
    """
    if raw is None:
        return Length(0.0, default_unit)
    if isinstance(raw, (int, float)):
        return Length(float(raw), default_unit)

    match = _LENGTH_RE.match(raw)
    if match:
        value = float(match.group(1))
        unit = match.group(2).lower() or default_unit
        return Length(value, unit)

    prefix = _LEADING_NUMBER_RE.match(raw)
    if prefix:
        logger.debug("Malformed length %r; using numeric prefix", raw)
        return Length(float(prefix.group(1)), default_unit)

    logger.debug("Unparseable length %r; treating as 0%s", raw, default_unit)
    return Length(0.0, default_unit)


# ── Numeric conversions ────────────────────────────────────────────────


def centimeters_to_points(cm: float) -> int:
    return round(cm * CM_TO_POINTS)


def centimeters_to_twips(cm: float) -> int:
    return round(cm * CM_TO_TWIPS)


def points_to_half_points(pt: float) -> int:
    return round(pt * 2)


def points_to_twips(pt: float) -> int:
    return round(pt * TWIPS_PER_POINT)


# ── String-level conversions ───────────────────────────────────────────


def to_points(raw: str | float | int | None, default_unit: str = "cm") -> int:
    """Convert a template length to whole points.

    Unknown unit suffixes are taken as already being points.
    """
    value, unit = parse_length_with_unit(raw, default_unit)
    match unit:
        case "cm":
            return centimeters_to_points(value)
        case "mm":
            return centimeters_to_points(value / MM_PER_CM)
        case "in":
            return round(value * POINTS_PER_INCH)
        case "pt":
            return round(value)
        case _:
            logger.debug("Unknown unit %r; treating %s as points", unit, value)
            return round(value)


def to_twips(raw: str | float | int | None, default_unit: str = "cm") -> int:
    """Convert a template length to twips.

    Unknown unit suffixes are taken as already being twips.
    """
    value, unit = parse_length_with_unit(raw, default_unit)
    match unit:
        case "cm":
            return centimeters_to_twips(value)
        case "mm":
            return centimeters_to_twips(value / MM_PER_CM)
        case "in":
            return round(value * TWIPS_PER_INCH)
        case "pt":
            return points_to_twips(value)
        case _:
            logger.debug("Unknown unit %r; treating %s as twips", unit, value)
            return round(value)


def em_to_points(raw: str | float | int | None, base_font_size: float) -> int:
    """Convert a vertical spacing to whole points.

    ``em`` values and bare numbers are multiples of *base_font_size*;
    absolute lengths (``pt``, ``cm``, ``mm``, ``in``) convert as usual.
    Unknown unit suffixes are read as ``em``.
    """
    value, unit = parse_length_with_unit(raw, "em")
    match unit:
        case "em" | "rem":
            return round(value * base_font_size)
        case "pt" | "cm" | "mm" | "in":
            return to_points(raw, unit)
        case _:
            logger.debug("Unknown unit %r; treating %s as em", unit, value)
            return round(value * base_font_size)


def to_font_points(raw: str | float | int | None, default: float = 11) -> float:
    """Read a font size in points; ``0`` or unparseable input gives *default*."""
    value, _unit = parse_length_with_unit(raw, "pt")
    return value or default


def to_half_points(raw: str | float | int | None, default: float = 11) -> int:
    return points_to_half_points(to_font_points(raw, default))


# ── Page sizes ─────────────────────────────────────────────────────────


def page_size_for_pdf(size: str) -> str:
    """Return the PDF renderer's page-size name; ``custom`` falls back to A4."""
    return _PDF_PAGE_SIZES.get(size, "A4")


def page_size_twips(size: str, orientation: str = "portrait") -> tuple[int, int]:
    """Return ``(width, height)`` in twips, swapped for landscape."""
    width, height = PAGE_SIZES_TWIPS.get(size, PAGE_SIZES_TWIPS["A4"])
    if orientation == "landscape":
        return height, width
    return width, height
