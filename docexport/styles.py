"""Per-element style overrides from the template ``styles`` section.

Template authors describe elements with CSS-like properties::

    styles:
      h1:
        fontSize: 24pt
        fontWeight: "700"
        marginBottom: 1em
        color: dark_blue
      p:
        textAlign: left
        textIndent: 1cm
      blockquote:
        fontStyle: italic

Vertical margins scale with the base font size (``em``); horizontal margins
and indents are lengths, bare numbers being centimetres.  Unset properties
stay ``None`` so the converters keep their house defaults for them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from docexport.units import em_to_points, parse_length_with_unit, to_points

logger = logging.getLogger(__name__)

ALIGNMENTS = ("left", "center", "right", "justify")

ELEMENT_NAMES = ("h1", "h2", "h3", "h4", "h5", "h6", "p", "blockquote")

# Properties with no counterpart in either renderer.
_UNSUPPORTED = frozenset({"textTransform", "borderLeft", "paddingLeft", "lineHeight"})


def pick(value: Any, default: Any) -> Any:
    """*value* unless it is ``None``."""
    return default if value is None else value


def _is_bold(weight: Any) -> bool:
    text = str(weight).strip().lower()
    if text in ("bold", "bolder"):
        return True
    return text.isdigit() and int(text) >= 700


@dataclass(frozen=True)
class ElementStyle:
    """Style overrides for one element kind; lengths are in points."""
    font_size: Optional[float] = None
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    color: Optional[str] = None
    alignment: Optional[str] = None
    margin_top: Optional[int] = None
    margin_bottom: Optional[int] = None
    margin_left: Optional[int] = None
    margin_right: Optional[int] = None
    text_indent: Optional[int] = None

    @classmethod
    def from_css(cls, css: Mapping[str, Any], base_font_size: float) -> ElementStyle:
        """Build the overrides from CSS-like properties.

        *css* colours must already be resolved to hex codes.
        """
        values: dict[str, Any] = {}
        for key, value in css.items():
            if value is None or value == "":
                continue
            match key:
                case "fontSize":
                    size = parse_length_with_unit(value, "pt").value
                    if size > 0:
                        values["font_size"] = size
                case "fontWeight":
                    values["bold"] = _is_bold(value)
                case "fontStyle":
                    values["italic"] = str(value) == "italic"
                case "color":
                    values["color"] = str(value)
                case "textAlign":
                    if value in ALIGNMENTS:
                        values["alignment"] = value
                    else:
                        logger.warning("Ignoring unknown text alignment '%s'", value)
                case "marginTop":
                    values["margin_top"] = em_to_points(value, base_font_size)
                case "marginBottom":
                    values["margin_bottom"] = em_to_points(value, base_font_size)
                case "marginLeft":
                    values["margin_left"] = to_points(value, "cm")
                case "marginRight":
                    values["margin_right"] = to_points(value, "cm")
                case "textIndent":
                    values["text_indent"] = to_points(value, "cm")
                case _ if key in _UNSUPPORTED:
                    logger.debug("Style property '%s' is not exported", key)
                case _:
                    logger.warning("Ignoring unknown style property '%s'", key)
        return cls(**values)

    def pdf_margin(self, left: float, top: float, right: float,
                   bottom: float) -> list[float]:
        """``[left, top, right, bottom]`` with the overridden sides replaced."""
        return [
            pick(self.margin_left, left),
            pick(self.margin_top, top),
            pick(self.margin_right, right),
            pick(self.margin_bottom, bottom),
        ]

    def pdf_text_props(self) -> dict[str, Any]:
        """Text style keys of the PDF content tree for the set properties."""
        props: dict[str, Any] = {}
        if self.font_size is not None:
            props["fontSize"] = self.font_size
        if self.bold is not None:
            props["bold"] = self.bold
        if self.italic is not None:
            props["italics"] = self.italic
        if self.color:
            props["color"] = self.color
        return props


EMPTY_STYLE = ElementStyle()
