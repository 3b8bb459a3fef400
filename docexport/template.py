"""Export template configuration.

Loads the template YAML (``docexport/config/export-template.yaml`` by
default), optionally deep-merges an overlay on top of it, and exposes the
result as a :class:`TemplateConfig`.  Colour names used anywhere in the
template are resolved through the ``colors`` palette to ``#RRGGBB`` hex
codes.

Classes
-------
TemplateConfig
    Page layout, header/footer slots, first-page overrides, typography and
    per-element style overrides.
"""

from __future__ import annotations

import logging
import re
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from docexport.errors import TemplateConfigError
from docexport.models import Letterhead
from docexport.styles import ELEMENT_NAMES, ElementStyle
from docexport.units import to_font_points

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")
_HEADING_KEY_RE = re.compile(r"^[hH]?([1-6])$")

_PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_TEMPLATE_PATH = _PACKAGE_DIR / "config" / "export-template.yaml"

PAGE_SIZES = ("A4", "A5", "Letter", "Legal", "custom")
ORIENTATIONS = ("portrait", "landscape")

DEFAULT_COLORS: dict[str, str] = {
    "dark_blue": "#1e3a5f",
    "medium_blue": "#2c5282",
    "dark_gray": "#2d3748",
    "medium_gray": "#4a5568",
    "light_gray": "#718096",
    "border": "#cbd5e0",
}

DEFAULT_HEADING_COLORS: dict[int, str] = {
    1: DEFAULT_COLORS["dark_blue"],
    2: DEFAULT_COLORS["dark_blue"],
    3: DEFAULT_COLORS["medium_blue"],
    4: DEFAULT_COLORS["dark_gray"],
    5: DEFAULT_COLORS["dark_gray"],
    6: DEFAULT_COLORS["medium_gray"],
}


def resolve_color(name: str | None, palette: dict[str, str],
                  default: str = "#000000") -> str:
    """Resolve a colour *name* (or hex code) against *palette*.

    Raises
    ------
    KeyError
        If *name* is neither a hex code nor a palette entry.
    """
    if not name:
        return default
    if _HEX_COLOR_RE.match(name):
        return name
    if name in palette:
        value = palette[name]
        if _HEX_COLOR_RE.match(value):
            return value
        return resolve_color(value, {k: v for k, v in palette.items() if k != name}, default)
    raise KeyError(f"Unknown color name: '{name}'")


def heading_level_from_key(key: Any) -> Optional[int]:
    """``"h2"``, ``"2"`` or ``2`` to ``2``; ``None`` outside h1..h6."""
    found = _HEADING_KEY_RE.match(str(key))
    return int(found.group(1)) if found else None


def deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge *overlay* into a copy of *base*.

    Overlay values take precedence.  Nested dicts are merged rather than
    replaced outright.
    """
    result = deepcopy(base)
    for key, value in overlay.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)
    return result


# ── Template sections ──────────────────────────────────────────────────


@dataclass
class Margins:
    """Page margins as unit strings (bare numbers are centimetres)."""
    top: str = "2.5cm"
    right: str = "2.5cm"
    bottom: str = "2.5cm"
    left: str = "2.5cm"


@dataclass
class PageLayout:
    size: str = "A4"
    orientation: str = "portrait"
    margins: Margins = field(default_factory=Margins)


@dataclass
class SlotContent:
    """Text of the three header/footer slots, placeholders allowed."""
    left: str = ""
    center: str = ""
    right: str = ""


@dataclass
class HeaderFooter:
    enabled: bool = False
    height: str = "1cm"
    content: SlotContent = field(default_factory=SlotContent)
    font_size: str = "9pt"
    color: str = "#666666"


@dataclass
class FirstPageConfig:
    """Optional first-page variant of the header and footer."""
    different_first_page: bool = False
    header_enabled: bool = False
    footer_enabled: bool = False
    header_content: SlotContent = field(default_factory=SlotContent)
    footer_content: SlotContent = field(default_factory=SlotContent)


@dataclass
class Typography:
    base_font_size: str = "12pt"
    line_height: float = 1.2
    paragraph_spacing: str = "6pt"
    paragraph_indent: str = "0cm"
    font_family: str = "EB Garamond"
    heading_colors: dict[int, str] = field(
        default_factory=lambda: dict(DEFAULT_HEADING_COLORS)
    )


@dataclass
class TemplateConfig:
    """Complete export template."""
    name: str = "default"
    page: PageLayout = field(default_factory=PageLayout)
    header: HeaderFooter = field(default_factory=HeaderFooter)
    footer: HeaderFooter = field(default_factory=HeaderFooter)
    first_page: FirstPageConfig = field(default_factory=FirstPageConfig)
    typography: Typography = field(default_factory=Typography)
    styles: dict[str, ElementStyle] = field(default_factory=dict)

    def heading_color(self, level: int) -> str:
        """Colour for heading *level*, falling back to the house default."""
        return self.typography.heading_colors.get(
            level, DEFAULT_HEADING_COLORS.get(level, DEFAULT_COLORS["dark_gray"])
        )

    # ── Construction ──────────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TemplateConfig:
        """Build a template from a (YAML-shaped) mapping.

        Raises
        ------
        TemplateConfigError
            If *data* is not a mapping, uses an unknown page size or
            orientation, or keys heading colours by anything but h1..h6.
        """
        if not isinstance(data, dict):
            raise TemplateConfigError(
                f"Expected a mapping for the template, got {type(data).__name__}"
            )

        palette = dict(DEFAULT_COLORS)
        palette.update(data.get("colors") or {})

        page = cls._page_from_dict(data.get("page") or {})
        header = cls._header_footer_from_dict(data.get("header") or {}, palette)
        footer = cls._header_footer_from_dict(data.get("footer") or {}, palette)
        first_page = cls._first_page_from_dict(data.get("first_page") or {})
        typography = cls._typography_from_dict(data.get("typography") or {}, palette)
        styles = cls._styles_from_dict(
            data.get("styles") or {},
            palette,
            to_font_points(typography.base_font_size, default=12),
        )

        template = cls(
            name=str(data.get("name", "default")),
            page=page,
            header=header,
            footer=footer,
            first_page=first_page,
            typography=typography,
            styles=styles,
        )
        logger.debug(
            "Template '%s': %s %s, header=%s, footer=%s, %d element style(s)",
            template.name, page.size, page.orientation,
            header.enabled, footer.enabled, len(styles),
        )
        return template

    @staticmethod
    def _page_from_dict(data: dict[str, Any]) -> PageLayout:
        size = str(data.get("size", "A4"))
        orientation = str(data.get("orientation", "portrait"))
        if size not in PAGE_SIZES:
            raise TemplateConfigError(f"Unknown page size: '{size}'")
        if orientation not in ORIENTATIONS:
            raise TemplateConfigError(f"Unknown page orientation: '{orientation}'")

        raw_margins = data.get("margins") or {}
        margins = Margins(**{
            side: str(raw_margins.get(side, getattr(Margins, side)))
            for side in ("top", "right", "bottom", "left")
        })
        return PageLayout(size=size, orientation=orientation, margins=margins)

    @staticmethod
    def _slots_from_dict(data: dict[str, Any] | None) -> SlotContent:
        data = data or {}
        return SlotContent(
            left=str(data.get("left") or ""),
            center=str(data.get("center") or ""),
            right=str(data.get("right") or ""),
        )

    @classmethod
    def _header_footer_from_dict(cls, data: dict[str, Any],
                                 palette: dict[str, str]) -> HeaderFooter:
        color = data.get("color", "#666666")
        try:
            color = resolve_color(color, palette)
        except KeyError:
            logger.warning("Could not resolve header/footer color '%s'", color)
            color = "#666666"
        return HeaderFooter(
            enabled=bool(data.get("enabled", False)),
            height=str(data.get("height", "1cm")),
            content=cls._slots_from_dict(data.get("content")),
            font_size=str(data.get("font_size", "9pt")),
            color=color,
        )

    @classmethod
    def _first_page_from_dict(cls, data: dict[str, Any]) -> FirstPageConfig:
        return FirstPageConfig(
            different_first_page=bool(data.get("different_first_page", False)),
            header_enabled=bool(data.get("header_enabled", False)),
            footer_enabled=bool(data.get("footer_enabled", False)),
            header_content=cls._slots_from_dict(data.get("header_content")),
            footer_content=cls._slots_from_dict(data.get("footer_content")),
        )

    @staticmethod
    def _typography_from_dict(data: dict[str, Any],
                              palette: dict[str, str]) -> Typography:
        heading_colors = dict(DEFAULT_HEADING_COLORS)
        for key, value in (data.get("heading_colors") or {}).items():
            level = heading_level_from_key(key)
            if level is None:
                raise TemplateConfigError(
                    f"Heading color keys must be h1..h6, got '{key}'"
                )
            try:
                heading_colors[level] = resolve_color(value, palette)
            except KeyError:
                logger.warning(
                    "Could not resolve color '%s' for heading level %d", value, level
                )

        return Typography(
            base_font_size=str(data.get("base_font_size", "12pt")),
            line_height=float(data.get("line_height", 1.2)),
            paragraph_spacing=str(data.get("paragraph_spacing", "6pt")),
            paragraph_indent=str(data.get("paragraph_indent", "0cm")),
            font_family=str(data.get("font_family", "EB Garamond")),
            heading_colors=heading_colors,
        )

    @staticmethod
    def _styles_from_dict(data: dict[str, Any], palette: dict[str, str],
                          base_font_size: float) -> dict[str, ElementStyle]:
        if not isinstance(data, dict):
            raise TemplateConfigError("Template 'styles' must be a mapping")

        styles: dict[str, ElementStyle] = {}
        for name, css in data.items():
            if name not in ELEMENT_NAMES:
                logger.warning("Ignoring styles for unknown element '%s'", name)
                continue
            if not isinstance(css, dict):
                raise TemplateConfigError(f"Styles for '{name}' must be a mapping")

            css = dict(css)
            if css.get("color"):
                try:
                    css["color"] = resolve_color(str(css["color"]), palette)
                except KeyError:
                    logger.warning("Could not resolve color '%s' for '%s'",
                                   css["color"], name)
                    del css["color"]
            styles[name] = ElementStyle.from_css(css, base_font_size)
        return styles


# ── Loading ────────────────────────────────────────────────────────────


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if not isinstance(data, dict):
        raise TemplateConfigError(
            f"Expected a YAML mapping at the top level in {path}"
        )
    return data


def load_template(
    path: str | Path | None = None,
    overlay_path: str | Path | None = None,
) -> TemplateConfig:
    """Load a template YAML file, with an optional overlay merged on top.

    Raises
    ------
    FileNotFoundError
        If either file does not exist.
    TemplateConfigError
        If a file does not hold a YAML mapping or the template is invalid.
    """
    base_path = Path(path) if path else DEFAULT_TEMPLATE_PATH
    data = _read_yaml(base_path)
    logger.info("Template loaded from %s", base_path)

    if overlay_path is not None:
        data = deep_merge(data, _read_yaml(Path(overlay_path)))
        logger.info("Applied template overlay from %s", overlay_path)

    return TemplateConfig.from_dict(data)


def load_letterhead(path: str | Path) -> Letterhead:
    """Load the firm letterhead from a YAML (or JSON) mapping.

    Raises
    ------
    FileNotFoundError
        If *path* does not exist.
    TemplateConfigError
        If the file does not hold a mapping.
    """
    letterhead = Letterhead.from_dict(_read_yaml(Path(path)))
    logger.info("Letterhead loaded from %s", path)
    return letterhead
