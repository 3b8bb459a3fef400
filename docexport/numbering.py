"""Automatic heading numbering.

Two styles are supported:

- ``legal``: one alphabet per level of the numbered window,
  ``I.``, ``A.``, ``1.``, ``a.``, ``i.``, ``α.``
- ``numeric``: hierarchical, ``1.``, ``1.1.``, ``1.1.1.``

A :class:`HeadingNumberer` owns its counters.  Every conversion pass (body,
table of contents) creates its own instance so that passes never share
state; they agree only because they walk the same headings with the same
:class:`NumberingConfig`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

LEVEL_COUNT = 6
_ROMAN_MAX = 3999

_ROMAN_NUMERALS: list[tuple[int, str]] = [
    (1000, "M"),
    (900, "CM"),
    (500, "D"),
    (400, "CD"),
    (100, "C"),
    (90, "XC"),
    (50, "L"),
    (40, "XL"),
    (10, "X"),
    (9, "IX"),
    (5, "V"),
    (4, "IV"),
    (1, "I"),
]

# α..ω without the final sigma.
_GREEK_LETTERS = "αβγδεζηθικλμνξοπρστυφχψω"


class NumberingStyle(Enum):
    LEGAL = "legal"
    NUMERIC = "numeric"

    @classmethod
    def parse(cls, value: str | NumberingStyle) -> NumberingStyle:
        """Accept an enum member, ``"legal"``/``"juridique"`` or ``"numeric"``."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        if normalized == "juridique":
            return cls.LEGAL
        return cls(normalized)


@dataclass(frozen=True)
class NumberingConfig:
    """Which heading levels are numbered, and how."""
    enabled: bool = True
    style: NumberingStyle = NumberingStyle.LEGAL
    start_level: int = 1
    max_level: int = 4

    def __post_init__(self) -> None:
        object.__setattr__(self, "style", NumberingStyle.parse(self.style))
        for name in ("start_level", "max_level"):
            value = getattr(self, name)
            if not 1 <= value <= LEVEL_COUNT:
                raise ValueError(
                    f"{name} must be between 1 and {LEVEL_COUNT}, got {value}"
                )

    @property
    def last_level(self) -> int:
        """Deepest numbered heading level."""
        return self.start_level + self.max_level - 1

    def covers(self, level: int) -> bool:
        return self.start_level <= level <= self.last_level

    @classmethod
    def from_dict(cls, data: dict) -> NumberingConfig:
        """Build a config from camelCase or snake_case keys."""
        return cls(
            enabled=bool(data.get("enabled", True)),
            style=data.get("style", NumberingStyle.LEGAL),
            start_level=int(data.get("start_level", data.get("startLevel", 1))),
            max_level=int(data.get("max_level", data.get("maxLevel", 4))),
        )


DEFAULT_NUMBERING_CONFIG = NumberingConfig()


# ── Alphabets ──────────────────────────────────────────────────────────


def to_roman(value: int) -> str:
    """Upper-case Roman numerals; values outside 1..3999 stay Arabic."""
    if value <= 0 or value > _ROMAN_MAX:
        return str(value)
    result = []
    remaining = value
    for amount, numeral in _ROMAN_NUMERALS:
        while remaining >= amount:
            result.append(numeral)
            remaining -= amount
    return "".join(result)


def to_letter(value: int, uppercase: bool = True) -> str:
    """``1 -> A``; past Z the value stays Arabic."""
    if not 1 <= value <= 26:
        return str(value)
    return chr((64 if uppercase else 96) + value)


def to_greek(value: int) -> str:
    """``1 -> α``; past ω the value stays Arabic."""
    if not 1 <= value <= len(_GREEK_LETTERS):
        return str(value)
    return _GREEK_LETTERS[value - 1]


# ── HeadingNumberer ────────────────────────────────────────────────────


class HeadingNumberer:
    """Six-level counter producing formatted heading labels.

    Parameters
    ----------
    config : NumberingConfig
        Numbering window and style.  Defaults to
        :data:`DEFAULT_NUMBERING_CONFIG`.
    """

    def __init__(self, config: NumberingConfig | None = None) -> None:
        self._config = config or DEFAULT_NUMBERING_CONFIG
        self._counters = [0] * LEVEL_COUNT

    @property
    def config(self) -> NumberingConfig:
        return self._config

    @property
    def counters(self) -> tuple[int, ...]:
        """Snapshot of the six counters, level 1 first."""
        return tuple(self._counters)

    def reset(self) -> None:
        self._counters = [0] * LEVEL_COUNT

    def increment(self, level: int) -> str | None:
        """Advance the counter for heading *level* and return its label.

        Returns ``None`` when numbering is disabled or *level* is outside the
        configured window.  Every deeper counter is reset to zero.
        """
        if not self._config.enabled or not self._config.covers(level):
            return None

        idx = level - 1
        self._counters[idx] += 1
        for deeper in range(idx + 1, LEVEL_COUNT):
            self._counters[deeper] = 0

        label = self._format(level)
        logger.debug("Heading level %d numbered %s", level, label)
        return label

    # ── Formatting ────────────────────────────────────────────────────

    def _format(self, level: int) -> str:
        if self._config.style is NumberingStyle.LEGAL:
            return self._format_legal(level)
        return self._format_numeric(level)

    def _format_legal(self, level: int) -> str:
        position = level - self._config.start_level + 1
        value = self._counters[level - 1]

        match position:
            case 1:
                symbol = to_roman(value)
            case 2:
                symbol = to_letter(value, uppercase=True)
            case 3:
                symbol = str(value)
            case 4:
                symbol = to_letter(value, uppercase=False)
            case 5:
                symbol = to_roman(value).lower()
            case 6:
                symbol = to_greek(value)
            case _:
                symbol = str(value)
        return f"{symbol}."

    def _format_numeric(self, level: int) -> str:
        parts = [
            str(count)
            for count in self._counters[self._config.start_level - 1:level]
            if count > 0
        ]
        return ".".join(parts) + "."


def generate_numbering_preview(config: NumberingConfig) -> list[str]:
    """Return an indented sample outline numbered with *config*.

    Used by template configuration screens to show what the labels look
    like before exporting.
    """
    numberer = HeadingNumberer(config)
    sample = [
        (1, "Premier titre"),
        (2, "Sous-titre"),
        (2, "Autre sous-titre"),
        (3, "Détail"),
        (3, "Autre détail"),
        (1, "Deuxième titre"),
        (2, "Sous-titre"),
    ]

    preview: list[str] = []
    for level, text in sample:
        label = numberer.increment(level)
        if label:
            indent = "  " * (level - config.start_level)
            preview.append(f"{indent}{label} {text}")
    return preview
