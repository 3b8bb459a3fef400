"""Data models for the abstract document tree and export side outputs.

The abstract tree is the editor's JSON document: every node has a ``type``
tag and optionally ``attrs``, ``marks``, ``content`` and (for text nodes)
``text``.  :class:`DocumentNode` is a thin typed view over that JSON.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)


class NodeType(str, Enum):
    DOC = "doc"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    TEXT = "text"
    HARD_BREAK = "hardBreak"
    BULLET_LIST = "bulletList"
    ORDERED_LIST = "orderedList"
    LIST_ITEM = "listItem"
    BLOCKQUOTE = "blockquote"
    CODE_BLOCK = "codeBlock"
    TABLE = "table"
    TABLE_ROW = "tableRow"
    TABLE_CELL = "tableCell"
    TABLE_HEADER = "tableHeader"
    HORIZONTAL_RULE = "horizontalRule"
    PAGE_BREAK = "pageBreak"
    IMAGE = "image"
    TASK_LIST = "taskList"
    TASK_ITEM = "taskItem"
    FOOTNOTE = "footnote"


class MarkType(str, Enum):
    BOLD = "bold"
    ITALIC = "italic"
    UNDERLINE = "underline"
    STRIKE = "strike"
    HIGHLIGHT = "highlight"
    CODE = "code"
    LINK = "link"
    SUBSCRIPT = "subscript"
    SUPERSCRIPT = "superscript"
    TEXT_STYLE = "textStyle"


# Nodes that structure content and never carry inline marks.
CONTAINER_TYPES = frozenset({
    NodeType.DOC.value,
    NodeType.PARAGRAPH.value,
    NodeType.HEADING.value,
    NodeType.BULLET_LIST.value,
    NodeType.ORDERED_LIST.value,
    NodeType.LIST_ITEM.value,
    NodeType.TASK_LIST.value,
    NodeType.TASK_ITEM.value,
    NodeType.TABLE.value,
    NodeType.TABLE_ROW.value,
    NodeType.TABLE_CELL.value,
    NodeType.TABLE_HEADER.value,
})

# Nodes rendered from their own text or attributes; the converters never
# visit their children.
LEAF_TYPES = frozenset({
    NodeType.TEXT.value,
    NodeType.HARD_BREAK.value,
    NodeType.HORIZONTAL_RULE.value,
    NodeType.PAGE_BREAK.value,
    NodeType.IMAGE.value,
    NodeType.FOOTNOTE.value,
    NodeType.CODE_BLOCK.value,
})


# ── Abstract document tree ──────────────────────────────────────────


@dataclass
class Mark:
    """An inline formatting tag applied to a text node."""
    type: str
    attrs: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Mark:
        return cls(type=str(data.get("type", "")),
                   attrs=dict(data.get("attrs") or {}))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type}
        if self.attrs:
            result["attrs"] = dict(self.attrs)
        return result


@dataclass
class DocumentNode:
    """One node of the abstract document tree."""
    type: str
    attrs: dict[str, Any] = field(default_factory=dict)
    marks: list[Mark] = field(default_factory=list)
    content: list[DocumentNode] = field(default_factory=list)
    text: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentNode:
        """Build a node (recursively) from editor JSON.

        Text nodes lose any ``content`` and container nodes lose any
        ``marks``; both are logged.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Expected a mapping for a document node, got {type(data).__name__}")

        node_type = str(data.get("type", ""))
        marks = [Mark.from_dict(m) for m in data.get("marks") or [] if isinstance(m, dict)]
        children = [cls.from_dict(c) for c in data.get("content") or [] if isinstance(c, dict)]

        if node_type == NodeType.TEXT.value and children:
            logger.warning("Dropping %d child node(s) of a text node", len(children))
            children = []
        if node_type in CONTAINER_TYPES and marks:
            logger.warning("Dropping marks on container node '%s'", node_type)
            marks = []

        text = data.get("text")
        return cls(
            type=node_type,
            attrs=dict(data.get("attrs") or {}),
            marks=marks,
            content=children,
            text=str(text) if text is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type}
        if self.attrs:
            result["attrs"] = dict(self.attrs)
        if self.marks:
            result["marks"] = [m.to_dict() for m in self.marks]
        if self.content:
            result["content"] = [c.to_dict() for c in self.content]
        if self.text is not None:
            result["text"] = self.text
        return result

    def attr(self, name: str, default: Any = None) -> Any:
        value = self.attrs.get(name)
        return default if value is None else value

    def walk(self) -> Iterator[DocumentNode]:
        """Yield this node and its descendants in pre-order."""
        yield self
        for child in self.content:
            yield from child.walk()

    def headings(self) -> Iterator[DocumentNode]:
        """Yield the headings the converters render, in rendering order.

        Pre-order, without descending into :data:`LEAF_TYPES`.
        """
        if self.type == NodeType.HEADING.value:
            yield self
        if self.type in LEAF_TYPES:
            return
        for child in self.content:
            yield from child.headings()

    def plain_text(self) -> str:
        """Concatenated text of the subtree."""
        if self.type == NodeType.TEXT.value:
            return self.text or ""
        return "".join(child.plain_text() for child in self.content)


# ── Export metadata and side outputs ────────────────────────────────


@dataclass
class DocumentMetadata:
    """Document-level values used by placeholders and file properties."""
    title: str = ""
    number: str = ""
    author: str = ""


@dataclass
class Letterhead:
    """Law-firm letterhead printed in place of the template header.

    :meth:`from_dict` accepts the field names below as well as the editor's
    lawyer-profile keys (``cabinet``, ``civilite``, ``prenom``, ``nom``,
    ``adresse``, ``codePostal``, ``ville``, ``telephone``, ``email``,
    ``barreau``, ``numeroToque``).
    """
    firm: str = ""
    civility: str = ""
    first_name: str = ""
    last_name: str = ""
    address: str = ""
    postal_code: str = ""
    city: str = ""
    phone: str = ""
    email: str = ""
    bar: str = ""
    bar_number: str = ""

    _PROFILE_KEYS = {
        "cabinet": "firm",
        "civilite": "civility",
        "prenom": "first_name",
        "nom": "last_name",
        "adresse": "address",
        "codePostal": "postal_code",
        "ville": "city",
        "telephone": "phone",
        "barreau": "bar",
        "numeroToque": "bar_number",
    }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Letterhead:
        fields = set(cls.__dataclass_fields__)
        values: dict[str, str] = {}
        for key, value in data.items():
            name = cls._PROFILE_KEYS.get(key, key)
            if name in fields and value is not None:
                values[name] = str(value)
            else:
                logger.debug("Ignoring letterhead key '%s'", key)
        return cls(**values)

    def is_empty(self) -> bool:
        """Without a firm or a surname there is nothing to print."""
        return not (self.firm or self.last_name)

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.civility, self.first_name, self.last_name) if p)

    @property
    def full_address(self) -> str:
        town = " ".join(p for p in (self.postal_code, self.city) if p)
        return ", ".join(p for p in (self.address, town) if p)

    @property
    def contact_line(self) -> str:
        parts = [f"Tél. {self.phone}" if self.phone else "", self.email]
        return " – ".join(p for p in parts if p)

    @property
    def bar_line(self) -> str:
        if not self.bar:
            return ""
        if self.bar_number:
            return f"Barreau de {self.bar} – Toque {self.bar_number}"
        return f"Barreau de {self.bar}"


@dataclass(frozen=True)
class FootnoteRecord:
    """A footnote collected during body conversion."""
    ordinal: int
    content: str


@dataclass(frozen=True)
class TocEntry:
    """One line of the table of contents."""
    level: int
    number_label: Optional[str]
    text: str

    @property
    def display_text(self) -> str:
        if self.number_label:
            return f"{self.number_label} {self.text}"
        return self.text


class FootnoteCollector:
    """Accumulates footnotes for a single export.

    Owned by the caller of a converter; a new collector is created for
    every export so that exports never see each other's footnotes.
    """

    def __init__(self) -> None:
        self._records: list[FootnoteRecord] = []

    def add(self, content: str) -> FootnoteRecord:
        record = FootnoteRecord(ordinal=len(self._records) + 1, content=content)
        self._records.append(record)
        return record

    @property
    def records(self) -> list[FootnoteRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)
