"""Element records and the append-only element store.

Records live in an id-keyed arena; the only structural link is the parent
id, with a child index kept alongside so sibling lookups stay cheap.
Ids are handed out in document order, so sorting by id is sorting by
position in the source.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from readstream.exceptions import StoreIntegrityError


class HtmlTag(str, Enum):
    """Closed set of tag names the pipeline reasons about."""

    A = "a"
    ADDRESS = "address"
    ARTICLE = "article"
    ASIDE = "aside"
    B = "b"
    BLOCKQUOTE = "blockquote"
    BODY = "body"
    BR = "br"
    CODE = "code"
    DD = "dd"
    DIV = "div"
    DL = "dl"
    DT = "dt"
    EM = "em"
    EMBED = "embed"
    FIGCAPTION = "figcaption"
    FIGURE = "figure"
    FOOTER = "footer"
    FORM = "form"
    H1 = "h1"
    H2 = "h2"
    H3 = "h3"
    H4 = "h4"
    H5 = "h5"
    H6 = "h6"
    HEAD = "head"
    HEADER = "header"
    HR = "hr"
    HTML = "html"
    I = "i"  # noqa: E741
    IFRAME = "iframe"
    IMG = "img"
    LI = "li"
    LINK = "link"
    MAIN = "main"
    META = "meta"
    NAV = "nav"
    OL = "ol"
    P = "p"
    PICTURE = "picture"
    PRE = "pre"
    SECTION = "section"
    SPAN = "span"
    STRONG = "strong"
    TABLE = "table"
    TBODY = "tbody"
    TD = "td"
    TFOOT = "tfoot"
    TH = "th"
    THEAD = "thead"
    TITLE = "title"
    TR = "tr"
    UL = "ul"
    VIDEO = "video"
    UNKNOWN = ""

    @classmethod
    def from_name(cls, name: str) -> HtmlTag:
        """Return the member for *name*, or ``UNKNOWN`` for anything else."""
        try:
            return cls(name.lower())
        except ValueError:
            return cls.UNKNOWN


HEADING_LEVELS: dict[HtmlTag, int] = {
    HtmlTag.H1: 1,
    HtmlTag.H2: 2,
    HtmlTag.H3: 3,
    HtmlTag.H4: 4,
    HtmlTag.H5: 5,
    HtmlTag.H6: 6,
}


@dataclass
class ElementRecord:
    """Everything the pipeline knows about one element."""

    id: int
    parent_id: int | None
    tag: HtmlTag
    tag_name: str
    attributes: dict[str, str] = field(default_factory=dict)
    is_visible: bool = True
    role: str | None = None
    is_data_table: bool = False
    is_code_block: bool = False
    content_score: float | None = None
    text: str = ""
    # (children opened before the run, run text), in arrival order
    segments: tuple[tuple[int, str], ...] = ()
    # open-element text buffer; None once finalized
    buffer: list[tuple[int, str]] | None = field(default_factory=list)

    @property
    def is_finalized(self) -> bool:
        return self.buffer is None

    @property
    def class_and_id(self) -> str:
        return f"{self.attributes.get('class', '')} {self.attributes.get('id', '')}"

    def append_text(self, position: int, chunk: str) -> None:
        if self.buffer is None:
            raise RuntimeError(f"<{self.tag_name}>#{self.id} is already finalized")
        self.buffer.append((position, chunk))

    def finalize(self) -> None:
        """Merge the buffered chunks into ``text`` and release the buffer."""
        if self.buffer is None:
            return
        merged: list[tuple[int, str]] = []
        for position, chunk in self.buffer:
            if merged and merged[-1][0] == position:
                merged[-1] = (position, merged[-1][1] + chunk)
            else:
                merged.append((position, chunk))
        self.segments = tuple(merged)
        self.text = "".join(chunk for _, chunk in merged)
        self.buffer = None


class ElementStore:
    """Append-only arena of :class:`ElementRecord` keyed by integer id."""

    def __init__(self) -> None:
        self._records: dict[int, ElementRecord] = {}
        self._children: dict[int, list[int]] = {}
        self._next_id = 0
        self.complete = False
        # visible-text memo, only consulted once the store is complete
        self.text_cache: dict[int, str] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, element_id: object) -> bool:
        return element_id in self._records

    def __iter__(self) -> Iterator[ElementRecord]:
        return iter(self._records.values())

    def ids(self) -> list[int]:
        return list(self._records)

    def create(
        self,
        parent_id: int | None,
        tag_name: str,
        attributes: dict[str, str],
        **flags: object,
    ) -> ElementRecord:
        """Create and register a new record under *parent_id*."""
        if parent_id is not None and parent_id not in self._records:
            raise StoreIntegrityError(parent_id)
        self._next_id += 1
        record = ElementRecord(
            id=self._next_id,
            parent_id=parent_id,
            tag=HtmlTag.from_name(tag_name),
            tag_name=tag_name.lower(),
            attributes=attributes,
            **flags,  # type: ignore[arg-type]
        )
        self._records[record.id] = record
        self._children[record.id] = []
        if parent_id is not None:
            self._children[parent_id].append(record.id)
        return record

    def get(self, element_id: int) -> ElementRecord:
        try:
            return self._records[element_id]
        except KeyError:
            raise StoreIntegrityError(element_id) from None

    def children(self, element_id: int) -> list[int]:
        """Child ids of *element_id* in document order."""
        try:
            return list(self._children[element_id])
        except KeyError:
            raise StoreIntegrityError(element_id) from None

    def child_count(self, element_id: int) -> int:
        try:
            return len(self._children[element_id])
        except KeyError:
            raise StoreIntegrityError(element_id) from None

    def root_ids(self) -> list[int]:
        return [r.id for r in self._records.values() if r.parent_id is None]
