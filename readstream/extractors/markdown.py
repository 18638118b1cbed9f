"""Render the retained part of an element store as Markdown.

Traversal is depth-first in document order.  An element's own text is
interleaved with its children's output at the position it arrived in the
source, escaped for Markdown except inside code and (more leniently) inside
link text.  List nesting, ordering and item numbers travel down the
recursion in a small immutable state object.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, NamedTuple

from readstream.exceptions import ReadabilityError

from .constants import DEFAULT_VIDEO_RE, VOID_ELEMENTS
from .models import HEADING_LEVELS, ElementRecord, ElementStore, HtmlTag
from .treequery import descendant_ids, raw_text
from .urlnorm import resolve_image_source, resolve_link

if TYPE_CHECKING:
    from readstream.items import DocumentMetadata

logger = logging.getLogger(__name__)

_EXCESSIVE_BLANK_LINES_RE = re.compile(r"\n{3,}")
_ESCAPE_RE = re.compile(r"([\\`*_{}\[\]()#+.!-])")
_LINK_TEXT_ESCAPE_RE = re.compile(r"([\\\[\]])")
_WHITESPACE_RE = re.compile(r"\s+")
_LINE_BREAKS_RE = re.compile(r"\s*\n\s*")
_LANGUAGE_CLASS_RE = re.compile(r"(?:^|\s)language-(\S+)")
_BACKTICK_RUN_RE = re.compile(r"`+")


def escape_markdown(text: str) -> str:
    """Backslash-escape every Markdown control character in *text*."""
    return _ESCAPE_RE.sub(r"\\\1", text)


def escape_link_text(text: str) -> str:
    """Escape only what would end link text early."""
    return _LINK_TEXT_ESCAPE_RE.sub(r"\\\1", text)


def _fence_for(body: str, minimum: int) -> str:
    longest = max((len(run) for run in _BACKTICK_RUN_RE.findall(body)), default=0)
    return "`" * max(minimum, longest + 1)


class _RenderState(NamedTuple):
    list_depth: int = 0
    ordered: bool = False
    item_number: int = 1
    in_link: bool = False


class MarkdownSerializer:
    """Serialize the retained subtree of *store* to Markdown.

    Args:
        store:               Completed element store.
        retained_ids:        Ids to render; everything else renders as empty.
        base_uri:            Base for resolving relative links and images.
        allowed_video_regex: Embedded videos whose source matches render as links.
        debug:               Log unhandled tags at DEBUG level.
    """

    def __init__(
        self,
        store: ElementStore,
        retained_ids: Iterable[int],
        base_uri: str,
        *,
        allowed_video_regex: re.Pattern[str] | None = DEFAULT_VIDEO_RE,
        debug: bool = False,
    ) -> None:
        self.store = store
        self.retained_ids = frozenset(retained_ids)
        self.base_uri = base_uri
        self._video_re = allowed_video_regex
        self._debug = debug
        self._handlers: dict[HtmlTag, Callable[[ElementRecord, _RenderState], str]] = {
            HtmlTag.P: self._paragraph,
            HtmlTag.BLOCKQUOTE: self._blockquote,
            HtmlTag.HR: lambda record, state: "---\n\n",
            HtmlTag.BR: lambda record, state: "  \n",
            HtmlTag.UL: self._list,
            HtmlTag.OL: self._list,
            HtmlTag.LI: self._list_item,
            HtmlTag.A: self._link,
            HtmlTag.IMG: self._image,
            HtmlTag.PRE: self._preformatted,
            HtmlTag.CODE: self._code,
            HtmlTag.STRONG: self._strong,
            HtmlTag.B: self._strong,
            HtmlTag.EM: self._emphasis,
            HtmlTag.I: self._emphasis,
            HtmlTag.TABLE: self._table,
            HtmlTag.IFRAME: self._video,
            HtmlTag.EMBED: self._video,
            HtmlTag.VIDEO: self._video,
            HtmlTag.HEAD: lambda record, state: "",
            HtmlTag.TITLE: lambda record, state: "",
        }
        for heading in HEADING_LEVELS:
            self._handlers[heading] = self._heading
        for wrapper in (
            HtmlTag.DIV, HtmlTag.SPAN, HtmlTag.SECTION, HtmlTag.ARTICLE, HtmlTag.FIGURE,
            HtmlTag.FIGCAPTION, HtmlTag.HEADER, HtmlTag.FOOTER, HtmlTag.ASIDE, HtmlTag.NAV,
            HtmlTag.MAIN,
        ):
            self._handlers[wrapper] = self._content

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def convert(self, root_id: int | None) -> str:
        """Render *root_id* (or, when it is not retained, its children)."""
        if root_id is None:
            logger.warning("Cannot generate Markdown: no root element")
            return ""
        unfinished = [i for i in self.retained_ids if not self.store.get(i).is_finalized]
        if unfinished:
            raise ReadabilityError(f"Elements {sorted(unfinished)} were never finalized")

        state = _RenderState()
        if root_id in self.retained_ids:
            markdown = self._render(root_id, state)
        else:
            markdown = "".join(self._render(child, state) for child in self.store.children(root_id))
        return _EXCESSIVE_BLANK_LINES_RE.sub("\n\n", markdown).strip()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _render(self, element_id: int, state: _RenderState) -> str:
        record = self.store.get(element_id)
        if element_id not in self.retained_ids or not record.is_visible:
            return ""
        handler = self._handlers.get(record.tag)
        if handler is not None:
            return handler(record, state)
        if record.tag_name in VOID_ELEMENTS:
            if self._debug:
                logger.debug("Ignoring void tag <%s>", record.tag_name)
            return ""
        if self._debug:
            logger.debug("Unhandled tag <%s>: rendering content only", record.tag_name)
        return self._content(record, state)

    def _text(self, text: str, state: _RenderState) -> str:
        text = _WHITESPACE_RE.sub(" ", text)
        return escape_link_text(text) if state.in_link else escape_markdown(text)

    def _content(
        self,
        record: ElementRecord,
        state: _RenderState,
        child_state: Callable[[ElementRecord], _RenderState] | None = None,
    ) -> str:
        """Own text interleaved with rendered children."""
        parts: list[str] = []
        segments = iter(record.segments)
        pending = next(segments, None)
        for index, child_id in enumerate(self.store.children(record.id)):
            while pending is not None and pending[0] <= index:
                parts.append(self._text(pending[1], state))
                pending = next(segments, None)
            next_state = child_state(self.store.get(child_id)) if child_state else state
            parts.append(self._render(child_id, next_state))
        while pending is not None:
            parts.append(self._text(pending[1], state))
            pending = next(segments, None)
        return "".join(parts)

    def _inline_content(self, record: ElementRecord, state: _RenderState) -> str:
        return _LINE_BREAKS_RE.sub(" ", self._content(record, state)).strip()

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _paragraph(self, record: ElementRecord, state: _RenderState) -> str:
        content = self._content(record, state).strip()
        return f"{content}\n\n" if content else ""

    def _heading(self, record: ElementRecord, state: _RenderState) -> str:
        content = self._inline_content(record, state)
        if not content:
            return ""
        return f"{'#' * HEADING_LEVELS[record.tag]} {content}\n\n"

    def _blockquote(self, record: ElementRecord, state: _RenderState) -> str:
        content = self._content(record, state).strip()
        if not content:
            return ""
        lines = [f"> {line.rstrip()}" if line.strip() else ">" for line in content.split("\n")]
        return "\n".join(lines) + "\n\n"

    def _list(self, record: ElementRecord, state: _RenderState) -> str:
        ordered = record.tag is HtmlTag.OL
        counter = 0

        def item_state(child: ElementRecord) -> _RenderState:
            nonlocal counter
            if child.tag is HtmlTag.LI and child.id in self.retained_ids and child.is_visible:
                counter += 1
            return _RenderState(state.list_depth + 1, ordered, max(counter, 1), state.in_link)

        return f"\n{self._content(record, state, item_state)}\n"

    def _list_item(self, record: ElementRecord, state: _RenderState) -> str:
        marker = f"{state.item_number}." if state.ordered and state.list_depth else "*"
        content = self._content(record, state).strip()
        lines = [line for line in content.split("\n") if line.strip()]
        if not lines:
            return ""
        # nested items already carry their own relative indent
        rest = "".join(f"\n  {line}" for line in lines[1:])
        return f"{marker} {lines[0].strip()}{rest}\n"

    def _preformatted(self, record: ElementRecord, state: _RenderState) -> str:
        code = next(
            (
                self.store.get(i)
                for i in descendant_ids(self.store, record.id)
                if self.store.get(i).tag is HtmlTag.CODE
            ),
            None,
        )
        language = ""
        if code is not None:
            match = _LANGUAGE_CLASS_RE.search(code.attributes.get("class", ""))
            language = match.group(1) if match else ""
            body = raw_text(self.store, code.id)
        else:
            body = raw_text(self.store, record.id)
        body = body.strip("\n").rstrip()
        fence = _fence_for(body, 3)
        return f"{fence}{language}\n{body}\n{fence}\n\n"

    def _table(self, record: ElementRecord, state: _RenderState) -> str:
        if not record.is_data_table:
            return self._content(record, state)
        rows: list[list[str]] = []
        for row_id in self._table_rows(record.id):
            cells = [
                self._inline_content(self.store.get(cell_id), state).replace("|", "\\|")
                for cell_id in self.store.children(row_id)
                if self.store.get(cell_id).tag in (HtmlTag.TD, HtmlTag.TH)
                and cell_id in self.retained_ids
                and self.store.get(cell_id).is_visible
            ]
            if cells:
                rows.append(cells)
        if not rows:
            return ""
        width = max(len(row) for row in rows)
        lines: list[str] = []
        for index, row in enumerate(rows):
            padded = row + [""] * (width - len(row))
            lines.append("| " + " | ".join(padded) + " |")
            if index == 0:
                lines.append("| " + " | ".join(["---"] * width) + " |")
        return "\n" + "\n".join(lines) + "\n\n"

    def _table_rows(self, table_id: int) -> list[int]:
        rows: list[int] = []
        for child_id in self.store.children(table_id):
            child = self.store.get(child_id)
            if child_id not in self.retained_ids or not child.is_visible:
                continue
            if child.tag is HtmlTag.TR:
                rows.append(child_id)
            elif child.tag in (HtmlTag.THEAD, HtmlTag.TBODY, HtmlTag.TFOOT):
                rows.extend(
                    i for i in self.store.children(child_id)
                    if self.store.get(i).tag is HtmlTag.TR
                    and i in self.retained_ids
                    and self.store.get(i).is_visible
                )
        return rows

    # ------------------------------------------------------------------
    # Inline
    # ------------------------------------------------------------------

    def _link(self, record: ElementRecord, state: _RenderState) -> str:
        text = self._inline_content(record, state._replace(in_link=True))
        href = record.attributes.get("href", "").strip()
        if not text:
            return ""
        if not href or href.lower().startswith("javascript:"):
            return text
        return f"[{text}]({resolve_link(href, self.base_uri)})"

    def _image(self, record: ElementRecord, state: _RenderState) -> str:
        src = record.attributes.get("src", "").strip()
        if not src:
            return ""
        src = resolve_image_source(src, self.base_uri)
        alt = escape_markdown(_WHITESPACE_RE.sub(" ", record.attributes.get("alt", "")).strip())
        title = record.attributes.get("title", "").strip()
        title = title.replace("\"", "\\\"")
        title_part = f" \"{title}\"" if title else ""
        image = f"![{alt}]({src}{title_part})"
        return image if state.in_link else f"{image}\n\n"

    def _code(self, record: ElementRecord, state: _RenderState) -> str:
        if record.is_code_block:
            return ""
        body = _WHITESPACE_RE.sub(" ", raw_text(self.store, record.id)).strip()
        if not body:
            return ""
        fence = _fence_for(body, 1)
        if body.startswith("`") or body.endswith("`"):
            body = f" {body} "
        return f"{fence}{body}{fence}"

    def _strong(self, record: ElementRecord, state: _RenderState) -> str:
        content = self._content(record, state).strip()
        return f"**{content}**" if content else ""

    def _emphasis(self, record: ElementRecord, state: _RenderState) -> str:
        content = self._content(record, state).strip()
        return f"*{content}*" if content else ""

    def _video(self, record: ElementRecord, state: _RenderState) -> str:
        src = record.attributes.get("src", "")
        if not src:
            src = next(
                (
                    self.store.get(i).attributes.get("src", "")
                    for i in self.store.children(record.id)
                    if self.store.get(i).tag_name == "source"
                ),
                "",
            )
        if not src or self._video_re is None or not self._video_re.search(src):
            return ""
        link = f"[Embedded video]({resolve_image_source(src, self.base_uri)})"
        return link if state.in_link else f"{link}\n\n"


def format_markdown_document(metadata: DocumentMetadata, content_markdown: str) -> str:
    """Prefix *content_markdown* with a header built from *metadata*.

    The header carries the title, a bold field per known fact (author,
    publication time, site and language) and the excerpt as a quote, and is
    closed by a horizontal rule.  Missing fields are left out; with no
    metadata at all the content is returned unchanged.
    """
    lines: list[str] = []
    if metadata.title:
        lines += [f"# {metadata.title}", ""]

    fields = [
        ("Author", metadata.byline),
        ("Published", metadata.published_time),
        ("Site", metadata.site_name),
        ("Language", metadata.language),
    ]
    facts = [f"**{label}:** {value}" for label, value in fields if value]
    if facts:
        lines += [*facts, ""]

    if metadata.excerpt:
        lines += [f"> {_LINE_BREAKS_RE.sub(' ', metadata.excerpt)}", ""]

    if lines:
        lines += ["---", ""]
    lines.append(content_markdown)
    return "\n".join(lines)
