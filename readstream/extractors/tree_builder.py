"""Streaming tree builder: parse events in, element store out.

:class:`TreeBuilder` implements the lxml parser-target protocol
(``start``/``data``/``end``/``close``), so it can be handed straight to
``lxml.etree.HTMLParser(target=...)``.  Any other tokenizer can drive the
same four methods as long as events arrive once each, in document order.

Usage::

    from lxml import etree

    builder = TreeBuilder(decode_entities=False)
    parser = etree.HTMLParser(target=builder)
    parser.feed(html)
    store = parser.close()
    print(builder.metadata.title)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, MutableMapping
from typing import NamedTuple

from readstream.items import DocumentMetadata

from .constants import (
    DEFAULT_VIDEO_RE,
    DISPLAY_NONE_RE,
    LAZY_IMAGE_ELEMENTS,
    SKIPPED_ELEMENTS,
    VISIBILITY_HIDDEN_RE,
    VOID_ELEMENTS,
)
from .metadata import byline_text, decode_entities, fields_from_meta, looks_like_byline
from .models import ElementRecord, ElementStore, HtmlTag

logger = logging.getLogger(__name__)

# (primary attribute, lazy-load fallback)
_LAZY_ATTRIBUTES: tuple[tuple[str, str], ...] = (("src", "data-src"), ("srcset", "data-srcset"))


class _OpenElement(NamedTuple):
    tag_name: str
    element_id: int | None  # None: open but not recorded
    muted: bool  # text inside is dropped


def _is_visible(attributes: Mapping[str, str]) -> bool:
    if "hidden" in attributes:
        return False
    style = attributes.get("style", "")
    if DISPLAY_NONE_RE.search(style) or VISIBILITY_HIDDEN_RE.search(style):
        return False
    # wikimedia math fallback images are aria-hidden but still shown
    return not (
        attributes.get("aria-hidden", "").lower() == "true"
        and "fallback-image" not in attributes.get("class", "")
    )


class TreeBuilder:
    """Builds an :class:`ElementStore` from ordered parse events.

    Args:
        store:               Store to fill; a fresh one is created when omitted.
        metadata:            Metadata record to fill; fresh when omitted.
        max_elems_to_parse:  Stop recording new elements after this many
                             (0 = unlimited).  Already-open elements still
                             finalize normally.
        allowed_video_regex: ``iframe`` elements whose ``src`` matches are
                             kept instead of skipped.
        decode_entities:     Resolve character references in titles and
                             ``<meta>`` content.  Turn off for tokenizers
                             that already decode them, such as lxml.
        debug:               Trace every event at DEBUG level.
    """

    def __init__(
        self,
        store: ElementStore | None = None,
        metadata: DocumentMetadata | None = None,
        *,
        max_elems_to_parse: int = 0,
        allowed_video_regex: re.Pattern[str] | None = DEFAULT_VIDEO_RE,
        decode_entities: bool = True,
        debug: bool = False,
    ) -> None:
        self.store = store if store is not None else ElementStore()
        self.metadata = metadata if metadata is not None else DocumentMetadata()
        self._max_elems = max_elems_to_parse
        self._video_re = allowed_video_regex
        self._decode = decode_entities
        self._debug = debug
        self._stack: list[_OpenElement] = []
        # last chunk appended to each open element, for re-delivery suppression
        self._last_chunk: dict[int, str] = {}
        # open elements inside a <pre>, where whitespace-only text matters
        self._preformatted: set[int] = set()
        self._cap_logged = False
        self._closed = False

    # ------------------------------------------------------------------
    # Stack helpers
    # ------------------------------------------------------------------

    def _current_element_id(self) -> int | None:
        for entry in reversed(self._stack):
            if entry.element_id is not None:
                return entry.element_id
        return None

    def _inside_skipped(self) -> bool:
        return any(entry.muted for entry in self._stack)

    def _text_target(self) -> int | None:
        for entry in reversed(self._stack):
            if entry.muted:
                return None
            if entry.element_id is not None:
                return entry.element_id
        return None

    # ------------------------------------------------------------------
    # Parser-target protocol
    # ------------------------------------------------------------------

    def start(self, tag: str, attrib: Mapping[str, str]) -> None:
        if self._closed:
            logger.warning("Ignoring <%s> received after document end", tag)
            return
        tag_name = tag.lower()
        attributes = {str(k).lower(): "" if v is None else str(v) for k, v in attrib.items()}
        is_void = tag_name in VOID_ELEMENTS

        if self._inside_skipped() or self._should_skip(tag_name, attributes):
            if self._debug:
                logger.debug("[SKIP] <%s>", tag_name)
            if not is_void:
                self._stack.append(_OpenElement(tag_name, None, muted=True))
            return

        if self._max_elems > 0 and len(self.store) >= self._max_elems:
            if not self._cap_logged:
                logger.debug("Reached max elements to parse (%d); recording stops", self._max_elems)
                self._cap_logged = True
            if not is_void:
                self._stack.append(_OpenElement(tag_name, None, muted=False))
            return

        parent_id = self._current_element_id()
        parent = self.store.get(parent_id) if parent_id is not None else None
        if parent_id is not None:
            # a child now separates the parent's earlier and later text
            self._last_chunk.pop(parent_id, None)

        if tag_name in LAZY_IMAGE_ELEMENTS:
            self._promote_lazy_image(attrib, attributes)

        record = self.store.create(
            parent_id,
            tag_name,
            attributes,
            is_visible=_is_visible(attributes) and (parent is None or parent.is_visible),
            role=attributes.get("role"),
            is_data_table=(
                tag_name == "table"
                and attributes.get("role") != "presentation"
                and attributes.get("datatable") != "0"
            ),
            is_code_block=(
                tag_name == "pre" or (tag_name == "code" and parent is not None and parent.tag is HtmlTag.PRE)
            ),
        )
        if tag_name == "pre" or (parent_id is not None and parent_id in self._preformatted):
            self._preformatted.add(record.id)

        if record.tag is HtmlTag.META:
            for field_name, value in fields_from_meta(attributes, decode=self._decode).items():
                self.metadata.set_once(field_name, value)
        elif record.tag is HtmlTag.HTML:
            self.metadata.set_once("language", attributes.get("lang"))
            self.metadata.set_once("direction", attributes.get("dir"))

        if is_void:
            record.finalize()
            if self._debug:
                logger.debug("[VOID] <%s>#%d", tag_name, record.id)
            return

        self._stack.append(_OpenElement(tag_name, record.id, muted=False))
        if self._debug:
            logger.debug("[START] <%s>#%d parent=%s", tag_name, record.id, parent_id)

    def data(self, chunk: str) -> None:
        if self._closed:
            return
        target = self._text_target()
        if target is None:
            return
        if not chunk.strip() and target not in self._preformatted:
            return
        if self._last_chunk.get(target) == chunk:
            if self._debug:
                logger.debug("Skipped repeated chunk for #%d", target)
            return
        self.store.get(target).append_text(self.store.child_count(target), chunk)
        self._last_chunk[target] = chunk

    def end(self, tag: str) -> None:
        if self._closed:
            return
        tag_name = tag.lower()
        match_index = next(
            (i for i in range(len(self._stack) - 1, -1, -1) if self._stack[i].tag_name == tag_name),
            None,
        )
        if match_index is None:
            if tag_name not in VOID_ELEMENTS:
                logger.warning("Unbalanced end tag </%s> ignored", tag_name)
            return

        while len(self._stack) > match_index + 1:
            orphan = self._stack.pop()
            logger.warning("Implicitly closing <%s> before </%s>", orphan.tag_name, tag_name)
            self._finish(orphan)
        self._finish(self._stack.pop())

    def close(self) -> ElementStore:
        """Finalize every still-open element and mark the store complete."""
        if self._closed:
            return self.store
        if self._stack:
            logger.warning(
                "Document ended with %d open element(s): %s",
                len(self._stack),
                ", ".join(entry.tag_name for entry in self._stack),
            )
        while self._stack:
            self._finish(self._stack.pop())
        self._last_chunk.clear()
        self._preformatted.clear()
        self.store.complete = True
        self._closed = True
        logger.debug("Tree built: %d element(s)", len(self.store))
        return self.store

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _should_skip(self, tag_name: str, attributes: Mapping[str, str]) -> bool:
        if tag_name == "link":
            return attributes.get("rel", "").lower() == "stylesheet"
        if tag_name == "iframe":
            src = attributes.get("src", "")
            return not (self._video_re is not None and src and self._video_re.search(src))
        return tag_name in SKIPPED_ELEMENTS

    def _promote_lazy_image(self, attrib: Mapping[str, str], attributes: dict[str, str]) -> None:
        """Move ``data-src``/``data-srcset`` into ``src``/``srcset`` when those are missing.

        The event source's own mapping is rewritten as well, so a host that
        re-emits the element sees the promoted attributes.
        """
        for primary, fallback in _LAZY_ATTRIBUTES:
            if attributes.get(primary) or not attributes.get(fallback):
                continue
            value = attributes.pop(fallback)
            attributes[primary] = value
            if isinstance(attrib, MutableMapping):
                for key in [k for k in attrib if str(k).lower() in (primary, fallback)]:
                    del attrib[key]
                attrib[primary] = value

    def _finish(self, entry: _OpenElement) -> None:
        if entry.element_id is None:
            return
        record = self.store.get(entry.element_id)
        self._last_chunk.pop(record.id, None)
        self._preformatted.discard(record.id)
        record.finalize()
        if self._debug:
            logger.debug("[END] <%s>#%d text=%r", record.tag_name, record.id, record.text[:50])
        self._capture_on_close(record)

    def _capture_on_close(self, record: ElementRecord) -> None:
        if record.tag is HtmlTag.TITLE:
            title = record.text.strip()
            self.metadata.set_once("title", decode_entities(title) if self._decode else title)
        elif not self.metadata.byline and record.is_visible and looks_like_byline(record):
            self.metadata.set_once("byline", byline_text(self.store, record))
