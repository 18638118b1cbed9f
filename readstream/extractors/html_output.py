"""Render the retained subtree back to a cleaned HTML fragment."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from lxml import etree

from .models import ElementRecord, ElementStore, HtmlTag

logger = logging.getLogger(__name__)

# Attributes that carry no meaning once the content is lifted out of the page
_DROPPED_ATTRIBUTES: frozenset[str] = frozenset({"style", "onclick", "onload", "onerror"})

_NON_CONTENT_TAGS: frozenset[HtmlTag] = frozenset({HtmlTag.HEAD, HtmlTag.TITLE})

# control characters lxml refuses in text and attribute values
_XML_INVALID_RE = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _clean_classes(
    attributes: dict[str, str],
    keep_classes: bool,
    classes_to_preserve: frozenset[str],
) -> dict[str, str]:
    cleaned = {
        k: _XML_INVALID_RE.sub("", v) for k, v in attributes.items() if k not in _DROPPED_ATTRIBUTES
    }
    if keep_classes or "class" not in cleaned:
        return cleaned
    kept = [c for c in cleaned["class"].split() if c in classes_to_preserve]
    if kept:
        cleaned["class"] = " ".join(kept)
    else:
        del cleaned["class"]
    return cleaned


class _HtmlWriter:
    def __init__(
        self,
        store: ElementStore,
        retained_ids: frozenset[int],
        keep_classes: bool,
        classes_to_preserve: frozenset[str],
    ) -> None:
        self.store = store
        self.retained_ids = retained_ids
        self.keep_classes = keep_classes
        self.classes_to_preserve = classes_to_preserve

    def wanted(self, record: ElementRecord) -> bool:
        return (
            record.id in self.retained_ids
            and record.is_visible
            and record.tag not in _NON_CONTENT_TAGS
        )

    def build(self, record: ElementRecord) -> etree._Element:
        attributes = _clean_classes(record.attributes, self.keep_classes, self.classes_to_preserve)
        try:
            element = etree.Element(record.tag_name, attributes)
        except ValueError as exc:
            # names lxml rejects (e.g. "foo:bar") degrade to a span
            logger.debug("Replacing <%s> with <span>: %s", record.tag_name, exc)
            element = etree.Element("span")
        self.fill(element, record)
        return element

    def fill(self, element: etree._Element, record: ElementRecord) -> None:
        last: etree._Element | None = None
        segments = iter(record.segments)
        pending = next(segments, None)

        def add_text(text: str) -> None:
            text = _XML_INVALID_RE.sub("", text)
            if last is None:
                element.text = (element.text or "") + text
            else:
                last.tail = (last.tail or "") + text

        for index, child_id in enumerate(self.store.children(record.id)):
            while pending is not None and pending[0] <= index:
                add_text(pending[1])
                pending = next(segments, None)
            child = self.store.get(child_id)
            if self.wanted(child):
                last = self.build(child)
                element.append(last)
        while pending is not None:
            add_text(pending[1])
            pending = next(segments, None)


def render_content_html(
    store: ElementStore,
    retained_ids: Iterable[int],
    root_id: int | None,
    *,
    keep_classes: bool = False,
    classes_to_preserve: Iterable[str] = (),
) -> str:
    """Serialize the retained part of *root_id*'s subtree as an HTML fragment.

    The fragment is wrapped in a single ``<div>``.  Unless *keep_classes* is
    set, class tokens outside *classes_to_preserve* are removed.
    """
    if root_id is None:
        return ""
    writer = _HtmlWriter(store, frozenset(retained_ids), keep_classes, frozenset(classes_to_preserve))
    container = etree.Element("div")
    root = store.get(root_id)
    if writer.wanted(root):
        container.append(writer.build(root))
    else:
        for child_id in store.children(root_id):
            child = store.get(child_id)
            if writer.wanted(child):
                container.append(writer.build(child))
    return etree.tostring(container, method="html", encoding="unicode")
