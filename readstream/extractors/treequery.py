"""Read-only helpers over a completed :class:`ElementStore`.

Shared by the scorer, the serializers and the metadata post-processing.
Every lookup goes through ``ElementStore.get``/``children`` so an unknown id
surfaces as :class:`~readstream.exceptions.StoreIntegrityError`.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from .constants import (
    NEGATIVE_RE,
    OK_MAYBE_ITS_A_CANDIDATE_RE,
    POSITIVE_RE,
    UNLIKELY_CANDIDATES_RE,
    UNLIKELY_ROLES,
)
from .models import HtmlTag

if TYPE_CHECKING:
    from .models import ElementRecord, ElementStore

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_space(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------

def parent_id(store: ElementStore, element_id: int) -> int | None:
    return store.get(element_id).parent_id


def ancestor_ids(store: ElementStore, element_id: int, max_depth: int = 5) -> list[int]:
    """Ancestors of *element_id*, nearest first; ``max_depth <= 0`` means all."""
    ancestors: list[int] = []
    current = store.get(element_id).parent_id
    while current is not None and (max_depth <= 0 or len(ancestors) < max_depth):
        ancestors.append(current)
        current = store.get(current).parent_id
    return ancestors


def descendant_ids(store: ElementStore, element_id: int) -> list[int]:
    """All descendants of *element_id* in document (pre-)order."""
    result: list[int] = []
    stack = list(reversed(store.children(element_id)))
    while stack:
        current = stack.pop()
        result.append(current)
        stack.extend(reversed(store.children(current)))
    return result


def subtree_ids(store: ElementStore, element_id: int) -> list[int]:
    return [element_id, *descendant_ids(store, element_id)]


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

def own_text(store: ElementStore, element_id: int, normalize: bool = True) -> str:
    """Direct text of *element_id* (children excluded)."""
    text = store.get(element_id).text
    return normalize_space(text) if normalize else text.strip()


def visible_text(store: ElementStore, element_id: int) -> str:
    """Whitespace-normalized text of every visible element in the subtree.

    Results are memoized on the store once it is complete, since the
    scorer asks for the same subtrees many times over.
    """
    cache = store.text_cache if store.complete else None
    if cache is not None and element_id in cache:
        return cache[element_id]

    pieces: list[str] = []
    for current in subtree_ids(store, element_id):
        record = store.get(current)
        if not record.is_visible:
            continue
        text = normalize_space(record.text)
        if text:
            pieces.append(text)
    result = " ".join(pieces)

    if cache is not None:
        cache[element_id] = result
    return result


def visible_text_length(store: ElementStore, element_id: int) -> int:
    return len(visible_text(store, element_id))


def raw_text(store: ElementStore, element_id: int) -> str:
    """Unescaped subtree text in source order, whitespace preserved."""
    record = store.get(element_id)
    children = store.children(element_id)
    parts: list[str] = []
    segments = iter(record.segments)
    pending = next(segments, None)
    for index, child in enumerate(children):
        while pending is not None and pending[0] <= index:
            parts.append(pending[1])
            pending = next(segments, None)
        parts.append(raw_text(store, child))
    while pending is not None:
        parts.append(pending[1])
        pending = next(segments, None)
    return "".join(parts)


# ---------------------------------------------------------------------------
# Heuristics
# ---------------------------------------------------------------------------

def class_weight(record: ElementRecord) -> int:
    """+25 / -25 depending on how the class and id attributes read."""
    match_string = record.class_and_id
    weight = 0
    if NEGATIVE_RE.search(match_string):
        weight -= 25
    if POSITIVE_RE.search(match_string):
        weight += 25
    return weight


def is_unlikely_candidate(record: ElementRecord) -> bool:
    """Return True if *record* looks like navigation, chrome or boilerplate."""
    if (record.role or "") in UNLIKELY_ROLES:
        return True
    if record.tag in (HtmlTag.BODY, HtmlTag.ARTICLE):
        return False
    match_string = record.class_and_id
    return bool(
        UNLIKELY_CANDIDATES_RE.search(match_string)
        and not OK_MAYBE_ITS_A_CANDIDATE_RE.search(match_string),
    )


def link_density(store: ElementStore, element_id: int) -> float:
    """Share of the visible subtree text that sits inside anchors.

    Same-page fragment links count for 0.3 of their length.
    """
    text_length = visible_text_length(store, element_id)
    if text_length == 0:
        return 0.0
    link_length = 0.0
    for current in subtree_ids(store, element_id):
        record = store.get(current)
        if record.tag is not HtmlTag.A or not record.is_visible:
            continue
        coefficient = 0.3 if record.attributes.get("href", "").startswith("#") else 1.0
        link_length += visible_text_length(store, current) * coefficient
    return link_length / text_length
