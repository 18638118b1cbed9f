"""Readability-style candidate scoring over a completed element store.

Passes:
  1. Pick scorable elements (visible, not unlikely, tag in TAGS_TO_SCORE).
  2. Score their own text and propagate to up to five ancestors.
  3. Scale every candidate by ``1 - link density``.
  4. Select the best candidate, then climb towards better or sole-child parents.
  5. Merge qualifying siblings of the final candidate.
  6. Drop everything if the retained text is shorter than the threshold.
"""

from __future__ import annotations

import logging
import math
import re
from typing import NamedTuple

from .constants import (
    CHAR_THRESHOLD,
    COMMAS_RE,
    DEFAULT_VIDEO_RE,
    MAX_ANCESTOR_LEVELS,
    MIN_SCORABLE_TEXT_LENGTH,
    MIN_SIBLING_SCORE,
    NB_TOP_CANDIDATES,
    TAGS_TO_SCORE,
)
from .models import ElementRecord, ElementStore, HtmlTag
from .treequery import (
    ancestor_ids,
    class_weight,
    is_unlikely_candidate,
    link_density,
    own_text,
    subtree_ids,
    visible_text,
)

logger = logging.getLogger(__name__)

_TAG_BIAS: dict[HtmlTag, int] = {
    HtmlTag.ARTICLE: 5,
    HtmlTag.DIV: 5,
    HtmlTag.PRE: 3,
    HtmlTag.TD: 3,
    HtmlTag.BLOCKQUOTE: 3,
    HtmlTag.ADDRESS: -3,
    HtmlTag.OL: -3,
    HtmlTag.UL: -3,
    HtmlTag.DL: -3,
    HtmlTag.DD: -3,
    HtmlTag.DT: -3,
    HtmlTag.LI: -3,
    HtmlTag.FORM: -3,
    HtmlTag.H1: -5,
    HtmlTag.H2: -5,
    HtmlTag.H3: -5,
    HtmlTag.H4: -5,
    HtmlTag.H5: -5,
    HtmlTag.H6: -5,
    HtmlTag.TH: -5,
}

_VIDEO_TAGS: frozenset[HtmlTag] = frozenset(
    {HtmlTag.IFRAME, HtmlTag.EMBED, HtmlTag.VIDEO},
)

_SHORT_PARAGRAPH_LENGTH = 80
_PARAGRAPH_MAX_LINK_DENSITY = 0.25
_SENTENCE_END_RE = re.compile(r"\.( |$)")


class ScoringResult(NamedTuple):
    candidate_id: int | None
    retained_ids: frozenset[int]
    # (element id, final score) of the best candidates, best first
    top_candidates: tuple[tuple[int, float], ...] = ()

    @property
    def found(self) -> bool:
        return self.candidate_id is not None and bool(self.retained_ids)


_EMPTY = ScoringResult(None, frozenset())


def _is_eligible(record: ElementRecord) -> bool:
    return record.is_visible and not is_unlikely_candidate(record)


def initial_score(record: ElementRecord) -> float:
    """Seed score of a candidate: tag bias plus class/id weight."""
    return float(_TAG_BIAS.get(record.tag, 0) + class_weight(record))


def content_score(text: str) -> float:
    """Score contributed by a block of own text."""
    return 1 + len(COMMAS_RE.findall(text)) + min(math.floor(len(text) / 100), 3)


def _score_divider(level: int) -> int:
    if level == 0:
        return 1
    if level == 1:
        return 2
    return level * 3


def _propagate_scores(store: ElementStore, scores: dict[int, float]) -> None:
    for record in store:
        if record.tag.value not in TAGS_TO_SCORE or not _is_eligible(record):
            continue
        text = own_text(store, record.id)
        if len(text) < MIN_SCORABLE_TEXT_LENGTH:
            continue
        ancestors = ancestor_ids(store, record.id, MAX_ANCESTOR_LEVELS)
        if not ancestors:
            continue
        score = content_score(text)
        for level, ancestor_id in enumerate(ancestors):
            ancestor = store.get(ancestor_id)
            if not _is_eligible(ancestor):
                continue
            if ancestor_id not in scores:
                scores[ancestor_id] = initial_score(ancestor)
            scores[ancestor_id] += score / _score_divider(level)


def _contains_video(store: ElementStore, element_id: int, video_re: re.Pattern[str] | None) -> bool:
    if video_re is None:
        return False
    for current in subtree_ids(store, element_id):
        record = store.get(current)
        if record.tag in _VIDEO_TAGS or (record.tag is HtmlTag.UNKNOWN and record.tag_name == "object"):
            src = record.attributes.get("src") or record.attributes.get("data", "")
            if src and video_re.search(src):
                return True
    return False


def _accept_paragraph(store: ElementStore, record: ElementRecord) -> bool:
    text = visible_text(store, record.id)
    density = link_density(store, record.id)
    if len(text) > _SHORT_PARAGRAPH_LENGTH:
        return density < _PARAGRAPH_MAX_LINK_DENSITY
    return bool(text) and density == 0 and bool(_SENTENCE_END_RE.search(text))


def _collect_siblings(
    store: ElementStore,
    candidate_id: int,
    candidate_score: float,
    scores: dict[int, float],
    video_re: re.Pattern[str] | None,
) -> set[int]:
    candidate = store.get(candidate_id)
    retained: set[int] = set()
    if candidate.parent_id is None:
        retained.update(subtree_ids(store, candidate_id))
        return retained

    threshold = max(MIN_SIBLING_SCORE, candidate_score * 0.2)
    candidate_class = candidate.attributes.get("class", "")
    for sibling_id in store.children(candidate.parent_id):
        sibling = store.get(sibling_id)
        if not sibling.is_visible:
            continue
        append = sibling_id == candidate_id
        if not append:
            bonus = 0.0
            if candidate_class and sibling.attributes.get("class", "") == candidate_class:
                bonus = candidate_score * 0.2
            if scores.get(sibling_id, 0.0) + bonus >= threshold:
                append = True
            elif sibling.tag is HtmlTag.P:
                append = _accept_paragraph(store, sibling)
            if not append:
                append = _contains_video(store, sibling_id, video_re)
        if append:
            retained.update(subtree_ids(store, sibling_id))
    return retained


def score_document(
    store: ElementStore,
    *,
    nb_top_candidates: int = NB_TOP_CANDIDATES,
    char_threshold: int = CHAR_THRESHOLD,
    link_density_modifier: float = 0.0,
    allowed_video_regex: re.Pattern[str] | None = DEFAULT_VIDEO_RE,
    debug: bool = False,
) -> ScoringResult:
    """Find the main-content candidate in *store* and the ids to keep.

    Returns an empty :class:`ScoringResult` (``candidate_id`` None) when no
    element earns a positive score or the retained text is shorter than
    *char_threshold*.  Final scores are written back to each record's
    ``content_score``.

    *link_density_modifier* is accepted for configuration compatibility;
    the plain ``1 - link density`` penalty is always applied.
    """
    if debug:
        logger.debug(
            "Scoring %d element(s): top=%d threshold=%d link_density_modifier=%s",
            len(store), nb_top_candidates, char_threshold, link_density_modifier,
        )

    scores: dict[int, float] = {}
    _propagate_scores(store, scores)
    logger.debug("Found %d candidate(s)", len(scores))

    for element_id in scores:
        scores[element_id] *= 1 - link_density(store, element_id)
    for record in store:
        record.content_score = scores.get(record.id)

    # equal scores fall back to document order
    ranked = sorted(
        ((element_id, score) for element_id, score in scores.items() if score > 0),
        key=lambda item: (-item[1], item[0]),
    )
    if not ranked:
        logger.debug("No candidate with a positive score")
        return _EMPTY
    top_candidates = tuple(ranked[:max(nb_top_candidates, 1)])
    if debug:
        for element_id, score in top_candidates:
            logger.debug(
                "Top candidate <%s>#%d score=%.2f",
                store.get(element_id).tag_name, element_id, score,
            )

    candidate_id, candidate_score = ranked[0]

    # climb while the parent outscores the candidate
    parent = store.get(candidate_id).parent_id
    while parent is not None:
        parent_score = scores.get(parent, -1.0)
        if parent_score < candidate_score / 3 or not parent_score > candidate_score:
            break
        candidate_id, candidate_score = parent, parent_score
        parent = store.get(candidate_id).parent_id

    # climb through wrappers holding nothing but the candidate
    parent = store.get(candidate_id).parent_id
    while parent is not None:
        parent_record = store.get(parent)
        if parent_record.tag is HtmlTag.BODY or store.child_count(parent) != 1:
            break
        candidate_id = parent
        candidate_score = scores.get(parent, candidate_score)
        parent = parent_record.parent_id

    retained = _collect_siblings(store, candidate_id, candidate_score, scores, allowed_video_regex)

    text_length = retained_text_length(store, retained)
    logger.debug(
        "Candidate <%s>#%d score=%.2f retained=%d text_length=%d",
        store.get(candidate_id).tag_name, candidate_id, candidate_score, len(retained), text_length,
    )
    if text_length < char_threshold:
        logger.debug("Content length %d is below threshold %d", text_length, char_threshold)
        return _EMPTY

    return ScoringResult(candidate_id, frozenset(retained), top_candidates)


def retained_text_length(store: ElementStore, retained_ids: frozenset[int] | set[int]) -> int:
    """Own visible text length summed over *retained_ids*."""
    return sum(
        len(own_text(store, element_id))
        for element_id in retained_ids
        if store.get(element_id).is_visible
    )
