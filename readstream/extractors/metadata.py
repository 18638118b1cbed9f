"""Metadata capture helpers.

During the streaming pass the tree builder maps ``<meta>`` tags and the
``<title>`` element onto :class:`~readstream.items.DocumentMetadata`
(first writer wins).  After scoring, :func:`complete_metadata` fills the
gaps it can derive from the extracted content:

    published_time → ISO 8601 via dateparser (raw value kept on failure)
    excerpt        → first retained paragraph
    language       → langdetect guess over the extracted text
"""

from __future__ import annotations

import html
import logging
import re
from typing import TYPE_CHECKING

import dateparser

from readstream.language import detect_language

from .constants import BYLINE_RE
from .models import HtmlTag
from .treequery import visible_text

if TYPE_CHECKING:
    from collections.abc import Iterable

    from readstream.items import DocumentMetadata

    from .models import ElementRecord, ElementStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# <meta> name/property → metadata field
# ---------------------------------------------------------------------------

_META_KEYS: dict[str, str] = {
    "og:title": "title",
    "twitter:title": "title",
    "og:article:author": "byline",
    "article:author": "byline",
    "author": "byline",
    "og:description": "excerpt",
    "description": "excerpt",
    "og:site_name": "site_name",
    "article:published_time": "published_time",
    "parsely-pub-date": "published_time",
}

_MAX_BYLINE_LENGTH = 100
_ISO_CLEANUP_RE = re.compile(r"\s+")


def decode_entities(text: str | None) -> str | None:
    """Decode named and numeric character references left in *text*."""
    if not text:
        return None
    return html.unescape(text)


def fields_from_meta(attributes: dict[str, str], decode: bool = True) -> dict[str, str]:
    """Map one ``<meta>`` tag's attributes to metadata field values.

    *decode* resolves character references; leave it off when the event
    source has already decoded attribute values (lxml does).
    """
    content = attributes.get("content")
    if not content:
        return {}
    extracted: dict[str, str] = {}
    for key in (attributes.get("property"), attributes.get("name")):
        if not key:
            continue
        field_name = _META_KEYS.get(key.strip().lower())
        if field_name and field_name not in extracted:
            value = decode_entities(content) if decode else content
            extracted[field_name] = value or ""
    return extracted


def looks_like_byline(record: ElementRecord) -> bool:
    """Return True if *record*'s attributes mark it as an author line."""
    attrs = record.attributes
    if attrs.get("rel", "").lower() == "author":
        return True
    if "author" in attrs.get("itemprop", "").lower():
        return True
    return bool(BYLINE_RE.search(record.class_and_id))


def byline_text(store: ElementStore, record: ElementRecord) -> str | None:
    """Visible text of a byline element, or None if it is empty or too long."""
    text = visible_text(store, record.id)
    if not text or len(text) >= _MAX_BYLINE_LENGTH:
        return None
    return text


# ---------------------------------------------------------------------------
# Post-processing
# ---------------------------------------------------------------------------

def parse_date(raw: str | None) -> str | None:
    """Parse a date string to ISO 8601, or return None on failure."""
    if not raw:
        return None
    raw = _ISO_CLEANUP_RE.sub(" ", raw.strip())
    try:
        parsed = dateparser.parse(
            raw,
            settings={
                "RETURN_AS_TIMEZONE_AWARE": True,
                "PREFER_DAY_OF_MONTH": "first",
                "PREFER_LOCALE_DATE_ORDER": False,
            },
        )
    except Exception as exc:
        logger.debug("Date parse failed for %r: %s", raw, exc)
        return None
    return parsed.isoformat() if parsed else None


def first_paragraph_text(store: ElementStore, retained_ids: Iterable[int]) -> str | None:
    for element_id in sorted(retained_ids):
        record = store.get(element_id)
        if record.tag is HtmlTag.P and record.is_visible:
            text = visible_text(store, element_id)
            if text:
                return text
    return None


def complete_metadata(
    metadata: DocumentMetadata,
    store: ElementStore,
    retained_ids: Iterable[int],
    content_text: str,
) -> DocumentMetadata:
    """Fill derived fields on *metadata* in place and return it."""
    if metadata.published_time:
        iso = parse_date(metadata.published_time)
        if iso:
            metadata.published_time = iso
        else:
            logger.debug("Keeping unparseable published time %r", metadata.published_time)

    if not metadata.excerpt:
        metadata.set_once("excerpt", first_paragraph_text(store, retained_ids))

    if not metadata.language:
        metadata.set_once("language", detect_language(content_text))

    return metadata
