"""readstream.parser - High-level Readability class.

Bundles a base URI and validated options into one reusable object.

Usage::

    from readstream import Readability

    reader = Readability("https://example.com/blog/post", char_threshold=250)
    result = reader.parse(html)

    # Chunks from an async HTTP body
    result = await reader.parse_async(response.aiter_text())
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from pathlib import Path
from typing import TYPE_CHECKING, Any

from readstream.extractors.urlnorm import validate_base_uri
from readstream.query import extract, extract_async, extract_events
from readstream.settings import build_options

if TYPE_CHECKING:
    from readstream.items import ExtractionResult
    from readstream.settings import ReadabilityOptions


class Readability:
    """Reusable extractor for documents fetched from *base_uri*.

    Options are validated once here; every ``parse*`` call then builds its
    own element store, so one instance may serve concurrent calls.

    Args:
        base_uri: Absolute URI the documents come from.
        **options: Any :class:`~readstream.settings.ReadabilityOptions` field.

    Raises:
        ConfigError: *base_uri* or an option value is unusable.
    """

    def __init__(self, base_uri: str, **options: Any) -> None:
        self.base_uri = validate_base_uri(base_uri)
        self.options: ReadabilityOptions = build_options(None, **options)

    @classmethod
    def from_profile(cls, base_uri: str, path: str | Path, **overrides: Any) -> Readability:
        """Create an instance with options read from a YAML profile."""
        from readstream.profiles import load_profile_data

        data = load_profile_data(path, base_uri)
        data.update(overrides)
        return cls(base_uri, **data)

    def parse(self, html: str | bytes) -> ExtractionResult | None:
        """Extract readable content from a complete document."""
        return extract(html, self.base_uri, self.options)

    async def parse_async(self, chunks: AsyncIterable[str | bytes]) -> ExtractionResult | None:
        """Extract readable content from HTML arriving in chunks."""
        return await extract_async(chunks, self.base_uri, self.options)

    def parse_events(self, events: Iterable[tuple[Any, ...]]) -> ExtractionResult | None:
        """Extract readable content from a captured parse-event sequence."""
        return extract_events(events, self.base_uri, self.options)
