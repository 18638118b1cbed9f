"""readstream - turn streamed HTML into readable Markdown.

Quick usage::

    from readstream import extract

    result = extract(html, "https://example.com/blog/some-post")
    if result is not None:
        print(result.metadata.title)
        print(result.markdown)

Streaming usage::

    from readstream import extract_async

    result = await extract_async(chunks, "https://example.com/blog/some-post")

Reusable configuration::

    from readstream import Readability

    reader = Readability("https://example.com", char_threshold=250, keep_classes=True)
    result = reader.parse(html)
"""

from readstream.exceptions import ConfigError, ReadabilityError, StoreIntegrityError
from readstream.items import DocumentMetadata, ExtractionResult
from readstream.parser import Readability
from readstream.profiles import load_profile
from readstream.query import extract, extract_async, extract_events
from readstream.settings import ReadabilityOptions

__version__ = "0.1.0"
__all__ = [
    "ConfigError",
    "DocumentMetadata",
    "ExtractionResult",
    "Readability",
    "ReadabilityError",
    "ReadabilityOptions",
    "StoreIntegrityError",
    "extract",
    "extract_async",
    "extract_events",
    "load_profile",
]
