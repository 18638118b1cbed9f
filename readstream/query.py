"""Top-level extraction API.

Turns HTML (a whole document, an async stream of chunks, or a captured
sequence of parse events) into readable Markdown plus document metadata.

Usage::

    from readstream import extract

    result = extract(html, "https://example.com/post")
    if result is not None:
        print(result.metadata.title)
        print(result.markdown)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Iterable
from typing import Any

from lxml import etree

from readstream.exceptions import ReadabilityError
from readstream.extractors.html_output import render_content_html
from readstream.extractors.markdown import MarkdownSerializer
from readstream.extractors.metadata import complete_metadata
from readstream.extractors.scoring import retained_text_length, score_document
from readstream.extractors.tree_builder import TreeBuilder
from readstream.extractors.treequery import normalize_space, visible_text
from readstream.extractors.urlnorm import validate_base_uri
from readstream.items import ExtractionResult
from readstream.settings import ReadabilityOptions, build_options

logger = logging.getLogger(__name__)

Options = ReadabilityOptions | dict[str, Any] | None


# ---------------------------------------------------------------------------
# Pipeline pieces
# ---------------------------------------------------------------------------

def _prepare(
    base_uri: str,
    options: Options,
    *,
    decode_entities: bool,
) -> tuple[str, ReadabilityOptions, TreeBuilder]:
    base_uri = validate_base_uri(base_uri)
    opts = build_options(options)
    builder = TreeBuilder(
        max_elems_to_parse=opts.max_elems_to_parse,
        allowed_video_regex=opts.allowed_video_regex,
        decode_entities=decode_entities,
        debug=opts.debug,
    )
    return base_uri, opts, builder


def _close_parser(parser: etree.HTMLParser, builder: TreeBuilder, fed: bool) -> None:
    if fed:
        try:
            parser.close()
        except etree.XMLSyntaxError as exc:
            # libxml2 gives up on some inputs; whatever was built still counts
            logger.warning("HTML parser stopped early: %s", exc)
    builder.close()


def _finish_extraction(
    builder: TreeBuilder,
    base_uri: str,
    opts: ReadabilityOptions,
) -> ExtractionResult | None:
    store = builder.store
    if not store.complete:
        raise ReadabilityError("Element store was not closed before scoring")

    scoring = score_document(
        store,
        nb_top_candidates=opts.nb_top_candidates,
        char_threshold=opts.char_threshold,
        link_density_modifier=opts.link_density_modifier,
        allowed_video_regex=opts.allowed_video_regex,
        debug=opts.debug,
    )
    if not scoring.found:
        logger.info("No readable content found for %s", base_uri)
        return None

    candidate = store.get(scoring.candidate_id)
    root_id = candidate.parent_id if candidate.parent_id is not None else candidate.id

    markdown = MarkdownSerializer(
        store,
        scoring.retained_ids,
        base_uri,
        allowed_video_regex=opts.allowed_video_regex,
        debug=opts.debug,
    ).convert(root_id)
    content_html = render_content_html(
        store,
        scoring.retained_ids,
        root_id,
        keep_classes=opts.keep_classes,
        classes_to_preserve=opts.classes_to_preserve,
    )

    content_text = normalize_space(" ".join(
        visible_text(store, element_id)
        for element_id in sorted(scoring.retained_ids)
        if store.get(element_id).parent_id not in scoring.retained_ids
    ))
    metadata = complete_metadata(builder.metadata, store, scoring.retained_ids, content_text)

    result = ExtractionResult(
        markdown=markdown,
        metadata=metadata,
        content_html=content_html,
        text_length=retained_text_length(store, scoring.retained_ids),
        candidate_id=scoring.candidate_id,
    )
    logger.info(
        "Extracted %d word(s) from %s (candidate <%s>#%d)",
        result.word_count, base_uri, candidate.tag_name, candidate.id,
    )
    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract(html: str | bytes, base_uri: str, options: Options = None) -> ExtractionResult | None:
    """Extract the readable content of *html*.

    Args:
        html:     Full HTML document as text or raw bytes.
        base_uri: Absolute URI the document was fetched from; relative links
                  and images are resolved against it.
        options:  :class:`~readstream.settings.ReadabilityOptions` or a dict
                  of option values.

    Returns:
        :class:`~readstream.items.ExtractionResult`, or ``None`` when the
        document has no qualifying content.

    Raises:
        ConfigError: *base_uri* or *options* are unusable.
    """
    base_uri, opts, builder = _prepare(base_uri, options, decode_entities=False)
    parser = etree.HTMLParser(target=builder)
    fed = bool(html and html.strip())
    if fed:
        parser.feed(html)
    _close_parser(parser, builder, fed)
    return _finish_extraction(builder, base_uri, opts)


async def extract_async(
    chunks: AsyncIterable[str | bytes],
    base_uri: str,
    options: Options = None,
) -> ExtractionResult | None:
    """Like :func:`extract`, but consumes HTML chunks as they arrive.

    Chunks may split the document anywhere, including inside a tag.  The
    options and base URI are validated before the first chunk is awaited.
    """
    base_uri, opts, builder = _prepare(base_uri, options, decode_entities=False)
    parser = etree.HTMLParser(target=builder)
    fed = False
    async for chunk in chunks:
        if not chunk:
            continue
        parser.feed(chunk)
        fed = True
    _close_parser(parser, builder, fed)
    return _finish_extraction(builder, base_uri, opts)


def extract_events(
    events: Iterable[tuple[Any, ...]],
    base_uri: str,
    options: Options = None,
) -> ExtractionResult | None:
    """Extract from a captured parse-event sequence.

    Each event is one of ``("start", tag, attrs)``, ``("data", text)``,
    ``("end", tag)`` or ``("close",)``.  A missing ``close`` event is implied
    at the end of the sequence; malformed events are logged and skipped.
    """
    base_uri, opts, builder = _prepare(base_uri, options, decode_entities=True)
    for event in events:
        kind = event[0] if event else None
        if kind == "start" and len(event) == 3:
            builder.start(event[1], event[2] or {})
        elif kind == "data" and len(event) == 2:
            builder.data(event[1])
        elif kind == "end" and len(event) == 2:
            builder.end(event[1])
        elif kind == "close":
            builder.close()
        else:
            logger.warning("Skipping malformed parse event %r", event)
    builder.close()
    return _finish_extraction(builder, base_uri, opts)
