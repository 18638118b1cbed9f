"""Tests for the top-level extraction API."""

from __future__ import annotations

import asyncio

import pytest

from readstream.exceptions import ConfigError


def _capture_events(html: str) -> list[tuple]:
    """Record the parse events lxml emits for *html*."""
    from lxml import etree

    class _Recorder:
        def __init__(self):
            self.events: list[tuple] = []

        def start(self, tag, attrib):
            self.events.append(("start", tag, dict(attrib)))

        def data(self, text):
            self.events.append(("data", text))

        def end(self, tag):
            self.events.append(("end", tag))

        def close(self):
            self.events.append(("close",))
            return self.events

    parser = etree.HTMLParser(target=_Recorder())
    parser.feed(html)
    return parser.close()


# ---------------------------------------------------------------------------
# extract()
# ---------------------------------------------------------------------------

class TestExtract:
    def test_returns_result(self, article_html, base_uri):
        from readstream import ExtractionResult, extract

        result = extract(article_html, base_uri)
        assert isinstance(result, ExtractionResult)
        assert result.text_length >= 500
        assert result.word_count > 50

    def test_markdown_content(self, article_html, base_uri):
        from readstream import extract

        md = extract(article_html, base_uri).markdown
        assert md.startswith("# Streaming Parsers")
        assert "## Scoring without a DOM" in md
        assert "```python\ndef feed(parser, chunks):\n    for chunk in chunks:\n        parser.feed(chunk)\n```" in md
        assert "[full guide](https://example.com/docs/guide)" in md
        assert "[summary](#summary)" in md
        assert "![Pipeline diagram](https://example.com/img/diagram.png)" in md

    def test_boilerplate_excluded(self, article_html, base_uri):
        from readstream import extract

        md = extract(article_html, base_uri).markdown
        assert "Archive" not in md
        assert "Copyright" not in md
        assert "unrelated post" not in md
        assert "trackingCode" not in md
        assert "font-family" not in md

    def test_metadata(self, article_html, base_uri):
        from readstream import extract

        meta = extract(article_html, base_uri).metadata
        assert meta.title == "Streaming Parsers & You"
        assert meta.byline == "Ada Example"
        assert meta.site_name == "Parser Weekly"
        assert meta.language == "en"
        assert meta.published_time.startswith("2024-01-15T10:00:00")
        assert meta.excerpt.startswith("Why feeding a parser")

    def test_escaped_markup_in_title_kept(self, base_uri):
        from readstream import extract

        paragraph = "<p>" + "Entity references are decoded exactly once, by the parser. " * 12 + "</p>"
        html = (
            "<html><head><title>Escaping &amp;lt;div&amp;gt; in HTML</title></head>"
            f"<body><article>{paragraph}</article></body></html>"
        )
        result = extract(html, base_uri)
        assert result is not None
        assert result.metadata.title == "Escaping &lt;div&gt; in HTML"

    def test_content_html(self, article_html, base_uri):
        from readstream import extract

        html = extract(article_html, base_uri).content_html
        assert html.startswith("<div>")
        assert "<article>" in html
        assert "Home" not in html

    def test_bytes_input(self, article_html, base_uri):
        from readstream import extract

        result = extract(article_html.encode("utf-8"), base_uri)
        assert result is not None
        assert result.metadata.title == "Streaming Parsers & You"

    def test_no_content_returns_none(self, minimal_html, listing_html, base_uri):
        from readstream import extract

        assert extract(minimal_html, base_uri) is None
        assert extract(listing_html, base_uri) is None

    def test_empty_document_returns_none(self, base_uri):
        from readstream import extract

        assert extract("", base_uri) is None
        assert extract("   ", base_uri) is None

    def test_threshold_option(self, minimal_html, base_uri):
        from readstream import extract

        html = minimal_html.replace(
            "Hello, world.",
            "Hello, world. This paragraph is long enough to be scored by itself.",
        )
        assert extract(html, base_uri) is None
        assert extract(html, base_uri, {"char_threshold": 10}) is not None

    def test_bad_base_uri(self, article_html):
        from readstream import extract

        with pytest.raises(ConfigError):
            extract(article_html, "not a url")

    def test_bad_options(self, article_html, base_uri):
        from readstream import extract

        with pytest.raises(ConfigError):
            extract(article_html, base_uri, {"char_threshold": "many"})

    def test_max_elems_limits_store(self, article_html, base_uri):
        from readstream import extract

        assert extract(article_html, base_uri, {"max_elems_to_parse": 3}) is None


# ---------------------------------------------------------------------------
# extract_async()
# ---------------------------------------------------------------------------

class TestExtractAsync:
    def test_chunked_matches_whole(self, article_html, base_uri):
        from readstream import extract, extract_async

        async def chunks():
            for i in range(0, len(article_html), 37):
                yield article_html[i:i + 37]

        streamed = asyncio.run(extract_async(chunks(), base_uri))
        whole = extract(article_html, base_uri)
        assert streamed is not None
        assert streamed.markdown == whole.markdown
        assert streamed.metadata == whole.metadata

    def test_config_checked_before_first_chunk(self):
        from readstream import extract_async

        consumed = []

        async def chunks():
            consumed.append(True)
            yield "<p>x</p>"

        with pytest.raises(ConfigError):
            asyncio.run(extract_async(chunks(), "relative/path"))
        assert consumed == []

    def test_empty_stream(self, base_uri):
        from readstream import extract_async

        async def chunks():
            for _ in ():
                yield ""

        assert asyncio.run(extract_async(chunks(), base_uri)) is None


# ---------------------------------------------------------------------------
# extract_events()
# ---------------------------------------------------------------------------

class TestExtractEvents:
    def test_replay_is_deterministic(self, article_html, base_uri):
        from readstream import extract_events

        events = _capture_events(article_html)
        first = extract_events(events, base_uri)
        second = extract_events(events, base_uri)
        assert first is not None
        assert first.markdown == second.markdown
        assert first.metadata.model_dump_json() == second.metadata.model_dump_json()

    def test_replay_matches_parser(self, article_html, base_uri):
        from readstream import extract, extract_events

        events = _capture_events(article_html)
        assert extract_events(events, base_uri).markdown == extract(article_html, base_uri).markdown

    def test_missing_close_is_implied(self, article_html, base_uri):
        from readstream import extract_events

        events = [e for e in _capture_events(article_html) if e[0] != "close"]
        assert extract_events(events, base_uri) is not None

    def test_malformed_events_skipped(self, caplog, base_uri):
        from readstream import extract_events

        events = [("start", "p", {}), ("bogus",), (), ("data", "x"), ("end", "p")]
        assert extract_events(events, base_uri) is None
        assert "Skipping malformed parse event" in caplog.text


# ---------------------------------------------------------------------------
# Top-level import convenience
# ---------------------------------------------------------------------------

class TestTopLevelImport:
    def test_public_names(self):
        import readstream

        for name in readstream.__all__:
            assert hasattr(readstream, name)
        assert readstream.__version__
