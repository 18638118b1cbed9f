"""Unit tests for the streaming tree builder."""

from __future__ import annotations

import logging

import pytest


def _builder(**kwargs):
    from readstream.extractors.tree_builder import TreeBuilder

    return TreeBuilder(**kwargs)


def _by_tag(store, tag_name):
    return [r for r in store if r.tag_name == tag_name]


# ---------------------------------------------------------------------------
# Element records
# ---------------------------------------------------------------------------

class TestElementRecords:
    def test_ids_follow_document_order(self):
        b = _builder()
        b.start("div", {})
        b.start("p", {})
        b.end("p")
        b.start("p", {})
        b.end("p")
        b.end("div")
        store = b.close()
        div = _by_tag(store, "div")[0]
        assert store.children(div.id) == [r.id for r in _by_tag(store, "p")]
        assert store.children(div.id) == sorted(store.children(div.id))

    def test_parent_links(self):
        b = _builder()
        b.start("section", {})
        b.start("p", {})
        b.end("p")
        b.end("section")
        store = b.close()
        section = _by_tag(store, "section")[0]
        p = _by_tag(store, "p")[0]
        assert p.parent_id == section.id
        assert section.parent_id is None
        assert store.root_ids() == [section.id]

    def test_attributes_are_lowercased_and_stringified(self):
        b = _builder()
        b.start("INPUT", {"Disabled": None, "Value": "x"})
        store = b.close()
        record = _by_tag(store, "input")[0]
        assert record.attributes == {"disabled": "", "value": "x"}

    def test_unknown_tag_maps_to_unknown(self):
        from readstream.extractors.models import HtmlTag

        b = _builder()
        b.start("my-widget", {})
        b.end("my-widget")
        store = b.close()
        record = _by_tag(store, "my-widget")[0]
        assert record.tag is HtmlTag.UNKNOWN

    def test_every_record_finalized_after_close(self):
        b = _builder()
        b.start("div", {})
        b.start("p", {})
        b.data("never closed")
        store = b.close()
        assert store.complete
        assert all(r.is_finalized for r in store)
        assert _by_tag(store, "p")[0].text == "never closed"

    def test_close_is_idempotent(self):
        b = _builder()
        b.start("p", {})
        first = b.close()
        assert b.close() is first

    def test_store_rejects_unknown_parent(self):
        from readstream.exceptions import StoreIntegrityError
        from readstream.extractors.models import ElementStore

        store = ElementStore()
        with pytest.raises(StoreIntegrityError) as excinfo:
            store.create(42, "p", {})
        assert excinfo.value.element_id == 42
        assert isinstance(excinfo.value, KeyError)


# ---------------------------------------------------------------------------
# Text chunks
# ---------------------------------------------------------------------------

class TestTextChunks:
    def test_adjacent_duplicate_chunk_merges_once(self):
        b = _builder()
        b.start("p", {})
        b.data("Hello")
        b.data("Hello")
        b.end("p")
        store = b.close()
        assert _by_tag(store, "p")[0].text == "Hello"

    def test_non_adjacent_repeats_are_kept(self):
        b = _builder()
        b.start("p", {})
        b.data("ab")
        b.data("cd")
        b.data("ab")
        b.end("p")
        store = b.close()
        assert _by_tag(store, "p")[0].text == "abcdab"

    def test_repeat_after_child_is_kept(self):
        b = _builder()
        b.start("p", {})
        b.data("same")
        b.start("b", {})
        b.data("bold")
        b.end("b")
        b.data("same")
        b.end("p")
        store = b.close()
        p = _by_tag(store, "p")[0]
        assert p.text == "samesame"
        assert p.segments == ((0, "same"), (1, "same"))

    def test_whitespace_only_chunks_dropped_outside_pre(self):
        b = _builder()
        b.start("div", {})
        b.data("   \n  ")
        b.end("div")
        store = b.close()
        assert _by_tag(store, "div")[0].text == ""

    def test_whitespace_kept_inside_pre(self):
        b = _builder()
        b.start("pre", {})
        b.start("code", {})
        b.data("a")
        b.data("\n    ")
        b.data("b")
        b.end("code")
        b.end("pre")
        store = b.close()
        code = _by_tag(store, "code")[0]
        assert code.text == "a\n    b"
        assert code.is_code_block

    def test_text_over_cap_goes_to_tracked_ancestor(self):
        b = _builder(max_elems_to_parse=1)
        b.start("div", {})
        b.start("p", {})
        b.data("overflow")
        b.end("p")
        b.end("div")
        store = b.close()
        assert len(store) == 1
        assert _by_tag(store, "div")[0].text == "overflow"


# ---------------------------------------------------------------------------
# Skipped and void elements
# ---------------------------------------------------------------------------

class TestSkippedElements:
    def test_script_subtree_not_recorded(self, build_store):
        b = build_store("<html><body><p>Visible text</p><script>var x = 1;</script></body></html>")
        assert not _by_tag(b.store, "script")
        assert all("var x" not in r.text for r in b.store)

    def test_style_and_noscript_skipped(self):
        b = _builder()
        b.start("style", {})
        b.data("p {}")
        b.end("style")
        b.start("noscript", {})
        b.start("p", {})
        b.data("js off")
        b.end("p")
        b.end("noscript")
        store = b.close()
        assert len(store) == 0
        assert b._stack == []

    def test_stylesheet_link_skipped_other_links_kept(self):
        b = _builder()
        b.start("link", {"rel": "stylesheet", "href": "/a.css"})
        b.start("link", {"rel": "canonical", "href": "/post"})
        store = b.close()
        links = _by_tag(store, "link")
        assert len(links) == 1
        assert links[0].attributes["rel"] == "canonical"

    def test_video_iframe_kept(self):
        b = _builder()
        b.start("iframe", {"src": "https://www.youtube.com/embed/abc"})
        b.end("iframe")
        b.start("iframe", {"src": "https://ads.example.net/frame"})
        b.end("iframe")
        store = b.close()
        frames = _by_tag(store, "iframe")
        assert [f.attributes["src"] for f in frames] == ["https://www.youtube.com/embed/abc"]

    def test_void_element_finalized_immediately(self):
        b = _builder()
        b.start("p", {})
        b.start("br", {})
        br = _by_tag(b.store, "br")[0]
        assert br.is_finalized
        b.data("after")
        b.end("br")
        b.end("p")
        store = b.close()
        p = _by_tag(store, "p")[0]
        assert store.children(p.id) == [br.id]
        assert p.segments == ((1, "after"),)


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------

class TestVisibility:
    @pytest.mark.parametrize(
        "attrs",
        [
            {"hidden": ""},
            {"style": "display: none"},
            {"style": "color: red; visibility:hidden"},
            {"aria-hidden": "true"},
        ],
    )
    def test_hidden_markers(self, attrs):
        b = _builder()
        b.start("div", attrs)
        store = b.close()
        assert not _by_tag(store, "div")[0].is_visible

    def test_fallback_image_stays_visible(self):
        b = _builder()
        b.start("img", {"aria-hidden": "true", "class": "mwe-math-fallback-image-inline"})
        store = b.close()
        assert _by_tag(store, "img")[0].is_visible

    def test_invisibility_inherited(self):
        b = _builder()
        b.start("div", {"style": "display:none"})
        b.start("p", {})
        b.end("p")
        b.end("div")
        store = b.close()
        assert not _by_tag(store, "p")[0].is_visible


# ---------------------------------------------------------------------------
# Lazy images
# ---------------------------------------------------------------------------

class TestLazyImages:
    def test_data_src_promoted(self):
        b = _builder()
        attrib = {"data-src": "/img/a.png", "alt": "A"}
        b.start("img", attrib)
        store = b.close()
        img = _by_tag(store, "img")[0]
        assert img.attributes["src"] == "/img/a.png"
        assert "data-src" not in img.attributes
        # the source mapping is rewritten in place
        assert attrib == {"alt": "A", "src": "/img/a.png"}

    def test_existing_src_wins(self):
        b = _builder()
        b.start("img", {"src": "/real.png", "data-src": "/lazy.png"})
        store = b.close()
        img = _by_tag(store, "img")[0]
        assert img.attributes["src"] == "/real.png"
        assert img.attributes["data-src"] == "/lazy.png"

    def test_srcset_promoted(self):
        b = _builder()
        b.start("img", {"data-srcset": "/a.png 1x, /b.png 2x"})
        store = b.close()
        assert _by_tag(store, "img")[0].attributes["srcset"] == "/a.png 1x, /b.png 2x"


# ---------------------------------------------------------------------------
# Malformed streams
# ---------------------------------------------------------------------------

class TestMalformedStreams:
    def test_unmatched_end_tag_ignored(self, caplog):
        b = _builder()
        b.start("div", {})
        with caplog.at_level(logging.WARNING, logger="readstream.extractors.tree_builder"):
            b.end("span")
        b.data("still inside")
        b.end("div")
        store = b.close()
        assert _by_tag(store, "div")[0].text == "still inside"
        assert "Unbalanced end tag" in caplog.text

    def test_mismatched_end_closes_inner_elements(self, caplog):
        b = _builder()
        b.start("div", {})
        b.start("p", {})
        b.data("text")
        with caplog.at_level(logging.WARNING, logger="readstream.extractors.tree_builder"):
            b.end("div")
        assert all(r.is_finalized for r in b.store)
        assert "Implicitly closing <p>" in caplog.text

    def test_events_after_close_ignored(self):
        b = _builder()
        b.start("p", {})
        store = b.close()
        b.start("div", {})
        b.data("late")
        assert len(store) == 1


# ---------------------------------------------------------------------------
# Document metadata
# ---------------------------------------------------------------------------

class TestMetadataCapture:
    def test_article_metadata(self, build_store, article_html):
        meta = build_store(article_html).metadata
        assert meta.title == "Streaming Parsers & You"
        assert meta.site_name == "Parser Weekly"
        assert meta.byline == "Ada Example"
        assert meta.published_time == "2024-01-15T10:00:00Z"
        assert meta.language == "en"
        assert meta.excerpt.startswith("Why feeding a parser")

    def test_first_meta_wins(self):
        b = _builder()
        b.start("meta", {"property": "og:title", "content": "First"})
        b.start("meta", {"name": "twitter:title", "content": "Second"})
        b.close()
        assert b.metadata.title == "First"

    def test_title_entities_decoded(self):
        b = _builder()
        b.start("title", {})
        b.data("Fish &amp; Chips")
        b.end("title")
        b.close()
        assert b.metadata.title == "Fish & Chips"

    def test_parsed_title_not_decoded_twice(self, build_store):
        html = (
            "<html><head><title>Escaping &amp;lt;div&amp;gt; in HTML</title></head>"
            "<body><p>Body</p></body></html>"
        )
        meta = build_store(html, decode_entities=False).metadata
        assert meta.title == "Escaping &lt;div&gt; in HTML"

    def test_parsed_meta_content_not_decoded_twice(self, build_store):
        html = (
            '<html><head><meta property="og:title" content="Use &amp;amp; in URLs">'
            "</head><body><p>Body</p></body></html>"
        )
        meta = build_store(html, decode_entities=False).metadata
        assert meta.title == "Use &amp; in URLs"

    def test_byline_from_class(self):
        b = _builder()
        b.start("span", {"class": "byline"})
        b.data("By Grace Hopper")
        b.end("span")
        b.close()
        assert b.metadata.byline == "By Grace Hopper"

    def test_byline_from_rel_author(self):
        b = _builder()
        b.start("a", {"rel": "author", "href": "/people/ada"})
        b.data("Ada")
        b.end("a")
        b.close()
        assert b.metadata.byline == "Ada"

    def test_direction_from_html(self):
        b = _builder()
        b.start("html", {"lang": "ar", "dir": "rtl"})
        b.close()
        assert b.metadata.direction == "rtl"
        assert b.metadata.language == "ar"
