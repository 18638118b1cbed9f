"""Shared pytest fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

FIXTURES_DIR = Path(__file__).parent / "fixtures"

BASE_URI = "https://example.com/blog/streaming-parsers"


def _read_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


@pytest.fixture
def article_html() -> str:
    return _read_fixture("article.html")


@pytest.fixture
def listing_html() -> str:
    return _read_fixture("listing.html")


@pytest.fixture
def minimal_html() -> str:
    return _read_fixture("minimal.html")


@pytest.fixture
def base_uri() -> str:
    return BASE_URI


@pytest.fixture
def build_store():
    """Return a helper that parses HTML into a closed element store."""
    from lxml import etree

    from readstream.extractors.tree_builder import TreeBuilder

    def _build(html: str, **kwargs):
        builder = TreeBuilder(**kwargs)
        parser = etree.HTMLParser(target=builder)
        parser.feed(html)
        parser.close()
        return builder

    return _build
