"""Unit tests for base-URI validation and reference resolution."""

from __future__ import annotations

import pytest

from readstream.exceptions import ConfigError
from readstream.extractors.urlnorm import (
    is_absolute,
    resolve_image_source,
    resolve_link,
    resolve_url,
    validate_base_uri,
)


class TestValidateBaseUri:
    def test_accepts_http(self):
        assert validate_base_uri("  https://example.com/post ") == "https://example.com/post"

    def test_accepts_non_hierarchical_scheme(self):
        assert validate_base_uri("file:///tmp/page.html") == "file:///tmp/page.html"

    @pytest.mark.parametrize("bad", ["", "   ", "example.com/post", "/relative/path", "https://"])
    def test_rejects_unusable(self, bad):
        with pytest.raises(ConfigError):
            validate_base_uri(bad)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            validate_base_uri("no-scheme")


class TestResolve:
    def test_is_absolute(self):
        assert is_absolute("https://a.example/x")
        assert is_absolute("data:image/png;base64,AA")
        assert not is_absolute("/x")
        assert not is_absolute("x/y")

    def test_root_relative(self):
        assert resolve_url("/x", "https://example.com/y/") == "https://example.com/x"

    def test_path_relative(self):
        assert resolve_url("z", "https://example.com/y/") == "https://example.com/y/z"

    def test_protocol_relative(self):
        assert resolve_url("//cdn.example.net/a.png", "https://example.com/") == "https://cdn.example.net/a.png"

    @pytest.mark.parametrize("href", ["#top", "mailto:a@example.com", "tel:+15550100"])
    def test_links_left_alone(self, href):
        assert resolve_link(href, "https://example.com/y/") == href

    def test_image_source_stripped_and_resolved(self):
        assert resolve_image_source("  img/a.png ", "https://example.com/y/") == "https://example.com/y/img/a.png"
