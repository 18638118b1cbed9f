"""YAML option profiles.

A profile file holds site-independent defaults plus per-domain overrides::

    default:
      char_threshold: 500
    domains:
      example.com:
        char_threshold: 200
        classes_to_preserve: [caption, note]

The most specific domain entry matching the base URI's host wins.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml

from readstream.exceptions import ConfigError
from readstream.settings import ReadabilityOptions, build_options


def load_profile_data(path: str | Path, base_uri: str) -> dict[str, Any]:
    """Load a YAML profile and return the merged settings for *base_uri*."""
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read profile {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Profile {path} must contain a mapping")
    default = data.get("default") or {}
    domains = data.get("domains") or {}

    netloc = (urlparse(base_uri).hostname or "").lower()
    best_key = ""
    best_cfg: dict[str, Any] = {}
    if isinstance(domains, dict):
        for key, cfg in domains.items():
            if not isinstance(key, str) or not isinstance(cfg, dict):
                continue
            key_lower = key.lower()
            if (netloc == key_lower or netloc.endswith("." + key_lower)) and (
                len(key_lower) > len(best_key)
            ):
                best_key = key_lower
                best_cfg = cfg

    merged: dict[str, Any] = {}
    if isinstance(default, dict):
        merged.update(default)
    merged.update(best_cfg)
    return merged


def load_profile(path: str | Path, base_uri: str, **overrides: Any) -> ReadabilityOptions:
    """Return validated options for *base_uri* from the profile at *path*."""
    return build_options(load_profile_data(path, base_uri), **overrides)
