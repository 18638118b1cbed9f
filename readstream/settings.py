"""Extraction options.

All knobs live on one validated pydantic model so bad values fail before a
single parse event is consumed::

    from readstream.settings import ReadabilityOptions

    options = ReadabilityOptions(char_threshold=250, allowed_video_regex=r"vimeo\\.com")
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from readstream.exceptions import ConfigError
from readstream.extractors.constants import (
    CHAR_THRESHOLD,
    DEFAULT_VIDEO_RE,
    LINK_DENSITY_MODIFIER,
    NB_TOP_CANDIDATES,
)


class ReadabilityOptions(BaseModel):
    """Configuration for one extraction.

    Attributes:
        debug:                 Trace builder, scorer and serializer decisions
                               at DEBUG level.
        max_elems_to_parse:    Stop recording elements after this many
                               (0 = unlimited).
        nb_top_candidates:     Size of the ranked candidate shortlist.
        char_threshold:        Minimum retained text length for a result.
        classes_to_preserve:   Class tokens kept in ``content_html``.
        keep_classes:          Keep every class token in ``content_html``.
        allowed_video_regex:   Embedded video sources to keep.
        link_density_modifier: Reserved; accepted but not applied.
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    debug: bool = False
    max_elems_to_parse: int = Field(default=0, ge=0)
    nb_top_candidates: int = Field(default=NB_TOP_CANDIDATES, ge=1)
    char_threshold: int = Field(default=CHAR_THRESHOLD, ge=0)
    classes_to_preserve: list[str] = Field(default_factory=list)
    keep_classes: bool = False
    allowed_video_regex: re.Pattern[str] | None = DEFAULT_VIDEO_RE
    link_density_modifier: float = LINK_DENSITY_MODIFIER

    @field_validator("allowed_video_regex", mode="before")
    @classmethod
    def compile_regex(cls, v: Any) -> Any:
        if isinstance(v, str):
            try:
                return re.compile(v, re.IGNORECASE)
            except re.error as exc:
                raise ValueError(f"invalid regular expression {v!r}: {exc}") from exc
        return v

    @field_validator("classes_to_preserve", mode="before")
    @classmethod
    def split_classes(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [c for c in v.replace(",", " ").split() if c]
        return v


def build_options(options: ReadabilityOptions | dict[str, Any] | None = None, **overrides: Any) -> ReadabilityOptions:
    """Return validated options, raising :class:`ConfigError` on bad input."""
    if isinstance(options, ReadabilityOptions) and not overrides:
        return options
    data: dict[str, Any] = {}
    if isinstance(options, ReadabilityOptions):
        data.update(options.model_dump())
    elif options is not None:
        if not isinstance(options, dict):
            raise ConfigError(f"options must be ReadabilityOptions or a dict, got {type(options).__name__}")
        data.update(options)
    data.update(overrides)
    try:
        return ReadabilityOptions(**data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid readability options: {exc}") from exc
