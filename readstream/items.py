"""Pydantic models for extraction output."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

# ---------------------------------------------------------------------------
# Document metadata
# ---------------------------------------------------------------------------

class DocumentMetadata(BaseModel):
    """Document-level facts collected while the event stream is consumed.

    Every field is first-writer-wins: use :meth:`set_once` rather than
    plain assignment while building.
    """

    title: str | None = None
    byline: str | None = None
    excerpt: str | None = None
    site_name: str | None = None
    published_time: str | None = None
    language: str | None = None
    direction: str | None = None
    json_ld: dict[str, Any] | None = None

    @field_validator(
        "title", "byline", "excerpt", "site_name", "published_time", "language", "direction",
        mode="before",
    )
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip() or None
        return v

    def set_once(self, name: str, value: str | None) -> bool:
        """Set *name* to *value* unless it already holds something.

        Returns True when the value was written.
        """
        if name not in type(self).model_fields:
            raise AttributeError(f"DocumentMetadata has no field {name!r}")
        if getattr(self, name):
            return False
        value = value.strip() if isinstance(value, str) else value
        if not value:
            return False
        setattr(self, name, value)
        return True


# ---------------------------------------------------------------------------
# Extraction result
# ---------------------------------------------------------------------------

class ExtractionResult(BaseModel):
    """Readable content of one document."""

    markdown: str = ""
    metadata: DocumentMetadata = Field(default_factory=DocumentMetadata)
    content_html: str = ""
    text_length: int = 0
    candidate_id: int | None = None

    @property
    def word_count(self) -> int:
        return len(self.markdown.split())
