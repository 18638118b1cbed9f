"""Language guess for documents that do not declare ``<html lang>``."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_MIN_SAMPLE_LENGTH = 40
_MAX_SAMPLE_LENGTH = 5000
# Markdown punctuation and link targets skew the character n-gram profile
_MARKUP_RE = re.compile(r"\]\([^)]*\)|[\\`*_#>\[\]|!-]+")


def detect_language(text: str) -> str | None:
    """Return an ISO 639-1 code for *text*, or None when unsure."""
    if not text:
        return None
    sample = _MARKUP_RE.sub(" ", text).strip()[:_MAX_SAMPLE_LENGTH]
    if len(sample) < _MIN_SAMPLE_LENGTH:
        return None
    try:
        from langdetect import DetectorFactory, detect

        # fixed seed keeps repeated runs on the same text identical
        DetectorFactory.seed = 0
        code = detect(sample)
    except Exception as exc:
        logger.debug("Language detection failed: %s", exc)
        return None
    return code or None
