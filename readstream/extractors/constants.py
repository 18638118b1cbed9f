"""Tag sets and class/id patterns used by the Readability-style heuristics."""

from __future__ import annotations

import re

# ---------------------------------------------------------------------------
# Tag sets
# ---------------------------------------------------------------------------

# Elements that never have children or an end tag of their own
VOID_ELEMENTS: frozenset[str] = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "param",
        "source",
        "track",
        "wbr",
    },
)

# Elements whose whole subtree is dropped while building the store
SKIPPED_ELEMENTS: frozenset[str] = frozenset({"script", "style", "noscript", "iframe"})

# Elements whose own text seeds a content score
TAGS_TO_SCORE: frozenset[str] = frozenset(
    {"section", "h2", "h3", "h4", "h5", "h6", "p", "td", "pre", "article"},
)

# Elements that may carry a lazy-loaded image source
LAZY_IMAGE_ELEMENTS: frozenset[str] = frozenset({"img", "picture", "figure"})

# ---------------------------------------------------------------------------
# Class / id / role patterns
# ---------------------------------------------------------------------------

POSITIVE_RE = re.compile(
    r"article|body|content|entry|hentry|h-entry|main|page|pagination|post|text|blog|story",
    re.IGNORECASE,
)

NEGATIVE_RE = re.compile(
    r"-ad-|hidden|^hid$| hid$| hid |^hid |banner|combx|comment|com-|contact|footer|gdpr"
    r"|masthead|media|meta|outbrain|promo|related|scroll|share|shoutbox|sidebar"
    r"|skyscraper|sponsor|shopping|tags|widget",
    re.IGNORECASE,
)

UNLIKELY_CANDIDATES_RE = re.compile(
    r"-ad-|ai2html|banner|breadcrumbs|combx|comment|community|cover-wrap|disqus|extra"
    r"|footer|gdpr|header|legends|menu|related|remark|replies|rss|shoutbox|sidebar"
    r"|skyscraper|social|sponsor|supplemental|ad-break|agegate|pagination|pager|popup"
    r"|yom-remote",
    re.IGNORECASE,
)

OK_MAYBE_ITS_A_CANDIDATE_RE = re.compile(
    r"and|article|body|column|content|main|mathjax|shadow",
    re.IGNORECASE,
)

BYLINE_RE = re.compile(r"byline|author|dateline|writtenby|p-author", re.IGNORECASE)

UNLIKELY_ROLES: frozenset[str] = frozenset(
    {"menu", "menubar", "complementary", "navigation", "alert", "alertdialog", "dialog"},
)

# Latin, Arabic, small-form and fullwidth commas
COMMAS_RE = re.compile("[\u002C\u060C\uFE50\uFE10\uFE11\u2E41\u2E34\u2E32\uFF0C]")

DISPLAY_NONE_RE = re.compile(r"display\s*:\s*none", re.IGNORECASE)
VISIBILITY_HIDDEN_RE = re.compile(r"visibility\s*:\s*hidden", re.IGNORECASE)

DEFAULT_VIDEO_RE = re.compile(r"(www\.youtube\.com|player\.vimeo\.com)", re.IGNORECASE)

# ---------------------------------------------------------------------------
# Scoring defaults
# ---------------------------------------------------------------------------

NB_TOP_CANDIDATES = 5
CHAR_THRESHOLD = 500
LINK_DENSITY_MODIFIER = 0.0

MIN_SCORABLE_TEXT_LENGTH = 25
MAX_ANCESTOR_LEVELS = 5
MIN_SIBLING_SCORE = 10
