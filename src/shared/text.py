"""Small text helpers shared by the store, assembler and publisher."""

from __future__ import annotations

import math
import re
from urllib.parse import urlparse

_NON_WORD_RE = re.compile(r"[^\w\s-]")
_WHITESPACE_RE = re.compile(r"\s+")
_EDGE_HYPHENS_RE = re.compile(r"^-+|-+$")

WORDS_PER_MINUTE = 200


def slugify(text: str) -> str:
    """Build a URL slug: lowercase, non-word characters stripped,
    whitespace collapsed to single hyphens, no leading/trailing hyphens.
    """
    slug = _NON_WORD_RE.sub("", text.lower())
    slug = _WHITESPACE_RE.sub("-", slug.strip())
    return _EDGE_HYPHENS_RE.sub("", slug)


def word_count(text: str) -> int:
    """Count whitespace-separated tokens."""
    return len(text.split())


def read_time_minutes(text: str) -> int:
    """Estimated reading time at 200 words per minute, rounded up."""
    return math.ceil(word_count(text) / WORDS_PER_MINUTE)


def hostname(url: str | None) -> str | None:
    """Return the hostname of *url* without a leading ``www.``."""
    if not url:
        return None
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return host.removeprefix("www.")


def natural_join(labels: list[str]) -> str:
    """Join labels as "A", "A and B" or "A, B, and C"."""
    if not labels:
        return ""
    if len(labels) == 1:
        return labels[0]
    if len(labels) == 2:
        return f"{labels[0]} and {labels[1]}"
    return f"{', '.join(labels[:-1])}, and {labels[-1]}"


def unique(values: list[str]) -> list[str]:
    """De-duplicate preserving first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
