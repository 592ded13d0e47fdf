"""Text normalization for deterministic intent parsing."""

from __future__ import annotations

import re
from collections.abc import Iterable

_MULTISPACE_RE = re.compile(r"\s+")
_TAG_SPLIT_RE = re.compile(r"\s*(?:,|/|;|\band\b|\s)\s*", flags=re.IGNORECASE)


def normalize_text(text: str) -> str:
    """Normalize user text for rules-based matching.

    Normalization is intentionally conservative:
        - Lowercase.
        - Normalize unicode dashes and apostrophes.
        - Spell out `a.m.`/`p.m.` as `am`/`pm`.
        - Collapse whitespace.

    Punctuation is kept: `:` separates hours from minutes and `'s` marks possessives.
    """

    value = (text or "").strip().lower()
    value = value.replace("—", "-").replace("–", "-")
    value = value.replace("’", "'").replace("‘", "'")
    value = value.replace("a.m.", "am").replace("p.m.", "pm")
    value = _MULTISPACE_RE.sub(" ", value).strip()
    return value


def normalize_tags(tags: Iterable[str]) -> tuple[str, ...]:
    """Lowercase, strip and de-duplicate tags, preserving first occurrence."""

    seen: set[str] = set()
    result: list[str] = []
    for tag in tags:
        value = _MULTISPACE_RE.sub(" ", tag.strip().lower())
        if not value or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return tuple(result)


def split_tags(text: str) -> tuple[str, ...]:
    """Split a free-text tag list ("friend and vip", "friend, vip") into normalized tags."""

    return normalize_tags(_TAG_SPLIT_RE.split(text or ""))
