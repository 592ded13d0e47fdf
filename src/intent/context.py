"""Caller context normalization.

The caller may send any shape of context (or none). Normalization never fails: unusable fields are
dropped, which only limits what the interpreter can resolve.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from src.intent.dates import zone_from_name
from src.intent.schema import Context, KnownProfile

logger = logging.getLogger(__name__)


def _normalize_timezone(value: Any) -> str | None:
    zone = zone_from_name(value)
    return zone.key if zone is not None else None


def _normalize_now(value: Any, timezone: str | None) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        logger.debug("dropping unparseable context.now")
        return None

    if parsed.tzinfo is None:
        zone = zone_from_name(timezone)
        if zone is None:
            logger.debug("dropping naive context.now without a timezone")
            return None
        parsed = parsed.replace(tzinfo=zone)
    return parsed


def _normalize_profiles(value: Any) -> tuple[KnownProfile, ...]:
    if not isinstance(value, list):
        return ()

    profiles: list[KnownProfile] = []
    seen: set[str] = set()
    for entry in value:
        if not isinstance(entry, Mapping):
            continue
        profile_id = entry.get("id")
        name = entry.get("name")
        if not isinstance(profile_id, str) or not isinstance(name, str):
            continue
        profile_id, name = profile_id.strip(), name.strip()
        if not profile_id or not name or profile_id in seen:
            continue
        seen.add(profile_id)
        profiles.append(KnownProfile(id=profile_id, name=name))
    return tuple(profiles)


def normalize_context(raw: Any) -> Context:
    """Shape an arbitrary caller context into a `Context` with safe defaults."""

    if not isinstance(raw, Mapping):
        return Context()

    timezone = _normalize_timezone(raw.get("timezone"))
    return Context(
        now=_normalize_now(raw.get("now"), timezone),
        timezone=timezone,
        known_profiles=_normalize_profiles(raw.get("knownProfiles")),
    )
