"""Rules-based English intent interpreter (offline backend).

This interpreter is intentionally strict and deterministic:
    - it only recognizes a limited set of command patterns,
    - it never guesses a time or a person; anything unclear becomes a `none` intent,
    - it returns JSON text, so its output goes through the same decode/validate path as the LLM's.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import tzinfo
from typing import Any

from src.intent.dates import resolve_when
from src.intent.normalize import normalize_text, split_tags
from src.intent.schema import Context, format_utc


class RulesInterpreterError(ValueError):
    """Raised when the rules cannot produce a complete intent; carries the explanation."""


RELATIONSHIP_TERMS: frozenset[str] = frozenset(
    {
        "friend",
        "best friend",
        "coworker",
        "colleague",
        "boss",
        "cousin",
        "investor",
        "neighbor",
        "mentor",
        "client",
        "partner",
        "sister",
        "brother",
        "mom",
        "dad",
    }
)

EDITABLE_FIELDS: dict[str, str] = {
    "phone number": "phone",
    "number": "phone",
    "phone": "phone",
    "email": "email",
    "e-mail": "email",
    "notes": "notes",
    "note": "notes",
    "birthday": "birthday",
    "address": "address",
}

_FIELD_PATTERN = "|".join(re.escape(f) for f in sorted(EDITABLE_FIELDS, key=lambda s: (-len(s), s)))

_NAME_WORD = r"[A-Z][\w'\-]*"
_NAME_RE = re.compile(rf"^{_NAME_WORD}(?:\s+{_NAME_WORD})*$")
_PHONE_RE = re.compile(r"^\+?[\d\s().\-]{7,}$")
_TAGS_RE = re.compile(r"^tags?\s*:?\s+(?P<tags>.+)$", flags=re.IGNORECASE)
_NOTES_RE = re.compile(r"^notes?\s*[:\-]\s*(?P<notes>.+)$", flags=re.IGNORECASE)

_ADD_RE = re.compile(r"^(?i:(?:please\s+)?(?:add|create|new contact))\s+(?P<rest>.+)$")
_EDIT_RE = re.compile(
    r"^(?:change|update|set)\s+(?P<name>.+?)'s\s+"
    rf"(?P<field>{_FIELD_PATTERN})"
    r"\s+to\s+(?P<value>.+?)\.?$",
    flags=re.IGNORECASE,
)
_TEXT_RE = re.compile(
    rf"^(?i:text|message)\s+(?P<name>{_NAME_WORD}(?:\s+{_NAME_WORD})?)\s+(?P<when>[^:]+?)\s*:\s*(?P<message>.+)$"
)
_REMIND_TO_FIRST_RE = re.compile(
    rf"^(?i:remind\s+me\s+to)\s+(?P<reason>.+?)\s+(?i:w/|with)\s+(?P<name>{_NAME_WORD})\s+(?P<when>.+?)\.?$"
)
_REMIND_WHEN_FIRST_RE = re.compile(
    rf"^(?i:remind\s+me)\s+(?P<when>.+?)\s+(?i:to)\s+(?P<reason>.+?)\s+(?i:w/|with)\s+(?P<name>{_NAME_WORD})\.?$"
)

_DAY_WORDS = frozenset(
    {
        "today",
        "tonight",
        "tomorrow",
        "this",
        "next",
        "on",
        "at",
        "monday",
        "tuesday",
        "wednesday",
        "thursday",
        "friday",
        "saturday",
        "sunday",
    }
)


@dataclass(frozen=True)
class _Target:
    profile_id: str | None = None
    profile_name: str | None = None

    def as_args(self) -> dict[str, str]:
        if self.profile_id is not None:
            return {"profileId": self.profile_id}
        return {"profileName": self.profile_name or ""}


def _resolve_target(name: str, context: Context) -> _Target:
    """Use a known profile id only on an exact (case-insensitive) unique name match."""

    wanted = name.strip().casefold()
    matches = [p for p in context.known_profiles if p.name.casefold() == wanted]
    if len(matches) == 1:
        return _Target(profile_id=matches[0].id)
    return _Target(profile_name=name.strip())


def _zone(context: Context) -> tzinfo | None:
    return context.zone or (context.now.tzinfo if context.now is not None else None)


def _resolve_when_or_fail(expr: str, context: Context, *, intent: str) -> str:
    if context.now is None:
        raise RulesInterpreterError(f"Missing current time to resolve when for {intent}")
    when = resolve_when(expr, now=context.now, tz=_zone(context))
    if when is None:
        raise RulesInterpreterError(f"Missing specific date/time for {intent}")
    return format_utc(when)


def _parse_add_profile(rest: str) -> dict[str, Any]:
    segments = [s.strip() for s in rest.split(",") if s.strip()]
    name = segments[0] if segments else ""
    if name.lower().startswith("my "):
        raise RulesInterpreterError("Missing required name for add_profile")
    if not _NAME_RE.fullmatch(name):
        raise RulesInterpreterError("Missing required name for add_profile")

    args: dict[str, Any] = {"name": name}
    tags: list[str] = []
    notes: list[str] = []
    for segment in segments[1:]:
        lowered = normalize_text(segment).removeprefix("my ")
        if _PHONE_RE.fullmatch(segment):
            args["phone"] = segment
        elif match := _TAGS_RE.match(segment):
            tags.extend(split_tags(match.group("tags")))
        elif match := _NOTES_RE.match(segment):
            notes.append(match.group("notes").strip())
        elif lowered in RELATIONSHIP_TERMS and "relationshipType" not in args:
            args["relationshipType"] = lowered
        else:
            notes.append(segment)

    if tags:
        args["tags"] = tags
    if notes:
        args["notes"] = "; ".join(notes)
    return {"intent": "add_profile", "args": args}


def _split_name_and_when(name: str, when: str) -> tuple[str, str]:
    """Move a trailing capitalized day word ("Lisa Friday") from the name into the time."""

    parts = name.split()
    if len(parts) > 1 and parts[-1].lower() in _DAY_WORDS:
        return " ".join(parts[:-1]), f"{parts[-1]} {when}"
    return name, when


def parse_command(text: str, context: Context) -> dict[str, Any]:
    """Parse an utterance into an intent object (not yet validated).

    Raises:
        RulesInterpreterError: If the utterance is recognized but incomplete, or unsupported.
    """

    value = (text or "").strip()
    if not value:
        raise RulesInterpreterError("Empty message")

    if match := _ADD_RE.match(value):
        return _parse_add_profile(match.group("rest"))

    if match := _EDIT_RE.match(value):
        field = EDITABLE_FIELDS[match.group("field").lower()]
        target = _resolve_target(match.group("name"), context)
        return {
            "intent": "edit_profile",
            "args": {**target.as_args(), "updates": {field: match.group("value").strip()}},
        }

    if match := _TEXT_RE.match(value):
        name, when = _split_name_and_when(match.group("name"), match.group("when"))
        target = _resolve_target(name, context)
        return {
            "intent": "schedule_text",
            "args": {
                **target.as_args(),
                "when": _resolve_when_or_fail(when, context, intent="schedule_text"),
                "message": match.group("message").strip(),
            },
        }

    match = _REMIND_TO_FIRST_RE.match(value) or _REMIND_WHEN_FIRST_RE.match(value)
    if match:
        target = _resolve_target(match.group("name"), context)
        return {
            "intent": "schedule_reminder",
            "args": {
                **target.as_args(),
                "when": _resolve_when_or_fail(match.group("when"), context, intent="schedule_reminder"),
                "reason": match.group("reason").strip(),
            },
        }

    normalized = normalize_text(value)
    if normalized.startswith(("text ", "schedule a text", "message ")):
        raise RulesInterpreterError("Missing when and target (profileId or profileName) for schedule_text")
    if normalized.startswith("remind me"):
        raise RulesInterpreterError(
            "Missing when and target (profileId or profileName) for schedule_reminder"
        )
    raise RulesInterpreterError("Could not determine a supported intent")


class RulesInterpreter:
    """Offline interpreter that maps a small English command grammar to intent JSON."""

    async def interpret(self, message: str, context: Context, *, tier: str = "default") -> str:
        try:
            obj = parse_command(message, context)
        except RulesInterpreterError as exc:
            obj = {"intent": "none", "args": {"explanation": str(exc)}}
        return json.dumps(obj)
