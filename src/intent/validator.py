"""Server-side intent validation.

The interpreter's output is untrusted: every decoded object is re-verified here against the
per-intent field contract, independent of the instructions the interpreter was given. The validator
is a pure function of its input (and the request context) and never raises.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from pydantic import ValidationError

from src.intent.dates import parse_instant
from src.intent.schema import (
    INTENT_MODELS,
    Context,
    IntentName,
    Invalid,
    Valid,
    ValidationOutcome,
)


def _has_text(args: Mapping[str, Any], key: str) -> bool:
    value = args.get(key)
    return isinstance(value, str) and bool(value.strip())


def _has_target(args: Mapping[str, Any]) -> bool:
    return _has_text(args, "profileId") or _has_text(args, "profileName")


def _check_add_profile(args: Mapping[str, Any]) -> str | None:
    if not _has_text(args, "name"):
        return "add_profile requires name"
    return None


def _check_edit_profile(args: Mapping[str, Any]) -> str | None:
    updates = args.get("updates")
    if not isinstance(updates, Mapping) or not updates:
        return "edit_profile requires updates"
    if not _has_target(args):
        return "edit_profile requires profileId or profileName"
    return None


def _check_schedule_text(args: Mapping[str, Any]) -> str | None:
    if not _has_text(args, "when") or not _has_text(args, "message"):
        return "schedule_text requires when & message"
    if not _has_target(args):
        return "schedule_text requires profileId or profileName"
    return None


def _check_schedule_reminder(args: Mapping[str, Any]) -> str | None:
    if not _has_text(args, "when"):
        return "schedule_reminder requires when"
    if not _has_target(args):
        return "schedule_reminder requires profileId or profileName"
    return None


def _check_none(args: Mapping[str, Any]) -> str | None:
    if not _has_text(args, "explanation"):
        return "none requires explanation"
    return None


_REQUIRED_FIELD_CHECKS: dict[IntentName, Callable[[Mapping[str, Any]], str | None]] = {
    IntentName.add_profile: _check_add_profile,
    IntentName.edit_profile: _check_edit_profile,
    IntentName.schedule_text: _check_schedule_text,
    IntentName.schedule_reminder: _check_schedule_reminder,
    IntentName.none: _check_none,
}

_SCHEDULED_INTENTS = {IntentName.schedule_text, IntentName.schedule_reminder}
_TARGETED_INTENTS = {IntentName.edit_profile, *_SCHEDULED_INTENTS}


def _describe_validation_error(name: IntentName, exc: ValidationError) -> str:
    errors = exc.errors()
    # loc is ("args", <field>, ...) for field errors; ("args",) for model-level errors.
    loc = errors[0]["loc"] if errors else ()
    fields = [str(part) for part in loc[1:]] if loc and loc[0] == "args" else []
    if not fields:
        return f"{name} has invalid args"
    return f"{name} has invalid {'.'.join(fields)}"


def validate_intent(obj: Any, context: Context | None = None) -> ValidationOutcome:
    """Validate a decoded interpreter object against the intent contract.

    Returns:
        `Valid(intent)` when `obj` names a known intent and its args satisfy that intent's
        contract; otherwise `Invalid(reason)` with a specific, human-readable reason.
    """

    context = context or Context()

    if not isinstance(obj, Mapping):
        return Invalid("Missing intent/args")

    raw_name = obj.get("intent")
    if not isinstance(raw_name, str) or not raw_name:
        return Invalid("Missing intent/args")
    if raw_name not in IntentName.__members__:
        return Invalid("Unknown intent")
    name = IntentName(raw_name)

    args = obj.get("args")
    if not isinstance(args, Mapping):
        return Invalid("Missing intent/args")

    reason = _REQUIRED_FIELD_CHECKS[name](args)
    if reason is not None:
        return Invalid(reason)

    args = dict(args)

    if name in _SCHEDULED_INTENTS:
        when = parse_instant(args["when"], context.zone)
        if when is None:
            return Invalid(f"{name} requires an absolute when")
        args["when"] = when

    if name in _TARGETED_INTENTS and _has_text(args, "profileId") and context.known_profiles:
        if args["profileId"].strip() not in context.known_profile_ids:
            return Invalid(f"{name} references unknown profileId")

    try:
        intent = INTENT_MODELS[name].model_validate({"args": args})
    except ValidationError as exc:
        return Invalid(_describe_validation_error(name, exc))
    return Valid(intent)
