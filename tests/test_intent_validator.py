"""Tests for server-side validation of decoded interpreter output."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from src.intent.schema import Context, Invalid, KnownProfile, Valid, intent_to_wire
from src.intent.validator import validate_intent

MINIMAL_VALID: dict[str, dict] = {
    "add_profile": {"name": "Kayleigh"},
    "edit_profile": {"profileName": "Michael", "updates": {"phone": "303-555-7788"}},
    "schedule_text": {"profileName": "Lisa", "when": "2025-09-26T13:00:00Z", "message": "Good luck!"},
    "schedule_reminder": {"profileName": "Kay", "when": "2025-09-26T20:00:00Z"},
    "none": {"explanation": "Missing required name for add_profile"},
}

# Removing each required field must yield a reason naming that field.
MISSING_FIELD_REASONS: list[tuple[str, str, str]] = [
    ("add_profile", "name", "add_profile requires name"),
    ("edit_profile", "updates", "edit_profile requires updates"),
    ("edit_profile", "profileName", "edit_profile requires profileId or profileName"),
    ("schedule_text", "when", "schedule_text requires when & message"),
    ("schedule_text", "message", "schedule_text requires when & message"),
    ("schedule_text", "profileName", "schedule_text requires profileId or profileName"),
    ("schedule_reminder", "when", "schedule_reminder requires when"),
    ("schedule_reminder", "profileName", "schedule_reminder requires profileId or profileName"),
    ("none", "explanation", "none requires explanation"),
]


def _validate(intent: str, args: dict, context: Context | None = None) -> Valid | Invalid:
    return validate_intent({"intent": intent, "args": args}, context)


@pytest.mark.parametrize("intent", sorted(MINIMAL_VALID))
def test_minimal_required_fields_are_valid(intent: str) -> None:
    outcome = _validate(intent, MINIMAL_VALID[intent])
    assert isinstance(outcome, Valid)
    assert outcome.intent.intent == intent


@pytest.mark.parametrize(("intent", "field", "reason"), MISSING_FIELD_REASONS)
def test_missing_required_field_is_invalid(intent: str, field: str, reason: str) -> None:
    args = {k: v for k, v in MINIMAL_VALID[intent].items() if k != field}
    assert _validate(intent, args) == Invalid(reason)


@pytest.mark.parametrize(("intent", "field", "reason"), MISSING_FIELD_REASONS)
def test_empty_required_field_counts_as_missing(intent: str, field: str, reason: str) -> None:
    args = dict(MINIMAL_VALID[intent])
    args[field] = {} if field == "updates" else "   "
    assert _validate(intent, args) == Invalid(reason)


@pytest.mark.parametrize("args", [{"name": "Kayleigh"}, {}, None, "text", [1, 2]])
def test_unknown_intent_is_always_rejected(args: object) -> None:
    assert validate_intent({"intent": "delete_profile", "args": args}) == Invalid("Unknown intent")


@pytest.mark.parametrize(
    "obj",
    [
        None,
        [],
        "add_profile",
        {"args": {"name": "Kayleigh"}},
        {"intent": "", "args": {}},
        {"intent": 3, "args": {}},
        {"intent": "add_profile"},
        {"intent": "add_profile", "args": ["Kayleigh"]},
    ],
)
def test_missing_intent_or_args_shape(obj: object) -> None:
    assert validate_intent(obj) == Invalid("Missing intent/args")


def test_tags_are_normalized_to_lowercase() -> None:
    upper = _validate("add_profile", {"name": "Kayleigh", "tags": ["Friend", "VIP"]})
    lower = _validate("add_profile", {"name": "Kayleigh", "tags": ["friend", "vip"]})
    assert isinstance(upper, Valid) and isinstance(lower, Valid)
    assert upper.intent == lower.intent
    assert intent_to_wire(upper.intent)["args"]["tags"] == ["friend", "vip"]


def test_invalid_optional_field_type_names_the_field() -> None:
    outcome = _validate("add_profile", {"name": "Kayleigh", "phone": 5552012})
    assert outcome == Invalid("add_profile has invalid phone")


def test_tags_must_be_a_list() -> None:
    assert _validate("add_profile", {"name": "Kayleigh", "tags": "friend"}) == Invalid(
        "add_profile has invalid tags"
    )


def test_extraneous_keys_are_dropped() -> None:
    outcome = _validate("schedule_reminder", {**MINIMAL_VALID["schedule_reminder"], "phone": "555"})
    assert isinstance(outcome, Valid)
    assert "phone" not in intent_to_wire(outcome.intent)["args"]


def test_profile_id_takes_precedence_over_profile_name() -> None:
    outcome = _validate(
        "schedule_text",
        {**MINIMAL_VALID["schedule_text"], "profileId": "p1"},
    )
    assert isinstance(outcome, Valid)
    wire = intent_to_wire(outcome.intent)["args"]
    assert wire["profileId"] == "p1"
    assert "profileName" not in wire


def test_when_with_offset_is_converted_to_utc() -> None:
    outcome = _validate(
        "schedule_reminder",
        {"profileName": "Kay", "when": "2025-09-26T15:00:00-05:00", "reason": "check in"},
    )
    assert isinstance(outcome, Valid)
    assert intent_to_wire(outcome.intent)["args"] == {
        "profileName": "Kay",
        "when": "2025-09-26T20:00:00Z",
        "reason": "check in",
    }


def test_naive_when_uses_context_timezone() -> None:
    context = Context(now=datetime(2025, 9, 22, 18, tzinfo=UTC), timezone="America/Chicago")
    outcome = _validate(
        "schedule_reminder",
        {"profileName": "Kay", "when": "2025-09-26T15:00:00"},
        context,
    )
    assert isinstance(outcome, Valid)
    assert intent_to_wire(outcome.intent)["args"]["when"] == "2025-09-26T20:00:00Z"


@pytest.mark.parametrize(
    "when",
    [
        "2025-09-26T15:00:00",
        "next friday at 3",
        "2025-09-26",
        "soon",
        "9999-12-31T23:59:59-05:00",
        "0001-01-01T00:00:00+05:00",
    ],
)
def test_non_absolute_when_is_rejected_without_timezone(when: str) -> None:
    outcome = _validate("schedule_text", {"profileName": "Lisa", "when": when, "message": "hi"})
    assert outcome == Invalid("schedule_text requires an absolute when")


def test_unknown_profile_id_is_rejected_when_directory_is_known() -> None:
    context = Context(known_profiles=(KnownProfile(id="p1", name="Lisa Nguyen"),))
    args = {"profileId": "p9", "updates": {"phone": "1"}}
    assert _validate("edit_profile", args, context) == Invalid(
        "edit_profile references unknown profileId"
    )
    assert isinstance(_validate("edit_profile", {**args, "profileId": "p1"}, context), Valid)


def test_profile_id_is_not_checked_without_directory() -> None:
    outcome = _validate("edit_profile", {"profileId": "p9", "updates": {"phone": "1"}})
    assert isinstance(outcome, Valid)


def test_model_none_intent_passes_through() -> None:
    outcome = _validate("none", {"explanation": "Time is unclear"})
    assert isinstance(outcome, Valid)
    assert intent_to_wire(outcome.intent) == {
        "intent": "none",
        "args": {"explanation": "Time is unclear"},
    }
