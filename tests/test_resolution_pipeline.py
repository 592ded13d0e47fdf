"""Tests for the resolution pipeline: fallbacks, timeouts, upstream errors, isolation."""

from __future__ import annotations

import asyncio
import json

import pytest

from src.intent.llm_parser import InterpreterError, InterpreterTimeout
from src.intent.parser import (
    DECODE_FAILURE_EXPLANATION,
    TIMEOUT_EXPLANATION,
    ResolutionStage,
    resolve_intent,
)
from src.intent.rules_parser import RulesInterpreter
from src.intent.schema import Context, intent_to_wire


class _StaticInterpreter:
    def __init__(self, raw: str) -> None:
        self.raw = raw
        self.calls: list[tuple[str, Context, str]] = []

    async def interpret(self, message: str, context: Context, *, tier: str = "default") -> str:
        self.calls.append((message, context, tier))
        return self.raw


class _RaisingInterpreter:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def interpret(self, message: str, context: Context, *, tier: str = "default") -> str:
        raise self.exc


class _SlowInterpreter:
    def __init__(self) -> None:
        self.cancelled = False

    async def interpret(self, message: str, context: Context, *, tier: str = "default") -> str:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return "{}"


@pytest.mark.asyncio
async def test_valid_output_is_returned_unchanged() -> None:
    raw = json.dumps({"intent": "add_profile", "args": {"name": "Kayleigh", "tags": ["Friend"]}})
    result = await resolve_intent("Add Kayleigh", {}, interpreter=_StaticInterpreter(raw))

    assert result.stage == ResolutionStage.validated
    assert intent_to_wire(result.intent) == {
        "intent": "add_profile",
        "args": {"name": "Kayleigh", "tags": ["friend"]},
    }


@pytest.mark.asyncio
async def test_non_json_output_becomes_none_intent() -> None:
    result = await resolve_intent("hi", None, interpreter=_StaticInterpreter("I think you mean..."))

    assert result.stage == ResolutionStage.parse_failed
    assert intent_to_wire(result.intent) == {
        "intent": "none",
        "args": {"explanation": DECODE_FAILURE_EXPLANATION},
    }


@pytest.mark.asyncio
async def test_contract_violation_becomes_none_with_reason() -> None:
    raw = json.dumps({"intent": "schedule_text", "args": {"message": "yo"}})
    result = await resolve_intent("text yo", None, interpreter=_StaticInterpreter(raw))

    assert result.stage == ResolutionStage.rejected
    assert intent_to_wire(result.intent) == {
        "intent": "none",
        "args": {"explanation": "schedule_text requires when & message"},
    }


@pytest.mark.asyncio
async def test_unknown_intent_becomes_none() -> None:
    raw = json.dumps({"intent": "send_email", "args": {"to": "kay@example.com"}})
    result = await resolve_intent("email Kay", None, interpreter=_StaticInterpreter(raw))
    assert intent_to_wire(result.intent)["args"] == {"explanation": "Unknown intent"}


@pytest.mark.asyncio
async def test_interpreter_receives_normalized_context_and_tier() -> None:
    interpreter = _StaticInterpreter(json.dumps({"intent": "none", "args": {"explanation": "x"}}))
    await resolve_intent(
        "hi",
        {"timezone": "America/Chicago", "knownProfiles": "bogus"},
        interpreter=interpreter,
        tier="lite",
    )

    [(message, context, tier)] = interpreter.calls
    assert message == "hi"
    assert context == Context(timezone="America/Chicago")
    assert tier == "lite"


@pytest.mark.asyncio
async def test_profile_id_outside_directory_is_rejected() -> None:
    raw = json.dumps({"intent": "edit_profile", "args": {"profileId": "p404", "updates": {"phone": "1"}}})
    result = await resolve_intent(
        "change number",
        {"knownProfiles": [{"id": "p1", "name": "Lisa Nguyen"}]},
        interpreter=_StaticInterpreter(raw),
    )
    assert intent_to_wire(result.intent)["args"] == {
        "explanation": "edit_profile references unknown profileId"
    }


@pytest.mark.asyncio
async def test_slow_interpreter_is_cancelled_and_times_out_to_none() -> None:
    interpreter = _SlowInterpreter()
    result = await resolve_intent("hi", None, interpreter=interpreter, timeout_s=0.01)

    assert result.stage == ResolutionStage.timed_out
    assert intent_to_wire(result.intent)["args"] == {"explanation": TIMEOUT_EXPLANATION}
    assert interpreter.cancelled


@pytest.mark.asyncio
async def test_transport_timeout_becomes_none() -> None:
    interpreter = _RaisingInterpreter(InterpreterTimeout("LLM request timed out"))
    result = await resolve_intent("hi", None, interpreter=interpreter)
    assert result.stage == ResolutionStage.timed_out


@pytest.mark.asyncio
async def test_upstream_failure_propagates() -> None:
    interpreter = _RaisingInterpreter(InterpreterError("OPENAI_API_KEY not set"))
    with pytest.raises(InterpreterError, match="OPENAI_API_KEY not set"):
        await resolve_intent("hi", None, interpreter=interpreter)


@pytest.mark.asyncio
async def test_add_profile_example_end_to_end() -> None:
    result = await resolve_intent(
        "Add Kayleigh, 555-2012, tag friend",
        {},
        interpreter=RulesInterpreter(),
    )
    assert result.stage == ResolutionStage.validated
    assert intent_to_wire(result.intent) == {
        "intent": "add_profile",
        "args": {"name": "Kayleigh", "phone": "555-2012", "tags": ["friend"]},
    }


@pytest.mark.asyncio
async def test_relative_reminder_example_end_to_end() -> None:
    result = await resolve_intent(
        "remind me next friday at 3 to check in w/ Kay",
        {"now": "2025-09-22T18:00:00Z", "timezone": "America/Chicago"},
        interpreter=RulesInterpreter(),
    )
    args = intent_to_wire(result.intent)["args"]
    assert result.intent.intent == "schedule_reminder"
    assert args["when"] == "2025-09-26T20:00:00Z"
    assert args["profileName"] == "Kay"


@pytest.mark.asyncio
async def test_concurrent_requests_do_not_share_state() -> None:
    class _EchoInterpreter:
        async def interpret(self, message: str, context: Context, *, tier: str = "default") -> str:
            # Yield so the two requests interleave.
            await asyncio.sleep(0.01 if message == "first" else 0)
            return json.dumps(
                {
                    "intent": "schedule_reminder",
                    "args": {
                        "profileName": message,
                        "when": "2025-09-26T15:00:00",
                        "reason": context.timezone,
                    },
                }
            )

    interpreter = _EchoInterpreter()
    first, second = await asyncio.gather(
        resolve_intent("first", {"timezone": "America/Chicago"}, interpreter=interpreter),
        resolve_intent("second", {"timezone": "Europe/Berlin"}, interpreter=interpreter),
    )

    assert intent_to_wire(first.intent)["args"] == {
        "profileName": "first",
        "when": "2025-09-26T20:00:00Z",
        "reason": "America/Chicago",
    }
    assert intent_to_wire(second.intent)["args"] == {
        "profileName": "second",
        "when": "2025-09-26T13:00:00Z",
        "reason": "Europe/Berlin",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("raw", "stage"),
    [
        ('{"intent": ' + "[" * 100_000 + "]" * 100_000 + "}", ResolutionStage.parse_failed),
        (
            json.dumps(
                {
                    "intent": "schedule_reminder",
                    "args": {"profileName": "Kay", "when": "9999-12-31T23:59:59-05:00"},
                }
            ),
            ResolutionStage.rejected,
        ),
        (
            json.dumps(
                {
                    "intent": "schedule_text",
                    "args": {"profileName": "Kay", "when": "0001-01-01T00:00:00+05:00", "message": "hi"},
                }
            ),
            ResolutionStage.rejected,
        ),
    ],
)
async def test_hostile_output_falls_back_to_none(raw: str, stage: ResolutionStage) -> None:
    result = await resolve_intent("hi", {}, interpreter=_StaticInterpreter(raw))

    assert result.stage == stage
    assert result.intent.intent == "none"
    assert result.intent.args.explanation
