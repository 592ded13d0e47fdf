"""Intent resolution pipeline.

Stages per request:
    received -> normalized -> interpreted -> {parse_failed | parsed} -> {validated | rejected}

Every interpretation-quality failure (undecodable output, contract violation, timeout) is mapped to
a `none` intent carrying an explanation. Only upstream failures (`InterpreterError`) propagate.
There are no retries.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from src.intent.context import normalize_context
from src.intent.llm_parser import Interpreter, InterpreterTimeout
from src.intent.response import DecodeFailure, decode_response
from src.intent.schema import Intent, Invalid, none_intent
from src.intent.validator import validate_intent

logger = logging.getLogger(__name__)

DECODE_FAILURE_EXPLANATION = "Model did not return valid JSON"
TIMEOUT_EXPLANATION = "Interpretation timed out"


class ResolutionStage(StrEnum):
    """Terminal stage a resolution ended in."""

    validated = "validated"
    parse_failed = "parse_failed"
    rejected = "rejected"
    timed_out = "timed_out"


@dataclass(frozen=True)
class ResolutionResult:
    """The intent returned to the caller plus the stage that produced it."""

    intent: Intent
    stage: ResolutionStage


async def resolve_intent(
        message: str,
        raw_context: Any = None,
        *,
        interpreter: Interpreter,
        tier: str = "default",
        timeout_s: float | None = None,
) -> ResolutionResult:
    """Resolve an utterance into a validated intent or a `none` fallback.

    Args:
        message: The user's utterance.
        raw_context: Caller-supplied context of any shape (normalized here).
        interpreter: The interpretation backend.
        tier: Interpreter tier (e.g. "lite" for a cheaper model).
        timeout_s: Upper bound for the interpreter call; the call is cancelled when exceeded.

    Raises:
        InterpreterError: If the interpreter is unavailable or fails (not a timeout).
    """

    context = normalize_context(raw_context)
    logger.debug(
        "normalized has_now=%s timezone=%s known_profiles=%d",
        context.now is not None,
        context.timezone,
        len(context.known_profiles),
    )

    try:
        raw = await asyncio.wait_for(
            interpreter.interpret(message, context, tier=tier),
            timeout=timeout_s,
        )
    except (TimeoutError, InterpreterTimeout):
        logger.warning("interpreter timed out timeout_s=%s", timeout_s)
        return ResolutionResult(intent=none_intent(TIMEOUT_EXPLANATION), stage=ResolutionStage.timed_out)
    logger.debug("interpreted chars=%d", len(raw or ""))

    decoded = decode_response(raw)
    if isinstance(decoded, DecodeFailure):
        logger.info("parse failed reason=%s", decoded.reason)
        return ResolutionResult(
            intent=none_intent(DECODE_FAILURE_EXPLANATION),
            stage=ResolutionStage.parse_failed,
        )

    outcome = validate_intent(decoded.value, context)
    if isinstance(outcome, Invalid):
        logger.info("rejected reason=%s", outcome.reason)
        return ResolutionResult(intent=none_intent(outcome.reason), stage=ResolutionStage.rejected)

    return ResolutionResult(intent=outcome.intent, stage=ResolutionStage.validated)
