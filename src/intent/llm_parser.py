"""LLM-backed interpreter (OpenAI-style Chat Completions).

The LLM is only asked to produce **Intent JSON**. This module returns the raw completion text and
performs no validation: its output is untrusted and is decoded and validated downstream.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Protocol

import httpx

from src.config.settings import Settings
from src.intent.schema import Context

logger = logging.getLogger(__name__)

PROMPT_VERSION = "intent_v1"


class InterpreterError(RuntimeError):
    """Raised when the interpreter cannot be reached or answers with an error."""


class InterpreterTimeout(InterpreterError):
    """Raised when the interpreter call exceeds its time budget."""


class Interpreter(Protocol):
    """Black-box text interpreter: utterance + context -> raw text."""

    async def interpret(self, message: str, context: Context, *, tier: str = "default") -> str:
        ...


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for the OpenAI-style Chat Completions API call."""

    api_key: str | None
    model: str = "gpt-4o"
    model_lite: str = "gpt-4o-mini"
    api_base: str = "https://api.openai.com/v1"
    temperature: float = 0.2
    timeout_s: float = 20.0
    log_raw: bool = False

    def model_for_tier(self, tier: str) -> str:
        return self.model_lite if tier == "lite" else self.model


@lru_cache(maxsize=1)
def load_prompt() -> str:
    """Load the versioned instruction set sent as the system prompt."""

    prompt_path = Path(__file__).resolve().parent / f"prompt_{PROMPT_VERSION}.md"
    return prompt_path.read_text(encoding="utf-8")


def _chat_completions_url(api_base: str) -> str:
    return api_base.rstrip("/") + "/chat/completions"


def build_payload(message: str, context: Context, *, model: str, temperature: float) -> dict[str, Any]:
    """Build the Chat Completions request body for one utterance."""

    return {
        "model": model,
        "temperature": temperature,
        "response_format": {"type": "json_object"},
        "messages": [
            {"role": "system", "content": load_prompt()},
            {
                "role": "user",
                "content": json.dumps({"message": message, "context": context.to_payload()}),
            },
        ],
    }


class LLMInterpreter:
    """Interpreter backed by an OpenAI-compatible `/chat/completions` endpoint.

    A shared `httpx.AsyncClient` may be injected for connection pooling; otherwise a client is
    opened and closed around every call. Cancelling `interpret` aborts the HTTP request.
    """

    def __init__(self, config: LLMConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client

    async def _post(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> httpx.Response:
        return await client.post(
            _chat_completions_url(self._config.api_base),
            json=payload,
            headers={"Authorization": f"Bearer {self._config.api_key}"},
            timeout=self._config.timeout_s,
        )

    async def interpret(self, message: str, context: Context, *, tier: str = "default") -> str:
        """Ask the LLM for an intent and return the raw completion text.

        Raises:
            InterpreterError: On a missing API key, transport failure, non-2xx status or an
                unexpected response envelope.
            InterpreterTimeout: If the HTTP call times out.
        """

        if not self._config.api_key:
            raise InterpreterError("OPENAI_API_KEY not set")

        payload = build_payload(
            message,
            context,
            model=self._config.model_for_tier(tier),
            temperature=self._config.temperature,
        )

        try:
            if self._client is not None:
                resp = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await self._post(client, payload)
        except httpx.TimeoutException as exc:
            raise InterpreterTimeout("LLM request timed out") from exc
        except httpx.HTTPError as exc:
            raise InterpreterError(f"LLM connection error: {exc.__class__.__name__}") from exc

        if not resp.is_success:
            raise InterpreterError(f"OpenAI error: {resp.text}")

        try:
            decoded = resp.json()
            content = decoded["choices"][0]["message"].get("content")
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
            raise InterpreterError("Unexpected LLM response format") from exc

        if self._config.log_raw:
            logger.debug("llm content model=%s content=%r", decoded.get("model"), content)

        return content if isinstance(content, str) else ""


def llm_config_from_settings(settings: Settings) -> LLMConfig:
    """Build LLM config from application settings."""

    return LLMConfig(
        api_key=settings.openai_api_key,
        model=settings.llm_model,
        model_lite=settings.llm_model_lite,
        api_base=settings.llm_api_base,
        temperature=settings.llm_temperature,
        timeout_s=settings.interpreter_timeout_s,
        log_raw=settings.log_raw_responses,
    )
