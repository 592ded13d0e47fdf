"""Application composition root.

This module wires together configuration and the interpreter backend for the HTTP runtime.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from src.config.settings import Settings
from src.intent.llm_parser import Interpreter, LLMInterpreter, llm_config_from_settings
from src.intent.rules_parser import RulesInterpreter


@dataclass(frozen=True)
class App:
    """Shared application dependencies for request handlers."""

    settings: Settings
    interpreter: Interpreter
    http_client: httpx.AsyncClient | None = None

    async def aclose(self) -> None:
        """Release pooled interpreter connections."""

        if self.http_client is not None:
            await self.http_client.aclose()


def create_app(settings: Settings) -> App:
    """Create the application container for the configured interpreter backend."""

    if settings.interpreter_backend == "rules":
        return App(settings=settings, interpreter=RulesInterpreter())

    client = httpx.AsyncClient()
    interpreter = LLMInterpreter(llm_config_from_settings(settings), client=client)
    return App(settings=settings, interpreter=interpreter, http_client=client)
