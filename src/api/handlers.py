"""HTTP request handlers.

Hard contract: a well-formed request always gets `{"ok": true, "result": <Intent>}`, where the
intent is either fully valid or a `none` fallback with an explanation. Only input errors (400) and
upstream/service failures (500) produce `{"ok": false, "error": ...}`.
"""

from __future__ import annotations

import logging
from time import monotonic
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.app import App
from src.intent.llm_parser import InterpreterError
from src.intent.parser import resolve_intent
from src.intent.schema import intent_to_wire

logger = logging.getLogger(__name__)

ALLOWED_METHODS = "POST, OPTIONS"
ALLOWED_HEADERS = "authorization, content-type"


def cors_headers(app: App) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": app.settings.cors_allow_origin,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
    }


def _app(request: Request) -> App:
    return request.app.state.container


def _error(status_code: int, error: str, headers: dict[str, str]) -> JSONResponse:
    return JSONResponse({"ok": False, "error": error}, status_code=status_code, headers=headers)


async def handle_preflight(request: Request) -> Response:
    """Answer a CORS pre-flight with no body."""

    return Response(status_code=204, headers=cors_headers(_app(request)))


async def handle_resolve(request: Request) -> JSONResponse:
    """Resolve one utterance into an intent envelope."""

    app = _app(request)
    headers = cors_headers(app)

    try:
        body: Any = await request.json()
    except ValueError:
        return _error(400, "Invalid JSON body", headers)
    if not isinstance(body, dict):
        return _error(400, "Invalid JSON body", headers)

    message = body.get("message")
    if not isinstance(message, str) or not message.strip():
        return _error(400, "Missing 'message' string", headers)

    tier = body.get("tier")
    if not isinstance(tier, str) or not tier:
        tier = "default"

    started = monotonic()

    # noinspection PyBroadException
    try:
        result = await resolve_intent(
            message,
            body.get("context"),
            interpreter=app.interpreter,
            tier=tier,
            timeout_s=app.settings.interpreter_timeout_s,
        )
    except InterpreterError as exc:
        latency_ms = int((monotonic() - started) * 1000)
        logger.warning("upstream failure error=%s latency_ms=%d", exc, latency_ms)
        return _error(500, str(exc), headers)
    except Exception as exc:
        # Handler boundary: internal errors must still produce the error envelope.
        logger.exception("resolution failed")
        return _error(500, str(exc) or exc.__class__.__name__, headers)

    latency_ms = int((monotonic() - started) * 1000)
    logger.info(
        "resolved stage=%s intent=%s tier=%s latency_ms=%d",
        result.stage,
        result.intent.intent,
        tier,
        latency_ms,
    )
    return JSONResponse({"ok": True, "result": intent_to_wire(result.intent)}, headers=headers)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> Response:
    """Render routing errors (405, 404) with CORS headers attached."""

    headers = {**(exc.headers or {}), **cors_headers(_app(request))}
    if exc.status_code == 405:
        return PlainTextResponse("Method Not Allowed", status_code=405, headers=headers)
    return _error(exc.status_code, str(exc.detail), headers)
