"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api.handlers import handle_http_exception
from src.api.router import router
from src.app import App


def create_api(app: App) -> FastAPI:
    """Build the HTTP application around an application container."""

    @asynccontextmanager
    async def lifespan(_api: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await app.aclose()

    api = FastAPI(title="Contact Intent Service", version="1.0.0", lifespan=lifespan)
    api.state.container = app
    api.include_router(router)
    api.add_exception_handler(StarletteHTTPException, handle_http_exception)
    return api
