"""HTTP router composition."""

from __future__ import annotations

from fastapi import APIRouter

from src.api.handlers import handle_preflight, handle_resolve

router = APIRouter()

for path in ("/", "/intent"):
    router.add_api_route(path, handle_resolve, methods=["POST"], include_in_schema=path != "/")
    router.add_api_route(path, handle_preflight, methods=["OPTIONS"], include_in_schema=False)
