"""HTTP service entrypoint."""

from __future__ import annotations

import logging

import uvicorn

from src.api.server import create_api
from src.app import create_app
from src.config.logging import configure_logging
from src.config.settings import load_settings

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the intent service under uvicorn."""

    settings = load_settings()
    configure_logging(settings.log_level)

    api = create_api(create_app(settings))
    logger.info("starting backend=%s port=%d", settings.interpreter_backend, settings.port)
    uvicorn.run(api, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
