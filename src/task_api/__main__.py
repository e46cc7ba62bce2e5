"""
Run the Task Tracker API with uvicorn.

Usage:
    python -m task_api

HOST, PORT, LOG_LEVEL and the storage settings are read from the environment
(see task_api.settings).
"""
from __future__ import annotations

import logging

import uvicorn

from .logging_setup import setup_logging
from .main import create_app
from .settings import get_settings

logger = logging.getLogger("task_api")


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    app = create_app(settings)
    logger.info("Starting server on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
