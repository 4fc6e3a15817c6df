"""
Main entry point for the Audio Studio API.

This module exports an app instance for ``uvicorn audiostudio.api.main:app``.
Configuration comes from a ``.env`` file, ``configs/<env>.yaml`` and the
environment.
"""

from dotenv import load_dotenv

from ..infrastructure.config.settings import load_config
from ..infrastructure.monitoring.logging import configure_logging
from .app import create_app

load_dotenv()

config = load_config()
configure_logging(level=config.logging.level, format_type=config.logging.format, log_file=config.logging.file)

app = create_app(config)

__all__ = ["app"]
