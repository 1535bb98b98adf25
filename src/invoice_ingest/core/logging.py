"""
Loguru configuration for the ingestion service.

Modules log through ``loguru.logger`` directly and pass structured context
as keyword arguments; this module only decides where records go.
"""

import sys

from loguru import logger

from .config import settings


def setup_logging(level: str | None = None, json_logs: bool | None = None):
    """
    Configure a single stderr sink and return the shared logger.

    Args:
        level: Minimum level to emit (defaults to LOG_LEVEL)
        json_logs: Serialize records as JSON (defaults to LOG_JSON)
    """
    level = level or settings.log_level
    json_logs = settings.log_json if json_logs is None else json_logs

    logger.remove()
    if json_logs:
        logger.add(sys.stderr, level=level, serialize=True)
    else:
        logger.add(
            sys.stderr,
            level=level,
            format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
                   "<cyan>{name}</cyan> - <level>{message}</level> | {extra}",
        )

    return logger.bind(app=settings.app_name, env=settings.app_env)
