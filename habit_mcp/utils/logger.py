"""
Logger Utility Module

Console logging for the habit tracker server. Records go to stderr because
stdout carries the MCP stdio transport.
"""

import logging
import sys
from typing import Optional

from habit_mcp.utils.config import get_config

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def resolve_log_level(level: Optional[str] = None) -> int:
    """
    Turn a level name into a logging level.

    Args:
        level (Optional[str]): A level name such as "DEBUG". Defaults to
            server.log_level from config.yaml.

    Returns:
        int: The logging level. Unknown names give INFO.
    """
    name = level or get_config().get("log_level") or "INFO"
    value = logging.getLevelName(str(name).upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logger(name: Optional[str] = None, level: Optional[str] = None) -> logging.Logger:
    """
    Attach a stderr handler to a logger, once.

    Args:
        name (Optional[str]): The logger name. Defaults to "habit_mcp", which
            covers every module logger in the package.
        level (Optional[str]): Overrides the configured level.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = logging.getLogger(name or "habit_mcp")
    if logger.handlers:
        return logger

    log_level = resolve_log_level(level)
    logger.setLevel(log_level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
