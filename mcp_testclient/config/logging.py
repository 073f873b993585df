from __future__ import annotations

import logging

from mcp_testclient.config.settings import get_settings

LOG_FORMAT = "%(levelname)s:     %(name)s - %(message)s"


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """Ensure mcp_testclient.* logs reach a stream handler at the configured level."""
    pkg_logger = logging.getLogger("mcp_testclient")
    if level is None:
        level = get_settings().log_level
    if isinstance(level, str):
        level = level.upper()

    if not pkg_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        pkg_logger.addHandler(handler)
    pkg_logger.setLevel(level)
    return pkg_logger
