"""
Configuration constants for the cssport service
Centralizes tunable values and logger setup
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from .constants import (
    API_TIMEOUT_UPSTREAM,
    IMAGE_VALIDATION_TIMEOUT,
    LEAGUE_FALLBACK_RETRY_WINDOW,
    LEAGUE_LOGO_VALIDATION_TIMEOUT,
    LOGO_PROXY_TIMEOUT,
    MAX_RETRIES,
    RETRY_BACKOFF_FACTOR,
)


API_TIMEOUT = float(os.getenv("API_TIMEOUT", API_TIMEOUT_UPSTREAM))
"""Default timeout (seconds) for upstream sports API calls."""

API_MAX_RETRIES = int(os.getenv("API_MAX_RETRIES", MAX_RETRIES))
"""Maximum attempts for upstream sports API calls."""

API_BACKOFF_FACTOR = float(os.getenv("API_BACKOFF_FACTOR", RETRY_BACKOFF_FACTOR))

IMAGE_TIMEOUT = float(os.getenv("IMAGE_TIMEOUT", IMAGE_VALIDATION_TIMEOUT))
"""HEAD timeout (seconds) for generic image validation."""

LEAGUE_LOGO_TIMEOUT = float(os.getenv("LEAGUE_LOGO_TIMEOUT", LEAGUE_LOGO_VALIDATION_TIMEOUT))
"""HEAD timeout (seconds) for league logo validation."""

LEAGUE_FALLBACK_RETRY_SECONDS = float(
    os.getenv("LEAGUE_FALLBACK_RETRY_SECONDS", LEAGUE_FALLBACK_RETRY_WINDOW)
)

PROXY_TIMEOUT = float(os.getenv("LOGO_PROXY_TIMEOUT", LOGO_PROXY_TIMEOUT))


def setup_logger(name: str) -> logging.Logger:
    """Create or retrieve a configured logger for the application."""

    logger = logging.getLogger(name)

    log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    logger.setLevel(log_level)

    if logging.getLogger().handlers:
        logger.propagate = True
        return logger

    if not logger.handlers:
        log_file = os.path.join(os.path.dirname(os.path.dirname(__file__)), "cssport.log")
        handler = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
        formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(name)s: %(message)s')
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        logger.addHandler(handler)
        logger.propagate = False

    return logger
