"""Logging configuration for the promotions service.

Provides a centralized logger configured via the LOG_LEVEL environment
variable. Modules request child loggers with get_logger("eligibility").
"""
import logging
import os
import sys

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logger = logging.getLogger("promotions")
logger.setLevel(LOG_LEVEL)

if not logger.handlers:
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(LOG_LEVEL)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

# Avoid duplicate lines through the root logger
logger.propagate = False


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger, or a named child of it.

    Args:
        name: Optional suffix appended to "promotions"
    """
    if name:
        return logging.getLogger(f"promotions.{name}")
    return logger
