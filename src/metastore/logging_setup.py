#!/usr/bin/env python3
"""
Logging configuration for the goal store.

Library modules only ever call get_logger(); handlers are attached by
whoever owns the process (the CLI, or the host application) through
setup_logging().
"""
import logging
import sys

VERSION = "v0.1.0"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-22s | %(message)s"
LOG_FORMAT_SIMPLE = "%(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Prefixes that already mark a message, so the formatter leaves it alone
_MARKED_PREFIXES = ("⚠️", "❌", "💥", "💾", "🗑️", "✅", "📂", "⏱️")


class EmojiFormatter(logging.Formatter):
    """Formatter that prefixes warnings and errors with an emoji."""

    LEVEL_EMOJIS = {
        logging.DEBUG: "",
        logging.INFO: "",
        logging.WARNING: "⚠️ ",
        logging.ERROR: "❌ ",
        logging.CRITICAL: "💥 ",
    }

    def format(self, record: logging.LogRecord) -> str:
        emoji = self.LEVEL_EMOJIS.get(record.levelno, "")
        if emoji and not str(record.msg).lstrip().startswith(_MARKED_PREFIXES):
            record.msg = f"{emoji}{record.msg}"
        return super().format(record)


def setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    """Send logs to stderr (messages only) and, if given, to a timestamped file."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    handlers[0].setFormatter(EmojiFormatter(LOG_FORMAT_SIMPLE))
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        handlers[-1].setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers[:] = handlers


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from .logging_setup import get_logger
        logger = get_logger(__name__)
        logger.info("Goal saved for device %s", device_id)
    """
    return logging.getLogger(name)
