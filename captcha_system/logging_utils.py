"""Logging setup for the CAPTCHA service.

Every record carries a trace/correlation id (normally the captcha id) so
issue and verify events for one challenge can be followed through the log.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

from captcha_system.config.constants import (LOG_BACKUP_COUNT, LOG_DIR,
                                             LOG_FILE_NAME, LOG_LEVEL,
                                             LOG_MAX_BYTES)

LOGGER_NAME = "captcha_system"
LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] [trace=%(trace_id)s] %(message)s"


# Make sure every log record has a trace_id attribute so the formatter can
# print one even when no LoggerAdapter supplied it.
class TraceFilter(logging.Filter):
    def filter(self, record):
        if not hasattr(record, "trace_id"):
            record.trace_id = "-"
        return True


def configure_logging(log_dir: Optional[str] = LOG_DIR, level: str = LOG_LEVEL) -> logging.Logger:
    """Attach rotating-file and console handlers to the service logger.

    Safe to call more than once; handlers are only added the first time.

    Args:
        log_dir: Directory for the rotating log file. ``None`` disables file logging.
        level: Logging level name.

    Returns:
        The configured ``captcha_system`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())
    if getattr(logger, "_captcha_configured", False):
        return logger

    formatter = logging.Formatter(LOG_FORMAT)
    trace_filter = TraceFilter()
    logger.addFilter(trace_filter)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(trace_filter)
        logger.addHandler(file_handler)

    # Console handler so developers still see messages while running
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    console_handler.addFilter(trace_filter)
    logger.addHandler(console_handler)

    logger._captcha_configured = True
    return logger


def get_trace_logger(trace_id: Optional[str], name: str = LOGGER_NAME):
    """Return a LoggerAdapter that attaches a trace_id to each LogRecord.

    Use this where a captcha_id (or other correlation id) is known so that
    subsequent log messages can be correlated.
    """
    return logging.LoggerAdapter(logging.getLogger(name), {"trace_id": trace_id if trace_id else "-"})
