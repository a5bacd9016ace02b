import logging
import os
import sys

_ROOT_LOGGER_NAME = "codepilot"
_DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = None, fmt: str = _DEFAULT_FORMAT) -> logging.Logger:
    """
    Attach a stream handler to the package root logger.

    Safe to call more than once; the handler is only added the first time.
    The level defaults to ``AI_ASSISTANT_LOG_LEVEL`` or INFO.
    """
    global _configured

    root = logging.getLogger(_ROOT_LOGGER_NAME)
    level = (level or os.getenv("AI_ASSISTANT_LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, level, logging.INFO))

    if not _configured:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(fmt))
        root.addHandler(handler)
        root.propagate = True
        _configured = True

    return root


def get_logger(name: str) -> logging.Logger:
    """Return a stdlib logger, making sure the package handler is installed."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
