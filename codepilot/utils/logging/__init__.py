__all__ = [
    "Logger",
    "get_logger",
    "configure_logging",
]

from codepilot.utils.logging.default import Logger
from codepilot.utils.logging.base_logger import configure_logging, get_logger
