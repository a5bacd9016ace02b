import logging

from codepilot.utils.logging.base_logger import get_logger


class Logger:
    """
    Logger that carries an operation context.

    Wraps a stdlib logger and merges ``operation_context`` (operation name,
    model, prompt length, ...) into the ``extra`` of every record so the
    diagnostic output of a failing request can be correlated.

    Args:
        name (str): The name of the logger instance
        operation_context (dict, optional): Context attached to every record
    """

    def __init__(self, name: str, operation_context: dict = None):
        self.base_logger: logging.Logger = get_logger(name)
        self.operation_context = operation_context

    def bind(self, **context) -> "Logger":
        """Return a new Logger with additional context merged in."""
        merged = dict(self.operation_context or {})
        merged.update(context)
        return Logger(self.base_logger.name, merged)

    def __add_operation_context_to_extra(self, extra: dict) -> dict:
        """
        Merges the operation context with additional extra information.

        Keys are prefixed with ``ctx_`` so they can never collide with
        reserved LogRecord attributes such as ``message`` or ``args``.
        """
        merged = {}
        if self.operation_context:
            merged.update(self.operation_context)
        if extra:
            merged.update(extra)
        if not merged:
            return None
        return {f"ctx_{key}": value for key, value in merged.items()}

    def debug(self, message, extra=None):
        self.base_logger.debug(message, extra=self.__add_operation_context_to_extra(extra))

    def info(self, message, extra=None):
        self.base_logger.info(message, extra=self.__add_operation_context_to_extra(extra))

    def warning(self, message, extra=None):
        self.base_logger.warning(message, extra=self.__add_operation_context_to_extra(extra))

    def error(self, message, extra=None, exc_info=None):
        """
        Log a message with ERROR level.

        Args:
            message: The message to be logged
            extra (dict, optional): Additional context information for this log entry
            exc_info: Exception (or exc_info tuple) whose traceback should be recorded
        """
        self.base_logger.error(
            message,
            extra=self.__add_operation_context_to_extra(extra),
            exc_info=exc_info,
        )

    def critical(self, message, extra=None):
        self.base_logger.critical(message, extra=self.__add_operation_context_to_extra(extra))
