"""
Error handling decorators and utilities for Gemelo.

Provides decorators that keep tool handler failures from escaping into the
generation stream.
"""

import logging
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

from .exceptions import GemeloError, ToolExecutionError
from .response import format_error_for_llm

# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., Any])


def _as_tool_error(tool_name: str, error: Exception) -> ToolExecutionError:
    if isinstance(error, ToolExecutionError):
        return error
    if isinstance(error, GemeloError):
        return ToolExecutionError(error.message, details=error.details, tool=tool_name)
    return ToolExecutionError(str(error) or type(error).__name__, tool=tool_name)


def handle_tool_errors(tool_name: str, logger: Optional[logging.Logger] = None):
    """Decorator that catches exceptions and returns a failure description.

    Wraps a tool handler so that any exception is logged with its stack trace
    and converted into a string the model can read, instead of propagating.

    Args:
        tool_name: Name of the tool for error context
        logger: Optional logger instance (defaults to tool-specific logger)

    Returns:
        Decorated function that returns a failure string on exception

    Example:
        >>> @handle_tool_errors("web_search")
        ... def search(query):
        ...     if not query:
        ...         raise ValidationError("Missing query", parameter="query")
        ...     return f"results for {query}"
    """

    def decorator(func: F) -> F:
        log = logger or logging.getLogger(f"gemelo.{tool_name}")

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> str:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                err = _as_tool_error(tool_name, e)
                log.error(f"[{tool_name}] {err.code.value}: {err.message}", exc_info=True)
                return format_error_for_llm(err, tool=tool_name)

        return wrapper  # type: ignore

    return decorator


def handle_async_tool_errors(tool_name: str, logger: Optional[logging.Logger] = None):
    """Async version of handle_tool_errors decorator."""

    def decorator(func: F) -> F:
        log = logger or logging.getLogger(f"gemelo.{tool_name}")

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> str:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                err = _as_tool_error(tool_name, e)
                log.error(f"[{tool_name}] {err.code.value}: {err.message}", exc_info=True)
                return format_error_for_llm(err, tool=tool_name)

        return wrapper  # type: ignore

    return decorator


def log_error(
    logger: logging.Logger, error: Exception, context: Optional[str] = None, include_traceback: bool = True
) -> None:
    """Log an error with consistent formatting.

    Args:
        logger: Logger instance to use
        error: The exception to log
        context: Optional context string to prefix the message
        include_traceback: Whether to include the full stack trace

    Example:
        >>> log_error(logger, err, context="generate")
        # Logs: "[generate] UPSTREAM_EXHAUSTED: All providers failed"
    """
    if isinstance(error, GemeloError):
        message = f"{error.code.value}: {error}"
    else:
        message = str(error)

    if context:
        message = f"[{context}] {message}"

    logger.error(message, exc_info=include_traceback)
