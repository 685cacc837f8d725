"""
Gemelo Error Handling Module

Provides standardized error codes, exceptions, and response builders
for consistent error handling across the application.

Usage:
    from errors import (
        # Error codes
        ErrorCode,

        # Exceptions
        GemeloError,
        ValidationError,
        NotFoundError,
        ModelFailureError,
        RateLimitedError,
        ConfigurationError,
        ToolExecutionError,
        UpstreamExhaustedError,

        # Response builders
        error_response,
        format_error_for_llm,

        # Decorators
        handle_tool_errors,
        handle_async_tool_errors,
        log_error,
    )

Propagation policy:
    ModelFailureError / RateLimitedError are swallowed by the provider and
    orchestrator fallback loops. Only ConfigurationError and
    UpstreamExhaustedError reach the HTTP boundary, where error_response()
    renders them as {"message", "details"}. ToolExecutionError never leaves
    the stream; it becomes a result string via format_error_for_llm().
"""

from .codes import ErrorCode
from .exceptions import (
    GemeloError,
    ValidationError,
    NotFoundError,
    ModelFailureError,
    RateLimitedError,
    ConfigurationError,
    ToolExecutionError,
    UpstreamExhaustedError,
)
from .response import (
    error_response,
    format_error_for_llm,
)
from .handlers import (
    handle_tool_errors,
    handle_async_tool_errors,
    log_error,
)

__all__ = [
    # Error codes
    "ErrorCode",
    # Exceptions
    "GemeloError",
    "ValidationError",
    "NotFoundError",
    "ModelFailureError",
    "RateLimitedError",
    "ConfigurationError",
    "ToolExecutionError",
    "UpstreamExhaustedError",
    # Response builders
    "error_response",
    "format_error_for_llm",
    # Decorators
    "handle_tool_errors",
    "handle_async_tool_errors",
    "log_error",
]
