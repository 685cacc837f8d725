"""
Standard error response builders for Gemelo.

Provides consistent response formats for the HTTP boundary and for tool
results fed back into the model.
"""

from typing import Optional
from .codes import ErrorCode
from .exceptions import GemeloError


def error_response(error: GemeloError | Exception, message: Optional[str] = None, include_details: bool = True) -> dict:
    """Build the user-visible error body.

    Args:
        error: The exception to convert to a response
        message: Optional user-facing message overriding the error's own
        include_details: Whether to expose the technical detail field

    Returns:
        {"message": ..., "details": ...} with details omitted when empty

    Example:
        >>> from errors import UpstreamExhaustedError, error_response
        >>> err = UpstreamExhaustedError("All providers failed", details="gemini: 503")
        >>> error_response(err, message="Error generating response")
        {"message": "Error generating response", "details": "All providers failed - gemini: 503"}
    """
    if isinstance(error, GemeloError):
        body = {"message": message or error.message}
        details = str(error) if message else error.details
    else:
        body = {"message": message or ErrorCode.INTERNAL_UNEXPECTED.value}
        details = str(error) or None

    if include_details and details:
        body["details"] = details
    return body


def format_error_for_llm(error: GemeloError | Exception, tool: Optional[str] = None) -> str:
    """Format an error for inclusion in model context.

    Creates a concise, readable error message suitable for the model to
    understand and communicate to the user.

    Args:
        error: The exception to format
        tool: Optional tool name for context

    Returns:
        Formatted error string
    """
    prefix = f"Tool '{tool}' failed. " if tool else ""
    if isinstance(error, GemeloError):
        parts = [f"{prefix}Error: {error.message}"]
        if error.details:
            parts.append(f"Details: {error.details}")
        if error.recoverable:
            parts.append("This error may be recoverable by the user.")
        return " ".join(parts)

    return f"{prefix}Error: {str(error)}"
