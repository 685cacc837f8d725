"""
Custom exception hierarchy for Gemelo.

All exceptions inherit from GemeloError and include:
- code: ErrorCode for categorization
- message: Human-readable error message
- details: Optional additional context
- recoverable: Whether the caller can retry/fix the issue
- context: Additional key-value pairs for debugging
"""

from typing import Any, List, Optional
from .codes import ErrorCode


class GemeloError(Exception):
    """Base exception for all Gemelo errors.

    Attributes:
        code: The ErrorCode categorizing this error
        message: Human-readable error message
        details: Optional additional context for the user
        recoverable: Whether the error can be resolved by user action
        context: Additional debugging information
    """

    code: ErrorCode = ErrorCode.INTERNAL_UNEXPECTED
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        code: Optional[ErrorCode] = None,
        recoverable: Optional[bool] = None,
        **context: Any,
    ):
        self.message = message
        self.details = details
        self.context = context if context else None

        # Allow overriding class defaults
        if code is not None:
            self.code = code
        if recoverable is not None:
            self.recoverable = recoverable

        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message

    def to_dict(self) -> dict:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
        }


class ValidationError(GemeloError):
    """Error during input validation."""

    code = ErrorCode.VALIDATION_MISSING_PARAM
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        parameter: Optional[str] = None,
        received: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if parameter:
            ctx["parameter"] = parameter
        if received:
            ctx["received"] = received
        super().__init__(message, details, **ctx)


class NotFoundError(GemeloError):
    """Error when a required resource is not found."""

    code = ErrorCode.NOT_FOUND_USER
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if resource_type:
            ctx["resource_type"] = resource_type
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message, details, **ctx)


class ModelFailureError(GemeloError):
    """A candidate model (or a whole provider) failed.

    Recovered by advancing to the next candidate. When raised by a provider
    after exhausting its list, ``attempts`` lists every (model, reason) pair.
    """

    code = ErrorCode.LLM_MODEL_FAILED
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        error_type: Optional[str] = None,
        attempts: Optional[List[tuple]] = None,
        **context: Any,
    ):
        if error_type == "timeout":
            code = ErrorCode.LLM_TIMEOUT
        elif error_type == "empty":
            code = ErrorCode.LLM_RESPONSE_EMPTY
        else:
            code = ErrorCode.LLM_MODEL_FAILED

        self.model = model
        self.provider = provider
        self.attempts = list(attempts or [])

        ctx = {**context}
        if model:
            ctx["model"] = model
        if provider:
            ctx["provider"] = provider
        if error_type:
            ctx["error_type"] = error_type
        super().__init__(message, details, code=code, **ctx)


class RateLimitedError(ModelFailureError):
    """Provider signaled throttling (429-class)."""

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        retry_after_s: Optional[float] = None,
        **context: Any,
    ):
        self.retry_after_s = retry_after_s
        if retry_after_s is not None:
            context["retry_after_s"] = retry_after_s
        super().__init__(message, details, **context)
        self.code = ErrorCode.LLM_RATE_LIMITED


class ConfigurationError(GemeloError):
    """Required credentials or configuration are missing. Never retried."""

    code = ErrorCode.CONFIG_MISSING_CREDENTIALS
    recoverable = False

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        provider: Optional[str] = None,
        setting: Optional[str] = None,
        **context: Any,
    ):
        ctx = {**context}
        if provider:
            ctx["provider"] = provider
        if setting:
            ctx["setting"] = setting
        super().__init__(message, details, **ctx)


class ToolExecutionError(GemeloError):
    """A tool handler failed. Converted into a result string for the model."""

    code = ErrorCode.TOOL_EXECUTION_FAILED
    recoverable = True

    def __init__(self, message: str, details: Optional[str] = None, tool: Optional[str] = None, **context: Any):
        self.tool = tool
        ctx = {**context}
        if tool:
            ctx["tool"] = tool
        super().__init__(message, details, **ctx)


class UpstreamExhaustedError(GemeloError):
    """Every provider/model in the routing plan failed."""

    code = ErrorCode.UPSTREAM_EXHAUSTED
    recoverable = True

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        failures: Optional[List[Exception]] = None,
        **context: Any,
    ):
        self.failures = list(failures or [])
        super().__init__(message, details, **context)
