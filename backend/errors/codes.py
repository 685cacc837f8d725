"""
Error codes for Gemelo.

Provides a standardized taxonomy of error codes organized by category.
Use these codes consistently across all error responses.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for Gemelo.

    Categories:
    - VALIDATION_*: Input validation errors
    - NOT_FOUND_*: Resource not found errors
    - LLM_*: Single model/provider errors (recovered by fallback)
    - CONFIG_*: Missing or invalid configuration
    - TOOL_*: Tool handler errors
    - UPSTREAM_*: Whole routing plan failures
    - INTERNAL_*: Internal/unexpected errors
    """

    # Validation errors (input checking)
    VALIDATION_MISSING_PARAM = "VALIDATION_MISSING_PARAM"
    VALIDATION_INVALID_FORMAT = "VALIDATION_INVALID_FORMAT"

    # Not found errors (missing resources)
    NOT_FOUND_USER = "NOT_FOUND_USER"

    # LLM errors (model interactions)
    LLM_MODEL_FAILED = "LLM_MODEL_FAILED"
    LLM_TIMEOUT = "LLM_TIMEOUT"
    LLM_RESPONSE_EMPTY = "LLM_RESPONSE_EMPTY"
    LLM_RATE_LIMITED = "LLM_RATE_LIMITED"

    # Configuration errors
    CONFIG_MISSING_CREDENTIALS = "CONFIG_MISSING_CREDENTIALS"

    # Tool errors
    TOOL_EXECUTION_FAILED = "TOOL_EXECUTION_FAILED"

    # Upstream errors (every provider/model in the plan failed)
    UPSTREAM_EXHAUSTED = "UPSTREAM_EXHAUSTED"

    # Internal errors (unexpected failures)
    INTERNAL_UNEXPECTED = "INTERNAL_UNEXPECTED"
