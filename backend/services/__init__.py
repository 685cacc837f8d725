"""
Gemelo Services - Shared infrastructure services.

- rate_limits: Per-model rate-limit state shared across requests
- prompt_builder: System prompt from template, profile and tone
- i18n: Localized progress and error strings
- storage: JSON-file profile and survey history store
"""

from .rate_limits import RateLimitTracker, get_rate_limit_tracker

__all__ = ["RateLimitTracker", "get_rate_limit_tracker"]
