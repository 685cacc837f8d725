"""Gemelo AI Providers - factory for provider instances."""
from typing import Optional

from providers.base import (
    GenerationRequest,
    GenerationResult,
    ImageAttachment,
    ModelStream,
    ProviderClient,
    UsageStats,
)
from services.rate_limits import RateLimitTracker

__all__ = [
    "GenerationRequest",
    "GenerationResult",
    "ImageAttachment",
    "ModelStream",
    "ProviderClient",
    "UsageStats",
    "get_provider",
]


def get_provider(provider_type: str, config=None, tracker: Optional[RateLimitTracker] = None) -> ProviderClient:
    """Create a provider instance from runtime config.

    Args:
        provider_type: "gemini" | "cloudflare"
        config: RuntimeConfig (defaults to the singleton)
        tracker: Shared RateLimitTracker
    """
    if config is None:
        from config import runtime_config as config

    if provider_type == "gemini":
        from providers.gemini import GeminiProvider
        return GeminiProvider(
            api_key=config.gemini_api_key,
            models=config.gemini_models,
            tracker=tracker,
            timeout_s=config.llm_timeout_s,
            thinking_budget=config.thinking_budget,
        )
    elif provider_type == "cloudflare":
        from providers.cloudflare import CloudflareProvider
        return CloudflareProvider(
            token=config.cloudflare_token,
            account_id=config.cloudflare_account_id,
            models=config.cloudflare_models,
            tracker=tracker,
            timeout_s=config.llm_timeout_s,
            base_url=config.cloudflare_base_url,
        )
    else:
        raise ValueError("Unknown provider type: " + provider_type)
