"""
Runtime Configuration for Gemelo.

Provides a singleton RuntimeConfig class that allows dynamic adjustment of
generation parameters at runtime, without requiring service restart.

Usage:
    from config import runtime_config
    temperature = runtime_config.default_temperature
    runtime_config.update(default_temperature=0.7, stream_idle_timeout_s=120)
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List
from threading import Lock

logger = logging.getLogger(__name__)


DEFAULT_GEMINI_MODELS = "gemini-3-flash-preview,gemini-2.5-pro,gemini-2.5-flash,gemini-2.5-flash-lite"
DEFAULT_CLOUDFLARE_MODELS = "@cf/openai/gpt-oss-120b,@cf/meta/llama-4-scout-17b-16e-instruct"

# Coarse proxy for "reasoning-heavy" questions. Kept tunable on purpose.
DEFAULT_REASONING_KEYWORDS = "analyze,compare,calculate,why,explain,evaluate,summarize"


def _split_env(key: str, default: str) -> List[str]:
    """Read a comma-separated environment value as a list."""
    raw = os.environ.get(key, default)
    return [part.strip() for part in raw.split(",") if part.strip()]


# Fields that must never leave the process (to_dict, admin views)
_SECRET_FIELDS = {"gemini_api_key", "cloudflare_token"}


@dataclass
class RuntimeConfig:
    """
    Singleton configuration for runtime-adjustable parameters.

    All values have defaults from environment variables, but can be
    changed at runtime via the update() method.
    """

    # Provider credentials
    gemini_api_key: str = field(default_factory=lambda: os.environ.get("GEMINI_API_KEY", ""))
    cloudflare_token: str = field(default_factory=lambda: os.environ.get("CLOUDFLARE_TOKEN", ""))
    cloudflare_account_id: str = field(default_factory=lambda: os.environ.get("CLOUDFLARE_ACCOUNT_ID", ""))
    cloudflare_base_url: str = field(
        default_factory=lambda: os.environ.get(
            "CLOUDFLARE_BASE_URL", "https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/v1"
        )
    )

    # Model lists, in fallback order
    gemini_models: List[str] = field(default_factory=lambda: _split_env("GEMINI_MODELS", DEFAULT_GEMINI_MODELS))
    cloudflare_models: List[str] = field(
        default_factory=lambda: _split_env("CLOUDFLARE_MODELS", DEFAULT_CLOUDFLARE_MODELS)
    )

    # Per-route sampling
    default_temperature: float = field(default_factory=lambda: float(os.environ.get("DEFAULT_TEMPERATURE", "0.85")))
    vision_temperature: float = field(default_factory=lambda: float(os.environ.get("VISION_TEMPERATURE", "0.15")))
    reasoning_temperature: float = field(
        default_factory=lambda: float(os.environ.get("REASONING_TEMPERATURE", "0.2"))
    )
    max_output_tokens: int = field(default_factory=lambda: int(os.environ.get("MAX_OUTPUT_TOKENS", "8000")))
    thinking_budget: int = field(default_factory=lambda: int(os.environ.get("THINKING_BUDGET", "5000")))

    # Routing policy
    reasoning_keywords: List[str] = field(
        default_factory=lambda: _split_env("REASONING_KEYWORDS", DEFAULT_REASONING_KEYWORDS)
    )

    # Timeouts (seconds)
    llm_timeout_s: float = field(default_factory=lambda: float(os.environ.get("LLM_TIMEOUT_S", "90")))
    rate_limit_default_backoff_s: float = field(
        default_factory=lambda: float(os.environ.get("RATE_LIMIT_DEFAULT_BACKOFF_S", "60"))
    )

    # Streaming
    stream_idle_timeout_s: float = field(
        default_factory=lambda: float(os.environ.get("STREAM_IDLE_TIMEOUT_S", "180"))
    )
    stream_heartbeat_s: float = field(default_factory=lambda: float(os.environ.get("STREAM_HEARTBEAT_S", "15")))
    stream_queue_size: int = field(default_factory=lambda: int(os.environ.get("STREAM_QUEUE_SIZE", "64")))

    # Storage
    data_dir: str = field(default_factory=lambda: os.environ.get("DATA_DIR", "data"))
    seed_demo_user: bool = field(
        default_factory=lambda: os.environ.get("SEED_DEMO_USER", "true").lower() == "true"
    )

    # Internal state
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _update_count: int = field(default=0, repr=False)

    # Validation ranges for numeric config values
    _VALIDATION_RANGES: Dict[str, tuple] = field(default_factory=lambda: {
        "default_temperature": (0.0, 2.0),
        "vision_temperature": (0.0, 2.0),
        "reasoning_temperature": (0.0, 2.0),
        "max_output_tokens": (64, 65536),
        "thinking_budget": (0, 32768),
        "llm_timeout_s": (1.0, 600.0),
        "rate_limit_default_backoff_s": (1.0, 3600.0),
        "stream_idle_timeout_s": (1.0, 3600.0),
        "stream_heartbeat_s": (1.0, 300.0),
        "stream_queue_size": (1, 4096),
    })

    def update(self, **kwargs) -> Dict[str, Any]:
        """
        Update configuration values at runtime.

        Args:
            **kwargs: Key-value pairs to update (e.g., max_output_tokens=4000)

        Returns:
            Dict with 'updated' (changed keys) and 'ignored' (unknown keys)
        """
        updated = []
        ignored = []

        with self._lock:
            for key, value in kwargs.items():
                if key.startswith("_"):
                    ignored.append(key)
                    continue

                if hasattr(self, key):
                    # List fields accept a comma-separated string as well
                    if key in {"gemini_models", "cloudflare_models", "reasoning_keywords"} and isinstance(value, str):
                        value = [part.strip() for part in value.split(",") if part.strip()]

                    if key in self._VALIDATION_RANGES:
                        lo, hi = self._VALIDATION_RANGES[key]
                        if not (lo <= value <= hi):
                            ignored.append(key)
                            logger.warning(f"Config rejected {key}={value} (must be {lo}-{hi})")
                            continue

                    old_value = getattr(self, key)
                    setattr(self, key, value)
                    updated.append(key)
                    if key in _SECRET_FIELDS:
                        logger.info(f"Config updated: {key} = ***")
                    else:
                        logger.info(f"Config updated: {key} = {value} (was {old_value})")
                else:
                    ignored.append(key)
                    logger.warning(f"Config ignored unknown key: {key}")

            self._update_count += 1

        return {"updated": updated, "ignored": ignored, "update_count": self._update_count}

    def get_reasoning_keywords(self) -> List[str]:
        """Lowercased reasoning vocabulary for substring matching."""
        return [k.lower() for k in self.reasoning_keywords if k]

    def configured_providers(self) -> Dict[str, bool]:
        """Which providers have credentials set."""
        return {
            "gemini": bool(self.gemini_api_key),
            "cloudflare": bool(self.cloudflare_token and self.cloudflare_account_id),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Export current config as dict (excludes internal and secret fields)."""
        from dataclasses import fields as dataclass_fields

        result = {}
        for field_info in dataclass_fields(self):
            if field_info.name.startswith("_") or field_info.name in _SECRET_FIELDS:
                continue
            result[field_info.name] = getattr(self, field_info.name)
        return result


# Singleton instance
runtime_config = RuntimeConfig()


def get_config() -> RuntimeConfig:
    """Get the singleton config instance."""
    return runtime_config
