"""
Gemelo Rate Limit Tracker - Per-model availability after 429 responses

Each model is either Available or RateLimited(until). The transition to
RateLimited happens on a provider rate-limit error; the transition back is
lazy: an expired entry is evicted on the next read.

State is process-local and resets on restart. The limits themselves are
time-boxed upstream, so nothing is persisted.
"""

import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_BACKOFF_S = 60.0


@dataclass(frozen=True)
class RateLimitEntry:
    model: str
    next_available_at: float
    retry_after_s: Optional[float] = None


@dataclass(frozen=True)
class LimitedModel:
    model: str
    seconds_remaining: float


class RateLimitTracker:
    """Lock-guarded map of model -> RateLimitEntry.

    Usage:
        tracker = RateLimitTracker()
        tracker.record_rate_limited("gemini-2.5-pro", 30)
        available, limited = tracker.filter_available(["gemini-2.5-pro", "gemini-2.5-flash"])
    """

    def __init__(
        self,
        default_backoff_s: float = DEFAULT_BACKOFF_S,
        clock: Callable[[], float] = time.time,
    ):
        self.default_backoff_s = default_backoff_s
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def _live_entry(self, model: str, now: float) -> Optional[RateLimitEntry]:
        """Return the entry if still in force, evicting it otherwise. Caller holds the lock."""
        entry = self._entries.get(model)
        if entry is None:
            return None
        if entry.next_available_at <= now:
            del self._entries[model]
            logger.info(f"Rate limit expired for {model}")
            return None
        return entry

    def filter_available(self, models: Iterable[str]) -> Tuple[List[str], List[LimitedModel]]:
        """Split candidate models into available and limited, preserving order."""
        available: List[str] = []
        limited: List[LimitedModel] = []

        with self._lock:
            now = self._clock()
            for model in models:
                entry = self._live_entry(model, now)
                if entry is None:
                    available.append(model)
                else:
                    limited.append(LimitedModel(model, entry.next_available_at - now))

        return available, limited

    def is_available(self, model: str) -> bool:
        with self._lock:
            return self._live_entry(model, self._clock()) is None

    def record_rate_limited(self, model: str, retry_after_s: Optional[float] = None) -> RateLimitEntry:
        """Mark a model as limited for retry_after_s (or the default backoff)."""
        backoff = retry_after_s if retry_after_s is not None and retry_after_s > 0 else self.default_backoff_s
        with self._lock:
            entry = RateLimitEntry(model, self._clock() + backoff, retry_after_s)
            self._entries[model] = entry
        logger.warning(f"Model {model} rate limited for {backoff:.0f}s")
        return entry

    def record_success(self, model: str) -> None:
        """Clear any limited state for a model after a successful call."""
        with self._lock:
            if self._entries.pop(model, None) is not None:
                logger.info(f"Model {model} recovered from rate limit")

    def status(self, models: Iterable[str]) -> Dict[str, object]:
        """Availability snapshot for the models endpoint."""
        available, limited = self.filter_available(models)
        now = self._clock()
        return {
            "available": available,
            "rateLimited": [
                {
                    "model": item.model,
                    "nextAvailableAt": now + item.seconds_remaining,
                    "secondsUntilAvailable": math.ceil(item.seconds_remaining),
                    "minutesUntilAvailable": math.ceil(item.seconds_remaining / 60),
                }
                for item in limited
            ],
        }

    def clear(self) -> None:
        """Drop every entry (for testing)."""
        with self._lock:
            self._entries.clear()


_tracker: Optional[RateLimitTracker] = None


def get_rate_limit_tracker() -> RateLimitTracker:
    """Get or create the process-wide tracker used by the app."""
    global _tracker

    if _tracker is None:
        from config import runtime_config

        _tracker = RateLimitTracker(default_backoff_s=runtime_config.rate_limit_default_backoff_s)
    return _tracker
