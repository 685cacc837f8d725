"""
Base Route Handler - Abstract base class for routing handlers.

Each handler knows how to:
1. Detect if it should take a question (should_handle)
2. Describe the provider/model route and sampling for it (get_route_config)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class RouteConfig:
    """Where and how a request is sent."""

    provider: str  # "gemini" | "cloudflare"
    temperature: float
    max_output_tokens: int
    capability: Optional[str] = None  # restrict to models declaring this (None = all)


@dataclass
class RoutingContext:
    """
    Context passed through the handler pipeline.

    Handlers may annotate it (matched keyword, chosen route name).
    """

    question: str
    has_image: bool = False
    include_thinking: bool = False
    config: Optional[Any] = None  # RuntimeConfig the caller routes with (None = global)

    # Populated by handlers
    route_name: str = ""
    matched_keyword: Optional[str] = None


class RouteHandler(ABC):
    """
    Abstract base class for routing handlers.

    Handlers are checked in priority order (lowest first).
    First handler where should_handle() returns True wins.
    """

    # Lower = higher priority. Default handler has priority 1000.
    priority: int = 100
    name: str = "base"

    @abstractmethod
    def should_handle(self, ctx: RoutingContext) -> bool:
        """
        Check if this handler should take the question.

        Returns:
            True if this handler's route applies
        """
        pass

    @abstractmethod
    def get_route_config(self, ctx: RoutingContext, config) -> RouteConfig:
        """
        Route for this handler.

        Args:
            ctx: Routing context
            config: RuntimeConfig supplying temperatures and token ceilings
        """
        pass
