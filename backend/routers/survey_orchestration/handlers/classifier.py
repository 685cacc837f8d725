"""
Route Classifier - Selects the routing handler for a question.

Iterates handlers by priority (lowest first), returns first match.
"""

import logging
from typing import List, Optional

from errors import ConfigurationError

from .base import RouteHandler, RoutingContext

logger = logging.getLogger(__name__)


class RouteClassifier:
    """
    Classifies questions and picks a route handler.

    Usage:
        classifier = RouteClassifier()
        classifier.register(VisionHandler())
        classifier.register(ReasoningHandler())
        classifier.register(DefaultHandler())

        handler = classifier.classify(ctx)
        route = handler.get_route_config(ctx, runtime_config)
    """

    def __init__(self):
        self._handlers: List[RouteHandler] = []
        self._sorted = False

    def register(self, handler: RouteHandler) -> None:
        """Register a handler."""
        self._handlers.append(handler)
        self._sorted = False
        logger.debug(f"Registered handler: {handler.name} (priority {handler.priority})")

    def _ensure_sorted(self) -> None:
        if not self._sorted:
            self._handlers.sort(key=lambda h: h.priority)
            self._sorted = True

    def classify(self, ctx: RoutingContext) -> RouteHandler:
        """
        Find the handler for a question.

        Returns:
            The first handler (by priority) whose should_handle() is True

        Raises:
            ConfigurationError: nothing matched (no catch-all handler registered)
        """
        self._ensure_sorted()

        for handler in self._handlers:
            if handler.should_handle(ctx):
                ctx.route_name = handler.name
                logger.info(f"Question routed as: {handler.name}")
                return handler

        raise ConfigurationError(
            "No route handler matched the question",
            details=f"{len(self._handlers)} handlers registered; DefaultHandler missing?",
            setting="route_handlers",
        )

    def get_handlers(self) -> List[RouteHandler]:
        """Get all registered handlers (sorted by priority)."""
        self._ensure_sorted()
        return self._handlers.copy()


# Global classifier instance with all handlers registered
_classifier: Optional[RouteClassifier] = None


def get_classifier() -> RouteClassifier:
    """Get or create the global classifier with all handlers registered."""
    global _classifier

    if _classifier is None:
        from .default import DefaultHandler
        from .reasoning import ReasoningHandler
        from .vision import VisionHandler

        _classifier = RouteClassifier()
        _classifier.register(VisionHandler())
        _classifier.register(ReasoningHandler())
        _classifier.register(DefaultHandler())

        logger.info(f"RouteClassifier initialized with {len(_classifier._handlers)} handlers")

    return _classifier
