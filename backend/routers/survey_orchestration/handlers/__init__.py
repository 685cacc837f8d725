"""
Routing handlers: pick a provider/model route for a question.

Order (by priority):
    VisionHandler (10)      image attached -> multimodal secondary models
    ReasoningHandler (50)   reasoning keyword -> reasoning secondary model
    DefaultHandler (1000)   everything else -> primary provider
"""

from .base import RouteConfig, RouteHandler, RoutingContext
from .classifier import RouteClassifier, get_classifier
from .default import DEFAULT_PROVIDER, DefaultHandler
from .reasoning import ReasoningHandler
from .vision import VisionHandler

__all__ = [
    "RouteConfig",
    "RouteHandler",
    "RoutingContext",
    "RouteClassifier",
    "get_classifier",
    "DEFAULT_PROVIDER",
    "DefaultHandler",
    "ReasoningHandler",
    "VisionHandler",
]
