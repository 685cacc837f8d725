"""
Gemelo Survey Orchestration - Provider routing and stream interception

Components:
- RouteClassifier + handlers: vision / reasoning / default routes
- GenerationOrchestrator: routed provider first, default provider as last resort
- GenerationStream: StreamEvents for one streamed answer
- ToolCallInterceptor: services tool calls found in a streamed answer

Fallback happens at two levels:
    1. Inside a provider: ordered model list, rate-limited models skipped
    2. Across providers: the default provider is tried once if the routed one
       fails, never twice. ConfigurationError skips both levels.
"""

from .events import StreamEvent
from .handlers import RouteClassifier, RouteConfig, RoutingContext, get_classifier
from .orchestrator import GenerationOrchestrator, GenerationStream, PlanStep, get_orchestrator
from .tool_intercept import ToolCallInterceptor, ToolInvocation, parse_tool_invocation

__all__ = [
    "StreamEvent",
    "RouteClassifier",
    "RouteConfig",
    "RoutingContext",
    "get_classifier",
    "GenerationOrchestrator",
    "GenerationStream",
    "PlanStep",
    "get_orchestrator",
    "ToolCallInterceptor",
    "ToolInvocation",
    "parse_tool_invocation",
]
