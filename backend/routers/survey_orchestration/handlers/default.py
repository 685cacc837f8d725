"""
Default Handler - Everything else goes to the primary provider's full model list.
"""

from .base import RouteHandler, RoutingContext, RouteConfig

DEFAULT_PROVIDER = "gemini"


class DefaultHandler(RouteHandler):
    """Fallback handler. Always matches, checked last."""

    priority = 1000
    name = "default"

    def should_handle(self, ctx: RoutingContext) -> bool:
        return True

    def get_route_config(self, ctx: RoutingContext, config) -> RouteConfig:
        return RouteConfig(
            provider=DEFAULT_PROVIDER,
            temperature=config.default_temperature,
            max_output_tokens=config.max_output_tokens,
        )
