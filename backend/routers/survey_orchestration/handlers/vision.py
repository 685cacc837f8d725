"""
Vision Handler - Questions that carry an image.

Routes to the secondary provider's multimodal models at a low temperature.
"""

import logging

from providers.capabilities import CAP_MULTIMODAL

from .base import RouteHandler, RoutingContext, RouteConfig

logger = logging.getLogger(__name__)


class VisionHandler(RouteHandler):
    """Handler for image questions. Checked first."""

    priority = 10
    name = "vision"

    def should_handle(self, ctx: RoutingContext) -> bool:
        return ctx.has_image

    def get_route_config(self, ctx: RoutingContext, config) -> RouteConfig:
        return RouteConfig(
            provider="cloudflare",
            capability=CAP_MULTIMODAL,
            temperature=config.vision_temperature,
            max_output_tokens=config.max_output_tokens,
        )
