"""
Reasoning Handler - Analytical questions go to the heavier reasoning model.

Detection is a case-insensitive substring match against a small keyword
vocabulary (RuntimeConfig.reasoning_keywords). It over- and under-triggers;
the list is a tunable policy, not a classifier.
"""

import logging

from providers.capabilities import CAP_REASONING

from .base import RouteHandler, RoutingContext, RouteConfig

logger = logging.getLogger(__name__)


class ReasoningHandler(RouteHandler):
    """
    Handler for analysis-style questions.

    Triggers on keywords such as "compare", "why", "explain".
    """

    priority = 50  # After vision
    name = "reasoning"

    def __init__(self, keywords=None):
        """
        Args:
            keywords: Override vocabulary. None reads the routing config (ctx.config,
                      else runtime_config) on every check so updates take
                      effect without a restart.
        """
        self._keywords = [k.lower() for k in keywords] if keywords is not None else None

    def _get_keywords(self, ctx: RoutingContext):
        if self._keywords is not None:
            return self._keywords
        if ctx.config is not None:
            return ctx.config.get_reasoning_keywords()
        from config import runtime_config
        return runtime_config.get_reasoning_keywords()

    def should_handle(self, ctx: RoutingContext) -> bool:
        msg_lower = ctx.question.lower()
        for keyword in self._get_keywords(ctx):
            if keyword in msg_lower:
                ctx.matched_keyword = keyword
                logger.info(f"ReasoningHandler: triggered by keyword '{keyword}'")
                return True
        return False

    def get_route_config(self, ctx: RoutingContext, config) -> RouteConfig:
        return RouteConfig(
            provider="cloudflare",
            capability=CAP_REASONING,
            temperature=config.reasoning_temperature,
            max_output_tokens=config.max_output_tokens,
        )
