"""
Routing tests - which handler takes a question and what route it gets.
"""

from unittest.mock import patch

import pytest

from config import RuntimeConfig
from errors import ConfigurationError

from providers.capabilities import CAP_MULTIMODAL, CAP_REASONING
from routers.survey_orchestration.handlers import (
    DefaultHandler,
    ReasoningHandler,
    RouteClassifier,
    RoutingContext,
    VisionHandler,
    get_classifier,
)


class TestClassifier:
    """Priority order and first-match semantics."""

    def test_image_wins_over_keyword(self, classifier):
        ctx = RoutingContext(question="Explain this chart", has_image=True)
        assert classifier.classify(ctx).name == "vision"
        assert ctx.route_name == "vision"

    def test_reasoning_keyword(self, classifier):
        ctx = RoutingContext(question="Can you COMPARE remote and office work?")
        handler = classifier.classify(ctx)

        assert handler.name == "reasoning"
        assert ctx.matched_keyword == "compare"

    def test_substring_match(self, classifier):
        """Matching is plain substring: 'whyever' still triggers 'why'."""
        ctx = RoutingContext(question="whyever not")
        assert classifier.classify(ctx).name == "reasoning"

    def test_default(self, classifier):
        assert classifier.classify(RoutingContext(question="¿Te gusta el café?")).name == "default"

    def test_registration_order_irrelevant(self):
        c = RouteClassifier()
        c.register(DefaultHandler())
        c.register(ReasoningHandler(keywords=["why"]))
        c.register(VisionHandler())

        assert [h.name for h in c.get_handlers()] == ["vision", "reasoning", "default"]

    def test_global_classifier_has_all_handlers(self):
        assert [h.name for h in get_classifier().get_handlers()] == ["vision", "reasoning", "default"]

    def test_no_handlers_is_configuration_error(self):
        with pytest.raises(ConfigurationError) as exc:
            RouteClassifier().classify(RoutingContext(question="hi"))
        assert exc.value.message == "No route handler matched the question"

    def test_no_catch_all_is_configuration_error(self):
        c = RouteClassifier()
        c.register(ReasoningHandler(keywords=["why"]))
        assert c.classify(RoutingContext(question="why")).name == "reasoning"
        with pytest.raises(ConfigurationError):
            c.classify(RoutingContext(question="hello"))


class TestRouteConfigs:
    """Provider, capability and sampling per route."""

    def test_vision_route(self, runtime):
        route = VisionHandler().get_route_config(RoutingContext(question="x", has_image=True), runtime)
        assert route.provider == "cloudflare"
        assert route.capability == CAP_MULTIMODAL
        assert route.temperature == 0.15
        assert route.max_output_tokens == 8000

    def test_reasoning_route(self, runtime):
        route = ReasoningHandler(keywords=["why"]).get_route_config(RoutingContext(question="why"), runtime)
        assert route.provider == "cloudflare"
        assert route.capability == CAP_REASONING
        assert route.temperature == 0.2

    def test_default_route(self, runtime):
        route = DefaultHandler().get_route_config(RoutingContext(question="hi"), runtime)
        assert route.provider == "gemini"
        assert route.capability is None
        assert route.temperature == 0.85

    def test_route_follows_config(self, runtime):
        runtime.update(default_temperature=0.5, max_output_tokens=1024)
        route = DefaultHandler().get_route_config(RoutingContext(question="hi"), runtime)
        assert route.temperature == 0.5
        assert route.max_output_tokens == 1024


class TestKeywordPolicy:
    """The keyword list is configuration, read at check time."""

    def test_reads_runtime_config(self):
        handler = ReasoningHandler()
        with patch("config.runtime_config.get_reasoning_keywords", return_value=["ponder"]):
            assert handler.should_handle(RoutingContext(question="Let us ponder this"))
            assert not handler.should_handle(RoutingContext(question="Why?"))

    def test_explicit_keywords_lowercased(self):
        handler = ReasoningHandler(keywords=["Evaluate"])
        assert handler.should_handle(RoutingContext(question="please evaluate"))

    def test_context_config_wins_over_global(self):
        config = RuntimeConfig()
        config.update(reasoning_keywords="ponder, mull")
        handler = ReasoningHandler()

        with patch("config.runtime_config.get_reasoning_keywords", return_value=["why"]):
            assert handler.should_handle(RoutingContext(question="Let us ponder this", config=config))
            assert not handler.should_handle(RoutingContext(question="Why?", config=config))
            # no config on the context: global vocabulary
            assert handler.should_handle(RoutingContext(question="Why?"))
