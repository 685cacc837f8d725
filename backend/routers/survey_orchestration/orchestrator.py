"""
Gemelo Generation Orchestrator - Route, fall back, stream

Handles the orchestration of one survey answer:
1. Classify the question (vision / reasoning / default route)
2. Build the persona prompt from the caller's profile
3. Call the routed provider (its own model fallback runs inside)
4. On failure, retry the default provider once with default sampling

Also manages:
- Streaming: first-fragment commit, then tool interception
- ConfigurationError short-circuit (never falls back)
"""

import logging
import time
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional

from config import runtime_config
from errors import ConfigurationError, ModelFailureError, UpstreamExhaustedError
from logging_config import log_message_in, log_message_out
from providers.base import (
    GenerationRequest,
    GenerationResult,
    ImageAttachment,
    ProviderClient,
)
from services.i18n import normalize_language
from services.prompt_builder import build_system_prompt
from tools.registry import ToolRegistry

from .events import StreamEvent
from .handlers import DEFAULT_PROVIDER, DefaultHandler, RouteClassifier, RouteConfig, RoutingContext, get_classifier
from .tool_intercept import ToolCallInterceptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanStep:
    """One provider attempt in a routing plan."""

    route_name: str
    route: RouteConfig
    models: Optional[List[str]]  # None = the provider's full list


class GenerationOrchestrator:
    """Routes survey questions to providers with cross-provider fallback.

    Usage:
        orchestrator = GenerationOrchestrator({"gemini": gemini, "cloudflare": cloudflare})
        result = await orchestrator.generate(profile, "¿Qué opinas del teletrabajo?")

        stream = orchestrator.stream(profile, question)
        async for event in stream:
            ...
        stream.model_used
    """

    def __init__(
        self,
        providers: Dict[str, ProviderClient],
        classifier: Optional[RouteClassifier] = None,
        config=None,
        registry=ToolRegistry,
    ):
        """
        Args:
            providers: Provider clients by name ("gemini", "cloudflare")
            classifier: Route classifier (defaults to the global one)
            config: RuntimeConfig for temperatures and token ceilings
            registry: Tool registry used by the stream interceptor
        """
        self.providers = providers
        self.classifier = classifier or get_classifier()
        self.config = config or runtime_config
        self.registry = registry

    def _provider(self, name: str) -> ProviderClient:
        provider = self.providers.get(name)
        if provider is None:
            raise ConfigurationError(f"Provider '{name}' is not available", provider=name)
        return provider

    def plan(self, question: str, has_image: bool = False, include_thinking: bool = False) -> List[PlanStep]:
        """Ordered provider attempts for a question.

        The routed provider comes first. The default provider is appended once
        as a last resort, unless the route already targets it.
        """
        ctx = RoutingContext(
            question=question, has_image=has_image, include_thinking=include_thinking, config=self.config
        )
        handler = self.classifier.classify(ctx)
        route = handler.get_route_config(ctx, self.config)

        steps = [PlanStep(handler.name, route, self._models_for(route))]
        if route.provider != DEFAULT_PROVIDER:
            fallback = DefaultHandler()
            steps.append(PlanStep(fallback.name, fallback.get_route_config(ctx, self.config), None))
        return steps

    def _models_for(self, route: RouteConfig) -> Optional[List[str]]:
        if route.capability is None:
            return None
        provider = self.providers.get(route.provider)
        if provider is None:
            return None
        return provider.models_with(route.capability)

    def build_request(
        self,
        profile,
        question: str,
        route: RouteConfig,
        include_thinking: bool = False,
        image: Optional[ImageAttachment] = None,
    ) -> GenerationRequest:
        language = normalize_language(getattr(profile, "language", None))
        return GenerationRequest(
            question=question,
            system_prompt=build_system_prompt(profile, language),
            language=language,
            include_thinking=include_thinking,
            temperature=route.temperature,
            max_output_tokens=route.max_output_tokens,
            image=image,
        )

    async def generate(
        self,
        profile,
        question: str,
        include_thinking: bool = False,
        image: Optional[ImageAttachment] = None,
    ) -> GenerationResult:
        """Non-streaming answer.

        Raises:
            ConfigurationError: routed provider lacks credentials
            UpstreamExhaustedError: every step of the plan failed
        """
        log_message_in(logger, question, image=image is not None, thinking=include_thinking)
        start = time.time()
        failures: List[Exception] = []

        for step in self.plan(question, has_image=image is not None, include_thinking=include_thinking):
            provider = self._provider(step.route.provider)
            request = self.build_request(profile, question, step.route, include_thinking, image)
            try:
                result = await provider.generate(request, models=step.models)
            except ModelFailureError as e:
                logger.warning(f"Route '{step.route_name}' via {provider.display_name} failed: {e}")
                failures.append(e)
                continue

            log_message_out(logger, model=result.model_used, chars=len(result.answer))
            logger.info(f"Answer ready in {time.time() - start:.1f}s")
            return result

        raise _exhausted(failures)

    def stream(
        self,
        profile,
        question: str,
        include_thinking: bool = False,
        image: Optional[ImageAttachment] = None,
    ) -> "GenerationStream":
        """Streaming answer as StreamEvents. Nothing is called until iterated."""
        log_message_in(logger, question, image=image is not None, thinking=include_thinking, stream=True)
        return GenerationStream(self, profile, question, include_thinking, image)


def _exhausted(failures: List[Exception]) -> UpstreamExhaustedError:
    return UpstreamExhaustedError(
        "All providers failed",
        details="; ".join(str(f) for f in failures) or None,
        failures=failures,
    )


class GenerationStream:
    """Async iterator of StreamEvents for one streamed answer.

    ``model_used`` is set once a model has produced its first fragment;
    ``tools_used`` lists tool calls serviced so far.
    """

    def __init__(self, orchestrator: GenerationOrchestrator, profile, question, include_thinking, image):
        self.orchestrator = orchestrator
        self.profile = profile
        self.question = question
        self.include_thinking = include_thinking
        self.image = image
        self.model_used: Optional[str] = None
        self.tools_used: List[str] = []

    def __aiter__(self) -> AsyncIterator[StreamEvent]:
        return self._events()

    async def _open(self):
        """Fall back across the plan until some provider commits a model."""
        orchestrator = self.orchestrator
        failures: List[Exception] = []
        has_image = self.image is not None

        for step in orchestrator.plan(self.question, has_image, self.include_thinking):
            provider = orchestrator._provider(step.route.provider)
            request = orchestrator.build_request(
                self.profile, self.question, step.route, self.include_thinking, self.image
            )
            try:
                stream = await provider.open_stream(request, models=step.models)
            except ModelFailureError as e:
                logger.warning(f"Stream route '{step.route_name}' via {provider.display_name} failed: {e}")
                failures.append(e)
                continue
            return provider, request, stream

        raise _exhausted(failures)

    async def _events(self) -> AsyncIterator[StreamEvent]:
        provider, request, stream = await self._open()
        self.model_used = stream.model
        interceptor = ToolCallInterceptor(self.orchestrator.registry)

        try:
            async for event in interceptor.intercept(stream, provider, request, active_model=stream.model):
                self.tools_used = list(interceptor.tools_used)
                yield event
        finally:
            await stream.aclose()
            log_message_out(logger, model=self.model_used, tools_used=self.tools_used)


# Global orchestrator instance built from runtime config
_orchestrator: Optional[GenerationOrchestrator] = None


def get_orchestrator() -> GenerationOrchestrator:
    """Get or create the global orchestrator with both providers."""
    global _orchestrator

    if _orchestrator is None:
        from providers import get_provider
        from services.rate_limits import get_rate_limit_tracker

        tracker = get_rate_limit_tracker()
        _orchestrator = GenerationOrchestrator(
            providers={
                "gemini": get_provider("gemini", runtime_config, tracker),
                "cloudflare": get_provider("cloudflare", runtime_config, tracker),
            },
            classifier=get_classifier(),
            config=runtime_config,
        )
        logger.info("GenerationOrchestrator initialized")

    return _orchestrator
