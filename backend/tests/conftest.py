"""
Shared pytest fixtures for the generation layer tests.

Providers are scripted fakes built on ProviderClient, so every test runs the
real fallback, rate-limit and streaming logic without network access.
"""

import asyncio

import pytest

from config import RuntimeConfig
from errors import ConfigurationError
from providers.base import GenerationRequest, GenerationResult, ProviderClient, UsageStats
from routers.survey_orchestration.handlers import DefaultHandler, ReasoningHandler, RouteClassifier, VisionHandler
from services.rate_limits import RateLimitTracker
from services.storage import JsonFileStore, UserProfile

GEMINI_MODELS = ["gemini-3-flash-preview", "gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.5-flash-lite"]
CLOUDFLARE_MODELS = ["@cf/openai/gpt-oss-120b", "@cf/meta/llama-4-scout-17b-16e-instruct"]
REASONING_KEYWORDS = ["analyze", "compare", "calculate", "why", "explain", "evaluate", "summarize"]


class FakeClock:
    """Manually advanced clock for RateLimitTracker."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(ProviderClient):
    """Scripted provider.

    answers: model -> answer text, or an exception to raise (generate)
    streams: model -> list of fragments (items may be exceptions), or an
             exception raised before the first fragment (open_stream)
    delays:  model -> seconds to sleep before answering
    Models without a script succeed with "answer from <model>".
    """

    def __init__(
        self, name, models, answers=None, streams=None, delays=None, tracker=None, configured=True, timeout_s=5.0
    ):
        self.name = name
        self.display_name = name.title()
        super().__init__(models, tracker=tracker, timeout_s=timeout_s)
        self.answers = answers or {}
        self.streams = streams or {}
        self.delays = delays or {}
        self.configured = configured
        self.calls = []  # (kind, model, request)
        self.closed = []  # models whose stream generator was closed

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError(f"{self.display_name} API key not configured", provider=self.name)

    async def _generate_once(self, spec, request: GenerationRequest) -> GenerationResult:
        self.calls.append(("generate", spec.model, request))
        if spec.model in self.delays:
            await asyncio.sleep(self.delays[spec.model])
        outcome = self.answers.get(spec.model, f"answer from {spec.model}")
        if isinstance(outcome, Exception):
            raise outcome
        return GenerationResult(answer=outcome, model_used=spec.model, usage=UsageStats(10, 20))

    async def _stream_once(self, spec, request: GenerationRequest):
        self.calls.append(("stream", spec.model, request))
        if spec.model in self.delays:
            await asyncio.sleep(self.delays[spec.model])
        outcome = self.streams.get(spec.model, [f"answer from {spec.model}"])
        try:
            if isinstance(outcome, Exception):
                raise outcome
            for fragment in outcome:
                if isinstance(fragment, Exception):
                    raise fragment
                yield fragment
        finally:
            self.closed.append(spec.model)

    def attempted(self, kind=None):
        return [model for k, model, _ in self.calls if kind is None or k == kind]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tracker(clock):
    return RateLimitTracker(default_backoff_s=60.0, clock=clock)


@pytest.fixture
def make_provider(tracker):
    """Factory for scripted providers sharing the test tracker."""

    def _make(name="gemini", models=None, **kwargs):
        if models is None:
            models = GEMINI_MODELS if name == "gemini" else CLOUDFLARE_MODELS
        kwargs.setdefault("tracker", tracker)
        return FakeProvider(name, models, **kwargs)

    return _make


@pytest.fixture
def runtime():
    """Fresh RuntimeConfig, independent of the global singleton."""
    return RuntimeConfig()


@pytest.fixture
def classifier():
    """Classifier with a fixed keyword vocabulary."""
    c = RouteClassifier()
    c.register(VisionHandler())
    c.register(ReasoningHandler(keywords=REASONING_KEYWORDS))
    c.register(DefaultHandler())
    return c


@pytest.fixture
def store(tmp_path):
    return JsonFileStore(tmp_path / "gemelo.json")


@pytest.fixture
def profile():
    """Spanish-speaking profile with both sections filled."""
    return UserProfile(
        id=1,
        username="demo",
        language="es",
        demographics={"age": 28, "occupation": "Software Engineer", "location": "San Francisco"},
        preferences={"tone": "Casual", "interests": ["Technology", "AI"]},
    )


@pytest.fixture
def empty_profile():
    return UserProfile(id=2, username="blank", language="en")


@pytest.fixture
def request_factory():
    def _make(question="¿Qué opinas?", **kwargs):
        kwargs.setdefault("system_prompt", "Eres un gemelo digital.")
        return GenerationRequest(question=question, **kwargs)

    return _make
