"""
Provider Client - abstract base class for generative-AI backends.

Providers wrap different vendor APIs behind a uniform interface so the
orchestrator can route a request to any of them. Concrete providers only
implement a single-model call (_generate_once / _stream_once) and error
classification; the model fallback loop lives here.

Fallback policy:
    generate():     try candidates in order, first success wins.
    open_stream():  same, but a model is committed once its first non-empty
                    fragment arrives. After that a failure is terminal.
    Rate-limited models are skipped up front and recorded on 429s.
    ConfigurationError is raised immediately and never falls through.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import AsyncIterator, List, Optional, Sequence

from errors import ConfigurationError, ModelFailureError, RateLimitedError
from logging_config import log_llm
from providers.capabilities import ModelSpec, specs_for
from services.rate_limits import RateLimitTracker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageAttachment:
    """Request-scoped image (base64 payload). Never persisted."""

    mime_type: str
    data: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class UsageStats:
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


@dataclass(frozen=True)
class GenerationRequest:
    """One user-issued question, ready for any provider."""

    question: str
    system_prompt: str
    language: str = "es"
    include_thinking: bool = False
    temperature: float = 0.85
    max_output_tokens: int = 8000
    image: Optional[ImageAttachment] = None
    tool_context: Optional[str] = None

    @property
    def user_content(self) -> str:
        if self.tool_context:
            return f"{self.question}\n\n{self.tool_context}"
        return self.question

    @property
    def prompt(self) -> str:
        """Single-string form: system prompt, blank line, question (+ tool result)."""
        return f"{self.system_prompt}\n\n{self.user_content}"

    def with_tool_result(self, tool_name: str, result: str) -> "GenerationRequest":
        return replace(self, tool_context=f"Tool {tool_name} result:\n{result}")


@dataclass(frozen=True)
class GenerationResult:
    answer: str
    model_used: str
    thinking: Optional[str] = None
    usage: Optional[UsageStats] = None


class ModelStream:
    """Fragments from the one model that won the stream fallback.

    Iterating yields the already-received first fragment, then the rest.
    A failure after that point is raised as ModelFailureError.
    """

    def __init__(self, provider: "ProviderClient", model: str, first: str, fragments: AsyncIterator[str]):
        self.provider = provider
        self.model = model
        self._first = first
        self._fragments = fragments

    def __aiter__(self) -> AsyncIterator[str]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[str]:
        yield self._first
        try:
            async for fragment in self._fragments:
                if fragment:
                    yield fragment
        except (ConfigurationError, ModelFailureError):
            raise
        except Exception as e:
            failure = self.provider._as_failure(self.model, e)
            if isinstance(failure, RateLimitedError):
                self.provider.tracker.record_rate_limited(self.model, failure.retry_after_s)
            logger.warning(f"{self.provider.display_name} stream from {self.model} failed mid-stream: {failure}")
            raise failure from e
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        aclose = getattr(self._fragments, "aclose", None)
        if aclose is not None:
            await aclose()


class ProviderClient(ABC):
    """Abstract provider with an ordered model list and fallback."""

    name: str = "base"
    display_name: str = "Base"

    def __init__(
        self,
        models: Sequence[str],
        tracker: Optional[RateLimitTracker] = None,
        timeout_s: float = 90.0,
    ):
        self.specs: List[ModelSpec] = specs_for(self.name, models)
        self.tracker = tracker or RateLimitTracker()
        self.timeout_s = timeout_s

    @property
    def models(self) -> List[str]:
        return [spec.model for spec in self.specs]

    def models_with(self, capability: str) -> List[str]:
        """Models (in fallback order) that declare a capability."""
        return [spec.model for spec in self.specs if spec.has(capability)]

    def get_spec(self, model: str) -> Optional[ModelSpec]:
        for spec in self.specs:
            if spec.model == model:
                return spec
        return None

    # -------------------------------------------------------------------------
    # Provider-specific hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def ensure_configured(self) -> None:
        """Raise ConfigurationError when credentials are missing."""
        ...

    @abstractmethod
    async def _generate_once(self, spec: ModelSpec, request: GenerationRequest) -> GenerationResult:
        """Call a single model, non-streaming."""
        ...

    @abstractmethod
    def _stream_once(self, spec: ModelSpec, request: GenerationRequest) -> AsyncIterator[str]:
        """Async generator of text fragments from a single model."""
        ...

    def _as_failure(self, model: str, error: Exception) -> ModelFailureError:
        """Map a vendor exception onto ModelFailureError / RateLimitedError."""
        if isinstance(error, ModelFailureError):
            return error
        return ModelFailureError(
            f"{self.display_name} model {model} failed",
            details=str(error) or type(error).__name__,
            model=model,
            provider=self.name,
        )

    # -------------------------------------------------------------------------
    # Fallback loop
    # -------------------------------------------------------------------------

    def _plan(self, models: Optional[Sequence[str]]) -> List[ModelSpec]:
        """Candidate specs in order, minus rate-limited models.

        Args:
            models: Optional subset/ordering of this provider's models.
                    Unknown names are ignored.
        """
        if models is None:
            ordered = list(self.specs)
        else:
            ordered = [spec for name in models for spec in [self.get_spec(name)] if spec is not None]

        if not ordered:
            raise ModelFailureError(
                f"No {self.display_name} model can serve this request",
                details=f"requested: {', '.join(models or []) or 'none'}",
                provider=self.name,
            )

        available, limited = self.tracker.filter_available([spec.model for spec in ordered])
        for item in limited:
            logger.info(f"Skipping {item.model}: rate limited for {item.seconds_remaining:.0f}s more")

        if not available:
            soonest = min((item.seconds_remaining for item in limited), default=None)
            raise RateLimitedError(
                f"All {self.display_name} models are rate limited",
                details=", ".join(f"{item.model} ({item.seconds_remaining:.0f}s)" for item in limited) or None,
                retry_after_s=soonest,
                provider=self.name,
            )

        return [spec for spec in ordered if spec.model in available]

    def _record_failure(self, spec: ModelSpec, error: Exception, started: float) -> ModelFailureError:
        if isinstance(error, asyncio.TimeoutError):
            failure = ModelFailureError(
                f"{self.display_name} model {spec.model} timed out after {self.timeout_s:.0f}s",
                model=spec.model,
                provider=self.name,
                error_type="timeout",
            )
        else:
            failure = self._as_failure(spec.model, error)

        if isinstance(failure, RateLimitedError):
            self.tracker.record_rate_limited(spec.model, failure.retry_after_s)

        log_llm(logger, "end", model=spec.model, duration=time.time() - started, outcome=str(failure))
        return failure

    def _exhausted(self, attempts: List[tuple], last: Optional[Exception]) -> ModelFailureError:
        logger.error(
            f"All {self.display_name} models failed: " + "; ".join(f"{model}: {reason}" for model, reason in attempts)
        )
        return ModelFailureError(
            f"All {self.display_name} models failed",
            details=str(last) if last else None,
            provider=self.name,
            attempts=attempts,
        )

    async def generate(self, request: GenerationRequest, models: Optional[Sequence[str]] = None) -> GenerationResult:
        """Generate with fallback across this provider's models.

        Raises:
            ConfigurationError: credentials missing
            RateLimitedError: every candidate is currently rate limited
            ModelFailureError: every candidate failed (attempts attached)
        """
        self.ensure_configured()
        attempts: List[tuple] = []
        last: Optional[Exception] = None

        for spec in self._plan(models):
            started = time.time()
            log_llm(logger, "start", model=spec.model)
            try:
                result = await asyncio.wait_for(self._generate_once(spec, request), timeout=self.timeout_s)
                if not result.answer or not result.answer.strip():
                    raise ModelFailureError(
                        f"No text response from {spec.model}", model=spec.model, provider=self.name, error_type="empty"
                    )
            except ConfigurationError:
                raise
            except Exception as e:
                last = self._record_failure(spec, e, started)
                attempts.append((spec.model, str(last)))
                continue

            self.tracker.record_success(spec.model)
            log_llm(logger, "end", model=spec.model, duration=time.time() - started)
            return result

        raise self._exhausted(attempts, last)

    async def _first_fragment(self, fragments: AsyncIterator[str], model: str) -> str:
        async for fragment in fragments:
            if fragment:
                return fragment
        raise ModelFailureError(f"No text response from {model}", model=model, provider=self.name, error_type="empty")

    async def open_stream(self, request: GenerationRequest, models: Optional[Sequence[str]] = None) -> ModelStream:
        """Start a stream, falling back until some model yields its first fragment."""
        self.ensure_configured()
        attempts: List[tuple] = []
        last: Optional[Exception] = None

        for spec in self._plan(models):
            started = time.time()
            log_llm(logger, "start", model=spec.model)
            fragments = self._stream_once(spec, request)
            try:
                first = await asyncio.wait_for(self._first_fragment(fragments, spec.model), timeout=self.timeout_s)
            except ConfigurationError:
                await fragments.aclose()
                raise
            except Exception as e:
                await fragments.aclose()
                last = self._record_failure(spec, e, started)
                attempts.append((spec.model, str(last)))
                continue

            self.tracker.record_success(spec.model)
            logger.info(f"Streaming from {spec.model} (first fragment after {time.time() - started:.1f}s)")
            return ModelStream(self, spec.model, first, fragments)

        raise self._exhausted(attempts, last)

    async def generate_stream(
        self, request: GenerationRequest, models: Optional[Sequence[str]] = None
    ) -> AsyncIterator[str]:
        """Plain fragment iterator over open_stream()."""
        stream = await self.open_stream(request, models)
        try:
            async for fragment in stream:
                yield fragment
        finally:
            await stream.aclose()
