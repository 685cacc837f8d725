"""
Gemini Provider - wraps Google's google-genai SDK (async client).

Primary provider. Built-in tools (Google Search, code execution, Maps) are
enabled per model from capability metadata. Thought parts are collected as
the thinking trace when the request asks for it.
"""
import base64
import logging
import re
from typing import AsyncIterator, List, Optional, Sequence, Tuple

from google import genai
from google.genai import types

from errors import ConfigurationError, ModelFailureError, RateLimitedError
from providers.base import GenerationRequest, GenerationResult, ProviderClient, UsageStats
from providers.capabilities import TOOL_CODE_EXECUTION, TOOL_GOOGLE_MAPS, TOOL_GOOGLE_SEARCH, ModelSpec
from services.rate_limits import RateLimitTracker

logger = logging.getLogger(__name__)

_RATE_LIMIT_MARKERS = ("429", "resource_exhausted", "quota", "rate limit")
_DURATION_RE = re.compile(r"^\s*([0-9]+(?:\.[0-9]+)?)s\s*$")


def _parse_retry_delay(error: Exception) -> Optional[float]:
    """Pull RetryInfo.retryDelay ("30s") out of a Gemini error payload."""
    details = getattr(error, "details", None)
    if not isinstance(details, dict):
        return None
    body = details.get("error", details)
    for item in body.get("details", []) or []:
        if not isinstance(item, dict):
            continue
        delay = item.get("retryDelay")
        if isinstance(delay, str):
            match = _DURATION_RE.match(delay)
            if match:
                return float(match.group(1))
    return None


def _split_parts(response) -> Tuple[str, str]:
    """Return (answer_text, thought_text) from a response or stream chunk."""
    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        return "", ""

    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []

    answer: List[str] = []
    thoughts: List[str] = []
    for part in parts:
        text = getattr(part, "text", None)
        if not text:
            continue
        if getattr(part, "thought", False):
            thoughts.append(text)
        else:
            answer.append(text)
    return "".join(answer), "".join(thoughts)


def _usage(response) -> Optional[UsageStats]:
    meta = getattr(response, "usage_metadata", None)
    if not meta:
        return None
    return UsageStats(
        input_tokens=getattr(meta, "prompt_token_count", None),
        output_tokens=getattr(meta, "candidates_token_count", None),
    )


class GeminiProvider(ProviderClient):
    """Provider that calls Google Gemini."""

    name = "gemini"
    display_name = "Gemini"

    def __init__(
        self,
        api_key: str = "",
        models: Sequence[str] = (),
        tracker: Optional[RateLimitTracker] = None,
        timeout_s: float = 90.0,
        thinking_budget: int = 5000,
        client=None,
    ):
        super().__init__(models, tracker=tracker, timeout_s=timeout_s)
        self._api_key = api_key
        self._thinking_budget = thinking_budget
        self._client = client

    def ensure_configured(self) -> None:
        if self._client is None and not self._api_key:
            raise ConfigurationError(
                "Gemini API key not configured",
                details="Set GEMINI_API_KEY",
                provider=self.name,
                setting="GEMINI_API_KEY",
            )

    def _get_client(self):
        if self._client is None:
            self.ensure_configured()
            self._client = genai.Client(api_key=self._api_key)
            logger.info(f"Gemini provider initialized: {', '.join(self.models)}")
        return self._client

    def _build_contents(self, request: GenerationRequest) -> List[types.Content]:
        parts = [types.Part.from_text(text=request.prompt)]
        if request.image is not None:
            parts.append(
                types.Part.from_bytes(data=base64.b64decode(request.image.data), mime_type=request.image.mime_type)
            )
        return [types.Content(role="user", parts=parts)]

    def _build_tools(self, spec: ModelSpec) -> List[types.Tool]:
        tools = []
        if TOOL_GOOGLE_SEARCH in spec.tools:
            tools.append(types.Tool(google_search=types.GoogleSearch()))
        if TOOL_CODE_EXECUTION in spec.tools:
            tools.append(types.Tool(code_execution=types.ToolCodeExecution()))
        if TOOL_GOOGLE_MAPS in spec.tools:
            tools.append(types.Tool(google_maps=types.GoogleMaps()))
        return tools

    def _build_config(self, spec: ModelSpec, request: GenerationRequest) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(
            temperature=request.temperature,
            max_output_tokens=request.max_output_tokens,
            tools=self._build_tools(spec) or None,
        )
        if request.include_thinking:
            config.thinking_config = types.ThinkingConfig(
                include_thoughts=True,
                thinking_budget=self._thinking_budget,
            )
        return config

    async def _generate_once(self, spec: ModelSpec, request: GenerationRequest) -> GenerationResult:
        client = self._get_client()
        response = await client.aio.models.generate_content(
            model=spec.model,
            contents=self._build_contents(request),
            config=self._build_config(spec, request),
        )

        answer, thoughts = _split_parts(response)
        return GenerationResult(
            answer=answer,
            model_used=spec.model,
            thinking=thoughts if request.include_thinking and thoughts else None,
            usage=_usage(response),
        )

    async def _stream_once(self, spec: ModelSpec, request: GenerationRequest) -> AsyncIterator[str]:
        client = self._get_client()
        stream = await client.aio.models.generate_content_stream(
            model=spec.model,
            contents=self._build_contents(request),
            config=self._build_config(spec, request),
        )
        async for chunk in stream:
            # Thought parts stay out of the answer stream
            text, _ = _split_parts(chunk)
            if text:
                yield text

    def _as_failure(self, model: str, error: Exception) -> ModelFailureError:
        if isinstance(error, ModelFailureError):
            return error

        code = getattr(error, "code", None)
        err_str = str(error)
        if code == 429 or any(marker in err_str.lower() for marker in _RATE_LIMIT_MARKERS):
            return RateLimitedError(
                f"Gemini model {model} rate limited",
                details=err_str,
                retry_after_s=_parse_retry_delay(error),
                model=model,
                provider=self.name,
            )

        return ModelFailureError(
            f"Gemini model {model} failed",
            details=err_str or type(error).__name__,
            model=model,
            provider=self.name,
        )
