"""
Cloudflare Provider - Workers AI through its OpenAI-compatible endpoint.

Secondary provider. Uses the async OpenAI SDK pointed at
https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/v1.

Key translations:
- Vision: request image → content:[{type:"image_url", image_url:{url: data URL}}]
- Thinking: reasoning_content or inline <think>...</think> → thinking trace
- Tool calls (streaming only): native delta.tool_calls are accumulated and
  re-emitted as a JSON fragment {"tool_call": {"name", "arguments"}} so the
  tool interceptor sees the same shape as inline JSON calls
"""

import json
import logging
import re
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import openai
from openai import AsyncOpenAI

from errors import ConfigurationError, ModelFailureError, RateLimitedError
from providers.base import GenerationRequest, GenerationResult, ProviderClient, UsageStats
from providers.capabilities import ModelSpec
from services.rate_limits import RateLimitTracker
from tools.registry import ToolRegistry, register_all_tools

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.cloudflare.com/client/v4/accounts/{account_id}/ai/v1"

_THINK_PATTERN = re.compile(r"<think>(.*?)</think>", re.DOTALL)


def _extract_thinking(content: str) -> tuple:
    """Extract <think>...</think> tags from content.

    Returns:
        (clean_content, thinking_text)
    """
    if not content:
        return "", ""

    thinking = "\n".join(_THINK_PATTERN.findall(content)).strip()
    clean = _THINK_PATTERN.sub("", content).strip()
    return clean, thinking


def _retry_after(error: Exception) -> Optional[float]:
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after")
    try:
        return float(value) if value is not None else None
    except ValueError:
        return None


class CloudflareProvider(ProviderClient):
    """Provider that calls Cloudflare Workers AI."""

    name = "cloudflare"
    display_name = "Cloudflare"

    def __init__(
        self,
        token: str = "",
        account_id: str = "",
        models: Sequence[str] = (),
        tracker: Optional[RateLimitTracker] = None,
        timeout_s: float = 90.0,
        base_url: str = DEFAULT_BASE_URL,
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(models, tracker=tracker, timeout_s=timeout_s)
        self._token = token
        self._account_id = account_id
        self._base_url = base_url
        self._client = client

    def ensure_configured(self) -> None:
        if self._client is None and not (self._token and self._account_id):
            raise ConfigurationError(
                "Cloudflare credentials not configured",
                details="Set CLOUDFLARE_TOKEN and CLOUDFLARE_ACCOUNT_ID",
                provider=self.name,
                setting="CLOUDFLARE_TOKEN/CLOUDFLARE_ACCOUNT_ID",
            )

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            self.ensure_configured()
            self._client = AsyncOpenAI(
                api_key=self._token,
                base_url=self._base_url.format(account_id=self._account_id),
                timeout=self.timeout_s,
                max_retries=0,  # fallback across models replaces SDK retries
            )
            logger.info(f"Cloudflare provider initialized: {', '.join(self.models)}")
        return self._client

    def _build_messages(self, request: GenerationRequest) -> List[Dict[str, Any]]:
        if request.image is not None:
            user_content: Any = [
                {"type": "text", "text": request.user_content},
                {"type": "image_url", "image_url": {"url": request.image.data_url}},
            ]
        else:
            user_content = request.user_content

        return [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": user_content},
        ]

    def _tools_for(self, spec: ModelSpec) -> List[Dict[str, Any]]:
        register_all_tools()
        return ToolRegistry.get_tools_schema(spec.tools)

    async def _generate_once(self, spec: ModelSpec, request: GenerationRequest) -> GenerationResult:
        client = self._get_client()
        response = await client.chat.completions.create(
            model=spec.model,
            messages=self._build_messages(request),
            temperature=request.temperature,
            max_tokens=request.max_output_tokens,
            stream=False,
        )

        if not response.choices:
            raise ModelFailureError(
                f"Malformed response from {spec.model}", details="no choices", model=spec.model, provider=self.name
            )

        message = response.choices[0].message
        answer, thinking = _extract_thinking(message.content or "")
        reasoning = getattr(message, "reasoning_content", None)
        if reasoning:
            thinking = f"{reasoning}\n{thinking}".strip()

        usage = None
        if response.usage:
            usage = UsageStats(
                input_tokens=response.usage.prompt_tokens,
                output_tokens=response.usage.completion_tokens,
            )

        return GenerationResult(
            answer=answer,
            model_used=spec.model,
            thinking=thinking if request.include_thinking and thinking else None,
            usage=usage,
        )

    async def _stream_once(self, spec: ModelSpec, request: GenerationRequest) -> AsyncIterator[str]:
        client = self._get_client()
        kwargs: Dict[str, Any] = {
            "model": spec.model,
            "messages": self._build_messages(request),
            "temperature": request.temperature,
            "max_tokens": request.max_output_tokens,
            "stream": True,
        }
        tools = self._tools_for(spec)
        if tools:
            kwargs["tools"] = tools

        stream = await client.chat.completions.create(**kwargs)

        # Native tool calls arrive in pieces keyed by index
        pending: Dict[int, Dict[str, str]] = {}
        try:
            async for chunk in stream:
                delta = chunk.choices[0].delta if chunk.choices else None
                if not delta:
                    continue

                if delta.content:
                    yield delta.content

                for tc in delta.tool_calls or []:
                    slot = pending.setdefault(tc.index, {"name": "", "arguments": ""})
                    if tc.function and tc.function.name:
                        slot["name"] += tc.function.name
                    if tc.function and tc.function.arguments:
                        slot["arguments"] += tc.function.arguments
        finally:
            await stream.close()

        for index in sorted(pending):
            call = pending[index]
            if call["name"]:
                yield json.dumps({"tool_call": {"name": call["name"], "arguments": call["arguments"] or "{}"}})

    def _as_failure(self, model: str, error: Exception) -> ModelFailureError:
        if isinstance(error, ModelFailureError):
            return error

        if isinstance(error, openai.RateLimitError):
            return RateLimitedError(
                f"Cloudflare model {model} rate limited",
                details=str(error),
                retry_after_s=_retry_after(error),
                model=model,
                provider=self.name,
            )

        if isinstance(error, openai.APITimeoutError):
            return ModelFailureError(
                f"Cloudflare model {model} timed out",
                details=str(error),
                model=model,
                provider=self.name,
                error_type="timeout",
            )

        if isinstance(error, openai.APIStatusError):
            details = f"Cloudflare API error {error.status_code}: {error.message}"
        else:
            details = str(error) or type(error).__name__

        return ModelFailureError(
            f"Cloudflare model {model} failed",
            details=details,
            model=model,
            provider=self.name,
        )
