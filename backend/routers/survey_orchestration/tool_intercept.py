"""
Gemelo Tool Call Interceptor - Tool calls embedded in a streamed answer

Handles:
- Parsing a fragment into a ToolInvocation (strict schema, key aliases)
- Running the named tool from ToolRegistry (echo for unknown names)
- Emitting tool lifecycle events around the tool output
- One follow-up non-streaming generation with the tool result appended

Accepted payload shapes (fragment must be a whole JSON object):
    {"tool_call": {"name": ..., "arguments": {...}}}
    {"function_call": {"name": ..., "arguments": "<json string>"}}
    {"name": ..., "args": {...}}
Within a call, the name may also be given as "tool" and the arguments as
"args" or "params". Anything else is plain text.
"""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as SchemaError

from errors import ConfigurationError, ModelFailureError
from logging_config import log_tool
from providers.base import GenerationRequest, ProviderClient
from tools.registry import ToolRegistry, register_all_tools

from .events import TOOL_CALL, TOOL_RESULT, TOOL_RESULT_BEGIN, TOOL_RESULT_END, StreamEvent

logger = logging.getLogger(__name__)

_ENVELOPE_KEYS = ("tool_call", "function_call")


class ToolInvocation(BaseModel):
    """A tool call parsed out of a streamed fragment."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = Field(validation_alias=AliasChoices("name", "tool"))
    arguments: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("arguments", "args", "params"),
    )

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("tool name is empty")
        return value

    @field_validator("arguments", mode="before")
    @classmethod
    def _decode_arguments(cls, value: Any) -> Any:
        # OpenAI-style calls carry arguments as a JSON string
        if value is None:
            return {}
        if isinstance(value, str):
            value = value.strip()
            return json.loads(value) if value else {}
        return value


def parse_tool_invocation(fragment: str) -> Optional[ToolInvocation]:
    """Decode a fragment into a ToolInvocation, or None if it is plain text."""
    text = fragment.strip() if isinstance(fragment, str) else ""
    if not text.startswith("{"):
        return None

    try:
        payload = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None

    call = None
    for key in _ENVELOPE_KEYS:
        if isinstance(payload.get(key), dict):
            call = payload[key]
            break
    if call is None:
        if "name" not in payload:
            return None
        call = payload

    try:
        return ToolInvocation.model_validate(call)
    except SchemaError as e:
        logger.debug(f"Fragment looked like a tool call but failed validation: {e.error_count()} errors")
        return None


class ToolCallInterceptor:
    """Wraps a provider fragment stream, servicing tool calls in line.

    Usage:
        interceptor = ToolCallInterceptor()
        async for event in interceptor.intercept(stream, provider, request, active_model=stream.model):
            ...
    """

    def __init__(self, registry=ToolRegistry):
        self.registry = registry
        if registry is ToolRegistry:
            register_all_tools()
        self.tools_used: List[str] = []

    @staticmethod
    def parse(fragment: str) -> Optional[ToolInvocation]:
        return parse_tool_invocation(fragment)

    async def run_tool(self, invocation: ToolInvocation) -> str:
        """Execute one tool call. Always returns text.

        The call runs in its own task behind asyncio.shield: if the stream is
        cancelled mid-call, the tool still finishes and its result is dropped.
        """
        log_tool(logger, invocation.name, "start", args=json.dumps(invocation.arguments, default=str)[:120])
        task = asyncio.ensure_future(self.registry.execute(invocation.name, dict(invocation.arguments)))
        result = await asyncio.shield(task)
        log_tool(logger, invocation.name, "end", chars=len(result))
        return result

    def _follow_up_models(self, provider: ProviderClient, active_model: Optional[str]) -> Optional[List[str]]:
        if not active_model:
            return None
        return [active_model] + [m for m in provider.models if m != active_model]

    async def intercept(
        self,
        fragments: AsyncIterator[str],
        provider: ProviderClient,
        request: GenerationRequest,
        active_model: Optional[str] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Forward text fragments verbatim; expand tool calls into events."""
        async for fragment in fragments:
            invocation = self.parse(fragment)
            if invocation is None:
                yield StreamEvent.of_text(fragment)
                continue

            self.tools_used.append(invocation.name)
            yield StreamEvent(TOOL_CALL, invocation.name)

            result = await self.run_tool(invocation)
            yield StreamEvent(TOOL_RESULT_BEGIN, invocation.name)
            yield StreamEvent(TOOL_RESULT, result)
            yield StreamEvent(TOOL_RESULT_END, invocation.name)

            follow_up_request = request.with_tool_result(invocation.name, result)
            try:
                follow_up = await provider.generate(
                    follow_up_request, models=self._follow_up_models(provider, active_model)
                )
            except (ConfigurationError, ModelFailureError) as e:
                # The original stream is still healthy; keep relaying it
                logger.warning(f"Follow-up after tool {invocation.name} failed: {e}")
                continue

            yield StreamEvent.of_text(follow_up.answer)
