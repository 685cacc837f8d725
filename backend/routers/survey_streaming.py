"""
Gemelo Survey Streaming - Response shaping and the SSE relay

Non-streaming answers are shaped by build_result()/build_error().
Streaming answers go through ResponseRelay, which turns StreamEvents into
Server-Sent Events frames:

    data: "<fragment>"\\n\\n                 text, verbatim
    data: "[TOOL_CALL] web_search"\\n\\n     tool markers
    data: "[ERROR] <message>"\\n\\n          terminal failure
    : heartbeat\\n\\n                        every heartbeat_s of silence
    data: "[DONE]"\\n\\n                     always last, exactly once
"""

import asyncio
import json
import logging
import time
from typing import Any, AsyncIterable, Callable, Dict, Optional

from errors import ConfigurationError
from errors.response import error_response
from logging_config import log_stream
from providers.base import GenerationResult
from services.i18n import progress_logs, t

from .survey_orchestration.events import ERROR, StreamEvent

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"
HEARTBEAT_FRAME = ": heartbeat\n\n"

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_IDLE = "idle"
STATUS_DISCONNECTED = "disconnected"

_END = object()


def sse_frame(text: str) -> str:
    """One SSE data frame carrying a JSON string."""
    return f"data: {json.dumps(text, ensure_ascii=False)}\n\n"


DONE_FRAME = sse_frame(DONE_SENTINEL)


def build_result(result: GenerationResult, language: str = "es") -> Dict[str, Any]:
    """Shape a GenerationResult for the client.

    Args:
        result: Winning provider result
        language: Language for the progress log strings

    Returns:
        {answer, modelUsed, thinking?, usageStats?, logs}
    """
    body: Dict[str, Any] = {"answer": result.answer, "modelUsed": result.model_used}

    if result.thinking:
        body["thinking"] = result.thinking

    if result.usage is not None:
        usage = {}
        if result.usage.input_tokens is not None:
            usage["inputTokens"] = result.usage.input_tokens
        if result.usage.output_tokens is not None:
            usage["outputTokens"] = result.usage.output_tokens
        if usage:
            body["usageStats"] = usage

    body["logs"] = progress_logs(language)
    return body


def build_error(error: Exception, language: str = "es") -> Dict[str, Any]:
    """Shape a terminal failure as {message, details?}."""
    key = "error_configuration" if isinstance(error, ConfigurationError) else "error_generating_response"
    return error_response(error, message=t(key, language))


class _Failure:
    """Producer-side exception, handed to the consumer through the queue."""

    def __init__(self, error: Exception):
        self.error = error


class ResponseRelay:
    """Relays StreamEvents to an SSE client.

    A producer task pumps events into a bounded queue; the consumer (the HTTP
    response body) reframes them. Closing the consumer cancels the producer,
    which closes the upstream stream.
    """

    def __init__(
        self,
        idle_timeout_s: float = 180.0,
        heartbeat_s: float = 15.0,
        queue_size: int = 64,
        language: str = "es",
    ):
        self.idle_timeout_s = idle_timeout_s
        self.heartbeat_s = heartbeat_s
        self.queue_size = queue_size
        self.language = language

    def format_event(self, event: StreamEvent) -> str:
        return sse_frame(event.to_frame_text())

    async def _produce(self, events: AsyncIterable[StreamEvent], queue: asyncio.Queue) -> None:
        iterator = events.__aiter__()
        try:
            async for event in iterator:
                await queue.put(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Stream producer failed: {e}")
            await queue.put(_Failure(e))
        else:
            await queue.put(_END)
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def relay(
        self,
        events: AsyncIterable[StreamEvent],
        on_complete: Optional[Callable[[str, Optional[str]], None]] = None,
    ):
        """Async generator of SSE frames for ``events``.

        Args:
            events: StreamEvent source (typically a GenerationStream)
            on_complete: Called once with (status, model_used) when the
                         stream ends, however it ends
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        producer = asyncio.create_task(self._produce(events, queue))
        started = time.monotonic()
        last_event = started
        frames = 0
        status = STATUS_DISCONNECTED

        try:
            while True:
                idle_left = self.idle_timeout_s - (time.monotonic() - last_event)
                if idle_left <= 0:
                    logger.warning(f"Stream idle for {self.idle_timeout_s:.0f}s, closing")
                    status = STATUS_IDLE
                    break

                try:
                    item = await asyncio.wait_for(queue.get(), timeout=min(self.heartbeat_s, idle_left))
                except asyncio.TimeoutError:
                    if time.monotonic() - last_event < self.idle_timeout_s:
                        yield HEARTBEAT_FRAME
                    continue

                last_event = time.monotonic()
                if item is _END:
                    status = STATUS_COMPLETED
                    break
                if isinstance(item, _Failure):
                    status = STATUS_FAILED
                    message = build_error(item.error, self.language)["message"]
                    yield self.format_event(StreamEvent(ERROR, message))
                    frames += 1
                    break

                yield self.format_event(item)
                frames += 1

            yield DONE_FRAME
            frames += 1
        finally:
            if not producer.done():
                producer.cancel()
            try:
                await producer
            except asyncio.CancelledError:
                pass

            log_stream(logger, status, frames=frames, duration=time.monotonic() - started)
            if on_complete is not None:
                on_complete(status, getattr(events, "model_used", None))
