"""
Gemelo Tool Handlers - Simulated tool executors

These handlers stand in for real search/vision/code backends. Each takes
keyword arguments from the model's tool call and returns a short string
that is fed back into the follow-up generation call.
"""

import json
import logging
from typing import Any, Dict

from errors import ValidationError

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULT_CHARS = 400


def _first(args: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = args.get(key)
        if value not in (None, ""):
            return value
    return None


def execute_web_search(**args: Any) -> str:
    """Simulated web search. Accepts `query` or `q`."""
    query = _first(args, "query", "q")
    if query is None:
        raise ValidationError("Missing search query", parameter="query")
    result = f"Simulated web search results for query: {query}"
    return result[:MAX_SEARCH_RESULT_CHARS]


def execute_vision(**args: Any) -> str:
    image_data = _first(args, "image_data", "image")
    if image_data is None:
        return "Vision tool called without image data."
    return f"Simulated vision analysis of an image ({len(str(image_data))} bytes of data)."


def execute_code_execution(**args: Any) -> str:
    code = _first(args, "code", "source")
    if code is None:
        raise ValidationError("Missing code to execute", parameter="code")
    return f"Simulated code execution completed ({len(str(code))} characters of code)."


def execute_url_context(**args: Any) -> str:
    url = _first(args, "url")
    if url is None:
        raise ValidationError("Missing URL", parameter="url")
    return f"Simulated content fetched from {url}."


def execute_file_tools(**args: Any) -> str:
    file_id = _first(args, "file_id", "file")
    if file_id is None:
        raise ValidationError("Missing file identifier", parameter="file_id")
    return f"Simulated file operation on {file_id}."


def execute_browser(**args: Any) -> str:
    url = _first(args, "url")
    if url is None:
        raise ValidationError("Missing URL", parameter="url")
    return f"Simulated browser visit to {url}."


def echo_tool(tool_name: str, args: Dict[str, Any]) -> str:
    """Fallback for tools nobody registered. Never fails."""
    try:
        rendered = json.dumps(args, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        rendered = str(args)
    return f"Tool '{tool_name}' called with args: {rendered}"
