"""
Tool Registry - Unified tool dispatch pattern for Gemelo.

Each tool is a self-contained definition that registers itself with the
registry. The registry serves two purposes:
- OpenAI-style function schemas for providers that take function tools
- Name -> executor dispatch for tool calls intercepted from a stream

Unknown tool names are never an error: they go to the echo handler so that
newer model tool catalogs keep working.
"""

import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union
import logging

from errors import handle_async_tool_errors, handle_tool_errors

logger = logging.getLogger(__name__)


@dataclass
class ToolDefinition:
    """Definition of a tool for the registry."""

    name: str
    description: str
    parameters: Dict[str, Any]
    required_params: List[str]
    executor: Callable[..., Union[str, Awaitable[str]]]


class ToolRegistry:
    """
    Central registry for all Gemelo tools.

    Usage:
        # Register a tool
        ToolRegistry.register(ToolDefinition(...))

        # Get OpenAI-compatible schema for a model's tool set
        tools_schema = ToolRegistry.get_tools_schema({"web_search", "browser"})

        # Execute a tool (always returns a string)
        result = await ToolRegistry.execute("web_search", {"query": "x"})
    """

    _tools: Dict[str, ToolDefinition] = {}
    _initialized: bool = False

    @classmethod
    def register(cls, tool: ToolDefinition) -> None:
        """Register a tool definition."""
        cls._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    @classmethod
    def get_tool(cls, name: str) -> Optional[ToolDefinition]:
        """Get a tool definition by name."""
        return cls._tools.get(name)

    @classmethod
    def get_tools_schema(cls, names: Optional[Iterable[str]] = None) -> List[Dict[str, Any]]:
        """Generate OpenAI-compatible tools schema for function calling.

        Args:
            names: Restrict to these tool names (e.g. a model's capability set).
                   None means every registered tool.
        """
        wanted = set(names) if names is not None else None
        schema = []
        for tool in cls._tools.values():
            if wanted is not None and tool.name not in wanted:
                continue
            schema.append(
                {
                    "type": "function",
                    "function": {
                        "name": tool.name,
                        "description": tool.description,
                        "parameters": {
                            "type": "object",
                            "properties": tool.parameters,
                            "required": tool.required_params,
                        },
                    },
                }
            )
        return schema

    @classmethod
    async def execute(cls, name: str, args: Dict[str, Any]) -> str:
        """
        Execute a tool by name with given arguments.

        Failures are converted into a descriptive string, never raised.

        Args:
            name: Tool name
            args: Tool arguments

        Returns:
            Tool output text
        """
        from tools.handlers import echo_tool

        tool = cls.get_tool(name)
        if not tool:
            logger.info(f"Unknown tool '{name}', using echo handler")
            return echo_tool(name, args)

        if inspect.iscoroutinefunction(tool.executor):
            result = await handle_async_tool_errors(name)(tool.executor)(**args)
        else:
            result = handle_tool_errors(name)(tool.executor)(**args)
        return result if isinstance(result, str) else str(result)

    @classmethod
    def get_all_tools(cls) -> Dict[str, ToolDefinition]:
        """Get all registered tools."""
        return cls._tools.copy()

    @classmethod
    def clear(cls) -> None:
        """Clear all registered tools (for testing)."""
        cls._tools.clear()
        cls._initialized = False


def register_all_tools() -> None:
    """Register the built-in (simulated) tools with the registry."""
    if ToolRegistry._initialized:
        return

    from tools.handlers import (
        execute_browser,
        execute_code_execution,
        execute_file_tools,
        execute_url_context,
        execute_vision,
        execute_web_search,
    )

    ToolRegistry.register(
        ToolDefinition(
            name="web_search",
            description="Search the web for current information, news and public data.",
            parameters={
                "query": {"type": "string", "description": "Search query"},
            },
            required_params=["query"],
            executor=execute_web_search,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="vision",
            description="Describe or analyze an image supplied as base64 data.",
            parameters={
                "image_data": {"type": "string", "description": "Base64 image payload"},
            },
            required_params=[],
            executor=execute_vision,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="code_execution",
            description="Run a short program for calculations or data analysis.",
            parameters={
                "code": {"type": "string", "description": "Source code to run"},
            },
            required_params=["code"],
            executor=execute_code_execution,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="url_context",
            description="Fetch the content of a web page to use as context.",
            parameters={
                "url": {"type": "string", "description": "Page URL"},
            },
            required_params=["url"],
            executor=execute_url_context,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="file_tools",
            description="Read or inspect a previously uploaded file.",
            parameters={
                "file_id": {"type": "string", "description": "File identifier"},
            },
            required_params=["file_id"],
            executor=execute_file_tools,
        )
    )

    ToolRegistry.register(
        ToolDefinition(
            name="browser",
            description="Open a web page in a headless browser.",
            parameters={
                "url": {"type": "string", "description": "Page URL"},
            },
            required_params=["url"],
            executor=execute_browser,
        )
    )

    ToolRegistry._initialized = True
    logger.info(f"Registered {len(ToolRegistry._tools)} tools")
