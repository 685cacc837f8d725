"""
Tool call interception tests - parsing, execution and the follow-up call.
"""

import asyncio
import json

import pytest

from errors import ModelFailureError
from routers.survey_orchestration.events import TEXT, TOOL_CALL, TOOL_RESULT, TOOL_RESULT_BEGIN, TOOL_RESULT_END
from routers.survey_orchestration.tool_intercept import ToolCallInterceptor, ToolInvocation, parse_tool_invocation
from tools.registry import register_all_tools


async def _fragments(*items):
    for item in items:
        yield item


async def _events(interceptor, fragments, provider, request, active_model=None):
    return [e async for e in interceptor.intercept(fragments, provider, request, active_model=active_model)]


class TestParse:
    """Fragment -> ToolInvocation or plain text."""

    def test_envelope(self):
        call = parse_tool_invocation('{"tool_call": {"name": "web_search", "arguments": {"query": "x"}}}')
        assert call == ToolInvocation(name="web_search", arguments={"query": "x"})

    def test_function_call_with_string_arguments(self):
        call = parse_tool_invocation('{"function_call": {"name": "browser", "arguments": "{\\"url\\": \\"https://a.b\\"}"}}')
        assert call.name == "browser"
        assert call.arguments == {"url": "https://a.b"}

    def test_top_level_with_aliases(self):
        call = parse_tool_invocation('  {"name": "code_execution", "args": {"code": "1+1"}}  ')
        assert call.arguments == {"code": "1+1"}

        call = parse_tool_invocation('{"tool_call": {"tool": "vision", "params": {"image_data": "..."}}}')
        assert call.name == "vision"
        assert call.arguments == {"image_data": "..."}

    def test_missing_arguments_default_empty(self):
        assert parse_tool_invocation('{"name": "web_search", "arguments": null}').arguments == {}
        assert parse_tool_invocation('{"name": "web_search"}').arguments == {}

    @pytest.mark.parametrize(
        "fragment",
        [
            "Hola, ¿qué tal?",
            "{not json",
            '["web_search"]',
            '{"answer": 42}',
            '{"name": "   "}',
            '{"name": 7}',
            '{"name": "web_search", "arguments": [1, 2]}',
            '{"name": "web_search", "arguments": "not json"}',
            "",
        ],
    )
    def test_plain_text(self, fragment):
        """Anything that is not a well-formed call stays text."""
        assert parse_tool_invocation(fragment) is None

    def test_name_trimmed(self):
        assert parse_tool_invocation('{"name": " web_search "}').name == "web_search"

    def test_interceptor_parse_is_same(self):
        assert ToolCallInterceptor.parse('{"name": "x"}') == parse_tool_invocation('{"name": "x"}')


class TestRunTool:
    """Registry dispatch."""

    def setup_method(self):
        register_all_tools()

    def test_registered_tool(self):
        result = asyncio.run(ToolCallInterceptor().run_tool(ToolInvocation(name="web_search", arguments={"q": "ai"})))
        assert result == "Simulated web search results for query: ai"

    def test_search_result_capped(self):
        invocation = ToolInvocation(name="web_search", arguments={"query": "x" * 1000})
        assert len(asyncio.run(ToolCallInterceptor().run_tool(invocation))) == 400

    def test_unknown_tool_echoes(self):
        result = asyncio.run(ToolCallInterceptor().run_tool(ToolInvocation(name="weather", arguments={"city": "Lima"})))
        assert result == 'Tool \'weather\' called with args: {"city": "Lima"}'

    def test_handler_failure_becomes_text(self):
        """A failing handler yields a failure description, never an exception."""
        result = asyncio.run(ToolCallInterceptor().run_tool(ToolInvocation(name="browser", arguments={})))
        assert result.startswith("Tool 'browser' failed.")
        assert "Missing URL" in result


class TestIntercept:
    """Event sequence around a tool call."""

    def test_text_passes_verbatim(self, make_provider, request_factory):
        provider = make_provider()
        events = asyncio.run(
            _events(ToolCallInterceptor(), _fragments("Hola ", "mundo"), provider, request_factory())
        )

        assert [(e.kind, e.text) for e in events] == [(TEXT, "Hola "), (TEXT, "mundo")]
        assert provider.calls == []

    def test_round_trip(self, make_provider, request_factory):
        """Call -> markers -> result -> follow-up text -> rest of the stream."""
        provider = make_provider(answers={"gemini-2.5-pro": "Según la búsqueda, sí."})
        interceptor = ToolCallInterceptor()
        call = json.dumps({"tool_call": {"name": "web_search", "arguments": {"query": "teletrabajo"}}})

        events = asyncio.run(
            _events(
                interceptor,
                _fragments("Déjame buscar. ", call, " Fin."),
                provider,
                request_factory(question="¿Teletrabajo?"),
                active_model="gemini-2.5-pro",
            )
        )

        assert [(e.kind, e.text) for e in events] == [
            (TEXT, "Déjame buscar. "),
            (TOOL_CALL, "web_search"),
            (TOOL_RESULT_BEGIN, "web_search"),
            (TOOL_RESULT, "Simulated web search results for query: teletrabajo"),
            (TOOL_RESULT_END, "web_search"),
            (TEXT, "Según la búsqueda, sí."),
            (TEXT, " Fin."),
        ]
        assert interceptor.tools_used == ["web_search"]

        # One follow-up, active model first, tool result appended to the prompt
        kind, model, follow_up = provider.calls[0]
        assert (kind, model) == ("generate", "gemini-2.5-pro")
        assert len(provider.calls) == 1
        assert follow_up.tool_context == "Tool web_search result:\nSimulated web search results for query: teletrabajo"
        assert follow_up.prompt.endswith("¿Teletrabajo?\n\nTool web_search result:\nSimulated web search results for query: teletrabajo")

    def test_follow_up_model_order(self, make_provider, request_factory):
        provider = make_provider(answers={"gemini-2.5-flash": RuntimeError("down")})
        asyncio.run(
            _events(
                ToolCallInterceptor(),
                _fragments('{"name": "x"}'),
                provider,
                request_factory(),
                active_model="gemini-2.5-flash",
            )
        )
        assert provider.attempted() == ["gemini-2.5-flash", "gemini-3-flash-preview"]

    def test_calls_handled_sequentially(self, make_provider, request_factory):
        provider = make_provider()
        events = asyncio.run(
            _events(
                ToolCallInterceptor(),
                _fragments('{"name": "first"}', '{"name": "second"}'),
                provider,
                request_factory(),
            )
        )
        calls = [e.text for e in events if e.kind == TOOL_CALL]
        assert calls == ["first", "second"]

    def test_follow_up_failure_does_not_abort(self, make_provider, request_factory):
        provider = make_provider(models=["gemini-2.5-flash"], answers={"gemini-2.5-flash": RuntimeError("down")})
        events = asyncio.run(
            _events(ToolCallInterceptor(), _fragments('{"name": "x"}', "after"), provider, request_factory())
        )

        assert events[-1].text == "after"
        assert [e.kind for e in events].count(TEXT) == 1

    def test_upstream_failure_propagates(self, make_provider, request_factory):
        async def broken():
            yield "start"
            raise ModelFailureError("Stream died")

        provider = make_provider()
        with pytest.raises(ModelFailureError):
            asyncio.run(_events(ToolCallInterceptor(), broken(), provider, request_factory()))


class TestShieldedExecution:
    """A dispatched tool finishes even if the stream is cancelled."""

    def test_cancel_mid_tool(self):
        finished = []

        async def slow_tool(**args):
            await asyncio.sleep(0.05)
            finished.append(args)
            return "done"

        class Registry:
            @staticmethod
            async def execute(name, args):
                return await slow_tool(**args)

        async def run():
            interceptor = ToolCallInterceptor(registry=Registry)
            task = asyncio.ensure_future(interceptor.run_tool(ToolInvocation(name="slow", arguments={"n": 1})))
            await asyncio.sleep(0.01)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            await asyncio.sleep(0.1)

        asyncio.run(run())
        assert finished == [{"n": 1}]

