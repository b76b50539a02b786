"""
End-to-end behaviour of the agent loop against a scripted channel.

Run with:
$ pytest -q tests/test_agent_loop.py
"""

import asyncio
from typing import (
    Any,
    Dict,
    List,
)

from conftest import (
    ChannelRecorder,
    FakeChannel,
    StatusError,
    call,
    text,
)
from quest.agent import agent_loop
from quest.agent.agent_loop import Agent
from quest.agent.metadata_cache import MetadataCache
from quest.core.schema import (
    FunctionResponseMessage,
    ModelResponse,
    TextMessage,
)
from quest.tools import (
    ToolRegistry,
    object_schema,
    prop,
)
from quest.tools.datastore import (
    GET_MODEL_SCHEMA,
    LIST_MODELS,
)

WEATHER = {
    "results": [
        {"title": "Lusaka weather", "snippet": "25°C, sunny", "link": "https://weather/lusaka"},
        {"title": "Zambia forecast", "snippet": "Clear skies", "link": "https://weather/zm"},
        {"title": "Lusaka climate", "snippet": "Dry season", "link": "https://climate/lusaka"},
        {"title": "Old news", "snippet": "...", "link": "https://old"},
    ]
}


def _registry(invocations: List[Dict[str, Any]]) -> ToolRegistry:
    registry = ToolRegistry()

    @registry.tool(
        "googleSearch",
        "Search the web",
        parameters=object_schema({"query": prop("string")}, required=["query"]),
    )
    async def _search(args: Dict[str, Any]) -> Any:
        invocations.append({"name": "googleSearch", **args})
        return WEATHER

    @registry.tool("lookup", "Look something up")
    async def _lookup(args: Dict[str, Any]) -> Any:
        invocations.append({"name": "lookup", **args})
        return {"n": len(invocations)}

    return registry.freeze()


def _agent(channel: FakeChannel, invocations: List[Dict[str, Any]], **kwargs: Any) -> Agent:
    return Agent(_registry(invocations), ChannelRecorder(channel), **kwargs)


async def test_single_tool_round_trip() -> None:
    """Weather question: one search, then the model's answer is returned verbatim."""
    invocations: List[Dict[str, Any]] = []
    channel = FakeChannel(
        [
            call("googleSearch", query="weather in Lusaka"),
            text("It's 25°C and sunny in Lusaka."),
        ]
    )

    reply = await _agent(channel, invocations).generate_response(
        [], {"content": "What's the weather in Lusaka?"}
    )

    assert reply == "It's 25°C and sunny in Lusaka."
    assert invocations == [{"name": "googleSearch", "query": "weather in Lusaka"}]
    assert channel.sent[0] == TextMessage(text="What's the weather in Lusaka?")
    assert channel.sent[1] == FunctionResponseMessage(name="googleSearch", response={"result": WEATHER})
    assert len(channel.sent) == 2


async def test_channel_is_opened_with_history_and_tools() -> None:
    channel = FakeChannel([text("hi")])
    factory = ChannelRecorder(channel)
    agent = Agent(_registry([]), factory)

    await agent.generate_response(
        [{"role": "user", "content": "earlier"}, {"role": "model", "content": "reply"}],
        "hello",
        {"user": {"userId": "u-1", "name": "Mwila"}},
    )

    assert [turn.content for turn in factory.kwargs["history"]] == ["earlier", "reply"]
    assert [tool["name"] for tool in factory.kwargs["tools"]] == ["googleSearch", "lookup"]
    assert "User ID: u-1" in factory.kwargs["system_prompt"]


async def test_text_embedded_call_with_parameters_synonym() -> None:
    invocations: List[Dict[str, Any]] = []
    channel = FakeChannel(
        [
            text(
                '```json\n{"thoughts": "search first", "payload": {"function_call": '
                '{"name": "googleSearch", "parameters": {"query": "Lusaka"}}}}\n```'
            ),
            text('```json\n{"payload": {"text": "Sunny."}}\n```'),
        ]
    )

    assert await _agent(channel, invocations).generate_response([], "weather?") == "Sunny."
    assert invocations == [{"name": "googleSearch", "query": "Lusaka"}]


async def test_tool_iterations_are_bounded() -> None:
    """A model that never stops calling tools gets five executions, then a summary request."""
    invocations: List[Dict[str, Any]] = []
    channel = FakeChannel(default=call("lookup"))

    reply = await _agent(channel, invocations).generate_response([], "loop forever")

    assert len(invocations) == Agent.MAX_TOOL_ITERATIONS
    responses = [m for m in channel.sent if isinstance(m, FunctionResponseMessage)]
    assert len(responses) == Agent.MAX_TOOL_ITERATIONS
    assert channel.sent[-1] == TextMessage(text=Agent.SUMMARY_REQUEST)
    # Summary was unusable, so the last tool result is rendered directly
    assert reply == 'I found information related to your query: {"n": 5}'


async def test_results_are_paired_with_call_names() -> None:
    invocations: List[Dict[str, Any]] = []
    channel = FakeChannel(
        [call("lookup", key="a"), call("googleSearch", query="b"), text("done")]
    )

    assert await _agent(channel, invocations).generate_response([], "two steps") == "done"
    names = [m.name for m in channel.sent if isinstance(m, FunctionResponseMessage)]
    assert names == ["lookup", "googleSearch"]
    assert [i["name"] for i in invocations] == ["lookup", "googleSearch"]


async def test_unknown_tool_is_reported_to_model() -> None:
    channel = FakeChannel([call("noSuchTool", x=1), text("Sorry, I can't do that.")])

    reply = await _agent(channel, []).generate_response([], "do something odd")

    assert reply == "Sorry, I can't do that."
    assert channel.sent[1] == FunctionResponseMessage(
        name="noSuchTool", response={"error": "Tool 'noSuchTool' is not registered."}
    )


async def test_missing_parameter_skips_executor() -> None:
    invocations: List[Dict[str, Any]] = []
    channel = FakeChannel([call("googleSearch"), text("Need a query.")])

    assert await _agent(channel, invocations).generate_response([], "search") == "Need a query."
    assert invocations == []
    assert channel.sent[1].response == {"error": "Missing required parameter: query"}


async def test_garbage_responses_still_produce_text() -> None:
    channel = FakeChannel(default=ModelResponse())

    reply = await _agent(channel, []).generate_response([], "???")

    assert reply == Agent.APOLOGY
    assert channel.sent[-1] == TextMessage(text=Agent.SUMMARY_REQUEST)


async def test_unparseable_text_is_the_answer() -> None:
    channel = FakeChannel([text("```json\n{oops")])
    assert await _agent(channel, []).generate_response([], "hi") == "```json\n{oops"


async def test_summary_request_answers_after_silent_model() -> None:
    invocations: List[Dict[str, Any]] = []
    channel = FakeChannel(
        [call("googleSearch", query="Lusaka"), ModelResponse(), text("Summary: sunny.")]
    )

    assert await _agent(channel, invocations).generate_response([], "weather") == "Summary: sunny."
    assert channel.sent[2] == TextMessage(text=Agent.SUMMARY_REQUEST)


async def test_fallback_formats_last_search() -> None:
    channel = FakeChannel([call("googleSearch", query="Lusaka")], default=ModelResponse())

    reply = await _agent(channel, []).generate_response([], "weather")

    assert "1. Lusaka weather" in reply
    assert "3. Lusaka climate" in reply
    assert "Old news" not in reply


async def test_exhausted_retries_send_recovery_message(fake_sleep: Any, sleeps: List[float]) -> None:
    channel = FakeChannel(
        [StatusError(503), StatusError(503), StatusError(503), text("Recovered answer")]
    )

    reply = await _agent(channel, [], retries=2, sleep=fake_sleep).generate_response([], "hi")

    assert reply == "Recovered answer"
    assert sleeps == [1.0, 2.0]
    assert channel.sent[3] == TextMessage(text=Agent.RECOVERY_MESSAGE)


async def test_failed_result_delivery_ends_loop() -> None:
    invocations: List[Dict[str, Any]] = []
    channel = FakeChannel([call("googleSearch", query="x"), RuntimeError("socket closed")])

    reply = await _agent(channel, invocations).generate_response([], "weather")

    # Summary request gets the empty default; the search result is rendered instead
    assert len(invocations) == 1
    assert reply.startswith("Here's what I found:")


async def test_metadata_is_prefetched_into_prompt() -> None:
    registry = ToolRegistry()

    @registry.tool(LIST_MODELS)
    async def _list(args: Dict[str, Any]) -> Any:
        return ["users"]

    @registry.tool(GET_MODEL_SCHEMA)
    async def _schema(args: Dict[str, Any]) -> Any:
        return {"email": "string"}

    factory = ChannelRecorder(FakeChannel([text("ok")]))
    agent = Agent(registry, factory, MetadataCache(registry))

    assert await agent.generate_response([], "hi") == "ok"
    assert "Available database models: users" in factory.kwargs["system_prompt"]


class _BlockingChannel(FakeChannel):
    async def send(self, message: Any) -> ModelResponse:
        self.sent.append(message)
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


async def test_timeout_returns_apology() -> None:
    agent = _agent(_BlockingChannel(), [])
    assert await agent.generate_response([], "slow", timeout=0.05) == Agent.APOLOGY


async def test_cancel_event_returns_apology() -> None:
    cancel = asyncio.Event()
    agent = _agent(_BlockingChannel(), [])

    async def _cancel_soon() -> None:
        await asyncio.sleep(0.01)
        cancel.set()

    reply, _ = await asyncio.gather(
        agent.generate_response([], "slow", cancel_event=cancel), _cancel_soon()
    )
    assert reply == Agent.APOLOGY


async def test_channel_factory_failure_is_contained() -> None:
    def _broken(**kwargs: Any) -> Any:
        raise RuntimeError("no API key")

    agent = Agent(_registry([]), _broken)
    assert await agent.generate_response([], "hi") == Agent.APOLOGY


async def test_module_entry_point_never_raises() -> None:
    def _factory() -> Agent:
        raise RuntimeError("misconfigured")

    assert await agent_loop.generate_response([], "hi", agent_factory=_factory) == Agent.APOLOGY


async def test_session_with_empty_user_entry() -> None:
    """A null ``user`` entry falls back to the top-level session keys."""
    factory = ChannelRecorder(FakeChannel([text("hello")]))
    agent = Agent(_registry([]), factory)

    assert await agent.generate_response([], "hi", {"user": None, "userId": "u1"}) == "hello"
    assert "User ID: u1" in factory.kwargs["system_prompt"]


async def test_empty_tool_result_is_not_rendered() -> None:
    """A tool that returns nothing leaves only the apology when the model stays silent."""
    registry = ToolRegistry()

    @registry.tool("noop")
    async def _noop(args: Dict[str, Any]) -> None:
        return None

    channel = FakeChannel([call("noop")], default=ModelResponse())
    reply = await Agent(registry, ChannelRecorder(channel)).generate_response([], "anything?")

    assert reply == Agent.APOLOGY
    assert channel.sent[1] == FunctionResponseMessage(name="noop", response={"result": None})
