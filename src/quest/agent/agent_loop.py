"""
Main orchestration loop for Quest.

One user message is answered by a bounded exchange with the model:

    send user message (with retry)
         │
         ▼
    interpret response ── no function call ──► extract final text
         │                                          │
    execute tool via the registry              empty? ask for a summary once
         │                                          │
    send tool result back (no retry)           still empty? format the last tool result
         │                                          │
         └──── at most MAX_TOOL_ITERATIONS ─────    nothing at all? apologise

Nothing raises past :meth:`Agent.generate_response`: every failure degrades to text.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import (
    Any,
    Callable,
    Iterable,
    Mapping,
    Optional,
    Sequence,
    Union,
)

from quest.agent.channel import (
    ChannelFactory,
    ModelChannel,
    load_channel,
)
from quest.agent.fallback import format_tool_result
from quest.agent.interpreter import (
    extract_final_text,
    interpret,
)
from quest.agent.metadata_cache import MetadataCache
from quest.agent.prompts import build_system_prompt
from quest.agent.retry import (
    Sleep,
    send_with_retry,
)
from quest.core.schema import (
    AgentStepState,
    ChannelMessage,
    ConversationTurn,
    FunctionCall,
    FunctionResponseMessage,
    ModelResponse,
    SessionInfo,
    TextMessage,
    UserMessage,
)
from quest.tools import (
    ToolError,
    ToolRegistry,
    build_registry,
)

logger = logging.getLogger(__name__)

HistoryLike = Iterable[Union[ConversationTurn, Mapping[str, Any]]]
MessageLike = Union[UserMessage, Mapping[str, Any], str]
SessionLike = Union[SessionInfo, Mapping[str, Any], None]


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------
def _coerce_history(history: Optional[HistoryLike]) -> list[ConversationTurn]:
    return [ConversationTurn.model_validate(turn) for turn in (history or [])]


def _coerce_message(message: MessageLike) -> UserMessage:
    if isinstance(message, str):
        return UserMessage(content=message)
    return UserMessage.model_validate(message)


def _coerce_session(session: SessionLike) -> Optional[SessionInfo]:
    if session is None or isinstance(session, SessionInfo):
        return session
    user = session.get("user")
    data = user if isinstance(user, Mapping) else session
    user_id = data.get("user_id") or data.get("userId") or data.get("id")
    if not user_id:
        return None
    return SessionInfo(
        user_id=str(user_id),
        user_name=data.get("user_name") or data.get("userName") or data.get("name"),
        email=data.get("email"),
    )


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------
class Agent:
    """
    Drives one conversation step between a model channel and the tool registry.

    The registry and metadata cache are shared between concurrent calls; everything else lives in
    a fresh :class:`~quest.core.schema.AgentStepState` per user message.
    """

    # Maximum tool round-trips per user message
    MAX_TOOL_ITERATIONS = 5

    RECOVERY_MESSAGE = "Please try again"
    SUMMARY_REQUEST = (
        "Based on the data we've gathered, please summarize the results in a user-friendly way."
    )
    APOLOGY = "I apologize, but I couldn't process your request. Please try again."

    def __init__(
        self,
        registry: ToolRegistry,
        channel_factory: ChannelFactory = load_channel,
        metadata_cache: Optional[MetadataCache] = None,
        *,
        retries: int = 5,
        initial_delay_ms: float = 1000,
        backoff_factor: float = 2,
        retry_on_rate_limit: bool = False,
        sleep: Sleep = asyncio.sleep,
    ):
        self.registry = registry
        self.channel_factory = channel_factory
        self.metadata_cache = metadata_cache
        self.retries = retries
        self.initial_delay_ms = initial_delay_ms
        self.backoff_factor = backoff_factor
        self.retry_on_rate_limit = retry_on_rate_limit
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Any, registry: Optional[ToolRegistry] = None) -> "Agent":
        """Build an agent wired to the configured channel, tools and retry policy."""
        registry = registry or build_registry(settings)
        return cls(
            registry,
            load_channel,
            MetadataCache(registry),
            retries=settings.RETRY_ATTEMPTS,
            initial_delay_ms=settings.RETRY_INITIAL_DELAY_MS,
            backoff_factor=settings.RETRY_BACKOFF_FACTOR,
            retry_on_rate_limit=settings.RETRY_ON_RATE_LIMIT,
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def generate_response(
        self,
        history: Optional[HistoryLike],
        user_message: MessageLike,
        session: SessionLike = None,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """
        Answer *user_message* given the prior *history*; always returns text.

        Parameters
        ----------
        history:
            Prior turns, oldest first.  Not modified or persisted.
        user_message:
            The message to answer (``{"content": ...}``, :class:`UserMessage` or plain text).
        session:
            Signed-in user details, or ``None``.
        timeout:
            Seconds after which the in-flight call is abandoned and the apology returned.
        cancel_event:
            Setting this event has the same effect as the timeout expiring.
        """
        if timeout is None and cancel_event is None:
            return await self._respond(history, user_message, session)

        task = asyncio.ensure_future(self._respond(history, user_message, session))
        waiters: set[asyncio.Future[Any]] = {task}
        cancel_waiter: Optional[asyncio.Future[Any]] = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
            if task in done:
                return task.result()
            logger.warning("Response aborted (%s)", "cancelled" if done else "timed out")
            return self.APOLOGY
        finally:
            for fut in (task, cancel_waiter):
                if fut is not None and not fut.done():
                    fut.cancel()
                    with contextlib.suppress(asyncio.CancelledError):
                        await fut

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    async def _respond(
        self, history: Optional[HistoryLike], user_message: MessageLike, session: SessionLike
    ) -> str:
        try:
            message = _coerce_message(user_message)
            channel = await self._open_channel(_coerce_history(history), _coerce_session(session))
            return await self._run(channel, message)
        except Exception:  # pylint: disable=broad-except
            logger.exception("Agent loop failed")
            return self.APOLOGY

    async def _open_channel(
        self, history: list[ConversationTurn], session: Optional[SessionInfo]
    ) -> ModelChannel:
        metadata = ""
        if self.metadata_cache is not None:
            await self.metadata_cache.ensure_prefetched()
            metadata = self.metadata_cache.describe()
        return self.channel_factory(
            system_prompt=build_system_prompt(session, metadata),
            history=history,
            tools=self.registry.declarations(),
        )

    async def _run(self, channel: ModelChannel, message: UserMessage) -> str:
        state = AgentStepState()
        logger.info("New user query: %.80s", message.content)

        # 1. Initial send, degrading to the recovery message once retries are exhausted
        try:
            state.response = await send_with_retry(
                channel,
                TextMessage(text=message.content),
                retries=self.retries,
                initial_delay_ms=self.initial_delay_ms,
                backoff_factor=self.backoff_factor,
                retry_on_rate_limit=self.retry_on_rate_limit,
                sleep=self._sleep,
            )
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Initial send failed (%s); sending recovery message", exc)
            state.response = await self._send_once(channel, TextMessage(text=self.RECOVERY_MESSAGE))

        # 2-4. Bounded tool loop
        while state.iterations < self.MAX_TOOL_ITERATIONS:
            found = interpret(state.response)
            state.thoughts, state.function_call = found.thoughts, found.function_call
            if state.thoughts:
                logger.debug("Model thoughts: %s", state.thoughts)
            if state.function_call is None:
                break

            call = state.function_call
            state.iterations += 1
            reply = await self._execute(call, state)

            try:
                state.response = await channel.send(
                    FunctionResponseMessage(name=call.name, response=reply)
                )
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("Could not deliver result of '%s': %s", call.name, exc)
                break
        else:
            if interpret(state.response).function_call is not None:
                logger.warning("Reached max tool iterations (%d)", self.MAX_TOOL_ITERATIONS)

        # 5-6. Final answer
        final = extract_final_text(state.response)
        if final:
            return final

        # 7. One explicit request for a summary
        logger.info("No final answer after %d tool calls; asking for a summary", state.iterations)
        retry_answer = extract_final_text(
            await self._send_once(channel, TextMessage(text=self.SUMMARY_REQUEST))
        )
        if retry_answer:
            return retry_answer

        # 8. Render the last tool result ourselves
        if state.last_tool_name is not None:
            logger.info("Formatting result of '%s' directly", state.last_tool_name)
            return format_tool_result(state.last_tool_name, state.last_tool_result)

        # 9.
        return self.APOLOGY

    async def _execute(self, call: FunctionCall, state: AgentStepState) -> dict[str, Any]:
        """Run *call*; tool failures become an ``{"error": ...}`` payload for the model."""
        logger.info("Function call: %s", call.name)
        try:
            result = await self.registry.execute(call.name, call.args)
        except ToolError as exc:
            logger.warning("Tool '%s' failed: %s", call.name, exc)
            return {"error": str(exc)}
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected failure in tool '%s'", call.name)
            return {"error": f"Tool '{call.name}' failed: {exc}"}

        # An empty result leaves nothing for the fallback formatter to show
        if result is not None:
            state.last_tool_name, state.last_tool_result = call.name, result
        return {"result": result}

    async def _send_once(
        self, channel: ModelChannel, message: ChannelMessage
    ) -> Optional[ModelResponse]:
        try:
            return await channel.send(message)
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Send failed: %s", exc)
            return None


# ---------------------------------------------------------------------------
# Module-level entry point
# ---------------------------------------------------------------------------
_default_agent: Optional[Agent] = None


def get_agent() -> Agent:
    """Return the process-wide agent, building the registry on first use."""
    global _default_agent  # pylint: disable=global-statement
    if _default_agent is None:
        from quest.config import settings  # pylint: disable=import-outside-toplevel

        _default_agent = Agent.from_settings(settings)
    return _default_agent


async def generate_response(
    history: Optional[Sequence[Union[ConversationTurn, Mapping[str, Any]]]],
    user_message: MessageLike,
    session: SessionLike = None,
    *,
    agent_factory: Callable[[], Agent] = get_agent,
) -> str:
    """Answer *user_message* with the default agent; never raises."""
    from quest.config import settings  # pylint: disable=import-outside-toplevel

    try:
        agent = agent_factory()
    except Exception:  # pylint: disable=broad-except
        logger.exception("Could not build the agent")
        return Agent.APOLOGY
    return await agent.generate_response(
        history, user_message, session, timeout=settings.RESPONSE_TIMEOUT
    )
