"""
Model channel interface for Quest.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
metadata cache) stays model-agnostic and only ever sees :class:`~quest.core.schema.ModelResponse`.

A channel is one chat session: it is created with a system instruction, the caller's prior
conversation and the tool declarations, and then keeps its own history as messages are sent.

We support three back-ends out of the box:

1. **Gemini** via the ``google-genai`` SDK (default).
2. **OpenAI** chat completions with function tools.
3. **Anthropic** messages with ``tool_use`` blocks.

Additional providers can be added by subclassing :class:`ModelChannel` and registering via
:func:`register_channel`.
"""

import json
import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Sequence,
    Type,
)

from quest.config import settings
from quest.core.schema import (
    ChannelMessage,
    ConversationTurn,
    FunctionCall,
    FunctionResponseMessage,
    ModelResponse,
)

logger = logging.getLogger(__name__)

ChannelFactory = Callable[..., "ModelChannel"]


class ChannelError(RuntimeError):
    """Raised when a channel cannot be created (unknown name, missing key)."""


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_CHANNEL_REGISTRY: dict[str, Type["ModelChannel"]] = {}


def register_channel(name: str) -> Callable:
    """Decorator to register a channel class under *name*."""

    def wrapper(cls: Type["ModelChannel"]) -> Type["ModelChannel"]:
        _CHANNEL_REGISTRY[name] = cls
        return cls

    return wrapper


def load_channel(
    name: str | None = None,
    *,
    system_prompt: str = "",
    history: Sequence[ConversationTurn] = (),
    tools: Sequence[Mapping[str, Any]] = (),
) -> "ModelChannel":
    """
    Factory that returns an open channel.

    Fallback order:
    1. *name* arg
    2. ``settings.CHANNEL`` env option
    3. default: ``"gemini"``
    """

    target = name or getattr(settings, "CHANNEL", "gemini")
    cls = _CHANNEL_REGISTRY.get(target.lower())
    if cls is None:
        raise ChannelError(f"Channel '{target}' is not registered.")
    return cls(system_prompt=system_prompt, history=history, tools=tools)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class ModelChannel(ABC):
    """Abstract chat session with a language model."""

    def __init__(
        self,
        system_prompt: str = "",
        history: Sequence[ConversationTurn] = (),
        tools: Sequence[Mapping[str, Any]] = (),
    ):
        self.system_prompt = system_prompt
        self.history = list(history)
        self.tools = [dict(t) for t in tools]

    @abstractmethod
    async def send(self, message: ChannelMessage) -> ModelResponse:
        """Send *message* and return the model's reply."""


class _PendingCalls:
    """Tool-call ids the provider is waiting on, keyed by tool name."""

    def __init__(self) -> None:
        self._ids: Dict[str, List[str]] = {}

    def add(self, name: str, call_id: str) -> None:
        self._ids.setdefault(name, []).append(call_id)

    def take(self, name: str) -> str | None:
        ids = self._ids.get(name)
        if not ids:
            return None
        call_id = ids.pop(0)
        if not ids:
            del self._ids[name]
        return call_id

    def drain(self) -> List[str]:
        out = [call_id for ids in self._ids.values() for call_id in ids]
        self._ids.clear()
        return out


_NOT_EXECUTED = json.dumps({"error": "Not executed; only one tool runs per step."})


def _parse_arguments(raw: Any) -> Dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        logger.warning("Discarding unparsable tool arguments: %r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


# ---------------------------------------------------------------------------
# Concrete channels
# ---------------------------------------------------------------------------
@register_channel("gemini")
class GeminiChannel(ModelChannel):
    """Gemini chat via ``google-genai`` with native function calling."""

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        from google import genai  # pylint: disable=import-outside-toplevel
        from google.genai import types  # pylint: disable=import-outside-toplevel

        if not settings.GEMINI_API_KEY:
            raise ChannelError("GEMINI_API_KEY is required for the gemini channel")

        self._types = types
        client = genai.Client(api_key=settings.GEMINI_API_KEY)

        tools = None
        if self.tools:
            tools = [
                types.Tool(
                    function_declarations=[
                        types.FunctionDeclaration(
                            name=t["name"],
                            description=t.get("description", ""),
                            parameters_json_schema=t.get("parameters"),
                        )
                        for t in self.tools
                    ]
                )
            ]

        config = types.GenerateContentConfig(
            system_instruction=self.system_prompt or None,
            tools=tools,
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )
        history = [
            types.Content(role=turn.role, parts=[types.Part(text=turn.content)])
            for turn in self.history
        ]
        self._chat = client.aio.chats.create(
            model=settings.GEMINI_MODEL, config=config, history=history
        )

    async def send(self, message: ChannelMessage) -> ModelResponse:
        types = self._types
        if isinstance(message, FunctionResponseMessage):
            payload: Any = types.Part.from_function_response(
                name=message.name, response=message.response
            )
        else:
            payload = message.text

        resp = await self._chat.send_message(payload)

        texts: List[str] = []
        candidates = resp.candidates or []
        if candidates and candidates[0].content and candidates[0].content.parts:
            texts = [p.text for p in candidates[0].content.parts if p.text and not p.thought]

        calls = [
            FunctionCall(name=fc.name, args=dict(fc.args or {}))
            for fc in (resp.function_calls or [])
            if fc.name
        ]
        logger.debug("Gemini response: text=%r calls=%s", texts, [c.name for c in calls])
        return ModelResponse(text="".join(texts) or None, function_calls=calls)


@register_channel("openai")
class OpenAIChannel(ModelChannel):
    """OpenAI chat completions with function tools."""

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        import openai  # pylint: disable=import-outside-toplevel

        if not settings.OPENAI_API_KEY:
            raise ChannelError("OPENAI_API_KEY is required for the openai channel")

        self._client = openai.AsyncOpenAI(api_key=settings.OPENAI_API_KEY)
        self._pending = _PendingCalls()
        self._messages: List[Dict[str, Any]] = []
        if self.system_prompt:
            self._messages.append({"role": "system", "content": self.system_prompt})
        for turn in self.history:
            role = "assistant" if turn.role == "model" else "user"
            self._messages.append({"role": role, "content": turn.content})

    def _answer_pending(self) -> None:
        for call_id in self._pending.drain():
            self._messages.append({"role": "tool", "tool_call_id": call_id, "content": _NOT_EXECUTED})

    async def send(self, message: ChannelMessage) -> ModelResponse:
        if isinstance(message, FunctionResponseMessage):
            call_id = self._pending.take(message.name)
            if call_id is not None:
                self._messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call_id,
                        "content": json.dumps(message.response, default=str),
                    }
                )
            self._answer_pending()
            if call_id is None:
                # No matching call on record; hand the result over as plain text
                self._messages.append(
                    {
                        "role": "user",
                        "content": f"Result of {message.name}: "
                        + json.dumps(message.response, default=str),
                    }
                )
        else:
            self._answer_pending()
            self._messages.append({"role": "user", "content": message.text})

        kwargs: Dict[str, Any] = {}
        if self.tools:
            kwargs["tools"] = [{"type": "function", "function": t} for t in self.tools]

        resp = await self._client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=self._messages,
            temperature=0.2,
            **kwargs,
        )
        choice = resp.choices[0].message
        self._messages.append(choice.model_dump(exclude_none=True))

        calls: List[FunctionCall] = []
        for tool_call in choice.tool_calls or []:
            self._pending.add(tool_call.function.name, tool_call.id)
            calls.append(
                FunctionCall(
                    name=tool_call.function.name,
                    args=_parse_arguments(tool_call.function.arguments),
                )
            )
        logger.debug("OpenAI response: %s", choice.content)
        return ModelResponse(text=choice.content, function_calls=calls)


@register_channel("anthropic")
class AnthropicChannel(ModelChannel):
    """Anthropic Claude messages with ``tool_use`` blocks."""

    MAX_TOKENS = 8192

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        import anthropic  # pylint: disable=import-outside-toplevel

        if not settings.ANTHROPIC_API_KEY:
            raise ChannelError("ANTHROPIC_API_KEY is required for the anthropic channel")

        self._client = anthropic.AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
        self._pending = _PendingCalls()
        self._messages: List[Dict[str, Any]] = [
            {"role": "assistant" if turn.role == "model" else "user", "content": turn.content}
            for turn in self.history
        ]

    def _pending_results(self) -> List[Dict[str, Any]]:
        return [
            {"type": "tool_result", "tool_use_id": call_id, "content": _NOT_EXECUTED}
            for call_id in self._pending.drain()
        ]

    async def send(self, message: ChannelMessage) -> ModelResponse:
        content: List[Dict[str, Any]] = []
        if isinstance(message, FunctionResponseMessage):
            body = json.dumps(message.response, default=str)
            call_id = self._pending.take(message.name)
            if call_id is not None:
                content.append({"type": "tool_result", "tool_use_id": call_id, "content": body})
            content.extend(self._pending_results())
            if call_id is None:
                content.append({"type": "text", "text": f"Result of {message.name}: {body}"})
        else:
            content.extend(self._pending_results())
            content.append({"type": "text", "text": message.text})
        self._messages.append({"role": "user", "content": content})

        kwargs: Dict[str, Any] = {}
        if self.system_prompt:
            kwargs["system"] = self.system_prompt
        if self.tools:
            kwargs["tools"] = [
                {
                    "name": t["name"],
                    "description": t.get("description", ""),
                    "input_schema": t.get("parameters") or {"type": "object", "properties": {}},
                }
                for t in self.tools
            ]

        resp = await self._client.messages.create(
            model=settings.ANTHROPIC_MODEL,
            max_tokens=self.MAX_TOKENS,
            messages=self._messages,
            temperature=0.2,
            **kwargs,
        )
        self._messages.append(
            {
                "role": "assistant",
                "content": [block.model_dump(exclude_none=True) for block in resp.content],
            }
        )

        texts: List[str] = []
        calls: List[FunctionCall] = []
        for block in resp.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                self._pending.add(block.name, block.id)
                calls.append(FunctionCall(name=block.name, args=_parse_arguments(block.input)))

        logger.debug("Anthropic response: %s", texts)
        return ModelResponse(text="".join(texts) or None, function_calls=calls)
