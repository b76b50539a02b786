"""Shared fakes for the agent tests."""

from typing import (
    Any,
    Callable,
    Dict,
    List,
    Optional,
)

import pytest

from quest.agent.channel import ModelChannel
from quest.core.schema import (
    ChannelMessage,
    FunctionCall,
    ModelResponse,
)


class StatusError(Exception):
    """Stand-in for an SDK error carrying an HTTP status."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class FakeChannel(ModelChannel):
    """
    Scripted channel: each ``send`` pops the next item of *script*.

    Exceptions in the script are raised; once the script runs out *default* is returned.
    """

    def __init__(
        self,
        script: Optional[List[Any]] = None,
        default: Optional[ModelResponse] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.script = list(script or [])
        self.default = default or ModelResponse()
        self.sent: List[ChannelMessage] = []

    async def send(self, message: ChannelMessage) -> ModelResponse:
        self.sent.append(message)
        if not self.script:
            return self.default
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def call(name: str, **args: Any) -> ModelResponse:
    """A response carrying one native function call."""
    return ModelResponse(function_calls=[FunctionCall(name=name, args=args)])


def text(value: str) -> ModelResponse:
    return ModelResponse(text=value)


class ChannelRecorder:
    """Channel factory that hands out one prepared channel and records its kwargs."""

    def __init__(self, channel: ModelChannel):
        self.channel = channel
        self.kwargs: Dict[str, Any] = {}

    def __call__(self, **kwargs: Any) -> ModelChannel:
        self.kwargs = kwargs
        return self.channel


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps: List[float]) -> Callable[[float], Any]:
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep
