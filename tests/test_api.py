"""HTTP surface of the API with the agent replaced by a stub."""

from typing import (
    Any,
    Dict,
    Iterator,
    List,
)

import pytest
from fastapi.testclient import TestClient

from conftest import (
    ChannelRecorder,
    FakeChannel,
    text,
)
from quest.api.app import (
    agent_dependency,
    app,
    channel_factory_dependency,
)


class StubAgent:
    def __init__(self) -> None:
        self.calls: List[Dict[str, Any]] = []

    async def generate_response(self, history: Any, user_message: Any, session: Any = None, **kwargs: Any) -> str:
        self.calls.append({"history": history, "message": user_message, "session": session})
        return f"echo: {user_message['content']}"


@pytest.fixture
def agent() -> Iterator[StubAgent]:
    stub = StubAgent()
    app.dependency_overrides[agent_dependency] = lambda: stub
    yield stub
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_agent_endpoint(client: TestClient, agent: StubAgent) -> None:
    resp = client.post(
        "/agent",
        json={
            "message": "What's the weather in Lusaka?",
            "history": [{"role": "user", "content": "hi"}, {"role": "model", "content": "hello"}],
            "session": {"user_id": "u-1", "email": "m@example.com"},
        },
    )

    assert resp.status_code == 200
    assert resp.json() == {"reply": "echo: What's the weather in Lusaka?"}
    (call,) = agent.calls
    assert [turn.role for turn in call["history"]] == ["user", "model"]
    assert call["session"].user_id == "u-1"


def test_agent_endpoint_rejects_unknown_role(client: TestClient, agent: StubAgent) -> None:
    resp = client.post(
        "/agent", json={"message": "x", "history": [{"role": "assistant", "content": "y"}]}
    )
    assert resp.status_code == 422
    assert agent.calls == []


def test_title_endpoint(client: TestClient) -> None:
    recorder = ChannelRecorder(FakeChannel([text("Lusaka Weather Check")]))
    app.dependency_overrides[channel_factory_dependency] = lambda: recorder
    try:
        resp = client.post("/title", json={"message": "Weather in Lusaka?", "reply": "Sunny"})
    finally:
        app.dependency_overrides.clear()

    assert resp.json() == {"title": "Lusaka Weather Check"}
