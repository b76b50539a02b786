"""Remote tool adapters against a mocked HTTP transport."""

import json
from types import SimpleNamespace
from typing import (
    Any,
    List,
)

import httpx
import pytest

from quest.tools import (
    ToolExecutionError,
    ToolRegistry,
    build_registry,
)
from quest.tools.http_client import McpClient

SETTINGS = SimpleNamespace(
    MCP_API_KEY="secret",
    TOOL_TIMEOUT=5.0,
    SEARCH_SERVER_URL="http://search.test/",
    WORKSPACE_SERVER_URL="http://workspace.test",
    DATASTORE_SERVER_URL="http://data.test",
)


def _registry(requests: List[httpx.Request], status: int = 200, body: Any = None) -> ToolRegistry:
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status, json=body if body is not None else {"ok": True})

    client = McpClient(api_key="secret", transport=httpx.MockTransport(handler))
    return build_registry(SETTINGS, client)


def test_registry_is_complete_and_frozen() -> None:
    registry = _registry([])
    assert registry.frozen
    for name in (
        "googleSearch",
        "extractMultipleWebpages",
        "gmailSendEmail",
        "calendarCreateEvent",
        "unsplashSearchImages",
        "listModels",
        "getModelSchema",
        "aggregate",
    ):
        assert name in registry
    assert len(registry) == 27


async def test_search_posts_with_api_key() -> None:
    requests: List[httpx.Request] = []
    result = await _registry(requests).execute("googleSearch", {"query": "Lusaka weather", "num": 3})

    assert result == {"ok": True}
    (request,) = requests
    assert request.method == "POST"
    assert str(request.url) == "http://search.test/search"
    assert request.headers["x-api-key"] == "secret"
    assert json.loads(request.content) == {"query": "Lusaka weather", "num": 3}


async def test_extract_defaults_to_markdown() -> None:
    requests: List[httpx.Request] = []
    await _registry(requests).execute("extractWebpageContent", {"url": "https://example.com"})
    assert json.loads(requests[0].content) == {"url": "https://example.com", "format": "markdown"}


async def test_workspace_path_params_and_query() -> None:
    requests: List[httpx.Request] = []
    await _registry(requests).execute("driveGetFile", {"userId": "u1", "fileId": "abc"})

    (request,) = requests
    assert request.method == "GET"
    assert request.url.path == "/drive/files/abc"
    assert dict(request.url.params) == {"userId": "u1"}


async def test_workspace_list_defaults() -> None:
    requests: List[httpx.Request] = []
    await _registry(requests).execute("listGmailMessages", {"userId": "u1"})
    assert dict(requests[0].url.params) == {"userId": "u1", "maxResults": "10", "q": ""}


async def test_datastore_routes() -> None:
    requests: List[httpx.Request] = []
    registry = _registry(requests, body=["users"])

    assert await registry.execute("listModels", {}) == ["users"]
    await registry.execute("getModelSchema", {"modelName": "users"})
    await registry.execute("aggregate", {"modelName": "users", "pipeline": [{"$limit": 1}]})

    assert [r.url.path for r in requests] == [
        "/models",
        "/models/users/schema",
        "/models/users/aggregate",
    ]
    assert json.loads(requests[2].content) == {"pipeline": [{"$limit": 1}]}


async def test_invalid_payloads_rejected_before_request() -> None:
    requests: List[httpx.Request] = []
    registry = _registry(requests)

    with pytest.raises(ToolExecutionError):
        await registry.execute("aggregate", {"modelName": "users", "pipeline": "match all"})
    with pytest.raises(ToolExecutionError):
        await registry.execute("extractMultipleWebpages", {"urls": []})
    assert requests == []


async def test_http_errors_become_tool_errors() -> None:
    with pytest.raises(ToolExecutionError, match="googleSearch"):
        await _registry([], status=500).execute("googleSearch", {"query": "x"})
