"""Async HTTP transport shared by the remote tool adapters."""

import logging
from typing import (
    Any,
    Dict,
    Mapping,
)

import httpx

logger = logging.getLogger(__name__)


def _drop_none(params: Mapping[str, Any] | None) -> Dict[str, Any]:
    return {k: v for k, v in (params or {}).items() if v is not None}


class McpClient:
    """
    Thin wrapper around :class:`httpx.AsyncClient` for the remote tool servers.

    Every request carries the ``x-api-key`` header; non-2xx responses raise
    :class:`httpx.HTTPStatusError` and the decoded JSON body is returned otherwise.
    """

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {"x-api-key": self._api_key} if self._api_key else {}

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        logger.debug("%s %s", method, url)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            resp = await client.request(
                method,
                url,
                params=_drop_none(params),
                json=json,
                headers=self._headers(),
            )
            resp.raise_for_status()
            return resp.json()

    async def get(self, url: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self.request("GET", url, params=params)

    async def post(self, url: str, body: Any = None) -> Any:
        return await self.request("POST", url, json=body)

    async def patch(self, url: str, body: Any = None) -> Any:
        return await self.request("PATCH", url, json=body)
