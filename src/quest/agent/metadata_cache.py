"""
Process-wide cache of data-store metadata.

The resource names and their schemas are fetched once through the introspection tools and reused
for the lifetime of the process, so the model knows which collections exist before it plans its
first query.
"""

import asyncio
import json
import logging
from typing import (
    Any,
    Dict,
    List,
    Optional,
)

from quest.tools import ToolRegistry
from quest.tools.datastore import (
    GET_MODEL_SCHEMA,
    LIST_MODELS,
)

logger = logging.getLogger(__name__)


def _names_from(result: Any) -> List[str]:
    """Accept either a bare list or a ``{"models": [...]}`` object."""
    if isinstance(result, dict):
        result = result.get("models")
    if not isinstance(result, list):
        raise ValueError(f"Unexpected resource listing: {result!r}")
    return [str(name) for name in result]


class MetadataCache:
    """
    Resource names and per-resource schemas, populated by a single-flight prefetch.

    N concurrent callers of :meth:`ensure_prefetched` share one in-flight prefetch.  If listing
    resources fails the cache stays empty and uninitialised and the next call tries again; once
    initialised it is never refreshed.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        list_tool: str = LIST_MODELS,
        schema_tool: str = GET_MODEL_SCHEMA,
    ):
        self._registry = registry
        self._list_tool = list_tool
        self._schema_tool = schema_tool
        self._names: List[str] = []
        self._schemas: Dict[str, Any] = {}
        self._initialized = False
        self._inflight: Optional["asyncio.Future[None]"] = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def resource_names(self) -> List[str]:
        return list(self._names)

    @property
    def schemas(self) -> Dict[str, Any]:
        return dict(self._schemas)

    async def ensure_prefetched(self) -> None:
        """Populate the cache unless it already is; never raises on fetch failure."""
        if self._initialized:
            return
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._run_prefetch())
        # Shield so one caller's cancellation does not abort the shared prefetch
        await asyncio.shield(self._inflight)

    async def prefetch(self) -> None:
        """List resources, then fetch every schema, skipping individual failures."""
        try:
            names = _names_from(await self._registry.execute(self._list_tool, {}))
        except Exception as exc:  # pylint: disable=broad-except
            logger.warning("Metadata prefetch failed; continuing without it: %s", exc)
            self._names, self._schemas = [], {}
            return

        schemas: Dict[str, Any] = {}
        for name in names:
            try:
                schemas[name] = await self._registry.execute(self._schema_tool, {"modelName": name})
            except Exception as exc:  # pylint: disable=broad-except
                logger.info("Skipping schema for '%s': %s", name, exc)

        self._names, self._schemas = names, schemas
        self._initialized = True
        logger.info("Metadata cache initialised with %d resources", len(names))

    def describe(self) -> str:
        """Render the cached metadata for the system instruction; empty if uninitialised."""
        if not self._initialized or not self._names:
            return ""
        lines = ["Available database models: " + ", ".join(self._names)]
        for name, schema in self._schemas.items():
            lines.append(f"Schema for {name}: {json.dumps(schema, default=str)}")
        return "\n".join(lines)

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #
    async def _run_prefetch(self) -> None:
        try:
            await self.prefetch()
        finally:
            self._inflight = None
