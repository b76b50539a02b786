"""
Tool registry for Quest.

This module provides the registry that maps a tool name to its parameter schema and executor, and
the single ``execute`` entry point the agent loop uses to run a tool on the model's behalf.

Executors are coroutine functions taking one ``dict`` of arguments and returning a JSON-serializable
value.  They are registered once at startup, either directly:

    registry.register("echo", "Echo the text back", {...}, echo_executor)

or with the decorator form:

    @registry.tool("echo", "Echo the text back", parameters={...})
    async def echo(args):
        return args["text"]

Once :meth:`ToolRegistry.freeze` has been called, the registry is shared read-only between all
conversations.
"""

import logging
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

logger = logging.getLogger(__name__)

Executor = Callable[[Dict[str, Any]], Awaitable[Any]]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------
class ToolError(RuntimeError):
    """Raised when a requested tool cannot run or fails."""


class UnknownToolError(ToolError):
    """Raised when the model asks for a tool that is not registered."""

    def __init__(self, name: str):
        super().__init__(f"Tool '{name}' is not registered.")
        self.name = name


class MissingParameterError(ToolError):
    """Raised before invocation when a required argument is absent."""

    def __init__(self, tool: str, field: str):
        super().__init__(f"Missing required parameter: {field}")
        self.tool = tool
        self.field = field


class ToolExecutionError(ToolError):
    """Raised when the executor itself raised."""


# ---------------------------------------------------------------------------
# Definitions
# ---------------------------------------------------------------------------
class ToolDefinition(BaseModel):
    """
    A registered tool.

    ``parameters`` is a JSON-schema object; the order of its ``required`` list is the order in
    which required arguments are checked.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )
    executor: Executor

    @property
    def required(self) -> List[str]:
        """Required argument names in declaration order."""
        return list(self.parameters.get("required", []))

    def declaration(self) -> Dict[str, Any]:
        """Return the function declaration a model channel advertises for this tool."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


# ---------------------------------------------------------------------------
# Schema helpers for the adapters
# ---------------------------------------------------------------------------
def prop(type_: str, description: str = "", **extra: Any) -> Dict[str, Any]:
    """A single JSON-schema property."""
    out: Dict[str, Any] = {"type": type_}
    if description:
        out["description"] = description
    out.update(extra)
    return out


def object_schema(properties: Mapping[str, Any], required: List[str] | None = None) -> Dict[str, Any]:
    """A JSON-schema object with an ordered ``required`` list."""
    return {"type": "object", "properties": dict(properties), "required": list(required or [])}


class ToolRegistry:
    """Name -> :class:`ToolDefinition` mapping with a uniform ``execute`` entry point."""

    def __init__(self) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        self._frozen = False

    def register(
        self,
        name: str,
        description: str,
        parameters: Mapping[str, Any] | None,
        executor: Executor,
    ) -> ToolDefinition:
        """
        Register *executor* under *name*.

        Raises
        ------
        ValueError
            If a tool with the same name is already registered.
        RuntimeError
            If the registry has been frozen.
        """
        if self._frozen:
            raise RuntimeError(f"Cannot register '{name}': the tool registry is frozen.")
        if name in self._tools:
            raise ValueError(f"Tool '{name}' is already registered.")

        schema = dict(parameters or {})
        schema.setdefault("type", "object")
        schema.setdefault("properties", {})
        schema.setdefault("required", [])

        definition = ToolDefinition(
            name=name, description=description, parameters=schema, executor=executor
        )
        self._tools[name] = definition
        logger.debug("Registering tool '%s'", name)
        return definition

    def tool(
        self, name: str, description: str = "", parameters: Mapping[str, Any] | None = None
    ) -> Callable[[Executor], Executor]:
        """Decorator form of :meth:`register`."""

        def wrapper(fn: Executor) -> Executor:
            self.register(name, description or (fn.__doc__ or "").strip(), parameters, fn)
            return fn

        return wrapper

    def freeze(self) -> "ToolRegistry":
        """Disallow further registration; returns *self* for chaining."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, name: str) -> ToolDefinition | None:
        """Return the definition registered as *name*, or ``None``."""
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def declarations(self) -> List[Dict[str, Any]]:
        """Function declarations for every registered tool, in registration order."""
        return [tool.declaration() for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    async def execute(self, name: str, args: Dict[str, Any] | None = None) -> Any:
        """
        Look up *name* and invoke its executor with *args*.

        Parameters
        ----------
        name:
            The registered tool name.
        args:
            Arguments passed verbatim to the executor.  If *None*, an empty dict is assumed.

        Returns
        -------
        Any
            Whatever the executor returns.

        Raises
        ------
        UnknownToolError
            If the tool is not registered.
        MissingParameterError
            If a required argument is absent; the executor is not called.
        ToolExecutionError
            If the executor raises.
        """
        if args is None:
            args = {}

        definition = self.resolve(name)
        if definition is None:
            raise UnknownToolError(name)

        # Stop at the first missing field, in declaration order
        for field in definition.required:
            if args.get(field) is None:
                raise MissingParameterError(name, field)

        try:
            logger.debug("Executing tool '%s' with args=%s", name, args)
            return await definition.executor(args)
        except ToolError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error in tool '%s'", name)
            raise ToolExecutionError(f"Tool '{name}' raised an error: {exc}") from exc


def build_registry(settings: Any = None, client: Any = None) -> ToolRegistry:
    """
    Construct the process-wide registry with every built-in tool adapter.

    Parameters
    ----------
    settings:
        Application settings; defaults to :data:`quest.config.settings`.
    client:
        The :class:`~quest.tools.http_client.McpClient` shared by all adapters.  A new one is
        built from *settings* if not given.
    """
    # pylint: disable=import-outside-toplevel
    from quest.tools.datastore import register_datastore_tools
    from quest.tools.http_client import McpClient
    from quest.tools.search import register_search_tools
    from quest.tools.workspace import register_workspace_tools

    if settings is None:
        from quest.config import settings as default_settings

        settings = default_settings

    if client is None:
        client = McpClient(api_key=settings.MCP_API_KEY, timeout=settings.TOOL_TIMEOUT)

    registry = ToolRegistry()
    register_search_tools(registry, client, settings.SEARCH_SERVER_URL)
    register_workspace_tools(registry, client, settings.WORKSPACE_SERVER_URL)
    register_datastore_tools(registry, client, settings.DATASTORE_SERVER_URL)
    logger.info("Registered %d tools", len(registry))
    return registry.freeze()
