"""
Data-store tools.

``listModels`` and ``getModelSchema`` double as the introspection pair the metadata cache
prefetches at startup; ``aggregate`` runs a pipeline against one model.
"""

from typing import (
    Any,
    Dict,
)

from quest.tools import (
    ToolExecutionError,
    ToolRegistry,
    object_schema,
    prop,
)
from quest.tools.http_client import McpClient

LIST_MODELS = "listModels"
GET_MODEL_SCHEMA = "getModelSchema"
AGGREGATE = "aggregate"


def register_datastore_tools(registry: ToolRegistry, client: McpClient, base_url: str) -> None:
    """Register the data-store tools against *base_url*."""
    base_url = base_url.rstrip("/")

    @registry.tool(
        LIST_MODELS,
        "List the names of every model (collection) available in the database",
        parameters=object_schema({}),
    )
    async def list_models(args: Dict[str, Any]) -> Any:  # pylint: disable=unused-argument
        return await client.get(f"{base_url}/models")

    @registry.tool(
        GET_MODEL_SCHEMA,
        "Get the field schema of one database model",
        parameters=object_schema(
            {"modelName": prop("string", "Model name as returned by listModels")},
            required=["modelName"],
        ),
    )
    async def get_model_schema(args: Dict[str, Any]) -> Any:
        return await client.get(f"{base_url}/models/{args['modelName']}/schema")

    @registry.tool(
        AGGREGATE,
        "Run an aggregation pipeline against a database model and return the matching documents",
        parameters=object_schema(
            {
                "modelName": prop("string", "Model name as returned by listModels"),
                "pipeline": prop("array", "Aggregation pipeline stages", items={"type": "object"}),
            },
            required=["modelName", "pipeline"],
        ),
    )
    async def aggregate(args: Dict[str, Any]) -> Any:
        if not isinstance(args["pipeline"], list):
            raise ToolExecutionError("Pipeline must be an array")
        return await client.post(
            f"{base_url}/models/{args['modelName']}/aggregate", {"pipeline": args["pipeline"]}
        )
