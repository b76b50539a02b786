"""Web search and content-extraction tools served by the search server."""

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


def register_search_tools(registry: ToolRegistry, client: McpClient, base_url: str) -> None:
    """Register ``googleSearch`` and friends against *base_url*."""
    base_url = base_url.rstrip("/")

    @registry.tool(
        "googleSearch",
        "Use this tool to search Google and return relevant results from the web",
        parameters=object_schema(
            {
                "query": prop("string", "Search query"),
                "num": prop("number", "Results to return (1-10)"),
                "page": prop("number", "Page number (1-based)"),
                "site": prop("string", "Limit to a website"),
                "language": prop("string", "ISO 639-1 code"),
                "dateRestrict": prop("string", "e.g., 'm6' = last 6 months"),
                "exactTerms": prop("string", "Exact phrase"),
                "resultType": prop("string", "news | images"),
            },
            required=["query"],
        ),
    )
    async def google_search(args: Dict[str, Any]) -> Any:
        return await client.post(f"{base_url}/search", args)

    @registry.tool(
        "googleImageSearch",
        "Use this tool to search for images using Google's image search capabilities",
        parameters=object_schema(
            {
                "query": prop("string", "Search query for images"),
                "num": prop("number", "Number of images to return (1-10)"),
                "page": prop("number", "Page number (1-based)"),
                "imageSize": prop("string", "Filter by image size (e.g., 'large', 'medium', 'icon')"),
                "imageType": prop("string", "Filter by image type (e.g., 'face', 'photo', 'clipart')"),
                "imageColor": prop("string", "Filter by predominant color (e.g., 'red', 'blue')"),
                "safe": prop("string", "Safe search setting ('active' or 'off')"),
            },
            required=["query"],
        ),
    )
    async def google_image_search(args: Dict[str, Any]) -> Any:
        return await client.post(f"{base_url}/image-search", args)

    @registry.tool(
        "extractWebpageContent",
        "Use this tool to extract and analyze content from a webpage, converting it to readable text",
        parameters=object_schema(
            {
                "url": prop("string", "Webpage URL"),
                "format": prop("string", "markdown | html | text (default markdown)"),
            },
            required=["url"],
        ),
    )
    async def extract_webpage_content(args: Dict[str, Any]) -> Any:
        body = {"url": args["url"], "format": args.get("format") or "markdown"}
        return await client.post(f"{base_url}/extract-content", body)

    @registry.tool(
        "extractMultipleWebpages",
        "Use this tool to extract and analyze content from multiple webpages in a single request",
        parameters=object_schema(
            {
                "urls": prop("array", "Array of URLs (max 5)", items={"type": "string"}),
                "format": prop("string", "markdown | html | text (default markdown)"),
            },
            required=["urls"],
        ),
    )
    async def extract_multiple_webpages(args: Dict[str, Any]) -> Any:
        urls = args["urls"]
        if not isinstance(urls, list) or not urls:
            raise ToolExecutionError("urls must be a non-empty array")
        body = {"urls": urls, "format": args.get("format") or "markdown"}
        return await client.post(f"{base_url}/extract-multiple", body)
