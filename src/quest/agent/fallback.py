"""Deterministic rendering of a raw tool result when the model gives no usable answer."""

import json
import logging
from typing import (
    Any,
    Callable,
    Dict,
)

logger = logging.getLogger(__name__)

FORMAT_ERROR = (
    "I found some information related to your query, but couldn't format it properly. "
    "Please try asking in a different way."
)


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


def _dump(value: Any, indent: int | None = None) -> str:
    return json.dumps(value, indent=indent, ensure_ascii=False, default=str)


def _search(result: Any) -> str | None:
    items = result.get("results") if isinstance(result, dict) else None
    if not items:
        return None
    lines = ["Here's what I found:\n"]
    for i, item in enumerate(items[:3], start=1):
        lines.append(f"{i}. {item.get('title', 'Untitled')}")
        if item.get("snippet"):
            lines.append(f"   {item['snippet']}")
        if item.get("link"):
            lines.append(f"   {item['link']}")
    return "\n".join(lines)


def _image_search(result: Any) -> str | None:
    items = result.get("images") if isinstance(result, dict) else None
    if not items:
        return None
    lines = ["Here are some images I found:\n"]
    for i, item in enumerate(items[:3], start=1):
        image = item.get("image") or {}
        url = item.get("link") or image.get("url") or item.get("url", "")
        lines.append(f"{i}. {item.get('title', 'Image')}: {url}")
    return "\n".join(lines)


def _webpage(result: Any) -> str | None:
    content = result.get("content") if isinstance(result, dict) else None
    if not content:
        return None
    return f"Here's the information I extracted:\n\n{_truncate(content, 500)}"


def _multiple_webpages(result: Any) -> str | None:
    contents = result.get("contents") if isinstance(result, dict) else None
    if not isinstance(contents, list) or not contents:
        return None
    out = "Here's the information I extracted from multiple sources:\n\n"
    for i, page in enumerate(contents, start=1):
        out += f"Source {i}: {page.get('url') or 'Unknown source'}\n"
        out += f"{_truncate(page.get('content') or '', 300)}\n\n"
    return out.rstrip() + "\n"


def _aggregate(result: Any) -> str | None:
    if not isinstance(result, list) or not result:
        return None
    more = "\n\n...and more results." if len(result) > 3 else ""
    return (
        f"I found {len(result)} results in the database. Here's a summary:\n\n"
        f"{_dump(result[:3], indent=2)}{more}"
    )


def _list_models(result: Any) -> str | None:
    models = result.get("models") if isinstance(result, dict) else result
    if not isinstance(models, list):
        return None
    return "Available models in the database: " + ", ".join(str(m) for m in models)


def _schema(result: Any) -> str | None:
    if not result:
        return None
    return f"Here's the schema information:\n\n{_dump(result, indent=2)}"


FORMATTERS: Dict[str, Callable[[Any], str | None]] = {
    "googleSearch": _search,
    "googleImageSearch": _image_search,
    "extractWebpageContent": _webpage,
    "extractMultipleWebpages": _multiple_webpages,
    "aggregate": _aggregate,
    "listModels": _list_models,
    "getModelSchema": _schema,
}


def format_tool_result(tool_name: str | None, result: Any) -> str:
    """
    Render *result* of *tool_name* as readable text.

    Known tools get a shaped digest; anything else (or a known tool whose result does not have the
    expected shape) is dumped as JSON and cut at 500 characters.  Never raises.
    """
    try:
        formatter = FORMATTERS.get(tool_name or "")
        if formatter is not None:
            text = formatter(result)
            if text:
                return text
        raw = result if isinstance(result, str) else _dump(result)
        return f"I found information related to your query: {_truncate(raw, 500)}"
    except Exception:  # pylint: disable=broad-except
        logger.exception("Could not format result of '%s'", tool_name)
        return FORMAT_ERROR
