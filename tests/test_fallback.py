"""Direct rendering of tool results."""

import json

from quest.agent.fallback import (
    FORMAT_ERROR,
    format_tool_result,
)


def test_search_keeps_first_three_in_order() -> None:
    result = {
        "results": [
            {"title": f"Result {i}", "snippet": f"snippet {i}", "link": f"https://e.com/{i}"}
            for i in range(1, 6)
        ]
    }
    out = format_tool_result("googleSearch", result)

    assert out.index("1. Result 1") < out.index("2. Result 2") < out.index("3. Result 3")
    assert "Result 4" not in out and "Result 5" not in out
    assert "https://e.com/2" in out


def test_image_search() -> None:
    out = format_tool_result(
        "googleImageSearch", {"images": [{"title": "Falls", "link": "https://img/1.jpg"}]}
    )
    assert "1. Falls: https://img/1.jpg" in out


def test_webpage_is_truncated() -> None:
    out = format_tool_result("extractWebpageContent", {"content": "x" * 800})
    assert out.endswith("x" * 500 + "...")
    assert "x" * 501 not in out


def test_multiple_webpages() -> None:
    out = format_tool_result(
        "extractMultipleWebpages",
        {"contents": [{"url": "https://a", "content": "alpha"}, {"url": "https://b", "content": "beta"}]},
    )
    assert "Source 1: https://a" in out
    assert "Source 2: https://b" in out


def test_aggregate_lists_three_rows() -> None:
    rows = [{"n": i} for i in range(5)]
    out = format_tool_result("aggregate", rows)
    assert out.startswith("I found 5 results in the database.")
    assert json.dumps(rows[:3], indent=2) in out
    assert out.endswith("...and more results.")


def test_list_models_and_schema() -> None:
    assert format_tool_result("listModels", {"models": ["users", "orders"]}) == (
        "Available models in the database: users, orders"
    )
    assert '"name": "string"' in format_tool_result("getModelSchema", {"name": "string"})


def test_unknown_tool_and_unexpected_shapes() -> None:
    out = format_tool_result("calendarGetEvents", {"events": ["a" * 1000]})
    assert out.startswith("I found information related to your query: ")
    assert out.endswith("...")
    assert len(out) <= len("I found information related to your query: ") + 503

    # Known tool, wrong shape: falls through to the generic dump
    assert format_tool_result("googleSearch", {"error": "quota"}).startswith("I found information")


def test_never_raises() -> None:
    class Unprintable:
        def __str__(self) -> str:
            raise RuntimeError("nope")

    assert format_tool_result("whatever", Unprintable()) == FORMAT_ERROR
