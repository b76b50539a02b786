"""CLI client for the Quest API."""

from __future__ import annotations

import logging
import time
from typing import (
    Any,
    Dict,
    List,
    Tuple,
    cast,
)

import httpx

from quest.common import (
    AnsiColors,
    colored_print,
)
from quest.config import settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# CLI Client
# ---------------------------------------------------------------------------
def get_user_message() -> Tuple[str, bool]:
    """
    Get a message from the user via standard input.

    Returns:
        Tuple of (user_input, success_flag)
        The success_flag is False if input couldn't be read (e.g., Ctrl+C)
    """
    try:
        user_input = input().strip()
        return user_input, True
    except (EOFError, KeyboardInterrupt):
        return "", False


def call_api(
    endpoint: str,
    data: Dict[str, Any],
    max_retries: int = 5,
    client: httpx.Client | None = None,
) -> Dict[str, Any]:
    """POST *data* to the API, backing off while the server is still starting."""
    api_url = f"http://localhost:{settings.API_PORT}{endpoint}"
    http = client or httpx.Client(timeout=120.0)

    try:
        for attempt in range(max_retries):
            try:
                response = http.post(api_url, json=data)
                response.raise_for_status()
                return cast(Dict[str, Any], response.json())
            except httpx.ConnectError:
                if attempt == max_retries - 1:
                    break
                retry_delay = 0.5 * (2**attempt)  # 0.5s, 1s, 2s, 4s...
                logger.info(
                    "API not ready yet, retrying in %.1f seconds (attempt %d/%d)...",
                    retry_delay,
                    attempt + 1,
                    max_retries,
                )
                time.sleep(retry_delay)
            except httpx.HTTPError as e:
                logger.error("API request error: %s", str(e))
                return {"reply": f"Error talking to API: {e}"}
    finally:
        if client is None:
            http.close()

    error_msg = f"Failed to connect to API after {max_retries} attempts"
    colored_print(error_msg, AnsiColors.ERROR)
    return {"reply": error_msg}


def run_cli() -> None:
    """Run the CLI client; the conversation history lives only for this shell."""
    history: List[Dict[str, str]] = []

    colored_print("\n🔮 Quest shell - type 'exit' or 'quit' (or Ctrl+C) to exit", AnsiColors.TOOL)
    while True:
        colored_print("\n🧑 You: ", AnsiColors.PROMPT, end="")
        user_msg, ok = get_user_message()
        if not ok:
            break  # Exit if user input couldn't be retrieved (e.g., Ctrl+C)
        if not user_msg:
            continue
        if user_msg.lower() in {"exit", "quit"}:
            break

        response = call_api("/agent", {"message": user_msg, "history": history})
        reply = response.get("reply", "No response from API")
        colored_print(reply, AnsiColors.REPLY)

        history.append({"role": "user", "content": user_msg})
        history.append({"role": "model", "content": reply})


if __name__ == "__main__":
    run_cli()
