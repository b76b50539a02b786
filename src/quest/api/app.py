"""
Core API backend for Quest.

This module exposes the agent over HTTP for frontends.  Conversation history is owned by the
caller and sent with every request.  It exposes the following endpoints:
- **GET /health**  - liveness probe for health checks.
- **POST /agent**  - answer one message: {"message": "...", "history": [...], "session": {...}}
- **POST /title**  - short title for a conversation: {"message": "...", "reply": "..."}
"""

import logging
from typing import (
    Callable,
)

from fastapi import (
    Depends,
    FastAPI,
)

from quest.agent.agent_loop import (
    Agent,
    get_agent,
)
from quest.agent.titles import generate_conversation_title
from quest.api.models import (
    MessageRequest,
    MessageResponse,
    TitleRequest,
    TitleResponse,
)
from quest.common import (
    AnsiColors,
    colored_print,
)
from quest.config import settings

logger = logging.getLogger(__name__)

app = FastAPI(title="Quest API", version="0.1.0", description="Quest tool-calling agent API")


def agent_dependency() -> Agent:
    """Resolve the process-wide agent; overridden in tests."""
    return get_agent()


def channel_factory_dependency() -> Callable:
    """Channel factory used for title generation; overridden in tests."""
    return agent_dependency().channel_factory


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health", summary="Health check")
async def health() -> dict[str, str]:
    """Return a simple liveness payload."""
    return {"status": "ok"}


@app.post("/agent", response_model=MessageResponse, summary="Answer a message")
async def agent_endpoint(
    req: MessageRequest, agent: Agent = Depends(agent_dependency)
) -> MessageResponse:
    """Run the agent loop for one user message."""
    logger.debug("Agent request with %d history turns", len(req.history))
    reply = await agent.generate_response(
        req.history,
        {"content": req.message},
        req.session,
        timeout=settings.RESPONSE_TIMEOUT,
    )
    return MessageResponse(reply=reply)


@app.post("/title", response_model=TitleResponse, summary="Generate a conversation title")
async def title_endpoint(
    req: TitleRequest, channel_factory: Callable = Depends(channel_factory_dependency)
) -> TitleResponse:
    """Summarise the first exchange of a conversation as a short title."""
    title = await generate_conversation_title(req.message, req.reply, channel_factory)
    return TitleResponse(title=title)


@app.get("/", summary="API root")
async def root() -> dict[str, str]:
    """Return a simple welcome message."""
    return {"message": "Welcome to the Quest API! Use /docs for API documentation."}


# ---------------------------------------------------------------------------
# Public helper to launch the API (imported by main.py)
# ---------------------------------------------------------------------------
def run_api(
    host: str = "0.0.0.0", port: int = 8000, reload: bool = False, log_level: str | None = None
) -> None:
    """Start a uvicorn server hosting *app*.

    Parameters
    ----------
    host, port:
        Bind address for the HTTP server.
    reload:
        If *True*, enable auto-reload (useful in development).
    log_level:
        Logging level to use (default from settings if not provided).
    """

    # Lazy import - keeps uvicorn an optional dependency at pkg-import time
    import uvicorn  # pylint: disable=import-outside-toplevel

    if log_level is None:  # Use the default from settings if not provided
        log_level = settings.LOG_LEVEL

    logger.info(
        "Starting Quest API at %s:%d (reload=%s, log_level=%s)", host, port, reload, log_level
    )

    colored_print(f"🔮 Quest API is running at http://localhost:{port}.", AnsiColors.GREEN)
    colored_print(f"Visit http://localhost:{port}/docs for API documentation.", AnsiColors.BLUE)
    uvicorn.run(
        "quest.api.app:app",
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


# ---------------------------------------------------------------------------
# `python -m quest.api.app` helper
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    run_api(reload=True)
