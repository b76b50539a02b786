"""
Pydantic models for Quest API requests and responses.
This module defines the request and response schemas used by the Quest API.
"""

from typing import (
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from quest.core.schema import (
    ConversationTurn,
    SessionInfo,
)


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class MessageRequest(BaseModel):
    """Incoming user message with the conversation so far."""

    message: str = Field(..., description="User message for Quest")
    history: List[ConversationTurn] = Field(
        default_factory=list, description="Prior turns, oldest first"
    )
    session: Optional[SessionInfo] = Field(None, description="Signed-in user details")


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str


class TitleRequest(BaseModel):
    """First exchange of a conversation, to be summarised as a title."""

    message: str
    reply: str = ""


class TitleResponse(BaseModel):
    title: str
