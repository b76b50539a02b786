"""
Schema definitions for caller <-> agent <-> model <-> tool messages.

These data models serve as the contract between the model channel, the orchestration loop, and
individual tools.  We keep them separate from runtime logic so they can be imported anywhere without
side-effects.
"""

from typing import (
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    Field,
)


# ---------------------------------------------------------------------------
# Caller-facing shapes
# ---------------------------------------------------------------------------
class ConversationTurn(BaseModel):
    """One turn of prior conversation, owned and persisted by the caller."""

    role: Literal["user", "model"]
    content: str


class UserMessage(BaseModel):
    """The message currently being answered."""

    content: str


class SessionInfo(BaseModel):
    """Details about the signed-in user, folded into the system instruction."""

    user_id: str
    user_name: Optional[str] = None
    email: Optional[str] = None


# ---------------------------------------------------------------------------
# Model channel shapes
# ---------------------------------------------------------------------------
class FunctionCall(BaseModel):
    """A call that the model wants the agent to execute."""

    name: str = Field(..., description="Registered tool name")
    args: Dict[str, Any] = Field(default_factory=dict, description="Arguments for the tool")


class ModelResponse(BaseModel):
    """Transport-neutral reply from a model channel."""

    text: Optional[str] = None
    function_calls: List[FunctionCall] = Field(default_factory=list)


class TextMessage(BaseModel):
    """Plain text sent to the model."""

    text: str


class FunctionResponseMessage(BaseModel):
    """The result of a tool call, sent back under the tool's name."""

    name: str
    response: Dict[str, Any]


ChannelMessage = Union[TextMessage, FunctionResponseMessage]


class Interpretation(BaseModel):
    """What the interpreter found in a model response."""

    thoughts: Optional[str] = None
    function_call: Optional[FunctionCall] = None


# ---------------------------------------------------------------------------
# Loop-local state
# ---------------------------------------------------------------------------
class AgentStepState(BaseModel):
    """Transient state of one user message moving through the agent loop."""

    response: Optional[ModelResponse] = None
    thoughts: Optional[str] = None
    function_call: Optional[FunctionCall] = None
    iterations: int = 0
    last_tool_name: Optional[str] = None
    last_tool_result: Any = None
