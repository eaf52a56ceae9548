"""
Pydantic models for RapidCLI API requests and responses.
This module defines the request and response schemas used by the RapidCLI API.
"""

from typing import (
    List,
    Optional,
)

from pydantic import (
    BaseModel,
    Field,
)

from rapidcli.core.schema import AgentToolInvocation


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class SessionResponse(BaseModel):
    """Response with session information."""

    session_id: str
    message_count: int = 0


class MessageRequest(BaseModel):
    """Incoming user objective."""

    message: str = Field(..., description="Objective for RapidCLI")


class ToolInfo(BaseModel):
    """A registered tool and its availability."""

    name: str
    display_name: str
    type: Optional[str] = None
    available: bool
    detail: str = ""
    tasks: List[str] = Field(default_factory=list)


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str
    session_id: str
    completed: Optional[bool] = None
    tool: Optional[str] = Field(None, description="Display name of the tool that ran, if any")
    thoughts: List[str] = Field(default_factory=list)
    tool_invocations: List[AgentToolInvocation] = Field(default_factory=list)
