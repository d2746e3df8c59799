"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ChatRequest(BaseModel):
    """Incoming chat message from the widget.

    ``message`` is optional at the schema level so that a missing or
    empty message is reported as a 400 by the orchestrator.
    """

    model_config = ConfigDict(populate_by_name=True)

    message: str | None = Field(None, description="The parent's message")
    session_id: str | None = Field(
        None,
        alias="sessionId",
        max_length=100,
        description="Session identifier returned by a previous call",
    )


class ChatResponse(BaseModel):
    """Response from the agent."""

    model_config = ConfigDict(populate_by_name=True)

    reply: str = Field(..., description="The assistant's response message")
    session_id: str = Field(..., alias="sessionId", description="The session ID for this conversation")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "hope-camp-agent"
    version: str
    timestamp: str


class WebhookAck(BaseModel):
    received: bool = True
