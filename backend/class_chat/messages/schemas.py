"""Pydantic schemas for chat messages."""
from typing import Any

from pydantic import BaseModel, ConfigDict


class MessageContent(BaseModel):
    """What a client says. Extra client fields are kept as-is."""

    model_config = ConfigDict(extra="allow")

    author: str
    body: Any


class SendMessageRequest(MessageContent):
    """An inbound message; a client supplied ``id`` is always replaced."""

    room: str


class Message(SendMessageRequest):
    id: str


class DeleteMessageResponse(BaseModel):
    success: bool
