"""Chat history API routes."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from .schemas import DeleteMessageResponse, Message, MessageContent, SendMessageRequest
from .services import MessageService
from ..dependencies import get_message_service

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/{room}", response_model=List[Message])
async def get_chat_history(room: str, service: MessageService = Depends(get_message_service)):
    """Get the full message log of a room."""
    return await service.history(room)


@router.post("/{room}", response_model=Message, status_code=201)
async def post_message(
    room: str,
    content: MessageContent,
    service: MessageService = Depends(get_message_service),
):
    """Send a message without a WebSocket; every live connection in the room receives it."""
    request = SendMessageRequest(**{**content.model_dump(), "room": room})
    return await service.submit(request)


@router.delete("/{room}/{message_id}", response_model=DeleteMessageResponse)
async def delete_message(
    room: str,
    message_id: str,
    author: Optional[str] = Query(None, description="Author of the message"),
    service: MessageService = Depends(get_message_service),
):
    """Delete one of your own messages."""
    await service.delete_message(room, message_id, author)
    return DeleteMessageResponse(success=True)
