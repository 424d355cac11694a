"""Business logic for chat messages: submit, history and deletion."""
import logging
from typing import Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from .schemas import SendMessageRequest
from ..database import CHAT_NAMESPACE, DurableStore
from ..errors import AuthorizationError
from ..rooms.registry import RoomRegistry
from ..utils import generate_id

logger = logging.getLogger(__name__)


class MessageService:
    """Persists room messages and fans them out to the room's connections."""

    def __init__(self, store: DurableStore, registry: RoomRegistry):
        self.store = store
        self.registry = registry

    def append_message(self, message: Dict) -> Dict:
        """Append an already identified message to its room's log."""
        def append(history):
            history = history or []
            history.append(message)
            return history

        self.store.atomic_update(CHAT_NAMESPACE, message['room'], append)
        return message

    def get_history(self, room: str) -> List[Dict]:
        """Get a room's messages in the order they were persisted."""
        return self.store.read_record(CHAT_NAMESPACE, room) or []

    def remove_message(self, room: str, message_id: str, author: str) -> Dict:
        """Remove the first message matching both id and author.

        Missing and not-owned messages raise the same AuthorizationError.
        """
        removed = []

        def remove(history):
            history = history or []
            for index, msg in enumerate(history):
                if msg.get('id') == message_id and msg.get('author') == author:
                    removed.append(history.pop(index))
                    return history
            raise AuthorizationError("You can only delete your own messages")

        self.store.atomic_update(CHAT_NAMESPACE, room, remove)
        return removed[0]

    async def submit(self, request: SendMessageRequest, origin: Optional[str] = None) -> Dict:
        """Identify, persist and broadcast an inbound message.

        Every connection in the room except ``origin`` receives
        ``receive_message``; ``origin`` gets ``message_sent``.
        """
        message = request.model_dump()
        message['id'] = generate_id()

        await run_in_threadpool(self.append_message, message)
        logger.info("Message %s from %s saved to room '%s'", message['id'], message['author'], message['room'])

        await self.registry.broadcast(message['room'], "receive_message", message, exclude=origin)
        if origin is not None:
            await self.registry.send(origin, "message_sent", message)

        return message

    async def history(self, room: str) -> List[Dict]:
        return await run_in_threadpool(self.get_history, room)

    async def delete_message(self, room: str, message_id: str, author: str):
        """Delete an own message and tell the whole room, deleter included."""
        await run_in_threadpool(self.remove_message, room, message_id, author)
        logger.info("Message %s deleted from room '%s' by %s", message_id, room, author)

        await self.registry.broadcast(room, "message_deleted", {"messageId": message_id})
