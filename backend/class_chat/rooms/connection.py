"""Per-connection WebSocket handler and the ``/ws`` endpoint."""
import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .registry import RoomRegistry
from ..errors import ChatServiceError
from ..messages.schemas import SendMessageRequest
from ..messages.services import MessageService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


class ConnectionHandler:
    """Owns one client connection and its current room.

    Inbound frames are ``{"type": <event>, "data": <payload>}``. Closing the
    connection removes it from the registry.
    """

    def __init__(self, websocket: WebSocket, registry: RoomRegistry, messages: MessageService):
        self.websocket = websocket
        self.registry = registry
        self.messages = messages
        self.connection_id = uuid.uuid4().hex
        self.handlers = {
            "join_room": self.on_join_room,
            "leave_room": self.on_leave_room,
            "send_message": self.on_send_message,
        }

    @property
    def current_room(self):
        return self.registry.current_room(self.connection_id)

    async def run(self):
        await self.websocket.accept()
        self.registry.register(self.connection_id, self.websocket)
        logger.info("Connection %s opened", self.connection_id)

        try:
            while True:
                data = await self.websocket.receive_text()
                await self.dispatch(data)
        except WebSocketDisconnect:
            logger.info("Connection %s closed", self.connection_id)
        except Exception:
            logger.exception("Error in connection %s", self.connection_id)
        finally:
            self.registry.unregister(self.connection_id)

    async def dispatch(self, raw: str):
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            await self.reject("Invalid JSON")
            return

        if not isinstance(frame, dict):
            await self.reject("Frame must be a JSON object")
            return

        handler = self.handlers.get(frame.get("type"))
        if handler is None:
            await self.reject(f"Unknown event: {frame.get('type')}")
            return

        try:
            await handler(frame.get("data"))
        except ValidationError as e:
            await self.reject("Invalid payload", code="validation_error", details=json.loads(e.json()))
        except ChatServiceError as e:
            await self.reject(e.message, code=e.code)

    async def reject(self, message: str, code: str = "bad_request", **extra):
        await self.websocket.send_json({"type": "error", "error": message, "message": message, "code": code, **extra})

    async def on_join_room(self, room):
        if not isinstance(room, str) or not room:
            await self.reject("join_room expects a room name")
            return

        # Register before reading history so nothing sent in between is lost.
        # Live frames are held until the history has gone out; those already
        # in the history are dropped.
        self.registry.join(self.connection_id, room, hold=True)
        try:
            history = await self.messages.history(room)
        except ChatServiceError:
            self.registry.leave(self.connection_id)
            raise
        seen = {m.get("id") for m in history}

        def already_in_history(event, data):
            return event == "receive_message" and data.get("id") in seen

        await self.registry.release(self.connection_id, "chat_history", history, drop=already_in_history)

    async def on_leave_room(self, _data=None):
        self.registry.leave(self.connection_id)

    async def on_send_message(self, data):
        if isinstance(data, dict) and "room" not in data and self.current_room:
            data = {**data, "room": self.current_room}
        request = SendMessageRequest.model_validate(data)
        await self.messages.submit(request, origin=self.connection_id)


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """WebSocket endpoint for real-time chat and class request events."""
    state = websocket.app.state
    handler = ConnectionHandler(websocket, state.registry, state.messages)
    await handler.run()
