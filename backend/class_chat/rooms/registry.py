"""Live room membership and outbound delivery for WebSocket connections."""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class RoomRegistry:
    """Tracks which live connections are in which room.

    Purely in-memory; one instance per application, empty on start. A
    connection is in at most one room at a time.
    """

    def __init__(self):
        # room -> set of connection ids
        self.active_rooms: Dict[str, Set[str]] = {}
        # connection id -> current room
        self.current_rooms: Dict[str, str] = {}
        # connection id -> outbound socket
        self.connections: Dict[str, WebSocket] = {}
        # connection id -> frames held back until the connection is released
        self.held: Dict[str, List[Tuple[str, Any]]] = {}
        self._lock = threading.Lock()

    def register(self, connection_id: str, websocket: WebSocket):
        """Attach the outbound socket of a freshly accepted connection."""
        with self._lock:
            self.connections[connection_id] = websocket

    def unregister(self, connection_id: str) -> Optional[str]:
        """Forget a connection entirely, leaving its room first."""
        room = self.leave(connection_id)
        with self._lock:
            self.connections.pop(connection_id, None)
        return room

    def join(self, connection_id: str, room: str, hold: bool = False):
        """Put a connection in a room, leaving its previous room if any.

        With ``hold``, frames addressed to the connection are queued until
        ``release`` is called instead of being sent right away.
        """
        with self._lock:
            if hold:
                self.held[connection_id] = []
            previous = self.current_rooms.get(connection_id)
            if previous == room:
                return
            if previous is not None:
                self._discard(connection_id, previous)

            self.active_rooms.setdefault(room, set()).add(connection_id)
            self.current_rooms[connection_id] = room
            count = len(self.active_rooms[room])

        logger.info("Connection %s joined room '%s'. Active connections: %d", connection_id, room, count)

    def leave(self, connection_id: str) -> Optional[str]:
        """Remove a connection from its current room and return that room."""
        with self._lock:
            self.held.pop(connection_id, None)
            room = self.current_rooms.pop(connection_id, None)
            if room is None:
                return None
            self._discard(connection_id, room)

        logger.info("Connection %s left room '%s'", connection_id, room)
        return room

    def _discard(self, connection_id: str, room: str):
        members = self.active_rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)

        # Clean up empty rooms
        if not members:
            del self.active_rooms[room]
            logger.info("Room '%s' is now empty, removed from active rooms", room)

    def members_of(self, room: str) -> Set[str]:
        """Snapshot of the live connections in a room."""
        with self._lock:
            return set(self.active_rooms.get(room, ()))

    def current_room(self, connection_id: str) -> Optional[str]:
        with self._lock:
            return self.current_rooms.get(connection_id)

    def is_member(self, connection_id: str, room: str) -> bool:
        with self._lock:
            return self.current_rooms.get(connection_id) == room

    def rooms(self) -> Dict[str, int]:
        """Live connection count per room."""
        with self._lock:
            return {room: len(members) for room, members in self.active_rooms.items()}

    def get_room_connection_count(self, room: str) -> int:
        with self._lock:
            return len(self.active_rooms.get(room, ()))

    async def send(self, connection_id: str, event: str, data: Any) -> bool:
        """Deliver one event to one connection.

        A connection whose send fails is dropped from the registry and is
        not retried. Returns whether the event was delivered.
        """
        with self._lock:
            held = self.held.get(connection_id)
            if held is not None:
                held.append((event, data))
                return True
            websocket = self.connections.get(connection_id)
        return await self._deliver(connection_id, websocket, event, data)

    async def release(
        self,
        connection_id: str,
        event: str,
        data: Any,
        drop: Optional[Callable[[str, Any], bool]] = None,
    ) -> bool:
        """Send ``event`` to a held connection, then the frames queued behind it.

        Queued frames for which ``drop(event, data)`` is true are discarded.
        Frames queued while flushing keep their order.
        """
        with self._lock:
            websocket = self.connections.get(connection_id)
        if not await self._deliver(connection_id, websocket, event, data):
            return False

        while True:
            with self._lock:
                queued = self.held.get(connection_id)
                if not queued:
                    self.held.pop(connection_id, None)
                    return True
                self.held[connection_id] = []
            for queued_event, queued_data in queued:
                if drop is not None and drop(queued_event, queued_data):
                    continue
                if not await self._deliver(connection_id, websocket, queued_event, queued_data):
                    return False

    async def _deliver(self, connection_id: str, websocket: Optional[WebSocket], event: str, data: Any) -> bool:
        if websocket is None:
            return False

        try:
            await websocket.send_json({"type": event, "data": data})
        except Exception as e:
            logger.warning("Error sending '%s' to connection %s: %s", event, connection_id, e)
            self.unregister(connection_id)
            return False
        return True

    async def broadcast(self, room: str, event: str, data: Any, exclude: Optional[str] = None) -> List[str]:
        """Deliver an event to every live connection in a room.

        Connections that leave the room after the snapshot is taken are
        skipped. Returns the ids the event was delivered to.
        """
        delivered = []
        for connection_id in self.members_of(room):
            if connection_id == exclude or not self.is_member(connection_id, room):
                continue
            if await self.send(connection_id, event, data):
                delivered.append(connection_id)
        return delivered

