from typing import Any, Dict, List

import pytest
from fastapi.testclient import TestClient

from class_chat.class_requests.services import ClassRequestService
from class_chat.database import DurableStore
from class_chat.main import create_app
from class_chat.messages.services import MessageService
from class_chat.rooms.registry import RoomRegistry


class FakeSocket:
    """Stands in for a WebSocket; records every frame sent to it."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: List[Dict[str, Any]] = []

    async def send_json(self, data: Dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(data)

    def events(self, event_type: str) -> List[Any]:
        return [frame["data"] for frame in self.sent if frame["type"] == event_type]


@pytest.fixture
def store(tmp_path) -> DurableStore:
    store = DurableStore(str(tmp_path / "store.db"))
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def messages(store: DurableStore, registry: RoomRegistry) -> MessageService:
    return MessageService(store, registry)


@pytest.fixture
def class_requests(store: DurableStore, registry: RoomRegistry) -> ClassRequestService:
    return ClassRequestService(store, registry)


def connect(registry: RoomRegistry, connection_id: str, room: str, fail: bool = False) -> FakeSocket:
    socket = FakeSocket(fail=fail)
    registry.register(connection_id, socket)
    registry.join(connection_id, room)
    return socket


@pytest.fixture
def client(tmp_path) -> TestClient:
    app = create_app(str(tmp_path / "app.db"))
    with TestClient(app) as client:
        yield client


def fail_writes(store: DurableStore) -> None:
    """Make every later write to the records table fail inside SQLite."""
    with store.get_db() as conn:
        for action in ("INSERT", "DELETE"):
            conn.execute(f'''
                CREATE TRIGGER IF NOT EXISTS refuse_{action.lower()}
                BEFORE {action} ON records
                BEGIN SELECT RAISE(ABORT, 'disk full'); END
            ''')
