import asyncio

from class_chat.errors import StoreError
from class_chat.messages.schemas import SendMessageRequest
from class_chat.rooms.connection import ConnectionHandler
from conftest import FakeSocket, connect


def _handler(registry, messages) -> ConnectionHandler:
    socket = FakeSocket()
    handler = ConnectionHandler(socket, registry, messages)
    registry.register(handler.connection_id, socket)
    return handler


def _message(body: str) -> SendMessageRequest:
    return SendMessageRequest(room="A", author="alice", body=body)


def test_message_after_history_snapshot_follows_history(registry, messages) -> None:
    connect(registry, "x", "A")
    handler = _handler(registry, messages)
    read_history = messages.history

    async def history_then_send(room):
        snapshot = await read_history(room)
        await messages.submit(_message("late"), origin="x")
        return snapshot

    messages.history = history_then_send
    asyncio.run(handler.on_join_room("A"))

    frames = handler.websocket.sent
    assert [f["type"] for f in frames] == ["chat_history", "receive_message"]
    assert frames[0]["data"] == []
    assert frames[1]["data"]["body"] == "late"
    assert registry.held == {}


def test_message_before_history_snapshot_is_not_repeated(registry, messages) -> None:
    connect(registry, "x", "A")
    handler = _handler(registry, messages)
    read_history = messages.history

    async def send_then_history(room):
        await messages.submit(_message("early"), origin="x")
        return await read_history(room)

    messages.history = send_then_history
    asyncio.run(handler.on_join_room("A"))

    frames = handler.websocket.sent
    assert [f["type"] for f in frames] == ["chat_history"]
    assert [m["body"] for m in frames[0]["data"]] == ["early"]


def test_frames_after_release_go_out_directly(registry, messages) -> None:
    handler = _handler(registry, messages)
    asyncio.run(handler.on_join_room("A"))

    sent = asyncio.run(messages.submit(_message("live")))

    assert [f["type"] for f in handler.websocket.sent] == ["chat_history", "receive_message"]
    assert handler.websocket.sent[1]["data"] == sent


def test_failed_history_read_releases_membership(registry, messages) -> None:
    handler = _handler(registry, messages)

    def broken(room):
        raise StoreError("Storage read failed")

    messages.get_history = broken
    asyncio.run(handler.dispatch('{"type": "join_room", "data": "A"}'))

    frame = handler.websocket.sent[-1]
    assert frame["type"] == "error"
    assert frame["code"] == "store_error"
    assert registry.members_of("A") == set()
    assert registry.held == {}
