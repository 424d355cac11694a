from conftest import fail_writes


def _join(ws, room: str):
    ws.send_json({"type": "join_room", "data": room})
    frame = ws.receive_json()
    assert frame["type"] == "chat_history"
    return frame["data"]


def test_message_reaches_room_and_history(client) -> None:
    with client.websocket_connect("/ws") as x, client.websocket_connect("/ws") as y:
        assert _join(y, "A") == []
        assert _join(x, "A") == []

        x.send_json({"type": "send_message", "data": {"room": "A", "author": "alice", "body": "hi"}})

        sent = x.receive_json()
        assert sent["type"] == "message_sent"
        assert sent["data"]["id"]

        received = y.receive_json()
        assert received["type"] == "receive_message"
        assert received["data"]["id"] == sent["data"]["id"]
        assert received["data"]["body"] == "hi"

        history = client.get("/api/chat/A").json()
        assert history == [sent["data"]]


def test_join_replays_history(client) -> None:
    client.post("/api/chat/A", json={"author": "alice", "body": "earlier"})

    with client.websocket_connect("/ws") as ws:
        history = _join(ws, "A")

    assert [m["body"] for m in history] == ["earlier"]


def test_send_message_defaults_to_current_room(client) -> None:
    with client.websocket_connect("/ws") as ws:
        _join(ws, "B")
        ws.send_json({"type": "send_message", "data": {"author": "alice", "body": "hello"}})
        sent = ws.receive_json()

    assert sent["data"]["room"] == "B"
    assert len(client.get("/api/chat/B").json()) == 1


def test_room_sees_deletions_and_class_request_events(client) -> None:
    with client.websocket_connect("/ws") as ws:
        _join(ws, "A")

        message = client.post("/api/chat/A", json={"author": "alice", "body": "oops"}).json()
        assert ws.receive_json() == {"type": "receive_message", "data": message}

        client.delete(f"/api/chat/A/{message['id']}", params={"author": "alice"})
        assert ws.receive_json() == {"type": "message_deleted", "data": {"messageId": message["id"]}}

        record = client.post(
            "/api/class-request",
            json={"room": "A", "creatorName": "bob", "creatorStudentId": "s1", "creatorClass": "10A"},
        ).json()
        assert ws.receive_json() == {"type": "class_request_created", "data": record}

        updated = client.post(
            f"/api/class-request/{record['id']}/join",
            json={"studentId": "s2", "fullName": "Sam", "class": "10B"},
        ).json()
        assert ws.receive_json() == {"type": "class_request_updated", "data": updated}

        client.delete(f"/api/class-request/{record['id']}", params={"creator": "bob"})
        assert ws.receive_json() == {"type": "class_request_deleted", "data": {"id": record["id"]}}


def test_bad_frames_are_rejected_without_closing(client) -> None:
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["error"] == frame["message"] == "Invalid JSON"

        ws.send_json({"type": "dance", "data": None})
        assert ws.receive_json()["type"] == "error"

        ws.send_json({"type": "send_message", "data": {"body": "no author or room"}})
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["message"] == "Invalid payload"

        assert _join(ws, "A") == []


def test_disconnect_releases_membership(client) -> None:
    with client.websocket_connect("/ws") as ws:
        _join(ws, "A")
        assert client.get("/api/health").json()["rooms"] == {"A": 1}

    assert client.get("/api/health").json() == {"status": "ok", "rooms": {}}


def test_root_reports_running(client) -> None:
    res = client.get("/")
    assert res.status_code == 200
    assert res.text == "Chat server is running"


def test_store_failure_is_reported_and_connection_survives(client) -> None:
    with client.websocket_connect("/ws") as ws:
        _join(ws, "A")
        fail_writes(client.app.state.store)

        ws.send_json({"type": "send_message", "data": {"author": "alice", "body": "hi"}})
        frame = ws.receive_json()
        assert frame["type"] == "error"
        assert frame["code"] == "store_error"

        assert _join(ws, "B") == []

    assert client.get("/api/chat/A").json() == []
