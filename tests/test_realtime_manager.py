import asyncio

from src.room_of_requirements.infrastructure.realtime import ConnectionManager, RealtimeChatClient, envelope


class Peer:
    def __init__(self, client_id, fail=False):
        self.client_id = client_id
        self.fail = fail
        self.frames = []

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(data)


class SyncSocket:
    def __init__(self):
        self.sent = []

    def send_json(self, data):
        self.sent.append(data)


def test_emit_reaches_room_members_only():
    mgr = ConnectionManager()
    a, b, c = Peer("a"), Peer("b"), Peer("c")
    mgr.join(a, "room1")
    mgr.join(b, "room1")
    mgr.join(c, "room2")
    asyncio.run(mgr.emit("room1", "message", {"x": 1}))
    assert a.frames == [envelope("message", {"x": 1})]
    assert b.frames == a.frames
    assert c.frames == []


def test_emit_to_others_skips_sender():
    mgr = ConnectionManager()
    a, b = Peer("a"), Peer("b")
    mgr.join(a, "r")
    mgr.join(b, "r")
    asyncio.run(mgr.emit_to_others(a, "r", "user-typing", {"isTyping": True}))
    assert a.frames == []
    assert b.frames[0]["event"] == "user-typing"


def test_unreachable_client_is_dropped():
    mgr = ConnectionManager()
    dead = Peer("dead", fail=True)
    mgr.join(dead, "r")
    asyncio.run(mgr.emit("r", "message", {}))
    assert mgr.members("r") == []
    assert mgr.rooms_of(dead) == set()


def test_leave_all_cleans_every_room():
    mgr = ConnectionManager()
    a = Peer("a")
    mgr.join(a, "r1")
    mgr.join(a, "r2")
    mgr.leave_all(a)
    assert mgr.members("r1") == [] and mgr.members("r2") == []


def test_chat_client_does_not_send_while_disconnected():
    chat = RealtimeChatClient()
    assert chat.is_connected is False
    assert chat.send_message("hello") is False

    sock = SyncSocket()
    chat.connect(sock, "sess")
    assert sock.sent == [envelope("join-conversation", "sess")]
    assert chat.send_message("hello", stage="concept") is True
    assert sock.sent[-1] == envelope(
        "send-message", {"sessionId": "sess", "message": "hello", "useCase": "general", "stage": "concept"}
    )

    chat.disconnect()
    assert chat.send_message("again") is False
    assert len(sock.sent) == 2


def test_chat_client_ignores_blank_messages():
    sock = SyncSocket()
    chat = RealtimeChatClient()
    chat.connect(sock, "s")
    assert chat.send_message("   ") is False
    assert len(sock.sent) == 1
