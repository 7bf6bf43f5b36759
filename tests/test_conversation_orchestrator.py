import asyncio

from src.room_of_requirements.domain.chat_models import ChatMessage
from src.room_of_requirements.infrastructure.conversation_store import InMemoryConversationStore
from src.room_of_requirements.services.conversation import ConversationOrchestrator
from src.room_of_requirements.services.openrouter import GatewayConfigError, GatewayError

from .fakes import FakeGateway, FakeStreamResponse, completion, sse


class RecordingBroadcaster:
    def __init__(self):
        self.events = []
        self.direct = []
        self.rooms = {}

    async def emit(self, room, event, data):
        self.events.append((room, event, data))

    async def emit_to(self, client, event, data):
        self.direct.append((client.client_id, event, data))

    async def emit_to_others(self, client, room, event, data):
        self.events.append((room, event, data))

    def join(self, client, room):
        self.rooms.setdefault(room, set()).add(client.client_id)


class Peer:
    def __init__(self, client_id="c1"):
        self.client_id = client_id

    async def send_json(self, data):
        pass


def _setup(gateway):
    store = InMemoryConversationStore()
    bus = RecordingBroadcaster()
    orch = ConversationOrchestrator(store, bus, lambda: gateway)
    return store, bus, orch


def _names(bus):
    return [e for _, e, _ in bus.events]


def test_join_creates_session_and_sends_empty_history():
    store, bus, orch = _setup(FakeGateway())
    peer = Peer()
    asyncio.run(orch.join(peer, "sess-1"))
    assert store.get("sess-1") is not None
    assert bus.direct == [("c1", "conversation-history", [])]
    assert "c1" in bus.rooms["sess-1"]


def test_send_message_streams_and_records_reply():
    gateway = FakeGateway(stream=FakeStreamResponse(sse("Hi ", "there")))
    store, bus, orch = _setup(gateway)
    peer = Peer()
    asyncio.run(orch.join(peer, "s"))
    reply = asyncio.run(orch.send_message(peer, {"sessionId": "s", "message": "hello", "useCase": "quick"}))

    assert reply.content == "Hi there"
    assert reply.model == "Gemini Flash"
    sess = store.get("s")
    assert [m.role for m in sess.messages] == ["user", "assistant"]
    assert _names(bus) == [
        "message",
        "ai-typing",
        "ai-typing",
        "message-start",
        "message-chunk",
        "message-chunk",
        "message-complete",
    ]
    sent = gateway.calls[0][1]
    assert sent[0]["role"] == "system"
    assert sent[-1] == {"role": "user", "content": "hello"}


def test_unknown_session_reports_error_to_sender_only():
    _, bus, orch = _setup(FakeGateway())
    asyncio.run(orch.send_message(Peer(), {"sessionId": "missing", "message": "hi"}))
    assert bus.events == []
    assert bus.direct[0][1] == "error"


def test_fallback_failure_clears_typing_and_keeps_user_message():
    gateway = FakeGateway(stream_error=GatewayError(502, "bad"), completion_error=GatewayError(502, "bad"))
    store, bus, orch = _setup(gateway)
    peer = Peer()
    asyncio.run(orch.join(peer, "s"))
    assert asyncio.run(orch.send_message(peer, {"sessionId": "s", "message": "hello"})) is None

    assert bus.events[-2][1:] == ("ai-typing", False)
    room, event, data = bus.events[-1]
    assert event == "error"
    assert data["message"] == "Failed to get AI response"
    assert [m.role for m in store.get("s").messages] == ["user"]


def test_missing_credential_surfaces_as_message_error():
    store = InMemoryConversationStore()
    bus = RecordingBroadcaster()

    def no_client():
        raise GatewayConfigError("OPENROUTER_API_KEY environment variable is required")

    orch = ConversationOrchestrator(store, bus, no_client)
    asyncio.run(orch.join(Peer(), "s"))
    asyncio.run(orch.send_message(Peer(), {"sessionId": "s", "message": "hello"}))
    assert _names(bus)[-1] == "error"


def test_concept_understood_moves_to_description_once():
    gateway = FakeGateway(stream=FakeStreamResponse(sse("Please describe in detail what you need.")))
    store, bus, orch = _setup(gateway)
    peer = Peer()
    asyncio.run(orch.join(peer, "s"))
    asyncio.run(orch.send_message(peer, {"sessionId": "s", "message": "A planner app"}))

    sess = store.get("s")
    assert sess.stage == "description"
    assert sess.concept_understood is True
    assert ("s", "stage-changed", {"stage": "description", "message": "Moving to detailed description phase"}) in bus.events

    gateway.stream = FakeStreamResponse(sse("The more detailed you are the better."))
    asyncio.run(orch.send_message(peer, {"sessionId": "s", "message": "It plans meals"}))
    assert _names(bus).count("stage-changed") == 1


def test_auto_enter_room_after_enough_messages():
    gateway = FakeGateway(stream=FakeStreamResponse(sse("Sure.")))
    store, bus, orch = _setup(gateway)
    peer = Peer()
    asyncio.run(orch.join(peer, "s"))
    store.append_message("s", ChatMessage(role="user", content="idea"))
    store.append_message("s", ChatMessage(role="assistant", content="ok"))
    asyncio.run(orch.send_message(peer, {"sessionId": "s", "message": "take me to the room"}))

    enter = [d for _, e, d in bus.events if e == "auto-enter-room"]
    assert len(enter) == 1
    assert len(enter[0]["conversationHistory"]) == 4
    assert store.get("s").stage == "concept"


def test_marketplace_intent_emits_navigation():
    gateway = FakeGateway(stream=FakeStreamResponse(sse("Let me look.")))
    _, bus, orch = _setup(gateway)
    peer = Peer()
    asyncio.run(orch.join(peer, "s"))
    asyncio.run(orch.send_message(peer, {"sessionId": "s", "message": "Is there a reusable component for charts?"}))
    nav = [d for _, e, d in bus.events if e == "navigate-to-marketplace"]
    assert nav and nav[0]["searchQuery"] == "Is there a reusable component for charts?"


def test_change_stage_broadcasts_and_rejects_invalid():
    store, bus, orch = _setup(FakeGateway())
    peer = Peer()
    asyncio.run(orch.join(peer, "s"))
    asyncio.run(orch.change_stage({"sessionId": "s", "stage": "prd"}))
    assert store.get("s").stage == "prd"
    assert bus.events[-1] == ("s", "stage-changed", "prd")

    asyncio.run(orch.change_stage({"sessionId": "s", "stage": "bogus"}, peer))
    assert store.get("s").stage == "prd"
    assert bus.direct[-1][:2] == ("c1", "error")
    assert bus.events[-1] == ("s", "stage-changed", "prd")


def test_typing_goes_to_others():
    _, bus, orch = _setup(FakeGateway())
    asyncio.run(orch.typing(Peer("c9"), {"sessionId": "s", "isTyping": True}))
    assert bus.events == [("s", "user-typing", {"userId": "c9", "isTyping": True})]
