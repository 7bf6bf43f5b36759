import asyncio

import pytest

from src.room_of_requirements.domain.chat_models import ChatMessage
from src.room_of_requirements.services.openrouter import GatewayError
from src.room_of_requirements.services.streaming import InvalidCompletionError, ReplyStrategy

from .fakes import FakeGateway, FakeStreamResponse, completion, sse


def _run(gateway):
    events = []

    async def emit(event, data):
        events.append((event, data))

    assistant = ChatMessage(role="assistant", content="")
    strategy = ReplyStrategy(gateway, emit, [{"role": "user", "content": "hi"}], "general", assistant)
    message = asyncio.run(strategy.run())
    return message, events


def test_streamed_reply_emits_start_then_chunks():
    stream = FakeStreamResponse(sse("Hel", "lo"))
    message, events = _run(FakeGateway(stream=stream))

    assert message.content == "Hello"
    assert message.is_streaming is False
    assert [e for e, _ in events] == ["ai-typing", "message-start", "message-chunk", "message-chunk"]
    assert events[2][1] == {"id": message.id, "content": "Hel"}
    assert stream.closed


def test_stream_error_falls_back_once():
    gateway = FakeGateway(stream_error=GatewayError(500, "boom"), completion=completion("fallback text"))
    message, events = _run(gateway)

    assert message.content == "fallback text"
    assert [kind for kind, *_ in gateway.calls] == ["stream", "message"]
    assert [e for e, _ in events] == ["ai-typing", "message-start"]


def test_stream_without_reader_falls_back():
    message, _ = _run(FakeGateway(stream={"not": "a stream"}, completion=completion("plain")))
    assert message.content == "plain"


def test_empty_stream_falls_back_without_second_start():
    message, events = _run(FakeGateway(stream=FakeStreamResponse([b"data: [DONE]"]), completion=completion("late")))
    assert message.content == "late"
    assert [e for e, _ in events].count("message-start") == 1


def test_invalid_fallback_completion_raises():
    gateway = FakeGateway(stream_error=RuntimeError("down"), completion={"unexpected": True})
    with pytest.raises(InvalidCompletionError):
        _run(gateway)
