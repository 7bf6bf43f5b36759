"""Streaming relay: stream a completion to a room, falling back once to a plain call."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, List

from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from ..domain.chat_models import ChatMessage
from ..observability.metrics import STREAM_FALLBACKS
from .openrouter import extract_message_content, iter_stream_content

LOG = logging.getLogger("ror.llm")

Emit = Callable[[str, Any], Awaitable[None]]


class StreamUnavailableError(RuntimeError):
    """The gateway handed back something that cannot be read as a stream."""


class InvalidCompletionError(RuntimeError):
    pass


class ReplyStrategy:
    """Two-step reply policy: ``try_streaming`` first, then one ``try_fallback``.

    ``emit(event, data)`` publishes to everyone in the conversation room.
    The assistant message passed in is filled in place and returned by
    :meth:`run`.
    """

    def __init__(
        self,
        client: Any,
        emit: Emit,
        messages: List[Dict[str, str]],
        use_case: str,
        assistant_message: ChatMessage,
    ) -> None:
        self._client = client
        self._emit = emit
        self._messages = messages
        self._use_case = use_case
        self.message = assistant_message
        self.started = False

    async def _start(self) -> None:
        await self._emit("ai-typing", False)
        if not self.started:
            self.started = True
            await self._emit("message-start", self.message.to_wire())

    async def try_streaming(self) -> str:
        response = await run_in_threadpool(self._client.send_streaming_message, self._messages, self._use_case)
        if response is None or not hasattr(response, "iter_lines"):
            raise StreamUnavailableError("Stream not available, falling back to regular response")
        self.message.is_streaming = True
        await self._start()
        try:
            async for token in iterate_in_threadpool(iter_stream_content(response)):
                self.message.content += token
                await self._emit("message-chunk", {"id": self.message.id, "content": token})
        finally:
            response.close()
        if not self.message.content:
            raise StreamUnavailableError("Stream ended without content")
        LOG.info("llm_stream_completed", extra={"content_length": len(self.message.content)})
        return self.message.content

    async def try_fallback(self) -> str:
        self.message.content = ""
        completion = await run_in_threadpool(self._client.send_message, self._messages, self._use_case, False)
        content = extract_message_content(completion)
        if content is None:
            raise InvalidCompletionError("Invalid response format from OpenRouter")
        self.message.content = content
        await self._start()
        return content

    async def run(self) -> ChatMessage:
        try:
            await self.try_streaming()
        except Exception as exc:
            STREAM_FALLBACKS.inc()
            LOG.warning("llm_stream_fallback", extra={"err": str(exc)})
            await self.try_fallback()
        self.message.is_streaming = False
        return self.message
