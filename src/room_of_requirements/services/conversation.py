from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from ..core.state_machine import Signal, TransitionResult, evaluate_transitions, has_component_details, next_state
from ..domain.chat_models import ChangeStagePayload, ChatMessage, ConversationSession, SendMessagePayload, TypingPayload
from ..infrastructure.conversation_store import ConversationStore
from ..infrastructure.realtime import Broadcaster, RealtimeClient
from .openrouter import get_system_prompt, model_config_for
from .streaming import ReplyStrategy

logger = logging.getLogger(__name__)


def _error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class ConversationOrchestrator:
    """Handles realtime chat events for conversation sessions.

    Transport-agnostic: events go out through the injected broadcaster and
    the gateway client is resolved lazily through ``client_factory`` so a
    missing credential surfaces as a per-message error.
    """

    def __init__(self, store: ConversationStore, broadcaster: Broadcaster, client_factory: Callable[[], Any]) -> None:
        self.store = store
        self.broadcaster = broadcaster
        self._client_factory = client_factory

    async def join(self, client: RealtimeClient, session_id: Any) -> ConversationSession:
        session_id = str(session_id or "").strip()
        if not session_id:
            await self.broadcaster.emit_to(client, "error", {"message": "Session id is required"})
            raise ValueError("Session id is required")
        self.broadcaster.join(client, session_id)
        sess = self.store.get_or_create(session_id)
        await self.broadcaster.emit_to(
            client, "conversation-history", [m.to_wire() for m in sess.messages]
        )
        logger.info("Client %s joined conversation %s", client.client_id, session_id)
        return sess

    async def change_stage(self, data: Dict[str, Any], client: Optional[RealtimeClient] = None) -> None:
        try:
            payload = ChangeStagePayload.model_validate(data)
        except ValidationError as exc:
            logger.info("Rejected change-stage payload: %s", data)
            if client is not None:
                await self.broadcaster.emit_to(
                    client, "error", {"message": "Invalid stage", "error": _error_text(exc)}
                )
            return
        sess = self.store.get(payload.session_id)
        if sess is None:
            return
        sess.stage = next_state(sess.stage, Signal.MANUAL, payload.stage)
        self.store.put(sess)
        await self.broadcaster.emit(payload.session_id, "stage-changed", sess.stage)

    async def typing(self, client: RealtimeClient, data: Dict[str, Any]) -> None:
        try:
            payload = TypingPayload.model_validate(data)
        except ValidationError:
            return
        await self.broadcaster.emit_to_others(
            client,
            payload.session_id,
            "user-typing",
            {"userId": client.client_id, "isTyping": payload.is_typing},
        )

    async def send_message(self, client: RealtimeClient, data: Dict[str, Any]) -> Optional[ChatMessage]:
        try:
            payload = SendMessagePayload.model_validate(data)
        except ValidationError as exc:
            await self.broadcaster.emit_to(
                client, "error", {"message": "Failed to process message", "error": _error_text(exc)}
            )
            return None

        sess = self.store.get(payload.session_id)
        if sess is None:
            await self.broadcaster.emit_to(client, "error", {"message": "Session not found"})
            return None
        return await self.handle_message(sess, payload)

    async def handle_message(self, sess: ConversationSession, payload: SendMessagePayload) -> Optional[ChatMessage]:
        room = sess.id
        use_case = payload.use_case or "general"
        if payload.stage:
            sess.stage = payload.stage

        user_message = ChatMessage(role="user", content=payload.message, use_case=use_case)
        sess = self.store.append_message(room, user_message)
        await self.broadcaster.emit(room, "message", user_message.to_wire())
        await self.broadcaster.emit(room, "ai-typing", True)

        async def emit(event: str, data: Any) -> None:
            await self.broadcaster.emit(room, event, data)

        try:
            client = self._client_factory()
            history: List[Dict[str, str]] = [{"role": m.role, "content": m.content} for m in sess.messages]
            messages = [{"role": "system", "content": get_system_prompt(sess.stage)}] + history
            assistant = ChatMessage(
                role="assistant",
                content="",
                model=model_config_for(use_case).name,
                use_case=use_case,
            )
            logger.info("Processing message for session %s", room)
            assistant = await ReplyStrategy(client, emit, messages, use_case, assistant).run()
        except Exception as exc:
            logger.exception("Error processing AI response for session %s", room)
            await emit("ai-typing", False)
            await emit("error", {"message": "Failed to get AI response", "error": _error_text(exc)})
            return None

        sess = self.store.append_message(room, assistant)
        await emit("message-complete", assistant.to_wire())
        await self.apply_transitions(sess)
        self.store.put(sess)
        logger.info("Message completed for session %s", room)
        return assistant

    async def apply_transitions(self, sess: ConversationSession) -> TransitionResult:
        result = evaluate_transitions(sess)
        room = sess.id
        if result.has(Signal.ENTER_ROOM):
            await self.broadcaster.emit(
                room,
                "auto-enter-room",
                {
                    "message": "Automatically entering the Room to create your PRD...",
                    "conversationHistory": [m.to_wire() for m in sess.messages],
                },
            )
            logger.info("Session %s automatically entering the room with %d messages", room, len(sess.messages))
            return result
        if result.has(Signal.MARKETPLACE_INTENT):
            await self.broadcaster.emit(
                room,
                "navigate-to-marketplace",
                {
                    "searchQuery": result.search_query or "",
                    "message": "Taking you to the marketplace to find existing components...",
                },
            )
            logger.info("Component inquiry detected for session %s", room)
            return result
        if has_component_details(sess.messages) and len(sess.messages) >= 3:
            logger.debug("Component details detected for session %s", room)
        if result.has(Signal.READY_FOR_ROOM):
            logger.info("Session %s has comprehensive content, ready for room entry", room)
        if result.has(Signal.CONCEPT_UNDERSTOOD):
            sess.concept_understood = result.concept_understood
            sess.stage = result.stage
            await self.broadcaster.emit(
                room,
                "stage-changed",
                {"stage": result.stage, "message": "Moving to detailed description phase"},
            )
            logger.info("Session %s transitioned to description stage", room)
        return result
