from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..domain.chat_intents import (
    COMPONENT_DETAIL_KEYWORDS,
    DESCRIPTION_TRIGGER_PHRASES,
    LONG_CONTENT_THRESHOLD,
    MARKETPLACE_KEYWORDS,
    PRD_INDICATORS,
    ROOM_ENTRY_PHRASES,
    ROOM_SUGGESTION_PHRASES,
    contains_any,
)
from ..domain.chat_models import STAGES, ChatMessage, ConversationSession

MIN_MESSAGES_FOR_ROOM = 3


class Signal(str, Enum):
    CONCEPT_UNDERSTOOD = "concept-understood"
    ENTER_ROOM = "auto-enter-room"
    MARKETPLACE_INTENT = "navigate-to-marketplace"
    READY_FOR_ROOM = "ready-for-room"
    MANUAL = "manual"


def is_valid_stage(stage: Optional[str]) -> bool:
    return stage in STAGES


def next_state(state: str, signal: Signal, target: Optional[str] = None) -> str:
    """Return the stage that follows ``state`` once ``signal`` is observed."""
    if signal is Signal.MANUAL:
        if not is_valid_stage(target):
            raise ValueError(f"Unknown stage: {target}")
        return str(target)
    if signal is Signal.CONCEPT_UNDERSTOOD and state == "concept":
        return "description"
    return state


@dataclass(frozen=True)
class TransitionResult:
    signals: List[Signal] = field(default_factory=list)
    stage: str = "concept"
    concept_understood: bool = False
    search_query: Optional[str] = None

    def has(self, signal: Signal) -> bool:
        return signal in self.signals


def _last_by_role(messages: List[ChatMessage], role: str) -> Optional[ChatMessage]:
    for message in reversed(messages):
        if message.role == role:
            return message
    return None


def _has_comprehensive_content(messages: List[ChatMessage]) -> bool:
    for message in messages:
        if message.role != "user":
            continue
        if contains_any(message.content, PRD_INDICATORS) or len(message.content) > LONG_CONTENT_THRESHOLD:
            return True
    return False


def has_component_details(messages: List[ChatMessage]) -> bool:
    recent_user = [m for m in messages if m.role == "user"][-3:]
    return any(contains_any(m.content, COMPONENT_DETAIL_KEYWORDS) for m in recent_user)


def evaluate_transitions(session: ConversationSession) -> TransitionResult:
    """Inspect a transcript and decide which transitions fire.

    Room entry is checked before marketplace intent and either one ends the
    evaluation. The concept -> description move only happens while the
    session is still in ``concept`` and fires at most once per session.
    """
    messages = session.messages
    stage = session.stage
    understood = session.concept_understood

    last_user = _last_by_role(messages, "user")
    if last_user is not None:
        if contains_any(last_user.content, ROOM_ENTRY_PHRASES) and len(messages) >= MIN_MESSAGES_FOR_ROOM:
            return TransitionResult([Signal.ENTER_ROOM], stage, understood)
        if contains_any(last_user.content, MARKETPLACE_KEYWORDS):
            return TransitionResult([Signal.MARKETPLACE_INTENT], stage, understood, last_user.content)

    signals: List[Signal] = []
    last_assistant = _last_by_role(messages, "assistant")
    if _has_comprehensive_content(messages) and len(messages) >= MIN_MESSAGES_FOR_ROOM:
        if last_assistant is not None and not contains_any(last_assistant.content, ROOM_SUGGESTION_PHRASES):
            signals.append(Signal.READY_FOR_ROOM)

    if stage != "concept" or understood:
        return TransitionResult(signals, stage, understood)

    if last_assistant is not None and contains_any(last_assistant.content, DESCRIPTION_TRIGGER_PHRASES):
        signals.append(Signal.CONCEPT_UNDERSTOOD)
        return TransitionResult(signals, next_state(stage, Signal.CONCEPT_UNDERSTOOD), True)
    return TransitionResult(signals, stage, understood)
