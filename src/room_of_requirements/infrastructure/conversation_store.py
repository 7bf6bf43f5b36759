from __future__ import annotations

from datetime import timedelta
from threading import RLock
from typing import Dict, List, Optional, Protocol
import logging

from ..domain.base import utc_now
from ..domain.chat_models import ChatMessage, ConversationSession

logger = logging.getLogger(__name__)


class ConversationStore(Protocol):
    def get(self, session_id: str) -> Optional[ConversationSession]: ...

    def put(self, session: ConversationSession) -> ConversationSession: ...

    def delete(self, session_id: str) -> bool: ...

    def list(self) -> List[ConversationSession]: ...

    def get_or_create(self, session_id: str) -> ConversationSession: ...

    def append_message(self, session_id: str, message: ChatMessage) -> ConversationSession: ...

    def export(self, session_id: str) -> Optional[ConversationSession]: ...

    def sweep(self, max_age_hours: float = 24) -> int: ...


class InMemoryConversationStore:
    """Conversation sessions kept in a process-local dict.

    Sessions are never persisted; :meth:`sweep` is the only eviction path.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, ConversationSession] = {}
        self._lock = RLock()

    def get(self, session_id: str) -> Optional[ConversationSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def put(self, session: ConversationSession) -> ConversationSession:
        with self._lock:
            self._sessions[session.id] = session
            return session

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list(self) -> List[ConversationSession]:
        with self._lock:
            return list(self._sessions.values())

    def get_or_create(self, session_id: str) -> ConversationSession:
        with self._lock:
            sess = self._sessions.get(session_id)
            if sess is None:
                sess = ConversationSession(id=session_id)
                self._sessions[session_id] = sess
            return sess

    def append_message(self, session_id: str, message: ChatMessage) -> ConversationSession:
        with self._lock:
            sess = self._sessions.get(session_id)
            if sess is None:
                raise KeyError("Session not found")
            sess.messages.append(message)
            return sess

    def export(self, session_id: str) -> Optional[ConversationSession]:
        with self._lock:
            sess = self._sessions.get(session_id)
            return sess.model_copy(deep=True) if sess else None

    def sweep(self, max_age_hours: float = 24) -> int:
        """Drop sessions whose last message is older than ``max_age_hours``."""
        cutoff = utc_now() - timedelta(hours=max_age_hours)
        removed = 0
        with self._lock:
            for sid, sess in list(self._sessions.items()):
                if sess.messages and sess.messages[-1].timestamp < cutoff:
                    del self._sessions[sid]
                    removed += 1
                    logger.info("Cleaned up old conversation: %s", sid)
        return removed


_store: ConversationStore | None = None


def get_conversation_store() -> ConversationStore:
    global _store
    if _store is None:
        _store = InMemoryConversationStore()
    return _store
