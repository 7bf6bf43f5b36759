from __future__ import annotations

import uuid
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol

from ..domain.base import utc_now
from ..domain.compost_models import CompostingSession


class CompostingSessionStore(Protocol):
    def create(self, project_name: str = "Untitled Project") -> CompostingSession: ...
    def get(self, session_id: str) -> Optional[CompostingSession]: ...
    def update(self, session_id: str, **updates: Any) -> Optional[CompostingSession]: ...
    def delete(self, session_id: str) -> bool: ...
    def list(self) -> List[CompostingSession]: ...


class InMemoryCompostingSessionStore:
    """Composting sessions held in memory for the life of the process."""

    def __init__(self) -> None:
        self._sessions: Dict[str, CompostingSession] = {}
        self._lock = RLock()

    def create(self, project_name: str = "Untitled Project") -> CompostingSession:
        sess = CompostingSession(id=str(uuid.uuid4()), project_name=project_name or "Untitled Project")
        with self._lock:
            self._sessions[sess.id] = sess
        return sess

    def get(self, session_id: str) -> Optional[CompostingSession]:
        with self._lock:
            return self._sessions.get(session_id)

    def update(self, session_id: str, **updates: Any) -> Optional[CompostingSession]:
        """Shallow-merge ``updates`` (field names) into the session and bump ``updated_at``."""
        with self._lock:
            sess = self._sessions.get(session_id)
            if sess is None:
                return None
            updated = sess.model_copy(update={**updates, "updated_at": utc_now()})
            self._sessions[session_id] = updated
            return updated

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list(self) -> List[CompostingSession]:
        with self._lock:
            return list(self._sessions.values())


_store: CompostingSessionStore | None = None


def get_compost_store() -> CompostingSessionStore:
    global _store
    if _store is None:
        _store = InMemoryCompostingSessionStore()
    return _store
