"""Room-based fan-out over WebSocket connections.

Every frame is a JSON envelope ``{"event": <name>, "data": <payload>}``.
Rooms are keyed by conversation (or composting) session id.
"""

from __future__ import annotations

import logging
import uuid
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)


class RealtimeClient(Protocol):
    client_id: str

    async def send_json(self, data: Any) -> None: ...


class Broadcaster(Protocol):
    async def emit(self, room: str, event: str, data: Any) -> None: ...

    async def emit_to(self, client: RealtimeClient, event: str, data: Any) -> None: ...

    async def emit_to_others(self, client: RealtimeClient, room: str, event: str, data: Any) -> None: ...

    def join(self, client: RealtimeClient, room: str) -> None: ...


class WebSocketClient:
    """Adapter giving a Starlette ``WebSocket`` a stable id."""

    def __init__(self, websocket: Any) -> None:
        self.websocket = websocket
        self.client_id = uuid.uuid4().hex

    async def send_json(self, data: Any) -> None:
        await self.websocket.send_json(data)


def envelope(event: str, data: Any) -> Dict[str, Any]:
    return {"event": event, "data": data}


class ConnectionManager:
    def __init__(self) -> None:
        self._rooms: Dict[str, Dict[str, RealtimeClient]] = {}
        self._memberships: Dict[str, Set[str]] = {}
        self._lock = RLock()

    def join(self, client: RealtimeClient, room: str) -> None:
        with self._lock:
            self._rooms.setdefault(room, {})[client.client_id] = client
            self._memberships.setdefault(client.client_id, set()).add(room)

    def leave_all(self, client: RealtimeClient) -> None:
        with self._lock:
            for room in self._memberships.pop(client.client_id, set()):
                members = self._rooms.get(room)
                if members is None:
                    continue
                members.pop(client.client_id, None)
                if not members:
                    del self._rooms[room]

    def members(self, room: str) -> List[RealtimeClient]:
        with self._lock:
            return list(self._rooms.get(room, {}).values())

    def rooms_of(self, client: RealtimeClient) -> Set[str]:
        with self._lock:
            return set(self._memberships.get(client.client_id, set()))

    async def _send(self, client: RealtimeClient, frame: Dict[str, Any]) -> bool:
        try:
            await client.send_json(frame)
            return True
        except Exception as exc:
            logger.info("Dropping unreachable client %s: %s", client.client_id, exc)
            self.leave_all(client)
            return False

    async def emit(self, room: str, event: str, data: Any) -> None:
        frame = envelope(event, data)
        for client in self.members(room):
            await self._send(client, frame)
        logger.debug("Broadcasted %s to session %s", event, room)

    async def emit_to(self, client: RealtimeClient, event: str, data: Any) -> None:
        await self._send(client, envelope(event, data))

    async def emit_to_others(self, client: RealtimeClient, room: str, event: str, data: Any) -> None:
        frame = envelope(event, data)
        for member in self.members(room):
            if member.client_id != client.client_id:
                await self._send(member, frame)


class RealtimeChatClient:
    """Client-side helper that mirrors the web client's connection guard.

    ``send_message`` only emits ``send-message`` while connected.
    """

    def __init__(self, websocket: Optional[Any] = None, session_id: Optional[str] = None) -> None:
        self.websocket = websocket
        self.session_id = session_id
        self.is_connected = websocket is not None

    def connect(self, websocket: Any, session_id: str) -> None:
        self.websocket = websocket
        self.session_id = session_id
        self.is_connected = True
        self.websocket.send_json(envelope("join-conversation", session_id))

    def disconnect(self) -> None:
        self.is_connected = False
        self.websocket = None

    def send_message(self, message: str, stage: Optional[str] = None, use_case: str = "general") -> bool:
        text = (message or "").strip()
        if not self.is_connected or self.websocket is None or not text:
            return False
        payload: Dict[str, Any] = {"sessionId": self.session_id, "message": text, "useCase": use_case}
        if stage:
            payload["stage"] = stage
        self.websocket.send_json(envelope("send-message", payload))
        return True


_manager: ConnectionManager | None = None


def get_connection_manager() -> ConnectionManager:
    global _manager
    if _manager is None:
        _manager = ConnectionManager()
    return _manager
