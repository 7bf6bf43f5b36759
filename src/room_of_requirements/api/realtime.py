"""WebSocket endpoint for conversation rooms.

Inbound frames use the same ``{"event", "data"}`` envelope as outbound ones.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import anyio
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..infrastructure.conversation_store import get_conversation_store
from ..infrastructure.realtime import WebSocketClient, get_connection_manager
from ..services.conversation import ConversationOrchestrator
from ..services.openrouter import get_openrouter_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def get_orchestrator() -> ConversationOrchestrator:
    return ConversationOrchestrator(get_conversation_store(), get_connection_manager(), get_openrouter_client)


def _session_id(data: Any) -> Any:
    if isinstance(data, dict):
        return data.get("sessionId") or data.get("session_id")
    return data


def parse_frame(text: str) -> Optional[Dict[str, Any]]:
    """Decode an inbound frame; anything but a JSON object yields ``None``."""
    try:
        frame = json.loads(text)
    except ValueError:
        return None
    return frame if isinstance(frame, dict) else None


@router.websocket("/ws")
async def conversation_socket(websocket: WebSocket) -> None:
    await websocket.accept()
    client = WebSocketClient(websocket)
    manager = get_connection_manager()
    orchestrator = get_orchestrator()
    logger.info("Client connected: %s", client.client_id)
    try:
        # send-message replies run as child tasks; leaving the group waits for any still in flight
        async with anyio.create_task_group() as replies:
            try:
                while True:
                    frame = parse_frame(await websocket.receive_text())
                    if frame is None:
                        logger.info("Malformed frame from %s", client.client_id)
                        await manager.emit_to(client, "error", {"message": "Malformed frame"})
                        continue
                    event, data = frame.get("event"), frame.get("data")
                    if event == "join-conversation":
                        try:
                            await orchestrator.join(client, _session_id(data))
                        except ValueError:
                            continue
                    elif event == "send-message":
                        replies.start_soon(orchestrator.send_message, client, data if isinstance(data, dict) else {})
                    elif event == "change-stage":
                        await orchestrator.change_stage(data if isinstance(data, dict) else {}, client)
                    elif event == "typing":
                        await orchestrator.typing(client, data if isinstance(data, dict) else {})
                    else:
                        logger.debug("Ignoring unknown event %r from %s", event, client.client_id)
            except WebSocketDisconnect:
                logger.info("Client disconnected: %s", client.client_id)
                manager.leave_all(client)
    finally:
        manager.leave_all(client)
