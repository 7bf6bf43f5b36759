from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, status

from ...domain.chat_models import ChatMessageRequest
from ...infrastructure.conversation_store import get_conversation_store
from ...services.openrouter import (
    GatewayConfigError,
    available_models,
    format_conversation,
    get_openrouter_client,
    get_system_prompt,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["chat"])


@router.post("/chat/message")
def post_chat_message(payload: ChatMessageRequest) -> Dict[str, Any]:
    """One-shot, non-streaming chat turn outside any conversation session."""
    if not payload.message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")
    try:
        client = get_openrouter_client()
    except GatewayConfigError as exc:
        logger.error("Chat API unavailable: %s", exc)
        raise HTTPException(status_code=500, detail="OpenRouter service not available") from exc

    messages = format_conversation(payload.message, get_system_prompt(payload.stage))
    try:
        completion = client.send_message(messages, payload.useCase)
    except Exception as exc:
        logger.error("Chat API error: %s", exc)
        raise HTTPException(status_code=500, detail=f"Failed to process chat message: {exc}") from exc

    if not isinstance(completion, dict) or "choices" not in completion:
        raise HTTPException(status_code=500, detail="Unexpected response format")
    choices = completion.get("choices") or [{}]
    content = ((choices[0] or {}).get("message") or {}).get("content")
    return {
        "message": content or "No response",
        "usage": completion.get("usage"),
        "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
    }


@router.get("/chat/models")
def list_models() -> Dict[str, Any]:
    return {"models": [m.to_wire() for m in available_models()]}


@router.get("/conversations/{session_id}/export")
def export_conversation(session_id: str) -> Dict[str, Any]:
    sess = get_conversation_store().export(session_id)
    if sess is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return sess.to_wire()
