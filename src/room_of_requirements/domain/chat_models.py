from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .base import WireModel, new_id, utc_now

Role = Literal["system", "user", "assistant"]
Stage = Literal["concept", "description", "requirements", "prd", "tasks"]
UseCase = Literal["general", "research", "quick"]

STAGES: tuple[str, ...] = ("concept", "description", "requirements", "prd", "tasks")


class ChatMessage(WireModel):
    id: str = Field(default_factory=lambda: new_id("msg"))
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utc_now)
    model: Optional[str] = None
    use_case: Optional[UseCase] = None
    is_streaming: Optional[bool] = None


class ConversationSession(WireModel):
    id: str
    messages: List[ChatMessage] = Field(default_factory=list)
    stage: Stage = "concept"
    project_name: Optional[str] = None
    user_id: Optional[str] = None
    concept_understood: bool = False


class SendMessagePayload(WireModel):
    session_id: str
    message: str
    stage: Optional[Stage] = None
    use_case: Optional[UseCase] = None


class ChangeStagePayload(WireModel):
    session_id: str
    stage: Stage


class TypingPayload(WireModel):
    session_id: str
    is_typing: bool = False


class ChatMessageRequest(BaseModel):
    # unknown stages and use cases fall back to the concept prompt and default model
    message: Optional[str] = None
    stage: str = "concept"
    useCase: str = "general"


class ModelOption(WireModel):
    key: str
    id: str
    name: str
    description: str
    temperature: float
    max_tokens: int
    use_case: UseCase
