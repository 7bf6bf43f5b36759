from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from .base import WireModel, utc_now

ComponentType = Literal["code", "documentation", "configuration", "design", "other"]
CompostStatus = Literal["uploading", "describing", "processing", "reviewing", "completed"]

COMPONENT_TYPES: tuple[str, ...] = ("code", "documentation", "configuration", "design", "other")


class FileMetadata(WireModel):
    pages: Optional[int] = None
    word_count: int = 0
    extracted_at: datetime = Field(default_factory=utc_now)


class ProcessedFile(WireModel):
    id: str
    original_name: str
    mime_type: str
    size: int
    content: str
    metadata: FileMetadata = Field(default_factory=FileMetadata)


class ComponentChunk(WireModel):
    id: str
    title: str
    content: str
    type: ComponentType = "other"
    tags: List[str] = Field(default_factory=list)
    reusability_score: int = Field(default=50, ge=0, le=100)
    dependencies: Optional[List[str]] = None


class CompostProgressCounters(WireModel):
    files_processed: int = 0
    total_files: int = 0
    components_extracted: int = 0
    current_step: str = "Waiting for file upload"


class CompostingSession(WireModel):
    id: str
    user_id: Optional[str] = None
    project_name: str = "Untitled Project"
    project_description: str = ""
    files: List[ProcessedFile] = Field(default_factory=list)
    components: List[ComponentChunk] = Field(default_factory=list)
    status: CompostStatus = "uploading"
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    progress: CompostProgressCounters = Field(default_factory=CompostProgressCounters)


class CompostingProgress(WireModel):
    session_id: str
    step: str
    progress: int
    message: str
    data: Optional[Dict[str, Any]] = None


class SessionStats(WireModel):
    session_id: str
    project_name: str
    status: CompostStatus
    files_count: int
    components_count: int
    total_words: int
    average_reusability_score: int
    created_at: datetime
    updated_at: datetime


class UploadedFile(WireModel):
    """A file persisted to the upload directory awaiting extraction."""

    path: str
    original_name: str
    mime_type: str


class CreateCompostSessionRequest(WireModel):
    project_name: Optional[str] = None


class ProjectDescriptionRequest(WireModel):
    description: Optional[str] = None
