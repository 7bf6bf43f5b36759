from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

import anyio.from_thread
from fastapi import APIRouter, Body, File, HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool

from ...config import get_settings
from ...domain.compost_models import (
    CompostingProgress,
    CreateCompostSessionRequest,
    ProjectDescriptionRequest,
    UploadedFile,
)
from ...infrastructure.realtime import get_connection_manager
from ...services.composting_service import NoFilesToProcessError, SessionNotFoundError, get_composting_service
from ...services.file_processor import MAX_UPLOAD_BYTES, MAX_UPLOAD_FILES, is_allowed_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/compost", tags=["compost"])

_CHUNK = 1024 * 1024


def _session_not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")


def _progress_broadcaster(session_id: str):
    """Callback for worker threads that relays progress to the session's room."""
    manager = get_connection_manager()

    def notify(event: CompostingProgress) -> None:
        anyio.from_thread.run(manager.emit, session_id, "composting-progress", event.to_wire())

    return notify


async def _persist_upload(upload: UploadFile, upload_dir: Path) -> UploadedFile:
    name = Path(upload.filename or "upload").name
    target = upload_dir / f"files-{uuid.uuid4().hex}-{name}"
    size = 0
    try:
        with target.open("wb") as out:
            while True:
                chunk = await upload.read(_CHUNK)
                if not chunk:
                    break
                size += len(chunk)
                if size > MAX_UPLOAD_BYTES:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST, detail=f"File too large: {name}"
                    )
                out.write(chunk)
    except HTTPException:
        target.unlink(missing_ok=True)
        raise
    finally:
        await upload.close()
    return UploadedFile(path=str(target), original_name=name, mime_type=upload.content_type or "application/octet-stream")


@router.post("/session")
def create_session(payload: Optional[CreateCompostSessionRequest] = Body(default=None)) -> Dict[str, Any]:
    project_name = (payload.project_name if payload else None) or "Untitled Project"
    sess = get_composting_service().create_session(project_name)
    return {
        "success": True,
        "session": {
            "id": sess.id,
            "projectName": sess.project_name,
            "status": sess.status,
            "progress": sess.progress.to_wire(),
        },
    }


@router.get("/session/{session_id}")
def get_session(session_id: str) -> Dict[str, Any]:
    sess = get_composting_service().get_session(session_id)
    if sess is None:
        raise _session_not_found()
    return {"success": True, "session": sess.to_wire()}


@router.post("/session/{session_id}/upload")
async def upload_files(session_id: str, files: Optional[List[UploadFile]] = File(default=None)) -> Dict[str, Any]:
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files uploaded")
    if len(files) > MAX_UPLOAD_FILES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Too many files (max {MAX_UPLOAD_FILES})"
        )
    for f in files:
        if not is_allowed_upload(f.filename or "", f.content_type):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unsupported file type: {f.content_type} ({f.filename})",
            )
    service = get_composting_service()
    if service.get_session(session_id) is None:
        raise _session_not_found()

    upload_dir = get_settings().upload_dir
    upload_dir.mkdir(parents=True, exist_ok=True)
    uploads: List[UploadedFile] = []
    try:
        for f in files:
            uploads.append(await _persist_upload(f, upload_dir))
    except Exception:
        for saved in uploads:
            Path(saved.path).unlink(missing_ok=True)
        raise
    logger.info("Received %d files for composting session %s", len(uploads), session_id)

    try:
        processed = await run_in_threadpool(
            service.process_files, session_id, uploads, _progress_broadcaster(session_id)
        )
    except SessionNotFoundError as exc:
        raise _session_not_found() from exc
    return {
        "success": True,
        "message": f"Successfully processed {len(processed)} files",
        "files": [
            {"id": p.id, "originalName": p.original_name, "size": p.size, "wordCount": p.metadata.word_count}
            for p in processed
        ],
    }


@router.post("/session/{session_id}/description")
def update_description(session_id: str, payload: ProjectDescriptionRequest) -> Dict[str, Any]:
    if not payload.description:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Description is required")
    sess = get_composting_service().update_project_description(session_id, payload.description)
    if sess is None:
        raise _session_not_found()
    return {"success": True, "session": sess.to_wire()}


@router.post("/session/{session_id}/extract")
async def extract_components(session_id: str) -> Dict[str, Any]:
    service = get_composting_service()
    if service.get_session(session_id) is None:
        raise _session_not_found()
    try:
        components = await run_in_threadpool(
            service.extract_components, session_id, _progress_broadcaster(session_id)
        )
    except SessionNotFoundError as exc:
        raise _session_not_found() from exc
    except NoFilesToProcessError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {
        "success": True,
        "message": f"Successfully extracted {len(components)} components",
        "components": [
            {
                "id": c.id,
                "title": c.title,
                "type": c.type,
                "tags": c.tags,
                "reusabilityScore": c.reusability_score,
                "dependencies": c.dependencies,
            }
            for c in components
        ],
    }


@router.post("/session/{session_id}/complete")
def complete_session(session_id: str) -> Dict[str, Any]:
    sess = get_composting_service().complete_session(session_id)
    if sess is None:
        raise _session_not_found()
    return {"success": True, "session": sess.to_wire()}


@router.delete("/session/{session_id}")
def delete_session(session_id: str) -> Dict[str, Any]:
    if not get_composting_service().delete_session(session_id):
        raise _session_not_found()
    return {"success": True}


@router.get("/sessions")
def list_sessions() -> Dict[str, Any]:
    service = get_composting_service()
    sessions = service.list_sessions()
    stats = [service.session_stats(s.id) for s in sessions]
    return {
        "success": True,
        "sessions": [s.to_wire() for s in stats if s is not None],
        "totalSessions": len(sessions),
        "activeSessions": sum(1 for s in sessions if s.status != "completed"),
    }
