from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, status

from ...domain.task_models import CompletionUpdate, StatusUpdate
from ...infrastructure.task_store import TaskStoreError
from ...services.task_service import (
    ChecklistItemNotFoundError,
    InvalidStatusError,
    TaskNotFoundError,
    get_task_service,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tasks", tags=["tasks"])


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _store_failed(exc: TaskStoreError) -> HTTPException:
    return HTTPException(status_code=500, detail=str(exc))


@router.get("")
def list_tasks() -> Dict[str, Any]:
    try:
        return get_task_service().list_tasks()
    except TaskStoreError as exc:
        raise _store_failed(exc) from exc


# Static paths are registered before /{task_id} so they are not captured by it.
@router.get("/progress")
def project_progress() -> Dict[str, Any]:
    try:
        return get_task_service().project_progress().to_wire()
    except TaskStoreError as exc:
        raise _store_failed(exc) from exc


@router.get("/next-recommendation")
def next_recommendation() -> Dict[str, Any]:
    try:
        rec = get_task_service().next_recommendation()
    except TaskStoreError as exc:
        raise _store_failed(exc) from exc
    return {"recommendation": rec.to_wire() if rec else None}


@router.get("/{task_id}")
def get_task(task_id: str) -> Dict[str, Any]:
    try:
        task = get_task_service().get_task(task_id)
    except TaskNotFoundError as exc:
        raise _not_found(exc) from exc
    except TaskStoreError as exc:
        raise _store_failed(exc) from exc
    return {"task": task.to_wire()}


@router.put("/{task_id}/status")
def update_status(task_id: str, payload: StatusUpdate) -> Dict[str, Any]:
    try:
        task = get_task_service().update_status(task_id, payload.status)
    except InvalidStatusError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except TaskNotFoundError as exc:
        raise _not_found(exc) from exc
    except TaskStoreError as exc:
        raise _store_failed(exc) from exc
    return {"message": "Task status updated successfully", "task": task.to_wire()}


@router.put("/{task_id}/acceptance-criteria/{criteria_id}")
def update_acceptance_criteria(task_id: str, criteria_id: str, payload: CompletionUpdate) -> Dict[str, Any]:
    try:
        item = get_task_service().update_acceptance_criteria(task_id, criteria_id, payload.completed)
    except (TaskNotFoundError, ChecklistItemNotFoundError) as exc:
        raise _not_found(exc) from exc
    except TaskStoreError as exc:
        raise _store_failed(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"message": "Acceptance criteria updated successfully", "criteria": item.to_wire()}


@router.put("/{task_id}/technical-implementation/{implementation_id}")
def update_technical_implementation(task_id: str, implementation_id: str, payload: CompletionUpdate) -> Dict[str, Any]:
    try:
        item = get_task_service().update_technical_implementation(task_id, implementation_id, payload.completed)
    except (TaskNotFoundError, ChecklistItemNotFoundError) as exc:
        raise _not_found(exc) from exc
    except TaskStoreError as exc:
        raise _store_failed(exc) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"message": "Technical implementation updated successfully", "implementation": item.to_wire()}
