from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Optional, Protocol

from pydantic import ValidationError

from ..config import get_settings
from ..domain.base import utc_now
from ..domain.task_models import TaskMasterData

logger = logging.getLogger(__name__)


class TaskStoreError(RuntimeError):
    pass


def default_task_data() -> TaskMasterData:
    """Seed data used when no task file exists yet."""
    return TaskMasterData.model_validate(
        {
            "tasks": [
                {
                    "id": "TASK-001",
                    "title": "Fix Port Configuration Issues",
                    "description": "Resolve port conflicts between frontend and backend services",
                    "priority": "P0",
                    "status": "not-started",
                    "category": "devops",
                    "estimatedHours": 2,
                    "complexity": 2,
                    "dependencies": [],
                    "acceptanceCriteria": [
                        {"id": "AC-001-1", "description": "Frontend consistently runs on port 3000"},
                        {"id": "AC-001-2", "description": "Backend consistently runs on port 3001"},
                        {"id": "AC-001-3", "description": "No port collision errors during development"},
                        {"id": "AC-001-4", "description": "Updated documentation with correct configuration"},
                    ],
                    "technicalImplementation": [
                        {"id": "TI-001-1", "description": "Update Vite configuration for frontend port"},
                        {"id": "TI-001-2", "description": "Update backend server configuration"},
                        {"id": "TI-001-3", "description": "Update package.json scripts"},
                        {"id": "TI-001-4", "description": "Test port configuration in development"},
                    ],
                }
            ],
            "metadata": {"totalTasks": 1, "completedTasks": 0},
        }
    )


class TaskStore(Protocol):
    def load(self) -> TaskMasterData: ...
    def save(self, data: TaskMasterData) -> TaskMasterData: ...
    def locked(self) -> RLock: ...


class FileTaskStore:
    """JSON file-backed task list.

    The file is re-read on every :meth:`load` and rewritten wholesale on
    every :meth:`save`. Callers hold :meth:`locked` around a
    load/modify/save cycle; this only serializes writers in one process.
    """

    def __init__(self, file_path: Optional[str] = None) -> None:
        self._lock = RLock()
        self._path = Path(file_path) if file_path else get_settings().tasks_file

    @property
    def path(self) -> Path:
        return self._path

    def locked(self) -> RLock:
        return self._lock

    def load(self) -> TaskMasterData:
        """Read the task file, or the seed data when no file exists yet.

        An existing file that cannot be read is an error, never replaced by
        the seed, so a later save cannot overwrite it.
        """
        with self._lock:
            if not self._path.exists():
                return default_task_data()
            try:
                return TaskMasterData.model_validate(json.loads(self._path.read_text(encoding="utf-8")))
            except (OSError, ValueError, ValidationError) as exc:
                logger.error("Error loading task data from %s: %s", self._path, exc)
                raise TaskStoreError("Failed to load TaskMaster data") from exc

    def save(self, data: TaskMasterData) -> TaskMasterData:
        with self._lock:
            data.metadata.last_updated = utc_now()
            data.metadata.total_tasks = len(data.tasks)
            data.metadata.completed_tasks = sum(1 for t in data.tasks if t.status == "completed")
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                self._path.write_text(json.dumps(data.to_wire(), indent=2), encoding="utf-8")
            except OSError as exc:
                logger.error("Error saving task data to %s: %s", self._path, exc)
                raise TaskStoreError("Failed to save TaskMaster data") from exc
            return data


_store: Optional[TaskStore] = None


def get_task_store() -> TaskStore:
    global _store
    if _store is None:
        _store = FileTaskStore()
    return _store
