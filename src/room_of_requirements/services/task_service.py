from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..domain.base import utc_now
from ..domain.task_models import (
    TASK_STATUSES,
    ChecklistItem,
    NextTaskRecommendation,
    ProjectProgress,
    SprintProgress,
    Task,
    TaskProgress,
)
from ..infrastructure.task_store import TaskStore, get_task_store

logger = logging.getLogger(__name__)

CURRENT_SPRINT = 1

SPRINTS: Dict[int, Dict[str, Any]] = {
    1: {
        "name": "Foundation & Core Algorithm",
        "task_ids": ("TASK-001", "TASK-002", "TASK-003A", "TASK-003B", "TASK-003C", "TASK-003D", "TASK-004A"),
    },
    2: {
        "name": "Advanced UI & User Management",
        "task_ids": ("TASK-004B", "TASK-004C", "TASK-005", "TASK-006A", "TASK-006B", "TASK-007A", "TASK-008"),
    },
    3: {
        "name": "Authentication & Export",
        "task_ids": ("TASK-006C", "TASK-006D", "TASK-006E", "TASK-007B", "TASK-007C"),
    },
}


class TaskNotFoundError(LookupError):
    pass


class ChecklistItemNotFoundError(LookupError):
    pass


class InvalidStatusError(ValueError):
    pass


def _percent(part: int, whole: int) -> int:
    return round(part / whole * 100) if whole > 0 else 0


def task_progress(task: Task) -> TaskProgress:
    ac_done = sum(1 for i in task.acceptance_criteria if i.completed)
    ti_done = sum(1 for i in task.technical_implementation if i.completed)
    ac_total = len(task.acceptance_criteria)
    ti_total = len(task.technical_implementation)
    return TaskProgress(
        completion_percentage=_percent(ac_done + ti_done, ac_total + ti_total),
        acceptance_criteria_completed=ac_done,
        acceptance_criteria_total=ac_total,
        technical_implementation_completed=ti_done,
        technical_implementation_total=ti_total,
    )


def task_impact(task_id: str, tasks: List[Task]) -> int:
    """Number of tasks that ``task_id`` blocks."""
    return sum(1 for t in tasks if any(d.task_id == task_id and d.type == "blocks" for d in t.dependencies))


def impact_level(task: Task, tasks: List[Task]) -> str:
    impact = task_impact(task.id, tasks)
    if task.priority == "P0" or impact >= 5:
        return "critical"
    if task.priority == "P1" or impact >= 3:
        return "high"
    if task.priority == "P2" or impact >= 1:
        return "medium"
    return "low"


def recommendation_reason(task: Task, tasks: List[Task]) -> str:
    impact = task_impact(task.id, tasks)
    reasons: List[str] = []
    if task.priority == "P0":
        reasons.append("Critical priority - blocks all development")
    elif task.priority == "P1":
        reasons.append("High priority - core functionality")

    if impact >= 3:
        reasons.append(f"Unblocks {impact} tasks - high impact")
    elif impact > 0:
        reasons.append(f"Unblocks {impact} task{'s' if impact > 1 else ''}")

    if task.estimated_hours <= 2 and task.complexity <= 3:
        reasons.append("Quick win - low effort, low complexity")
    elif task.estimated_hours <= 2:
        reasons.append("Quick implementation")

    return " • ".join(reasons) if reasons else "Ready to start - no blocking dependencies"


def risk_level(completion: int) -> str:
    if completion < 25:
        return "high"
    if completion < 50:
        return "medium"
    return "low"


def is_unblocked(task: Task, tasks: List[Task]) -> bool:
    by_id = {t.id: t for t in tasks}
    for dep in task.dependencies:
        if dep.type != "blocks":
            continue
        other = by_id.get(dep.task_id)
        if other is not None and other.status != "completed":
            return False
    return True


class TaskService:
    def __init__(self, store: Optional[TaskStore] = None) -> None:
        self.store = store or get_task_store()

    def list_tasks(self) -> Dict[str, Any]:
        data = self.store.load()
        tasks = data.tasks
        return {
            "tasks": [{**t.to_wire(), "progress": task_progress(t).to_wire()} for t in tasks],
            "metadata": data.metadata.to_wire(),
            "summary": {
                "totalTasks": len(tasks),
                "completedTasks": sum(1 for t in tasks if t.status == "completed"),
                "inProgressTasks": sum(1 for t in tasks if t.status == "in-progress"),
                "blockedTasks": sum(1 for t in tasks if t.status == "blocked"),
                "notStartedTasks": sum(1 for t in tasks if t.status == "not-started"),
            },
        }

    def get_task(self, task_id: str) -> Task:
        for t in self.store.load().tasks:
            if t.id == task_id:
                return t
        raise TaskNotFoundError("Task not found")

    def project_progress(self) -> ProjectProgress:
        tasks = self.store.load().tasks
        completed = sum(1 for t in tasks if t.status == "completed")
        return ProjectProgress(
            total_tasks=len(tasks),
            completed_tasks=completed,
            in_progress_tasks=sum(1 for t in tasks if t.status == "in-progress"),
            blocked_tasks=sum(1 for t in tasks if t.status == "blocked"),
            overall_completion_percentage=_percent(completed, len(tasks)),
            estimated_remaining_hours=sum(t.estimated_hours for t in tasks if t.status != "completed"),
            actual_hours_spent=sum(t.actual_hours or 0 for t in tasks),
            current_sprint=CURRENT_SPRINT,
            sprint_progress=self.sprint_progress(tasks),
        )

    def sprint_progress(self, tasks: List[Task]) -> List[SprintProgress]:
        out: List[SprintProgress] = []
        for number, sprint in SPRINTS.items():
            members = [t for t in tasks if t.id in sprint["task_ids"]]
            done = sum(1 for t in members if t.status == "completed")
            pct = _percent(done, len(members))
            out.append(
                SprintProgress(
                    sprint_number=number,
                    name=sprint["name"],
                    total_tasks=len(members),
                    completed_tasks=done,
                    estimated_hours=sum(t.estimated_hours for t in members),
                    actual_hours=sum(t.actual_hours or 0 for t in members),
                    completion_percentage=pct,
                    risk_level=risk_level(pct),
                )
            )
        return out

    def next_recommendation(self) -> Optional[NextTaskRecommendation]:
        tasks = self.store.load().tasks
        available = [t for t in tasks if t.status == "not-started" and is_unblocked(t, tasks)]
        if not available:
            return None
        # lowest priority number first, then the task that unblocks the most
        best = min(available, key=lambda t: (int(t.priority[1:]), -task_impact(t.id, tasks)))
        return NextTaskRecommendation(
            task_id=best.id,
            title=best.title,
            priority=best.priority,
            estimated_hours=best.estimated_hours,
            complexity=best.complexity,
            reason=recommendation_reason(best, tasks),
            ready_to_start=True,
            dependencies=[d.task_id for d in best.dependencies],
            impact=impact_level(best, tasks),
        )

    def update_status(self, task_id: str, status: Any) -> Task:
        if status not in TASK_STATUSES:
            raise InvalidStatusError("Invalid status value")
        with self.store.locked():
            data = self.store.load()
            task = next((t for t in data.tasks if t.id == task_id), None)
            if task is None:
                raise TaskNotFoundError("Task not found")
            now = utc_now()
            task.status = status
            task.updated_at = now
            if status == "completed":
                task.completed_at = now
                for item in task.acceptance_criteria + task.technical_implementation:
                    item.completed = True
            self.store.save(data)
        logger.info("Task %s status set to %s", task_id, status)
        return task

    def _update_item(self, task_id: str, item_id: str, completed: Any, field: str, missing: str) -> ChecklistItem:
        if not isinstance(completed, bool):
            raise ValueError("Completed must be a boolean value")
        with self.store.locked():
            data = self.store.load()
            task = next((t for t in data.tasks if t.id == task_id), None)
            if task is None:
                raise TaskNotFoundError("Task not found")
            item = next((i for i in getattr(task, field) if i.id == item_id), None)
            if item is None:
                raise ChecklistItemNotFoundError(missing)
            item.completed = completed
            task.updated_at = utc_now()
            self.store.save(data)
        return item

    def update_acceptance_criteria(self, task_id: str, criteria_id: str, completed: Any) -> ChecklistItem:
        return self._update_item(task_id, criteria_id, completed, "acceptance_criteria", "Acceptance criteria not found")

    def update_technical_implementation(self, task_id: str, implementation_id: str, completed: Any) -> ChecklistItem:
        return self._update_item(
            task_id, implementation_id, completed, "technical_implementation", "Technical implementation not found"
        )


_service: Optional[TaskService] = None


def get_task_service() -> TaskService:
    global _service
    if _service is None:
        _service = TaskService()
    return _service
