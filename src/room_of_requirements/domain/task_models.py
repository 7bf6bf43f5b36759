from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import Field

from .base import WireModel, utc_now

TaskPriority = Literal["P0", "P1", "P2", "P3", "P4"]
TaskStatus = Literal["not-started", "in-progress", "review", "completed", "blocked"]
DependencyType = Literal["blocks", "enables", "related"]
ImpactLevel = Literal["low", "medium", "high", "critical"]
RiskLevel = Literal["low", "medium", "high", "very-high"]

TASK_STATUSES: tuple[str, ...] = ("not-started", "in-progress", "review", "completed", "blocked")


class TaskDependency(WireModel):
    task_id: str
    type: DependencyType


class ChecklistItem(WireModel):
    """Acceptance criterion or technical implementation step."""

    id: str
    description: str
    completed: bool = False


class Task(WireModel):
    id: str
    title: str
    description: str
    priority: TaskPriority
    status: TaskStatus = "not-started"
    # usually frontend, backend, database, devops, testing or documentation
    category: str
    estimated_hours: float
    actual_hours: Optional[float] = None
    complexity: int = Field(ge=1, le=10)
    dependencies: List[TaskDependency] = Field(default_factory=list)
    acceptance_criteria: List[ChecklistItem] = Field(default_factory=list)
    technical_implementation: List[ChecklistItem] = Field(default_factory=list)
    parent_task_id: Optional[str] = None
    assignee: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


class TaskMasterMetadata(WireModel):
    project_name: str = "Room of Requirements"
    version: str = "1.0.0"
    last_updated: datetime = Field(default_factory=utc_now)
    total_tasks: int = 0
    completed_tasks: int = 0


class TaskMasterData(WireModel):
    tasks: List[Task] = Field(default_factory=list)
    metadata: TaskMasterMetadata = Field(default_factory=TaskMasterMetadata)


class TaskProgress(WireModel):
    completion_percentage: int
    acceptance_criteria_completed: int
    acceptance_criteria_total: int
    technical_implementation_completed: int
    technical_implementation_total: int


class SprintProgress(WireModel):
    sprint_number: int
    name: str
    total_tasks: int
    completed_tasks: int
    estimated_hours: float
    actual_hours: float
    completion_percentage: int
    risk_level: RiskLevel


class ProjectProgress(WireModel):
    total_tasks: int
    completed_tasks: int
    in_progress_tasks: int
    blocked_tasks: int
    overall_completion_percentage: int
    estimated_remaining_hours: float
    actual_hours_spent: float
    current_sprint: int
    sprint_progress: List[SprintProgress]


class NextTaskRecommendation(WireModel):
    task_id: str
    title: str
    priority: TaskPriority
    estimated_hours: float
    complexity: int
    reason: str
    ready_to_start: bool
    dependencies: List[str]
    impact: ImpactLevel


class StatusUpdate(WireModel):
    status: Any = None


class CompletionUpdate(WireModel):
    completed: Any = None
