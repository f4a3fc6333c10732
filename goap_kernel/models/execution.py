"""Execution models — action context/results, tasks and lifecycle events."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from goap_kernel.models.planning import ActionPlan, Goal
from goap_kernel.models.world import WorldState


class ActionResult(BaseModel):
    """Outcome of one action. Failure is data, never an exception."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    success: bool
    new_state: Optional[Dict[str, Any]] = None   # Fragment merged into world state
    data: Any = None                             # Opaque payload
    error: Optional[BaseException] = None
    duration_seconds: float = 0.0


class ActionContext(BaseModel):
    """What an action's behavior sees when it runs."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    world_state: WorldState
    goal: Goal
    task_context: Any = None
    step_index: int = 0
    previous_results: List[ActionResult] = []


class Task(BaseModel):
    """A request to reach a named goal."""

    goal: str
    context: Any = None


class TaskStatus(str, Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskOutcome(BaseModel):
    """Diagnostic record of the last task an executor ran."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    task_id: str
    goal: str
    status: TaskStatus
    plan: Optional[ActionPlan] = None
    action_results: List[ActionResult] = []
    result: Any = None
    error: Optional[BaseException] = None
    duration_seconds: float = 0.0


class EventType(str, Enum):
    TASK_STARTED = "task-started"
    ACTION_STARTED = "action-started"
    ACTION_COMPLETED = "action-completed"
    STATE_UPDATED = "state-updated"
    TASK_COMPLETED = "task-completed"
    TASK_FAILED = "task-failed"


class LifecycleEvent(BaseModel):
    """Progress notification delivered to executor subscribers."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type: EventType
    agent: str
    task_id: str
    payload: Dict[str, Any] = {}
    timestamp: datetime = Field(default_factory=datetime.utcnow)
