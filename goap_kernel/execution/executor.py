"""
Agent Executor — runs a goal's plan against the live world state.

Behavioral Contract:
- One task: PLANNING → EXECUTING → COMPLETED | FAILED
- Tasks on one agent run one at a time, in arrival order
- Actions run strictly in order, never concurrently within a task
- An action racing past its timeout yields a failed result, not an exception
- The first failed action aborts the task; effects of earlier successful
  actions stay applied (no rollback)
- Lifecycle events go to subscribers registered through ``subscribe``;
  the executor works the same with no subscribers at all

A timeout stops waiting for an action. Remote work the action already
dispatched keeps running unless the underlying call cooperates with
cancellation.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from uuid import uuid4

from goap_kernel.errors import ActionFailed, ActionTimedOut, GoalNotFound
from goap_kernel.models.config import ExecutorConfig, PlannerConfig
from goap_kernel.models.execution import (
    ActionContext,
    ActionResult,
    EventType,
    LifecycleEvent,
    Task,
    TaskOutcome,
    TaskStatus,
)
from goap_kernel.models.planning import Action, Goal
from goap_kernel.models.world import WorldState
from goap_kernel.observability.monitor import PerformanceMonitor, Timer, measure_async
from goap_kernel.planning.planner import Planner
from goap_kernel.world_model.store import WorldStateStore

logger = logging.getLogger(__name__)

EventListener = Callable[[LifecycleEvent], None]


class _DeadlineExceeded(Exception):
    """The executor's own action timeout ran out."""


class AgentExecutor:
    """A GOAP agent: registered goals and actions plus its own world state."""

    def __init__(
        self,
        name: str,
        goals: Iterable[Goal],
        actions: Iterable[Action],
        initial_state: Optional[Mapping] = None,
        planner_config: Optional[PlannerConfig] = None,
        config: Optional[ExecutorConfig] = None,
        monitor: Optional[PerformanceMonitor] = None,
        planner: Optional[Planner] = None,
    ):
        self.name = name
        self._goals: Dict[str, Goal] = {g.name: g for g in goals}
        self._actions: Tuple[Action, ...] = tuple(actions)
        self.world_store = WorldStateStore(initial_state)
        self.planner = planner or Planner(self._actions, planner_config)
        self.config = config or ExecutorConfig()
        self.monitor = monitor
        self._listeners: List[EventListener] = []
        self.last_outcome: Optional[TaskOutcome] = None
        self._task_lock = asyncio.Lock()

    # --- Read-only views ---

    @property
    def world_state(self) -> WorldState:
        return self.world_store.state

    @property
    def goals(self) -> Tuple[Goal, ...]:
        """Registered goals, highest priority first."""
        return tuple(sorted(self._goals.values(), key=lambda g: -g.priority))

    @property
    def actions(self) -> Tuple[Action, ...]:
        return self._actions

    def get_goal(self, name: str) -> Optional[Goal]:
        return self._goals.get(name)

    # --- Events ---

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event_type: EventType, task_id: str, payload: Dict[str, Any]) -> None:
        event = LifecycleEvent(type=event_type, agent=self.name, task_id=task_id, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener failed on %s event for agent %s", event_type.value, self.name)

    # --- Execution ---

    async def execute(self, task: Union[Task, str], context: Any = None) -> Any:
        """
        Plan and run ``task``; returns the last action payload.

        Accepts a Task or a goal name plus context.
        """
        outcome = await self.execute_task(task, context)
        return outcome.result

    async def execute_task(self, task: Union[Task, str], context: Any = None) -> TaskOutcome:
        """
        Like ``execute`` but returns this task's own TaskOutcome.

        ``last_outcome`` only describes the latest task; callers that need
        the record of the task they started use this return value.
        """
        if not isinstance(task, Task):
            task = Task(goal=task, context=context)
        outcome = TaskOutcome(task_id=f"task_{uuid4().hex[:12]}", goal=task.goal, status=TaskStatus.PLANNING)
        async with self._task_lock:
            self.last_outcome = outcome
            await measure_async(
                self.monitor,
                "agent_execution",
                self._execute,
                task,
                outcome,
                metadata={"agent": self.name, "goal": task.goal},
            )
        return outcome

    async def _execute(self, task: Task, outcome: TaskOutcome) -> Any:
        task_id = outcome.task_id
        start = time.monotonic()

        self._emit(EventType.TASK_STARTED, task_id, {"goal": task.goal, "context": task.context})

        try:
            goal = self._goals.get(task.goal)
            if goal is None:
                raise GoalNotFound(
                    f"Goal '{task.goal}' not found in agent '{self.name}'",
                    task.goal,
                    self.world_store.get_state_snapshot(),
                )

            with Timer(self.monitor, "action_planning", {"agent": self.name, "goal": goal.name}):
                plan = self.planner.plan(goal, self.world_store.state)
            outcome.plan = plan
            outcome.status = TaskStatus.EXECUTING

            result = task.context
            results: List[ActionResult] = []
            total = len(plan.actions)

            for index, action in enumerate(plan.actions):
                step = index + 1
                self._emit(EventType.ACTION_STARTED, task_id, {
                    "action": action.name,
                    "step": step,
                    "total": total,
                })

                action_context = ActionContext(
                    world_state=self.world_store.state,
                    goal=goal,
                    task_context=task.context,
                    step_index=index,
                    previous_results=results,
                )
                action_result = await self.run_action(action, action_context)
                results.append(action_result)
                outcome.action_results = list(results)

                if not action_result.success:
                    error = self._action_error(action, action_result, goal, step)
                    raise error from action_result.error

                fragment = action_result.new_state if action_result.new_state is not None else action.effects
                update = self.world_store.update(fragment)
                self._emit(EventType.STATE_UPDATED, task_id, {
                    "action": action.name,
                    "previous": update.previous,
                    "current": update.current,
                    "changes": update.changes,
                    "diff": update.diff,
                })

                if action_result.data is not None:
                    result = action_result.data

                self._emit(EventType.ACTION_COMPLETED, task_id, {
                    "action": action.name,
                    "duration_seconds": action_result.duration_seconds,
                    "step": step,
                })
        except Exception as exc:
            duration = time.monotonic() - start
            outcome.status = TaskStatus.FAILED
            outcome.error = exc
            outcome.duration_seconds = duration
            logger.error(
                "Task execution failed for agent %s, goal '%s': %s",
                self.name,
                task.goal,
                exc,
                extra={"world_state": self.world_store.get_state_snapshot(), "duration": duration},
            )
            self._emit(EventType.TASK_FAILED, task_id, {
                "goal": task.goal,
                "error": exc,
                "code": getattr(exc, "code", type(exc).__name__),
                "message": str(exc),
                "duration_seconds": duration,
            })
            raise

        duration = time.monotonic() - start
        outcome.status = TaskStatus.COMPLETED
        outcome.result = result
        outcome.duration_seconds = duration
        self._emit(EventType.TASK_COMPLETED, task_id, {
            "goal": task.goal,
            "result": result,
            "duration_seconds": duration,
            "actions_executed": len(plan.actions),
        })
        return result

    async def run_action(self, action: Action, context: ActionContext) -> ActionResult:
        """Run one action's behavior against its timeout. Never raises."""
        timeout = action.timeout_seconds or self.config.default_action_timeout_seconds
        start = time.monotonic()
        try:
            if action.behavior is None:
                produced = None
            else:
                produced = await self._await_within(action.behavior(context), timeout)
        except _DeadlineExceeded:
            return ActionResult(
                success=False,
                error=ActionTimedOut(
                    action.name,
                    timeout,
                    context.goal.name,
                    context.world_state.to_dict(),
                    context.step_index + 1,
                ),
                duration_seconds=time.monotonic() - start,
            )
        except Exception as exc:
            return ActionResult(success=False, error=exc, duration_seconds=time.monotonic() - start)

        elapsed = time.monotonic() - start
        if isinstance(produced, ActionResult):
            return produced.model_copy(update={"duration_seconds": elapsed})
        return ActionResult(success=True, data=produced, duration_seconds=elapsed)

    @staticmethod
    async def _await_within(coro: Awaitable[Any], timeout: float) -> Any:
        """
        Await ``coro`` for at most ``timeout`` seconds.

        Raises _DeadlineExceeded only when this wait runs out; a TimeoutError
        raised by the behavior itself propagates unchanged.
        """
        running = asyncio.ensure_future(coro)
        try:
            done, _ = await asyncio.wait({running}, timeout=timeout)
        except asyncio.CancelledError:
            running.cancel()
            raise
        if not done:
            running.cancel()
            raise _DeadlineExceeded()
        return running.result()

    def _action_error(self, action: Action, result: ActionResult, goal: Goal, step: int) -> ActionFailed:
        if isinstance(result.error, ActionTimedOut):
            return result.error
        return ActionFailed(
            action.name,
            result.error,
            goal.name,
            self.world_store.get_state_snapshot(),
            step,
        )
