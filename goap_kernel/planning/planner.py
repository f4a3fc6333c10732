"""
Planner — A* search over world-state space.

Nodes are (state, actions so far, cost). The heuristic is the number of
unmet goal conditions, which is admissible as long as every action costs at
least as much as the number of goal conditions it can flip. Goal authors
are responsible for that assumption.

The search loop never yields, so the wall-clock budget is polled inside the
loop rather than enforced by a timer.
"""

import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from goap_kernel.errors import NoPlanFound, PlanningTimeout
from goap_kernel.models.config import PlannerConfig
from goap_kernel.models.planning import Action, ActionPlan, Goal
from goap_kernel.models.world import WorldState

logger = logging.getLogger(__name__)


@dataclass(order=True)
class _Node:
    priority: Tuple[float, int]             # (cost + heuristic, insertion order)
    state: WorldState = field(compare=False)
    actions: Tuple[Action, ...] = field(compare=False)
    cost: float = field(compare=False)


class Planner:
    """Finds the cheapest action sequence that turns a state into a goal state."""

    def __init__(
        self,
        actions: Iterable[Action],
        config: Optional[PlannerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._actions: Tuple[Action, ...] = tuple(actions)
        self.config = config or PlannerConfig()
        self._clock = clock

    @property
    def actions(self) -> Tuple[Action, ...]:
        return self._actions

    def plan(self, goal: Goal, initial_state: WorldState) -> ActionPlan:
        """
        Compute a plan for ``goal`` from ``initial_state``.

        Raises NoPlanFound when the open set runs dry and PlanningTimeout when
        the planning budget elapses first.
        """
        started = self._clock()
        deadline = started + self.config.max_planning_seconds
        counter = itertools.count()

        open_set: List[_Node] = []
        heapq.heappush(open_set, _Node(
            priority=(goal.unmet_count(initial_state), next(counter)),
            state=initial_state,
            actions=(),
            cost=0.0,
        ))
        closed: set = set()
        expanded = 0

        while open_set:
            if self._clock() > deadline:
                error = PlanningTimeout(
                    f"Planning timeout after {self.config.max_planning_seconds}s",
                    goal.name,
                    initial_state.to_dict(),
                )
                logger.error(
                    "Action planning failed for goal '%s': %s (expanded %d nodes)",
                    goal.name, error.message, expanded,
                )
                raise error

            current = heapq.heappop(open_set)

            if goal.is_satisfied(current.state):
                plan = self._build_plan(goal, current.actions, current.cost)
                logger.info(
                    "Action plan created for goal '%s': %d actions, cost %.2f, %.1fms",
                    goal.name,
                    len(plan.actions),
                    plan.estimated_cost,
                    (self._clock() - started) * 1000.0,
                )
                return plan

            if len(current.actions) >= self.config.max_plan_length:
                continue

            state_key = current.state.canonical_key()
            if state_key in closed:
                continue
            closed.add(state_key)
            expanded += 1

            for action in self._actions:
                if not action.applicable(current.state):
                    continue
                next_state = action.apply(current.state)
                next_cost = current.cost + action.cost
                heapq.heappush(open_set, _Node(
                    priority=(next_cost + goal.unmet_count(next_state), next(counter)),
                    state=next_state,
                    actions=current.actions + (action,),
                    cost=next_cost,
                ))

        error = NoPlanFound(
            f"No valid plan found for goal '{goal.name}'",
            goal.name,
            initial_state.to_dict(),
        )
        logger.error(
            "Action planning failed for goal '%s': %s (expanded %d nodes)",
            goal.name, error.message, expanded,
        )
        raise error

    def _build_plan(self, goal: Goal, actions: Sequence[Action], cost: float) -> ActionPlan:
        default = self.config.default_action_duration_seconds
        duration = sum(
            a.timeout_seconds if a.timeout_seconds is not None else default
            for a in actions
        )
        return ActionPlan(
            goal=goal,
            actions=tuple(actions),
            estimated_cost=cost,
            estimated_duration_seconds=duration,
        )


def simulate(plan: ActionPlan, initial_state: WorldState) -> WorldState:
    """Apply a plan's static effects in order, checking each precondition."""
    state = initial_state
    for action in plan.actions:
        if not action.applicable(state):
            raise ValueError(f"Precondition of '{action.name}' does not hold in {state!r}")
        state = action.apply(state)
    return state
