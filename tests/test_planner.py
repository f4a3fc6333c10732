"""Tests for the A* Planner."""

import itertools
from collections import deque

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from goap_kernel.errors import NoPlanFound, PlanningTimeout
from goap_kernel.models.config import PlannerConfig
from goap_kernel.models.planning import Action, Goal
from goap_kernel.models.world import WorldState
from goap_kernel.planning.planner import Planner, simulate


def _draft_actions():
    return [
        Action(
            name="MakeOutline",
            cost=1,
            preconditions={"draftComplete": False},
            effects={"outlineReady": True},
        ),
        Action(
            name="WriteDraft",
            cost=2,
            preconditions={"outlineReady": True},
            effects={"draftComplete": True},
        ),
    ]


def _draft_goal() -> Goal:
    return Goal(name="draft", conditions={"draftComplete": True})


def _toggle_actions(key: str = "x"):
    return [
        Action(name="on", cost=1, preconditions={key: False}, effects={key: True}),
        Action(name="off", cost=1, preconditions={key: True}, effects={key: False}),
    ]


class TestPlanner:
    def test_concrete_plan(self):
        planner = Planner(_draft_actions())
        initial = WorldState({"draftComplete": False, "outlineReady": False})

        plan = planner.plan(_draft_goal(), initial)

        assert plan.action_names == ["MakeOutline", "WriteDraft"]
        assert plan.estimated_cost == 3
        assert simulate(plan, initial) == {"draftComplete": True, "outlineReady": True}

    def test_goal_already_satisfied_returns_empty_plan(self):
        planner = Planner(_draft_actions())
        plan = planner.plan(_draft_goal(), WorldState({"draftComplete": True}))

        assert plan.actions == ()
        assert plan.estimated_cost == 0
        assert plan.estimated_duration_seconds == 0

    def test_prefers_cheaper_sequence(self):
        actions = [
            Action(name="expensive", cost=5, effects={"done": True}),
            Action(name="prep", cost=1, effects={"prepared": True}),
            Action(name="finish", cost=1, preconditions={"prepared": True}, effects={"done": True}),
        ]
        plan = Planner(actions).plan(Goal(name="g", conditions={"done": True}), WorldState())

        assert plan.action_names == ["prep", "finish"]
        assert plan.estimated_cost == 2

    def test_unreachable_goal(self):
        planner = Planner(_draft_actions())
        goal = Goal(name="impossible", conditions={"published": True})

        with pytest.raises(NoPlanFound) as exc_info:
            planner.plan(goal, WorldState({"draftComplete": False}))

        err = exc_info.value
        assert err.code == "NO_PLAN_FOUND"
        assert err.goal_name == "impossible"
        assert err.world_state == {"draftComplete": False}

    def test_cycles_terminate(self):
        planner = Planner(_toggle_actions())
        goal = Goal(name="never", conditions={"x": "unreachable"})

        with pytest.raises(NoPlanFound):
            planner.plan(goal, WorldState({"x": False}))

    def test_max_plan_length_bounds_search(self):
        actions = [
            Action(name="a", cost=1, effects={"a": True}),
            Action(name="b", cost=1, preconditions={"a": True}, effects={"b": True}),
            Action(name="c", cost=1, preconditions={"b": True}, effects={"c": True}),
        ]
        goal = Goal(name="g", conditions={"c": True})

        with pytest.raises(NoPlanFound):
            Planner(actions, PlannerConfig(max_plan_length=2)).plan(goal, WorldState())

        plan = Planner(actions, PlannerConfig(max_plan_length=3)).plan(goal, WorldState())
        assert plan.action_names == ["a", "b", "c"]

    def test_timeout_is_polled_inside_loop(self):
        # Each clock read advances one second; the budget runs out on the third check.
        ticks = itertools.count()
        keys = [f"k{i}" for i in range(10)]
        actions = [Action(name=f"set_{k}", cost=1, effects={k: True}) for k in keys]
        planner = Planner(
            actions,
            PlannerConfig(max_planning_seconds=2.5),
            clock=lambda: float(next(ticks)),
        )

        with pytest.raises(PlanningTimeout) as exc_info:
            planner.plan(Goal(name="never", conditions={"x": 1}), WorldState())

        assert exc_info.value.code == "PLANNING_TIMEOUT"

    def test_estimated_duration_uses_timeouts_and_default(self):
        actions = [
            Action(name="slow", cost=1, effects={"a": True}, timeout_seconds=10),
            Action(name="quick", cost=1, preconditions={"a": True}, effects={"b": True}),
        ]
        planner = Planner(actions, PlannerConfig(default_action_duration_seconds=1.0))

        plan = planner.plan(Goal(name="g", conditions={"b": True}), WorldState())

        assert plan.estimated_duration_seconds == 11

    def test_predicate_goal(self):
        actions = [
            Action(name="write", cost=1, effects={"words": 500}),
        ]
        goal = Goal(name="long_enough", conditions={"words": lambda s: (s.get("words") or 0) >= 100})

        plan = Planner(actions).plan(goal, WorldState({"words": 0}))

        assert plan.action_names == ["write"]

    def test_does_not_mutate_initial_state(self):
        initial = WorldState({"draftComplete": False, "outlineReady": False})
        Planner(_draft_actions()).plan(_draft_goal(), initial)
        assert initial == {"draftComplete": False, "outlineReady": False}


class TestSimulate:
    def test_rejects_plan_with_unmet_precondition(self):
        planner = Planner(_draft_actions())
        plan = planner.plan(_draft_goal(), WorldState({"draftComplete": False, "outlineReady": False}))

        with pytest.raises(ValueError):
            simulate(plan, WorldState({"draftComplete": True}))


# --- Property: planner agrees with brute-force search ---

KEYS = ["k0", "k1", "k2", "k3"]
MAX_LEN = 4


@st.composite
def single_flip_actions(draw):
    """Unit-cost actions that each write one key, so unmet-count stays admissible."""
    count = draw(st.integers(min_value=1, max_value=6))
    actions = []
    for i in range(count):
        pre_keys = draw(st.lists(st.sampled_from(KEYS), max_size=2, unique=True))
        pre = {k: draw(st.booleans()) for k in pre_keys}
        key = draw(st.sampled_from(KEYS))
        actions.append(Action(
            name=f"act{i}",
            cost=1,
            preconditions=pre,
            effects={key: draw(st.booleans())},
        ))
    return actions


@st.composite
def goals(draw):
    keys = draw(st.lists(st.sampled_from(KEYS), min_size=1, max_size=3, unique=True))
    return Goal(name="g", conditions={k: draw(st.booleans()) for k in keys})


def _shortest_plan_length(actions, goal, initial, max_len):
    """Breadth-first search; returns None if no plan within max_len."""
    frontier = deque([(initial, 0)])
    seen = {initial.canonical_key()}
    while frontier:
        state, depth = frontier.popleft()
        if goal.is_satisfied(state):
            return depth
        if depth >= max_len:
            continue
        for action in actions:
            if action.applicable(state):
                nxt = action.apply(state)
                if nxt.canonical_key() not in seen:
                    seen.add(nxt.canonical_key())
                    frontier.append((nxt, depth + 1))
    return None


class TestPlannerProperties:
    @settings(max_examples=150, deadline=None)
    @given(actions=single_flip_actions(), goal=goals(), bits=st.lists(st.booleans(), min_size=4, max_size=4))
    def test_matches_breadth_first_search(self, actions, goal, bits):
        initial = WorldState(dict(zip(KEYS, bits)))
        planner = Planner(actions, PlannerConfig(max_plan_length=MAX_LEN, max_planning_seconds=30))
        expected = _shortest_plan_length(actions, goal, initial, MAX_LEN)

        if expected is None:
            with pytest.raises(NoPlanFound):
                planner.plan(goal, initial)
            return

        plan = planner.plan(goal, initial)
        assert len(plan.actions) <= MAX_LEN
        assert plan.estimated_cost == expected
        assert goal.is_satisfied(simulate(plan, initial))
