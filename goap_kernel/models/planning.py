"""Goals, actions and plans — the inputs and output of the planner."""

from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from goap_kernel.models.world import WorldState, is_scalar, strict_equals

Predicate = Callable[[WorldState], bool]


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


def _check_scalars(value: Dict[str, Any], field: str) -> Dict[str, Any]:
    for key, item in value.items():
        if not is_scalar(item):
            raise ValueError(
                f"{field} for '{key}' must be a scalar (functional {field} "
                f"are not supported), got {type(item).__name__}"
            )
    return value


class Goal(BaseModel):
    """A desired world state, expressed as conditions over facts."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: _new_id("goal"))
    name: str
    priority: int = 0
    conditions: Dict[str, Any]              # key -> scalar, or key -> predicate(state)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)

    @field_validator("conditions")
    @classmethod
    def _conditions_are_scalar_or_callable(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        for key, item in v.items():
            if not (callable(item) or is_scalar(item)):
                raise ValueError(
                    f"condition '{key}' must be a scalar or a predicate, "
                    f"got {type(item).__name__}"
                )
        return v

    def condition_holds(self, key: str, state: WorldState) -> bool:
        expected = self.conditions[key]
        if callable(expected):
            return bool(expected(state))
        return key in state and strict_equals(state[key], expected)

    def is_satisfied(self, state: WorldState) -> bool:
        """Every condition holds in ``state``."""
        return all(self.condition_holds(key, state) for key in self.conditions)

    def unmet_count(self, state: WorldState) -> int:
        """Number of conditions that do not hold — the planner's heuristic."""
        return sum(1 for key in self.conditions if not self.condition_holds(key, state))


class Action(BaseModel):
    """
    A discrete step the planner can choose.

    ``behavior`` is an async callable receiving an ``ActionContext``. It may
    return an ``ActionResult`` or any payload; a payload is treated as a
    successful result whose state change is the static ``effects``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: _new_id("act"))
    name: str
    cost: float = Field(ge=0)
    preconditions: Dict[str, Any] = {}
    effects: Dict[str, Any] = {}
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    behavior: Optional[Callable[..., Awaitable[Any]]] = None

    @field_validator("preconditions")
    @classmethod
    def _scalar_preconditions(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        return _check_scalars(v, "preconditions")

    @field_validator("effects")
    @classmethod
    def _scalar_effects(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        return _check_scalars(v, "effects")

    def applicable(self, state: WorldState) -> bool:
        return state.satisfies(self.preconditions)

    def apply(self, state: WorldState) -> WorldState:
        return state.merge(self.effects)


class ActionPlan(BaseModel):
    """An ordered, immutable sequence of actions expected to reach a goal."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: _new_id("plan"))
    goal: Goal
    actions: Tuple[Action, ...]
    estimated_cost: float
    estimated_duration_seconds: float
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def action_names(self) -> list:
        return [a.name for a in self.actions]
