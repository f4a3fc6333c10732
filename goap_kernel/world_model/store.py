"""
World State Store — the live, per-agent world state.

Updated by: successful action results (serially, one update at a time)
Queried by: the Planner (as the initial state) and actions (via context)
"""

import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel

from goap_kernel.models.world import WorldState


class StateUpdate(BaseModel):
    """Before/after record of one merge into the live state."""

    previous: Dict[str, Any]
    current: Dict[str, Any]
    changes: Dict[str, Any]                 # The fragment that was merged
    diff: Dict[str, Dict[str, Any]]         # {key: {before, after}} for changed keys
    updated_at: datetime


class WorldStateStore:
    """
    Holds one agent's world state. Never share an instance between agents;
    each update replaces the state with a new immutable WorldState.
    """

    def __init__(self, initial: Optional[Mapping] = None, history_limit: int = 100):
        self._state = initial if isinstance(initial, WorldState) else WorldState(initial or {})
        self._lock = threading.Lock()
        self._history: List[StateUpdate] = []
        self._history_limit = history_limit
        self.last_updated = datetime.utcnow()
        self._reset_hooks: List[Callable[[], None]] = []

    @property
    def state(self) -> WorldState:
        """Current state. WorldState is immutable, so this is safe to hand out."""
        return self._state

    def get(self, key: str, default: Any = None) -> Any:
        return self._state.get(key, default)

    def update(self, fragment: Optional[Mapping]) -> StateUpdate:
        """Merge ``fragment`` over the current state (last write wins)."""
        with self._lock:
            previous = self._state
            current = previous.merge(fragment or {})
            self._state = current
            self.last_updated = datetime.utcnow()
            record = StateUpdate(
                previous=previous.to_dict(),
                current=current.to_dict(),
                changes=dict(fragment or {}),
                diff=previous.diff(current),
                updated_at=self.last_updated,
            )
            self._history.append(record)
            if len(self._history) > self._history_limit:
                del self._history[: len(self._history) - self._history_limit]
        return record

    def reset(self, state: Optional[Mapping] = None) -> None:
        """Replace the state wholesale (host-driven, e.g. between books)."""
        with self._lock:
            self._state = state if isinstance(state, WorldState) else WorldState(state or {})
            self._history.clear()
            self.last_updated = datetime.utcnow()
        for hook in list(self._reset_hooks):
            hook()

    def on_reset(self, hook: Callable[[], None]) -> None:
        """Call ``hook`` after every reset, e.g. to drop state kept outside the store."""
        self._reset_hooks.append(hook)

    def get_recent_updates(self, limit: int = 10) -> List[StateUpdate]:
        with self._lock:
            return list(self._history[-limit:])

    def get_state_snapshot(self) -> Dict[str, Any]:
        """Serializable copy of the current state."""
        return self._state.to_dict()
