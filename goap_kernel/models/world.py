"""World State — the scalar facts the planner and actions reason over."""

import json
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional, Union

StateValue = Union[bool, int, float, str, None]

_SCALAR_TYPES = (bool, int, float, str, type(None))


def is_scalar(value: Any) -> bool:
    """True for the value types a WorldState may hold."""
    return isinstance(value, _SCALAR_TYPES)


def strict_equals(actual: Any, expected: Any) -> bool:
    """
    Equality without Python's bool/int coercion.

    ``True == 1`` holds in Python, but a precondition of ``True`` must not
    be met by a count of ``1``.
    """
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    return actual == expected


class WorldState(Mapping):
    """
    Immutable mapping from string keys to scalar values.

    A new state is produced by ``merge``; the receiver is never mutated.
    """

    __slots__ = ("_facts", "_key")

    def __init__(self, facts: Optional[Mapping] = None, **kwargs: StateValue):
        data: Dict[str, StateValue] = {}
        for source in (facts or {}, kwargs):
            for key, value in source.items():
                if not isinstance(key, str):
                    raise TypeError(f"World state keys must be strings, got {key!r}")
                if not is_scalar(value):
                    raise TypeError(
                        f"World state value for '{key}' must be a scalar, "
                        f"got {type(value).__name__}"
                    )
                data[key] = value
        self._facts = data
        self._key: Optional[str] = None

    def __getitem__(self, key: str) -> StateValue:
        return self._facts[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._facts)

    def __len__(self) -> int:
        return len(self._facts)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, WorldState):
            return self.canonical_key() == other.canonical_key()
        if isinstance(other, Mapping):
            try:
                return self == WorldState(other)
            except TypeError:
                return False
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.canonical_key())

    def __repr__(self) -> str:
        return f"WorldState({self._facts!r})"

    def merge(self, effects: Optional[Mapping]) -> "WorldState":
        """Return a new state with ``effects`` written over this one."""
        if not effects:
            return self
        merged = dict(self._facts)
        merged.update(WorldState(effects)._facts)
        return WorldState(merged)

    def satisfies(self, constraints: Mapping) -> bool:
        """True when every key in ``constraints`` strictly equals this state's value."""
        for key, expected in constraints.items():
            if key not in self._facts:
                return False
            if not strict_equals(self._facts[key], expected):
                return False
        return True

    def diff(self, other: "WorldState") -> Dict[str, Dict[str, StateValue]]:
        """Keys whose value differs in ``other``, as {key: {before, after}}."""
        changes = {}
        for key in sorted(set(self._facts) | set(other._facts)):
            before = self._facts.get(key)
            after = other._facts.get(key)
            if key not in self._facts or key not in other._facts or not strict_equals(before, after):
                changes[key] = {"before": before, "after": after}
        return changes

    def canonical_key(self) -> str:
        """Deterministic identity of this state (sorted key/value pairs)."""
        if self._key is None:
            pairs = sorted(
                (k, v) for k, v in self._facts.items() if not callable(v)
            )
            # Type tags keep True and 1 apart.
            self._key = json.dumps([[k, type(v).__name__, v] for k, v in pairs])
        return self._key

    def to_dict(self) -> Dict[str, StateValue]:
        """Defensive copy as a plain dict."""
        return dict(self._facts)
