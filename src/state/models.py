from __future__ import annotations

import json
from typing import Any, Dict, Protocol


# Opaque continuation token handed back by the connector endpoint. The
# runner never looks inside it; it is only persisted and echoed back.
State = Dict[str, Any]


class StateStoreError(RuntimeError):
    """Base error for state backends."""


class StatePersistenceError(StateStoreError):
    """The state could not be written; the current run must stop."""


class StateStore(Protocol):
    def load(self) -> State:
        ...

    def save(self, state: State) -> None:
        ...


def empty_state() -> State:
    """Convenience constructor for a fresh, empty state."""
    return {}


def dump_state_json(state: State, *, indent: int | None = 2) -> bytes:
    return json.dumps(state, indent=indent, ensure_ascii=False).encode("utf-8")


def load_state_json(data: bytes | str) -> State:
    """Parse persisted state; raises ValueError when it is not a JSON object."""
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    raw = json.loads(data)
    if not isinstance(raw, dict):
        raise ValueError(f"state must be a JSON object, got {type(raw).__name__}")
    return raw
