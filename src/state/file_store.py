from __future__ import annotations

import logging
import os
from pathlib import Path

from .models import State, StatePersistenceError, dump_state_json, empty_state, load_state_json


logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = "state.json"


class FileStateStore:
    """
    JSON file persistence for the connector continuation state.

    - `load()` never raises: a missing, unreadable or corrupt file yields an
      empty state so the next sync starts fresh.
    - `save(state)` overwrites the file with indented JSON. Write failures are
      raised as `StatePersistenceError`.
    """

    def __init__(self, path: os.PathLike[str] | str = DEFAULT_STATE_FILE) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> State:
        try:
            data = self._path.read_bytes()
        except FileNotFoundError:
            logger.warning("No state file at %s. Initializing to {}.", self._path)
            return empty_state()
        except OSError as exc:
            logger.warning("Cannot read the state from %s (%s). Initializing to {}.", self._path, exc)
            return empty_state()

        try:
            state = load_state_json(data)
        except ValueError as exc:
            # Corrupt file: start fresh rather than failing the run
            logger.warning("Cannot parse the state in %s (%s). Initializing to {}.", self._path, exc)
            return empty_state()

        logger.info("Current state is:\n%s", dump_state_json(state).decode("utf-8"))
        return state

    def save(self, state: State) -> None:
        payload = dump_state_json(state)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("wb") as f:
                f.write(payload)
        except OSError as exc:
            raise StatePersistenceError(f"Failed to write state to {self._path}: {exc}") from exc
        logger.debug("State written to %s", self._path)
