from __future__ import annotations

import json
import logging

import pytest

from state.file_store import FileStateStore
from state.models import StatePersistenceError


def test_load_missing_file_returns_empty_state(tmp_path):
    store = FileStateStore(tmp_path / "nope" / "state.json")
    assert store.load() == {}


@pytest.mark.parametrize("content", ["", "{not json", "null", "[1, 2]", '"cursor"'])
def test_load_corrupt_file_returns_empty_state_with_warning(tmp_path, caplog, content):
    path = tmp_path / "state.json"
    path.write_text(content, encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="state.file_store"):
        assert FileStateStore(path).load() == {}
    assert "Initializing to {}" in caplog.text


def test_save_then_load_roundtrip(tmp_path):
    store = FileStateStore(tmp_path / "session" / "state.json")
    state = {"cursor": "abc", "page": 3, "nested": {"tables": ["users", "orders"], "done": False}, "x": None}

    store.save(state)

    assert store.load() == state


def test_save_writes_indented_json_and_overwrites(tmp_path):
    path = tmp_path / "state.json"
    store = FileStateStore(path)

    store.save({"cursor": "first", "extra": 1})
    store.save({"cursor": "second"})

    text = path.read_text(encoding="utf-8")
    assert json.loads(text) == {"cursor": "second"}
    assert '\n  "cursor": "second"' in text


def test_save_failure_raises_persistence_error(tmp_path):
    # Parent "directory" is a regular file, so the state file cannot be created
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    store = FileStateStore(blocker / "state.json")

    with pytest.raises(StatePersistenceError):
        store.save({"cursor": "abc"})
