"""
Continuation-state persistence for connector syncs.

The state is an opaque JSON object returned by the endpoint. It is stored
either as an indented JSON file (`FileStateStore`) or as a Fernet-encrypted
S3 object (`state.s3_store.S3StateStore`).
"""

from .file_store import FileStateStore
from .models import State, StatePersistenceError, StateStore, StateStoreError, empty_state

__all__ = [
    "FileStateStore",
    "State",
    "StatePersistenceError",
    "StateStore",
    "StateStoreError",
    "empty_state",
]
