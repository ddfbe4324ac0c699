"""
Sync runner: the continuation loop and its command-line entry point.
"""

from .sync import SyncResult, SyncRunner, open_state_store, run_once

__all__ = ["SyncResult", "SyncRunner", "open_state_store", "run_once"]
