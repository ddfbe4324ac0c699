"""
Common utilities for connector-sync-tester.

Modules:
- config: immutable run configuration (CLI / environment)
- protocol: request builder and response interpreter for the sync protocol
- transport: HTTP client for the connector endpoint
- call_log: per-call request/response artifacts
"""

__all__ = [
    "call_log",
    "config",
    "protocol",
    "transport",
]
