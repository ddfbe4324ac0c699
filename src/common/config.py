from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_ENDPOINT = "http://localhost:8080"
DEFAULT_AGENT = "mock"
DEFAULT_OUTPUT = "./output"
DEFAULT_STATE_KEY = "state.json"

# Environment variable names (also honoured by the CLI options)
ENV_ENDPOINT = "CONNECTOR_ENDPOINT"
ENV_AGENT = "CONNECTOR_AGENT"
ENV_TOKEN = "CONNECTOR_TOKEN"
ENV_SECRETS = "CONNECTOR_SECRETS"
ENV_CUSTOM_PAYLOAD = "CONNECTOR_CUSTOM_PAYLOAD"
ENV_OUTPUT = "CONNECTOR_OUTPUT"
ENV_STATE_BUCKET = "CONNECTOR_STATE_BUCKET"
ENV_STATE_KEY = "CONNECTOR_STATE_KEY"
ENV_FERNET_KEY = "CONNECTOR_FERNET_KEY"


class ConfigError(ValueError):
    """Invalid configuration value (bad JSON, missing variable, ...)."""


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _session_id() -> str:
    return f"session_{int(time.time())}"


def _call_id() -> str:
    return f"call_{int(time.time())}"


def parse_json_object(text: Optional[str], what: str) -> Dict[str, Any]:
    """Parse a JSON object given on the command line or in the environment.

    Empty input yields an empty dict. Anything that is not a JSON object
    raises `ConfigError`.
    """
    if text is None or text.strip() == "":
        return {}
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise ConfigError(f"{what} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{what} must be a JSON object, got {type(data).__name__}")
    return data


class ConnectorConfig(BaseModel):
    """
    Immutable run configuration, built once at startup and passed to every
    component that needs it.

    Paths
    - `session_path`: `<output>/<session_id>`, holds `state.json`.
    - `call_path`: `<session_path>/<call_id>`, holds one pair of call
      artifacts per exchange.
    - With an empty `output`, nothing is written under a session directory:
      call artifacts go to the log and the state file is `./state.json`.
    """

    model_config = ConfigDict(frozen=True)

    endpoint: str = DEFAULT_ENDPOINT
    agent: str = DEFAULT_AGENT
    token: Optional[str] = None
    secrets: Dict[str, Any] = Field(default_factory=dict)
    custom_payload: Optional[Dict[str, Any]] = Field(default_factory=dict)
    output: Optional[str] = DEFAULT_OUTPUT
    session_id: str = Field(default_factory=_session_id)
    call_id: str = Field(default_factory=_call_id)
    timeout: float = Field(default=15.0, gt=0)
    lenient_decode: bool = Field(
        default=False,
        description="Treat a malformed response body as an empty response instead of failing",
    )
    state_bucket: Optional[str] = None
    state_key: str = DEFAULT_STATE_KEY
    fernet_key: Optional[str] = None

    @property
    def session_path(self) -> Optional[Path]:
        if not self.output:
            return None
        return Path(self.output) / self.session_id

    @property
    def call_path(self) -> Optional[Path]:
        session = self.session_path
        if session is None:
            return None
        return session / self.call_id

    @property
    def state_path(self) -> Path:
        session = self.session_path
        if session is None:
            return Path(DEFAULT_STATE_KEY)
        return session / DEFAULT_STATE_KEY

    # -------- Construction helpers --------
    @classmethod
    def from_env(cls, **overrides: Any) -> "ConnectorConfig":
        values: Dict[str, Any] = {
            "endpoint": _getenv(ENV_ENDPOINT, DEFAULT_ENDPOINT),
            "agent": _getenv(ENV_AGENT, DEFAULT_AGENT),
            "token": _getenv(ENV_TOKEN),
            "secrets": parse_json_object(_getenv(ENV_SECRETS), ENV_SECRETS),
            "custom_payload": parse_json_object(_getenv(ENV_CUSTOM_PAYLOAD), ENV_CUSTOM_PAYLOAD),
            "output": _getenv(ENV_OUTPUT, DEFAULT_OUTPUT),
            "state_bucket": _getenv(ENV_STATE_BUCKET),
            "state_key": _getenv(ENV_STATE_KEY, DEFAULT_STATE_KEY),
            "fernet_key": _getenv(ENV_FERNET_KEY),
        }
        values.update(overrides)
        return cls(**values)
