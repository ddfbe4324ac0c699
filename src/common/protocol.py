from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator

from state.models import State

from .config import ConnectorConfig


logger = logging.getLogger(__name__)


class ConnectorError(RuntimeError):
    """Base error for a connector exchange."""


class DecodeError(ConnectorError):
    """The endpoint answered 200 but the body is not a valid sync response."""


class Request(BaseModel):
    """
    One outbound envelope. Built fresh for every call and never mutated
    afterwards.

    Wire names: `customPayload` is omitted when unset, `setup_test` is
    omitted unless true.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    agent: str
    state: State = Field(default_factory=dict)
    secrets: Dict[str, Any] = Field(default_factory=dict)
    custom_payload: Optional[Dict[str, Any]] = Field(default=None, alias="customPayload")
    setup_test: bool = False

    def to_wire(self) -> Dict[str, Any]:
        wire = self.model_dump(by_alias=True)
        if wire.get("customPayload") is None:
            wire.pop("customPayload", None)
        if not self.setup_test:
            wire.pop("setup_test", None)
        return wire

    def to_json(self, *, indent: Optional[int] = None) -> str:
        return json.dumps(self.to_wire(), indent=indent, ensure_ascii=False)


class Response(BaseModel):
    """Decoded sync response. Missing or null fields take their zero value."""

    model_config = ConfigDict(populate_by_name=True)

    state: State = Field(default_factory=dict)
    schema_: Dict[str, Any] = Field(default_factory=dict, alias="schema")
    insert: Dict[str, List[Any]] = Field(default_factory=dict)
    delete: Dict[str, List[Any]] = Field(default_factory=dict)
    # strict: "yes", 1 or "false" must not pass as a continuation flag
    has_more: bool = Field(default=False, alias="hasMore", strict=True)

    @field_validator("state", "schema_", "insert", "delete", "has_more", mode="before")
    @classmethod
    def _null_is_zero(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return False if info.field_name == "has_more" else {}
        if info.field_name in ("insert", "delete") and isinstance(v, dict):
            return {k: ([] if rows is None else rows) for k, rows in v.items()}
        return v

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True)
class DecodeResult:
    """Outcome of decoding a response body: a Response or a DecodeError."""

    raw: str
    response: Optional[Response] = None
    error: Optional[DecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def resolve(self, *, lenient: bool = False) -> Response:
        """
        Return the decoded Response, or raise the DecodeError.

        With `lenient`, a malformed body yields an empty Response instead.
        """
        if self.error is None:
            return self.response  # type: ignore[return-value]
        if lenient:
            logger.warning("Treating malformed response as empty: %s", self.error)
            return Response()
        raise self.error


# --------------- Request builder ---------------
def build_request(config: ConnectorConfig, state: State) -> Request:
    return Request(
        agent=config.agent,
        state=copy.deepcopy(state),
        secrets=copy.deepcopy(config.secrets),
        custom_payload=copy.deepcopy(config.custom_payload),
    )


def build_setup_request(config: ConnectorConfig) -> Request:
    """Registration handshake: always starts from an empty state."""
    return Request(
        agent=config.agent,
        state={},
        secrets=copy.deepcopy(config.secrets),
        custom_payload=copy.deepcopy(config.custom_payload),
        setup_test=True,
    )


# --------------- Response interpreter ---------------
def decode_response(body: bytes | str) -> DecodeResult:
    raw = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    try:
        data = json.loads(raw)
    except ValueError as exc:
        return DecodeResult(raw=raw, error=DecodeError(f"Response body is not valid JSON: {exc}"))
    if not isinstance(data, dict):
        return DecodeResult(
            raw=raw,
            error=DecodeError(f"Response body must be a JSON object, got {type(data).__name__}"),
        )
    try:
        response = Response.model_validate(data)
    except ValidationError as ve:
        return DecodeResult(raw=raw, error=DecodeError(f"Failed to parse sync response: {ve}"))
    return DecodeResult(raw=raw, response=response)


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False)


def _summarize(records: Dict[str, List[Any]]) -> str:
    parts: List[str] = []
    for entity, rows in records.items():
        if rows:
            parts.append(f"{len(rows)} {entity} (ex: {_compact_json(rows[0])})")
    return " - ".join(parts)


def summarize_insertions(response: Response) -> str:
    """
    One-line summary of inserted records, e.g.
    `2 users (ex: {"id":1}) - 1 orders (ex: {"id":7})`.

    Entities without records are left out.
    """
    return _summarize(response.insert)


def summarize_deletions(response: Response) -> str:
    return _summarize(response.delete)


__all__ = [
    "ConnectorError",
    "DecodeError",
    "DecodeResult",
    "Request",
    "Response",
    "build_request",
    "build_setup_request",
    "decode_response",
    "summarize_deletions",
    "summarize_insertions",
]
