from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from common.call_log import CallLogger
from common.config import ConfigError, ConnectorConfig
from common.protocol import (
    Request,
    Response,
    build_request,
    build_setup_request,
    decode_response,
    summarize_deletions,
    summarize_insertions,
)
from common.transport import ConnectorClient
from state.file_store import FileStateStore
from state.models import State, StateStore


logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    pages: int
    state: State
    response: Response


def open_state_store(config: ConnectorConfig) -> StateStore:
    """S3 when a state bucket is configured, otherwise the session's state.json."""
    if config.state_bucket:
        from state.s3_store import S3StateStore

        if not config.fernet_key:
            raise ConfigError("fernet_key is required when state_bucket is set")
        return S3StateStore(bucket=config.state_bucket, key=config.state_key, fernet_key=config.fernet_key)
    return FileStateStore(config.state_path)


class SyncRunner:
    """
    Drives the request/response continuation loop.

    Every exchange is recorded through the call logger, and the returned
    state is persisted before the next request is built, so the stored
    state always matches the last completed exchange. Nothing is retried:
    transport, status, decode and persistence errors propagate.

    `store` is only needed by `run()`; a setup-only runner can omit it.
    """

    def __init__(
        self,
        config: ConnectorConfig,
        *,
        client: ConnectorClient,
        call_logger: CallLogger,
        store: Optional[StateStore] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._store = store
        self._call_logger = call_logger

    def run(self, state: Optional[State] = None) -> SyncResult:
        """Sync from `state` (or the stored state) until the endpoint reports no more data."""
        if self._store is None:
            raise ConfigError("a state store is required to sync")
        current = state if state is not None else self._store.load()
        pages = 0
        while True:
            response = self._exchange(build_request(self._config, current))
            pages += 1
            self._store.save(response.state)
            current = response.state

            inserted = summarize_insertions(response)
            if inserted:
                logger.info("Page %d inserted: %s", pages, inserted)
            deleted = summarize_deletions(response)
            if deleted:
                logger.info("Page %d deleted: %s", pages, deleted)

            if not response.has_more:
                logger.info("Sync finished after %d page(s)", pages)
                return SyncResult(pages=pages, state=current, response=response)

    def run_setup(self) -> Response:
        """Single registration handshake; the stored state is left untouched."""
        response = self._exchange(build_setup_request(self._config))
        logger.info("Setup request answered")
        return response

    def _exchange(self, request: Request) -> Response:
        record = self._call_logger.begin(request.to_json(indent=2))
        body = self._client.post(request)
        result = decode_response(body)
        record.finish(result.raw)
        return result.resolve(lenient=self._config.lenient_decode)


def run_once(
    config: ConnectorConfig,
    *,
    state: Optional[State] = None,
    setup: bool = False,
) -> SyncResult:
    """Wire up the components from `config` and perform one sync (or one setup call)."""
    # setup leaves the state alone
    store = None if setup else open_state_store(config)
    call_logger = CallLogger(config.call_path)
    with ConnectorClient(config) as client:
        runner = SyncRunner(config, client=client, store=store, call_logger=call_logger)
        if setup:
            response = runner.run_setup()
            return SyncResult(pages=1, state=response.state, response=response)
        return runner.run(state)
