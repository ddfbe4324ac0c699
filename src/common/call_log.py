from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional


logger = logging.getLogger(__name__)

REQUEST_SUFFIX = ".request.json"
RESPONSE_SUFFIX = ".response.json"


def _write_new(path: Path, body: str) -> None:
    # "x" refuses to clobber an existing artifact
    with path.open("x", encoding="utf-8") as f:
        f.write(body)


@dataclass
class CallRecord:
    """Artifacts of one network call: `<stem>.request.json` and `<stem>.response.json`."""

    number: int
    stem: str
    directory: Optional[Path]

    @property
    def request_path(self) -> Optional[Path]:
        if self.directory is None:
            return None
        return self.directory / f"{self.stem}{REQUEST_SUFFIX}"

    @property
    def response_path(self) -> Optional[Path]:
        if self.directory is None:
            return None
        return self.directory / f"{self.stem}{RESPONSE_SUFFIX}"

    def finish(self, response_body: str) -> None:
        path = self.response_path
        if path is None:
            logger.info("Response %s:\n%s", self.stem, response_body)
            return
        _write_new(path, response_body)


class CallLogger:
    """
    Writes one pair of artifacts per network call.

    - Artifact stems are `log_<NNNN>_<unix seconds>`; the counter makes them
      unique even when several calls land in the same second.
    - Counter increment and file creation happen under one lock, so
      concurrent callers never claim the same name.
    - With `directory=None`, bodies go to the log instead of files.
    """

    def __init__(
        self,
        directory: Optional[os.PathLike[str] | str] = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dir = Path(directory) if directory is not None else None
        self._clock = clock
        self._count = 0
        self._lock = threading.Lock()

    @property
    def directory(self) -> Optional[Path]:
        return self._dir

    def begin(self, request_body: str) -> CallRecord:
        """Record the outgoing request and return the record for its response."""
        with self._lock:
            self._count += 1
            record = CallRecord(
                number=self._count,
                stem=f"log_{self._count:04d}_{int(self._clock())}",
                directory=self._dir,
            )
            path = record.request_path
            if path is not None:
                path.parent.mkdir(parents=True, exist_ok=True)
                _write_new(path, request_body)

        if path is None:
            logger.info("Request %s:\n%s", record.stem, request_body)
        return record
