from __future__ import annotations

from typing import Dict, Optional

import httpx

from .config import ConnectorConfig
from .protocol import ConnectorError, DecodeError, Request, Response, decode_response


class TransportError(ConnectorError):
    """The endpoint could not be reached (connect failure, timeout, ...)."""


class UnexpectedStatusError(ConnectorError):
    """The endpoint answered with anything other than HTTP 200."""

    def __init__(self, status_code: int, status: str) -> None:
        super().__init__(f"http request answered a non 200 status code: {status}")
        self.status_code = status_code
        self.status = status


class ConnectorClient:
    """
    Synchronous client for a function connector endpoint.

    Notes
    - One POST per call, no retries. Redirects are not followed, so a 3xx
      is reported like any other non-200 status.
    - The bearer header is only sent when a token is configured.
    - `post()` returns the raw body so callers can record it verbatim;
      `send()` also decodes it.
    """

    def __init__(
        self,
        config: ConnectorConfig,
        *,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout)

    @property
    def config(self) -> ConnectorConfig:
        return self._config

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ConnectorClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------------- Public API ---------------
    def post(self, request: Request) -> bytes:
        try:
            resp = self._client.post(
                self._config.endpoint,
                content=request.to_json().encode("utf-8"),
                headers=self._headers(),
            )
        except httpx.TransportError as exc:
            raise TransportError(f"Failed to reach {self._config.endpoint}: {exc}") from exc

        if resp.status_code != 200:
            status = f"{resp.status_code} {resp.reason_phrase}".strip()
            raise UnexpectedStatusError(resp.status_code, status)
        return resp.content

    def send(self, request: Request) -> Response:
        """
        POST `request` and decode the reply.

        Raises DecodeError on a malformed body unless the config enables
        lenient decoding, in which case an empty Response is returned.
        """
        return decode_response(self.post(request)).resolve(lenient=self._config.lenient_decode)

    # --------------- Internal ---------------
    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        return headers


__all__ = [
    "ConnectorClient",
    "ConnectorError",
    "DecodeError",
    "TransportError",
    "UnexpectedStatusError",
]
