from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

import boto3
from botocore.exceptions import ClientError
from cryptography.fernet import Fernet, InvalidToken

from common.config import ENV_FERNET_KEY, ENV_STATE_BUCKET, ENV_STATE_KEY, ConfigError

from .models import (
    State,
    StatePersistenceError,
    StateStoreError,
    dump_state_json,
    empty_state,
    load_state_json,
)


logger = logging.getLogger(__name__)


def _to_fernet(key: str | bytes) -> Fernet:
    """Construct a Fernet instance from a user-provided key.

    The key must be a URL-safe base64-encoded 32-byte key (str or bytes),
    as returned by `cryptography.fernet.Fernet.generate_key()`.
    """
    if isinstance(key, str):
        key_bytes = key.encode("utf-8")
    else:
        key_bytes = key
    return Fernet(key_bytes)


@dataclass
class S3ObjectRef:
    bucket: str
    key: str

    def __str__(self) -> str:
        return f"s3://{self.bucket}/{self.key}"


class S3StateStore:
    """
    S3-backed persistence for the continuation state, encrypted at rest using Fernet.

    Same contract as the file store:
    - `load()` returns an empty state when the object is missing or cannot be
      decrypted/parsed. Other S3 failures raise `StateStoreError`.
    - `save(state)` overwrites the object; any failure raises
      `StatePersistenceError`.

    Environment variables (optional)
    - `CONNECTOR_STATE_BUCKET`: S3 bucket for the state object
    - `CONNECTOR_STATE_KEY`:    S3 key (path) for the state object
    - `CONNECTOR_FERNET_KEY`:   urlsafe base64-encoded key for Fernet
    """

    def __init__(
        self,
        *,
        s3: Optional[object] = None,
        bucket: str,
        key: str,
        fernet_key: str | bytes,
        region_name: Optional[str] = None,
    ) -> None:
        self._s3 = s3 or boto3.client("s3", region_name=region_name)
        self._obj = S3ObjectRef(bucket=bucket, key=key)
        self._fernet = _to_fernet(fernet_key)

    # -------- Construction helpers --------
    @classmethod
    def from_env(cls) -> "S3StateStore":
        bucket = os.environ.get(ENV_STATE_BUCKET)
        key = os.environ.get(ENV_STATE_KEY)
        fkey = os.environ.get(ENV_FERNET_KEY)
        if not bucket or not key or not fkey:
            missing = [
                name for name, val in [(ENV_STATE_BUCKET, bucket), (ENV_STATE_KEY, key), (ENV_FERNET_KEY, fkey)] if not val
            ]
            raise ConfigError(
                f"Missing required environment variables for S3 state store: {', '.join(missing)}"
            )
        return cls(bucket=bucket, key=key, fernet_key=fkey)

    # -------- Core operations --------
    def load(self) -> State:
        try:
            resp = self._s3.get_object(Bucket=self._obj.bucket, Key=self._obj.key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                logger.warning("No state object at %s. Initializing to {}.", self._obj)
                return empty_state()
            raise StateStoreError(f"Failed to read state from {self._obj}: {code}") from e

        body = resp["Body"].read()
        try:
            state = load_state_json(self._fernet.decrypt(body))
        except InvalidToken:
            logger.warning("Cannot decrypt the state at %s. Initializing to {}.", self._obj)
            return empty_state()
        except ValueError as ex:
            logger.warning("Cannot parse the state at %s (%s). Initializing to {}.", self._obj, ex)
            return empty_state()

        logger.info("Current state is:\n%s", dump_state_json(state).decode("utf-8"))
        return state

    def save(self, state: State) -> None:
        ciphertext = self._fernet.encrypt(dump_state_json(state, indent=None))
        try:
            self._s3.put_object(
                Bucket=self._obj.bucket,
                Key=self._obj.key,
                Body=ciphertext,
                ContentType="application/octet-stream",
            )
        except ClientError as e:
            raise StatePersistenceError(f"Failed to write state to {self._obj}") from e
        logger.debug("State written to %s", self._obj)
