"""
connector-sync-tester command line.

Drives a function connector endpoint the way the hosted sync does:

    connector-sync-tester --endpoint http://localhost:8080 --agent mock
    connector-sync-tester --setup --secrets '{"apiKey": "..."}'
    connector-sync-tester --state '{"cursor": "abc"}'

Requests and responses are written to <output>/<session-id>/<call-id>/,
and the last state to <output>/<session-id>/state.json so a rerun with
the same session id resumes where the previous one stopped.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from common.config import (
    DEFAULT_AGENT,
    DEFAULT_ENDPOINT,
    DEFAULT_OUTPUT,
    DEFAULT_STATE_KEY,
    ENV_AGENT,
    ENV_CUSTOM_PAYLOAD,
    ENV_ENDPOINT,
    ENV_FERNET_KEY,
    ENV_OUTPUT,
    ENV_SECRETS,
    ENV_STATE_BUCKET,
    ENV_STATE_KEY,
    ENV_TOKEN,
    ConfigError,
    ConnectorConfig,
    parse_json_object,
)
from common.protocol import ConnectorError
from state.models import StateStoreError

from .sync import run_once


logger = logging.getLogger(__name__)


def _json_object(ctx: click.Context, param: click.Parameter, value: Optional[str]):
    if value is None:
        return None
    try:
        return parse_json_object(value, f"--{param.name.replace('_', '-')}")
    except ConfigError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param) from exc


def _state_object(ctx: click.Context, param: click.Parameter, value: Optional[str]):
    # blank --state means "use the stored state", not an explicit {}
    if value is None or value.strip() == "":
        return None
    return _json_object(ctx, param, value)


@click.command()
@click.option("--endpoint", default=DEFAULT_ENDPOINT, envvar=ENV_ENDPOINT, show_default=True,
              help="Endpoint to send the requests to.")
@click.option("--agent", default=DEFAULT_AGENT, envvar=ENV_AGENT, show_default=True,
              help="Agent to use in the request.")
@click.option("--token", default=None, envvar=ENV_TOKEN,
              help="Bearer token for the Authorization header.")
@click.option("--output", default=DEFAULT_OUTPUT, envvar=ENV_OUTPUT, show_default=True,
              help="Directory for call artifacts and state. Empty logs calls instead of writing files.")
@click.option("--session-id", default=None, help="Session ID to use (default: session_<unix time>).")
@click.option("--secrets", default="{}", envvar=ENV_SECRETS, callback=_json_object,
              help="Secrets object (JSON) to send in every request.")
@click.option("--custom-payload", default="{}", envvar=ENV_CUSTOM_PAYLOAD, callback=_json_object,
              help="Custom payload object (JSON) to send in every request.")
@click.option("--state", "state_override", default=None, callback=_state_object,
              help="State object (JSON) to start from instead of the stored state.")
@click.option("--setup", is_flag=True,
              help="Send the one-time setup request used when a connector is first saved.")
@click.option("--lenient-decode", is_flag=True,
              help="Treat a malformed response body as an empty response instead of failing.")
@click.option("--timeout", default=15.0, type=float, show_default=True, help="HTTP timeout in seconds.")
@click.option("--state-bucket", default=None, envvar=ENV_STATE_BUCKET,
              help="Keep the state in this S3 bucket (encrypted) instead of state.json.")
@click.option("--state-key", default=DEFAULT_STATE_KEY, envvar=ENV_STATE_KEY, show_default=True,
              help="S3 key of the state object.")
@click.option("--fernet-key", default=None, envvar=ENV_FERNET_KEY,
              help="Fernet key used to encrypt the S3 state object.")
@click.option("--log-level", default="INFO", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
def main(
    endpoint: str,
    agent: str,
    token: Optional[str],
    output: str,
    session_id: Optional[str],
    secrets: dict,
    custom_payload: dict,
    state_override: Optional[dict],
    setup: bool,
    lenient_decode: bool,
    timeout: float,
    state_bucket: Optional[str],
    state_key: str,
    fernet_key: Optional[str],
    log_level: str,
):
    """Run a sync (or the setup request) against a function connector endpoint."""
    logging.basicConfig(level=log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    overrides = {"session_id": session_id} if session_id else {}
    config = ConnectorConfig(
        endpoint=endpoint,
        agent=agent,
        token=token or None,
        secrets=secrets,
        custom_payload=custom_payload,
        output=output or None,
        timeout=timeout,
        lenient_decode=lenient_decode,
        state_bucket=state_bucket or None,
        state_key=state_key,
        fernet_key=fernet_key or None,
        **overrides,
    )

    if config.call_path is not None:
        logger.info("Session ID %s", config.session_id)
        logger.info("Call ID %s", config.call_id)
        logger.info("Writing files to %s", config.call_path)
        try:
            config.call_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            click.echo(f"Error: cannot create {config.call_path}: {exc}", err=True)
            sys.exit(1)

    try:
        result = run_once(config, state=state_override, setup=setup)
    except (ConnectorError, StateStoreError, ConfigError, OSError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if setup:
        click.echo("Setup request succeeded")
    else:
        click.echo(f"Sync complete: {result.pages} page(s)")


if __name__ == "__main__":
    main()
