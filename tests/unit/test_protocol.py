from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from common.config import ConnectorConfig
from common.protocol import (
    DecodeError,
    Response,
    build_request,
    build_setup_request,
    decode_response,
    summarize_deletions,
    summarize_insertions,
)


def _config(**kw) -> ConnectorConfig:
    base = dict(agent="acme", secrets={"apiKey": "s3cr3t"}, custom_payload={"region": "eu"}, output=None)
    base.update(kw)
    return ConnectorConfig(**base)


# --------------- Request builder ---------------
def test_build_request_wire_format():
    req = build_request(_config(), {"cursor": "abc"})

    wire = req.to_wire()
    assert wire == {
        "agent": "acme",
        "state": {"cursor": "abc"},
        "secrets": {"apiKey": "s3cr3t"},
        "customPayload": {"region": "eu"},
    }
    # setup flag is omitted entirely when false
    assert "setup_test" not in json.loads(req.to_json())


def test_build_request_omits_missing_custom_payload():
    req = build_request(_config(custom_payload=None), {})
    assert "customPayload" not in req.to_wire()


def test_build_request_copies_state():
    state = {"cursor": "abc", "seen": ["a"]}
    req = build_request(_config(), state)

    state["cursor"] = "changed"
    state["seen"].append("b")

    assert req.state == {"cursor": "abc", "seen": ["a"]}


def test_request_is_immutable():
    req = build_request(_config(), {})
    with pytest.raises(ValidationError):
        req.agent = "other"  # type: ignore[misc]


@pytest.mark.parametrize("ambient", [{}, {"cursor": "abc"}, {"deep": {"x": [1, 2]}}])
def test_setup_request_ignores_state(ambient):
    req = build_setup_request(_config())

    assert req.state == {}
    assert req.setup_test is True
    wire = req.to_wire()
    assert wire["setup_test"] is True
    assert wire["state"] == {}
    assert wire["agent"] == "acme"
    assert wire["secrets"] == {"apiKey": "s3cr3t"}


# --------------- Response interpreter ---------------
def test_decode_full_response():
    body = json.dumps(
        {
            "state": {"cursor": "abc"},
            "schema": {"users": {"primary_key": ["id"]}},
            "insert": {"users": [{"id": 1}, {"id": 2}]},
            "delete": {"users": [{"id": 9}]},
            "hasMore": True,
        }
    ).encode("utf-8")

    result = decode_response(body)

    assert result.ok
    resp = result.response
    assert resp is not None
    assert resp.state == {"cursor": "abc"}
    assert resp.schema_ == {"users": {"primary_key": ["id"]}}
    assert resp.insert["users"] == [{"id": 1}, {"id": 2}]
    assert resp.delete["users"] == [{"id": 9}]
    assert resp.has_more is True
    assert result.raw == body.decode("utf-8")


def test_decode_missing_and_null_fields_take_zero_values():
    result = decode_response('{"state": null, "insert": {"users": null}, "hasMore": null}')

    assert result.ok
    resp = result.response
    assert resp is not None
    assert resp.state == {}
    assert resp.schema_ == {}
    assert resp.insert == {"users": []}
    assert resp.delete == {}
    assert resp.has_more is False


@pytest.mark.parametrize(
    "body",
    [
        b"",
        b"<html>oops</html>",
        b"[1, 2, 3]",
        b'{"insert": "not a map"}',
        b'{"state": ["not", "an", "object"]}',
        b'{"hasMore": "yes"}',
        b'{"hasMore": 1}',
        b'{"hasMore": "false"}',
    ],
)
def test_decode_malformed_body_returns_error(body):
    result = decode_response(body)

    assert not result.ok
    assert result.response is None
    assert isinstance(result.error, DecodeError)


def test_response_wire_names():
    resp = Response(state={"c": 1}, has_more=True)
    wire = resp.to_wire()
    assert wire["hasMore"] is True
    assert wire["schema"] == {}


def test_summary_example_from_docs():
    body = '{"insert": {"users": [{"id":1}], "orders": []}, "delete": {}, "hasMore": false, "state": {"cursor":"abc"}}'
    resp = decode_response(body).response
    assert resp is not None

    assert summarize_insertions(resp) == '1 users (ex: {"id":1})'


def test_summary_multiple_entities():
    resp = Response(
        insert={
            "users": [{"name": "ann", "id": 1}, {"id": 2, "name": "bob"}],
            "orders": [{"id": 7}],
            "empty": [],
        }
    )

    parts = summarize_insertions(resp).split(" - ")

    # Entity order is not part of the contract
    assert sorted(parts) == sorted(
        [
            '2 users (ex: {"id":1,"name":"ann"})',
            '1 orders (ex: {"id":7})',
        ]
    )


def test_summary_empty_when_nothing_inserted():
    assert summarize_insertions(Response()) == ""
    assert summarize_insertions(Response(insert={"users": []})) == ""


def test_deletion_summary():
    resp = Response(delete={"users": [{"id": 3}]})
    assert summarize_deletions(resp) == '1 users (ex: {"id":3})'


@pytest.mark.parametrize("flag", [True, False])
def test_boolean_has_more_decodes(flag):
    result = decode_response(json.dumps({"hasMore": flag}))
    assert result.ok
    assert result.response.has_more is flag


def test_resolve_returns_decoded_response():
    resp = decode_response('{"state": {"cursor": "abc"}, "hasMore": true}').resolve()
    assert resp.state == {"cursor": "abc"}
    assert resp.has_more is True


def test_resolve_raises_on_malformed_body():
    result = decode_response('{"hasMore": "yes"}')
    with pytest.raises(DecodeError):
        result.resolve()


def test_resolve_lenient_yields_empty_response():
    resp = decode_response("<html>oops</html>").resolve(lenient=True)
    assert resp == Response()
    assert resp.has_more is False
