import json

import pytest

from conftest import record_doc
from promreplay.archive import parse_record
from promreplay.errors import IngestionError
from promreplay.record import Record, Request


def test_parse_record_decodes_request_and_response():
    doc = record_doc(
        body=b"abc",
        headers={"Accept-Encoding": ["snappy"], "X-Multi": ["a", "b"]},
        status=204,
        response_body=b"\x00\x01",
    )

    rec = parse_record(json.dumps(doc).encode())

    assert rec.request.method == "POST"
    assert rec.request.url == "http://x/read"
    assert rec.request.body == b"abc"
    assert rec.request.headers["X-Multi"] == ("a", "b")
    assert rec.response.status == 204
    assert rec.response.body == b"\x00\x01"
    assert rec.modtime is None


def test_parse_record_missing_body_and_headers():
    raw = b'{"request": {"method": "GET", "url": "http://x/api", "headers": null}}'

    rec = parse_record(raw)

    assert rec.request.body == b""
    assert rec.request.headers == {}
    assert rec.response.status == 0


@pytest.mark.parametrize("raw", [
    b"not json",
    b"[1, 2, 3]",
    b'{"request": {"url": "http://x/read"}}',
    b'{"request": {"method": "POST"}}',
    b'{"request": {"method": "POST", "url": "http://x", "body": "%%%"}}',
    b'{"request": {"method": "POST", "url": "http://x", "headers": {"A": "b"}}}',
    b'{"request": {"method": "POST", "url": "http://x"}, "response": {"status": "ok"}}',
])
def test_parse_record_rejects_malformed(raw):
    with pytest.raises(IngestionError):
        parse_record(raw)


def test_record_is_immutable():
    rec = Record(request=Request(method="GET", url="http://x"))
    with pytest.raises(AttributeError):
        rec.request.method = "POST"


def test_to_dict_round_trips_body_as_base64():
    rec = parse_record(json.dumps(record_doc(body=b"abc")).encode())

    out = rec.to_dict()

    assert out["request"]["body"] == "YWJj"
    assert out["request"]["body_size"] == 3
    assert out["request"]["headers"] == {"Content-Type": ["application/x-protobuf"]}


def test_parse_record_accepts_line_wrapped_base64():
    raw = b'{"request": {"method": "POST", "url": "http://x/read", "body": "YWJj\\r\\nZGVm\\n"}}'

    assert parse_record(raw).request.body == b"abcdef"
