import asyncio
import logging

import httpx

from promreplay.cancel import CancelScope
from promreplay.record import Record, Request
from promreplay.replay import Outcome, build_request, replay


def make_record(**kwargs):
    fields = {"method": "POST", "url": "http://x/read", "body": b"abc",
              "headers": {"Content-Encoding": ["snappy"], "X-Multi": ["a", "b"]}}
    fields.update(kwargs)
    return Record(request=Request(**fields))


def run_replay(handler, record=None, timeout=5.0, scope=None):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await replay(client, record or make_record(), scope, timeout)
    return asyncio.run(run())


def outcomes(caplog):
    return [r.outcome for r in caplog.records if hasattr(r, "outcome")]


def test_build_request_keeps_captured_request():
    req = build_request(make_record())

    assert req.method == "POST"
    assert str(req.url) == "http://x/read"
    assert req.content == b"abc"
    assert req.headers.get_list("X-Multi") == ["a", "b"]
    assert req.headers["Content-Encoding"] == "snappy"
    assert "User-Agent" not in req.headers


def test_success_on_204(caplog):
    caplog.set_level(logging.INFO)
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    assert run_replay(handler) is Outcome.SUCCESS
    assert seen[0].content == b"abc"
    assert outcomes(caplog) == ["success"]
    assert "# sending request to http://x/read (3B)" in caplog.text
    assert "# received response 204 (0B)" in caplog.text


def test_success_on_200_drains_body(caplog):
    caplog.set_level(logging.INFO)

    assert run_replay(lambda request: httpx.Response(200, content=b"x" * 128)) is Outcome.SUCCESS
    assert "# received response 200 (128B)" in caplog.text


def test_replay_error_on_other_status(caplog):
    caplog.set_level(logging.INFO)

    assert run_replay(lambda request: httpx.Response(500)) is Outcome.REPLAY_ERROR
    assert outcomes(caplog) == ["replay-error"]
    assert "Internal Server Error" in caplog.text


def test_transport_error(caplog):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert run_replay(handler) is Outcome.TRANSPORT_ERROR
    assert outcomes(caplog) == ["transport-error"]
    assert "connection refused" in caplog.text


def test_timeout_is_transport_error():
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(204)

    assert run_replay(handler, timeout=0.05) is Outcome.TRANSPORT_ERROR


def test_abort_cancels_in_flight_request():
    async def handler(request):
        await asyncio.sleep(30)
        return httpx.Response(204)

    async def run():
        scope = CancelScope()
        asyncio.get_running_loop().call_later(0.05, scope.abort)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await asyncio.wait_for(replay(client, make_record(), scope, 60.0), 2.0)

    assert asyncio.run(run()) is Outcome.TRANSPORT_ERROR


def test_stop_does_not_cancel_in_flight_request():
    async def handler(request):
        await asyncio.sleep(0.1)
        return httpx.Response(204)

    async def run():
        scope = CancelScope()
        asyncio.get_running_loop().call_later(0.02, scope.stop)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await replay(client, make_record(), scope, 5.0)

    assert asyncio.run(run()) is Outcome.SUCCESS


def test_invalid_url_is_transport_error():
    record = make_record(url="http://[::1")

    assert run_replay(lambda request: httpx.Response(204), record=record) is Outcome.TRANSPORT_ERROR


def test_non_ascii_header_is_sent_as_utf8(caplog):
    caplog.set_level(logging.INFO)
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(204)

    record = make_record(headers={"X-User": ["café"]})

    assert (b"X-User", b"caf\xc3\xa9") in build_request(record).headers.raw
    assert run_replay(handler, record=record) is Outcome.SUCCESS
    assert (b"X-User", b"caf\xc3\xa9") in seen[0].headers.raw
    assert outcomes(caplog) == ["success"]


def test_outcome_word_is_in_the_log_message(caplog):
    caplog.set_level(logging.INFO)

    run_replay(lambda request: httpx.Response(204))
    run_replay(lambda request: httpx.Response(503))

    assert "success: replayed POST http://x/read" in caplog.messages
    assert "replay-error: response error: 503 Service Unavailable" in caplog.messages
