"""
Replay Procedure - send one captured request and classify the outcome.
"""

import asyncio
import enum
import logging
from typing import Optional

import httpx

from promreplay.cancel import CancelScope
from promreplay.record import Record

logger = logging.getLogger(__name__)

OK_STATUSES = (200, 204)


class Outcome(str, enum.Enum):
    SUCCESS = "success"
    REPLAY_ERROR = "replay-error"
    TRANSPORT_ERROR = "transport-error"


class RequestAborted(Exception):
    """The invocation was aborted while the request was in flight."""


def build_request(record: Record) -> httpx.Request:
    """Build the outbound request exactly as captured."""
    req = record.request
    # header values go out as UTF-8 bytes, httpx would otherwise require ASCII
    headers = [
        (name.encode("utf-8"), value.encode("utf-8"))
        for name, values in req.headers.items()
        for value in values
    ]
    return httpx.Request(req.method, req.url, headers=headers, content=req.body)


async def _round_trip(client: httpx.AsyncClient, request: httpx.Request):
    resp = await client.send(request, stream=True)
    try:
        body = await resp.aread()
    finally:
        await resp.aclose()
    return resp, len(body)


async def replay(client: httpx.AsyncClient, record: Record, scope: Optional[CancelScope] = None,
                 timeout: Optional[float] = None) -> Outcome:
    """
    Replay one record against its captured URL.

    The round trip, including draining the response body, is bounded by
    timeout. If the scope is aborted the request is cancelled. Failures are
    logged and returned as an Outcome, never raised.
    """
    logger.info("# sending request to %s (%dB) ...", record.request.url, len(record.request.body))

    try:
        request = build_request(record)
        call = asyncio.wait_for(_round_trip(client, request), timeout)
        if scope is None:
            resp, n = await call
        else:
            done, result = await scope.race(call, scope.aborted)
            if not done:
                raise RequestAborted("request aborted")
            resp, n = result
    except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError, RequestAborted) as e:
        detail = str(e) or type(e).__name__
        logger.warning("%s: error sending request to %s: %s",
                       Outcome.TRANSPORT_ERROR.value, record.request.url, detail,
                       extra={"outcome": Outcome.TRANSPORT_ERROR.value})
        return Outcome.TRANSPORT_ERROR

    logger.info("# received response %d (%dB)", resp.status_code, n)

    if resp.status_code not in OK_STATUSES:
        logger.warning("%s: response error: %d %s", Outcome.REPLAY_ERROR.value,
                       resp.status_code, resp.reason_phrase,
                       extra={"outcome": Outcome.REPLAY_ERROR.value})
        return Outcome.REPLAY_ERROR

    logger.info("%s: replayed %s %s", Outcome.SUCCESS.value, record.request.method,
                record.request.url, extra={"outcome": Outcome.SUCCESS.value})
    return Outcome.SUCCESS
