"""
Record model - one captured request/response pair.

Records are decoded from the JSON documents stored in capture archives:

    {
        "request":  {"method": "POST", "url": "...", "headers": {"K": ["v"]}, "body": "<base64>"},
        "response": {"status": 200, "headers": {...}, "body": "<base64>"}
    }
"""

import base64
import binascii
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from promreplay.errors import IngestionError

Headers = Dict[str, Tuple[str, ...]]


@dataclass(frozen=True)
class Request:
    method: str
    url: str
    headers: Headers = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class Response:
    status: int = 0
    headers: Headers = field(default_factory=dict)
    body: bytes = b""


@dataclass(frozen=True)
class Record:
    request: Request
    response: Response = field(default_factory=Response)
    modtime: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Render back to the archive JSON shape, plus modtime and body sizes."""
        return {
            "modtime": self.modtime.isoformat() if self.modtime else None,
            "request": {
                "method": self.request.method,
                "url": self.request.url,
                "headers": {k: list(v) for k, v in self.request.headers.items()},
                "body": encode_body(self.request.body),
                "body_size": len(self.request.body),
            },
            "response": {
                "status": self.response.status,
                "headers": {k: list(v) for k, v in self.response.headers.items()},
                "body": encode_body(self.response.body),
                "body_size": len(self.response.body),
            },
        }


def encode_body(body: bytes) -> str:
    return base64.b64encode(body).decode("ascii")


def decode_body(value: Any) -> bytes:
    """Decode a standard base64 body; null or missing means empty."""
    if value is None or value == "":
        return b""
    if not isinstance(value, str):
        raise IngestionError(f"body must be a base64 string, got {type(value).__name__}")
    try:
        # line-wrapped base64 is accepted, any other stray character is not
        return base64.b64decode(value.replace("\r", "").replace("\n", ""), validate=True)
    except binascii.Error as e:
        raise IngestionError(f"invalid base64 body: {e}") from e


def decode_headers(value: Any) -> Headers:
    """Decode a header multimap of name -> list of values."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise IngestionError(f"headers must be an object, got {type(value).__name__}")

    headers = {}
    for name, values in value.items():
        if values is None:
            values = []
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise IngestionError(f"header {name!r} must be a list of strings")
        headers[name] = tuple(values)
    return headers


def _section(doc: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = doc.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise IngestionError(f"{key!r} must be an object, got {type(section).__name__}")
    return section


def record_from_dict(doc: Any, modtime: Optional[datetime] = None) -> Record:
    """
    Build a Record from a decoded JSON document.

    Raises:
        IngestionError: if the document does not have the record shape or the
            request lacks a method or URL.
    """
    if not isinstance(doc, dict):
        raise IngestionError(f"record must be a JSON object, got {type(doc).__name__}")

    req = _section(doc, "request")
    resp = _section(doc, "response")

    method = req.get("method") or ""
    url = req.get("url") or ""
    if not isinstance(method, str) or not isinstance(url, str):
        raise IngestionError("request method and url must be strings")
    if not method or not url:
        raise IngestionError("request has no method or url")

    status = resp.get("status") or 0
    if not isinstance(status, int) or isinstance(status, bool):
        raise IngestionError(f"response status must be an integer, got {status!r}")

    return Record(
        request=Request(
            method=method,
            url=url,
            headers=decode_headers(req.get("headers")),
            body=decode_body(req.get("body")),
        ),
        response=Response(
            status=status,
            headers=decode_headers(resp.get("headers")),
            body=decode_body(resp.get("body")),
        ),
        modtime=modtime,
    )
