"""
Test helper functions and factory methods for the iCal Gate.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote

import httpx
from starlette.requests import Request


VALID_CALENDAR_BODY = (
    b"BEGIN:VCALENDAR\r\nVERSION:2.0\r\nPRODID:-//Test//Timetable//EN\r\nEND:VCALENDAR\r\n"
)
INVALID_CALENDAR_BODY = b"INVALID_TOKEN......................"

UNTRUSTED_CLIENT = ("203.0.113.7", 51234)
TRUSTED_CLIENT = ("10.1.2.3", 40000)


class FakeClock:
    """Monotonic clock stand-in that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_scope(
    headers: Optional[Iterable[Tuple[str, str]]] = None,
    client: Optional[Tuple[str, int]] = UNTRUSTED_CLIENT,
    path: str = "/",
    method: str = "GET",
    scope_type: str = "http",
) -> Dict[str, Any]:
    """Build a minimal ASGI scope."""
    if isinstance(headers, dict):
        headers = headers.items()
    raw_headers = [
        (name.lower().encode("latin-1"), value.encode("latin-1"))
        for name, value in (headers or [])
    ]
    return {
        "type": scope_type,
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("latin-1"),
        "root_path": "",
        "query_string": b"",
        "headers": raw_headers,
        "client": client,
        "server": ("testserver", 80),
    }


def make_request(
    headers: Optional[Iterable[Tuple[str, str]]] = None,
    client: Optional[Tuple[str, int]] = UNTRUSTED_CLIENT,
    path: str = "/",
) -> Request:
    """Build a Starlette request for gate unit tests."""
    return Request(make_scope(headers=headers, client=client, path=path))


@dataclass
class CalendarServiceStub:
    """Calendar service behind an httpx.MockTransport, recording each lookup."""

    valid_tokens: set = field(default_factory=set)
    calls: List[str] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        token = unquote(request.url.raw_path.decode("ascii").rsplit("/", 1)[-1])
        self.calls.append(token)
        if token in self.valid_tokens:
            return httpx.Response(200, content=VALID_CALENDAR_BODY)
        return httpx.Response(404, content=INVALID_CALENDAR_BODY)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingApp:
    """Downstream ASGI app that records the scopes it receives."""

    def __init__(self, body: bytes = b"backend ok"):
        self.body = body
        self.scopes: List[Dict[str, Any]] = []

    async def __call__(self, scope, receive, send):
        self.scopes.append(scope)
        await send({
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"text/plain")],
        })
        await send({"type": "http.response.body", "body": self.body})

    def header_values(self, index: int, name: str) -> List[str]:
        key = name.lower().encode("latin-1")
        return [
            value.decode("latin-1")
            for header, value in self.scopes[index]["headers"]
            if header == key
        ]
