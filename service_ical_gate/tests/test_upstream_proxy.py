"""
Unit tests for the upstream proxy.
"""

import httpx
import pytest

from service_ical_gate.app.adapters.upstream_proxy import UpstreamProxy


class TestUpstreamProxy:
    """Test cases for UpstreamProxy."""

    @pytest.fixture
    def upstream_requests(self):
        return []

    @pytest.fixture
    def proxy(self, upstream_requests):
        def handler(request: httpx.Request) -> httpx.Response:
            upstream_requests.append(request)
            return httpx.Response(
                201,
                headers=[
                    ("Content-Type", "text/calendar"),
                    ("Set-Cookie", "a=1"),
                    ("Set-Cookie", "b=2"),
                    ("Connection", "close"),
                ],
                content=b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n",
            )

        return UpstreamProxy("http://backend.internal:9000/", transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_forwards_request(self, proxy, upstream_requests):
        transport = httpx.ASGITransport(app=proxy)
        async with httpx.AsyncClient(transport=transport, base_url="http://gate.test") as client:
            response = await client.post(
                "/timetable/week?group=42",
                content=b"payload",
                headers={"X-Custom": "yes", "Connection": "keep-alive"},
            )
        await proxy.close()

        assert len(upstream_requests) == 1
        forwarded = upstream_requests[0]
        assert forwarded.method == "POST"
        assert str(forwarded.url) == "http://backend.internal:9000/timetable/week?group=42"
        assert forwarded.content == b"payload"
        assert forwarded.headers["x-custom"] == "yes"
        assert forwarded.headers["host"] == "backend.internal:9000"

        assert response.status_code == 201
        assert response.content == b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"
        assert response.headers["content-type"] == "text/calendar"
        assert response.headers.get_list("set-cookie") == ["a=1", "b=2"]
        assert "connection" not in response.headers

    @pytest.mark.asyncio
    async def test_unreachable_upstream_returns_502(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        proxy = UpstreamProxy("http://backend.internal:9000", transport=httpx.MockTransport(handler))
        transport = httpx.ASGITransport(app=proxy)
        async with httpx.AsyncClient(transport=transport, base_url="http://gate.test") as client:
            response = await client.get("/timetable")
        await proxy.close()

        assert response.status_code == 502
        body = response.json()
        assert body["code"] == "UPSTREAM_ERROR"
        assert body["details"] == {"http_error": "ConnectError"}

    @pytest.mark.asyncio
    async def test_buffered_body_sets_content_length(self, proxy):
        transport = httpx.ASGITransport(app=proxy)
        async with httpx.AsyncClient(transport=transport, base_url="http://gate.test") as client:
            response = await client.get("/timetable")
        await proxy.close()

        assert response.status_code == 201
        assert response.headers.get_list("content-length") == [str(len(response.content))]

    @pytest.mark.asyncio
    async def test_streamed_body_relayed(self):
        async def chunks():
            yield b"BEGIN:VCALENDAR\r\n"
            yield b"END:VCALENDAR\r\n"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"Content-Type": "text/calendar"}, content=chunks())

        proxy = UpstreamProxy("http://backend.internal:9000", transport=httpx.MockTransport(handler))
        transport = httpx.ASGITransport(app=proxy)
        async with httpx.AsyncClient(transport=transport, base_url="http://gate.test") as client:
            response = await client.get("/timetable")
        await proxy.close()

        assert response.status_code == 200
        assert response.content == b"BEGIN:VCALENDAR\r\nEND:VCALENDAR\r\n"
        assert response.headers["content-type"] == "text/calendar"
