"""
Single-upstream HTTP forwarder used as the gate's downstream handler.
"""

from typing import Optional

import httpx
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.types import Receive, Scope, Send
from starlette.websockets import WebSocketClose

from shared.logging import get_logger, request_id_var
from shared.errors import UpstreamError


HOP_BY_HOP_HEADERS = {
    b"connection",
    b"keep-alive",
    b"proxy-authenticate",
    b"proxy-authorization",
    b"te",
    b"trailer",
    b"trailers",
    b"transfer-encoding",
    b"upgrade",
}

# Describe the wire body, not the decoded one
BUFFERED_BODY_HEADERS = {b"content-encoding", b"content-length"}


class UpstreamProxy:
    """ASGI app relaying every HTTP request to one backend."""

    def __init__(
        self,
        upstream_url: str,
        timeout: float = 30.0,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.upstream_url = upstream_url.rstrip("/")
        self.logger = get_logger("gate.upstream_proxy")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            if scope["type"] == "websocket":
                await WebSocketClose(code=1003)(scope, receive, send)
            return

        request = Request(scope, receive)
        url = httpx.URL(
            self.upstream_url + scope["path"],
            query=scope.get("query_string", b""),
        )
        headers = [
            (key, value) for key, value in request.headers.raw
            if key.lower() not in HOP_BY_HOP_HEADERS
            and key.lower() not in (b"host", b"content-length")
        ]
        upstream_request = self._client.build_request(
            request.method,
            url,
            headers=headers,
            content=await request.body(),
        )

        try:
            upstream_response = await self._client.send(upstream_request, stream=True)
        except httpx.HTTPError as e:
            self.logger.error("Upstream request failed", url=str(url), error=str(e))
            error = UpstreamError(details={"http_error": type(e).__name__})
            response = JSONResponse(
                status_code=502,
                content=error.to_response(request_id_var.get()).model_dump(),
            )
            await response(scope, receive, send)
            return

        headers = [
            (key.lower(), value) for key, value in upstream_response.headers.raw
            if key.lower() not in HOP_BY_HOP_HEADERS
        ]
        if upstream_response.is_stream_consumed:
            # Transport already buffered and decoded the body
            response = Response(
                upstream_response.content,
                status_code=upstream_response.status_code,
                background=BackgroundTask(upstream_response.aclose),
            )
            headers = [
                (key, value) for key, value in headers
                if key not in BUFFERED_BODY_HEADERS
            ] + [
                (key, value) for key, value in response.raw_headers
                if key == b"content-length"
            ]
        else:
            response = StreamingResponse(
                upstream_response.aiter_raw(),
                status_code=upstream_response.status_code,
                background=BackgroundTask(upstream_response.aclose),
            )
        response.raw_headers = headers
        await response(scope, receive, send)
