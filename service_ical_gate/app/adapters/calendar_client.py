"""
Calendar service client used to validate tokens.
"""

import asyncio
from typing import Optional
from urllib.parse import quote

import httpx

from shared.logging import get_logger, token_fingerprint
from shared.errors import InvalidCredentialError, TransportFailure


CALENDAR_MARKER = b"BEGIN"
PREFIX_LENGTH = 20
SERVICE_NAME = "calendar_service"


class CalendarClient:
    """Validates a token by fetching the calendar export it names.

    A token is valid when the export body starts with ``BEGIN`` (the iCalendar
    ``BEGIN:VCALENDAR`` line). Exactly one request is made per call; failures
    are not retried.
    """

    def __init__(
        self,
        calendar_service_url: str,
        timeout: float = 5.0,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.calendar_service_url = calendar_service_url.rstrip("/")
        self.timeout = timeout
        self.logger = get_logger("gate.calendar_client")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def calendar_url(self, token: str) -> str:
        """Build the export URL; the token is always a single path segment."""
        return f"{self.calendar_service_url}/calendars/{quote(token, safe='')}"

    async def validate_token(self, token: str) -> None:
        """Validate ``token`` against the calendar service.

        Raises
        ------
        InvalidCredentialError
            The service answered but the body is not a calendar export.
        TransportFailure
            The request failed, timed out, or the body was shorter than the
            prefix that has to be inspected.
        """
        try:
            prefix = await asyncio.wait_for(self._read_prefix(token), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            self.logger.error("Calendar service timeout", token=token_fingerprint(token))
            raise TransportFailure(
                SERVICE_NAME,
                "request timed out",
                details={"timeout_seconds": self.timeout}
            ) from e
        except httpx.HTTPError as e:
            self.logger.error("Calendar service HTTP error", error=str(e), token=token_fingerprint(token))
            raise TransportFailure(
                SERVICE_NAME,
                f"request error: {e}",
                details={"http_error": type(e).__name__}
            ) from e

        if not prefix.startswith(CALENDAR_MARKER):
            self.logger.warning("Request invalid", token=token_fingerprint(token))
            raise InvalidCredentialError()

        self.logger.info("Request valid", token=token_fingerprint(token))

    async def _read_prefix(self, token: str) -> bytes:
        """Read the first PREFIX_LENGTH bytes of the export body."""
        body = b""
        async with self._client.stream("GET", self.calendar_url(token)) as response:
            async for chunk in response.aiter_bytes():
                body += chunk
                if len(body) >= PREFIX_LENGTH:
                    return body[:PREFIX_LENGTH]

        raise TransportFailure(
            SERVICE_NAME,
            "read error: unexpected EOF",
            details={"received_bytes": len(body), "status_code": response.status_code}
        )
