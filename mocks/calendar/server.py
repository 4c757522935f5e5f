"""
Mock calendar service answering calendar export requests.
"""

from typing import Dict, Iterable, Optional
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from shared.logging import get_logger


SAMPLE_CALENDAR = (
    "BEGIN:VCALENDAR\r\n"
    "VERSION:2.0\r\n"
    "PRODID:-//Mock ETIS//Timetable//RU\r\n"
    "BEGIN:VEVENT\r\n"
    "UID:lecture-1@mock\r\n"
    "DTSTART:20240902T090000Z\r\n"
    "DTEND:20240902T103000Z\r\n"
    "SUMMARY:Lecture\r\n"
    "END:VEVENT\r\n"
    "END:VCALENDAR\r\n"
)

INVALID_TOKEN_BODY = "INVALID_TOKEN: calendar not found\n"


class MockCalendarServer:
    """Mock calendar service implementation."""

    def __init__(self, port: int = 8090, tokens: Optional[Iterable[str]] = None):
        self.port = port
        self.logger = get_logger("mock.calendar")
        self.app = FastAPI(title="Mock Calendar Service", version="1.0.0")

        # Known calendar tokens
        self.tokens = set(tokens or ["valid-token-123", "valid-token-456"])
        self.request_counts: Dict[str, int] = {}

        self._setup_routes()

    def _setup_routes(self):
        """Set up mock calendar routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "mock-calendar",
                "message": "Mock calendar service for the iCal Gate",
                "version": "1.0.0"
            }

        @self.app.get("/calendars/{token}")
        async def calendar_export(token: str):
            """Calendar export endpoint."""
            self.request_counts[token] = self.request_counts.get(token, 0) + 1

            if token not in self.tokens:
                self.logger.info("Unknown calendar token requested")
                return PlainTextResponse(INVALID_TOKEN_BODY, status_code=404)

            return PlainTextResponse(SAMPLE_CALENDAR, media_type="text/calendar")


def create_app():
    """Create mock calendar application."""
    server = MockCalendarServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8090)
