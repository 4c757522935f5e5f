"""
Shared error handling for the iCal Gate.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class GateException(Exception):
    """Base exception for iCal Gate components."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ConfigurationError(GateException):
    """Invalid gate configuration. Raised at construction, never per request."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class AuthenticationError(GateException):
    """Per-request credential failure. Every subclass maps to a 401."""

    def __init__(self, code: str = "AUTHENTICATION_ERROR", message: str = "Authentication failed",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__(code, message, details)


class NoCredentialError(AuthenticationError):
    """The request carried no token in the configured header."""

    def __init__(self, message: str = "no token provided", details: Optional[Dict[str, Any]] = None):
        super().__init__("NO_CREDENTIAL", message, details)


class InvalidCredentialError(AuthenticationError):
    """The calendar service rejected the token."""

    def __init__(self, message: str = "request invalid", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_CREDENTIAL", message, details)


class TransportFailure(AuthenticationError):
    """The calendar service could not be reached or returned a short body."""

    def __init__(self, service: str, message: str = "request error", details: Optional[Dict[str, Any]] = None):
        super().__init__("TRANSPORT_FAILURE", f"{service}: {message}", details)


class UpstreamError(GateException):
    """The protected backend could not be reached."""

    def __init__(self, message: str = "Upstream unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_ERROR", message, details)
