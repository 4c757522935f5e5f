"""
Bearer token extraction from the configured request header.
"""

from typing import MutableMapping, Any

from starlette.requests import HTTPConnection

BEARER_PREFIX = "Bearer "


def extract_token(request: HTTPConnection, header_name: str) -> str:
    """Return the token carried in ``header_name``, or "" when absent.

    Only the first value of a repeated header is used. A ``Bearer `` prefix
    is removed; any other value is taken verbatim.
    """
    values = request.headers.getlist(header_name)
    if not values:
        return ""

    token = values[0]
    if token.startswith(BEARER_PREFIX):
        return token[len(BEARER_PREFIX):]
    return token


def strip_header(scope: MutableMapping[str, Any], header_name: str) -> None:
    """Remove every occurrence of ``header_name`` from an ASGI scope in place."""
    name = header_name.lower().encode("latin-1")
    scope["headers"] = [
        (key, value) for key, value in scope.get("headers", [])
        if key.lower() != name
    ]
