"""
Adapters package for the iCal Gate.

Contains HTTP client wrappers for the gate's external collaborators:

- CalendarClient: single-attempt token validation against the calendar service
- UpstreamProxy: forwards admitted requests to the protected backend

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .calendar_client import CalendarClient
from .upstream_proxy import UpstreamProxy

__all__ = [
    "CalendarClient",
    "UpstreamProxy",
]
