"""
Shared utilities for the iCal Gate.

This package holds the building blocks the gate service is assembled from:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton with /health and /metrics

Do not import from service_ical_gate into shared/.
"""
