"""
Unit tests for the shared errors, logging helpers and metrics collector.
"""

import logging

import structlog

from shared.errors import (
    AuthenticationError,
    GateException,
    InvalidCredentialError,
    NoCredentialError,
    TransportFailure,
    UpstreamError,
)
from shared.logging import (
    add_component_context,
    add_correlation_context,
    clear_context,
    configure_logging,
    set_client_context,
    set_request_id,
    token_fingerprint,
)
from shared.metrics import MetricsCollector


class TestErrors:
    """Test cases for the error taxonomy."""

    def test_credential_errors_share_base(self):
        for error in (NoCredentialError(), InvalidCredentialError(), TransportFailure("calendar_service")):
            assert isinstance(error, AuthenticationError)
            assert isinstance(error, GateException)

    def test_transport_failure_message(self):
        error = TransportFailure("calendar_service", "read error: unexpected EOF")
        assert error.code == "TRANSPORT_FAILURE"
        assert error.message == "calendar_service: read error: unexpected EOF"

    def test_to_response(self):
        response = UpstreamError(details={"http_error": "ConnectError"}).to_response("req-1")
        assert response.request_id == "req-1"
        assert response.code == "UPSTREAM_ERROR"
        assert response.details == {"http_error": "ConnectError"}


class TestLoggingHelpers:
    """Test cases for logging context helpers."""

    def test_token_fingerprint(self):
        assert token_fingerprint("short") == "***"
        assert token_fingerprint("abcdefghijkl") == "abcd..."

    def test_correlation_context(self):
        set_request_id("req-42")
        set_client_context("203.0.113.7")
        try:
            event = add_correlation_context(None, "info", {"event": "x"})
        finally:
            clear_context()

        assert event["request_id"] == "req-42"
        assert event["client_ip"] == "203.0.113.7"
        assert add_correlation_context(None, "info", {"event": "x"}) == {"event": "x"}

    def test_generated_request_id(self):
        try:
            assert set_request_id()
        finally:
            clear_context()

    def test_component_context(self):
        event = add_component_context(None, "info", {"event": "x", "logger": "gate.calendar_client"})
        assert event["service"] == "gate"
        assert event["component"] == "calendar_client"
        assert "component" not in add_component_context(None, "info", {"event": "x", "logger": "gate"})

    def test_configured_timestamp_is_iso(self):
        configure_logging("gate", "info")
        processors = structlog.get_config()["processors"]

        event = {"event": "x"}
        # Everything but the final renderer
        for processor in processors[:-1]:
            event = processor(logging.getLogger("gate.cache"), "warning", event)

        assert isinstance(event["timestamp"], str)
        assert "T" in event["timestamp"]
        assert event["component"] == "cache"


class TestMetricsCollector:
    """Test cases for MetricsCollector."""

    def test_collectors_do_not_share_registry(self):
        first = MetricsCollector("gate")
        second = MetricsCollector("gate")

        first.record_decision("admit", "cache_hit")

        assert first.get_sample("gate_decisions_total", outcome="admit", reason="cache_hit") == 1.0
        assert second.get_sample("gate_decisions_total", outcome="admit", reason="cache_hit") == 0.0

    def test_counters_and_gauge(self):
        metrics = MetricsCollector("gate")

        metrics.increment_counter("token_validations_total", result="valid")
        metrics.set_gauge("token_cache_entries", 3)
        with metrics.time_operation("token_validation_duration_seconds"):
            pass

        assert metrics.get_sample("token_validations_total", result="valid") == 1.0
        assert metrics.get_sample("token_cache_entries") == 3.0
        assert metrics.get_sample("token_validation_duration_seconds_count") == 1.0
