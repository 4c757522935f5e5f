"""
Authorization gate for requests bound for the protected backend.

Callers inside the allowed subnet are admitted outright. Everyone else must
present a token in the configured header; the token is accepted if it is in
the cache or if the calendar service confirms it, in which case it is cached
for the freshness window. Every failure is a 401.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, MutableMapping, Optional

from starlette.requests import HTTPConnection
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send
from starlette.websockets import WebSocketClose

from shared.errors import AuthenticationError, NoCredentialError
from shared.logging import (
    get_logger,
    set_request_id,
    set_client_context,
    clear_context,
    token_fingerprint,
)
from shared.metrics import MetricsCollector
from ..adapters.calendar_client import CalendarClient
from ..caching.expiring_cache import ExpiringCache, TokenCache
from ..config import GateConfig
from .client_network import resolve_client_address, is_in_allowed_subnet
from .credentials import extract_token, strip_header


REQUEST_ID_HEADER = "X-Request-Id"


class Outcome(str, Enum):
    ADMIT = "admit"
    DENY = "deny"


@dataclass(frozen=True)
class Decision:
    """Per-request result. ``scope`` is what the backend should receive."""
    outcome: Outcome
    reason: str
    scope: MutableMapping[str, Any] = field(default_factory=dict, repr=False)
    error: Optional[AuthenticationError] = None

    @property
    def admitted(self) -> bool:
        return self.outcome is Outcome.ADMIT


class AuthorizationGate:
    """Admit/deny decisions for one configured gate instance.

    The gate owns its cache and calendar client. Concurrent cache misses for
    the same token share a single validation call; misses for different
    tokens proceed independently.
    """

    def __init__(
        self,
        config: GateConfig,
        *,
        cache: Optional[TokenCache] = None,
        calendar_client: Optional[CalendarClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config
        self.allowed_network = config.allowed_network
        self.cache = cache if cache is not None else ExpiringCache(
            config.freshness, config.cleanup_interval
        )
        self.calendar_client = calendar_client or CalendarClient(
            config.calendar_service_url, timeout=config.validation_timeout
        )
        self.metrics: Optional[MetricsCollector] = None
        if metrics is not None:
            self.bind_metrics(metrics)
        self.logger = get_logger("gate.auth_middleware").bind(gate=config.name)

        self._inflight: Dict[str, asyncio.Future] = {}
        self._started = False

    def bind_metrics(self, metrics: MetricsCollector) -> None:
        """Report through ``metrics``; the cache size gauge reads the live cache."""
        self.metrics = metrics
        if isinstance(self.cache, ExpiringCache):
            cache = self.cache
            metrics.track_gauge("token_cache_entries", lambda: len(cache))

    @property
    def unauthorized_message(self) -> str:
        return f"Unauthorized. Attach valid ICal ETIS token in {self.config.header_name} header"

    async def startup(self) -> None:
        """Start the cache's background eviction."""
        if self._started:
            return
        self._started = True
        await self.cache.start()
        self.logger.info(
            "Authorization gate started",
            header_name=self.config.header_name,
            forward_token=self.config.forward_token,
            freshness_seconds=self.config.freshness,
            allow_subnet=str(self.allowed_network),
        )

    async def shutdown(self) -> None:
        """Stop eviction and release the calendar client."""
        if self._started:
            await self.cache.stop()
            self._started = False
        await self.calendar_client.close()
        self.logger.info("Authorization gate stopped")

    async def authorize(self, request: HTTPConnection) -> Decision:
        """Decide whether ``request`` may reach the backend."""
        address = resolve_client_address(request)
        set_client_context(address)

        if is_in_allowed_subnet(address, self.allowed_network):
            self.logger.debug("Trusted network, token check skipped", address=address)
            return self._admit(request, "trusted_network")

        token = extract_token(request, self.config.header_name)
        if not token:
            self.logger.warning("No token provided", header_name=self.config.header_name)
            return self._deny(request, NoCredentialError())

        if self.cache.has(token):
            self._count("token_cache_lookups_total", result="hit")
            self.logger.debug("Token found in cache", token=token_fingerprint(token))
            return self._admit(request, "cache_hit")
        self._count("token_cache_lookups_total", result="miss")

        try:
            await self._validate_once(token)
        except AuthenticationError as e:
            self.logger.warning(
                "Token rejected",
                token=token_fingerprint(token),
                code=e.code,
                error=e.message,
            )
            return self._deny(request, e)

        return self._admit(request, "validated")

    def deny_response(self, request: HTTPConnection) -> Response:
        """Build the 401 sent for every denied request."""
        headers = {"X-Content-Type-Options": "nosniff"}
        origin = request.headers.get("Origin")
        if origin:
            headers.update({
                "Cache-Control": "no-cache",
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Headers": "*",
                "Access-Control-Max-Age": "0",
            })
        return PlainTextResponse(
            self.unauthorized_message + "\n",
            status_code=401,
            headers=headers,
        )

    async def _validate_once(self, token: str) -> None:
        """Validate ``token``, joining a validation already in flight for it."""
        pending = self._inflight.get(token)
        if pending is None:
            pending = asyncio.ensure_future(self._validate_and_cache(token))
            self._inflight[token] = pending
            pending.add_done_callback(lambda done: self._forget(token, done))
        await asyncio.shield(pending)

    def _forget(self, token: str, done: asyncio.Future) -> None:
        if self._inflight.get(token) is done:
            del self._inflight[token]

    async def _validate_and_cache(self, token: str) -> None:
        try:
            if self.metrics:
                with self.metrics.time_operation("token_validation_duration_seconds"):
                    await self.calendar_client.validate_token(token)
            else:
                await self.calendar_client.validate_token(token)
        except AuthenticationError as e:
            self._count("token_validations_total", result=e.code.lower())
            raise

        self.cache.set(token, True, 0)
        self._count("token_validations_total", result="valid")

    def _admit(self, request: HTTPConnection, reason: str) -> Decision:
        scope = dict(request.scope)
        if not self.config.forward_token:
            strip_header(scope, self.config.header_name)
        if self.metrics:
            self.metrics.record_decision(Outcome.ADMIT.value, reason)
        return Decision(outcome=Outcome.ADMIT, reason=reason, scope=scope)

    def _deny(self, request: HTTPConnection, error: AuthenticationError) -> Decision:
        if self.metrics:
            self.metrics.record_decision(Outcome.DENY.value, error.code.lower())
        return Decision(
            outcome=Outcome.DENY,
            reason=error.code.lower(),
            scope=request.scope,
            error=error,
        )

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)


class IcalGateMiddleware:
    """ASGI middleware placing an AuthorizationGate in front of ``app``."""

    def __init__(self, app: ASGIApp, gate: AuthorizationGate):
        self.app = app
        self.gate = gate

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        await self.gate.startup()
        request = HTTPConnection(scope)
        set_request_id(request.headers.get(REQUEST_ID_HEADER))
        try:
            decision = await self.gate.authorize(request)
            if decision.admitted:
                await self.app(decision.scope, receive, send)
            elif scope["type"] == "websocket":
                await WebSocketClose(code=1008)(scope, receive, send)
            else:
                await self.gate.deny_response(request)(scope, receive, send)
        finally:
            clear_context()
