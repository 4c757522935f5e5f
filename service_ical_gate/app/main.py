"""
iCal Gate service: token gate in front of a single protected backend.
"""

from typing import Any, Dict, Optional

from shared.base_service import BaseService
from shared.config import ServiceConfig
from .adapters.upstream_proxy import UpstreamProxy
from .caching.expiring_cache import ExpiringCache
from .config import GateConfig
from .domain.auth_middleware import AuthorizationGate, IcalGateMiddleware


DEFAULT_PORT = 8000


class GateService(BaseService):
    """Service wiring: /health, /metrics, and the gated proxy on every other path."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        gate_config: Optional[GateConfig] = None,
        *,
        gate: Optional[AuthorizationGate] = None,
        upstream: Optional[UpstreamProxy] = None,
    ):
        super().__init__("gate", DEFAULT_PORT, config)
        self.gate_config = gate_config or GateConfig.from_settings(self.config)
        self.gate = gate or AuthorizationGate(self.gate_config)
        if self.gate.metrics is None:
            self.gate.bind_metrics(self.metrics)
        self.upstream = upstream or UpstreamProxy(
            self.config.upstream_url,
            timeout=self.config.upstream_timeout,
        )

        # Registered last so /health and /metrics match first
        self.app.mount("/", IcalGateMiddleware(self.upstream, self.gate))

        # Expose service instance via app state for introspection/testing
        self.app.state.gate_service = self

    async def on_startup(self) -> None:
        await self.gate.startup()

    async def on_shutdown(self) -> None:
        await self.gate.shutdown()
        await self.upstream.close()

    async def _check_dependencies(self) -> Dict[str, Any]:
        cache = self.gate.cache
        running = getattr(cache, "running", False)
        status: Dict[str, Any] = {"token_cache": "running" if running else "stopped"}
        if isinstance(cache, ExpiringCache):
            status["token_cache_entries"] = len(cache)
        return status


def create_app():
    """Create the FastAPI application from environment settings."""
    return GateService().app


def main():
    """Console entry point."""
    GateService().run()


if __name__ == "__main__":
    main()
