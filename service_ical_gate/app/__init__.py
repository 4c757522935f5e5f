"""
iCal Gate service package.

The gate fronts a protected backend and lets a request through when:
- the caller's address is inside the trusted subnet, or
- it carries a token the calendar service accepts (cached for a freshness
  window so repeat requests skip the remote check).

Structure:
- app.main: FastAPI app wiring, health/metrics routes, gated proxy mount.
- app.config: Immutable gate configuration.
- app.adapters: HTTP clients for the calendar service and the upstream.
- app.caching: Expiring token cache and its background sweeper.
- app.domain: Address classification, token extraction, the gate itself.
"""
