"""Tenant isolation middleware using ContextVar.

Every discount rule belongs to one shop (tenant). The shop is read from
the X-Tenant-ID request header, or from the first label of the host name
(acme.shop.example → "acme"). It is stored in a ContextVar so the
storefront router can call get_current_tenant() without threading the id
through every signature.
"""

import re
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

DEFAULT_TENANT = "default"

# Matches DiscountRuleRecord.tenant_id (String(64))
_TENANT_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")

# ---------------------------------------------------------------------------
# Context variable: task-local tenant state
# ---------------------------------------------------------------------------

_current_tenant: ContextVar[str] = ContextVar("current_tenant", default=DEFAULT_TENANT)


def get_current_tenant() -> str:
    """Return the tenant ID for the current request.

    Safe to call from any async context within the request lifecycle::

        tenant = get_current_tenant()
        rules = await repo.load_rules(tenant, now)
    """
    return _current_tenant.get()


def tenant_from_host(host: str) -> str | None:
    """First label of a three-or-more label host name, port ignored."""
    parts = host.split(":", 1)[0].split(".")
    if len(parts) > 2 and parts[0] != "www":
        return parts[0]
    return None


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

class TenantMiddleware(BaseHTTPMiddleware):
    """Resolve the shop a request belongs to.

    Priority:
    1. X-Tenant-ID header (explicit)
    2. Subdomain of the Host header
    3. Falls back to "default"

    A malformed tenant id is rejected with 400 rather than used to query.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        tenant_id = request.headers.get("X-Tenant-ID") or tenant_from_host(
            request.headers.get("host", "")
        )
        tenant_id = tenant_id or DEFAULT_TENANT

        if not _TENANT_PATTERN.match(tenant_id):
            return JSONResponse({"detail": f"Invalid tenant id: {tenant_id!r}"}, status_code=400)

        token = _current_tenant.set(tenant_id)
        try:
            return await call_next(request)
        finally:
            _current_tenant.reset(token)
