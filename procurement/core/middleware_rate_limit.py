from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from procurement.core.deps import SYSTEM_ACTOR
from procurement.core.rate_limit import InMemoryRateLimiter


class BidRateLimitMiddleware(BaseHTTPMiddleware):
    """
    Applies ONLY to POST {api_prefix}/selections/{id}/bids.
    Keyed by the actor header, read the same way the audit trail reads it;
    requests without one share the system actor's bucket.
    """

    def __init__(
        self,
        app,
        limiter: InMemoryRateLimiter,
        api_prefix: str = "/api/v1",
        actor_header: str = "X-Actor-Id",
    ):
        super().__init__(app)
        self.limiter = limiter
        self.selections_prefix = f"{api_prefix}/selections/"
        self.actor_header = actor_header

    async def dispatch(self, request: Request, call_next):
        path = request.url.path.rstrip("/")
        method = request.method.upper()

        if (
            method == "POST"
            and path.startswith(self.selections_prefix)
            and path.endswith("/bids")
        ):
            actor = (request.headers.get(self.actor_header) or "").strip()[:128] or SYSTEM_ACTOR
            route_key = f"{method}:{path}"
            ok = self.limiter.allow(actor, route_key)
            if not ok:
                return JSONResponse(
                    status_code=429,
                    content={"detail": "Rate limit exceeded for bid submission."},
                    headers={"Retry-After": "60"},
                )
        return await call_next(request)
