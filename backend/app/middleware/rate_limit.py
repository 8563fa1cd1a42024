"""Middleware applying the per-client request quota to API requests."""
from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.core.errors import RateLimited

API_PREFIX = "/api"


class GeneralRateLimitMiddleware(BaseHTTPMiddleware):
    """Reject clients that exceed the general request quota with a 429.

    Static front-end assets are served without touching the quota. Every
    API response carries the ``RateLimit-*`` headers.
    """

    async def dispatch(self, request: Request, call_next):
        limiters = getattr(request.app.state, "rate_limiters", None)
        if limiters is None or not request.url.path.startswith(API_PREFIX):
            return await call_next(request)

        limiter = limiters.general
        host = request.client.host if request.client else "unknown"
        quota = limiter.consume(host)
        if not quota.allowed:
            error = RateLimited(limiter.message)
            return JSONResponse(
                status_code=error.status_code,
                content={"success": False, "error": error.message, "code": error.code},
                headers=quota.headers(),
            )

        response = await call_next(request)
        response.headers.update(quota.headers())
        return response
