"""Reusable dependencies for FastAPI routes.

Access to protected routes is an ordered chain of stages. ``authenticate``
turns the bearer header into a role or short-circuits with the matching
token error; ``require_admin`` runs on top of it and rejects any other role.
Rate-limit stages are plain dependencies listed after the auth stages.
"""
from __future__ import annotations

from fastapi import Depends, Header, Request

from app.core.errors import MissingToken, RateLimited, TransientInfra
from app.core.security import TokenSigner, parse_bearer_token
from app.db.manager import ConnectionManager, PoolClosedError, get_manager
from app.models.credential import ADMIN_ROLE
from app.services.auth import require_role
from app.services.rate_limit import RateLimiters, SlidingWindowLimiter


async def get_connection_manager() -> ConnectionManager:
    try:
        return get_manager()
    except PoolClosedError as exc:
        raise TransientInfra() from exc


async def get_token_signer() -> TokenSigner:
    return TokenSigner()


async def get_rate_limiters(request: Request) -> RateLimiters:
    return request.app.state.rate_limiters


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def authenticate(
    authorization: str | None = Header(default=None),
    signer: TokenSigner = Depends(get_token_signer),
) -> str:
    token = parse_bearer_token(authorization)
    if token is None:
        raise MissingToken()
    return signer.verify(token)


async def require_admin(role: str = Depends(authenticate)) -> str:
    return require_role(role, ADMIN_ROLE)


def _enforce(limiter: SlidingWindowLimiter, request: Request) -> None:
    if not limiter.allow(client_key(request)):
        raise RateLimited(limiter.message)


async def login_rate_limit(request: Request, limiters: RateLimiters = Depends(get_rate_limiters)) -> SlidingWindowLimiter:
    _enforce(limiters.login, request)
    return limiters.login


async def upload_rate_limit(request: Request, limiters: RateLimiters = Depends(get_rate_limiters)) -> None:
    _enforce(limiters.upload, request)
