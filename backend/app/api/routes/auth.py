"""Authentication endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from app.api.errors import database_failure
from app.core.dependencies import (
    authenticate,
    client_key,
    get_connection_manager,
    get_token_signer,
    login_rate_limit,
    require_admin,
)
from app.core.errors import ValidationError
from app.core.security import TokenSigner
from app.db.manager import ConnectionManager, DatabaseError
from app.schemas.auth import (
    LoginData,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    NewPasswordRequest,
    TokenStatusData,
    TokenStatusResponse,
)
from app.services import auth as auth_service
from app.services.rate_limit import SlidingWindowLimiter

router = APIRouter(tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    limiter: SlidingWindowLimiter = Depends(login_rate_limit),
    manager: ConnectionManager = Depends(get_connection_manager),
    signer: TokenSigner = Depends(get_token_signer),
) -> LoginResponse:
    if not payload.password:
        raise ValidationError("Contraseña requerida")

    try:
        token, role = await auth_service.login(manager, payload.password, signer)
    except DatabaseError as exc:
        raise database_failure(exc, "Error interno del servidor") from exc

    # Only failed attempts count towards the login quota.
    limiter.forgive(client_key(request))
    return LoginResponse(data=LoginData(token=token, role=role))


@router.get("/verify-token", response_model=TokenStatusResponse)
async def verify_token(role: str = Depends(authenticate)) -> TokenStatusResponse:
    return TokenStatusResponse(data=TokenStatusData(role=role, valid=True))


@router.post("/new-password", response_model=MessageResponse, dependencies=[Depends(require_admin)])
async def change_guest_password(
    payload: NewPasswordRequest,
    manager: ConnectionManager = Depends(get_connection_manager),
) -> MessageResponse:
    if not payload.new_password:
        raise ValidationError("Nueva contraseña requerida")

    try:
        await auth_service.change_guest_password(manager, payload.new_password)
    except DatabaseError as exc:
        raise database_failure(exc, "Error interno del servidor") from exc

    return MessageResponse(message="Contraseña actualizada correctamente")
