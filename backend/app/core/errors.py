"""Client-facing error taxonomy with stable machine-readable codes."""
from __future__ import annotations

from fastapi import status


class ApiError(Exception):
    """An error that maps onto an HTTP status, a code and a human message."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_ERROR"
    default_message: str = "Error interno del servidor"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingToken(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "MISSING_TOKEN"
    default_message = "Token de acceso requerido"


class ExpiredToken(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "TOKEN_EXPIRED"
    default_message = "Token expirado"


class InvalidToken(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "INVALID_TOKEN"
    default_message = "Token inválido"


class AuthenticationFailed(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "INVALID_CREDENTIALS"
    default_message = "Contraseña incorrecta"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "FORBIDDEN"
    default_message = "Permisos de administrador requeridos"


class ValidationError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "VALIDATION_ERROR"
    default_message = "Solicitud inválida"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND"
    default_message = "Recurso no encontrado"


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    code = "CONFLICT"
    default_message = "El recurso ya existe"


class RateLimited(ApiError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "RATE_LIMITED"
    default_message = "Demasiadas solicitudes"


class TransientInfra(ApiError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "SERVICE_UNAVAILABLE"
    default_message = "Base de datos no disponible temporalmente"


class FatalInfra(ApiError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_ERROR"
    default_message = "Error interno del servidor"
