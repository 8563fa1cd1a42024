"""Security helpers for password hashing and bearer token signing."""
from __future__ import annotations

from typing import Any

from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext

from app.core.errors import ExpiredToken, InvalidToken
from app.models.credential import ROLES

from .config import get_settings


_password_context = CryptContext(schemes=["argon2"], deprecated="auto")


class PasswordHasher:
    """Hash and verify role passwords using Argon2id."""

    @staticmethod
    def hash(password: str) -> str:
        return _password_context.hash(password)

    @staticmethod
    def verify(password: str, hashed: str) -> bool:
        return _password_context.verify(password, hashed)


class TokenSigner:
    """Issue and verify stateless role tokens that expire after a fixed lifetime."""

    def __init__(self, secret_key: str | None = None, max_age_seconds: int | None = None,
                 salt: str = "excel-vault-token") -> None:
        settings = get_settings()
        self.max_age_seconds = max_age_seconds or settings.access_token_expire_minutes * 60
        self._serializer = URLSafeTimedSerializer(secret_key or settings.secret_key, salt=salt)

    def issue(self, role: str) -> str:
        return self._serializer.dumps({"role": role})

    def verify(self, token: str) -> str:
        """Return the role claim of ``token``.

        Raises ``ExpiredToken`` when the signature is genuine but too old and
        ``InvalidToken`` for anything tampered, malformed or without a known role.
        """

        try:
            payload: Any = self._serializer.loads(token, max_age=self.max_age_seconds)
        except SignatureExpired as exc:
            raise ExpiredToken() from exc
        except BadData as exc:
            raise InvalidToken() from exc

        role = payload.get("role") if isinstance(payload, dict) else None
        if role not in ROLES:
            raise InvalidToken()
        return role


def parse_bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None
