"""Role authentication, token issuance and guest password management."""
from __future__ import annotations

import logging

from sqlalchemy import func, insert, select, update

from app.core.errors import AuthenticationFailed, Forbidden, ValidationError
from app.core.security import PasswordHasher, TokenSigner
from app.db.manager import ConnectionManager
from app.models.credential import ADMIN_ROLE, GUEST_ROLE, Credential

logger = logging.getLogger(__name__)


async def ensure_default_credentials(manager: ConnectionManager, admin_password: str, guest_password: str) -> bool:
    """Seed both role rows on first boot. Returns True when rows were created."""

    result = await manager.query(select(func.count()).select_from(Credential))
    if result.scalar_one() > 0:
        return False
    await manager.query(
        insert(Credential),
        [
            {"role": ADMIN_ROLE, "password_hash": PasswordHasher.hash(admin_password)},
            {"role": GUEST_ROLE, "password_hash": PasswordHasher.hash(guest_password)},
        ],
    )
    logger.info("Seeded default credentials for roles %s and %s", ADMIN_ROLE, GUEST_ROLE)
    return True


async def authenticate(manager: ConnectionManager, password: str) -> str:
    """Return the role whose stored hash matches ``password``.

    Every stored hash is verified so response time does not depend on which
    role matched; the first row in id order wins.
    """

    result = await manager.query(select(Credential.role, Credential.password_hash).order_by(Credential.id))
    rows = [(row.role, row.password_hash) for row in result]
    try:
        matches = [role for role, password_hash in rows if PasswordHasher.verify(password, password_hash)]
    finally:
        rows.clear()
    if not matches:
        raise AuthenticationFailed()
    return matches[0]


async def login(manager: ConnectionManager, password: str, signer: TokenSigner | None = None) -> tuple[str, str]:
    """Authenticate ``password`` and return ``(token, role)``."""

    role = await authenticate(manager, password)
    token = (signer or TokenSigner()).issue(role)
    return token, role


def require_role(role: str, required: str = ADMIN_ROLE) -> str:
    if role != required:
        raise Forbidden()
    return role


async def change_guest_password(manager: ConnectionManager, new_password: str) -> None:
    """Overwrite the guest password hash. The admin password is never touched here."""

    if not new_password:
        raise ValidationError("Nueva contraseña requerida")
    password_hash = PasswordHasher.hash(new_password)
    await manager.query(
        update(Credential).where(Credential.role == GUEST_ROLE).values(password_hash=password_hash)
    )
    logger.info("Guest password updated")
