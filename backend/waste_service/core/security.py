from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from waste_service.core.config import settings


class UserRole(str, enum.Enum):
    resident = "resident"
    collector = "collector"
    official = "official"


@dataclass(frozen=True)
class Principal:
    """The caller as asserted by the external auth provider's token."""

    user_id: str
    role: UserRole


class InvalidToken(Exception):
    pass


def _role_from_claims(payload: Dict[str, Any]) -> UserRole:
    app_metadata = payload.get("app_metadata") or {}
    raw = app_metadata.get("role") or payload.get("user_role") or payload.get("role")
    try:
        return UserRole(raw)
    except ValueError as exc:
        raise InvalidToken(f"Unknown role claim: {raw!r}") from exc


def decode_access_token(token: str) -> Principal:
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError as exc:
        raise InvalidToken("Invalid token") from exc
    sub = payload.get("sub")
    if not sub:
        raise InvalidToken("Invalid token payload")
    return Principal(user_id=str(sub), role=_role_from_claims(payload))


def create_access_token(subject: str, role: UserRole, expires_delta: timedelta | None = None) -> str:
    """Issue a token shaped like the auth provider's. Used by tests and local tooling."""
    to_encode: Dict[str, Any] = {"sub": subject, "app_metadata": {"role": role.value}}
    if settings.jwt_audience:
        to_encode["aud"] = settings.jwt_audience
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
