from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from waste_service.core.security import InvalidToken, Principal, UserRole, decode_access_token
from waste_service.db.session import get_session
from waste_service.realtime import ChangeFeed
from waste_service.services.sms import SMSGateway, get_gateway

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:
    async for session in get_session():
        yield session


def get_change_feed(request: Request) -> ChangeFeed | None:
    return getattr(request.app.state, "change_feed", None)


def get_sms_gateway() -> SMSGateway:
    return get_gateway()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    if not credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        return decode_access_token(credentials.credentials)
    except InvalidToken as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc


def require_roles(*roles: UserRole) -> Callable[[Principal], Principal]:
    allowed_roles = tuple(roles)

    async def dependency(current_user: Principal = Depends(get_current_user)) -> Principal:
        if allowed_roles and current_user.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_user

    return dependency
