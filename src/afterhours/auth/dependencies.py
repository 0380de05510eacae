"""FastAPI authentication dependencies."""

from __future__ import annotations

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.auth.jwt import verify_token
from afterhours.config import get_settings
from afterhours.database import get_session
from afterhours.db.models import UserRole
from afterhours.exceptions import ForbiddenError

_bearer = HTTPBearer()


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str
    is_admin: bool


async def has_role(db: AsyncSession, user_id: str, role: str) -> bool:
    result = await db.execute(
        select(UserRole.id).where(UserRole.user_id == user_id, UserRole.role == role)
    )
    return result.first() is not None


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> CurrentUser:
    """
    Verify the bearer JWT and resolve the caller.

    Admin means a ``user_roles`` admin row or the scheduler's service role.
    Raises 401 on an invalid token.
    """
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user_id = str(payload["sub"])
    role = str(payload.get("role", "authenticated"))
    is_admin = role == get_settings().scheduler_role or await has_role(db, user_id, "admin")
    return CurrentUser(user_id=user_id, role=role, is_admin=is_admin)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise ForbiddenError("Admin access required")
    return user


def ensure_can_act_for(user: CurrentUser, target_user_id: str | None, batch_mode: bool = False) -> None:
    """Only admins may run batch operations or act on another user's behalf."""
    if batch_mode or (target_user_id is not None and target_user_id != user.user_id):
        if not user.is_admin:
            raise ForbiddenError("Admin access required for batch operations")
