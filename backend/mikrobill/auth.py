"""
Authentication and permission dependencies for FastAPI endpoints.

Bearer tokens are verified with Supabase auth.get_user(). Panel permissions
("resource:action" strings, "*:*" for administrators) are read from the
user's app_metadata.
"""

from typing import Annotated

import structlog
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)

ADMIN_PERMISSION = "*:*"


class AuthenticatedUser(BaseModel):
    """A verified panel user."""

    id: str
    email: str | None = None
    permissions: list[str] = Field(default_factory=list)

    def has_permission(self, permission: str) -> bool:
        return ADMIN_PERMISSION in self.permissions or permission in self.permissions


def _permissions_from(user) -> list[str]:
    metadata = getattr(user, "app_metadata", None) or {}
    permissions = metadata.get("permissions") if isinstance(metadata, dict) else None
    if not isinstance(permissions, list):
        return []
    return [str(p) for p in permissions]


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
) -> AuthenticatedUser:
    """
    FastAPI dependency that verifies a JWT Bearer token via Supabase.

    Raises:
        HTTPException 503: Supabase client not configured.
        HTTPException 401: Token is missing, invalid, expired, or user not found.
    """
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    supabase = getattr(request.app.state, "supabase", None)
    if supabase is None:
        raise HTTPException(status_code=503, detail="Authentication service unavailable")

    try:
        response = await supabase.auth.get_user(credentials.credentials)
    except Exception as e:
        logger.warning("auth_token_verification_failed", error=str(e))
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user = response.user if response else None
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return AuthenticatedUser(
        id=str(user.id),
        email=user.email,
        permissions=_permissions_from(user),
    )


CurrentUser = Annotated[AuthenticatedUser, Depends(get_current_user)]


def require_permission(permission: str):
    """Dependency factory rejecting users without `permission` (403)."""

    async def _check(user: CurrentUser) -> AuthenticatedUser:
        if not user.has_permission(permission):
            logger.info("permission_denied", user_id=user.id, permission=permission)
            raise HTTPException(status_code=403, detail=f"Missing permission: {permission}")
        return user

    return _check
