"""
Bearer Token Verification & Permission Checks

This module is responsible for:

1. Verifying optional bearer JWTs issued by the identity provider.
2. Answering capability questions `can(user, action, resource)`.
3. Producing a `Viewer` for the search and record services.

Security Model
--------------
- Search is public: a missing token means an anonymous viewer.
- A token that is present but invalid is rejected with 401.
- Without a configured secret, tokens are ignored and every caller is anonymous.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config import settings
from .models import UserContext, Viewer

logger = logging.getLogger("portal.auth")


# ---------------------------------------------------------------------
# Security Scheme
# ---------------------------------------------------------------------

security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------
# Token Verification
# ---------------------------------------------------------------------

def _decode_token(token: str, secret: str) -> dict:
    return jwt.decode(
        token,
        secret,
        algorithms=[settings.JWT_ALGO],
        audience=settings.jwt_audience,
        options={"require": ["sub", "iat", "exp"]},
    )


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[UserContext]:
    """
    Return the authenticated user, or None for anonymous callers.

    Raises
    ------
    HTTPException(401) for invalid or expired tokens.
    """
    if creds is None or settings.jwt_secret is None:
        return None

    try:
        payload = _decode_token(creds.credentials, settings.jwt_secret.get_secret_value())
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired.",
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or malformed token.",
        )

    roles = payload.get("roles", [])
    if not isinstance(roles, list):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="'roles' claim must be a list.",
        )

    return UserContext(user_id=str(payload["sub"]), roles=[str(r) for r in roles])


# ---------------------------------------------------------------------
# Permissions
# ---------------------------------------------------------------------

class PermissionChecker(Protocol):
    def can(self, user: Optional[UserContext], action: str, resource: str) -> bool: ...


class RolePermissionChecker:
    """
    Grants capabilities from the roles carried in the token.

    - manage/metadata: draft viewer roles (sees records in any status)
    - create, update, delete/metadata: editor roles and draft viewer roles
    """

    def __init__(self, draft_viewer_roles: str, editor_roles: str) -> None:
        self._draft_viewers = set(settings.split_roles(draft_viewer_roles))
        self._editors = set(settings.split_roles(editor_roles)) | self._draft_viewers

    def can(self, user: Optional[UserContext], action: str, resource: str) -> bool:
        if user is None or resource != "metadata":
            return False

        roles = set(user.roles)
        if action == "manage":
            return bool(roles & self._draft_viewers)
        if action in ("create", "update", "delete"):
            return bool(roles & self._editors)
        return False


def resolve_viewer(user: Optional[UserContext], permissions: PermissionChecker) -> Viewer:
    """
    Build the viewer for `user`. A failing permission check means no drafts.
    """
    if user is None:
        return Viewer()

    try:
        can_view_drafts = permissions.can(user, "manage", "metadata")
    except Exception:
        logger.warning("Permission check failed, defaulting to Published only", exc_info=True)
        can_view_drafts = False

    return Viewer(user=user, can_view_drafts=can_view_drafts)
