"""
JWT Utility Functions

Helpers for issuing bearer tokens in the format the portal verifies. In
production tokens come from the identity provider; these helpers serve local
development, seed scripts and tests.
"""

from __future__ import annotations

import jwt
import time
from typing import List, Dict, Any, Optional

from ..config import settings


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class JWTConfigurationError(RuntimeError):
    """Raised when JWT generation cannot proceed due to configuration issues."""


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def create_user_token(
    user_id: str,
    roles: Optional[List[str]] = None,
    ttl_seconds: Optional[int] = None,
    secret: Optional[str] = None,
) -> str:
    """
    Generate a signed user token.

    Parameters
    ----------
    user_id : str
        Value of the `sub` claim.

    roles : Optional[List[str]]
        Portal roles carried in the `roles` claim.

    ttl_seconds : Optional[int]
        Lifetime; defaults to `settings.jwt_ttl_seconds`.

    secret : Optional[str]
        Signing secret; defaults to `settings.jwt_secret`.

    Raises
    ------
    JWTConfigurationError
        If no signing secret is available.
    """
    if secret is None:
        if settings.jwt_secret is None:
            raise JWTConfigurationError("jwt_secret is not configured. Cannot generate JWT.")
        secret = settings.jwt_secret.get_secret_value()

    now = int(time.time())
    ttl = settings.jwt_ttl_seconds if ttl_seconds is None else ttl_seconds

    payload: Dict[str, Any] = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + ttl,
        "roles": list(roles or []),
    }

    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGO)
