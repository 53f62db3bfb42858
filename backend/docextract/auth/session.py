"""
Session Tokens: HS256 signed, cookie or Bearer

On login the API issues a short JWT signed with settings.session_secret and
sets it as an HTTP-only cookie. Every protected route resolves the caller
through get_current_principal(), which accepts:

  1. an `Authorization: Bearer <token>` header (scripts, tests), or
  2. the session cookie (browser clients).

Claims:
  sub    user id (UUID string)
  email  user email at issue time
  role   user | admin | superadmin
  iat    issued-at (epoch seconds)
  exp    expiry   (iat + settings.session_ttl_seconds)

The role is read from the token, so a role change takes effect at the next
login.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel

from docextract.core.config import settings
from docextract.core.exceptions import AuthenticationRequiredError

logger = logging.getLogger(__name__)

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# HTTP Bearer extractor (optional: falls back to the cookie)
# ---------------------------------------------------------------------------

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Principal
# ---------------------------------------------------------------------------

class Role(str, Enum):
    USER       = "user"
    ADMIN      = "admin"
    SUPERADMIN = "superadmin"


class Principal(BaseModel):
    """The authenticated actor, passed to services and route handlers."""
    id:    UUID
    email: str
    role:  Role


def parse_role(raw: object) -> Role:
    try:
        return Role(raw)
    except ValueError:
        logger.warning("Unknown role '%s' in session token, defaulting to 'user'", raw)
        return Role.USER


# ---------------------------------------------------------------------------
# Issue / decode
# ---------------------------------------------------------------------------

def issue_session_token(principal: Principal, *, ttl_seconds: int | None = None) -> str:
    now = int(time.time())
    ttl = settings.session_ttl_seconds if ttl_seconds is None else ttl_seconds
    claims = {
        "sub":   str(principal.id),
        "email": principal.email,
        "role":  principal.role.value,
        "iat":   now,
        "exp":   now + ttl,
    }
    return jwt.encode(claims, settings.session_secret, algorithm=_ALGORITHM)


def decode_session_token(token: str) -> Principal:
    """
    Verify signature + expiry and return the Principal.
    Raises AuthenticationRequiredError on any failure.
    """
    try:
        claims = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[_ALGORITHM],
            options={"verify_exp": True},
        )
    except ExpiredSignatureError:
        raise AuthenticationRequiredError("Session has expired")
    except JWTError as exc:
        logger.info("Rejected session token | reason=%s", exc)
        raise AuthenticationRequiredError()

    try:
        user_id = UUID(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise AuthenticationRequiredError()

    return Principal(
        id=user_id,
        email=claims.get("email", ""),
        role=parse_role(claims.get("role")),
    )


# ---------------------------------------------------------------------------
# FastAPI dependency
# ---------------------------------------------------------------------------

async def get_current_principal(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Principal:
    """
    Resolve the caller from the session cookie or the Bearer header.

    Usage:
        @router.get("/extractions")
        async def list_extractions(user: Principal = Depends(get_current_principal)):
            ...
    """
    token = credentials.credentials if credentials is not None else None
    if not token:
        token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise AuthenticationRequiredError()
    return decode_session_token(token)
