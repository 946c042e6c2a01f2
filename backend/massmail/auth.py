"""
Authentication and role checks.

Session tokens are HS256 JWTs issued by POST /auth and signed with
SECRET_KEY. The token carries the caller's user row in a ``user`` claim, so
verifying a request never needs a database round-trip.

A missing SECRET_KEY is a server misconfiguration (500), reported apart
from authentication failures (401).
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, Header, HTTPException
from jose import ExpiredSignatureError, JWTError, jwt

from massmail.models.user import CurrentUser, Role

load_dotenv()

# ---------------------------------------------------------------------------
# Module-level signing key: loaded once at startup.
# ---------------------------------------------------------------------------
SECRET_KEY: Optional[str] = os.environ.get("SECRET_KEY") or None

JWT_ALGORITHM = "HS256"
TOKEN_TTL = timedelta(hours=9)


def _require_secret_key() -> str:
    if not SECRET_KEY:
        raise HTTPException(
            status_code=500,
            detail={
                "code": "SERVER_MISCONFIGURED",
                "message": "SECRET_KEY is not set",
            },
        )
    return SECRET_KEY


def issue_token(user_id: str, user_row: dict) -> str:
    """
    Sign a session token for ``user_id``.

    The ``user`` claim mirrors the users row (camelCase organizationId) plus
    the id, and expires after TOKEN_TTL.
    """
    secret = _require_secret_key()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "user": {
            "id": user_id,
            "email": user_row.get("email"),
            "name": user_row.get("name"),
            "role": user_row.get("role", Role.USER.value),
            "organizationId": user_row.get("organization_id"),
        },
        "iat": int(now.timestamp()),
        "exp": int((now + TOKEN_TTL).timestamp()),
    }
    return jwt.encode(claims, secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> CurrentUser:
    """
    Verify a session token and return the caller.

    Raises:
        HTTPException 401 on any verification failure, 500 when SECRET_KEY
        is not configured.
    """
    secret = _require_secret_key()

    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user = payload.get("user")
    if not isinstance(user, dict) or not user.get("id"):
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        return CurrentUser.model_validate(user)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")


async def get_current_user(authorization: Optional[str] = Header(None)) -> CurrentUser:
    """
    Extract and verify the JWT from the Authorization header.

    Args:
        authorization: Authorization header with format "Bearer <token>"

    Raises:
        HTTPException: 401 if token is missing, malformed, invalid, or expired
    """
    if not authorization:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated"
        )

    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication credentials"
        )

    return decode_token(parts[1])


async def require_super_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role != Role.SUPER_ADMIN:
        raise HTTPException(
            status_code=403,
            detail="Access restricted to super administrators",
        )
    return user


async def require_org_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Allow org-admins and super-admins."""
    if user.role not in (Role.SUPER_ADMIN, Role.ORG_ADMIN):
        raise HTTPException(
            status_code=403,
            detail="Access restricted to organization administrators",
        )
    return user
