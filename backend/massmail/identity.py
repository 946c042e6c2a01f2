"""
Identity provider over Supabase Auth.

Exposes the three operations the API needs (password sign-in, user
creation, user deletion) and normalises provider failures into
``IdentityError`` codes the routers can map to HTTP statuses.
"""

import asyncio
import logging
from typing import Optional

from massmail.db import get_supabase, get_supabase_admin

logger = logging.getLogger(__name__)

WRONG_PASSWORD = "wrong-password"
USER_NOT_FOUND = "user-not-found"
EMAIL_ALREADY_IN_USE = "email-already-in-use"


class IdentityError(Exception):
    """An identity provider call failed."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _to_identity_error(exc: Exception) -> IdentityError:
    """Map a Supabase Auth exception onto a stable error code."""
    code = getattr(exc, "code", None) or ""
    message = getattr(exc, "message", None) or str(exc)
    lowered = message.lower()

    if code == "invalid_credentials" or "invalid login credentials" in lowered:
        return IdentityError(WRONG_PASSWORD, message)
    if code == "user_not_found" or "user not found" in lowered:
        return IdentityError(USER_NOT_FOUND, message)
    if code == "email_exists" or "already been registered" in lowered:
        return IdentityError(EMAIL_ALREADY_IN_USE, message)
    return IdentityError(code or "IDENTITY_ERROR", message)


class SupabaseIdentityProvider:
    def __init__(self, client, admin_client):
        self._client = client
        self._admin = admin_client

    async def sign_in_with_password(self, email: str, password: str) -> str:
        """Return the user id for valid credentials."""
        try:
            response = await asyncio.to_thread(
                self._client.auth.sign_in_with_password,
                {"email": email, "password": password},
            )
        except Exception as e:
            raise _to_identity_error(e) from e

        if not response.user:
            raise IdentityError(USER_NOT_FOUND, "User not found")
        return response.user.id

    async def create_user(self, email: str, password: str) -> str:
        """Create a confirmed user and return its id."""
        if self._admin is None:
            raise IdentityError("SERVER_MISCONFIGURED", "SUPABASE_SERVICE_KEY is not set")
        try:
            response = await asyncio.to_thread(
                self._admin.auth.admin.create_user,
                {"email": email, "password": password, "email_confirm": True},
            )
        except Exception as e:
            logger.error(f"Identity provider failed to create user {email}: {e}")
            raise _to_identity_error(e) from e
        return response.user.id

    async def delete_user(self, user_id: str) -> None:
        if self._admin is None:
            raise IdentityError("SERVER_MISCONFIGURED", "SUPABASE_SERVICE_KEY is not set")
        try:
            await asyncio.to_thread(self._admin.auth.admin.delete_user, user_id)
        except Exception as e:
            logger.error(f"Identity provider failed to delete user {user_id}: {e}")
            raise _to_identity_error(e) from e


_provider: Optional[SupabaseIdentityProvider] = None


def get_identity_provider() -> SupabaseIdentityProvider:
    """FastAPI dependency returning the process-wide identity provider."""
    global _provider
    if _provider is None:
        _provider = SupabaseIdentityProvider(get_supabase(), get_supabase_admin())
    return _provider
