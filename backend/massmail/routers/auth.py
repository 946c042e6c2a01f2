"""
Login endpoint: exchanges email + password for a session token.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from massmail.auth import issue_token
from massmail.identity import (
    USER_NOT_FOUND,
    WRONG_PASSWORD,
    IdentityError,
    get_identity_provider,
)
from massmail.models.user import LoginRequest, TokenResponse
from massmail.routers.users import USERS
from massmail.store import DocumentStore, get_document_store

router = APIRouter()

logger = logging.getLogger(__name__)


@router.post("/auth", response_model=TokenResponse)
async def authenticate(
    credentials: LoginRequest,
    identity=Depends(get_identity_provider),
    store: DocumentStore = Depends(get_document_store),
):
    """
    Sign in with the identity provider and return a 9-hour JWT whose
    ``user`` claim carries the caller's role and organization.
    """
    if not credentials.email or not credentials.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    try:
        user_id = await identity.sign_in_with_password(credentials.email, credentials.password)
    except IdentityError as e:
        status = 401 if e.code in (WRONG_PASSWORD, USER_NOT_FOUND) else 500
        logger.info(f"Sign-in failed for {credentials.email}: [{e.code}]")
        raise HTTPException(
            status_code=status,
            detail={"code": e.code, "message": e.message},
        )

    user_row = await store.get(USERS, user_id)
    if user_row is None:
        logger.warning(f"Sign-in for {credentials.email} has no profile row ({user_id})")
        raise HTTPException(
            status_code=401,
            detail={"code": USER_NOT_FOUND, "message": "User profile not found"},
        )
    return TokenResponse(token=issue_token(user_id, user_row))
