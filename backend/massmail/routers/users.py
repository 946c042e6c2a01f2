"""
User management API endpoints (org-admin and above).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from massmail.auth import require_org_admin
from massmail.identity import EMAIL_ALREADY_IN_USE, IdentityError, get_identity_provider
from massmail.models.user import CurrentUser, Role, UserCreate, UserSummary
from massmail.store import SERVER_TIMESTAMP, DocumentStore, get_document_store

router = APIRouter()

logger = logging.getLogger(__name__)

USERS = "users"


def _ensure_same_organization(user: CurrentUser, organization_id: Optional[str]) -> None:
    """Org-admins may only act inside their own organization."""
    if user.role != Role.SUPER_ADMIN and user.organization_id != organization_id:
        raise HTTPException(
            status_code=403,
            detail="You are not authorized to access this organization",
        )


@router.post("/users", status_code=201, response_model=dict)
async def register_user(
    payload: UserCreate,
    user: CurrentUser = Depends(require_org_admin),
    store: DocumentStore = Depends(get_document_store),
    identity=Depends(get_identity_provider),
):
    """Create an identity and a ``user``-role profile inside an organization."""
    _ensure_same_organization(user, payload.organization_id)

    try:
        user_id = await identity.create_user(payload.email, payload.password)
    except IdentityError as e:
        status = 409 if e.code == EMAIL_ALREADY_IN_USE else 500
        raise HTTPException(status_code=status, detail={"code": e.code, "message": e.message})

    await store.create(USERS, {
        "id": user_id,
        "name": payload.name,
        "name_lower": payload.name.lower(),
        "email": payload.email,
        "role": Role.USER.value,
        "organization_id": payload.organization_id,
        "created_at": SERVER_TIMESTAMP,
        "updated_at": SERVER_TIMESTAMP,
    })
    logger.info(f"User {user_id} registered in organization {payload.organization_id} by {user.id}")

    return {"success": True, "userId": user_id}


@router.get("/users", response_model=dict)
async def list_users(
    page: int = Query(1, ge=1),
    limit_value: int = Query(10, ge=1, le=100, alias="limitValue"),
    search: Optional[str] = None,
    user: CurrentUser = Depends(require_org_admin),
    store: DocumentStore = Depends(get_document_store),
):
    """
    List users. Super-admins see everyone; org-admins see their organization.

    With ``search`` the list is filtered by name prefix (case-insensitive)
    and sorted by name, otherwise newest first.
    """
    filters = {}
    if user.role == Role.ORG_ADMIN:
        filters["organization_id"] = user.organization_id

    if search:
        rows = await store.query(
            USERS,
            filters,
            search=("name_lower", search.lower()),
            order_by="name_lower",
            limit=limit_value,
            offset=(page - 1) * limit_value,
        )
    else:
        rows = await store.query(
            USERS,
            filters,
            order_by="created_at",
            descending=True,
            limit=limit_value,
            offset=(page - 1) * limit_value,
        )

    users = [
        UserSummary(id=row["id"], name=row.get("name") or "No name", role=row.get("role", Role.USER))
        for row in rows
    ]
    return {"users": [u.model_dump(mode="json") for u in users]}


@router.delete("/users/{user_id}", response_model=dict)
async def delete_user(
    user_id: str,
    user: CurrentUser = Depends(require_org_admin),
    store: DocumentStore = Depends(get_document_store),
    identity=Depends(get_identity_provider),
):
    """Remove a user from the identity provider and delete its profile."""
    target = await store.get(USERS, user_id)
    if target is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "NOT_FOUND", "message": "User not found"},
        )

    _ensure_same_organization(user, target.get("organization_id"))

    try:
        await identity.delete_user(user_id)
    except IdentityError as e:
        raise HTTPException(status_code=500, detail={"code": e.code, "message": e.message})

    await store.delete(USERS, user_id)
    logger.info(f"User {user_id} deleted by {user.id}")

    return {"success": True, "deletedId": user_id}
