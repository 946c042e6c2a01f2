"""
Organization (tenant) API endpoints.
"""

import logging
import math
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from massmail.auth import get_current_user, require_super_admin
from massmail.models.organization import (
    OrganizationCreate,
    OrganizationList,
    OrganizationSummary,
    Pagination,
)
from massmail.models.user import CurrentUser, Role
from massmail.routers.users import USERS
from massmail.store import SERVER_TIMESTAMP, DocumentStore, get_document_store

router = APIRouter()

logger = logging.getLogger(__name__)

ORGANIZATIONS = "organizations"


async def _summarize(store: DocumentStore, row: dict, user: CurrentUser) -> OrganizationSummary:
    member_count = await store.count(USERS, {"organization_id": row["id"]})
    return OrganizationSummary(
        id=row["id"],
        name=row.get("name", ""),
        description=row.get("description"),
        created_at=row.get("created_at"),
        member_count=member_count,
        is_admin=user.role == Role.ORG_ADMIN and user.organization_id == row["id"],
    )


async def _list_organizations(
    page: int,
    limit_value: int,
    search: Optional[str],
    user: CurrentUser,
    store: DocumentStore,
) -> OrganizationList:
    """
    Super-admins page through every organization (or search by name prefix);
    org-admins only see their own; plain users are refused.
    """
    total = 0
    if user.role == Role.SUPER_ADMIN:
        offset = (page - 1) * limit_value
        if search:
            rows = await store.query(
                ORGANIZATIONS,
                search=("name_lower", search.lower()),
                order_by="name_lower",
                limit=limit_value,
                offset=offset,
            )
        else:
            rows = await store.query(
                ORGANIZATIONS,
                order_by="created_at",
                descending=True,
                limit=limit_value,
                offset=offset,
            )
            total = await store.count(ORGANIZATIONS)
    elif user.role == Role.ORG_ADMIN:
        if not user.organization_id:
            raise HTTPException(
                status_code=403,
                detail="User is not linked to any organization",
            )
        row = await store.get(ORGANIZATIONS, user.organization_id)
        rows = [row] if row else []
    else:
        raise HTTPException(status_code=403, detail="Not authorized")

    data = [await _summarize(store, row, user) for row in rows]
    return OrganizationList(
        data=data,
        pagination=Pagination(
            page=page,
            limit=limit_value,
            total=total,
            total_pages=math.ceil(total / limit_value),
        ),
    )


@router.get("/org", response_model=OrganizationList)
async def get_organizations(
    page: int = Query(1, ge=1),
    limit_value: int = Query(10, ge=1, le=100, alias="limitValue"),
    search: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
):
    """Organizations visible to the caller."""
    return await _list_organizations(page, limit_value, search, user, store)


@router.get("/orgs", response_model=OrganizationList)
async def get_all_organizations(
    page: int = Query(1, ge=1),
    limit_value: int = Query(10, ge=1, le=100, alias="limitValue"),
    search: Optional[str] = None,
    user: CurrentUser = Depends(require_super_admin),
    store: DocumentStore = Depends(get_document_store),
):
    """All organizations. Requires super-admin."""
    return await _list_organizations(page, limit_value, search, user, store)


@router.post("/organizations", status_code=201, response_model=dict)
async def create_organization(
    payload: OrganizationCreate,
    user: CurrentUser = Depends(require_super_admin),
    store: DocumentStore = Depends(get_document_store),
):
    row = await store.create(ORGANIZATIONS, {
        "name": payload.name,
        "name_lower": payload.name.lower(),
        "description": payload.description,
        "created_by": user.id,
        "created_at": SERVER_TIMESTAMP,
        "updated_at": SERVER_TIMESTAMP,
    })
    logger.info(f"Organization {row['id']} created by {user.id}")
    return {
        "success": True,
        "data": {"id": row["id"], "name": payload.name, "description": payload.description},
    }


@router.patch("/organizations/{org_id}/admins/{user_id}", response_model=dict)
async def assign_org_admin(
    org_id: str,
    user_id: str,
    user: CurrentUser = Depends(require_super_admin),
    store: DocumentStore = Depends(get_document_store),
):
    """Promote a user to org-admin of ``org_id``. Requires super-admin."""
    if await store.get(ORGANIZATIONS, org_id) is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "NOT_FOUND", "message": "Organization not found"},
        )

    updated = await store.update(USERS, user_id, {
        "role": Role.ORG_ADMIN.value,
        "organization_id": org_id,
        "updated_at": SERVER_TIMESTAMP,
    })
    if updated is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "NOT_FOUND", "message": "User not found"},
        )

    logger.info(f"User {user_id} promoted to org-admin of {org_id} by {user.id}")
    return {"success": True}
