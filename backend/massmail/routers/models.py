"""
Email template ("model") API endpoints. Templates are scoped to the
caller's organization.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from massmail.auth import get_current_user
from massmail.models.template import EmailTemplate, TemplateCreate, TemplateUpdate
from massmail.models.user import CurrentUser
from massmail.services.dispatch import MODELS
from massmail.store import SERVER_TIMESTAMP, DocumentStore, get_document_store

router = APIRouter()

logger = logging.getLogger(__name__)


def _organization_of(user: CurrentUser) -> str:
    if not user.organization_id:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "MISSING_ORGANIZATION_ID",
                "message": "User does not belong to any organization",
            },
        )
    return user.organization_id


async def _get_owned_template(store: DocumentStore, model_id: str, organization_id: str) -> dict:
    row = await store.get(MODELS, model_id, organization_id)
    if row is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "NOT_FOUND", "message": "Model not found"},
        )
    return row


@router.post("/model", status_code=201, response_model=dict)
async def create_model(
    payload: TemplateCreate,
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
):
    """Create a template. Title and body are required and stored trimmed."""
    if not payload.title or not payload.body:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "Title and body are required",
                "requiredFields": ["title", "body"],
            },
        )
    organization_id = _organization_of(user)

    row = await store.create(MODELS, {
        "organization_id": organization_id,
        "title": payload.title.strip(),
        "body": payload.body.strip(),
        "created_at": SERVER_TIMESTAMP,
        "updated_at": SERVER_TIMESTAMP,
    })
    logger.info(f"Model {row['id']} created in organization {organization_id}")

    return {
        "success": True,
        "message": "Model created",
        "data": EmailTemplate.model_validate(row).model_dump(),
    }


@router.put("/model", response_model=dict)
async def update_model(
    payload: TemplateUpdate,
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
):
    """Update the title and/or body of a template."""
    if not payload.model_id:
        raise HTTPException(status_code=400, detail="modelId is required for update")

    fields = payload.model_dump(include={"title", "body"}, exclude_none=True)
    if not fields:
        raise HTTPException(status_code=400, detail="No valid field to update was sent")

    organization_id = _organization_of(user)
    await _get_owned_template(store, payload.model_id, organization_id)

    row = await store.update(MODELS, payload.model_id, {**fields, "updated_at": SERVER_TIMESTAMP})
    return {
        "success": True,
        "message": "Model updated",
        "data": EmailTemplate.model_validate(row).model_dump() if row else None,
    }


@router.delete("/model/{model_id}", response_model=dict)
async def delete_model(
    model_id: str,
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
):
    if not model_id.strip():
        raise HTTPException(
            status_code=400,
            detail={"code": "INVALID_ID", "message": "Invalid model id"},
        )

    organization_id = _organization_of(user)
    await _get_owned_template(store, model_id, organization_id)
    await store.delete(MODELS, model_id)
    logger.info(f"Model {model_id} deleted from organization {organization_id}")

    return {"success": True, "message": "Model deleted", "deletedId": model_id}


@router.get("/models", response_model=dict)
async def get_models(
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
):
    organization_id = _organization_of(user)
    rows = await store.list(MODELS, organization_id)
    return {
        "success": True,
        "data": [EmailTemplate.model_validate(row).model_dump() for row in rows],
    }
