"""
Email API endpoints: bulk send, SMTP configuration, send logs.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from massmail.auth import get_current_user, require_org_admin
from massmail.models.email import (
    SMTP_COLUMNS,
    SMTP_REQUIRED_FIELDS,
    SendEmailRequest,
    SendResponse,
    SMTPConfig,
    SMTPConfigRequest,
)
from massmail.models.user import CurrentUser
from massmail.services.dispatch import SMTP_CONFIGS, DispatchError, send_emails
from massmail.services.send_log import list_send_logs
from massmail.services.transport import build_transport
from massmail.store import SERVER_TIMESTAMP, DocumentStore, get_document_store

router = APIRouter()

logger = logging.getLogger(__name__)


def get_transport_factory():
    """Dependency hook so tests can swap the SMTP transport."""
    return build_transport


@router.post(
    "/send",
    response_model=SendResponse,
    responses={
        400: {"description": "Missing fields, no organization, or invalid attachment"},
        401: {"description": "Missing or invalid auth token"},
        404: {"description": "SMTP configuration or template not found"},
        502: {"description": "SMTP server unreachable or rejected credentials"},
    },
)
async def send(
    request: SendEmailRequest,
    user: CurrentUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_document_store),
    transport_factory=Depends(get_transport_factory),
):
    """
    Send a template to a list of recipients, each with optional PDF attachments.

    Recipients are delivered in batches of five. The response is a success
    whenever delivery was attempted, even if some or all recipients failed;
    per-recipient outcomes are in ``details``.

    Requires authentication.
    """
    try:
        return await send_emails(store, user, request, transport_factory)
    except DispatchError as e:
        logger.info(f"Send rejected for user {user.id}: [{e.code}] {e.message}")
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())


@router.post("/smtp", response_model=dict)
async def set_smtp_config(
    payload: SMTPConfigRequest,
    user: CurrentUser = Depends(require_org_admin),
    store: DocumentStore = Depends(get_document_store),
):
    """
    Create or update the SMTP configuration of the caller's organization.

    An organization has at most one configuration: the existing row is
    updated when present, otherwise a new one is created. Nothing is written
    unless every check passes.

    Requires org-admin or super-admin.
    """
    smtp_config = payload.smtp_config

    missing = [field for field in SMTP_REQUIRED_FIELDS if not smtp_config.get(field)]
    if missing:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "MISSING_FIELDS",
                "message": f"Missing required fields: {', '.join(missing)}",
            },
        )

    port = smtp_config.get("port")
    if not isinstance(port, int) or isinstance(port, bool) or not 1 <= port <= 65535:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "INVALID_PORT",
                "message": "Invalid port (must be between 1 and 65535)",
            },
        )

    if not user.organization_id:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "MISSING_ORGANIZATION_ID",
                "message": "organizationId is required",
            },
        )

    if user.organization_id != payload.org_id:
        raise HTTPException(
            status_code=403,
            detail="You are not authorized to access this organization",
        )

    columns = {
        column: smtp_config[key]
        for key, column in SMTP_COLUMNS.items()
        if key in smtp_config
    }
    try:
        SMTPConfig.model_validate(columns)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "INVALID_SMTP_CONFIG",
                "message": "; ".join(err["msg"] for err in e.errors()),
            },
        )

    existing = await store.list(SMTP_CONFIGS, user.organization_id)

    if existing:
        config_id = existing[0]["id"]
        await store.update(SMTP_CONFIGS, config_id, {
            **columns,
            "user_id": user.id,
            "updated_at": SERVER_TIMESTAMP,
        })
        logger.info(f"SMTP configuration {config_id} updated for organization {user.organization_id}")
        return {
            "success": True,
            "message": "SMTP configuration updated",
            "data": {"id": config_id},
        }

    row = await store.create(SMTP_CONFIGS, {
        **columns,
        "organization_id": user.organization_id,
        "user_id": user.id,
        "created_at": SERVER_TIMESTAMP,
        "updated_at": SERVER_TIMESTAMP,
    })
    logger.info(f"SMTP configuration {row['id']} created for organization {user.organization_id}")
    return {
        "success": True,
        "message": "SMTP configuration saved",
        "data": {"id": row["id"]},
    }


@router.get("/emailLogs", response_model=dict)
async def get_email_logs(
    user: CurrentUser = Depends(require_org_admin),
    store: DocumentStore = Depends(get_document_store),
):
    """List the send logs of the caller's organization. Requires org-admin."""
    if not user.organization_id:
        raise HTTPException(
            status_code=400,
            detail={
                "code": "MISSING_ORGANIZATION_ID",
                "message": "Organization not found in user data",
            },
        )

    logs = await list_send_logs(store, user.organization_id)
    return {"success": True, "logs": logs}
