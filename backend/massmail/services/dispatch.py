"""
Bulk send pipeline.

Stages run strictly in order and the first four are fail-fast gates:

  1. required fields      → MISSING_REQUIRED_FIELDS / MISSING_ORGANIZATION_ID
  2. attachment checks    → INVALID_ATTACHMENT
  3. config + template    → SMTP_NOT_FOUND / TEMPLATE_NOT_FOUND
  4. transport verify     → SMTP_CONNECTION_FAILED
  5. batched delivery     (per-recipient failures are recorded, not raised)
  6. send log
  7. response

Nothing touches the database before stage 3 and nothing touches the SMTP
server before stage 4.
"""

import asyncio
import logging
from typing import Callable, List, Optional

from massmail.models.email import (
    SendEmailRequest,
    SendResponse,
    SendStats,
    SMTPConfig,
    ValidatedRecipient,
)
from massmail.models.template import EmailTemplate
from massmail.models.user import CurrentUser
from massmail.services.attachments import AttachmentValidationError, validate_pdf
from massmail.services.dispatcher import dispatch_batches
from massmail.services.send_log import record_send_log
from massmail.services.transport import SMTPTransport, build_transport
from massmail.store import DocumentStore

logger = logging.getLogger(__name__)

SMTP_CONFIGS = "smtp_configs"
MODELS = "models"


class DispatchError(Exception):
    """A terminal failure of the send pipeline, before any mail went out."""

    def __init__(self, code: str, message: str, status_code: int = 400, reason: Optional[str] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.reason = reason

    def to_detail(self) -> dict:
        detail = {"code": self.code, "message": self.message}
        if self.reason:
            detail["reason"] = self.reason
        return detail


def validate_recipients(request: SendEmailRequest) -> List[ValidatedRecipient]:
    """Validate every attachment of every recipient, failing on the first bad one."""
    validated = []
    for recipient in request.recipients:
        try:
            attachments = [validate_pdf(a) for a in recipient.attachments]
        except AttachmentValidationError as e:
            raise DispatchError("INVALID_ATTACHMENT", e.message, 400, reason=e.reason)
        validated.append(ValidatedRecipient(email=recipient.email, attachments=attachments))
    return validated


async def load_config_and_template(
    store: DocumentStore,
    organization_id: str,
    smtp_id: str,
    model_id: str,
) -> tuple[SMTPConfig, EmailTemplate]:
    smtp_row, model_row = await asyncio.gather(
        store.get(SMTP_CONFIGS, smtp_id, organization_id),
        store.get(MODELS, model_id, organization_id),
    )
    if smtp_row is None:
        raise DispatchError("SMTP_NOT_FOUND", "SMTP configuration not found", 404)
    if model_row is None:
        raise DispatchError("TEMPLATE_NOT_FOUND", "Email template not found", 404)
    return SMTPConfig.model_validate(smtp_row), EmailTemplate.model_validate(model_row)


async def send_emails(
    store: DocumentStore,
    user: CurrentUser,
    request: SendEmailRequest,
    transport_factory: Callable[[SMTPConfig], SMTPTransport] = build_transport,
) -> SendResponse:
    """
    Run one dispatch for the caller's organization.

    Raises:
        DispatchError: on any stage 1-4 failure. Partial or total failure of
            individual sends is still a successful dispatch.
    """
    if not request.model_id or not request.smtp_id or not request.recipients:
        raise DispatchError(
            "MISSING_REQUIRED_FIELDS",
            "modelId, smtpId and recipients are required",
        )

    if not user.organization_id:
        raise DispatchError(
            "MISSING_ORGANIZATION_ID",
            "User does not belong to any organization",
        )

    recipients = validate_recipients(request)

    smtp_config, template = await load_config_and_template(
        store, user.organization_id, request.smtp_id, request.model_id
    )

    transport = transport_factory(smtp_config)
    try:
        await transport.verify()
    except Exception as e:
        logger.error(f"SMTP connection to {smtp_config.server_address}:{smtp_config.port} failed: {e}")
        raise DispatchError(
            "SMTP_CONNECTION_FAILED",
            "Could not connect to the SMTP server",
            502,
        )

    logger.info(
        f"Dispatching model {request.model_id} to {len(recipients)} recipients "
        f"for organization {user.organization_id}"
    )
    results = await dispatch_batches(transport, recipients, template, smtp_config.email_address)

    log_id = await record_send_log(
        store, user.organization_id, request.model_id, request.smtp_id, results
    )

    sent = sum(1 for r in results if r.success)
    logger.info(f"Dispatch {log_id} finished: {sent} sent, {len(results) - sent} failed")

    return SendResponse(
        log_id=log_id,
        stats=SendStats(sent=sent, failed=len(results) - sent),
        details=[r.to_document() for r in results],
    )
