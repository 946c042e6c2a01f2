"""
Batched concurrent delivery.

Recipients are split into batches of BATCH_SIZE. All sends in a batch are
started together and every one of them settles before the next batch
starts, which caps open SMTP sessions at BATCH_SIZE. A failed send becomes a
failed DispatchResult; it never stops its siblings or later batches.
"""

import asyncio
import logging
from email.message import EmailMessage
from typing import List, Sequence

from massmail.models.email import DispatchResult, ValidatedRecipient
from massmail.models.template import EmailTemplate

logger = logging.getLogger(__name__)

BATCH_SIZE = 5
EMAIL_SEND_FAILED = "EMAIL_SEND_FAILED"


def build_message(
    sender: str,
    recipient: ValidatedRecipient,
    template: EmailTemplate,
) -> EmailMessage:
    """Compose the message for one recipient. The sender is copied on every send."""
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = recipient.email
    msg["Cc"] = sender
    msg["Subject"] = template.title
    msg.set_content(template.body, subtype="html")
    for attachment in recipient.attachments:
        maintype, subtype = attachment.content_type.split("/", 1)
        msg.add_attachment(
            attachment.content,
            maintype=maintype,
            subtype=subtype,
            filename=attachment.filename,
        )
    return msg


def batches(items: Sequence, size: int = BATCH_SIZE) -> List[Sequence]:
    return [items[i:i + size] for i in range(0, len(items), size)]


async def _send_one(transport, sender: str, recipient: ValidatedRecipient, template: EmailTemplate) -> DispatchResult:
    try:
        await transport.send_mail(build_message(sender, recipient, template))
    except Exception as e:
        logger.warning(f"Send to {recipient.email} failed: {e}")
        return DispatchResult(
            email=recipient.email,
            success=False,
            error=str(e) or type(e).__name__,
            error_code=EMAIL_SEND_FAILED,
        )
    return DispatchResult(
        email=recipient.email,
        success=True,
        attachments_sent=len(recipient.attachments),
    )


async def dispatch_batches(
    transport,
    recipients: Sequence[ValidatedRecipient],
    template: EmailTemplate,
    sender: str,
) -> List[DispatchResult]:
    """
    Send ``template`` to every recipient and return one result per recipient,
    in input order.
    """
    results: List[DispatchResult] = []
    for index, batch in enumerate(batches(recipients), start=1):
        batch_results = await asyncio.gather(
            *(_send_one(transport, sender, recipient, template) for recipient in batch)
        )
        results.extend(batch_results)
        logger.info(
            f"Batch {index} settled: "
            f"{sum(1 for r in batch_results if r.success)}/{len(batch_results)} sent"
        )
    return results
