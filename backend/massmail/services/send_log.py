"""
Send-log persistence. One append-only row per dispatch in email_logs.
"""

from typing import List

from massmail.models.email import DispatchResult
from massmail.store import SERVER_TIMESTAMP, DocumentStore

EMAIL_LOGS = "email_logs"


async def record_send_log(
    store: DocumentStore,
    organization_id: str,
    model_id: str,
    smtp_id: str,
    results: List[DispatchResult],
) -> str:
    """Persist the outcome of one dispatch and return the new log id."""
    success_count = sum(1 for r in results if r.success)
    row = await store.create(EMAIL_LOGS, {
        "organization_id": organization_id,
        "model_id": model_id,
        "smtp_id": smtp_id,
        "timestamp": SERVER_TIMESTAMP,
        "total_recipients": len(results),
        "success_count": success_count,
        "error_count": len(results) - success_count,
        "details": [r.to_document() for r in results],
    })
    return row["id"]


async def list_send_logs(store: DocumentStore, organization_id: str) -> List[dict]:
    return await store.list(EMAIL_LOGS, organization_id)
