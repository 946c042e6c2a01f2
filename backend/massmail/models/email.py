"""
Pydantic models for SMTP configuration and bulk email dispatch.

Models:
  SMTPConfig           - stored SMTP connection settings for one organization
  SMTPConfigRequest    - request body for POST /smtp
  AttachmentIn         - untrusted attachment from the send request
  RecipientIn          - one recipient and its attachments
  SendEmailRequest     - request body for POST /send
  ValidatedAttachment  - decoded PDF ready to attach
  DispatchResult       - per-recipient outcome
  SendResponse         - response body for POST /send
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuthMethod(str, Enum):
    SMTP_AUTH = "SMTP-AUTH"
    NONE = "None"


class SSLMethod(str, Enum):
    NONE = "None"
    SSL = "SSL"   # implicit TLS on connect
    TLS = "TLS"   # STARTTLS upgrade after connect


# ---------------------------------------------------------------------------
# SMTP configuration
# ---------------------------------------------------------------------------

class SMTPConfig(BaseModel):
    """SMTP configuration row, as stored in smtp_configs."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    server_address: str = Field(alias="serverAddress")
    port: int = Field(ge=1, le=65535)
    auth_method: AuthMethod = Field(alias="authMethod")
    ssl_method: SSLMethod = Field(alias="sslMethod")
    email_address: str = Field(alias="emailAddress")
    auth_account: Optional[str] = Field(None, alias="authAccount")
    auth_password: Optional[str] = Field(None, alias="authPassword")


# Keys that must be present (and truthy) in an SMTP config submission
SMTP_REQUIRED_FIELDS = [
    "serverAddress",
    "port",
    "authMethod",
    "sslMethod",
    "emailAddress",
]

# Submission key -> smtp_configs column
SMTP_COLUMNS = {
    "serverAddress": "server_address",
    "port": "port",
    "authMethod": "auth_method",
    "sslMethod": "ssl_method",
    "emailAddress": "email_address",
    "authAccount": "auth_account",
    "authPassword": "auth_password",
}


class SMTPConfigRequest(BaseModel):
    """
    Request body for POST /smtp.

    smtpConfig is kept as a raw dict so the handler can report every missing
    field and an out-of-range port with its own error codes instead of a
    generic 422.
    """
    model_config = ConfigDict(populate_by_name=True)

    smtp_config: Dict[str, Any] = Field(default_factory=dict, alias="smtpConfig")
    org_id: Optional[str] = Field(None, alias="orgId")


# ---------------------------------------------------------------------------
# Send request
# ---------------------------------------------------------------------------

class AttachmentIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    filename: str
    content: str  # base64-encoded file content


class RecipientIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: str
    attachments: List[AttachmentIn] = []


class SendEmailRequest(BaseModel):
    """
    Request body for POST /send.

    Identifiers are optional at the schema level so that missing ones are
    reported as MISSING_REQUIRED_FIELDS by the dispatch pipeline. Unknown
    keys are rejected.
    """
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    model_id: Optional[str] = Field(None, alias="modelId")
    smtp_id: Optional[str] = Field(None, alias="smtpId")
    recipients: List[RecipientIn] = []


# ---------------------------------------------------------------------------
# Dispatch values
# ---------------------------------------------------------------------------

class ValidatedAttachment(BaseModel):
    """A decoded PDF with a sanitized filename."""
    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes
    content_type: str = "application/pdf"


class ValidatedRecipient(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str
    attachments: List[ValidatedAttachment] = []


class DispatchResult(BaseModel):
    """Outcome of sending to one recipient. Never mutated after creation."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    email: str
    success: bool
    attachments_sent: Optional[int] = Field(None, alias="attachmentsSent")
    error: Optional[str] = None
    error_code: Optional[str] = Field(None, alias="errorCode")

    def to_document(self) -> dict:
        """camelCase dict without unset outcome fields, as persisted and returned."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SendStats(BaseModel):
    sent: int
    failed: int


class SendResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    log_id: str = Field(alias="logId")
    stats: SendStats
    details: List[Dict[str, Any]]
