"""
PDF attachment validation for bulk sends.

Attachments arrive base64-encoded from the client. Each one is decoded,
bounds-checked, sniffed for the PDF magic number, and given a filename safe
to place in a MIME header. No I/O happens here, so the whole recipient list
can be checked before the database or the SMTP server is contacted.
"""

import base64
import binascii
import re

from massmail.models.email import AttachmentIn, ValidatedAttachment

MAX_PDF_SIZE = 30 * 1024 * 1024  # 30 MiB, measured on decoded bytes
PDF_MAGIC = b"%PDF"
PDF_CONTENT_TYPE = "application/pdf"

ATTACHMENT_TOO_LARGE = "ATTACHMENT_TOO_LARGE"
INVALID_ATTACHMENT_FORMAT = "INVALID_ATTACHMENT_FORMAT"

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_.-]")


class AttachmentValidationError(ValueError):
    """Raised when an attachment is not an acceptable PDF."""

    def __init__(self, reason: str, filename: str, message: str):
        super().__init__(message)
        self.reason = reason
        self.filename = filename
        self.message = message


def sanitize_filename(filename: str) -> str:
    """
    Replace anything outside [A-Za-z0-9_.-] with "_" and append ".pdf".

    The suffix is appended even when the name already ends in ".pdf", so
    "report.pdf" becomes "report.pdf.pdf".
    """
    return _UNSAFE_FILENAME_CHARS.sub("_", filename) + ".pdf"


def validate_pdf(attachment: AttachmentIn) -> ValidatedAttachment:
    """
    Decode and validate one attachment.

    Raises:
        AttachmentValidationError: ATTACHMENT_TOO_LARGE when the decoded file
            exceeds MAX_PDF_SIZE, INVALID_ATTACHMENT_FORMAT when the content
            is not base64 or does not start with "%PDF".
    """
    try:
        content = base64.b64decode(attachment.content)
    except (binascii.Error, ValueError):
        raise AttachmentValidationError(
            INVALID_ATTACHMENT_FORMAT,
            attachment.filename,
            f"File {attachment.filename} is not valid base64",
        )

    if len(content) > MAX_PDF_SIZE:
        raise AttachmentValidationError(
            ATTACHMENT_TOO_LARGE,
            attachment.filename,
            f"PDF {attachment.filename} exceeds 30MB",
        )

    if content[:4] != PDF_MAGIC:
        raise AttachmentValidationError(
            INVALID_ATTACHMENT_FORMAT,
            attachment.filename,
            f"File {attachment.filename} is not a valid PDF",
        )

    return ValidatedAttachment(
        filename=sanitize_filename(attachment.filename),
        content=content,
        content_type=PDF_CONTENT_TYPE,
    )
