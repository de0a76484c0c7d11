"""Attachment decoding and provider upload service."""

import asyncio
import base64
import binascii
import re
from typing import Any, Optional

import structlog
from pydantic import BaseModel

from sop_service.models.schemas import EncodedFile, GenerationInput
from sop_service.utils.llm import LLM

logger = structlog.get_logger()

DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[^;,]*)(?:;[^;,]*)*?;base64,(?P<data>.*)$", re.DOTALL)


class AttachmentError(Exception):
    """Raised when an attachment cannot be decoded."""

    pass


class AttachmentTooLargeError(AttachmentError):
    """Raised when a decoded attachment exceeds the size limit."""

    pass


class UploadError(Exception):
    """Raised when the provider file store rejects an upload."""

    pass


class Attachment(BaseModel):
    """An attachment ready to be referenced in the generation call."""

    kind: str
    filename: str
    mime: str
    file_id: Optional[str] = None
    data_url: Optional[str] = None

    def content_block(self) -> dict[str, Any]:
        """Chat content block referencing this attachment.

        Chat file blocks only take PDFs, so an uploaded video is referenced
        by its file id in a text block instead.
        """
        if self.file_id and self.mime == "application/pdf":
            return {"type": "file", "file": {"file_id": self.file_id}}
        if self.file_id:
            return {
                "type": "text",
                "text": f"Attached {self.kind}: {self.filename} ({self.mime}), file id {self.file_id}",
            }
        return {
            "type": "file",
            "file": {"filename": self.filename, "file_data": self.data_url},
        }


def decode_data_url(data_url: str) -> tuple[bytes, Optional[str]]:
    """Decode a base64 data URI.

    Args:
        data_url: URI of the form ``data:<mime>;base64,<payload>``

    Returns:
        Tuple of (binary content, MIME type declared in the URI or None)

    Raises:
        AttachmentError: If the URI is not a base64 data URI
    """
    match = DATA_URL_PATTERN.match(data_url.strip())
    if match is None:
        raise AttachmentError("Attachment is not a base64 data URL")

    try:
        content = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise AttachmentError(f"Invalid base64 payload: {str(e)}") from e

    return content, match.group("mime") or None


def decode_attachment(encoded: EncodedFile, max_bytes: int) -> bytes:
    """Decode an EncodedFile back to binary content, enforcing the size limit."""
    try:
        content, _ = decode_data_url(encoded.data_url)
    except AttachmentError as e:
        raise AttachmentError(f"{encoded.filename}: {str(e)}") from e

    if len(content) > max_bytes:
        raise AttachmentTooLargeError(
            f"{encoded.filename} is too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
        )
    return content


async def _upload(kind: str, encoded: EncodedFile, content: bytes, llm: LLM) -> Attachment:
    if not llm.supports_file_upload:
        logger.info("attachment_inlined", kind=kind, filename=encoded.filename, size=len(content))
        return Attachment(
            kind=kind,
            filename=encoded.filename,
            mime=encoded.mime,
            data_url=encoded.data_url,
        )

    try:
        file_id = await llm.upload_file(content, encoded.filename, encoded.mime)
    except Exception as e:
        logger.error("attachment_upload_failed", kind=kind, filename=encoded.filename, error=str(e))
        raise UploadError(f"Failed to upload {encoded.filename}: {str(e)}") from e

    return Attachment(kind=kind, filename=encoded.filename, mime=encoded.mime, file_id=file_id)


async def prepare_attachments(payload: GenerationInput, llm: LLM) -> list[Attachment]:
    """Decode and upload the pdf and video attachments of a request.

    Every attachment is decoded before any upload starts, so a malformed file
    never reaches the provider. The uploads are independent and run
    concurrently; any failure fails the whole request.

    Raises:
        AttachmentError: If an attachment cannot be decoded
        UploadError: If the provider upload fails
    """
    max_bytes = llm.settings.max_file_size_bytes
    decoded = [
        (kind, encoded, decode_attachment(encoded, max_bytes))
        for kind, encoded in (("pdf", payload.pdf), ("video", payload.video))
        if encoded is not None
    ]
    if not decoded:
        return []

    attachments = await asyncio.gather(
        *(_upload(kind, encoded, content, llm) for kind, encoded, content in decoded)
    )

    logger.info("attachments_prepared", count=len(attachments), kinds=[a.kind for a in attachments])
    return list(attachments)
