"""Form collector that turns selected files and notes into a generation request."""

import base64
import mimetypes
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import httpx
import structlog
from pydantic import BaseModel

from sop_service.client.session import SOP_RESULT_KEY, SessionState
from sop_service.models.schemas import EncodedFile, GenerationInput, GenerationRequest

logger = structlog.get_logger()

GENERATE_PATH = "/api/generate-sop"

VIDEO_MIME_TYPES = {
    "video/mp4",
    "video/quicktime",
    "video/x-msvideo",
}

DOCUMENT_MIME_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

ACCEPTED_MIME_TYPES = VIDEO_MIME_TYPES | DOCUMENT_MIME_TYPES

_EXTENSION_MIME_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}


class SelectedFile(BaseModel):
    """A file picked by the user, held in memory until generation."""

    filename: str
    mime: str
    content: bytes


def guess_mime_type(filename: str) -> Optional[str]:
    """Guess a MIME type from the file extension."""
    suffix = Path(filename).suffix.lower()
    if suffix in _EXTENSION_MIME_TYPES:
        return _EXTENSION_MIME_TYPES[suffix]
    return mimetypes.guess_type(filename)[0]


def is_accepted_mime_type(mime_type: Optional[str]) -> bool:
    """Check if a MIME type is on the upload allow-list."""
    return mime_type in ACCEPTED_MIME_TYPES


def to_data_url(content: bytes, mime: str) -> str:
    """Encode binary content as a base64 data URI."""
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


def encode_file(selected: SelectedFile) -> EncodedFile:
    return EncodedFile(
        filename=selected.filename,
        data_url=to_data_url(selected.content, selected.mime),
        mime=selected.mime,
    )


def normalize_transcript(text: Optional[str]) -> Optional[str]:
    """Empty or whitespace-only notes are sent as null."""
    if text is None or not text.strip():
        return None
    return text


class FormCollector:
    """Collects a video, a PDF and transcript notes, then requests an SOP.

    The result of a successful generation is stored in the shared session
    state under ``sop_result_json`` for the result viewer.
    """

    def __init__(
        self,
        state: SessionState,
        base_url: str = "http://localhost:8000",
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.state = state
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.transport = transport
        self.files: list[SelectedFile] = []
        self.transcript: Optional[str] = None
        self.error = ""
        self.loading = False

    def add_file(
        self,
        source: Union[str, Path, bytes],
        filename: Optional[str] = None,
        mime: Optional[str] = None,
    ) -> bool:
        """Select a file from a path or raw bytes.

        Returns:
            True if the file was accepted, False if its type is not allowed
        """
        if isinstance(source, bytes):
            if not filename:
                raise ValueError("filename is required when adding raw bytes")
            content = source
        else:
            path = Path(source)
            filename = filename or path.name
            content = path.read_bytes()

        mime = mime or guess_mime_type(filename)
        if not is_accepted_mime_type(mime):
            logger.warning("file_rejected", filename=filename, mime=mime)
            return False

        self.files.append(SelectedFile(filename=filename, mime=mime, content=content))
        logger.info("file_selected", filename=filename, mime=mime, size=len(content))
        return True

    def add_files(self, paths: Iterable[Union[str, Path]]) -> list[SelectedFile]:
        """Select several files, keeping only allowed types."""
        before = len(self.files)
        for path in paths:
            self.add_file(path)
        return self.files[before:]

    def remove_file(self, filename: str) -> None:
        self.files = [f for f in self.files if f.filename != filename]

    def set_transcript(self, text: Optional[str]) -> None:
        self.transcript = normalize_transcript(text)

    def reset(self) -> None:
        """Clear every selected file, the notes and the last error."""
        self.files = []
        self.transcript = None
        self.error = ""

    def build_request(self, model: Optional[str] = None) -> GenerationRequest:
        """Build the generation request from the current selection.

        The last selected PDF and the last selected video win. Word documents
        have no slot in the request and are skipped.
        """
        pdf: Optional[EncodedFile] = None
        video: Optional[EncodedFile] = None

        for selected in self.files:
            if selected.mime == "application/pdf":
                pdf = encode_file(selected)
            elif selected.mime.startswith("video/"):
                video = encode_file(selected)
            else:
                logger.warning("file_skipped", filename=selected.filename, mime=selected.mime)

        return GenerationRequest(
            model=model or self.model,
            input=GenerationInput(pdf=pdf, video=video, transcript_text=self.transcript),
        )

    async def generate(self) -> Optional[Any]:
        """Request an SOP and store it in the session state.

        Returns:
            The SOP document, or None on failure with ``error`` set
        """
        self.loading = True
        self.error = ""
        try:
            body = self.build_request().model_dump(by_alias=True)
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(GENERATE_PATH, json=body)

            if response.status_code >= 400:
                self.error = _failure_message(response)
                logger.error("generate_failed", status=response.status_code, error=self.error)
                return None

            document = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self.error = str(e) or "Something went wrong"
            logger.error("generate_failed", error=self.error)
            return None
        finally:
            self.loading = False

        self.state.set(SOP_RESULT_KEY, document)
        logger.info("sop_stored", key=SOP_RESULT_KEY)
        return document


def _failure_message(response: httpx.Response) -> str:
    message = f"Request failed: {response.status_code}"
    try:
        detail = response.json().get("error")
    except (ValueError, AttributeError):
        detail = None
    if detail:
        message = f"{message} ({detail})"
    return message
