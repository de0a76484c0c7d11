"""Pydantic request/response models for API endpoints."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "healthy"
    version: str = "1.0.0"


class ErrorResponse(BaseModel):
    """Error envelope returned for every failed generation."""

    error: str


class EncodedFile(BaseModel):
    """A binary upload carried as a base64 data URI."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    data_url: str = Field(alias="dataUrl", description="base64 data URI of the file")
    mime: str


class GenerationInput(BaseModel):
    """User-supplied artifacts for one SOP generation."""

    model_config = ConfigDict(populate_by_name=True)

    pdf: Optional[EncodedFile] = None
    video: Optional[EncodedFile] = None
    transcript_text: Optional[str] = Field(default=None, alias="transcriptText")

    def has_content(self) -> bool:
        return bool(self.pdf or self.video or self.transcript_text)


class GenerationRequest(BaseModel):
    """Body of POST /api/generate-sop."""

    model: Optional[str] = Field(
        default=None, description="Model identifier; falls back to the configured default"
    )
    input: GenerationInput
