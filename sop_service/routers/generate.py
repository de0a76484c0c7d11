"""API router for SOP generation endpoints."""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from sop_service.config import Settings, get_settings
from sop_service.models.schemas import ErrorResponse, GenerationRequest, HealthResponse
from sop_service.services.attachments import AttachmentError, AttachmentTooLargeError, UploadError
from sop_service.services.generation import GenerationError, generate_sop
from sop_service.utils.llm import LLM

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["generation"])


class Services:
    """Container for shared service instances."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.llm = LLM(settings)


_services: Services | None = None


def get_services(settings: Annotated[Settings, Depends(get_settings)]) -> Services:
    """Get or create services instance."""
    global _services
    if _services is None:
        _services = Services(settings)
    return _services


def error_response(status_code: int, message: str) -> JSONResponse:
    """Build the ``{"error": ...}`` envelope used for every failure."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message or "Unexpected error").model_dump(),
    )


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health status."""
    return HealthResponse(status="healthy", version="1.0.0")


@router.post(
    "/generate-sop",
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
async def generate_sop_document(
    payload: GenerationRequest,
    services: Annotated[Services, Depends(get_services)],
) -> JSONResponse:
    """Generate a Standard Operating Procedure from a video, PDF and/or transcript.

    Returns the SOP JSON exactly as produced by the model.
    """
    logger.info(
        "generate_sop_request",
        model=payload.model,
        pdf=payload.input.pdf.filename if payload.input.pdf else None,
        video=payload.input.video.filename if payload.input.video else None,
    )

    try:
        document = await generate_sop(payload, services.llm)
    except AttachmentTooLargeError as e:
        return error_response(413, str(e))
    except AttachmentError as e:
        return error_response(400, str(e))
    except (UploadError, GenerationError) as e:
        logger.error("generate_sop_failed", error_type=type(e).__name__, error=str(e))
        return error_response(500, str(e))

    return JSONResponse(content=document)
