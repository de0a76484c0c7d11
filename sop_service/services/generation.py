"""SOP generation service using LLM."""

import json
from typing import Any

import structlog
from langchain_core.messages import AIMessage
from pydantic import ValidationError

from sop_service.models.schemas import GenerationRequest
from sop_service.models.sop import parse_sop_document
from sop_service.services.attachments import prepare_attachments
from sop_service.services.prompt import (
    SOP_JSON_SCHEMA,
    SOP_SCHEMA_NAME,
    build_correction_message,
    build_messages,
)
from sop_service.utils.llm import LLM

logger = structlog.get_logger()


class GenerationError(Exception):
    """Raised when SOP generation fails after the request was accepted."""

    pass


class ProviderError(GenerationError):
    """Raised when the provider generation call fails."""

    pass


class OutputParseError(GenerationError):
    """Raised when the provider returns text that is not valid JSON."""

    pass


class SchemaConformanceError(GenerationError):
    """Raised when the provider output still violates the SOP schema."""

    def __init__(self, message: str, errors: list[str]):
        super().__init__(message)
        self.errors = errors


def format_validation_errors(error: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into readable JSON-path messages."""
    messages = []
    for item in error.errors():
        path = "/".join(str(part) for part in item["loc"])
        messages.append(f"{path or '<root>'}: {item['msg']}")
    return messages


async def _invoke(llm: LLM, messages: list, model: str | None) -> str:
    try:
        return await llm.generate_structured(messages, SOP_SCHEMA_NAME, SOP_JSON_SCHEMA, model=model)
    except Exception as e:
        logger.error("provider_call_failed", model=model, error=str(e))
        raise ProviderError(f"LLM generation failed: {str(e)}") from e


def _parse(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error("sop_json_parse_failed", error=str(e), preview=str(text)[:200])
        raise OutputParseError(f"Failed to parse LLM response as JSON: {str(e)}") from e


async def generate_sop(request: GenerationRequest, llm: LLM) -> Any:
    """Generate an SOP document from the user's video, PDF and transcript.

    Attachments are uploaded to the provider, the SOP prompt is assembled and
    a schema-constrained generation is requested. The decoded JSON is
    returned exactly as the provider produced it.

    Args:
        request: Validated generation request
        llm: LLM instance for uploads and generation

    Returns:
        The SOP document as decoded JSON

    Raises:
        AttachmentError: If an attachment cannot be decoded
        UploadError: If an attachment upload fails
        ProviderError: If the generation call fails
        OutputParseError: If the response is not valid JSON
        SchemaConformanceError: If the response violates the SOP schema
            after the allowed correction attempts
    """
    settings = llm.settings
    model = request.model or settings.llm_model
    payload = request.input

    logger.info(
        "generating_sop",
        model=model,
        has_pdf=payload.pdf is not None,
        has_video=payload.video is not None,
        transcript_length=len(payload.transcript_text or ""),
    )
    if not payload.has_content():
        logger.warning("generation_without_input")

    attachments = await prepare_attachments(payload, llm)
    messages = build_messages(payload.transcript_text, [a.content_block() for a in attachments])

    text = await _invoke(llm, messages, model)
    data = _parse(text)

    if not settings.validate_output:
        logger.info("sop_generated", model=model, validated=False)
        return data

    attempts = 0
    while True:
        try:
            document = parse_sop_document(data)
            break
        except ValidationError as e:
            errors = format_validation_errors(e)
            logger.warning("sop_schema_violation", attempt=attempts, errors=errors)
            if attempts >= settings.schema_retry_limit:
                raise SchemaConformanceError(
                    f"LLM response does not match the SOP schema: {'; '.join(errors)}",
                    errors,
                ) from e

        attempts += 1
        messages = [*messages, AIMessage(content=text), build_correction_message(errors)]
        text = await _invoke(llm, messages, model)
        data = _parse(text)

    logger.info(
        "sop_generated",
        model=model,
        steps=len(document.steps),
        setup_items=len(document.initial_setup),
        has_errors=document.has_errors,
        corrections=attempts,
    )
    return data
