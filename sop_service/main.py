"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sop_service.config import get_settings
from sop_service.routers import generate
from sop_service.routers.generate import error_response


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, log_level.upper(), logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(get_settings().log_level)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan context manager."""
    settings = get_settings()
    logger.info(
        "application_started",
        version="1.0.0",
        provider=settings.llm_provider,
        model=settings.llm_model,
        cors_origins=settings.cors_origins,
        max_file_size_mb=settings.max_file_size_mb,
    )
    yield
    logger.info("application_shutdown")


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Reject malformed generation requests before any provider call."""
    errors = [
        f"{'/'.join(str(part) for part in err.get('loc', ()))}: {err.get('msg', 'invalid')}"
        for err in exc.errors()
    ]
    logger.warning("request_failed_validation", path=request.url.path, errors=errors)
    return error_response(400, "Malformed request: " + "; ".join(errors))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Surface unexpected failures through the same error envelope."""
    logger.exception("request_failed_unhandled", path=request.url.path, error=str(exc))
    return error_response(500, str(exc) or "Unexpected error")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="SOP Generator API",
        description=(
            "Turn a recorded product build (video, PDF and/or transcript) into a "
            "structured manufacturing Standard Operating Procedure."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Include routers
    app.include_router(generate.router)

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "name": "SOP Generator API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/api/health",
            "generate": "/api/generate-sop",
        }

    return app


# Create app instance
app = create_app()
