"""
FastAPI application factory.

Builds the app, wires the orchestrator onto ``app.state`` and maps the error
taxonomy onto HTTP status codes.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..clients.base import ProviderError
from ..config.settings import AppSettings, get_settings
from ..database.base import DuplicateUserError, NotFoundError, StoreError
from ..orchestration.orchestrator import (
    ConversationOrchestrator,
    get_conversation_orchestrator,
)
from ..utils.logging_setup import setup_logging
from ..utils.validation import ValidationError
from .routes import router

logger = logging.getLogger(__name__)


async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": exc.message})


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": exc.message})


async def handle_duplicate_user(
    request: Request, exc: DuplicateUserError
) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": exc.message})


async def handle_store_error(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(f"Store error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500, content={"error": "Storage unavailable, please try again"}
    )


async def handle_provider_error(request: Request, exc: ProviderError) -> JSONResponse:
    logger.error(f"AI provider error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=502,
        content={
            "error": f"AI service error: {exc.message}",
            "status": getattr(exc, "status_code", None),
        },
    )


def create_app(
    orchestrator: ConversationOrchestrator | None = None,
    settings: AppSettings | None = None,
) -> FastAPI:
    """
    Create the Medibot FastAPI application.

    Args:
        orchestrator: Orchestrator to serve. If None, the global orchestrator
            is built on startup and its connections closed on shutdown.
        settings: Settings to use; defaults to the global settings

    Returns:
        Configured FastAPI app
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owns_orchestrator = app.state.orchestrator is None
        if owns_orchestrator:
            app.state.orchestrator = get_conversation_orchestrator()
        logger.info(f"{settings.app_name} {settings.app_version} started")

        yield

        if owns_orchestrator:
            await app.state.orchestrator.ai_client.aclose()
            await app.state.orchestrator.store.close()

    app = FastAPI(
        title=f"{settings.app_name} API",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.server.cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, handle_validation_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(NotFoundError, handle_not_found)
    app.add_exception_handler(DuplicateUserError, handle_duplicate_user)
    app.add_exception_handler(StoreError, handle_store_error)
    app.add_exception_handler(ProviderError, handle_provider_error)

    app.include_router(router)

    return app
