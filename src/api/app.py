"""FastAPI application factory and configuration.

Main application entry point with lifespan management, middleware,
error handlers, and router registration.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.agent.chat_agent import get_agent_service
from src.api.chat import router as chat_router
from src.errors import ChatError, ClientValidationError
from src.logging_utils import log_event
from src.models.schemas import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application while it runs.
    """
    # Startup
    logger.info("Starting chat stream API...")
    yield
    # Shutdown
    logger.info("Shutting down chat stream API...")


def error_response(error: ChatError) -> JSONResponse:
    """Render a pre-stream failure as a JSON error body."""
    body = ErrorResponse(error=error.message)
    return JSONResponse(status_code=error.status_code, content=body.model_dump())


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    log_event("error", level, error=exc, path=request.url.path, status_code=exc.status_code)
    return error_response(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed bodies as 400 instead of FastAPI's default 422."""
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    error = ClientValidationError(f"Invalid request body: {problems}")
    return await chat_error_handler(request, error)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    The provider factory lives on ``app.state`` so it can be swapped
    without touching the endpoint.

    Returns:
        Configured FastAPI application instance.
    """
    application = FastAPI(
        title="Chat Stream API",
        description=(
            "Relays a conversation to a remote text-generation provider and "
            "streams the reply back as server-sent events, fragment by fragment."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    application.add_exception_handler(ChatError, chat_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)

    application.state.provider_factory = get_agent_service

    application.include_router(chat_router)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        """Check service health status."""
        return {"status": "healthy", "service": "chat-stream"}

    return application


app = create_app()
