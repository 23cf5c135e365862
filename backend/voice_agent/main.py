"""
Voice Agent Relay - Main FastAPI Application
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .api import auth_router, calendar_router, chat_router
from .config import settings
from .core.exceptions import VoiceAgentError
from .core.logging_config import setup_logging
from .core.session_store import init_session_store
from .middleware import RequestLoggingMiddleware

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)
    init_session_store(settings.max_history_messages, settings.default_model)
    logger.info("Session store initialized")

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Provider order: {', '.join(settings.provider_order)}")
    logger.info(f"Log level: {settings.log_level.upper()}")
    logger.info(f"Debug mode: {settings.debug}")
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Voice and text assistant relaying to LLM providers, with calendar booking",
    lifespan=lifespan
)

# Configure CORS; the session token and calendar link travel in headers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Session-Token", "X-Calendar-Url"],
)

# Add request logging middleware (after CORS)
if settings.log_api_requests:
    app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(auth_router)
app.include_router(chat_router)
app.include_router(calendar_router)


@app.exception_handler(VoiceAgentError)
async def voice_agent_error_handler(request: Request, exc: VoiceAgentError):
    """Errors that escaped a router; upstream failures map to 502."""
    logger.error(f"Unhandled {exc.error_code} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=502, content=exc.to_dict())


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "status": "ok",
        "message": f"{settings.app_name} is running",
        "version": __version__,
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.app_version,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "voice_agent.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
