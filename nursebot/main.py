"""
FastAPI main application for the Nursing Knowledge Chatbot

This module sets up the FastAPI application with:
- API configuration and middleware
- CORS handling
- Error handling
- Logging configuration
- Application startup and shutdown events
"""

import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from nursebot.api import ChatbotServices, build_services, get_api_router
from nursebot.config import Settings, settings, validate_configuration
from nursebot.models import ErrorResponse
from nursebot.store import StorageError, create_knowledge_store


def configure_logging(config: Settings) -> None:
    """Configure root logging from settings."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper()),
        format=config.log_format,
        handlers=handlers,
    )


configure_logging(settings)

logger = logging.getLogger(__name__)


def create_services(config: Settings) -> ChatbotServices:
    """Build the knowledge store and the components that depend on it."""
    try:
        store = create_knowledge_store(config)
    except StorageError as e:
        # Retrieval degrades to generic replies without a store
        logger.error(f"Knowledge store unavailable, continuing without it: {e}")
        store = None
    return build_services(config, store)


def create_app(config: Optional[Settings] = None, services: Optional[ChatbotServices] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        config: Application settings, defaults to the global settings
        services: Pre-built components, built at startup when omitted

    Returns:
        FastAPI: Configured application
    """
    config = config or (services.settings if services else settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan context manager for startup and shutdown events.

        Args:
            app: FastAPI application instance
        """
        # Startup
        logger.info("Starting Nursing Knowledge Chatbot API...")
        if not validate_configuration(config):
            logger.error("Configuration validation failed")
            sys.exit(1)

        if getattr(app.state, "services", None) is None:
            app.state.services = create_services(config)

        status = await app.state.services.repository.system_status()
        if status.keyword_index_exists:
            logger.info(f"Knowledge base ready: {status.knowledge_entries_count} entries")
        else:
            logger.warning("Keyword index not found - every message will get a generic reply")

        logger.info("Application startup completed successfully")

        yield

        # Shutdown
        logger.info("Shutting down Nursing Knowledge Chatbot API...")

    app = FastAPI(
        title=config.api_title,
        description=config.api_description,
        version=config.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.services = services

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Middleware to log all HTTP requests.

        Args:
            request: HTTP request
            call_next: Next middleware/endpoint

        Returns:
            HTTP response
        """
        start_time = time.time()

        logger.info(f"{request.method} {request.url} - {request.client.host if request.client else 'unknown'}")

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(f"{request.method} {request.url} - {response.status_code} - {process_time:.4f}s")

        return response

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Render HTTP exceptions as ErrorResponse JSON."""
        logger.error(f"HTTP Exception: {exc.status_code} - {exc.detail}")

        error_response = ErrorResponse(
            error=str(exc.detail),
            error_code=str(exc.status_code),
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(mode="json"),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Render request validation errors as ErrorResponse JSON."""
        logger.error(f"Validation Error: {exc.errors()}")

        error_response = ErrorResponse(
            error="Request validation failed",
            error_code="VALIDATION_ERROR",
            details={"errors": [
                {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
                for error in exc.errors()
            ]},
        )

        return JSONResponse(
            status_code=422,
            content=error_response.model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Render unhandled exceptions as a generic 500."""
        logger.error(f"Unhandled Exception: {type(exc).__name__} - {str(exc)}")

        error_response = ErrorResponse(
            error="Internal server error",
            error_code="INTERNAL_ERROR",
            details={"exception_type": type(exc).__name__},
        )

        return JSONResponse(
            status_code=500,
            content=error_response.model_dump(mode="json"),
        )

    # Include API router
    app.include_router(get_api_router(), prefix="/api/v1")

    @app.get("/")
    async def root():
        """
        Root endpoint with basic API information.

        Returns:
            JSON response with API info
        """
        return {
            "name": config.api_title,
            "version": config.api_version,
            "status": "operational",
            "environment": config.environment,
            "docs": "/docs",
            "api_prefix": "/api/v1",
        }

    return app


app = create_app()


def main():
    """Main entry point for running the application."""
    try:
        logger.info(f"Starting server on {settings.app_host}:{settings.app_port}")

        uvicorn.run(
            "nursebot.main:app",
            host=settings.app_host,
            port=settings.app_port,
            reload=settings.debug,
            log_level=settings.log_level.lower(),
            access_log=True,
        )

    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user")
    except Exception as e:
        logger.error(f"Server startup failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
