"""
Application factory and setup functions.

This module builds and configures the FastAPI application: CORS middleware,
error handlers and route registration.
"""
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from app.config.database import init_db
from app.config.security import get_cors_origins
from app.utils.logger import get_logger
from app.utils.errors import (
    AppError,
    app_error_handler,
    validation_error_handler,
    general_exception_handler,
)

logger = get_logger(__name__)

API_PREFIX = "/api/v1"


def create_lifespan() -> Callable:
    """
    Create application lifespan context manager.

    Returns:
        Async context manager for application startup and shutdown events.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("Starting application...")
        await init_db()
        logger.info("Application started successfully")
        yield
        logger.info("Shutting down application...")

    return lifespan


def setup_middleware(app: FastAPI) -> None:
    """Configure application middleware."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    logger.info("Middleware configured successfully")


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register all application error handlers.

    Error handlers are registered in order of specificity:
    1. AppError (most specific application errors)
    2. RequestValidationError (FastAPI validation errors)
    3. Exception (catch-all for unexpected errors)
    """
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info("Error handlers registered successfully")


def register_routes(app: FastAPI) -> None:
    """Register the API routers under /api/v1."""
    from app.api.routes import (
        health,
        claims,
        payments,
        remits,
        denials,
    )

    app.include_router(health.router, prefix=API_PREFIX, tags=["health"])
    app.include_router(claims.router, prefix=API_PREFIX, tags=["claims"])
    app.include_router(payments.router, prefix=API_PREFIX, tags=["payments"])
    app.include_router(remits.router, prefix=API_PREFIX, tags=["remits"])
    app.include_router(denials.router, prefix=API_PREFIX, tags=["denials"])

    logger.info("Routes registered successfully")


def create_application() -> FastAPI:
    """
    Create and configure FastAPI application instance.

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="RCM Engine - Claims Lifecycle and Remittance Reconciliation",
        description="Claim lifecycle, remittance posting and denial management for healthcare practices",
        version="1.0.0",
        lifespan=create_lifespan(),
    )

    setup_middleware(app)
    setup_error_handlers(app)
    register_routes(app)

    return app
