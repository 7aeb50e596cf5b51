"""
LLM Mux Application Entry Point

FastAPI application factory, including router registration and application configuration.
"""

import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from llmmux.api.admin import api_keys_router, metrics_router
from llmmux.api.auth import router as auth_router
from llmmux.api.health import router as health_router
from llmmux.api.proxy import router as proxy_router
from llmmux.common.errors import AppError
from llmmux.config import Settings, get_settings
from llmmux.container import GatewayContainer
from llmmux.logging_config import setup_logging

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application Lifecycle Management

    Initialize database, scheduler and discovery on startup, release them on shutdown.
    """
    container: GatewayContainer = app.state.container
    await container.startup()
    try:
        yield
    finally:
        await container.shutdown()


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        settings: Gateway settings, defaults to get_settings()
        transport: Outbound HTTP transport override for backends

    Returns:
        FastAPI: Configured application
    """
    settings = settings or get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description="OpenAI-compatible gateway multiplexing requests across inference backends",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.container = GatewayContainer(settings, transport=transport)

    if settings.ENABLE_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_credentials=settings.cors_origins != ["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )
        logger.info("CORS enabled for origins: %s", ", ".join(settings.cors_origins))

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        """
        Handle application custom exceptions

        In production mode, error details are hidden to prevent information leakage.
        """
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(include_details=settings.DEBUG),
            headers=exc.headers or None,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """
        Handle uncaught exceptions

        In production mode, stack traces are logged but not returned to clients.
        """
        logger.error(
            "Uncaught exception: %s\nPath: %s\nTraceback:\n%s",
            str(exc),
            request.url.path,
            traceback.format_exc(),
        )
        if settings.DEBUG:
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "message": str(exc),
                        "type": type(exc).__name__,
                        "code": "internal_error",
                        "traceback": traceback.format_exc().split("\n"),
                    }
                },
            )
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "message": "Internal server error",
                    "type": "internal_error",
                    "code": "internal_error",
                }
            },
        )

    @app.get("/", tags=["Health"])
    async def root():
        return {
            "name": settings.APP_NAME,
            "version": VERSION,
            "description": "LLM Mux - OpenAI-compatible model multiplexer",
        }

    app.include_router(health_router)
    app.include_router(proxy_router)
    app.include_router(auth_router)
    app.include_router(api_keys_router)
    app.include_router(metrics_router)
    return app


app = create_app()


def run() -> None:
    """Console entry point"""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "llmmux.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
