"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from order_service import __version__
from order_service.api.v1.router import api_router
from order_service.config import get_settings
from order_service.container import build_container
from order_service.errors import ConfigurationError, ExternalApiError, ValidationError
from order_service.infrastructure.logging import configure_logging

configure_logging(get_settings())

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    settings = get_settings()
    logger.info(
        "Starting Order Sync Service",
        app_env=settings.app_env,
        debug=settings.debug,
    )

    container = build_container(settings)
    app.state.container = container

    if settings.scheduler_enabled:
        container.scheduler.start()

    yield

    await container.aclose()
    logger.info("Shutting down Order Sync Service")


async def validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": "Invalid request parameters", "errors": exc.errors()},
    )


async def configuration_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=503, content={"detail": str(exc)})


async def external_api_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("IdoSell API request failed", path=request.url.path, error=str(exc))
    content = {"detail": str(exc)}
    if isinstance(exc, ExternalApiError) and exc.fault_code is not None:
        content["fault_code"] = exc.fault_code
    return JSONResponse(status_code=502, content=content)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Order Sync API",
        description="Synchronizes IdoSell orders into the order store",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(ExternalApiError, external_api_error_handler)

    app.include_router(api_router, prefix="/api/v1")

    return app


app = create_app()


def run() -> None:
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "order_service.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
    )


if __name__ == "__main__":
    run()
