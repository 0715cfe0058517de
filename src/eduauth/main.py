"""FastAPI application entry point."""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware

from eduauth.config import get_settings
from eduauth.domain.shared.health import HealthStatus
from eduauth.infrastructure.database.connection import dispose_engine, get_engine
from eduauth.interfaces.api.v1.router import v1_router
from eduauth.interfaces.api.v1.schemas.identity import DependencyHealthResponse, HealthResponse
from eduauth.interfaces.dependencies import Facade, get_password_service, get_token_codec
from eduauth.logger import get_logger, setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    log = get_logger("eduauth.main")
    codec = get_token_codec()
    if not (codec.access_secret_configured and codec.refresh_secret_configured):
        log.error("JWT signing secrets are not configured; token issuance will fail")
    get_engine()  # Initialize connection pool
    log.info("Auth service started", extra={"environment": settings.environment})
    yield
    get_password_service().shutdown()
    await dispose_engine()
    log.info("Auth service shutdown completed")


def create_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Authentication and session lifecycle API",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(v1_router)

    @app.get("/health", response_model=HealthResponse)
    async def health(facade: Facade, response: Response):
        report = await facade.health()
        if report.status is HealthStatus.UNHEALTHY:
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status=str(report.status),
            version=settings.app_version,
            dependencies=[
                DependencyHealthResponse(
                    name=d.name,
                    status=str(d.status),
                    response_time_ms=d.response_time_ms,
                    error=d.error,
                )
                for d in report.dependencies
            ],
        )

    return app


app = create_app()
