"""
FastAPI application entry point.
Configures middleware, routers, and lifecycle events.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from journal_ledger import __version__
from journal_ledger.core.config import get_settings
from journal_ledger.core.crypto.canonicalization import CANONICALIZATION_ENTRY_V1
from journal_ledger.core.crypto.signing import WITNESS_ALGORITHM
from journal_ledger.core.logging import configure_logging, get_logger
from journal_ledger.core.middleware import MaintenanceModeMiddleware, SecurityHeadersMiddleware
from journal_ledger.db.session import close_db, init_db, ping_database
from journal_ledger.modules.anchors.public_router import router as public_anchors_router
from journal_ledger.modules.anchors.router import router as anchors_router
from journal_ledger.modules.ledger.public_router import router as public_ledger_router
from journal_ledger.modules.ledger.router import router as entries_router

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Opens the database pool on startup and releases it on shutdown.
    """
    settings = get_settings()
    logger.info(
        "starting_application",
        environment=settings.environment,
        version=settings.version,
        witness_kid=settings.witness_signing_kid,
    )

    await init_db()
    logger.info("database_initialized")

    yield

    await close_db()
    logger.info("application_shutdown_complete")


def create_application() -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application with all middleware,
    routers, and settings applied.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        openapi_url=f"{settings.api_v1_prefix}/openapi.json",
        docs_url=f"{settings.api_v1_prefix}/docs",
        redoc_url=f"{settings.api_v1_prefix}/redoc",
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware Configuration
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Origin", settings.owner_header],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    # Added last so it runs first and short-circuits before anything else
    app.add_middleware(MaintenanceModeMiddleware)

    # ==========================================================================
    # Router Registration
    # ==========================================================================

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, object]:
        checks: dict[str, str] = {}

        try:
            await ping_database()
            checks["db"] = "ok"
        except Exception:
            logger.warning("health_db_probe_failed", exc_info=True)
            checks["db"] = "unavailable"

        overall = "healthy" if all(v == "ok" for v in checks.values()) else "degraded"
        return {"status": overall, "version": settings.version, "checks": checks}

    @app.get("/version", tags=["Health"])
    async def version_info() -> dict[str, str]:
        return {
            "version": settings.version,
            "package": __version__,
            "canonicalization": CANONICALIZATION_ENTRY_V1,
            "sigAlg": WITNESS_ALGORITHM,
            "sigKid": settings.witness_signing_kid,
        }

    # Public API (no authentication required)
    app.include_router(
        public_ledger_router,
        prefix=f"{settings.api_v1_prefix}/public",
        tags=["Public Verification"],
    )
    app.include_router(
        public_anchors_router,
        prefix=f"{settings.api_v1_prefix}/public",
        tags=["Public Anchors"],
    )

    # Owner-scoped API
    app.include_router(
        entries_router,
        prefix=f"{settings.api_v1_prefix}/entries",
        tags=["Entries"],
    )
    app.include_router(
        anchors_router,
        prefix=f"{settings.api_v1_prefix}/anchors",
        tags=["Anchors"],
    )

    # Prometheus metrics endpoint
    from prometheus_fastapi_instrumentator import Instrumentator

    instrumentator = Instrumentator().instrument(app)

    if settings.environment == "development" and not settings.metrics_auth_token:
        instrumentator.expose(app, endpoint="/metrics")
    else:
        import hmac as _hmac

        from fastapi import Header, Response

        @app.get("/metrics", include_in_schema=False)
        async def metrics_endpoint(
            authorization: str | None = Header(default=None),
        ) -> Response:
            if not settings.metrics_auth_token:
                # No token configured outside development: hide the endpoint
                return Response(status_code=404)

            if not authorization or not authorization.startswith("Bearer "):
                return Response(status_code=401)

            provided = authorization.removeprefix("Bearer ")
            if not _hmac.compare_digest(provided, settings.metrics_auth_token):
                return Response(status_code=401)

            from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

            return Response(
                content=generate_latest(),
                media_type=CONTENT_TYPE_LATEST,
            )

    return app


# Application instance
app = create_application()
