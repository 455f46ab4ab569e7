import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api.v1.health import router as health_router
from .api.v1.orders import router as orders_router
from .core.database import get_database_manager
from .core.events import (
    close_events,
    create_broker_connection,
    create_orchestrator,
    init_events,
)
from .core.setting import get_settings
from .middleware.auth import setup_order_auth_middleware
from .middleware.error import setup_order_error_handling
from .utils.logging import setup_order_logging as setup_logging

settings = get_settings()

environment = settings.ENVIRONMENT.lower()
enable_file_logging = environment in ["production", "staging"]

logger = setup_logging(
    "order_service",
    log_level=settings.LOG_LEVEL,
    enable_file_logging=enable_file_logging,
)


# Lifespan context manager for startup and shutdown events
@asynccontextmanager
async def lifespan(app: FastAPI):
    startup_start = time.time()

    try:
        logger.info(
            "Starting order service initialization",
            extra={
                "environment": environment,
                "debug_mode": settings.DEBUG,
                "file_logging_enabled": enable_file_logging,
                "service_version": settings.APP_VERSION,
            },
        )

        # Database initialization
        db_start = time.time()
        database_manager = get_database_manager()
        await database_manager.create_tables()
        db_duration = int((time.time() - db_start) * 1000)
        logger.info(
            "Database initialization completed", extra={"duration_ms": db_duration}
        )

        # Broker connection and orchestrator
        event_start = time.time()
        connection = create_broker_connection(settings)
        orchestrator = create_orchestrator(
            database_manager.async_session_maker, connection, settings
        )
        app.state.broker_connection = connection
        app.state.orchestrator = orchestrator

        events_ready = await init_events(connection, orchestrator)
        event_duration = int((time.time() - event_start) * 1000)
        logger.info(
            "Event messaging initialization completed",
            extra={"duration_ms": event_duration, "degraded": not events_ready},
        )

        total_startup = int((time.time() - startup_start) * 1000)
        logger.info(
            "Order service started successfully",
            extra={
                "total_startup_duration_ms": total_startup,
                "database_init_ms": db_duration,
                "event_init_ms": event_duration,
            },
        )

    except Exception as e:
        logger.error(
            "Failed to start order service",
            exc_info=True,
            extra={
                "startup_duration_ms": int((time.time() - startup_start) * 1000),
                "error_type": type(e).__name__,
            },
        )
        raise

    yield

    shutdown_start = time.time()
    try:
        logger.info("Starting order service shutdown")

        await close_events(app.state.broker_connection, app.state.orchestrator)
        await get_database_manager().close()

        shutdown_duration = int((time.time() - shutdown_start) * 1000)
        logger.info(
            "Order service shutdown completed",
            extra={"shutdown_duration_ms": shutdown_duration},
        )

    except Exception as e:
        logger.error(
            "Error during order service shutdown",
            exc_info=True,
            extra={
                "shutdown_duration_ms": int((time.time() - shutdown_start) * 1000),
                "error_type": type(e).__name__,
            },
        )
        raise


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        openapi_url="/openapi.json" if settings.DEBUG else None,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    # 1. CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_CREDENTIALS,
        allow_methods=settings.CORS_METHODS,
        allow_headers=settings.CORS_HEADERS,
    )

    logger.info(
        "CORS middleware configured",
        extra={
            "allowed_origins": len(settings.CORS_ORIGINS),
            "credentials_allowed": settings.CORS_CREDENTIALS,
        },
    )

    # 2. Caller identity from gateway headers
    setup_order_auth_middleware(app)
    logger.info("✅ Authentication middleware configured")

    # 3. Error handling
    setup_order_error_handling(app)
    logger.info("✅ Error handling middleware configured")

    routers_info: list[dict[str, Any]] = []

    app.include_router(health_router, tags=["Health"])
    routers_info.append({"router": "health", "prefix": "", "tags": ["Health"]})

    app.include_router(orders_router, prefix="/api/v1", tags=["Order Management"])
    routers_info.append(
        {"router": "orders", "prefix": "/api/v1", "tags": ["Order Management"]}
    )

    logger.info(
        "API routes configured",
        extra={"total_routers": len(routers_info), "routers": routers_info},
    )

    return app


app = create_app()
