from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from typing import Optional
import time
import uuid
from organflow.core.config import Settings, settings as default_settings
from organflow.core.logging import logger
from organflow.core.exceptions import (
    OrganFlowError,
    organflow_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler
)
from organflow.api.v1.api import api_router
from organflow.services.demo_data import seed_demo_data
from organflow.services.ledger_gateway import build_ledger_gateway
from organflow.services.lifecycle_manager import OrganLifecycleManager
from organflow.services.snapshot_store import build_snapshot_store


def build_manager(app_settings: Settings) -> OrganLifecycleManager:
    """Wire the lifecycle manager to the configured store and ledger relay, and load its state."""
    manager = OrganLifecycleManager(
        store=build_snapshot_store(app_settings),
        ledger_gateway=build_ledger_gateway(app_settings),
        persist_timeout=app_settings.PERSIST_TIMEOUT_SECONDS,
        default_owning_hospital=app_settings.DEFAULT_OWNING_HOSPITAL,
    )
    manager.load()
    if app_settings.SEED_DEMO_DATA and manager.is_empty:
        seed_demo_data(manager)
    return manager


def create_app(app_settings: Optional[Settings] = None,
               manager: Optional[OrganLifecycleManager] = None) -> FastAPI:
    app_settings = app_settings or default_settings

    app = FastAPI(
        title=app_settings.APP_NAME,
        description="Organ Donation Lifecycle Tracking API",
        version=app_settings.APP_VERSION,
        docs_url="/docs" if app_settings.DEBUG else None,
        redoc_url="/redoc" if app_settings.DEBUG else None,
        openapi_url="/openapi.json" if app_settings.DEBUG else None,
    )
    app.state.settings = app_settings
    app.state.manager = manager
    app.state.owns_manager = manager is None

    # Add exception handlers
    app.add_exception_handler(OrganFlowError, organflow_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Request logging middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        request_id = str(uuid.uuid4())

        # Add request ID to request state
        request.state.request_id = request_id

        logger.info(
            f"Request: {request.method} {request.url.path}",
            extra={"request_id": request_id}
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            f"Response: {response.status_code} - {process_time:.3f}s",
            extra={"request_id": request_id}
        )

        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(api_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event():
        """Build the lifecycle manager unless one was injected."""
        logger.info(f"Starting {app_settings.APP_NAME} v{app_settings.APP_VERSION}")
        logger.info(f"Environment: {app_settings.ENVIRONMENT}")

        if app.state.manager is None:
            try:
                app.state.manager = build_manager(app_settings)
                logger.info("Lifecycle state initialized successfully")
            except OrganFlowError as e:
                logger.error(f"Lifecycle state initialization failed: {e}")
                raise

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Application shutting down")
        if app.state.owns_manager and app.state.manager is not None:
            app.state.manager.close()

    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "message": app_settings.APP_NAME,
            "version": app_settings.APP_VERSION,
            "status": "running",
            "environment": app_settings.ENVIRONMENT,
            "docs": "/docs" if app_settings.DEBUG else "disabled"
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint for monitoring."""
        manager = app.state.manager
        return {
            "status": "healthy" if manager is not None else "starting",
            "timestamp": time.time(),
            "version": app_settings.APP_VERSION,
            "environment": app_settings.ENVIRONMENT,
            "storage": manager.store.name if manager is not None else None,
            "unsaved_changes": manager.has_unsaved_changes if manager is not None else False,
        }

    return app


app = create_app()
