from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, Optional, Type

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import AuthClient, AuthConfig
from .errors import (
    AuthenticationError,
    RecordStoreError,
    SubmissionInProgressError,
    TaskflowError,
    TaskNotFoundError,
    TaskValidationError,
)
from .logging_setup import setup_logging
from .models import User
from .notifications import Notifier
from .preferences import PreferenceStore
from .record_store import RecordStore, get_record_store
from .routers import auth as auth_router
from .routers import notifications as notifications_router
from .routers import preferences as preferences_router
from .routers import tasks as tasks_router
from .settings import Settings, get_settings
from .task_list import TaskListController
from .task_service import TaskService

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "auth", "description": "Log in, log out and inspect the current user."},
    {
        "name": "tasks",
        "description": "Task list with status filter and sorting, CRUD, status changes and dashboard stats.",
    },
    {"name": "notifications", "description": "One-shot success and error messages."},
    {"name": "preferences", "description": "Durable user preferences such as dark mode."},
]

_ERROR_STATUS: Dict[Type[TaskflowError], int] = {
    TaskValidationError: 422,
    TaskNotFoundError: 404,
    SubmissionInProgressError: 409,
    AuthenticationError: 401,
    RecordStoreError: 502,
}


def _status_for(exc: TaskflowError) -> int:
    for cls in type(exc).__mro__:
        if cls in _ERROR_STATUS:
            return _ERROR_STATUS[cls]  # type: ignore[index]
    return 500


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    store: Optional[RecordStore] = None,
    clock: Callable[[], datetime] = datetime.now,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the TaskFlow application.

    Args:
        settings: Settings to use; read from the environment when omitted.
        store: Record store to use; built from settings when omitted.
        clock: Time source for completion stamps and overdue checks.
        configure_logging: Install the console/file log handlers.
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(level=settings.log_level, log_dir=settings.log_dir)

    store = store or get_record_store(settings)
    notifier = Notifier()
    service = TaskService(store, table=settings.task_table, page_size=settings.task_page_size)
    controller = TaskListController(service, notifier=notifier, clock=clock)

    def _on_auth_success(user: Optional[User]) -> None:
        if user is None:
            logger.info("Authentication rejected")
        else:
            logger.debug("Authenticated %r", user["username"])

    def _on_auth_error(exc: Exception) -> None:
        logger.error("Authentication failed: %s", exc)
        notifier.error("Authentication failed")

    auth = AuthClient()
    auth.setup(AuthConfig.from_settings(settings), on_success=_on_auth_success, on_error=_on_auth_error)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        try:
            controller.load()
        except RecordStoreError as e:
            # Already reported through the notifier; the app stays usable.
            logger.warning("Initial task load failed: %s", e.message)
        yield
        store.close()

    app = FastAPI(
        title="TaskFlow",
        description="Personal task management backed by an external record store.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.notifier = notifier
    app.state.controller = controller
    app.state.auth = auth
    app.state.preferences = PreferenceStore(settings.preferences_path)

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers for consistent JSON on validation errors
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "detail": [... pydantic/fastapi error details ...],
                "message": "Request validation failed"
            }
        """
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(TaskflowError)
    async def taskflow_exception_handler(request: Request, exc: TaskflowError) -> JSONResponse:
        """
        Map domain errors to HTTP responses using the same body shape as validation errors.
        """
        status_code = _status_for(exc)
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        return JSONResponse(
            status_code=status_code,
            content={
                "error": type(exc).__name__,
                "message": exc.message,
                "detail": exc.detail,
            },
            headers=headers,
        )

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": store.name}

    # Include routers
    app.include_router(auth_router.router)
    app.include_router(tasks_router.router)
    app.include_router(notifications_router.router)
    app.include_router(preferences_router.router)
    return app


app = create_app()
