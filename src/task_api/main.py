from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import StorageError, TaskError
from .repositories import TaskStore, build_store
from .routers import tasks as tasks_router
from .schemas import describe_errors
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and storage mode."},
    {"name": "tasks", "description": "CRUD operations for tasks."},
]

_REDACTED = "Internal server error"


def _error_detail(request: Request, exc: Exception) -> str:
    settings: Settings = request.app.state.settings
    if settings.is_production:
        return _REDACTED
    cause = exc.__cause__ or exc
    return str(cause) or type(cause).__name__


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return 400 for malformed or incomplete request bodies.

    Response format:
        {
            "message": "title: Value error, title is required",
            "error": "ValidationError",
            "detail": [{"loc": [...], "msg": "...", "type": "..."}, ...]
        }
    """
    errors = exc.errors()
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "message": describe_errors(list(errors)),
            "error": "ValidationError",
            "detail": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
                for e in errors
            ],
        },
    )


async def task_error_handler(request: Request, exc: TaskError) -> JSONResponse:
    """Map ValidationError/NotFoundError/StorageError to their status codes."""
    content = {"message": str(exc)}
    if isinstance(exc, StorageError):
        content["error"] = _error_detail(request, exc)
    return JSONResponse(status_code=exc.status_code, content=content)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown paths and unsupported methods are both "no such route".
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"message": "Route not found"})
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "An unexpected error occurred", "error": _error_detail(request, exc)},
    )


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None, store: Optional[TaskStore] = None) -> FastAPI:
    """
    Build the FastAPI application.

    The task store is chosen once here (see repositories.build_store) and kept
    on `app.state.store` for the lifetime of the app.

    Raises:
        ConfigError: durable storage is configured but unusable.
    """
    settings = settings or get_settings()
    store = store or build_store(settings)

    app = FastAPI(
        title="Task Tracker API",
        description="Backend API for tracking tasks with durable (Redis) or in-memory storage.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.store = store

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
        allow_headers=["Content-Type", "Authorization"],
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(TaskError, task_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object with the service status and storage mode ("durable" or "transient").
        """
        return {"message": "Task Tracker API", "status": "Running", "storage": store.storage_mode}

    app.include_router(tasks_router.router)

    logger.info("Task Tracker API ready (env=%s, storage=%s)", settings.app_env, store.storage_mode)
    return app
