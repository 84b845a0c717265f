import logging
import time
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from timetrack.db import Base, build_engine, build_session_factory
from timetrack.errors import ApiError, error_response
from timetrack.logging_utils import setup_json_logging
from timetrack.routers import admin, attendance, auth, employees, invitations, nfc, reports, search
from timetrack.settings import Settings, get_settings

logger = logging.getLogger("timetrack.request")

_VALUE_ERROR_PREFIX = "Value error, "
_HTTP_CODE_MAP = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    429: "TOO_MANY_ATTEMPTS",
}


def first_validation_message(errors: list[dict[str, Any]]) -> str:
    """Reduce a pydantic error list to the message of the first failing field."""
    if not errors:
        return "Invalid request"
    error = errors[0]
    if error.get("type") == "missing" and error.get("loc"):
        field_name = str(error["loc"][-1])
        return f"{field_name[:1].upper()}{field_name[1:]} is required"
    message = str(error.get("msg") or "Invalid request")
    if message.startswith(_VALUE_ERROR_PREFIX):
        message = message[len(_VALUE_ERROR_PREFIX):]
    return message


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_json_logging()

    engine = build_engine(settings)
    if settings.auto_create_schema:
        Base.metadata.create_all(engine)

    app = FastAPI(title=settings.app_name, version="0.1.0")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        request.state.actor = getattr(request.state, "actor", "system")
        request.state.actor_id = getattr(request.state, "actor_id", "system")

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-Id"] = request_id
            return response
        finally:
            latency_ms = round((time.perf_counter() - start) * 1000, 2)
            logger.info(
                "request_complete",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": status_code,
                    "latency_ms": latency_ms,
                    "actor": getattr(request.state, "actor", "system"),
                    "actor_id": getattr(request.state, "actor_id", "system"),
                    "company_id": getattr(request.state, "company_id", None),
                    "employee_id": getattr(request.state, "employee_id", None),
                    "event_id": getattr(request.state, "event_id", None),
                },
            )

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
        return error_response(
            request,
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _HTTP_CODE_MAP.get(exc.status_code, "HTTP_ERROR")
        message = str(exc.detail) if exc.detail else "Request failed."
        return error_response(
            request,
            status_code=exc.status_code,
            code=code,
            message=message,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(
            request,
            status_code=400,
            code="VALIDATION_ERROR",
            message=first_validation_message(list(exc.errors())),
        )

    @app.exception_handler(IntegrityError)
    async def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning(
            "integrity_conflict",
            extra={"request_id": getattr(request.state, "request_id", "unknown"), "path": request.url.path},
        )
        return error_response(
            request,
            status_code=409,
            code="CONFLICT",
            message="Resource already exists",
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unhandled_error",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "path": request.url.path,
                "method": request.method,
            },
        )
        return error_response(
            request,
            status_code=500,
            code="INTERNAL_ERROR",
            message="Internal server error",
        )

    for module in (auth, invitations, employees, nfc, attendance, reports, search, admin):
        app.include_router(module.router)

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True, "app": settings.app_name}

    @app.on_event("shutdown")
    def dispose_engine() -> None:
        engine.dispose()

    return app


app = create_app()
