from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


def bad_request(message: str, code: str = "VALIDATION_ERROR") -> ApiError:
    return ApiError(status_code=400, code=code, message=message)


def unauthorized(message: str = "Unauthorized") -> ApiError:
    return ApiError(status_code=401, code="UNAUTHORIZED", message=message)


def forbidden(message: str = "Unauthorized") -> ApiError:
    return ApiError(status_code=403, code="FORBIDDEN", message=message)


def not_found(message: str, code: str = "NOT_FOUND") -> ApiError:
    return ApiError(status_code=404, code=code, message=message)


def conflict(message: str, code: str = "CONFLICT") -> ApiError:
    return ApiError(status_code=409, code=code, message=message)


def expired(message: str) -> ApiError:
    return ApiError(status_code=400, code="EXPIRED", message=message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": message,
        "code": code,
        "request_id": get_request_id(request),
    }
    return JSONResponse(status_code=status_code, content=payload)
