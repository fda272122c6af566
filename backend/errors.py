"""
Error responses for the API.

Handlers raise ApiError (or a plain HTTPException) and the handlers
registered here turn them into a uniform JSON body:

    {"success": false, "error": "<code>", "message": "...", "details": ..., "stack": [...]}

'stack' is only included when the app runs in development.
"""

import traceback
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from utils.logger import setup_logger

logger = setup_logger(name=__name__)

DEFAULT_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    500: "internal_error",
    503: "service_unavailable",
}


class ApiError(HTTPException):
    """HTTPException carrying a stable, machine-readable error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: Optional[str] = None,
        details: Optional[Any] = None,
    ):
        super().__init__(status_code=status_code, detail=message or code)
        self.code = code
        self.message = message or code
        self.details = details


def _body(code: str, message: str, details: Any = None, exc: Optional[BaseException] = None,
          include_stack: bool = False) -> dict:
    body = {"success": False, "error": code, "message": message}
    if details is not None:
        body["details"] = details
    if include_stack and exc is not None:
        body["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return body


def register_error_handlers(app: FastAPI, is_development: bool) -> None:
    """Install JSON error handlers on the app."""

    @app.exception_handler(ApiError)
    async def handle_api_error(request: Request, exc: ApiError):
        return JSONResponse(
            status_code=exc.status_code,
            content=_body(exc.code, exc.message, exc.details, exc, is_development),
        )

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException):
        code = DEFAULT_CODES.get(exc.status_code, "error")
        message = exc.detail if isinstance(exc.detail, str) else code
        details = None if isinstance(exc.detail, str) else exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_body(code, message, details, exc, is_development),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = [
            {"field": ".".join(str(x) for x in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=_body("invalid_request", "Request validation failed", errors),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content=_body("internal_error", "Internal server error", None, exc, is_development),
        )
