# backend/bookdesk/errors.py
"""
Global error handlers.

Every failure leaves the API in the same envelope::

    {"success": false, "error": {"code": ..., "message": ..., "details": {...}}}
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.request_context import REQUEST_ID_HEADER, get_request_id, new_request_id
from .schemas.base import ErrorBody, ErrorResponse

logger = logging.getLogger(__name__)

_DEFAULT_CODES = {
    400: "INVALID",
    401: "UNAUTHENTICATED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "BUSINESS_RULE",
    504: "TIMEOUT",
}


def _code_from_status(status_code: int) -> str:
    if status_code >= 500:
        return "INTERNAL"
    return _DEFAULT_CODES.get(status_code, "ERROR")


def _envelope(code: str, message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    body = ErrorResponse(
        error=ErrorBody(
            code=code,
            message=message,
            details=jsonable_encoder(details) if details else None,
        )
    ).model_dump()
    # details is omitted, not null, when there is nothing to report
    if body["error"]["details"] is None:
        del body["error"]["details"]
    return body


def _parse_detail(detail: Any) -> tuple[Optional[str], Optional[str], Optional[Any]]:
    if isinstance(detail, dict):
        code = detail.get("code") if isinstance(detail.get("code"), str) else None
        message = detail.get("message") or detail.get("detail")
        detail_text = message if isinstance(message, str) else None
        details = detail.get("details")
        return detail_text, code, details
    if isinstance(detail, str):
        return detail, None, None
    if detail is None:
        return None, None, None
    return str(detail), None, None


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or get_request_id() or new_request_id()


def register_error_handlers(app: FastAPI) -> None:
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message, code, details = _parse_detail(exc.detail)
        return JSONResponse(
            _envelope(
                code or _code_from_status(exc.status_code),
                message or "Request failed",
                details,
            ),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return await _http_error(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return await _http_error(request, exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "loc": list(error.get("loc", ())),
                "msg": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            _envelope("INVALID", "Request validation failed", {"errors": errors}),
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id(request)
        logger.exception(
            f"Unhandled error on {request.method} {request.url.path}",
            extra={"request_id": request_id, "path": request.url.path},
        )
        return JSONResponse(
            _envelope(
                "INTERNAL",
                "An error occurred processing your request",
                {"request_id": request_id},
            ),
            status_code=500,
            headers={REQUEST_ID_HEADER: request_id},
        )
