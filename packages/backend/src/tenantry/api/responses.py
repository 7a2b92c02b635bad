"""Response envelope and error handlers.

Learn: Every endpoint answers with the same envelope:

    {"success": true, "data": ..., "meta": {...}}
    {"success": false, "error": {"code": ..., "message": ..., "details": ...}}

Handlers build success envelopes with success_response(); domain errors
(AppError) and FastAPI's own validation/HTTP errors are turned into error
envelopes by the exception handlers registered in main.py.
"""

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from tenantry.errors import AppError


def success_response(data: Any, meta: Optional[dict] = None) -> dict:
    response = {"success": True, "data": data}
    if meta:
        response["meta"] = meta
    return response


def paginated_response(data: list, total: int, limit: int, offset: int, **meta) -> dict:
    return success_response(
        data,
        {
            "pagination": {
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total,
            },
            **meta,
        },
    )


def message_response(message: str, data: Any = None) -> dict:
    return success_response(data, {"message": message})


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder({"success": False, "error": error}),
        headers=headers,
    )


def app_error_response(exc: AppError) -> JSONResponse:
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    429: "RATE_LIMITED",
}


async def _handle_app_error(request: Request, exc: AppError) -> JSONResponse:
    return app_error_response(exc)


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return error_response(422, "VALIDATION_ERROR", "Invalid request", exc.errors())


async def _handle_http_error(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return error_response(
        exc.status_code,
        _HTTP_CODES.get(exc.status_code, "ERROR"),
        str(exc.detail),
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _handle_app_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_error)
