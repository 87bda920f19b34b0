"""
Error rendering.

Every error leaves the API as ``{"error": "<message>"}``, optionally with
extra diagnostic keys. Services raise ``HTTPException``; a dict ``detail`` is
passed through verbatim so callers can attach fields such as ``groupId``.
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

log = structlog.get_logger()


class LeadershipTransferError(HTTPException):
    """Raised in strict mode when a led group could not be handed over."""

    def __init__(self, group_id, group_name: str, message: str):
        self.group_id = group_id
        self.group_name = group_name
        self.message = message
        super().__init__(
            status_code=500,
            detail={
                "error": "Failed to transfer group leadership",
                "groupId": str(group_id),
                "groupName": group_name,
                "message": message,
            },
        )


def error_body(detail) -> dict:
    if isinstance(detail, dict):
        return detail
    return {"error": str(detail)}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("request.unhandled_error", path=request.url.path, method=request.method, exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
