"""
Error taxonomy and the exception handlers that render it.

Every error leaves the API in the envelope ``{"success": false, "error", "code"}``.
Domain rules raise ``DomainError`` with a stable ``ErrorCode``; storage and
unexpected failures are logged and surfaced with a generic message.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

log = structlog.get_logger()


class ErrorCode(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ALREADY_MEMBER = "ALREADY_MEMBER"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    CANNOT_REMOVE_OWNER = "CANNOT_REMOVE_OWNER"
    CANNOT_CHANGE_OWNER_ROLE = "CANNOT_CHANGE_OWNER_ROLE"
    OWNER_MUST_TRANSFER_FIRST = "OWNER_MUST_TRANSFER_FIRST"
    SLUG_TAKEN = "SLUG_TAKEN"
    TEAM_LIMIT_REACHED = "TEAM_LIMIT_REACHED"
    ORGANIZATION_NOT_EMPTY = "ORGANIZATION_NOT_EMPTY"
    SCOPE_INACTIVE = "SCOPE_INACTIVE"
    OWNER_INVARIANT_VIOLATED = "OWNER_INVARIANT_VIOLATED"
    STORAGE_ERROR = "STORAGE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_STATUS: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.MEMBER_NOT_FOUND: 404,
    ErrorCode.OWNER_INVARIANT_VIOLATED: 500,
    ErrorCode.STORAGE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}

DEFAULT_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.UNAUTHENTICATED: "Authentication required",
    ErrorCode.FORBIDDEN: "You do not have permission to perform this action",
    ErrorCode.NOT_FOUND: "Not found",
    ErrorCode.USER_NOT_FOUND: "User not found",
    ErrorCode.MEMBER_NOT_FOUND: "Member not found",
    ErrorCode.ALREADY_MEMBER: "User is already a member",
    ErrorCode.CAPACITY_EXCEEDED: "Maximum member capacity reached",
    ErrorCode.CANNOT_REMOVE_OWNER: "Cannot remove the owner. Transfer ownership first.",
    ErrorCode.CANNOT_CHANGE_OWNER_ROLE: "Cannot change the owner's role. Transfer ownership instead.",
    ErrorCode.OWNER_MUST_TRANSFER_FIRST: (
        "As the owner, you must transfer ownership or remove all members before leaving"
    ),
    ErrorCode.OWNER_INVARIANT_VIOLATED: "Ownership transfer could not be completed",
    ErrorCode.STORAGE_ERROR: "A storage error occurred",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
}

_CODE_FOR_STATUS = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.UNAUTHENTICATED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    422: ErrorCode.VALIDATION_ERROR,
}


class DomainError(HTTPException):
    """An HTTPException carrying a stable error code. Unlisted codes map to 400."""

    def __init__(
        self,
        code: ErrorCode,
        detail: Optional[str] = None,
        *,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            status_code=status_code or ERROR_STATUS.get(code, 400),
            detail=detail or DEFAULT_MESSAGES.get(code, code.value),
        )
        self.code = code


def error_response(status_code: int, message: str, code: ErrorCode | str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": message,
            "code": code.value if isinstance(code, ErrorCode) else code,
        },
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

async def _handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.domain_error", code=exc.code.value, detail=exc.detail)
    return error_response(exc.status_code, exc.detail, exc.code)


async def _handle_http_exception(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    code = _CODE_FOR_STATUS.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    response = error_response(exc.status_code, str(exc.detail), code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first['msg']}" if field else first["msg"]
    return error_response(400, message, ErrorCode.VALIDATION_ERROR)


async def _handle_storage_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    log.exception("request.storage_error", path=request.url.path)
    return error_response(500, DEFAULT_MESSAGES[ErrorCode.STORAGE_ERROR], ErrorCode.STORAGE_ERROR)


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unhandled_error", path=request.url.path)
    return error_response(500, DEFAULT_MESSAGES[ErrorCode.INTERNAL_ERROR], ErrorCode.INTERNAL_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, _handle_domain_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(SQLAlchemyError, _handle_storage_error)
    app.add_exception_handler(Exception, _handle_unexpected)
