from __future__ import annotations

from http import HTTPStatus
from typing import Any, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apicore.request_id import REQUEST_ID_HEADER
from apicore.schemas import ErrorResponse

# EX_CONFIG from sysexits.h
FATAL_ABORT_EXIT_CODE = 78


class StartupError(RuntimeError):
    """A setup step failed; the caller decides whether to retry the process start."""


class DatabaseSetupError(StartupError):
    pass


class EmailSetupError(StartupError):
    pass


class StorageSetupError(StartupError):
    pass


class LoginProviderError(StartupError):
    pass


class AuthSetupError(StartupError):
    pass


class TemplateLoadError(StartupError):
    pass


class MiddlewareSetupError(StartupError):
    pass


class FatalStartupAbort(Exception):
    """Irrecoverable misconfiguration. The process must exit without serving traffic.

    Not a ``StartupError`` subclass; ``except StartupError`` never catches it.
    """

    def __init__(self, message: str, *, exit_code: int = FATAL_ABORT_EXIT_CODE) -> None:
        super().__init__(message)
        self.exit_code = exit_code


ERROR_CODES = {
    413: "PAYLOAD_TOO_LARGE",
    418: "IM_A_TEAPOT",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "UPSTREAM_ERROR",
}


def error_code_for(status_code: int) -> str:
    """Stable machine-readable code for a status, e.g. ``404 -> NOT_FOUND``."""
    if status_code in ERROR_CODES:
        return ERROR_CODES[status_code]
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        return "HTTP_ERROR"
    return phrase.upper().replace(" ", "_").replace("-", "_").replace("'", "")


def http_error(status_code: int, code: str, message: str, *, details: Optional[Any] = None) -> HTTPException:
    detail: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        detail["details"] = details
    return HTTPException(status_code=status_code, detail=detail)


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Any] = None,
) -> JSONResponse:
    """Render the uniform error body and echo the request id header."""
    request_id = getattr(request.state, "request_id", None)
    body = ErrorResponse(
        code=code,
        message=message,
        error=message,
        request_id=request_id or None,
        details=jsonable_encoder(details) if details is not None else None,
    )
    return JSONResponse(
        body.model_dump(exclude_none=True),
        status_code=status_code,
        headers={REQUEST_ID_HEADER: request_id} if request_id else None,
    )


def _unpack_detail(status_code: int, detail: Any) -> tuple[str, str, Any]:
    if not isinstance(detail, dict):
        return error_code_for(status_code), str(detail) if detail is not None else "Request failed", None
    code = detail.get("code") or error_code_for(status_code)
    message = detail.get("message") or detail.get("error") or "Request failed"
    return str(code), str(message), detail.get("details")


def normalize_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code, message, details = _unpack_detail(exc.status_code, exc.detail)
    return error_response(request, status_code=exc.status_code, code=code, message=message, details=details)
