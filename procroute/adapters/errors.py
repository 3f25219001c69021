"""The single error-translation boundary shared by the REST and RPC adapters."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import ValidationError
from starlette.exceptions import HTTPException

from procroute.errors import ProcrouteError

logger = logging.getLogger(__name__)

STATUS_CODES: Dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_SUPPORTED",
    408: "TIMEOUT",
    409: "CONFLICT",
    422: "UNPROCESSABLE_CONTENT",
    429: "TOO_MANY_REQUESTS",
    500: "INTERNAL_SERVER_ERROR",
}


class ProcedureError(ProcrouteError):
    """Base class for errors raised by procedure handlers and adapters."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        details: Any = None,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message, code=code)
        if status_code is not None:
            self.status_code = status_code
        if self.code is None:
            self.code = STATUS_CODES.get(self.status_code, "INTERNAL_SERVER_ERROR")
        self.details = details


class BadRequestError(ProcedureError):
    status_code = 400
    code = "BAD_REQUEST"


class UnauthorizedError(ProcedureError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(ProcedureError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(ProcedureError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ProcedureError):
    status_code = 409
    code = "CONFLICT"


class TooManyRequestsError(ProcedureError):
    status_code = 429
    code = "TOO_MANY_REQUESTS"


class InputValidationError(BadRequestError):
    """Request input did not satisfy the procedure's input schema."""


class OutputValidationError(ProcedureError):
    """Handler output did not satisfy the procedure's output schema."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"


@dataclass(frozen=True)
class TransportError:
    """Transport-neutral description of a failed call."""

    status_code: int
    code: str
    message: str
    details: Any = None


def validation_details(exc: ValidationError) -> Any:
    return json.loads(exc.json(include_url=False))


def translate_error(exc: BaseException) -> TransportError:
    """Map any exception raised while serving a procedure onto a :class:`TransportError`."""

    if isinstance(exc, ProcedureError):
        return TransportError(
            status_code=exc.status_code,
            code=exc.code or STATUS_CODES.get(exc.status_code, "INTERNAL_SERVER_ERROR"),
            message=exc.message,
            details=exc.details,
        )
    if isinstance(exc, ValidationError):
        return TransportError(
            status_code=400,
            code="BAD_REQUEST",
            message="Input validation failed",
            details=validation_details(exc),
        )
    if isinstance(exc, HTTPException):
        return TransportError(
            status_code=exc.status_code,
            code=STATUS_CODES.get(exc.status_code, "INTERNAL_SERVER_ERROR"),
            message=str(exc.detail),
        )
    logger.error("Unhandled error in procedure handler", exc_info=exc)
    return TransportError(status_code=500, code="INTERNAL_SERVER_ERROR", message="Internal server error")


def rest_error_body(error: TransportError) -> Dict[str, Any]:
    return {"error": {"code": error.code, "message": error.message, "details": error.details}}


def rpc_error_body(error: TransportError, path: str) -> Dict[str, Any]:
    return {
        "error": {
            "code": error.code,
            "message": error.message,
            "data": {
                "code": error.code,
                "httpStatus": error.status_code,
                "path": path,
                "details": error.details,
            },
        }
    }


__all__ = [
    "BadRequestError",
    "ConflictError",
    "ForbiddenError",
    "InputValidationError",
    "NotFoundError",
    "OutputValidationError",
    "ProcedureError",
    "STATUS_CODES",
    "TooManyRequestsError",
    "TransportError",
    "UnauthorizedError",
    "rest_error_body",
    "rpc_error_body",
    "translate_error",
]
