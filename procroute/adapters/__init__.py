"""FastAPI transport adapters for compiled procroute routers."""

from __future__ import annotations

from .app import create_app, create_app_from_project
from .codec import decode, encode
from .dispatch import RequestContext, default_context_factory
from .errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InputValidationError,
    NotFoundError,
    OutputValidationError,
    ProcedureError,
    TooManyRequestsError,
    TransportError,
    UnauthorizedError,
    translate_error,
)
from .rest import build_rest_router
from .rpc import build_rpc_router

__all__ = [
    "BadRequestError",
    "ConflictError",
    "ForbiddenError",
    "InputValidationError",
    "NotFoundError",
    "OutputValidationError",
    "ProcedureError",
    "RequestContext",
    "TooManyRequestsError",
    "TransportError",
    "UnauthorizedError",
    "build_rest_router",
    "build_rpc_router",
    "create_app",
    "create_app_from_project",
    "decode",
    "default_context_factory",
    "encode",
    "translate_error",
]
