"""REST transport: mounts the compiled REST table on a FastAPI router."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response

from procroute.adapters.dispatch import ContextFactory, build_context, call_procedure, read_json_body, router_prefix
from procroute.adapters.errors import BadRequestError, rest_error_body, translate_error
from procroute.compiler import CompiledRouter, RestKey
from procroute.procedure import Procedure

logger = logging.getLogger(__name__)

QUERY_STRING_METHODS = frozenset({"GET", "DELETE"})


def _query_input(request: Request) -> Dict[str, Any]:
    values: Dict[str, List[str]] = {}
    for key, value in request.query_params.multi_items():
        values.setdefault(key, []).append(value)
    return {key: items[0] if len(items) == 1 else items for key, items in values.items()}


async def _gather_input(proc: Procedure, method: str, request: Request) -> Any:
    params: Dict[str, Any] = dict(request.path_params)
    if method in QUERY_STRING_METHODS:
        # Path parameters address the resource; the query string never overrides them.
        params = {**_query_input(request), **params}
    else:
        body = await read_json_body(request)
        if isinstance(body, dict):
            params = {**body, **params}
        elif body is not None:
            if params:
                raise BadRequestError("Request body must be a JSON object when the path has parameters")
            return body
    if not params and proc.input_schema is None:
        return None
    return params


def _status_for(method: str, payload: Any) -> int:
    if method == "POST":
        return 201
    if method == "DELETE" and payload is None:
        return 204
    return 200


def _make_endpoint(key: RestKey, proc: Procedure, context_factory: Optional[ContextFactory]):
    method = key.method

    async def endpoint(request: Request) -> Response:
        try:
            raw_input = await _gather_input(proc, method, request)
            context = await build_context(context_factory, request)
            payload = await call_procedure(proc, raw_input, context)
        except Exception as exc:
            error = translate_error(exc)
            logger.debug("%s %s failed with %s", method, key.path, error.code)
            return JSONResponse(rest_error_body(error), status_code=error.status_code)
        status_code = _status_for(method, payload)
        if status_code == 204:
            return Response(status_code=204)
        return JSONResponse(payload, status_code=status_code)

    endpoint.__name__ = f"rest_{proc.namespace}_{proc.name}"
    return endpoint


def build_rest_router(
    compiled: CompiledRouter,
    *,
    prefix: str = "/api",
    context_factory: Optional[ContextFactory] = None,
) -> APIRouter:
    """Register one API route per REST table entry.

    Routes are registered in dispatch order (see
    :meth:`~procroute.compiler.CompiledRouter.rest_routes`), so ``/users/me``
    is matched before ``/users/{id}`` whichever collection declared it first.

    Raises :class:`~procroute.errors.RouterRejectedError` for a rejected router.
    """

    compiled.ensure_mountable()
    router = APIRouter(prefix=router_prefix(prefix))
    for key, entry in compiled.rest_routes():
        proc = entry.procedure
        router.add_api_route(
            key.path,
            _make_endpoint(key, proc, context_factory),
            methods=[key.method],
            name=f"rest:{entry.qualified_name}",
            summary=proc.description,
            tags=[proc.namespace],
        )
    logger.debug("Mounted %d REST route(s) under '%s'", len(compiled.rest_table), router.prefix or "/")
    return router


__all__ = ["build_rest_router"]
