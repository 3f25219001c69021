"""RPC transport with tRPC-style addressing.

Every procedure is reachable at ``{prefix}/{namespace}.{name}``. Queries are
called with ``GET`` and a JSON-encoded ``input`` query parameter, mutations
with ``POST`` and a JSON body. Results are wrapped as
``{"result": {"data": ...}}``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from procroute.adapters.dispatch import (
    ContextFactory,
    build_context,
    call_procedure,
    parse_json_param,
    read_json_body,
    router_prefix,
)
from procroute.adapters.errors import rpc_error_body, translate_error
from procroute.compiler import CompiledRouter, RpcKey
from procroute.procedure import Procedure, ProcedureKind

logger = logging.getLogger(__name__)


def rpc_method(proc: Procedure) -> str:
    return "GET" if proc.kind is ProcedureKind.QUERY else "POST"


async def _gather_input(proc: Procedure, request: Request) -> Any:
    if proc.kind is ProcedureKind.QUERY:
        return parse_json_param(request.query_params.get("input"), "input")
    return await read_json_body(request)


def _make_endpoint(key: RpcKey, proc: Procedure, context_factory: Optional[ContextFactory]):
    dotted = str(key)

    async def endpoint(request: Request) -> JSONResponse:
        try:
            raw_input = await _gather_input(proc, request)
            context = await build_context(context_factory, request)
            payload = await call_procedure(proc, raw_input, context)
        except Exception as exc:
            error = translate_error(exc)
            logger.debug("RPC %s failed with %s", dotted, error.code)
            return JSONResponse(rpc_error_body(error, dotted), status_code=error.status_code)
        return JSONResponse({"result": {"data": payload}})

    endpoint.__name__ = f"rpc_{proc.namespace}_{proc.name}"
    return endpoint


def build_rpc_router(
    compiled: CompiledRouter,
    *,
    prefix: str = "/trpc",
    context_factory: Optional[ContextFactory] = None,
) -> APIRouter:
    compiled.ensure_mountable()
    router = APIRouter(prefix=router_prefix(prefix))
    for key, entry in compiled.rpc_table.items():
        proc = entry.procedure
        router.add_api_route(
            f"/{key}",
            _make_endpoint(key, proc, context_factory),
            methods=[rpc_method(proc)],
            name=f"rpc:{key}",
            summary=proc.description,
            tags=[proc.namespace],
        )
    logger.debug("Mounted %d RPC procedure(s) under '%s'", len(compiled.rpc_table), router.prefix or "/")
    return router


__all__ = ["build_rpc_router", "rpc_method"]
