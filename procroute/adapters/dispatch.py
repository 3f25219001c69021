"""Procedure invocation shared by both transports."""

from __future__ import annotations

import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from fastapi import Request
from starlette.concurrency import run_in_threadpool

from procroute.adapters.codec import decode, encode
from procroute.adapters.errors import BadRequestError
from procroute.naming import normalize_path
from procroute.procedure import Procedure

ContextFactory = Callable[[Request], Union[Any, Awaitable[Any]]]


@dataclass
class RequestContext:
    """Default per-request context handed to handlers."""

    request: Request
    state: Dict[str, Any] = field(default_factory=dict)


def default_context_factory(request: Request) -> RequestContext:
    return RequestContext(request=request)


def router_prefix(prefix: Optional[str]) -> str:
    if not prefix or prefix == "/":
        return ""
    return normalize_path(prefix)


async def build_context(factory: Optional[ContextFactory], request: Request) -> Any:
    factory = factory or default_context_factory
    context = factory(request)
    if inspect.isawaitable(context):
        context = await context
    return context


async def read_json_body(request: Request) -> Any:
    body = await request.body()
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError as exc:
        raise BadRequestError("Request body is not valid JSON") from exc


def parse_json_param(raw: Optional[str], name: str) -> Any:
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise BadRequestError(f"Query parameter '{name}' is not valid JSON") from exc


async def call_procedure(proc: Procedure, raw_input: Any, context: Any) -> Any:
    """Decode ``raw_input``, run the handler and encode what it returns."""

    value = decode(proc.input_schema, raw_input)
    if inspect.iscoroutinefunction(proc.handler):
        result = await proc.handler(value, context)
    else:
        result = await run_in_threadpool(proc.handler, value, context)
        if inspect.isawaitable(result):
            result = await result
    return encode(proc.output_schema, result)


__all__ = [
    "ContextFactory",
    "RequestContext",
    "build_context",
    "call_procedure",
    "default_context_factory",
    "parse_json_param",
    "read_json_body",
    "router_prefix",
]
