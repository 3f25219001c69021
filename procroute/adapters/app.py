"""FastAPI application factory mounting both transports."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from fastapi import FastAPI

from procroute.adapters.dispatch import ContextFactory
from procroute.adapters.rest import build_rest_router
from procroute.adapters.rpc import build_rpc_router
from procroute.compiler import CompiledRouter, compile_router
from procroute.config import ProcrouteConfig, load_config
from procroute.discovery import discover_from_config

logger = logging.getLogger(__name__)


def create_app(
    compiled: CompiledRouter,
    *,
    config: Optional[ProcrouteConfig] = None,
    context_factory: Optional[ContextFactory] = None,
    title: str = "procroute",
) -> FastAPI:
    """Mount the REST and RPC views of ``compiled`` on a new FastAPI app.

    The prefixes come from ``config`` when one is given, otherwise ``/api``
    and ``/trpc``. A rejected router raises
    :class:`~procroute.errors.RouterRejectedError` before anything is mounted.
    """

    compiled.ensure_mountable()
    rest_prefix = config.rest_prefix if config is not None else "/api"
    rpc_prefix = config.rpc_prefix if config is not None else "/trpc"

    app = FastAPI(title=title)
    app.include_router(build_rest_router(compiled, prefix=rest_prefix, context_factory=context_factory))
    app.include_router(build_rpc_router(compiled, prefix=rpc_prefix, context_factory=context_factory))
    app.state.procroute_router = compiled
    logger.info(
        "procroute app ready: %d REST route(s) under %s, %d RPC procedure(s) under %s",
        len(compiled.rest_table),
        rest_prefix,
        len(compiled.rpc_table),
        rpc_prefix,
    )
    return app


def create_app_from_project(
    root: Union[str, Path],
    *,
    config: Optional[ProcrouteConfig] = None,
    context_factory: Optional[ContextFactory] = None,
) -> FastAPI:
    """Discover, compile and mount the procedures of the project at ``root``."""

    config = config or load_config(root)
    result = discover_from_config(config)
    compiled = compile_router(result.collections)
    return create_app(compiled, config=config, context_factory=context_factory)


__all__ = ["create_app", "create_app_from_project"]
