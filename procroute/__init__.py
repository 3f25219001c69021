"""
procroute: procedure discovery and dual-transport router compilation.

Procedure modules declare collections with :func:`define_procedures`.
:func:`scan` walks a directory of such modules and returns the collections it
accepted together with per-file warnings. :func:`compile_router` merges the
collections into one namespace and derives two tables from the same
definitions:

* a REST route table keyed by HTTP method and path, and
* an RPC call table keyed by ``namespace.name``.

A router with conflicting keys is rejected rather than silently overwritten.
The FastAPI transport adapters in :mod:`procroute.adapters` mount a
non-rejected router.
"""

from __future__ import annotations

from procroute.compiler import CompiledRouter, RestKey, RouteConflict, RouteEntry, RpcKey, compile_router
from procroute.config import ProcrouteConfig, load_config
from procroute.discovery import (
    DiscoveryError,
    DiscoveryErrorKind,
    DiscoveryOptions,
    DiscoveryResult,
    DiscoveryWarning,
    discover_from_config,
    discover_procedures,
    scan,
    scan_verbose,
    validate,
)
from procroute.errors import (
    ConfigError,
    ProcedureDefinitionError,
    ProcrouteError,
    RouterRejectedError,
    ScanCancelledError,
)
from procroute.naming import ParentResource
from procroute.procedure import (
    Procedure,
    ProcedureCollection,
    ProcedureKind,
    TransportMeta,
    define_procedures,
    procedure,
    procedures,
)
from procroute.report import format_discovery_report, format_router_report

__version__ = "0.4.0"

__all__ = [
    "CompiledRouter",
    "ConfigError",
    "DiscoveryError",
    "DiscoveryErrorKind",
    "DiscoveryOptions",
    "DiscoveryResult",
    "DiscoveryWarning",
    "ParentResource",
    "Procedure",
    "ProcedureCollection",
    "ProcedureDefinitionError",
    "ProcedureKind",
    "ProcrouteConfig",
    "ProcrouteError",
    "RestKey",
    "RouteConflict",
    "RouteEntry",
    "RouterRejectedError",
    "RpcKey",
    "ScanCancelledError",
    "TransportMeta",
    "compile_router",
    "define_procedures",
    "discover_from_config",
    "discover_procedures",
    "format_discovery_report",
    "format_router_report",
    "load_config",
    "procedure",
    "procedures",
    "scan",
    "scan_verbose",
    "validate",
]
