"""Human-readable summaries of discovery results and compiled routers."""

from __future__ import annotations

from typing import List

from procroute.compiler import CompiledRouter
from procroute.discovery.types import DiscoveryResult


def format_discovery_report(result: DiscoveryResult) -> str:
    lines: List[str] = [
        f"Scanned {len(result.scanned_files)} file(s), "
        f"loaded {len(result.loaded_files)}, "
        f"found {len(result.collections)} collection(s)"
    ]
    for collection in result.collections:
        lines.append(f"  {collection.label}")
        for proc in collection.procedures:
            transport = f"{proc.transport.method} {proc.transport.path}" if proc.transport else "rpc only"
            lines.append(f"    - {proc.name} [{proc.kind.value}] {transport}")
    if result.warnings:
        lines.append(f"Warnings ({len(result.warnings)}):")
        for warning in result.warnings:
            lines.append(f"  [{warning.severity}] {warning.code} {warning.message}")
    return "\n".join(lines)


def format_router_report(router: CompiledRouter) -> str:
    status = "REJECTED" if router.rejected else "ok"
    lines: List[str] = [
        f"Router {status}: {len(router.rest_table)} REST route(s), {len(router.rpc_table)} RPC procedure(s)"
    ]
    if router.rest_table:
        lines.append("REST:")
        width = max(len(key.method) for key in router.rest_table)
        for key, entry in router.rest_routes():
            lines.append(f"  {key.method.ljust(width)} {key.path} -> {entry.qualified_name}")
    if router.rpc_table:
        lines.append("RPC:")
        for key, entry in router.rpc_table.items():
            lines.append(f"  {key} [{entry.procedure.kind.value}]")
    if router.rejected:
        lines.append(f"Conflicts ({len(router.conflicts)}):")
        lines.extend(f"  - {description}" for description in router.describe_conflicts())
    return "\n".join(lines)


__all__ = ["format_discovery_report", "format_router_report"]
