"""Compilation of procedure collections into REST and RPC dispatch tables.

Both tables reference the same :class:`~procroute.procedure.Procedure`
objects, so the two transports can never disagree about schemas or
handlers. Collisions are never resolved by overwriting: the first
definition stays in the table, every collision is recorded, and a router
with collisions is *rejected* and must not be mounted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from procroute.errors import RouterRejectedError
from procroute.naming import join_paths, path_shape, route_sort_key
from procroute.observability.logging import log_route_conflict
from procroute.procedure import Procedure, ProcedureCollection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RpcKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}.{self.name}"


@dataclass(frozen=True)
class RestKey:
    method: str
    path: str

    @property
    def shape(self) -> Tuple[str, str]:
        return self.method, path_shape(self.path)

    def __str__(self) -> str:
        return f"{self.method} {self.path}"


@dataclass(frozen=True)
class RouteEntry:
    """A table slot: the procedure and the collection it came from."""

    procedure: Procedure
    source: str

    @property
    def qualified_name(self) -> str:
        return self.procedure.qualified_name

    def describe(self) -> str:
        return f"{self.qualified_name} from {self.source}"


@dataclass(frozen=True)
class RouteConflict:
    """Two definitions competing for the same RPC key and/or REST route."""

    first: RouteEntry
    second: RouteEntry
    rpc_key: Optional[RpcKey] = None
    rest_key: Optional[RestKey] = None

    @property
    def keys(self) -> Tuple[str, ...]:
        keys = []
        if self.rpc_key is not None:
            keys.append(f"RPC {self.rpc_key}")
        if self.rest_key is not None:
            keys.append(f"REST {self.rest_key}")
        return tuple(keys)

    def describe(self) -> str:
        return f"{' and '.join(self.keys)}: {self.first.describe()} conflicts with {self.second.describe()}"


@dataclass(frozen=True)
class CompiledRouter:
    """Immutable result of :func:`compile_router`."""

    rest_table: Mapping[RestKey, RouteEntry]
    rpc_table: Mapping[RpcKey, RouteEntry]
    conflicts: Tuple[RouteConflict, ...] = ()
    prefix: str = ""

    @property
    def rejected(self) -> bool:
        return bool(self.conflicts)

    def ensure_mountable(self) -> "CompiledRouter":
        if self.rejected:
            raise RouterRejectedError(self.conflicts)
        return self

    def describe_conflicts(self) -> List[str]:
        return [conflict.describe() for conflict in self.conflicts]

    def rest_routes(self) -> List[Tuple[RestKey, RouteEntry]]:
        """REST entries in dispatch order: static segments before parameters, then method."""

        return sorted(self.rest_table.items(), key=lambda item: (route_sort_key(item[0].path), item[0].method))

    def lookup_rpc(self, dotted: str) -> Optional[RouteEntry]:
        namespace, _, name = dotted.rpartition(".")
        return self.rpc_table.get(RpcKey(namespace, name))

    def lookup_rest(self, method: str, path: str) -> Optional[RouteEntry]:
        return self.rest_table.get(RestKey(method.upper(), join_paths(self.prefix, path)))


class _ConflictLog:
    """Keeps one conflict per colliding pair of definitions, in discovery order."""

    def __init__(self) -> None:
        self._items: Dict[Tuple[int, int], RouteConflict] = {}

    def add(
        self,
        first: RouteEntry,
        second: RouteEntry,
        *,
        rpc_key: Optional[RpcKey] = None,
        rest_key: Optional[RestKey] = None,
    ) -> None:
        pair = (id(first.procedure), id(second.procedure))
        existing = self._items.get(pair)
        if existing is None:
            self._items[pair] = RouteConflict(first=first, second=second, rpc_key=rpc_key, rest_key=rest_key)
        else:
            self._items[pair] = replace(
                existing,
                rpc_key=existing.rpc_key or rpc_key,
                rest_key=existing.rest_key or rest_key,
            )
        table = "rpc" if rpc_key is not None else "rest"
        log_route_conflict(
            table=table,
            key=str(rpc_key or rest_key),
            first=first.describe(),
            second=second.describe(),
        )

    def freeze(self) -> Tuple[RouteConflict, ...]:
        return tuple(self._items.values())


def compile_router(collections: Iterable[ProcedureCollection], *, prefix: str = "") -> CompiledRouter:
    """Merge ``collections`` into one namespace and derive both dispatch tables.

    Never raises for conflicts; inspect ``CompiledRouter.rejected``.
    """

    rpc_table: Dict[RpcKey, RouteEntry] = {}
    rest_table: Dict[RestKey, RouteEntry] = {}
    rest_shapes: Dict[Tuple[str, str], RestKey] = {}
    conflicts = _ConflictLog()

    for collection in collections:
        if not isinstance(collection, ProcedureCollection):
            raise TypeError(f"compile_router expects ProcedureCollection values, got {type(collection).__name__}")
        for proc in collection.procedures:
            entry = RouteEntry(procedure=proc, source=collection.label)

            rpc_key = RpcKey(collection.namespace, proc.name)
            existing = rpc_table.get(rpc_key)
            if existing is None:
                rpc_table[rpc_key] = entry
            else:
                conflicts.add(existing, entry, rpc_key=rpc_key)

            if proc.transport is None:
                continue
            rest_key = RestKey(proc.transport.method, join_paths(prefix, proc.transport.path))
            taken = rest_shapes.get(rest_key.shape)
            if taken is None:
                rest_shapes[rest_key.shape] = rest_key
                rest_table[rest_key] = entry
            else:
                conflicts.add(rest_table[taken], entry, rest_key=rest_key)

    router = CompiledRouter(
        rest_table=MappingProxyType(rest_table),
        rpc_table=MappingProxyType(rpc_table),
        conflicts=conflicts.freeze(),
        prefix=prefix,
    )
    if router.rejected:
        logger.error("Router rejected with %d conflict(s)", len(router.conflicts))
    else:
        logger.debug(
            "Compiled router: %d REST route(s), %d RPC procedure(s)",
            len(rest_table),
            len(rpc_table),
        )
    return router


compile = compile_router


__all__ = [
    "CompiledRouter",
    "RestKey",
    "RouteConflict",
    "RouteEntry",
    "RpcKey",
    "compile_router",
]
