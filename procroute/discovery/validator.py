"""Classification of exported module values into procedure collections."""

from __future__ import annotations

import inspect
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Optional, Set

from procroute.discovery.errors import DiscoveryErrorKind
from procroute.procedure import COLLECTION_TAG, Procedure, ProcedureCollection, ProcedureKind

_MISSING = object()


@dataclass(frozen=True)
class Validation:
    """Result of validating one exported value.

    Exactly one of three states: accepted (``collection`` set), rejected
    (``error`` set) or skipped (neither; the value is not a collection at all).
    """

    collection: Optional[ProcedureCollection] = None
    error: Optional[DiscoveryErrorKind] = None
    reason: Optional[str] = None

    @classmethod
    def accepted(cls, collection: ProcedureCollection) -> "Validation":
        return cls(collection=collection)

    @classmethod
    def rejected(cls, reason: str) -> "Validation":
        return cls(error=DiscoveryErrorKind.INVALID_EXPORT, reason=reason)

    @classmethod
    def skipped(cls) -> "Validation":
        return cls()

    @property
    def ok(self) -> bool:
        return self.collection is not None

    @property
    def is_candidate(self) -> bool:
        return self.collection is not None or self.error is not None


def _has_static(value: Any, name: str) -> bool:
    # getattr_static never runs the export's own attribute hooks.
    return inspect.getattr_static(value, name, _MISSING) is not _MISSING


def is_procedure_collection(value: Any) -> bool:
    """Discriminant check: the value carries the collection tag."""

    return inspect.getattr_static(type(value), "__procroute_kind__", None) == COLLECTION_TAG


def looks_like_collection(value: Any) -> bool:
    """Untagged values shaped like a collection, reported as near-misses."""

    if isinstance(value, type) or callable(value):
        return False
    if isinstance(value, Mapping):
        return "namespace" in value and "procedures" in value
    return _has_static(value, "namespace") and _has_static(value, "procedures")


def _procedure_problem(proc: Any, namespace: str) -> Optional[str]:
    if not isinstance(proc, Procedure):
        return f"entry of type {type(proc).__name__} is not a procedure"
    if not callable(proc.handler):
        return f"procedure '{proc.name or '?'}' has a handler that is not callable"
    if proc.kind not in (ProcedureKind.QUERY, ProcedureKind.MUTATION):
        return f"procedure '{proc.name or '?'}' has unknown kind {proc.kind!r}"
    if not proc.name:
        return "procedure is not bound to a name"
    if proc.namespace != namespace:
        return f"procedure '{proc.name}' belongs to namespace '{proc.namespace}', not '{namespace}'"
    return None


def validate(value: Any) -> Validation:
    """Classify an exported value; pure, no side effects."""

    if not is_procedure_collection(value):
        if looks_like_collection(value):
            return Validation.rejected(
                "object has namespace and procedures but is not a tagged procedure collection"
            )
        return Validation.skipped()

    namespace = value.namespace
    if not isinstance(namespace, str) or not namespace:
        return Validation.rejected("collection namespace must be a non-empty string")

    procs = value.procedures
    if isinstance(procs, (str, bytes)) or not isinstance(procs, Sequence):
        return Validation.rejected("collection procedures must be a sequence of procedures")
    if not procs:
        return Validation.rejected(f"collection '{namespace}' has no procedures")

    seen: Set[str] = set()
    for proc in procs:
        problem = _procedure_problem(proc, namespace)
        if problem is not None:
            return Validation.rejected(problem)
        if proc.name in seen:
            return Validation.rejected(
                f"duplicate procedure name '{proc.name}' in collection '{namespace}'"
            )
        seen.add(proc.name)

    return Validation.accepted(value)


__all__ = [
    "Validation",
    "is_procedure_collection",
    "looks_like_collection",
    "validate",
]
