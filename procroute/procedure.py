"""Procedure definitions, the fluent builder and procedure collections.

A procedure is declared once and projected onto two transports by the
router compiler::

    from procroute import define_procedures, procedure

    users = define_procedures("users", {
        "getUser": procedure().input(GetUser).output(User).query(get_user),
        "listUsers": procedure().output(list[User]).query(list_users),
        "syncDirectory": procedure().mutation(sync_directory),
    })

``getUser`` and ``listUsers`` follow the REST naming convention and are
exposed at ``GET /users/{id}`` and ``GET /users``; ``syncDirectory`` does not
and is reachable over RPC only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

from procroute.errors import ProcedureDefinitionError
from procroute.naming import (
    HTTP_METHODS,
    ParentResource,
    WarningOption,
    analyze_naming_convention,
    build_rest_path,
    default_warning_option,
    is_development,
    normalize_path,
    normalize_warning_option,
    parse_naming_convention,
)

logger = logging.getLogger(__name__)

COLLECTION_TAG = "collection"


class ProcedureKind(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"


@dataclass(frozen=True)
class TransportMeta:
    """Resolved REST exposure of a procedure."""

    method: str
    path: str


@dataclass(frozen=True)
class RestOverride:
    """REST method and/or path requested explicitly through ``.rest()``."""

    method: Optional[str] = None
    path: Optional[str] = None
    disabled: bool = False

    @property
    def complete(self) -> bool:
        return bool(self.method and self.path)


@dataclass(frozen=True)
class Procedure:
    """A single named operation with its schemas, handler and transport metadata.

    ``namespace`` and ``name`` stay empty until the procedure is bound by
    :func:`define_procedures`; the core never calls ``handler``.
    """

    handler: Callable[..., Any]
    kind: ProcedureKind = ProcedureKind.QUERY
    input_schema: Any = None
    output_schema: Any = None
    namespace: str = ""
    name: str = ""
    transport: Optional[TransportMeta] = None
    rest_override: Optional[RestOverride] = None
    description: Optional[str] = None
    parents: Tuple[ParentResource, ...] = ()

    @property
    def bound(self) -> bool:
        return bool(self.namespace and self.name)

    @property
    def qualified_name(self) -> str:
        return f"{self.namespace}.{self.name}"

    @property
    def rpc_only(self) -> bool:
        return self.transport is None


@dataclass(frozen=True)
class ProcedureBuilder:
    """Immutable fluent builder; every method returns a new builder."""

    input_schema: Any = None
    output_schema: Any = None
    rest_override: Optional[RestOverride] = None
    description: Optional[str] = None
    parent_resources: Tuple[ParentResource, ...] = ()

    def input(self, schema: Any) -> "ProcedureBuilder":
        return replace(self, input_schema=schema)

    def output(self, schema: Any) -> "ProcedureBuilder":
        return replace(self, output_schema=schema)

    def describe(self, text: str) -> "ProcedureBuilder":
        return replace(self, description=text)

    def rest(self, method: Optional[str] = None, path: Optional[str] = None) -> "ProcedureBuilder":
        if method is not None:
            method = method.upper()
            if method not in HTTP_METHODS:
                raise ProcedureDefinitionError(
                    f"Unsupported HTTP method '{method}'",
                    hint=f"Use one of: {', '.join(HTTP_METHODS)}",
                )
        if path is not None:
            path = normalize_path(path)
        return replace(self, rest_override=RestOverride(method=method, path=path))

    def rpc_only(self) -> "ProcedureBuilder":
        return replace(self, rest_override=RestOverride(disabled=True))

    def parent(self, resource: str, param: Optional[str] = None) -> "ProcedureBuilder":
        """Nest the REST route under ``/{resource}/{param}``.

        ``param`` defaults to the singular of ``resource`` plus ``Id``
        (``posts`` -> ``postId``).
        """

        return replace(self, parent_resources=(_parent_resource(resource, param),))

    def parents(self, resources: Iterable[ParentEntry]) -> "ProcedureBuilder":
        """Nest the REST route under several parents, outermost first.

        Entries are a resource name, a ``(resource, param)`` pair or a mapping
        with ``resource`` and optional ``param`` keys.
        """

        chain = []
        for item in resources:
            if isinstance(item, str):
                chain.append(_parent_resource(item, None))
            elif isinstance(item, Mapping):
                chain.append(_parent_resource(item.get("resource"), item.get("param")))
            elif isinstance(item, tuple) and len(item) == 2:
                chain.append(_parent_resource(item[0], item[1]))
            else:
                raise ProcedureDefinitionError(
                    f"Unsupported parent resource entry {item!r}",
                    hint="Use 'posts', ('posts', 'postId') or {'resource': 'posts', 'param': 'postId'}.",
                )
        if not chain:
            raise ProcedureDefinitionError("parents() needs at least one parent resource")
        return replace(self, parent_resources=tuple(chain))

    def query(self, handler: Callable[..., Any]) -> Procedure:
        return self._build(handler, ProcedureKind.QUERY)

    def mutation(self, handler: Callable[..., Any]) -> Procedure:
        return self._build(handler, ProcedureKind.MUTATION)

    def _build(self, handler: Callable[..., Any], kind: ProcedureKind) -> Procedure:
        if not callable(handler):
            raise ProcedureDefinitionError(
                f"Procedure handler must be callable, got {type(handler).__name__}"
            )
        return Procedure(
            handler=handler,
            kind=kind,
            input_schema=self.input_schema,
            output_schema=self.output_schema,
            rest_override=self.rest_override,
            description=self.description,
            parents=self.parent_resources,
        )


ParentEntry = Union[str, Tuple[str, Optional[str]], Mapping[str, Optional[str]]]


def _parent_resource(resource: Any, param: Any) -> ParentResource:
    try:
        return ParentResource.of(resource, param)
    except ValueError as exc:
        raise ProcedureDefinitionError(str(exc), hint="Pass the parent namespace, e.g. .parent('posts').") from exc


def procedure() -> ProcedureBuilder:
    """Start declaring a procedure."""

    return ProcedureBuilder()


@dataclass(frozen=True)
class ProcedureCollection:
    """A named group of procedures, usually exported from one module."""

    __procroute_kind__ = COLLECTION_TAG

    namespace: str
    procedures: Tuple[Procedure, ...] = field(default_factory=tuple)
    source: Optional[str] = None

    def __iter__(self) -> Iterator[Procedure]:
        return iter(self.procedures)

    def __len__(self) -> int:
        return len(self.procedures)

    def names(self) -> Tuple[str, ...]:
        return tuple(proc.name for proc in self.procedures)

    def get(self, name: str) -> Optional[Procedure]:
        for proc in self.procedures:
            if proc.name == name:
                return proc
        return None

    def with_source(self, source: str) -> "ProcedureCollection":
        return replace(self, source=source)

    @property
    def label(self) -> str:
        if self.source:
            return f"{self.namespace} ({self.source})"
        return self.namespace


def resolve_transport(
    namespace: str,
    name: str,
    kind: ProcedureKind,
    override: Optional[RestOverride],
    parents: Tuple[ParentResource, ...] = (),
) -> Optional[TransportMeta]:
    """Combine an explicit REST override with the naming convention.

    A full override path is used verbatim; parent resources only shape paths
    derived from the convention.
    """

    if override is not None and override.disabled:
        return None
    if override is not None and override.complete:
        return TransportMeta(method=override.method, path=override.path)

    mapping = parse_naming_convention(name, kind.value)
    if override is None or (override.method is None and override.path is None):
        if mapping is None:
            return None
        return TransportMeta(method=mapping.method, path=build_rest_path(namespace, mapping, parents))

    # Partial override: fill the missing half from the convention.
    if mapping is None:
        raise ProcedureDefinitionError(
            f"Procedure '{namespace}.{name}' sets only part of its REST route and no naming convention applies",
            hint="Pass both method and path to .rest(), or rename the procedure.",
        )
    method = override.method or mapping.method
    path = override.path or build_rest_path(namespace, mapping, parents)
    return TransportMeta(method=method, path=path)


def _coerce(name: str, value: Any, namespace: str) -> Procedure:
    if isinstance(value, Procedure):
        try:
            kind = ProcedureKind(value.kind)
        except ValueError as exc:
            raise ProcedureDefinitionError(
                f"Procedure '{namespace}.{name}' has unknown kind {value.kind!r}",
                hint="Use 'query' or 'mutation'.",
            ) from exc
        return replace(value, kind=kind)
    if isinstance(value, ProcedureBuilder):
        raise ProcedureDefinitionError(
            f"Procedure '{namespace}.{name}' was never finished",
            hint="End the builder chain with .query(handler) or .mutation(handler).",
        )
    if callable(value):
        return Procedure(handler=value)
    raise ProcedureDefinitionError(
        f"Value for '{namespace}.{name}' is not a procedure ({type(value).__name__})",
        hint="Declare it with procedure().query(handler) or procedure().mutation(handler).",
    )


def _report_naming(procs: Tuple[Procedure, ...], option: WarningOption) -> None:
    settings = normalize_warning_option(default_warning_option() if option is None else option)
    if settings.disabled or not is_development():
        return
    for proc in procs:
        if proc.name in settings.except_names:
            continue
        if proc.rest_override is not None and (proc.rest_override.complete or proc.rest_override.disabled):
            continue
        warning = analyze_naming_convention(proc.name, proc.kind.value, proc.namespace)
        if warning is None:
            continue
        if settings.strict:
            raise ProcedureDefinitionError(warning.message, hint=warning.suggestion)
        logger.warning(
            "%s %s",
            warning.message,
            warning.suggestion,
            extra={
                "procroute_event": "naming_warning",
                "procroute_data": {"procedure": proc.qualified_name, "type": warning.type},
            },
        )


def define_procedures(
    namespace: str,
    procedures: Mapping[str, Any],
    *,
    warnings: WarningOption = None,
) -> ProcedureCollection:
    """Bind ``procedures`` to ``namespace`` and return a tagged collection.

    ``warnings`` controls the naming-convention analysis; when omitted the
    option set by :func:`~procroute.naming.naming_warnings` applies, which
    defaults to logging.
    """

    if not isinstance(namespace, str) or not namespace.strip():
        raise ProcedureDefinitionError(
            f"Collection namespace must be a non-empty string, got {namespace!r}"
        )
    if not isinstance(procedures, Mapping):
        raise ProcedureDefinitionError(
            f"Procedures for '{namespace}' must be a mapping of name to procedure",
            hint="Pass a dict such as {'getUser': procedure().query(handler)}.",
        )

    namespace = namespace.strip()
    bound: Dict[str, Procedure] = {}
    for name, value in procedures.items():
        if not isinstance(name, str) or not name:
            raise ProcedureDefinitionError(f"Procedure names in '{namespace}' must be non-empty strings")
        proc = _coerce(name, value, namespace)
        transport = resolve_transport(namespace, name, proc.kind, proc.rest_override, proc.parents)
        bound[name] = replace(proc, namespace=namespace, name=name, transport=transport)

    collection = ProcedureCollection(namespace=namespace, procedures=tuple(bound.values()))
    _report_naming(collection.procedures, warnings)
    return collection


procedures = define_procedures


__all__ = [
    "COLLECTION_TAG",
    "Procedure",
    "ProcedureBuilder",
    "ProcedureCollection",
    "ProcedureKind",
    "RestOverride",
    "TransportMeta",
    "define_procedures",
    "procedure",
    "procedures",
    "resolve_transport",
]
