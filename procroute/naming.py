"""REST naming conventions for procedures.

Procedure names map onto HTTP verbs and paths by prefix, following a
convention-over-configuration approach. Both camelCase (``getUser``) and
snake_case (``get_user``) spellings are recognised:

=================  ==========  ===========  =========
prefix             method      path         kind
=================  ==========  ===========  =========
get                GET         ``/{id}``    query
list, find         GET         ``/``        query
create, add        POST        ``/``        mutation
update, edit       PUT         ``/{id}``    mutation
patch              PATCH       ``/{id}``    mutation
delete, remove     DELETE      ``/{id}``    mutation
=================  ==========  ===========  =========

The module also carries the development-time naming analysis that warns
about procedures which will silently end up RPC-only.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from contextvars import ContextVar
import re
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

HTTP_METHODS: Tuple[str, ...] = ("GET", "POST", "PUT", "PATCH", "DELETE")

_PARAM_COLON = re.compile(r":([A-Za-z_][A-Za-z0-9_]*)")
_PARAM_BRACE = re.compile(r"\{([^{}/]+)\}")
_MULTI_SLASH = re.compile(r"/{2,}")


@dataclass(frozen=True)
class RestMapping:
    """HTTP method and relative path inferred from a procedure name."""

    method: str
    path: str
    has_id_param: bool


@dataclass(frozen=True)
class _NamingPattern:
    prefix: str
    method: str
    has_id_param: bool
    kind: str

    def match(self, name: str) -> Optional[str]:
        camel = re.match(rf"^{self.prefix}([A-Z][A-Za-z0-9]*)$", name)
        if camel:
            return camel.group(1)
        snake = re.match(rf"^{self.prefix}_([a-z][a-z0-9_]*)$", name)
        if snake:
            return snake.group(1)
        return None


NAMING_PATTERNS: Tuple[_NamingPattern, ...] = (
    _NamingPattern("get", "GET", True, "query"),
    _NamingPattern("list", "GET", False, "query"),
    _NamingPattern("find", "GET", False, "query"),
    _NamingPattern("create", "POST", False, "mutation"),
    _NamingPattern("add", "POST", False, "mutation"),
    _NamingPattern("update", "PUT", True, "mutation"),
    _NamingPattern("edit", "PUT", True, "mutation"),
    _NamingPattern("patch", "PATCH", True, "mutation"),
    _NamingPattern("delete", "DELETE", True, "mutation"),
    _NamingPattern("remove", "DELETE", True, "mutation"),
)


def parse_naming_convention(name: str, kind: str) -> Optional[RestMapping]:
    """Return the REST mapping implied by ``name``, or ``None`` when no convention applies.

    The procedure kind must agree with the prefix: ``getUser`` declared as a
    mutation does not match.
    """

    for pattern in NAMING_PATTERNS:
        if pattern.kind != kind:
            continue
        if pattern.match(name) is not None:
            return RestMapping(
                method=pattern.method,
                path="/{id}" if pattern.has_id_param else "/",
                has_id_param=pattern.has_id_param,
            )
    return None


def infer_resource_name(name: str) -> Optional[str]:
    for pattern in NAMING_PATTERNS:
        resource = pattern.match(name)
        if resource is not None:
            return resource
    return None


# ---------------------------------------------------------------------------
# Nested resources
# ---------------------------------------------------------------------------

_IRREGULAR_SINGULARS: Mapping[str, str] = {
    "children": "child",
    "data": "datum",
    "indices": "index",
    "media": "medium",
    "men": "man",
    "people": "person",
    "women": "woman",
}
_SIBILANT_PLURAL = re.compile(r"(ss|sh|ch|x|z)es$")


def singularize(word: str) -> str:
    """Best-effort English singular of a resource namespace (``categories`` -> ``category``)."""

    lowered = word.lower()
    if lowered in _IRREGULAR_SINGULARS:
        singular = _IRREGULAR_SINGULARS[lowered]
        return word[0] + singular[1:] if word[:1].isupper() else singular
    if lowered.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if _SIBILANT_PLURAL.search(lowered):
        return word[:-2]
    if lowered.endswith("s") and not lowered.endswith(("ss", "us", "is")):
        return word[:-1]
    return word


def derive_parent_param_name(resource: str) -> str:
    """``posts`` -> ``postId``; snake_case namespaces get ``_id`` (``blog_posts`` -> ``blog_post_id``)."""

    singular = singularize(resource.strip("/"))
    if "_" in singular:
        return f"{singular}_id"
    return f"{singular}Id"


@dataclass(frozen=True)
class ParentResource:
    """A parent segment ``/{namespace}/{param_name}`` placed before a nested resource."""

    namespace: str
    param_name: str

    @classmethod
    def of(cls, resource: str, param: Optional[str] = None) -> "ParentResource":
        if not isinstance(resource, str) or not resource.strip("/ "):
            raise ValueError(f"Parent resource must be a non-empty string, got {resource!r}")
        resource = resource.strip("/ ")
        if param is not None and (not isinstance(param, str) or not param.strip()):
            raise ValueError(f"Parent parameter name must be a non-empty string, got {param!r}")
        return cls(namespace=resource, param_name=param.strip() if param else derive_parent_param_name(resource))

    @property
    def segment(self) -> str:
        return f"/{self.namespace}/{{{self.param_name}}}"


def normalize_path(path: str) -> str:
    """Normalise a REST path pattern to ``/segment/{param}`` form."""

    value = (path or "").strip()
    value = _PARAM_COLON.sub(lambda match: "{" + match.group(1) + "}", value)
    if not value.startswith("/"):
        value = "/" + value
    value = _MULTI_SLASH.sub("/", value)
    if len(value) > 1:
        value = value.rstrip("/")
    return value


def join_paths(prefix: str, path: str) -> str:
    if not prefix or normalize_path(prefix) == "/":
        return normalize_path(path)
    return normalize_path(f"{normalize_path(prefix)}/{normalize_path(path)}")


def path_shape(path: str) -> str:
    """Return ``path`` with parameter names erased, used to detect colliding routes."""

    return _PARAM_BRACE.sub("{}", normalize_path(path))


def path_params(path: str) -> List[str]:
    return _PARAM_BRACE.findall(normalize_path(path))


def route_sort_key(path: str) -> Tuple[Tuple[int, str], ...]:
    """Order routes so that, segment by segment, literals are tried before parameters.

    ``/users/me`` sorts before ``/users/{id}``, so a first-match router
    dispatches the static route regardless of registration order.
    """

    segments = [segment for segment in normalize_path(path).split("/") if segment]
    return tuple((1, "") if _PARAM_BRACE.fullmatch(segment) else (0, segment) for segment in segments)


def build_rest_path(namespace: str, mapping: RestMapping, parents: Sequence[ParentResource] = ()) -> str:
    """Join parent segments, the namespace and the mapping path.

    ``build_rest_path("comments", item, [ParentResource("posts", "postId")])``
    gives ``/posts/{postId}/comments/{id}``.
    """

    prefix = "".join(parent.segment for parent in parents)
    base = normalize_path(f"{prefix}/{namespace}")
    if mapping.path == "/":
        return base
    return normalize_path(f"{base}{mapping.path}")


# ---------------------------------------------------------------------------
# Naming warnings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NamingWarning:
    """A naming convention problem with an actionable suggestion."""

    procedure_name: str
    namespace: str
    type: str
    message: str
    suggestion: str
    suggested_name: Optional[str] = None


@dataclass(frozen=True)
class WarningSettings:
    disabled: bool = False
    strict: bool = False
    except_names: FrozenSet[str] = field(default_factory=frozenset)


WarningOption = Union[bool, str, Mapping[str, Any], WarningSettings, None]

_DEFAULT_WARNINGS: ContextVar[WarningOption] = ContextVar("procroute_naming_warnings", default=True)


def default_warning_option() -> WarningOption:
    return _DEFAULT_WARNINGS.get()


@contextmanager
def naming_warnings(option: WarningOption) -> Iterator[None]:
    """Set the warnings option used by ``define_procedures`` calls that pass none."""

    token = _DEFAULT_WARNINGS.set(option)
    try:
        yield
    finally:
        _DEFAULT_WARNINGS.reset(token)


def normalize_warning_option(option: WarningOption) -> WarningSettings:
    """Expand the ``warnings=`` shorthand accepted by ``define_procedures``."""

    if option is None or option is True:
        return WarningSettings()
    if option is False:
        return WarningSettings(disabled=True)
    if isinstance(option, WarningSettings):
        return option
    if option == "strict":
        return WarningSettings(strict=True)
    if isinstance(option, Mapping):
        except_names = option.get("except") or ()
        return WarningSettings(
            disabled=bool(option.get("disabled", False)),
            strict=bool(option.get("strict", False)),
            except_names=frozenset(str(item) for item in except_names),
        )
    raise ValueError(f"Unsupported warnings option: {option!r}")


def is_development() -> bool:
    env = os.environ.get("PROCROUTE_ENV") or os.environ.get("PYTHON_ENV") or ""
    return env.lower() != "production"


def _other_kind(kind: str) -> str:
    return "mutation" if kind == "query" else "query"


def _case_fix(name: str) -> Optional[str]:
    lowered = name.lower()
    for pattern in NAMING_PATTERNS:
        if not lowered.startswith(pattern.prefix):
            continue
        rest = name[len(pattern.prefix):]
        if not rest or rest.startswith("_"):
            continue
        candidate = pattern.prefix + rest[0].upper() + rest[1:]
        if candidate != name and pattern.match(candidate) is not None:
            return candidate
    return None


def analyze_naming_convention(name: str, kind: str, namespace: str) -> Optional[NamingWarning]:
    """Explain why ``name`` will not be exposed over REST, if it will not."""

    if parse_naming_convention(name, kind) is not None:
        return None

    other = _other_kind(kind)
    if parse_naming_convention(name, other) is not None:
        return NamingWarning(
            procedure_name=name,
            namespace=namespace,
            type="type-mismatch",
            message=f"'{namespace}.{name}' is declared as a {kind} but its prefix implies a {other}.",
            suggestion=f"Declare it with .{other}() or rename it so the prefix matches a {kind}.",
        )

    suggested = _case_fix(name)
    if suggested is not None:
        return NamingWarning(
            procedure_name=name,
            namespace=namespace,
            type="case-mismatch",
            message=f"'{namespace}.{name}' almost follows a REST naming convention.",
            suggestion=f"Rename it to '{suggested}' to expose it over REST.",
            suggested_name=suggested,
        )

    return NamingWarning(
        procedure_name=name,
        namespace=namespace,
        type="no-convention",
        message=f"'{namespace}.{name}' does not follow a REST naming convention and will only be reachable over RPC.",
        suggestion="Rename it (getX, listX, createX, updateX, patchX, deleteX) or call .rest(method=..., path=...).",
    )


__all__ = [
    "HTTP_METHODS",
    "NAMING_PATTERNS",
    "NamingWarning",
    "ParentResource",
    "RestMapping",
    "WarningOption",
    "WarningSettings",
    "analyze_naming_convention",
    "build_rest_path",
    "default_warning_option",
    "derive_parent_param_name",
    "infer_resource_name",
    "is_development",
    "join_paths",
    "naming_warnings",
    "normalize_path",
    "normalize_warning_option",
    "parse_naming_convention",
    "path_params",
    "path_shape",
    "route_sort_key",
    "singularize",
]
