"""Project configuration for procedure discovery and transport mounting."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from procroute.discovery.types import (
    DEFAULT_EXCLUDE_PATTERNS,
    DEFAULT_EXTENSIONS,
    INVALID_EXPORT_POLICIES,
    DiscoveryOptions,
)
from procroute.errors import ConfigError

CONFIG_FILENAME = "procroute.toml"
ENV_PREFIX = "PROCROUTE_"


@dataclass(frozen=True)
class ProcrouteConfig:
    """Resolved configuration for one application."""

    root: Path
    procedures_dir: Path = Path("procedures")
    recursive: bool = True
    on_invalid_export: str = "warn"
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude: Tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    max_workers: int = 1
    rest_prefix: str = "/api"
    rpc_prefix: str = "/trpc"
    naming_warnings: Union[bool, str] = True
    source: Optional[Path] = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False)

    @property
    def procedures_path(self) -> Path:
        if self.procedures_dir.is_absolute():
            return self.procedures_dir
        return (self.root / self.procedures_dir).resolve()

    def discovery_options(self, **overrides: Any) -> DiscoveryOptions:
        options = DiscoveryOptions(
            recursive=self.recursive,
            on_invalid_export=self.on_invalid_export,
            extensions=self.extensions,
            exclude=self.exclude,
            max_workers=self.max_workers,
        )
        return replace(options, **overrides) if overrides else options


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML: {exc}", path=str(path)) from exc


def locate_config_file(root: Path, explicit: Optional[Path] = None) -> Optional[Path]:
    if explicit is not None:
        return explicit if explicit.exists() else None
    for candidate in (CONFIG_FILENAME, "pyproject.toml"):
        path = root / candidate
        if path.exists():
            return path
    return None


def _section(data: Dict[str, Any], path: Path) -> Dict[str, Any]:
    if path.name == "pyproject.toml":
        section = (data.get("tool") or {}).get("procroute") or {}
    else:
        section = data.get("procroute", data)
    if not isinstance(section, dict):
        raise ConfigError("The procroute configuration must be a table", path=str(path))
    return section


def _as_tuple(value: Any, name: str, path: Optional[Path]) -> Tuple[str, ...]:
    if isinstance(value, str):
        return tuple(item.strip() for item in value.split(",") if item.strip())
    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value)
    raise ConfigError(f"'{name}' must be a list of strings", path=str(path) if path else None)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _parse(section: Mapping[str, Any], root: Path, source: Optional[Path]) -> ProcrouteConfig:  # noqa: C901 - flat field parsing
    where = str(source) if source else None
    values: Dict[str, Any] = {}

    if "procedures_dir" in section:
        values["procedures_dir"] = Path(str(section["procedures_dir"]))
    if "recursive" in section:
        values["recursive"] = _as_bool(section["recursive"])
    if "on_invalid_export" in section:
        policy = str(section["on_invalid_export"])
        if policy not in INVALID_EXPORT_POLICIES:
            raise ConfigError(
                f"on_invalid_export must be one of {', '.join(INVALID_EXPORT_POLICIES)}, got '{policy}'",
                path=where,
            )
        values["on_invalid_export"] = policy
    if "extensions" in section:
        values["extensions"] = _as_tuple(section["extensions"], "extensions", source)
    if "exclude" in section:
        values["exclude"] = _as_tuple(section["exclude"], "exclude", source)
    if "max_workers" in section:
        try:
            workers = int(section["max_workers"])
        except (TypeError, ValueError) as exc:
            raise ConfigError("max_workers must be an integer", path=where) from exc
        if workers < 1:
            raise ConfigError("max_workers must be at least 1", path=where)
        values["max_workers"] = workers
    if "rest_prefix" in section:
        values["rest_prefix"] = str(section["rest_prefix"])
    if "rpc_prefix" in section:
        values["rpc_prefix"] = str(section["rpc_prefix"])
    if "naming_warnings" in section:
        raw_warnings = section["naming_warnings"]
        if isinstance(raw_warnings, str) and raw_warnings.strip().lower() == "strict":
            values["naming_warnings"] = "strict"
        else:
            values["naming_warnings"] = _as_bool(raw_warnings)

    return ProcrouteConfig(root=root, source=source, raw=dict(section), **values)


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    keys = (
        "procedures_dir",
        "recursive",
        "on_invalid_export",
        "extensions",
        "exclude",
        "max_workers",
        "rest_prefix",
        "rpc_prefix",
        "naming_warnings",
    )
    overrides: Dict[str, Any] = {}
    for key in keys:
        value = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if value is not None:
            overrides[key] = value
    return overrides


def load_config(
    root: Union[str, Path],
    explicit: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> ProcrouteConfig:
    """Load configuration for the project rooted at ``root``.

    File values come from ``procroute.toml`` (a ``[procroute]`` table or
    top-level keys) or ``[tool.procroute]`` in ``pyproject.toml``;
    ``PROCROUTE_*`` environment variables override them.
    """

    root = Path(root).resolve()
    config_path = locate_config_file(root, explicit)
    section: Dict[str, Any] = {}
    if config_path is not None:
        section = _section(_read_toml(config_path), config_path)

    merged = dict(section)
    merged.update(_env_overrides(os.environ if environ is None else environ))
    return _parse(merged, root, config_path)


__all__ = ["CONFIG_FILENAME", "ProcrouteConfig", "load_config", "locate_config_file"]
