"""Options and result types for procedure discovery."""

from __future__ import annotations

import fnmatch
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Tuple

from procroute.discovery.errors import DiscoveryError, DiscoveryErrorKind
from procroute.procedure import ProcedureCollection

INVALID_EXPORT_POLICIES = ("warn", "error", "ignore")

DEFAULT_EXTENSIONS: Tuple[str, ...] = (".py",)

DEFAULT_EXCLUDE_PATTERNS: Tuple[str, ...] = (
    "test_*.py",
    "*_test.py",
    "conftest.py",
    "__init__.py",
    "__main__.py",
    "*.pyi",
)

DEFAULT_EXCLUDED_DIRS: Tuple[str, ...] = (
    "__pycache__",
    "tests",
    "__tests__",
    ".git",
    ".venv",
    "venv",
    "node_modules",
)

FileFilter = Callable[[Path], bool]


@dataclass(frozen=True)
class DiscoveryOptions:
    """Configuration for a discovery scan."""

    recursive: bool = True
    on_invalid_export: str = "warn"
    file_filter: Optional[FileFilter] = None
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    exclude: Tuple[str, ...] = DEFAULT_EXCLUDE_PATTERNS
    excluded_dirs: Tuple[str, ...] = DEFAULT_EXCLUDED_DIRS
    files: Tuple[str, ...] = ()
    max_workers: int = 1
    cancel_event: Optional[threading.Event] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.on_invalid_export not in INVALID_EXPORT_POLICIES:
            raise ValueError(
                f"on_invalid_export must be one of {INVALID_EXPORT_POLICIES}, got {self.on_invalid_export!r}"
            )
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    def accepts(self, path: Path) -> bool:
        """Return True when ``path`` is a candidate procedure file."""

        if self.file_filter is not None:
            return bool(self.file_filter(path))
        if path.suffix not in self.extensions:
            return False
        return not any(fnmatch.fnmatchcase(path.name, pattern) for pattern in self.exclude)

    def skips_directory(self, name: str) -> bool:
        return name in self.excluded_dirs


@dataclass(frozen=True)
class DiscoveryWarning:
    """A per-file problem recorded without aborting the scan."""

    kind: DiscoveryErrorKind
    path: str
    message: str
    export_name: Optional[str] = None
    severity: str = "warning"

    @property
    def code(self) -> str:
        return self.kind.code

    @classmethod
    def from_error(cls, error: DiscoveryError, *, severity: str = "warning") -> "DiscoveryWarning":
        return cls(
            kind=error.kind,
            path=error.path or "",
            message=error.message,
            export_name=error.details.get("export_name"),
            severity=severity,
        )


@dataclass(frozen=True)
class DiscoveryResult:
    """Outcome of one scan; read-only once returned."""

    collections: Tuple[ProcedureCollection, ...] = ()
    scanned_files: Tuple[str, ...] = ()
    loaded_files: Tuple[str, ...] = ()
    warnings: Tuple[DiscoveryWarning, ...] = ()

    @property
    def has_errors(self) -> bool:
        return any(warning.severity == "error" for warning in self.warnings)

    def warnings_of(self, kind: DiscoveryErrorKind) -> Tuple[DiscoveryWarning, ...]:
        return tuple(warning for warning in self.warnings if warning.kind == kind)


__all__ = [
    "DEFAULT_EXCLUDED_DIRS",
    "DEFAULT_EXCLUDE_PATTERNS",
    "DEFAULT_EXTENSIONS",
    "DiscoveryOptions",
    "DiscoveryResult",
    "DiscoveryWarning",
    "FileFilter",
    "INVALID_EXPORT_POLICIES",
]
