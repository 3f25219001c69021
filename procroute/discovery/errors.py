"""Discovery error kinds and the factories that build them."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence

from procroute.errors import ProcrouteError


class DiscoveryErrorKind(str, Enum):
    DIRECTORY_NOT_FOUND = "directoryNotFound"
    NO_PROCEDURES_FOUND = "noProceduresFound"
    INVALID_EXPORT = "invalidExport"
    FILE_LOAD_ERROR = "fileLoadError"
    PERMISSION_DENIED = "permissionDenied"
    INVALID_FILE_TYPE = "invalidFileType"

    @property
    def code(self) -> str:
        return _CODES[self]


_CODES: Dict[DiscoveryErrorKind, str] = {
    DiscoveryErrorKind.DIRECTORY_NOT_FOUND: "E4001",
    DiscoveryErrorKind.NO_PROCEDURES_FOUND: "E4002",
    DiscoveryErrorKind.INVALID_EXPORT: "E4003",
    DiscoveryErrorKind.FILE_LOAD_ERROR: "E4004",
    DiscoveryErrorKind.PERMISSION_DENIED: "E4005",
    DiscoveryErrorKind.INVALID_FILE_TYPE: "E4006",
}


class DiscoveryError(ProcrouteError):
    """Raised when discovery cannot continue, or under the strict export policy."""

    def __init__(
        self,
        kind: DiscoveryErrorKind,
        message: str,
        *,
        path: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message, path=path, code=kind.code, hint=hint)
        self.kind = kind
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["kind"] = self.kind.value
        payload["details"] = dict(self.details)
        return payload


def directory_not_found(path: str) -> DiscoveryError:
    return DiscoveryError(
        DiscoveryErrorKind.DIRECTORY_NOT_FOUND,
        f"Procedures directory not found: {path}",
        path=path,
        hint="Check that the path exists and points to a directory of procedure modules.",
    )


def permission_denied(path: str) -> DiscoveryError:
    return DiscoveryError(
        DiscoveryErrorKind.PERMISSION_DENIED,
        f"Permission denied while reading {path}",
        path=path,
        hint="Make sure the current user can read and list the directory.",
    )


def no_procedures_found(path: str, scanned_count: int) -> DiscoveryError:
    if scanned_count == 0:
        hint = "Add a module that exports define_procedures(...) to this directory."
    else:
        hint = "Export a collection built with define_procedures(...) from at least one module."
    return DiscoveryError(
        DiscoveryErrorKind.NO_PROCEDURES_FOUND,
        f"No procedure collections found in {path}",
        path=path,
        hint=hint,
        details={"scanned_files": scanned_count},
    )


def invalid_export(path: str, export_name: str, reason: str) -> DiscoveryError:
    return DiscoveryError(
        DiscoveryErrorKind.INVALID_EXPORT,
        f"Invalid export '{export_name}' in {path}: {reason}",
        path=path,
        hint="Build collections with define_procedures(namespace, {...}).",
        details={"export_name": export_name, "reason": reason},
    )


def file_load_error(path: str, cause: BaseException) -> DiscoveryError:
    error = DiscoveryError(
        DiscoveryErrorKind.FILE_LOAD_ERROR,
        f"Failed to load {path}: {cause}",
        path=path,
        hint="Fix the import or runtime error in the module; other files were still scanned.",
        details={"cause": type(cause).__name__},
    )
    error.__cause__ = cause
    return error


def invalid_file_type(path: str, extension: str, valid_extensions: Sequence[str]) -> DiscoveryError:
    return DiscoveryError(
        DiscoveryErrorKind.INVALID_FILE_TYPE,
        f"Unsupported procedure file type '{extension or '(none)'}': {path}",
        path=path,
        hint=f"Procedure modules must use one of: {', '.join(valid_extensions)}",
        details={"extension": extension},
    )


__all__ = [
    "DiscoveryError",
    "DiscoveryErrorKind",
    "directory_not_found",
    "file_load_error",
    "invalid_export",
    "invalid_file_type",
    "no_procedures_found",
    "permission_denied",
]
