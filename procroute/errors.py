"""Unified error model for procroute."""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class ProcrouteError(Exception):
    """Base class for all errors surfaced to users of procroute."""

    code: Optional[str] = None
    hint: Optional[str] = None

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        if code is not None:
            self.code = code
        if hint is not None:
            self.hint = hint

    def format(self) -> str:
        components = [self.message]
        meta_parts = []
        if self.path:
            meta_parts.append(self.path)
        if self.code:
            meta_parts.append(self.code)
        if meta_parts:
            components[-1] = f"{components[-1]} ({'; '.join(meta_parts)})"
        if self.hint:
            components.append(f"Hint: {self.hint}")
        return " ".join(part for part in components if part)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "path": self.path,
            "hint": self.hint,
        }


class ProcedureDefinitionError(ProcrouteError):
    """Raised when a procedure or collection is declared incorrectly."""

    code = "E4101"


class ConfigError(ProcrouteError):
    """Raised when a procroute configuration file holds invalid values."""

    code = "E4201"


class ScanCancelledError(ProcrouteError):
    """Raised when a discovery scan is cancelled between file loads."""

    code = "E4007"


class RouterRejectedError(ProcrouteError):
    """Raised when a compiled router with conflicts is about to be mounted."""

    code = "E4301"

    def __init__(self, conflicts: Sequence[Any], *, hint: Optional[str] = None) -> None:
        self.conflicts = tuple(conflicts)
        lines = [f"Router rejected: {len(self.conflicts)} routing conflict(s)"]
        lines.extend(f"  - {conflict.describe()}" for conflict in self.conflicts)
        super().__init__(
            "\n".join(lines),
            hint=hint or "Rename the colliding procedures or give them distinct REST paths.",
        )


__all__ = [
    "ProcrouteError",
    "ProcedureDefinitionError",
    "ConfigError",
    "ScanCancelledError",
    "RouterRejectedError",
]
