"""Centralised logging helpers for procroute."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

_LOGGER_CACHE: Dict[str, logging.Logger] = {}


def get_logger(name: str = "procroute") -> logging.Logger:
    """Return a cached :class:`logging.Logger` instance."""

    if name not in _LOGGER_CACHE:
        _LOGGER_CACHE[name] = logging.getLogger(name)
    return _LOGGER_CACHE[name]


def log_discovery_warning(
    *,
    kind: str,
    path: str,
    message: str,
    export_name: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Emit a structured log entry for a per-file discovery problem."""

    payload: Dict[str, Any] = {"kind": kind, "path": path}
    if export_name:
        payload["export"] = export_name
    target_logger = logger or get_logger("procroute.discovery")
    target_logger.warning(
        "[Discovery Warning] %s: %s",
        path,
        message,
        extra={"procroute_event": "discovery_warning", "procroute_data": payload},
    )


def log_route_conflict(
    *,
    table: str,
    key: str,
    first: str,
    second: str,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Emit a structured log entry for a routing conflict found at compile time."""

    payload = {"table": table, "key": key, "first": first, "second": second}
    target_logger = logger or get_logger("procroute.compiler")
    target_logger.error(
        "Routing conflict on %s key %s between %s and %s",
        table,
        key,
        first,
        second,
        extra={"procroute_event": "route_conflict", "procroute_data": payload},
    )
