"""Lightweight observability helpers for logging."""

from __future__ import annotations

from .logging import get_logger, log_discovery_warning, log_route_conflict

__all__ = [
    "get_logger",
    "log_discovery_warning",
    "log_route_conflict",
]
