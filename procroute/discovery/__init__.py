"""Procedure discovery: scanning, loading and validating procedure modules."""

from __future__ import annotations

from .errors import (
    DiscoveryError,
    DiscoveryErrorKind,
    directory_not_found,
    file_load_error,
    invalid_export,
    invalid_file_type,
    no_procedures_found,
    permission_denied,
)
from .scanner import discover_from_config, discover_procedures, scan, scan_verbose
from .types import DiscoveryOptions, DiscoveryResult, DiscoveryWarning
from .validator import Validation, is_procedure_collection, looks_like_collection, validate

__all__ = [
    "DiscoveryError",
    "DiscoveryErrorKind",
    "DiscoveryOptions",
    "DiscoveryResult",
    "DiscoveryWarning",
    "Validation",
    "directory_not_found",
    "discover_from_config",
    "discover_procedures",
    "file_load_error",
    "invalid_export",
    "invalid_file_type",
    "is_procedure_collection",
    "looks_like_collection",
    "no_procedures_found",
    "permission_denied",
    "scan",
    "scan_verbose",
    "validate",
]
