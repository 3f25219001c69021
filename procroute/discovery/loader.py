"""Loading of procedure modules from files and extraction of their exports."""

from __future__ import annotations

import hashlib
import importlib.util
import re
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, List, Tuple

MODULE_PREFIX = "procroute_discovered"

_UNSAFE = re.compile(r"[^0-9A-Za-z_]")


def module_name_for(path: Path) -> str:
    """Derive a stable, collision-free module name from a file path."""

    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    stem = _UNSAFE.sub("_", path.stem) or "module"
    return f"{MODULE_PREFIX}_{stem}_{digest}"


def load_module(path: Path) -> ModuleType:
    """Execute the module at ``path`` and return it.

    The module is registered in ``sys.modules`` only while it executes, so
    that dataclasses and other name lookups inside it resolve. Any exception
    raised by the import propagates to the caller.
    """

    name = module_name_for(path)
    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise ImportError(f"No loader available for {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    finally:
        sys.modules.pop(name, None)
    return module


def exported_values(module: ModuleType) -> List[Tuple[str, Any]]:
    """Return the module's exported bindings in definition order.

    ``__all__`` wins when present; otherwise every public attribute is an
    export. Values imported from other modules are included, the scanner
    de-duplicates collections by identity.
    """

    namespace = vars(module)
    declared = namespace.get("__all__")
    if declared is not None:
        return [(name, namespace[name]) for name in declared if name in namespace]
    return [
        (name, value)
        for name, value in namespace.items()
        if not name.startswith("_") and not isinstance(value, ModuleType)
    ]


__all__ = ["MODULE_PREFIX", "exported_values", "load_module", "module_name_for"]
