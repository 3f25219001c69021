"""Schema decoding and encoding for the transport adapters.

Schemas are opaque to the rest of procroute; here they are interpreted
through :class:`pydantic.TypeAdapter`, which accepts pydantic models,
dataclasses, ``TypedDict`` classes and plain typing constructs alike.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, Tuple

from fastapi.encoders import jsonable_encoder
from pydantic import TypeAdapter, ValidationError

from procroute.adapters.errors import InputValidationError, OutputValidationError, validation_details

_ADAPTERS: Dict[int, Tuple[Any, TypeAdapter]] = {}
_LOCK = threading.Lock()


def adapter_for(schema: Any) -> TypeAdapter:
    key = id(schema)
    cached = _ADAPTERS.get(key)
    if cached is not None and cached[0] is schema:
        return cached[1]
    adapter = TypeAdapter(schema)
    with _LOCK:
        # The schema is kept alongside its adapter so the id stays valid.
        _ADAPTERS[key] = (schema, adapter)
    return adapter


def decode(schema: Any, raw: Any) -> Any:
    if schema is None:
        return raw
    try:
        return adapter_for(schema).validate_python(raw)
    except ValidationError as exc:
        raise InputValidationError("Input validation failed", details=validation_details(exc)) from exc


def encode(schema: Any, value: Any) -> Any:
    if schema is None:
        return jsonable_encoder(value)
    adapter = adapter_for(schema)
    try:
        validated = adapter.validate_python(value)
    except ValidationError as exc:
        raise OutputValidationError("Output validation failed", details=validation_details(exc)) from exc
    return adapter.dump_python(validated, mode="json")


__all__ = ["adapter_for", "decode", "encode"]
