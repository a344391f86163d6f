"""
Trace records for pure engine calls.

``@traced_engine`` logs one ``WAREHOUSE_ENGINE_TRACE`` record per call with
the engine name and version, the call duration and a short fingerprint of
the arguments that decide the result.  Two calls with equal fingerprints
are expected to return equal results, which makes a settlement line
reproducible from the logs alone.
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import json
import logging
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

_logger = logging.getLogger("warehouse_kernel.engines.tracer")

TRACE_TYPE = "WAREHOUSE_ENGINE_TRACE"


def _plain(value: Any) -> Any:
    """Reduce a value to JSON-native types with a stable ordering."""
    if isinstance(value, Enum):
        return _plain(value.value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _plain(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, frozenset, set)):
        items = [_plain(v) for v in value]
        if isinstance(value, (frozenset, set)):
            items.sort(key=repr)
        return items
    if value is None or isinstance(value, (bool, int, str)):
        return value
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """First 16 hex chars of SHA-256 over the named arguments; absent ones hash as null."""
    selected = {name: _plain(arguments.get(name)) for name in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """
    Wrap a pure engine function with trace logging.

    ``fingerprint_fields`` names parameters of the wrapped function; they are
    matched whether the caller passes them by position or by keyword.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            started = time.monotonic()
            result = func(*args, **kwargs)
            elapsed_ms = (time.monotonic() - started) * 1000

            _logger.info(
                TRACE_TYPE,
                extra={
                    "trace_type": TRACE_TYPE,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "function": func.__qualname__,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round(elapsed_ms, 2),
                },
            )
            return result

        return wrapper

    return decorator
