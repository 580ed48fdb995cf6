"""
inventory_engines.tracer -- Engine invocation tracer emitting INVENTORY_ENGINE_TRACE.

Responsibility:
    ``@traced_engine`` wraps a pure engine function and emits one structured
    trace record per call: engine name and version, a fingerprint of the
    selected keyword arguments, the number of input records and the duration.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; inputs are never mutated.

Invariants enforced:
    - The fingerprint is deterministic: values are canonicalised (sorted
      dict keys, ordered sequences) and hashed with SHA-256, truncated to
      16 hex characters.
    - Missing fingerprint fields are recorded as "null".
"""

from __future__ import annotations

import functools
import hashlib
import logging
import time
from collections.abc import Callable, Sized
from decimal import Decimal
from typing import Any

# Own namespace under the kernel logger so configure_logging() covers it.
_logger = logging.getLogger("inventory_kernel.engines.tracer")


def _canonicalize(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, (int, float, str)):
        return str(value)
    if isinstance(value, dict):
        items = sorted(value.items())
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """Deterministic 16-char SHA-256 prefix over the named keyword arguments."""
    parts = [f"{name}={_canonicalize(kwargs.get(name))}" for name in fingerprint_fields]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits INVENTORY_ENGINE_TRACE for pure engine invocations.

    The first positional argument, when sized, is reported as ``input_count``
    (the transaction set for every engine in this package).
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                fp = compute_input_fingerprint(fingerprint_fields, kwargs)
            input_count = len(args[0]) if args and isinstance(args[0], Sized) else None

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 2)

            _logger.debug(
                "INVENTORY_ENGINE_TRACE",
                extra={
                    "trace_type": "INVENTORY_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "input_count": input_count,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator
