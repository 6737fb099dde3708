"""
lease_engines.tracer -- Engine invocation tracer emitting LEASE_ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    engine invocations with structured trace logging.  The trace captures
    engine_name, engine_version, input_fingerprint (deterministic SHA-256
    hash of selected arguments), and duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Does NOT introduce I/O into engines; emits a log record only.
    Uses its own logger namespace (``lease_kernel.engines.tracer``) so the
    record flows through the kernel's structured handler.

Invariants enforced:
    - Fingerprint computation is deterministic: ``_canonicalize`` produces
      stable representations of Decimals, UUIDs, dates, enums and frozen
      dataclasses; dict keys and set members are sorted; one-shot
      iterators (generators) fingerprint as "<iter>" and are never consumed;
      the hash is SHA-256 truncated to 16 hex chars.
    - Engine purity: the decorator only reads arguments and emits a log
      record; it does not mutate inputs.

Failure modes:
    - Fingerprint fields naming a parameter the engine does not declare are
      recorded as "null".
    - Exceptions raised by the engine propagate unchanged; no trace record
      is emitted for a failed invocation.

Usage:
    from lease_engines.tracer import traced_engine

    @traced_engine("settlement", "1.0", fingerprint_fields=("termination", "deductions"))
    def calculate_figures(termination, deductions):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import logging
import time
from collections.abc import Callable, Iterator
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_logger = logging.getLogger("lease_kernel.engines.tracer")

TRACE_TYPE = "LEASE_ENGINE_TRACE"


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return _canonicalize(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, Decimal, UUID)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        return type(value).__name__ + _canonicalize(fields)
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    if isinstance(value, (set, frozenset)):
        return "{" + ",".join(sorted(_canonicalize(v) for v in value)) + "}"
    # Left unconsumed for the engine.
    if isinstance(value, Iterator):
        return "<iter>"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """Compute a deterministic SHA-256 fingerprint of selected arguments.

    Only the fields listed in fingerprint_fields are included. Missing
    fields are recorded as "null". The result is a hex digest prefix (16 chars).
    """
    parts: list[str] = []
    for field in fingerprint_fields:
        val = arguments.get(field)
        parts.append(f"{field}={_canonicalize(val)}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Wrap a pure engine function so each successful call logs a trace.

    ``fingerprint_fields`` names the parameters, positional or keyword, that
    identify the call's inputs.  Defaults the caller did not pass are
    included, so ``calculate_figures(t)`` and ``calculate_figures(t, None)``
    fingerprint alike.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)
        trace_fields = {
            "trace_type": TRACE_TYPE,
            "engine_name": engine_name,
            "engine_version": engine_version,
            "function": func.__qualname__,
        }

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = ""
            if fingerprint_fields:
                bound = signature.bind(*args, **kwargs)
                bound.apply_defaults()
                fingerprint = compute_input_fingerprint(fingerprint_fields, bound.arguments)

            started = time.perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

            _logger.info(
                TRACE_TYPE,
                extra={
                    **trace_fields,
                    "input_fingerprint": fingerprint,
                    "duration_ms": elapsed_ms,
                },
            )
            return result

        return wrapper

    return decorator
