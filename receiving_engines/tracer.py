"""
``@traced_engine``: timing log for pure engine calls.

A successful call logs one DEBUG record named ``RECEIVING_ENGINE_TRACE``
carrying the engine name, its version, the wrapped function and the
elapsed milliseconds.  Exceptions pass through untouched and log nothing;
the calling service logs the failure with its own context.

    @traced_engine("order_status_resolver", "1.0")
    def resolve_order_status(order, ledger):
        ...
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

TRACE_EVENT = "RECEIVING_ENGINE_TRACE"

_logger = logging.getLogger("receiving_kernel.engines.tracer")


def traced_engine(engine_name: str, engine_version: str) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        trace_fields = {
            "trace_type": TRACE_EVENT,
            "engine_name": engine_name,
            "engine_version": engine_version,
            "function": func.__qualname__,
        }

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            result = func(*args, **kwargs)
            if _logger.isEnabledFor(logging.DEBUG):
                elapsed_ms = (time.perf_counter() - started) * 1000
                _logger.debug(
                    TRACE_EVENT,
                    extra={**trace_fields, "duration_ms": round(elapsed_ms, 3)},
                )
            return result

        return wrapper  # type: ignore[return-value]

    return decorator
