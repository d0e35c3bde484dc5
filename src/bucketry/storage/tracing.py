"""Bucketry object storage OpenTelemetry tracing integration.

Provides the tracing decorator applied to bucket operations.

Security:
    - Never export absolute filesystem paths in span attributes
    - Object keys are exported as SHA-256 digests only
    - No secrets or signatures in any span attribute
"""

from __future__ import annotations

import functools
import hashlib
import logging
import os
from collections.abc import Callable
from typing import Any, TypeVar, cast

from opentelemetry import trace

from bucketry.storage.models import ObjectMeta, Size, StoredObject

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

BUCKETRY_OTEL_ENABLED_ENV = "BUCKETRY_OTEL_ENABLED"


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no", ""):
        return default
    return default


def _is_otel_enabled() -> bool:
    """Check if OpenTelemetry tracing is enabled."""
    return _get_env_bool(BUCKETRY_OTEL_ENABLED_ENV, False)


def _key_digest(key: str) -> str:
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace bucket operations with OpenTelemetry.

    The wrapped method's first argument after self is the object path,
    listing prefix or list of paths.

    Args:
        operation: Operation name (e.g., "put", "get", "list").

    Returns:
        Decorated function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, target: Any, *args: Any, **kwargs: Any) -> Any:
            if not _is_otel_enabled():
                return func(self, target, *args, **kwargs)

            tracer = trace.get_tracer("bucketry.object_store")
            with tracer.start_as_current_span(f"bucketry.object_store.{operation}") as span:
                span.set_attribute("storage.backend", getattr(self, "backend_name", "unknown"))
                span.set_attribute("bucketry.bucket", getattr(self, "name", ""))
                if isinstance(target, str):
                    span.set_attribute("bucketry.object_key_sha256", _key_digest(target))
                elif isinstance(target, list):
                    span.set_attribute("bucketry.object_count", len(target))

                try:
                    result = func(self, target, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise

                _add_result_attributes(span, result)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any) -> None:
    """Add result-based attributes to span safely."""
    if isinstance(result, Size):
        span.set_attribute("bucketry.object_size_bytes", result.size_bytes)
    elif isinstance(result, StoredObject):
        if result.size_bytes is not None:
            span.set_attribute("bucketry.object_size_bytes", result.size_bytes)
    elif isinstance(result, bool):
        span.set_attribute("bucketry.object_exists", result)
    elif isinstance(result, list) and all(isinstance(m, ObjectMeta) for m in result):
        span.set_attribute("bucketry.object_count", len(result))
