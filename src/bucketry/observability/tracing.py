"""OpenTelemetry tracing configuration for Bucketry.

Storage operations emit spans through bucketry.storage.tracing; this module
installs the tracer provider those spans are exported through.

Environment Variables:
    BUCKETRY_OTEL_ENABLED: Set to "1" to enable tracing (default: disabled)
    BUCKETRY_REQUIRE_OTEL: Set to "1" to fail startup if tracing cannot initialize
    BUCKETRY_OTEL_SERVICE_NAME: Service name for spans (default: "bucketry")
    BUCKETRY_OTEL_EXPORTER: Exporter type - "console" or "none" (default: "console")
    BUCKETRY_OTEL_TEST_CAPTURE: Set to "1" to use in-memory exporter for tests

Security:
    - Never export secrets, signatures, request bodies or filesystem paths
"""

from __future__ import annotations

import logging
import os

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

logger = logging.getLogger(__name__)

_tracer_provider: TracerProvider | None = None
_is_configured: bool = False
_test_exporter: InMemorySpanExporter | None = None


class TracingConfigError(Exception):
    """Raised when tracing configuration fails and BUCKETRY_REQUIRE_OTEL=1."""


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no", ""):
        return default
    return default


def _get_env_str(key: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default).strip()


def configure_tracing() -> bool:
    """Configure OpenTelemetry tracing for Bucketry.

    Idempotent - safe to call multiple times.

    Returns:
        True if tracing is enabled and configured, False otherwise.

    Raises:
        TracingConfigError: If BUCKETRY_REQUIRE_OTEL=1 and configuration fails.
    """
    global _tracer_provider, _is_configured, _test_exporter

    enabled = _get_env_bool("BUCKETRY_OTEL_ENABLED", False)
    require_otel = _get_env_bool("BUCKETRY_REQUIRE_OTEL", False)
    test_capture = _get_env_bool("BUCKETRY_OTEL_TEST_CAPTURE", False)

    if not enabled:
        _is_configured = True
        logger.debug("OpenTelemetry tracing disabled (BUCKETRY_OTEL_ENABLED not set)")
        return False

    # The provider is process-wide; an existing test exporter is reused.
    if _test_exporter is not None and test_capture:
        return True

    if _is_configured and _tracer_provider is not None:
        return True

    _is_configured = True

    try:
        service_name = _get_env_str("BUCKETRY_OTEL_SERVICE_NAME", "bucketry")
        exporter_type = _get_env_str("BUCKETRY_OTEL_EXPORTER", "console")

        provider = TracerProvider(resource=Resource.create({"service.name": service_name}))

        if test_capture:
            _test_exporter = InMemorySpanExporter()
            provider.add_span_processor(SimpleSpanProcessor(_test_exporter))
        elif exporter_type == "console":
            provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

        trace.set_tracer_provider(provider)
        _tracer_provider = provider

        logger.info(
            "OpenTelemetry tracing configured: service=%s, exporter=%s",
            service_name,
            exporter_type if not test_capture else "in-memory",
        )
        return True

    except Exception as e:
        logger.error("Failed to configure OpenTelemetry tracing: %s", e)
        if require_otel:
            raise TracingConfigError(
                f"OpenTelemetry tracing required but configuration failed: {e}"
            ) from e
        return False


def get_tracer_provider() -> TracerProvider | None:
    """Return the provider installed by configure_tracing(), if any."""
    return _tracer_provider


def get_test_spans() -> list[ReadableSpan]:
    """Return spans captured by the in-memory test exporter."""
    if _test_exporter is None:
        return []
    return list(_test_exporter.get_finished_spans())


def clear_test_spans() -> None:
    """Forget spans captured so far by the in-memory test exporter."""
    if _test_exporter is not None:
        _test_exporter.clear()


def reset_tracing() -> None:
    """Reset tracing configuration (for testing).

    Note: OpenTelemetry TracerProvider cannot be replaced once set.
    This function clears the test exporter spans but keeps the exporter
    reference intact so subsequent configure_tracing() calls work.
    """
    global _is_configured

    if _test_exporter is not None:
        _test_exporter.clear()
    _is_configured = False
