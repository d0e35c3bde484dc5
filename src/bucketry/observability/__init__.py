"""Bucketry observability: OpenTelemetry tracing configuration."""
