"""Bucketry FastAPI application factory.

This module provides the create_app() factory for the local backend's
signed-access HTTP server. Every call builds an independent application
with its own routes and state, so several servers (e.g. one per test) can
coexist in one process.
"""

from __future__ import annotations

from fastapi import FastAPI

from bucketry.api.errors import (
    BucketryHttpError,
    bucketry_http_error_handler,
    generic_exception_handler,
    storage_error_handler,
)
from bucketry.api.middleware.request_id import RequestIdMiddleware
from bucketry.api.routes.health import BUCKETRY_VERSION
from bucketry.api.routes.health import router as health_router
from bucketry.api.routes.objects import router as objects_router
from bucketry.observability.tracing import configure_tracing
from bucketry.storage.errors import ObjectStorageError
from bucketry.storage.filesystem_store import LocalObjectStore
from bucketry.storage.object_store import ObjectStore


def create_app(
    store: ObjectStore,
    secret: str | None = None,
    *,
    max_body_bytes: int | None = None,
) -> FastAPI:
    """Create and configure the signed-access FastAPI application.

    This factory:
    - Creates a FastAPI app bound to one object store and signing secret
    - Registers the request ID middleware
    - Registers the storage-error and catch-all exception handlers
    - Mounts the health router, then the catch-all object router

    Args:
        store: Store whose buckets are served.
        secret: Shared signing secret. If None, taken from a LocalObjectStore's
            http_secret.
        max_body_bytes: Optional upper bound on PUT bodies (413 above it).

    Returns:
        Configured FastAPI application instance.

    Raises:
        ValueError: If no non-empty signing secret is available.
    """
    if secret is None and isinstance(store, LocalObjectStore):
        secret = store.config.http_secret
    if not secret:
        raise ValueError("A non-empty signing secret is required to serve signed URLs")

    app = FastAPI(
        title="Bucketry signed object access",
        version=BUCKETRY_VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.object_store = store
    app.state.signing_secret = secret
    app.state.max_body_bytes = max_body_bytes

    configure_tracing()

    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(ObjectStorageError, storage_error_handler)
    app.add_exception_handler(BucketryHttpError, bucketry_http_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Health must be registered before the catch-all object route.
    app.include_router(health_router)
    app.include_router(objects_router)

    return app
