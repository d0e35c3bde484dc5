"""Backend selection for Bucketry object stores."""

from __future__ import annotations

import logging
from collections.abc import Callable

from bucketry.storage.errors import UnsupportedBackendError
from bucketry.storage.filesystem_store import LocalObjectStore
from bucketry.storage.object_store import ObjectStore
from bucketry.storage.s3_store import S3ObjectStore
from bucketry.storage.settings import StoreSettings, load_settings

logger = logging.getLogger(__name__)

# "minio" is an S3-compatible endpoint configured through the s3 section.
BACKEND_DISPATCH: dict[str, Callable[[StoreSettings], ObjectStore]] = {
    "local": lambda settings: LocalObjectStore(settings.local),
    "s3": lambda settings: S3ObjectStore(settings.s3),
    "minio": lambda settings: S3ObjectStore(settings.s3),
}


def new_object_store(settings: StoreSettings | None = None) -> ObjectStore:
    """Build the ObjectStore selected by settings.backend.

    Args:
        settings: Store settings. If None, loads them from the environment.

    Raises:
        UnsupportedBackendError: If no backend is registered under the name.
    """
    if settings is None:
        settings = load_settings()

    builder = BACKEND_DISPATCH.get(settings.backend)
    if builder is None:
        raise UnsupportedBackendError(settings.backend)

    logger.debug("Creating object store backend=%s", settings.backend)
    return builder(settings)
