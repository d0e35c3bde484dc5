"""Bucketry Object Storage Abstraction.

One bucket-scoped API (get/put/delete/list/head/sign) over several backends.

Backends:
- LocalObjectStore: Local filesystem, with signed URLs served by bucketry.api
- S3ObjectStore: AWS S3 and S3-compatible services (MinIO, ...)

Environment Variables:
    BUCKETRY_BACKEND: "local", "s3" or "minio" (default: "local")
    BUCKETRY_LOCAL_BASE_PATH: Base directory for the local backend
        (default: OS temp dir / bucketry_objects)
    See bucketry.storage.settings for the full list.
"""

from bucketry.storage.acl import ACLEnum, CannedACL
from bucketry.storage.errors import (
    ForbiddenError,
    InvalidObjectPathError,
    InvalidRequestError,
    ObjectNotFoundError,
    ObjectStorageError,
    StorageBackendError,
)
from bucketry.storage.factory import new_object_store
from bucketry.storage.models import ObjectMeta, Size, StoredObject
from bucketry.storage.object_store import Bucket, BrokenBucket, ObjectStore

__all__ = [
    "ACLEnum",
    "Bucket",
    "BrokenBucket",
    "CannedACL",
    "ForbiddenError",
    "InvalidObjectPathError",
    "InvalidRequestError",
    "ObjectMeta",
    "ObjectNotFoundError",
    "ObjectStorageError",
    "ObjectStore",
    "Size",
    "StorageBackendError",
    "StoredObject",
    "new_object_store",
]
