"""Bucketry object storage interface definition.

Provides the Bucket contract every backend implements, the ObjectStore
factory interface that hands out buckets, and BrokenBucket, the handle
returned when a bucket could not be prepared.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta
from typing import BinaryIO, NoReturn

from bucketry.storage.acl import ACL, ACLEnum, CannedACL
from bucketry.storage.errors import ObjectStorageError, StorageBackendError
from bucketry.storage.models import ObjectMeta, Size, StoredObject

ObjectData = bytes | BinaryIO
TTL = timedelta | int | float


class Bucket(ABC):
    """Operations available on a single named bucket.

    Implementations:
    - LocalBucket: directory under the local store's base path
    - S3Bucket: AWS S3 or any S3-compatible service (MinIO, ...)
    - BrokenBucket: a bucket that failed to initialize
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the bucket name."""
        ...

    @abstractmethod
    def get_object(self, path: str) -> StoredObject:
        """Open an object for reading.

        The returned StoredObject owns an open stream; the caller must close it.

        Raises:
            ObjectNotFoundError: If the object does not exist.
            InvalidObjectPathError: If the path cannot be mapped safely.
            StorageBackendError: If the backend cannot complete the read.
        """
        ...

    def put_object(self, path: str, data: ObjectData) -> None:
        """Store an object with the backend's default ACL."""
        self.put_object_with_acl(path, data, CannedACL.DEFAULT)

    @abstractmethod
    def put_object_with_acl(self, path: str, data: ObjectData, acl: CannedACL | ACL) -> None:
        """Store an object, replacing any existing content at path.

        Args:
            path: Bucket-relative object path.
            data: Object content as bytes or a binary stream (read to EOF).
            acl: A CannedACL label or a backend-native ACL token.

        Raises:
            InvalidObjectPathError: If the path cannot be mapped safely.
            StorageBackendError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def head_object(self, path: str) -> bool:
        """Return True if the object exists, False if it does not.

        Raises:
            StorageBackendError: If existence cannot be determined.
        """
        ...

    @abstractmethod
    def delete_object(self, path: str) -> None:
        """Delete a single object.

        Raises:
            ObjectNotFoundError: If the backend reports the object as absent.
            StorageBackendError: If the backend cannot complete the deletion.
        """
        ...

    @abstractmethod
    def list_objects(self, prefix: str) -> list[ObjectMeta]:
        """List every object whose path starts with prefix, sorted by path.

        Directory markers (paths ending in "/") are never returned.
        """
        ...

    @abstractmethod
    def delete_objects(self, paths: list[str]) -> None:
        """Delete several objects, stopping at the first failure."""
        ...

    @abstractmethod
    def get_object_size(self, path: str) -> Size:
        """Return the size of an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        ...

    @abstractmethod
    def sign_url(self, path: str, method: str, ttl: TTL) -> str:
        """Mint a URL granting time-limited access to path with method.

        The URL must be usable by a plain HTTP client without any
        additional authentication headers.

        Raises:
            UnsupportedMethodError: If method cannot be signed.
            StorageBackendError: If the backend cannot produce a URL.
        """
        ...


class BrokenBucket(Bucket):
    """A bucket handle whose preparation failed.

    Every operation raises a new StorageBackendError whose cause is the
    error captured at construction. A fresh handle must be requested from
    the store once the underlying condition has been fixed.
    """

    def __init__(self, name: str, error: ObjectStorageError) -> None:
        self._name = name
        self.error = error

    @property
    def name(self) -> str:
        return self._name

    def _fail(self) -> NoReturn:
        raise StorageBackendError(
            message=self.error.message,
            bucket=self._name,
            cause=self.error,
        ) from self.error

    def get_object(self, path: str) -> StoredObject:
        self._fail()

    def put_object_with_acl(self, path: str, data: ObjectData, acl: CannedACL | ACL) -> None:
        self._fail()

    def head_object(self, path: str) -> bool:
        self._fail()

    def delete_object(self, path: str) -> None:
        self._fail()

    def list_objects(self, prefix: str) -> list[ObjectMeta]:
        self._fail()

    def delete_objects(self, paths: list[str]) -> None:
        self._fail()

    def get_object_size(self, path: str) -> Size:
        self._fail()

    def sign_url(self, path: str, method: str, ttl: TTL) -> str:
        self._fail()


class ObjectStore(ABC):
    """A backend bound to its configuration, handing out Bucket handles."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the backend identifier (e.g., "local", "s3")."""
        ...

    @property
    @abstractmethod
    def acl_enum(self) -> ACLEnum:
        """Return the backend's ACL vocabulary."""
        ...

    @abstractmethod
    def bucket(self, name: str) -> Bucket:
        """Return a handle for the named bucket.

        Never raises for bucket-level problems; those surface on the first
        operation against the returned handle.
        """
        ...
