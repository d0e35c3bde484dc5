"""Bucketry object storage error types.

Provides typed exceptions for storage and signed-access operations. Callers
branch on the exception class, never on message text:

- ObjectNotFoundError: the object does not exist (the NotFound sentinel)
- InvalidRequestError: malformed bucket/path or malformed expiry
- ForbiddenError: signature mismatch or expired signed URL
- StorageBackendError: I/O, directory creation or transport failure
"""

from __future__ import annotations


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        bucket: Bucket name associated with the operation (if applicable).
        key: Object path associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class ObjectNotFoundError(ObjectStorageError):
    """Raised when an object does not exist in its bucket."""

    def __init__(
        self,
        message: str = "Object not found",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class InvalidRequestError(ObjectStorageError):
    """Raised when a request is malformed (bad bucket, path or expiry)."""


class InvalidObjectPathError(InvalidRequestError):
    """Raised when a bucket name or object path cannot be mapped safely.

    Covers empty paths, absolute paths, "." and ".." segments, backslashes
    and NUL bytes. Such paths would escape the bucket directory on the local
    backend and are rejected before touching the filesystem.
    """

    def __init__(
        self,
        message: str = "Invalid object path",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class InvalidExpiryError(InvalidRequestError):
    """Raised when a signed URL carries a missing or unparseable expiry."""

    def __init__(self, message: str = "Missing or malformed expires parameter") -> None:
        super().__init__(message)


class ForbiddenError(ObjectStorageError):
    """Raised when a signed request fails verification."""


class SignatureMismatchError(ForbiddenError):
    """Raised when the presented signature differs from the recomputed one."""

    def __init__(self, message: str = "Signature does not match", *, key: str | None = None) -> None:
        super().__init__(message, key=key)


class SignatureExpiredError(ForbiddenError):
    """Raised when a correctly signed URL is used after its expiry."""

    def __init__(
        self,
        message: str = "Signed URL has expired",
        *,
        key: str | None = None,
        expires: int | None = None,
    ) -> None:
        super().__init__(message, key=key)
        self.expires = expires


class StorageBackendError(ObjectStorageError):
    """Raised when the storage backend cannot complete an operation.

    This error indicates the backend itself failed (e.g., disk full,
    permission denied, bucket path is not a directory, transport error)
    rather than a logical error like object not found.
    """

    def __init__(
        self,
        message: str = "Storage backend error",
        *,
        bucket: str | None = None,
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.cause = cause


class UnsupportedMethodError(ObjectStorageError):
    """Raised when a URL is requested for an HTTP method a backend cannot sign."""

    def __init__(self, method: str) -> None:
        super().__init__(f"Unsupported signing method: {method}")
        self.method = method


class UnsupportedBackendError(ObjectStorageError):
    """Raised when no object store is registered under a backend name."""

    def __init__(self, backend: str) -> None:
        super().__init__(f"Unsupported object store backend: {backend}")
        self.backend = backend
