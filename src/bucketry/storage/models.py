"""Bucketry object storage data models.

Provides the immutable value types returned by bucket operations:
Size, ObjectMeta and StoredObject (a live byte stream plus metadata).
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import PurePosixPath
from types import TracebackType
from typing import BinaryIO

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class Size:
    """Byte count of an object, returned when only its length is needed."""

    size_bytes: int


@dataclass(frozen=True)
class ObjectMeta:
    """Location of an object within a bucket.

    Attributes:
        bucket: Name of the bucket holding the object.
        path: Bucket-relative object path. Never ends with "/".
    """

    bucket: str
    path: str

    @property
    def extension(self) -> str:
        """Return the path suffix including the dot (e.g. ".txt"), or ""."""
        return PurePosixPath(self.path).suffix


class StoredObject:
    """A readable, closable object body tagged with its metadata.

    The metadata is a snapshot taken when the object was opened. The caller
    owns the stream and must close it, either explicitly or by using the
    object as a context manager. Closing more than once is allowed.
    """

    def __init__(
        self,
        bucket: str,
        path: str,
        acl: str,
        body: BinaryIO,
        *,
        size_bytes: int | None = None,
    ) -> None:
        self.meta = ObjectMeta(bucket=bucket, path=path)
        self.acl = acl
        self.size_bytes = size_bytes
        self._body = body
        self._closed = False

    @property
    def bucket(self) -> str:
        return self.meta.bucket

    @property
    def path(self) -> str:
        return self.meta.path

    @property
    def extension(self) -> str:
        return self.meta.extension

    @property
    def closed(self) -> bool:
        return self._closed

    def readable(self) -> bool:
        return not self._closed

    def read(self, size: int = -1) -> bytes:
        """Read up to size bytes from the body (all remaining bytes if -1)."""
        if self._closed:
            raise ValueError("I/O operation on closed object")
        return self._body.read(size)

    def iter_chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield the remaining body in chunks of at most chunk_size bytes."""
        while True:
            chunk = self.read(chunk_size)
            if not chunk:
                return
            yield chunk

    def __iter__(self) -> Iterator[bytes]:
        return self.iter_chunks()

    def close(self) -> None:
        """Release the underlying file descriptor or HTTP body."""
        if self._closed:
            return
        self._closed = True
        self._body.close()

    def __enter__(self) -> StoredObject:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"StoredObject(bucket={self.bucket!r}, path={self.path!r}, acl={self.acl!r})"
