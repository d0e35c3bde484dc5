"""Bucketry local filesystem object storage backend.

Maps buckets to subdirectories of a base path and objects to regular files
beneath them:

    {base_path}/{bucket}/{object path}

Provides:
- Path validation so no bucket or key can escape its directory
- ACL-derived file modes (0600 / 0644 / 0666)
- Atomic overwrite via a hidden temporary file renamed into place
- Recursive prefix listing
- Signed URLs served by bucketry.api

Concurrency: there is no in-process locking. Concurrent writers to the same
path race on the final rename and the last one wins. Listings walk the live
directory tree and are not isolated from concurrent writers.
"""

from __future__ import annotations

import contextlib
import logging
import os
import posixpath
import re
import shutil
import stat
import uuid
from pathlib import Path

from bucketry.storage.acl import ACL, ACLEnum, CannedACL, FileModeACL
from bucketry.storage.errors import (
    InvalidObjectPathError,
    ObjectNotFoundError,
    ObjectStorageError,
    StorageBackendError,
)
from bucketry.storage.models import ObjectMeta, Size, StoredObject
from bucketry.storage.object_store import TTL, Bucket, BrokenBucket, ObjectData, ObjectStore
from bucketry.storage.settings import LocalConfig
from bucketry.storage.signing import build_signed_url, check_signable, expiry_from_ttl, sign
from bucketry.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

NAME = "local"

_DEFAULT_FILE_MODE = 0o644
_FILE_MODES = {
    "0600": 0o600,
    "0644": 0o644,
    "0666": 0o666,
}

_PARTIAL_SUFFIX = ".partial"
_PARTIAL_PATTERN = re.compile(r"\..+\.[0-9a-f]{32}\.partial")

# Errors meaning "no regular file at this path".
_MISSING_ERRORS = (FileNotFoundError, NotADirectoryError, IsADirectoryError)


def _has_unsafe_chars(value: str) -> bool:
    return "\x00" in value or "\\" in value


def validate_bucket_name(name: str) -> None:
    """Reject bucket names that are not a single plain path segment."""
    if not name or _has_unsafe_chars(name) or "/" in name or name in (".", ".."):
        raise InvalidObjectPathError("Invalid bucket name", bucket=name)


def validate_object_path(path: str, *, bucket: str | None = None) -> None:
    """Reject object paths that are empty, absolute or contain dot segments.

    Raises:
        InvalidObjectPathError: If the path cannot be mapped safely.
    """
    if not path or _has_unsafe_chars(path) or path.startswith("/"):
        raise InvalidObjectPathError(bucket=bucket, key=path)
    segments = path.split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        raise InvalidObjectPathError(bucket=bucket, key=path)


def _validate_prefix(prefix: str, *, bucket: str) -> None:
    """Like validate_object_path, but "" and a trailing "/" are allowed."""
    if not prefix:
        return
    if _has_unsafe_chars(prefix) or prefix.startswith("/"):
        raise InvalidObjectPathError("Invalid listing prefix", bucket=bucket, key=prefix)
    segments = prefix.rstrip("/").split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        raise InvalidObjectPathError("Invalid listing prefix", bucket=bucket, key=prefix)


def file_mode_for(acl: ACL) -> int:
    """Return the file mode for a local ACL token (0644 when unrecognized)."""
    return _FILE_MODES.get(acl, _DEFAULT_FILE_MODE)


def _is_partial_file(name: str) -> bool:
    return bool(_PARTIAL_PATTERN.fullmatch(name))


class LocalObjectStore(ObjectStore):
    """Filesystem-backed ObjectStore.

    The base directory is created if missing. A base path that exists but is
    not a directory is a construction error.
    """

    def __init__(self, config: LocalConfig | None = None) -> None:
        self._config = config or LocalConfig()
        self._base_dir = Path(self._config.base_path).resolve()

        if self._base_dir.exists() and not self._base_dir.is_dir():
            raise StorageBackendError(message="Base path is not a directory")
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create base directory: {e}",
                cause=e,
            ) from e

        self._acl_enum = FileModeACL()
        logger.debug("LocalObjectStore initialized with base_path=%s", self._base_dir)

    @property
    def name(self) -> str:
        return NAME

    @property
    def acl_enum(self) -> ACLEnum:
        return self._acl_enum

    @property
    def config(self) -> LocalConfig:
        return self._config

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def bucket(self, name: str) -> Bucket:
        """Return a handle for the named bucket, creating its directory.

        Failures are captured in a BrokenBucket instead of being raised.
        """
        try:
            validate_bucket_name(name)
            bucket_dir = self._prepare_bucket_dir(name)
        except ObjectStorageError as e:
            logger.warning("Bucket %s unavailable: %s", name, e.message)
            return BrokenBucket(name, e)
        return LocalBucket(name, bucket_dir, self._config, self._acl_enum)

    def _prepare_bucket_dir(self, name: str) -> Path:
        bucket_dir = self._base_dir / name
        try:
            bucket_dir.mkdir()
        except FileExistsError:
            if not bucket_dir.is_dir():
                raise StorageBackendError(
                    message="Bucket path is not a directory",
                    bucket=name,
                ) from None
        except OSError as e:
            raise StorageBackendError(
                message=f"Failed to create bucket directory: {e}",
                bucket=name,
                cause=e,
            ) from e
        return bucket_dir


class LocalBucket(Bucket):
    """A bucket stored as a directory of regular files."""

    backend_name = NAME

    def __init__(
        self,
        name: str,
        bucket_dir: Path,
        config: LocalConfig,
        acl_enum: ACLEnum,
    ) -> None:
        self._name = name
        self._bucket_dir = bucket_dir
        self._config = config
        self._acl_enum = acl_enum

    @property
    def name(self) -> str:
        return self._name

    @property
    def directory(self) -> Path:
        return self._bucket_dir

    def _full_path(self, path: str) -> Path:
        """Map an object path to its file, refusing anything outside the bucket."""
        validate_object_path(path, bucket=self._name)
        full = self._bucket_dir / path
        if not self._resolves_inside(full):
            raise InvalidObjectPathError(
                "Path resolves outside bucket directory",
                bucket=self._name,
                key=path,
            )
        return full

    def _resolves_inside(self, full: Path) -> bool:
        """Return False when symlinks lead full outside the bucket directory."""
        return full.resolve().is_relative_to(self._bucket_dir.resolve())

    def _backend_error(self, action: str, path: str, e: OSError) -> StorageBackendError:
        return StorageBackendError(
            message=f"Failed to {action}: {e}",
            bucket=self._name,
            key=path,
            cause=e,
        )

    @traced_storage_operation("get")
    def get_object(self, path: str) -> StoredObject:
        full = self._full_path(path)
        try:
            body = open(full, "rb")  # noqa: SIM115 - ownership passes to StoredObject
        except _MISSING_ERRORS as e:
            raise ObjectNotFoundError(bucket=self._name, key=path) from e
        except OSError as e:
            raise self._backend_error("open object", path, e) from e

        try:
            st = os.fstat(body.fileno())
        except OSError as e:
            body.close()
            raise self._backend_error("stat object", path, e) from e

        if not stat.S_ISREG(st.st_mode):
            body.close()
            raise ObjectNotFoundError(bucket=self._name, key=path)

        acl = f"{stat.S_IMODE(st.st_mode):04o}"
        return StoredObject(self._name, path, acl, body, size_bytes=st.st_size)

    @traced_storage_operation("put")
    def put_object_with_acl(self, path: str, data: ObjectData, acl: CannedACL | ACL) -> None:
        full = self._full_path(path)
        mode = file_mode_for(self._acl_enum.native(acl))

        try:
            full.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise self._backend_error("create parent directories", path, e) from e

        tmp = full.parent / f".{full.name}.{uuid.uuid4().hex}{_PARTIAL_SUFFIX}"
        try:
            with open(tmp, "xb") as f:
                os.chmod(tmp, mode)
                if isinstance(data, bytes | bytearray | memoryview):
                    f.write(data)
                else:
                    shutil.copyfileobj(data, f)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, full)
        except OSError as e:
            raise self._backend_error("write object", path, e) from e
        finally:
            with contextlib.suppress(OSError):
                tmp.unlink(missing_ok=True)

        logger.debug("Stored object: bucket=%s key=%s mode=%04o", self._name, path, mode)

    @traced_storage_operation("head")
    def head_object(self, path: str) -> bool:
        full = self._full_path(path)
        try:
            st = full.stat()
        except _MISSING_ERRORS:
            return False
        except OSError as e:
            raise self._backend_error("stat object", path, e) from e
        return stat.S_ISREG(st.st_mode)

    @traced_storage_operation("delete")
    def delete_object(self, path: str) -> None:
        full = self._full_path(path)
        try:
            os.remove(full)
        except _MISSING_ERRORS as e:
            raise ObjectNotFoundError(bucket=self._name, key=path) from e
        except OSError as e:
            raise self._backend_error("delete object", path, e) from e
        logger.debug("Deleted object: bucket=%s key=%s", self._name, path)

    @traced_storage_operation("list")
    def list_objects(self, prefix: str) -> list[ObjectMeta]:
        _validate_prefix(prefix, bucket=self._name)

        # Walk from the deepest directory the prefix names; the rest of the
        # prefix is matched against file names.
        start = prefix if prefix.endswith("/") or not prefix else posixpath.dirname(prefix)
        root = self._bucket_dir / start if start else self._bucket_dir
        if not root.is_dir():
            return []

        def _raise(e: OSError) -> None:
            raise self._backend_error("list objects", prefix, e) from e

        result: list[ObjectMeta] = []
        for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise):
            for filename in filenames:
                if _is_partial_file(filename):
                    continue
                file_path = os.path.join(dirpath, filename)
                if not os.path.isfile(file_path) or not self._resolves_inside(Path(file_path)):
                    continue
                rel = Path(file_path).relative_to(self._bucket_dir).as_posix()
                if rel.startswith(prefix):
                    result.append(ObjectMeta(bucket=self._name, path=rel))

        result.sort(key=lambda meta: meta.path)
        return result

    @traced_storage_operation("delete_many")
    def delete_objects(self, paths: list[str]) -> None:
        for path in paths:
            self.delete_object(path)

    @traced_storage_operation("size")
    def get_object_size(self, path: str) -> Size:
        full = self._full_path(path)
        try:
            st = full.stat()
        except _MISSING_ERRORS as e:
            raise ObjectNotFoundError(bucket=self._name, key=path) from e
        except OSError as e:
            raise self._backend_error("stat object", path, e) from e
        if not stat.S_ISREG(st.st_mode):
            raise ObjectNotFoundError(bucket=self._name, key=path)
        return Size(size_bytes=st.st_size)

    @traced_storage_operation("sign")
    def sign_url(self, path: str, method: str, ttl: TTL) -> str:
        check_signable(method)
        validate_object_path(path, bucket=self._name)
        if not self._config.http_addr or not self._config.http_secret:
            raise StorageBackendError(
                message="URL signing requires http_addr and http_secret",
                bucket=self._name,
                key=path,
            )

        expires = expiry_from_ttl(ttl)
        signature = sign(method, f"{self._name}/{path}", expires, self._config.http_secret)
        return build_signed_url(self._config.http_addr, self._name, path, expires, signature)
