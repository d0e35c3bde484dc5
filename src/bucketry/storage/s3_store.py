"""Bucketry S3-compatible object storage backend.

Thin translation of the Bucket contract onto a boto3 S3 client. Works with
AWS S3 and with S3-compatible services such as MinIO when an endpoint is
configured.
"""

from __future__ import annotations

import logging
import mimetypes
import tempfile
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from bucketry.storage.acl import ACL, ACLEnum, CannedACL, S3CannedACL, acl_from_grants
from bucketry.storage.errors import ObjectNotFoundError, StorageBackendError
from bucketry.storage.models import ObjectMeta, Size, StoredObject
from bucketry.storage.object_store import TTL, Bucket, ObjectData, ObjectStore
from bucketry.storage.settings import S3Config
from bucketry.storage.signing import check_signable, ttl_seconds
from bucketry.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)

NAME = "s3"

LIST_PAGE_SIZE = 200
DELETE_BATCH_SIZE = 999

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})

_PRESIGN_METHODS = {
    "GET": "get_object",
    "PUT": "put_object",
    "HEAD": "head_object",
    "DELETE": "delete_object",
}

_SPOOL_MAX_MEMORY = 8 * 1024 * 1024


def _error_code(e: ClientError) -> str:
    return str(e.response.get("Error", {}).get("Code", ""))


def _endpoint_url(config: S3Config) -> str | None:
    """Return the endpoint as a URL, adding a scheme from use_ssl if needed."""
    endpoint = config.endpoint.strip().rstrip("/")
    if not endpoint:
        return None
    if "://" in endpoint:
        return endpoint
    scheme = "https" if config.use_ssl else "http"
    return f"{scheme}://{endpoint}"


def create_s3_client(config: S3Config) -> Any:
    """Build a boto3 S3 client from an S3Config.

    Custom endpoints use path-style addressing, which MinIO requires.
    """
    endpoint_url = _endpoint_url(config)
    client_config = Config(
        signature_version="s3v4",
        s3={"addressing_style": "path" if endpoint_url else "auto"},
    )
    return boto3.client(
        "s3",
        region_name=config.region or None,
        aws_access_key_id=config.key_id or None,
        aws_secret_access_key=config.secret or None,
        endpoint_url=endpoint_url,
        use_ssl=config.use_ssl,
        config=client_config,
    )


class S3ObjectStore(ObjectStore):
    """ObjectStore over an S3-compatible service."""

    def __init__(self, config: S3Config | None = None, *, client: Any | None = None) -> None:
        self._config = config or S3Config()
        self._client = client if client is not None else create_s3_client(self._config)
        self._acl_enum = S3CannedACL()

    @property
    def name(self) -> str:
        return NAME

    @property
    def acl_enum(self) -> ACLEnum:
        return self._acl_enum

    @property
    def client(self) -> Any:
        return self._client

    def bucket(self, name: str) -> Bucket:
        return S3Bucket(name, self._client, self._acl_enum)


class S3Bucket(Bucket):
    """A bucket on an S3-compatible service."""

    backend_name = NAME

    def __init__(self, name: str, client: Any, acl_enum: ACLEnum) -> None:
        self._name = name
        self._client = client
        self._acl_enum = acl_enum

    @property
    def name(self) -> str:
        return self._name

    def _translate(self, action: str, path: str | None, e: Exception) -> Exception:
        """Map a botocore failure onto the storage error taxonomy."""
        if isinstance(e, ClientError) and _error_code(e) in _NOT_FOUND_CODES:
            return ObjectNotFoundError(bucket=self._name, key=path)
        return StorageBackendError(
            message=f"Failed to {action}: {e}",
            bucket=self._name,
            key=path,
            cause=e,
        )

    @traced_storage_operation("get")
    def get_object(self, path: str) -> StoredObject:
        try:
            acl_resp = self._client.get_object_acl(Bucket=self._name, Key=path)
            resp = self._client.get_object(Bucket=self._name, Key=path)
        except (ClientError, BotoCoreError) as e:
            raise self._translate("get object", path, e) from e

        permissions = [grant.get("Permission", "") for grant in acl_resp.get("Grants", [])]
        acl = self._acl_enum.native(acl_from_grants(permissions))
        return StoredObject(
            self._name,
            path,
            acl,
            resp["Body"],
            size_bytes=resp.get("ContentLength"),
        )

    @traced_storage_operation("put")
    def put_object_with_acl(self, path: str, data: ObjectData, acl: CannedACL | ACL) -> None:
        native = self._acl_enum.native(acl)
        kwargs: dict[str, Any] = {
            "Bucket": self._name,
            "Key": path,
            "ContentType": mimetypes.guess_type(path)[0] or "application/octet-stream",
        }
        if native:
            kwargs["ACL"] = native

        if isinstance(data, bytes | bytearray | memoryview):
            self._put(path, bytes(data), kwargs)
            return

        seekable = getattr(data, "seekable", None)
        if callable(seekable) and seekable():
            self._put(path, data, kwargs)
            return

        # Unknown-length streams are spooled so the request has a length.
        with tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_MEMORY) as spool:
            while chunk := data.read(64 * 1024):
                spool.write(chunk)
            spool.seek(0)
            self._put(path, spool, kwargs)

    def _put(self, path: str, body: Any, kwargs: dict[str, Any]) -> None:
        try:
            self._client.put_object(Body=body, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise self._translate("put object", path, e) from e
        logger.debug("Stored object: bucket=%s key=%s", self._name, path)

    @traced_storage_operation("head")
    def head_object(self, path: str) -> bool:
        try:
            self._client.head_object(Bucket=self._name, Key=path)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise self._translate("head object", path, e) from e
        except BotoCoreError as e:
            raise self._translate("head object", path, e) from e
        return True

    @traced_storage_operation("delete")
    def delete_object(self, path: str) -> None:
        try:
            self._client.delete_object(Bucket=self._name, Key=path)
        except (ClientError, BotoCoreError) as e:
            raise self._translate("delete object", path, e) from e

    @traced_storage_operation("list")
    def list_objects(self, prefix: str) -> list[ObjectMeta]:
        result: list[ObjectMeta] = []
        marker = ""
        while True:
            try:
                page = self._client.list_objects(
                    Bucket=self._name,
                    Prefix=prefix,
                    Marker=marker,
                    MaxKeys=LIST_PAGE_SIZE,
                )
            except (ClientError, BotoCoreError) as e:
                raise self._translate("list objects", prefix, e) from e

            contents = page.get("Contents", [])
            for item in contents:
                key = item.get("Key")
                if key and not key.endswith("/"):
                    result.append(ObjectMeta(bucket=self._name, path=key))

            if not page.get("IsTruncated"):
                break
            # NextMarker is only returned with a delimiter; fall back to the last key.
            marker = page.get("NextMarker") or (contents[-1]["Key"] if contents else "")
            if not marker:
                break

        result.sort(key=lambda meta: meta.path)
        return result

    @traced_storage_operation("delete_many")
    def delete_objects(self, paths: list[str]) -> None:
        for start in range(0, len(paths), DELETE_BATCH_SIZE):
            self._delete_batch(paths[start : start + DELETE_BATCH_SIZE])

    def _delete_batch(self, paths: list[str]) -> None:
        try:
            resp = self._client.delete_objects(
                Bucket=self._name,
                Delete={"Objects": [{"Key": path} for path in paths], "Quiet": True},
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate("delete objects", None, e) from e

        errors = resp.get("Errors") or []
        if errors:
            first = errors[0]
            raise StorageBackendError(
                message=f"Failed to delete objects: {first.get('Code')} {first.get('Message')}",
                bucket=self._name,
                key=first.get("Key"),
            )

    @traced_storage_operation("size")
    def get_object_size(self, path: str) -> Size:
        try:
            resp = self._client.head_object(Bucket=self._name, Key=path)
        except (ClientError, BotoCoreError) as e:
            raise self._translate("head object", path, e) from e
        return Size(size_bytes=int(resp.get("ContentLength", 0)))

    @traced_storage_operation("sign")
    def sign_url(self, path: str, method: str, ttl: TTL) -> str:
        check_signable(method)
        try:
            return str(
                self._client.generate_presigned_url(
                    ClientMethod=_PRESIGN_METHODS[method],
                    Params={"Bucket": self._name, "Key": path},
                    ExpiresIn=max(1, int(ttl_seconds(ttl))),
                    HttpMethod=method,
                )
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate("sign url", path, e) from e
