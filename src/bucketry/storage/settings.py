"""Bucketry object store configuration.

Configs are immutable once a store is built from them.

Environment Variables:
    BUCKETRY_BACKEND: "local", "s3" or "minio" (default: "local")
    BUCKETRY_LOCAL_BASE_PATH: Root directory for the local backend
        (default: OS temp dir / bucketry_objects)
    BUCKETRY_LOCAL_HTTP_ADDR: Public base URL of the signed-access server
        (e.g. "http://127.0.0.1:8080"); empty disables URL signing
    BUCKETRY_LOCAL_HTTP_SECRET: Shared secret for signed URLs
    BUCKETRY_S3_REGION, BUCKETRY_S3_KEY_ID, BUCKETRY_S3_SECRET:
        S3 connection parameters
    BUCKETRY_S3_ENDPOINT: Endpoint URL for S3-compatible services (MinIO, ...)
    BUCKETRY_S3_USE_SSL: "1"/"0" (default: "1")
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from bucketry.storage.errors import ObjectStorageError

BUCKETRY_BACKEND_ENV = "BUCKETRY_BACKEND"
BUCKETRY_LOCAL_BASE_PATH_ENV = "BUCKETRY_LOCAL_BASE_PATH"
BUCKETRY_LOCAL_HTTP_ADDR_ENV = "BUCKETRY_LOCAL_HTTP_ADDR"
BUCKETRY_LOCAL_HTTP_SECRET_ENV = "BUCKETRY_LOCAL_HTTP_SECRET"
BUCKETRY_S3_REGION_ENV = "BUCKETRY_S3_REGION"
BUCKETRY_S3_KEY_ID_ENV = "BUCKETRY_S3_KEY_ID"
BUCKETRY_S3_SECRET_ENV = "BUCKETRY_S3_SECRET"
BUCKETRY_S3_ENDPOINT_ENV = "BUCKETRY_S3_ENDPOINT"
BUCKETRY_S3_USE_SSL_ENV = "BUCKETRY_S3_USE_SSL"

DEFAULT_BACKEND = "local"


class SettingsError(ObjectStorageError):
    """Raised when a settings document cannot be loaded."""


def default_base_path() -> str:
    return str(Path(tempfile.gettempdir()) / "bucketry_objects")


@dataclass(frozen=True)
class LocalConfig:
    """Local filesystem backend configuration.

    Attributes:
        base_path: Root directory; each bucket is a subdirectory.
        http_addr: Base URL signed URLs point at. Empty disables signing.
        http_secret: Shared secret for signing and verifying URLs.
    """

    base_path: str = field(default_factory=default_base_path)
    http_addr: str = ""
    http_secret: str = ""

    def __repr__(self) -> str:
        secret = "***" if self.http_secret else ""
        return (
            f"LocalConfig(base_path={self.base_path!r}, http_addr={self.http_addr!r}, "
            f"http_secret={secret!r})"
        )


@dataclass(frozen=True)
class S3Config:
    """S3-compatible backend configuration.

    Attributes:
        region: Region name (may be empty for MinIO).
        key_id: Access key id. Empty uses boto3's default credential chain.
        secret: Secret access key.
        endpoint: Endpoint URL for non-AWS services. Empty targets AWS.
        use_ssl: Whether to use TLS when the endpoint has no scheme.
    """

    region: str = ""
    key_id: str = ""
    secret: str = ""
    endpoint: str = ""
    use_ssl: bool = True

    def __repr__(self) -> str:
        secret = "***" if self.secret else ""
        return (
            f"S3Config(region={self.region!r}, key_id={self.key_id!r}, secret={secret!r}, "
            f"endpoint={self.endpoint!r}, use_ssl={self.use_ssl!r})"
        )


@dataclass(frozen=True)
class StoreSettings:
    """Backend selection plus every backend's configuration."""

    backend: str = DEFAULT_BACKEND
    local: LocalConfig = field(default_factory=LocalConfig)
    s3: S3Config = field(default_factory=S3Config)


def _get_env_str(key: str, default: str = "") -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default).strip()


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no"):
        return False
    return default


def load_settings() -> StoreSettings:
    """Build StoreSettings from BUCKETRY_* environment variables."""
    local = LocalConfig(
        base_path=_get_env_str(BUCKETRY_LOCAL_BASE_PATH_ENV) or default_base_path(),
        http_addr=_get_env_str(BUCKETRY_LOCAL_HTTP_ADDR_ENV),
        http_secret=_get_env_str(BUCKETRY_LOCAL_HTTP_SECRET_ENV),
    )
    s3 = S3Config(
        region=_get_env_str(BUCKETRY_S3_REGION_ENV),
        key_id=_get_env_str(BUCKETRY_S3_KEY_ID_ENV),
        secret=_get_env_str(BUCKETRY_S3_SECRET_ENV),
        endpoint=_get_env_str(BUCKETRY_S3_ENDPOINT_ENV),
        use_ssl=_get_env_bool(BUCKETRY_S3_USE_SSL_ENV, True),
    )
    backend = _get_env_str(BUCKETRY_BACKEND_ENV, DEFAULT_BACKEND) or DEFAULT_BACKEND
    return StoreSettings(backend=backend.lower(), local=local, s3=s3)


def settings_from_dict(data: dict[str, Any]) -> StoreSettings:
    """Build StoreSettings from a parsed JSON/YAML document."""
    local_raw = data.get("local") or {}
    s3_raw = data.get("s3") or {}
    if not isinstance(local_raw, dict) or not isinstance(s3_raw, dict):
        raise SettingsError("'local' and 's3' sections must be mappings")

    local = LocalConfig(
        base_path=str(local_raw.get("base_path") or default_base_path()),
        http_addr=str(local_raw.get("http_addr") or ""),
        http_secret=str(local_raw.get("http_secret") or ""),
    )
    s3 = S3Config(
        region=str(s3_raw.get("region") or ""),
        key_id=str(s3_raw.get("key_id") or ""),
        secret=str(s3_raw.get("secret") or ""),
        endpoint=str(s3_raw.get("endpoint") or ""),
        use_ssl=bool(s3_raw.get("use_ssl", True)),
    )
    backend = str(data.get("backend") or DEFAULT_BACKEND).lower()
    return StoreSettings(backend=backend, local=local, s3=s3)


def load_settings_file(path: str | Path) -> StoreSettings:
    """Load StoreSettings from a .json, .yaml or .yml file.

    Raises:
        SettingsError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SettingsError(f"Cannot read settings file {path}: {e}") from e

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise SettingsError(f"Invalid settings file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a mapping")
    return settings_from_dict(data)
