"""Pytest configuration and fixtures for Bucketry tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from bucketry.storage.filesystem_store import LocalObjectStore
from bucketry.storage.object_store import Bucket
from bucketry.storage.settings import LocalConfig

TEST_HTTP_ADDR = "http://testserver"
TEST_SECRET = "test-signing-secret"
TEST_BUCKET = "photos"

_BUCKETRY_ENV_VARS = [
    "BUCKETRY_BACKEND",
    "BUCKETRY_LOCAL_BASE_PATH",
    "BUCKETRY_LOCAL_HTTP_ADDR",
    "BUCKETRY_LOCAL_HTTP_SECRET",
    "BUCKETRY_S3_REGION",
    "BUCKETRY_S3_KEY_ID",
    "BUCKETRY_S3_SECRET",
    "BUCKETRY_S3_ENDPOINT",
    "BUCKETRY_S3_USE_SSL",
    "BUCKETRY_OTEL_ENABLED",
    "BUCKETRY_REQUIRE_OTEL",
    "BUCKETRY_OTEL_EXPORTER",
    "BUCKETRY_OTEL_TEST_CAPTURE",
]


@pytest.fixture(autouse=True)
def clean_bucketry_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove BUCKETRY_* variables so tests never see the developer's settings."""
    for name in _BUCKETRY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def base_dir(tmp_path: Path) -> Path:
    """Return the root directory of the local store."""
    return tmp_path / "objects"


@pytest.fixture
def store(base_dir: Path) -> LocalObjectStore:
    """Create a LocalObjectStore that signs URLs for the TestClient host."""
    return LocalObjectStore(
        LocalConfig(
            base_path=str(base_dir),
            http_addr=TEST_HTTP_ADDR,
            http_secret=TEST_SECRET,
        )
    )


@pytest.fixture
def bucket(store: LocalObjectStore) -> Bucket:
    """Return the default test bucket."""
    return store.bucket(TEST_BUCKET)
