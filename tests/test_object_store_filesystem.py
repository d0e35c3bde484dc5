"""Tests for the Bucketry local filesystem backend.

Covers:
- Roundtrip: put then get returns identical bytes; extension and path match
- Not-found: get/delete/size on a missing path raise ObjectNotFoundError
- Overwrite: last write wins with no residue of earlier content
- Listing: complete, sorted, no directory markers, prefix semantics
- Batch delete: all paths removed; stops at first failure
- ACL: file modes derived from ACL labels and reported back on read
- Path validation: traversal attempts rejected before touching the disk
- Deferred bucket errors: BrokenBucket replays the construction failure
- Signed URLs: format and signature binding
"""

from __future__ import annotations

import io
import os
import stat
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import pytest

from bucketry.storage.acl import CannedACL
from bucketry.storage.errors import (
    InvalidObjectPathError,
    ObjectNotFoundError,
    StorageBackendError,
    UnsupportedMethodError,
)
from bucketry.storage.filesystem_store import LocalBucket, LocalObjectStore
from bucketry.storage.object_store import Bucket, BrokenBucket
from bucketry.storage.settings import LocalConfig
from bucketry.storage.signing import sign

TEST_BUCKET = "photos"
TEST_SECRET = "test-signing-secret"


def _read(bucket: Bucket, path: str) -> bytes:
    with bucket.get_object(path) as obj:
        return obj.read()


class TestRoundtrip:
    """Tests for basic put/get roundtrip functionality."""

    def test_put_then_get_returns_identical_bytes(self, bucket: Bucket) -> None:
        """Put then get should return identical bytes and metadata."""
        bucket.put_object("test/example.txt", b"some text")

        with bucket.get_object("test/example.txt") as obj:
            assert obj.read() == b"some text"
            assert obj.extension == ".txt"
            assert obj.path == "test/example.txt"
            assert obj.bucket == TEST_BUCKET
            assert obj.size_bytes == 9

    def test_put_from_stream(self, bucket: Bucket) -> None:
        """A binary stream is consumed to EOF."""
        data = os.urandom(200 * 1024)

        bucket.put_object("streams/blob.bin", io.BytesIO(data))

        assert _read(bucket, "streams/blob.bin") == data

    def test_empty_content(self, bucket: Bucket) -> None:
        """Should handle empty content correctly."""
        bucket.put_object("test/empty.bin", b"")

        assert _read(bucket, "test/empty.bin") == b""
        assert bucket.get_object_size("test/empty.bin").size_bytes == 0

    def test_binary_content(self, bucket: Bucket) -> None:
        """Should handle binary content with all byte values."""
        data = bytes(range(256))

        bucket.put_object("test/binary.bin", data)

        assert _read(bucket, "test/binary.bin") == data

    def test_object_chunks_reassemble(self, bucket: Bucket) -> None:
        """Iterating an object yields its content in order."""
        data = os.urandom(150 * 1024)
        bucket.put_object("chunks.bin", data)

        with bucket.get_object("chunks.bin") as obj:
            assert b"".join(obj.iter_chunks(chunk_size=4096)) == data

    def test_context_manager_closes_stream(self, bucket: Bucket) -> None:
        """Leaving the with-block releases the file."""
        bucket.put_object("test/close.txt", b"x")

        with bucket.get_object("test/close.txt") as obj:
            assert not obj.closed

        assert obj.closed
        with pytest.raises(ValueError):
            obj.read()

    def test_close_is_idempotent(self, bucket: Bucket) -> None:
        bucket.put_object("test/close.txt", b"x")
        obj = bucket.get_object("test/close.txt")

        obj.close()
        obj.close()

        assert obj.closed

    def test_get_object_size(self, bucket: Bucket) -> None:
        bucket.put_object("test/example.txt", b"some text")

        assert bucket.get_object_size("test/example.txt").size_bytes == 9

    def test_head_object_true_after_put(self, bucket: Bucket) -> None:
        bucket.put_object("test/example.txt", b"some text")

        assert bucket.head_object("test/example.txt") is True

    def test_objects_live_under_bucket_directory(self, bucket: Bucket, base_dir: Path) -> None:
        """Objects map to {base}/{bucket}/{path} on disk."""
        bucket.put_object("a/b/c.txt", b"nested")

        assert (base_dir / TEST_BUCKET / "a" / "b" / "c.txt").read_bytes() == b"nested"


class TestNotFound:
    """Missing objects surface as ObjectNotFoundError, never a generic error."""

    def test_get_missing_raises_not_found(self, bucket: Bucket) -> None:
        with pytest.raises(ObjectNotFoundError):
            bucket.get_object("never/written.txt")

    def test_delete_missing_raises_not_found(self, bucket: Bucket) -> None:
        with pytest.raises(ObjectNotFoundError):
            bucket.delete_object("never/written.txt")

    def test_size_missing_raises_not_found(self, bucket: Bucket) -> None:
        with pytest.raises(ObjectNotFoundError):
            bucket.get_object_size("never/written.txt")

    def test_head_missing_returns_false(self, bucket: Bucket) -> None:
        assert bucket.head_object("never/written.txt") is False

    def test_not_found_is_not_backend_error(self, bucket: Bucket) -> None:
        with pytest.raises(ObjectNotFoundError) as exc_info:
            bucket.get_object("missing.txt")

        assert not isinstance(exc_info.value, StorageBackendError)
        assert exc_info.value.key == "missing.txt"
        assert exc_info.value.bucket == TEST_BUCKET

    def test_directory_is_not_an_object(self, bucket: Bucket) -> None:
        bucket.put_object("dir/file.txt", b"x")

        assert bucket.head_object("dir") is False
        with pytest.raises(ObjectNotFoundError):
            bucket.get_object("dir")
        with pytest.raises(ObjectNotFoundError):
            bucket.get_object_size("dir")

    def test_get_after_delete_raises_not_found(self, bucket: Bucket) -> None:
        bucket.put_object("test/example.txt", b"some text")

        bucket.delete_object("test/example.txt")

        with pytest.raises(ObjectNotFoundError):
            bucket.get_object("test/example.txt")


class TestOverwrite:
    """Writes to an existing path replace the content entirely."""

    def test_last_write_wins(self, bucket: Bucket) -> None:
        bucket.put_object("test/over.txt", b"first version, quite long")
        bucket.put_object("test/over.txt", b"second")

        assert _read(bucket, "test/over.txt") == b"second"
        assert bucket.get_object_size("test/over.txt").size_bytes == 6

    def test_failed_write_leaves_previous_content(self, bucket: Bucket) -> None:
        """A write that fails mid-stream neither truncates nor leaves temp files."""

        class FailingReader:
            def __init__(self) -> None:
                self.calls = 0

            def read(self, size: int = -1) -> bytes:
                self.calls += 1
                if self.calls > 1:
                    raise OSError("connection reset")
                return b"partial"

        bucket.put_object("test/keep.txt", b"original")

        with pytest.raises(StorageBackendError):
            bucket.put_object("test/keep.txt", FailingReader())  # type: ignore[arg-type]

        assert _read(bucket, "test/keep.txt") == b"original"
        assert [m.path for m in bucket.list_objects("test/")] == ["test/keep.txt"]
        assert isinstance(bucket, LocalBucket)
        assert sorted(p.name for p in (bucket.directory / "test").iterdir()) == ["keep.txt"]

    def test_write_below_a_file_raises_backend_error(self, bucket: Bucket) -> None:
        bucket.put_object("a.txt", b"file")

        with pytest.raises(StorageBackendError):
            bucket.put_object("a.txt/b.txt", b"nested")


class TestListing:
    """Tests for prefix listing."""

    def test_lists_every_object_under_prefix(self, bucket: Bucket) -> None:
        paths = [f"test/file-{i:02d}.txt" for i in range(12)]
        for path in reversed(paths):
            bucket.put_object(path, b"x")

        result = bucket.list_objects("test/")

        assert [meta.path for meta in result] == paths
        assert all(not meta.path.endswith("/") for meta in result)
        assert all(meta.bucket == TEST_BUCKET for meta in result)

    def test_listing_is_recursive_and_skips_directories(self, bucket: Bucket) -> None:
        bucket.put_object("docs/a.txt", b"x")
        bucket.put_object("docs/sub/b.txt", b"x")
        bucket.put_object("docs/sub/deeper/c.txt", b"x")

        result = [meta.path for meta in bucket.list_objects("docs/")]

        assert result == ["docs/a.txt", "docs/sub/b.txt", "docs/sub/deeper/c.txt"]

    def test_listing_excludes_other_prefixes(self, bucket: Bucket) -> None:
        bucket.put_object("keep/a.txt", b"x")
        bucket.put_object("other/b.txt", b"x")

        assert [meta.path for meta in bucket.list_objects("keep/")] == ["keep/a.txt"]

    def test_empty_prefix_lists_whole_bucket(self, bucket: Bucket) -> None:
        bucket.put_object("root.txt", b"x")
        bucket.put_object("nested/leaf.txt", b"x")

        assert [meta.path for meta in bucket.list_objects("")] == ["nested/leaf.txt", "root.txt"]

    def test_partial_name_prefix(self, bucket: Bucket) -> None:
        """A prefix may end mid-name, like a cloud key prefix."""
        bucket.put_object("test/example.txt", b"x")
        bucket.put_object("test/exam.md", b"x")
        bucket.put_object("test/other.txt", b"x")

        result = [meta.path for meta in bucket.list_objects("test/exa")]

        assert result == ["test/exam.md", "test/example.txt"]

    def test_missing_prefix_lists_nothing(self, bucket: Bucket) -> None:
        assert bucket.list_objects("nothing/here/") == []

    def test_listing_ignores_in_flight_temp_files(self, bucket: Bucket) -> None:
        bucket.put_object("test/real.txt", b"x")
        assert isinstance(bucket, LocalBucket)
        (bucket.directory / "test" / f".real.txt.{'a' * 32}.partial").write_bytes(b"half")

        assert [meta.path for meta in bucket.list_objects("test/")] == ["test/real.txt"]

    def test_invalid_prefix_rejected(self, bucket: Bucket) -> None:
        with pytest.raises(InvalidObjectPathError):
            bucket.list_objects("../")


class TestBatchDelete:
    """Tests for delete_objects."""

    def test_delete_ten_objects(self, bucket: Bucket) -> None:
        paths = [f"test/example-{i}.txt" for i in range(10)]
        for path in paths:
            bucket.put_object(path, b"some text")

        bucket.delete_objects(paths)

        assert bucket.head_object(paths[0]) is False
        assert bucket.list_objects("test/") == []

    def test_delete_stops_at_first_failure(self, bucket: Bucket) -> None:
        bucket.put_object("a.txt", b"x")
        bucket.put_object("c.txt", b"x")

        with pytest.raises(ObjectNotFoundError):
            bucket.delete_objects(["a.txt", "b.txt", "c.txt"])

        assert bucket.head_object("a.txt") is False
        assert bucket.head_object("c.txt") is True

    def test_delete_empty_list(self, bucket: Bucket) -> None:
        bucket.delete_objects([])


class TestACL:
    """File modes follow ACL labels regardless of the process umask."""

    @pytest.mark.parametrize(
        ("acl", "mode"),
        [
            (CannedACL.PRIVATE, 0o600),
            (CannedACL.PUBLIC_READ, 0o644),
            (CannedACL.PUBLIC_READ_WRITE, 0o666),
            (CannedACL.DEFAULT, 0o644),
        ],
    )
    def test_acl_sets_file_mode(self, bucket: Bucket, acl: CannedACL, mode: int) -> None:
        assert isinstance(bucket, LocalBucket)
        bucket.put_object_with_acl("acl/file.txt", b"x", acl)

        st = (bucket.directory / "acl" / "file.txt").stat()

        assert stat.S_IMODE(st.st_mode) == mode

    def test_acl_reported_on_read(self, bucket: Bucket) -> None:
        bucket.put_object_with_acl("acl/private.txt", b"x", CannedACL.PRIVATE)

        with bucket.get_object("acl/private.txt") as obj:
            assert obj.acl == "0600"

    def test_native_token_accepted(self, store: LocalObjectStore, bucket: Bucket) -> None:
        bucket.put_object_with_acl("acl/rw.txt", b"x", store.acl_enum.public_read_write())

        with bucket.get_object("acl/rw.txt") as obj:
            assert obj.acl == "0666"

    def test_overwrite_changes_mode(self, bucket: Bucket) -> None:
        bucket.put_object_with_acl("acl/f.txt", b"x", CannedACL.PUBLIC_READ_WRITE)
        bucket.put_object_with_acl("acl/f.txt", b"y", CannedACL.PRIVATE)

        with bucket.get_object("acl/f.txt") as obj:
            assert obj.acl == "0600"


class TestPathValidation:
    """Keys that could escape the bucket directory are rejected."""

    @pytest.mark.parametrize(
        "path",
        ["", "../x.txt", "a/../../x.txt", "/etc/passwd", "a\\b.txt", "a//b.txt", "./a.txt", "a/"],
    )
    def test_unsafe_paths_rejected(self, bucket: Bucket, path: str) -> None:
        with pytest.raises(InvalidObjectPathError):
            bucket.put_object(path, b"x")
        with pytest.raises(InvalidObjectPathError):
            bucket.get_object(path)

    def test_symlink_escape_rejected(self, bucket: Bucket, tmp_path: Path) -> None:
        assert isinstance(bucket, LocalBucket)
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.txt").write_bytes(b"secret")
        os.symlink(outside, bucket.directory / "link")

        with pytest.raises(InvalidObjectPathError):
            bucket.get_object("link/secret.txt")

    def test_listing_skips_links_leaving_bucket(self, bucket: Bucket, tmp_path: Path) -> None:
        assert isinstance(bucket, LocalBucket)
        outside = tmp_path / "outside.txt"
        outside.write_bytes(b"secret")
        bucket.put_object("docs/real.txt", b"x")
        bucket.put_object("docs/target.txt", b"y")
        os.symlink(outside, bucket.directory / "docs" / "escape.txt")
        os.symlink(bucket.directory / "docs" / "target.txt", bucket.directory / "docs" / "alias.txt")

        listed = [meta.path for meta in bucket.list_objects("docs/")]

        assert listed == ["docs/alias.txt", "docs/real.txt", "docs/target.txt"]
        for path in listed:
            with bucket.get_object(path):
                pass

    def test_invalid_bucket_name_gives_broken_bucket(self, store: LocalObjectStore) -> None:
        bucket = store.bucket("..")

        assert isinstance(bucket, BrokenBucket)
        with pytest.raises(StorageBackendError) as exc_info:
            bucket.head_object("x.txt")

        assert isinstance(exc_info.value.cause, InvalidObjectPathError)
        assert exc_info.value.__cause__ is bucket.error


class TestDeferredBucketErrors:
    """Bucket preparation failures surface on every operation."""

    def test_bucket_path_is_a_file(self, store: LocalObjectStore, base_dir: Path) -> None:
        (base_dir / "blocked").write_bytes(b"not a directory")

        bucket = store.bucket("blocked")

        assert isinstance(bucket, BrokenBucket)
        assert bucket.name == "blocked"
        with pytest.raises(StorageBackendError):
            bucket.get_object("x.txt")
        with pytest.raises(StorageBackendError):
            bucket.put_object("x.txt", b"x")
        with pytest.raises(StorageBackendError):
            bucket.head_object("x.txt")
        with pytest.raises(StorageBackendError):
            bucket.delete_object("x.txt")
        with pytest.raises(StorageBackendError):
            bucket.list_objects("")
        with pytest.raises(StorageBackendError):
            bucket.delete_objects(["x.txt"])
        with pytest.raises(StorageBackendError):
            bucket.get_object_size("x.txt")
        with pytest.raises(StorageBackendError):
            bucket.sign_url("x.txt", "GET", 60)

    def test_replayed_errors_are_fresh(self, store: LocalObjectStore, base_dir: Path) -> None:
        (base_dir / "blocked").write_bytes(b"not a directory")
        bucket = store.bucket("blocked")
        assert isinstance(bucket, BrokenBucket)
        captured_traceback = bucket.error.__traceback__

        raised = []
        for _ in range(3):
            with pytest.raises(StorageBackendError) as exc_info:
                bucket.get_object("x.txt")
            raised.append(exc_info.value)

        assert len({id(e) for e in raised}) == 3
        assert all(e is not bucket.error and e.cause is bucket.error for e in raised)
        assert bucket.error.__traceback__ is captured_traceback

    def test_fresh_handle_recovers(self, store: LocalObjectStore, base_dir: Path) -> None:
        (base_dir / "blocked").write_bytes(b"not a directory")
        broken = store.bucket("blocked")

        (base_dir / "blocked").unlink()
        fresh = store.bucket("blocked")

        with pytest.raises(StorageBackendError):
            broken.head_object("x.txt")
        fresh.put_object("x.txt", b"ok")
        assert fresh.head_object("x.txt") is True

    def test_bucket_directory_created_on_access(self, store: LocalObjectStore, base_dir: Path) -> None:
        store.bucket("fresh")

        assert (base_dir / "fresh").is_dir()

    def test_base_path_is_a_file(self, tmp_path: Path) -> None:
        base = tmp_path / "file"
        base.write_bytes(b"x")

        with pytest.raises(StorageBackendError):
            LocalObjectStore(LocalConfig(base_path=str(base)))

    def test_base_directory_created(self, tmp_path: Path) -> None:
        base = tmp_path / "a" / "b"

        store = LocalObjectStore(LocalConfig(base_path=str(base)))

        assert base.is_dir()
        assert store.name == "local"


class TestSignURL:
    """Tests for local signed URL generation."""

    def test_url_format_and_signature(self, bucket: Bucket) -> None:
        url = bucket.sign_url("test/example.txt", "GET", 100)

        parts = urlsplit(url)
        query = parse_qs(parts.query)
        expires = int(query["expires"][0])

        assert f"{parts.scheme}://{parts.netloc}" == "http://testserver"
        assert parts.path == f"/{TEST_BUCKET}/test/example.txt"
        assert query["signature"][0] == sign(
            "GET", f"{TEST_BUCKET}/test/example.txt", expires, TEST_SECRET
        )

    def test_url_quotes_path(self, bucket: Bucket) -> None:
        url = bucket.sign_url("dir/my file.txt", "PUT", 100)

        assert urlsplit(url).path == f"/{TEST_BUCKET}/dir/my%20file.txt"

    def test_unsupported_method(self, bucket: Bucket) -> None:
        with pytest.raises(UnsupportedMethodError):
            bucket.sign_url("test/example.txt", "POST", 100)

    def test_signing_requires_http_settings(self, base_dir: Path) -> None:
        store = LocalObjectStore(LocalConfig(base_path=str(base_dir)))

        with pytest.raises(StorageBackendError):
            store.bucket(TEST_BUCKET).sign_url("test/example.txt", "GET", 100)
