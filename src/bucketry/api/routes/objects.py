"""Signed object access routes for the Bucketry API.

Serves GET/PUT/HEAD/DELETE /{bucket}/{path}?expires=...&signature=...

Each request goes through Parse -> Verify -> Dispatch -> Respond and is
verified on its own; there are no sessions. Verification order:

1. expires must be a base-10 integer (400 otherwise)
2. the path must name a bucket and an object inside it (404 otherwise)
3. the signature recomputed from method, path, expires and the shared
   secret must equal the presented one (403 otherwise)
4. the URL must not have expired (403 otherwise)

Only then is the request dispatched to the bucket. Storage errors are
translated to statuses by bucketry.api.errors.
"""

from __future__ import annotations

import logging
import mimetypes
import tempfile
from collections.abc import Iterator

from fastapi import APIRouter, Request, Response
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from bucketry.api.errors import BucketryHttpError
from bucketry.storage.errors import InvalidObjectPathError
from bucketry.storage.filesystem_store import validate_bucket_name, validate_object_path
from bucketry.storage.models import StoredObject
from bucketry.storage.object_store import Bucket, ObjectStore
from bucketry.storage.signing import (
    EXPIRES_PARAM,
    SIGNATURE_PARAM,
    parse_expires,
    verify_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Objects"])

DEFAULT_CONTENT_TYPE = "application/octet-stream"
_SPOOL_MAX_MEMORY = 1024 * 1024


def parse_bucket_and_path(object_key: str) -> tuple[str, str]:
    """Split "{bucket}/{path}" into its bucket name and object path.

    Raises:
        InvalidObjectPathError: If there is no object path after the bucket,
            or either part is unsafe.
    """
    bucket_name, sep, path = object_key.partition("/")
    if not sep or not bucket_name or not path:
        raise InvalidObjectPathError("Expected /{bucket}/{path}", key=object_key)
    validate_bucket_name(bucket_name)
    validate_object_path(path, bucket=bucket_name)
    return bucket_name, path


def content_type_for(path: str) -> str:
    """Return the MIME type derived from the path's extension."""
    return mimetypes.guess_type(path)[0] or DEFAULT_CONTENT_TYPE


def _stream_and_close(obj: StoredObject) -> Iterator[bytes]:
    try:
        yield from obj.iter_chunks()
    finally:
        obj.close()


async def _get(bucket: Bucket, path: str) -> Response:
    obj = await run_in_threadpool(bucket.get_object, path)
    headers = {}
    if obj.size_bytes is not None:
        headers["Content-Length"] = str(obj.size_bytes)
    # The background task closes the object when the body was never iterated.
    return StreamingResponse(
        _stream_and_close(obj),
        media_type=content_type_for(path),
        headers=headers,
        background=BackgroundTask(obj.close),
    )


async def _put(request: Request, bucket: Bucket, path: str) -> Response:
    max_body_bytes: int | None = request.app.state.max_body_bytes
    with tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_MEMORY) as spool:
        received = 0
        async for chunk in request.stream():
            received += len(chunk)
            if max_body_bytes is not None and received > max_body_bytes:
                raise BucketryHttpError(413, "PAYLOAD_TOO_LARGE", "Request body too large")
            spool.write(chunk)
        spool.seek(0)
        await run_in_threadpool(bucket.put_object, path, spool)
    return Response(status_code=200)


async def _head(bucket: Bucket, path: str) -> Response:
    exists = await run_in_threadpool(bucket.head_object, path)
    return Response(status_code=200 if exists else 404)


async def _delete(bucket: Bucket, path: str) -> Response:
    await run_in_threadpool(bucket.delete_object, path)
    return Response(status_code=200)


@router.api_route(
    "/{object_key:path}",
    methods=["GET", "PUT", "HEAD", "DELETE"],
    include_in_schema=False,
)
async def signed_object_access(request: Request, object_key: str) -> Response:
    """Verify a signed request and dispatch it to the bucket."""
    store: ObjectStore = request.app.state.object_store
    secret: str = request.app.state.signing_secret

    # Parse
    expires = parse_expires(request.query_params.get(EXPIRES_PARAM))
    bucket_name, path = parse_bucket_and_path(object_key)

    # Verify
    verify_signature(
        request.method,
        f"{bucket_name}/{path}",
        expires,
        request.query_params.get(SIGNATURE_PARAM),
        secret,
    )

    # Dispatch
    logger.debug("Dispatching %s bucket=%s key=%s", request.method, bucket_name, path)
    bucket = await run_in_threadpool(store.bucket, bucket_name)
    if request.method == "GET":
        return await _get(bucket, path)
    if request.method == "PUT":
        return await _put(request, bucket, path)
    if request.method == "HEAD":
        return await _head(bucket, path)
    return await _delete(bucket, path)
