"""Signed-URL protocol for the local backend's HTTP access layer.

A signed URL grants unauthenticated, time-limited access to one object for
one HTTP method. Nothing is stored server-side: the verifier recomputes the
signature from the request and compares.

    canonical = method + "\\n" + path + "\\n" + expires + "\\n" + secret
    signature = hex(sha256(base64(canonical)))

where method is the verb exactly as sent, path is "{bucket}/{object path}"
without a leading slash (decoded), and expires is an absolute Unix timestamp
in base-10. The expiry is part of the signed material, so editing the
expires query parameter invalidates the signature.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
import time
from datetime import timedelta
from urllib.parse import quote, urlencode

from bucketry.storage.errors import (
    InvalidExpiryError,
    SignatureExpiredError,
    SignatureMismatchError,
    UnsupportedMethodError,
)

SIGNABLE_METHODS = frozenset({"GET", "PUT", "HEAD", "DELETE"})

EXPIRES_PARAM = "expires"
SIGNATURE_PARAM = "signature"

_EXPIRES_PATTERN = re.compile(r"[0-9]+")


def sign(method: str, path: str, expires: int, secret: str) -> str:
    """Compute the signature binding method, path, expiry and secret.

    Deterministic; changing any argument changes the result.

    Args:
        method: HTTP verb, case-sensitive.
        path: "{bucket}/{object path}" without a leading slash.
        expires: Absolute Unix timestamp in seconds.
        secret: Store-wide shared secret.

    Returns:
        64-character lowercase hex string.
    """
    canonical = f"{method}\n{path}\n{expires:d}\n{secret}"
    encoded = base64.b64encode(canonical.encode("utf-8"))
    return hashlib.sha256(encoded).hexdigest()


def ttl_seconds(ttl: timedelta | int | float) -> float:
    """Normalize a ttl given as timedelta or seconds."""
    if isinstance(ttl, timedelta):
        return ttl.total_seconds()
    return float(ttl)


def expiry_from_ttl(ttl: timedelta | int | float, *, now: float | None = None) -> int:
    """Return the absolute expiry timestamp for a ttl starting now."""
    current = time.time() if now is None else now
    return int(current + ttl_seconds(ttl))


def parse_expires(raw: str | None) -> int:
    """Parse the expires query parameter.

    Raises:
        InvalidExpiryError: If the value is missing or not a base-10 integer.
    """
    if raw is None or not _EXPIRES_PATTERN.fullmatch(raw):
        raise InvalidExpiryError()
    try:
        return int(raw)
    except ValueError as e:
        # Digit strings beyond the interpreter's int conversion limit.
        raise InvalidExpiryError() from e


def verify_signature(
    method: str,
    path: str,
    expires: int,
    signature: str | None,
    secret: str,
    *,
    now: float | None = None,
) -> None:
    """Verify a presented signature against the request it arrived with.

    Args:
        method: HTTP verb of the incoming request.
        path: Decoded request path without the leading slash.
        expires: Parsed expires parameter.
        signature: Presented signature parameter.
        secret: Store-wide shared secret.
        now: Current Unix time (defaults to time.time()).

    Raises:
        SignatureMismatchError: If the recomputed signature differs.
        SignatureExpiredError: If the signature is valid but expires is past.
    """
    expected = sign(method, path, expires, secret)
    # compare_digest only accepts ASCII str, so compare the encoded bytes.
    presented = (signature or "").encode("utf-8", "replace")
    if not presented or not hmac.compare_digest(expected.encode("ascii"), presented):
        raise SignatureMismatchError(key=path)

    current = time.time() if now is None else now
    if current > expires:
        raise SignatureExpiredError(key=path, expires=expires)


def check_signable(method: str) -> None:
    """Raise UnsupportedMethodError unless method can be signed."""
    if method not in SIGNABLE_METHODS:
        raise UnsupportedMethodError(method)


def build_signed_url(http_addr: str, bucket: str, path: str, expires: int, signature: str) -> str:
    """Compose "{http_addr}/{bucket}/{path}?expires=...&signature=..."."""
    base = http_addr.rstrip("/")
    quoted_path = quote(f"{bucket}/{path}", safe="/")
    query = urlencode({EXPIRES_PARAM: str(expires), SIGNATURE_PARAM: signature})
    return f"{base}/{quoted_path}?{query}"
