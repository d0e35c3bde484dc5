"""Bucketry CLI - object store operations and the signed-access server.

Usage:
    bucketry [--config FILE] serve [--host HOST] [--port PORT]
    bucketry [--config FILE] sign BUCKET PATH [--method GET] [--ttl SECONDS]
    bucketry [--config FILE] ls BUCKET [PREFIX]
    bucketry [--config FILE] put BUCKET PATH FILE [--acl ACL]
    bucketry [--config FILE] get BUCKET PATH [--out FILE]
    bucketry [--config FILE] rm BUCKET PATH [PATH ...]

Settings come from --config (JSON or YAML) or BUCKETRY_* environment
variables (see bucketry.storage.settings).

Exit codes:
    0: Success
    1: Storage error
    2: Usage error
"""

from __future__ import annotations

import argparse
import logging
import shutil
import sys
from pathlib import Path

from bucketry.storage.acl import CannedACL
from bucketry.storage.errors import ObjectStorageError
from bucketry.storage.factory import new_object_store
from bucketry.storage.filesystem_store import LocalObjectStore
from bucketry.storage.object_store import ObjectStore
from bucketry.storage.settings import StoreSettings, load_settings, load_settings_file
from bucketry.storage.signing import SIGNABLE_METHODS

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_TTL_SECONDS = 900


def _load_settings(args: argparse.Namespace) -> StoreSettings:
    if args.config:
        return load_settings_file(args.config)
    return load_settings()


def _open_store(args: argparse.Namespace) -> ObjectStore:
    return new_object_store(_load_settings(args))


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the signed-access HTTP server for the local backend."""
    import uvicorn

    from bucketry.api.main import create_app

    store = _open_store(args)
    if not isinstance(store, LocalObjectStore):
        print(f"serve requires the local backend, got {store.name}", file=sys.stderr)
        return 2

    try:
        app = create_app(store, max_body_bytes=args.max_body_bytes)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2

    logger.info("Serving %s on %s:%d", store.base_dir, args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())
    return 0


def cmd_sign(args: argparse.Namespace) -> int:
    """Print a signed URL for an object."""
    store = _open_store(args)
    url = store.bucket(args.bucket).sign_url(args.path, args.method, args.ttl)
    print(url)
    return 0


def cmd_ls(args: argparse.Namespace) -> int:
    """List object paths under a prefix."""
    store = _open_store(args)
    for meta in store.bucket(args.bucket).list_objects(args.prefix):
        print(meta.path)
    return 0


def cmd_put(args: argparse.Namespace) -> int:
    """Upload a local file as an object."""
    store = _open_store(args)
    bucket = store.bucket(args.bucket)
    try:
        with open(args.file, "rb") as f:
            bucket.put_object_with_acl(args.path, f, CannedACL(args.acl))
    except OSError as e:
        print(f"Cannot read {args.file}: {e}", file=sys.stderr)
        return 2
    return 0


def cmd_get(args: argparse.Namespace) -> int:
    """Download an object to a file or stdout."""
    store = _open_store(args)
    with store.bucket(args.bucket).get_object(args.path) as obj:
        if args.out:
            with open(args.out, "wb") as f:
                shutil.copyfileobj(obj, f)
        else:
            for chunk in obj.iter_chunks():
                sys.stdout.buffer.write(chunk)
            sys.stdout.buffer.flush()
    return 0


def cmd_rm(args: argparse.Namespace) -> int:
    """Delete one or more objects."""
    store = _open_store(args)
    store.bucket(args.bucket).delete_objects(list(args.paths))
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="bucketry",
        description="Bucketry - one object storage API over local and S3 backends",
    )
    parser.add_argument(
        "--config",
        metavar="FILE",
        type=Path,
        default=None,
        help="JSON or YAML settings file (defaults to BUCKETRY_* env vars)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    serve_parser = subparsers.add_parser("serve", help="Serve signed URLs for the local backend")
    serve_parser.add_argument("--host", default=DEFAULT_HOST)
    serve_parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    serve_parser.add_argument(
        "--max-body-bytes",
        type=int,
        default=None,
        help="Reject PUT bodies larger than this with 413",
    )
    serve_parser.set_defaults(handler=cmd_serve)

    sign_parser = subparsers.add_parser("sign", help="Print a signed URL")
    sign_parser.add_argument("bucket")
    sign_parser.add_argument("path")
    sign_parser.add_argument("--method", default="GET", choices=sorted(SIGNABLE_METHODS))
    sign_parser.add_argument("--ttl", type=int, default=DEFAULT_TTL_SECONDS, help="Seconds")
    sign_parser.set_defaults(handler=cmd_sign)

    ls_parser = subparsers.add_parser("ls", help="List objects")
    ls_parser.add_argument("bucket")
    ls_parser.add_argument("prefix", nargs="?", default="")
    ls_parser.set_defaults(handler=cmd_ls)

    put_parser = subparsers.add_parser("put", help="Upload a file")
    put_parser.add_argument("bucket")
    put_parser.add_argument("path")
    put_parser.add_argument("file", type=Path)
    put_parser.add_argument(
        "--acl",
        default=CannedACL.DEFAULT.value,
        choices=[acl.value for acl in CannedACL],
    )
    put_parser.set_defaults(handler=cmd_put)

    get_parser = subparsers.add_parser("get", help="Download an object")
    get_parser.add_argument("bucket")
    get_parser.add_argument("path")
    get_parser.add_argument("--out", metavar="FILE", type=Path, default=None)
    get_parser.set_defaults(handler=cmd_get)

    rm_parser = subparsers.add_parser("rm", help="Delete objects")
    rm_parser.add_argument("bucket")
    rm_parser.add_argument("paths", nargs="+")
    rm_parser.set_defaults(handler=cmd_rm)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Exit codes:
        0: Success
        1: Storage error
        2: Usage error
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 2

    try:
        return int(args.handler(args))
    except ObjectStorageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
