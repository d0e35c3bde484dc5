"""Access-control vocabulary shared by all backends.

CannedACL is the closed, backend-agnostic set of labels. Each backend ships an
ACLEnum that translates those labels into its native token: canned ACL
strings for S3-compatible services, Unix permission strings for the local
filesystem.

Reading an ACL back from a cloud backend goes the other way through
acl_from_grants(). That mapping is lossy: several native grant shapes
collapse onto the same label.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from enum import Enum

ACL = str


class CannedACL(str, Enum):
    """Backend-agnostic access-control labels."""

    PRIVATE = "private"
    PUBLIC_READ = "public-read"
    PUBLIC_READ_WRITE = "public-read-write"
    DEFAULT = "default"


class ACLEnum(ABC):
    """Per-backend translation of CannedACL labels into native tokens."""

    @abstractmethod
    def private(self) -> ACL: ...

    @abstractmethod
    def public_read(self) -> ACL: ...

    @abstractmethod
    def public_read_write(self) -> ACL: ...

    @abstractmethod
    def default(self) -> ACL: ...

    def native(self, acl: CannedACL | ACL) -> ACL:
        """Resolve a label or an already-native token to a native token.

        Strings that are not CannedACL values are passed through untouched so
        callers may use backend-specific tokens directly.
        """
        if not isinstance(acl, CannedACL):
            try:
                acl = CannedACL(acl)
            except ValueError:
                return acl

        if acl is CannedACL.PRIVATE:
            return self.private()
        if acl is CannedACL.PUBLIC_READ:
            return self.public_read()
        if acl is CannedACL.PUBLIC_READ_WRITE:
            return self.public_read_write()
        return self.default()


class FileModeACL(ACLEnum):
    """Local filesystem vocabulary: octal permission strings."""

    def private(self) -> ACL:
        return "0600"

    def public_read(self) -> ACL:
        return "0644"

    def public_read_write(self) -> ACL:
        return "0666"

    def default(self) -> ACL:
        return "0644"


class S3CannedACL(ACLEnum):
    """S3-compatible canned ACLs. The default is empty (bucket policy applies)."""

    def private(self) -> ACL:
        return "private"

    def public_read(self) -> ACL:
        return "public-read"

    def public_read_write(self) -> ACL:
        return "public-read-write"

    def default(self) -> ACL:
        return ""


def acl_from_grants(permissions: Iterable[str]) -> CannedACL:
    """Collapse a vendor grant list onto the closest CannedACL label.

    Precedence: FULL_CONTROL, or READ together with WRITE, is
    PUBLIC_READ_WRITE; READ alone is PUBLIC_READ; anything else is PRIVATE.

    Args:
        permissions: Permission names of every grant on the object.

    Returns:
        The approximated label.
    """
    granted = set(permissions)
    if "FULL_CONTROL" in granted or {"READ", "WRITE"} <= granted:
        return CannedACL.PUBLIC_READ_WRITE
    if "READ" in granted:
        return CannedACL.PUBLIC_READ
    return CannedACL.PRIVATE
