"""Single policy check applied before any read of file content or metadata.

Owner paths address a record by ``(id, owner)``; a record owned by someone
else is therefore not addressable and comes back as ``NOT_FOUND``, the same
answer as an id that never existed. Share paths address a record by its
``share_id`` alone; ``is_public`` does not take part in the decision.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from sharebox.core.exceptions import Gone, NotFound, Unauthorized
from sharebox.models import FileRecord, utcnow


class DenyReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    GONE = "gone"
    UNAUTHORIZED = "unauthorized"


@dataclass(frozen=True)
class Requester:
    """An authenticated owner, or an anonymous share-link visitor (``user_id`` None)."""

    user_id: Optional[str] = None

    @property
    def via_share_link(self) -> bool:
        return self.user_id is None

    @classmethod
    def owner(cls, user_id: str) -> "Requester":
        return cls(user_id=user_id)

    @classmethod
    def visitor(cls) -> "Requester":
        return cls()


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)

_ERRORS = {
    DenyReason.NOT_FOUND: NotFound,
    DenyReason.GONE: Gone,
    DenyReason.UNAUTHORIZED: Unauthorized,
}


def hash_secret(secret: str) -> str:
    return generate_password_hash(secret)


def verify_secret(record: FileRecord, candidate: Optional[str]) -> bool:
    if not record.password_hash or not candidate:
        return False
    return check_password_hash(record.password_hash, candidate)


def check(
    record: Optional[FileRecord],
    requester: Requester,
    supplied_secret: Optional[str] = None,
    *,
    content: bool = True,
    now: Optional[datetime] = None,
) -> Decision:
    """Decide whether ``requester`` may read ``record``.

    ``content`` is False for metadata reads, which never need the password
    and only ever learn that one is set.
    """
    if record is None:
        return Decision(False, DenyReason.NOT_FOUND)
    if not requester.via_share_link and record.owner_id != requester.user_id:
        return Decision(False, DenyReason.NOT_FOUND)
    if not record.is_live(now or utcnow()):
        return Decision(False, DenyReason.GONE)
    if content and record.has_password and not verify_secret(record, supplied_secret):
        return Decision(False, DenyReason.UNAUTHORIZED)
    return ALLOW


def require(
    record: Optional[FileRecord],
    requester: Requester,
    supplied_secret: Optional[str] = None,
    *,
    content: bool = True,
) -> FileRecord:
    """Like :func:`check` but raises the matching error on a deny."""
    decision = check(record, requester, supplied_secret, content=content)
    if not decision:
        raise _ERRORS[decision.reason]()
    return record
