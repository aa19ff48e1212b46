from datetime import timedelta

import pytest

from sharebox.models import FileRecord, utcnow
from sharebox.services import access


def _record(**overrides):
    values = {
        "share_id": "share-1",
        "original_name": "report.pdf",
        "stored_name": "abc.pdf",
        "content_type": "application/pdf",
        "size_bytes": 10,
        "owner_id": "alice",
    }
    values.update(overrides)
    return FileRecord(**values)


def test_missing_record_is_not_found():
    decision = access.check(None, access.Requester.visitor())
    assert not decision
    assert decision.reason is access.DenyReason.NOT_FOUND


def test_foreign_owner_is_not_found_before_gone():
    record = _record(is_active=False)
    decision = access.check(record, access.Requester.owner("bob"))
    assert decision.reason is access.DenyReason.NOT_FOUND


def test_inactive_and_expired_are_gone():
    assert access.check(_record(is_active=False), access.Requester.owner("alice")).reason is access.DenyReason.GONE
    expired = _record(expires_at=utcnow() - timedelta(seconds=1))
    assert access.check(expired, access.Requester.visitor()).reason is access.DenyReason.GONE


def test_expiry_boundary_counts_as_expired():
    now = utcnow()
    record = _record(expires_at=now)
    assert access.check(record, access.Requester.visitor(), now=now).reason is access.DenyReason.GONE
    assert access.check(record, access.Requester.visitor(), now=now - timedelta(seconds=1))


def test_password_only_guards_content():
    record = _record(password_hash=access.hash_secret("secret"))
    assert access.check(record, access.Requester.visitor(), "").reason is access.DenyReason.UNAUTHORIZED
    assert access.check(record, access.Requester.visitor(), "nope").reason is access.DenyReason.UNAUTHORIZED
    assert access.check(record, access.Requester.visitor(), "secret")
    assert access.check(record, access.Requester.visitor(), None, content=False)


def test_gone_wins_over_password():
    record = _record(password_hash=access.hash_secret("secret"), is_active=False)
    assert access.check(record, access.Requester.visitor(), None).reason is access.DenyReason.GONE


def test_public_flag_does_not_affect_share_links():
    assert access.check(_record(is_public=False), access.Requester.visitor())


def test_stored_hash_is_not_the_plain_password():
    hashed = access.hash_secret("secret")
    assert hashed != "secret"
    assert access.verify_secret(_record(password_hash=hashed), "secret")


@pytest.mark.parametrize(
    "record, requester, secret, error",
    [
        (None, access.Requester.visitor(), None, "NotFound"),
        (_record(is_active=False), access.Requester.owner("alice"), None, "Gone"),
        (_record(password_hash=access.hash_secret("pw12")), access.Requester.visitor(), "x", "Unauthorized"),
    ],
)
def test_require_raises_matching_error(record, requester, secret, error):
    with pytest.raises(Exception) as exc_info:
        access.require(record, requester, secret)
    assert type(exc_info.value).__name__ == error
