"""Per-user storage ledger.

``User.storage_used`` is a running total of the bytes held by the user's
active file records. Mutations are issued as single UPDATE statements so two
requests touching the same user never lose each other's change; callers own
the surrounding transaction.
"""
from __future__ import annotations

import logging

from sqlalchemy import case, func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from sharebox.config import DEFAULT_MAX_STORAGE
from sharebox.core.exceptions import QuotaExceeded
from sharebox.models import FileRecord, User, utcnow

logger = logging.getLogger("sharebox.ledger")


def get_or_create_user(session: Session, user_id: str) -> User:
    user = session.get(User, user_id)
    if user is not None:
        return user
    user = User(id=user_id, max_storage=DEFAULT_MAX_STORAGE)
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # A concurrent request provisioned the same user first
        session.rollback()
        return session.get(User, user_id)
    session.refresh(user)
    logger.info("event=ledger_provisioned user_id=%s max_storage=%s", user_id, user.max_storage)
    return user


def ensure_capacity(user: User, incoming_bytes: int) -> None:
    # Check-then-charge is not locked; two parallel batches may overrun by one batch.
    if user.storage_used + incoming_bytes > user.max_storage:
        logger.warning(
            "event=quota_exceeded user_id=%s storage_used=%s incoming_bytes=%s max_storage=%s",
            user.id,
            user.storage_used,
            incoming_bytes,
            user.max_storage,
        )
        raise QuotaExceeded()


def charge(session: Session, user_id: str, amount: int) -> None:
    if amount <= 0:
        return
    session.exec(
        update(User)
        .where(User.id == user_id)
        .values(storage_used=User.storage_used + amount, updated_at=utcnow())
    )


def credit(session: Session, user_id: str, amount: int) -> None:
    """Give ``amount`` bytes back, never going below zero."""
    if amount <= 0:
        return
    session.exec(
        update(User)
        .where(User.id == user_id)
        .values(
            storage_used=case((User.storage_used > amount, User.storage_used - amount), else_=0),
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session="fetch")
    )


def reconcile(session: Session) -> list[dict]:
    """Recompute every user's usage from their active records and fix drift."""
    sums = dict(
        session.exec(
            select(FileRecord.owner_id, func.sum(FileRecord.size_bytes))
            .where(FileRecord.is_active == True)  # noqa: E712
            .group_by(FileRecord.owner_id)
        ).all()
    )
    corrections = []
    for user in session.exec(select(User)).all():
        expected = int(sums.get(user.id) or 0)
        if user.storage_used == expected:
            continue
        logger.warning(
            "event=ledger_drift user_id=%s recorded=%s actual=%s", user.id, user.storage_used, expected
        )
        corrections.append({"userId": user.id, "recorded": user.storage_used, "actual": expected})
        user.storage_used = expected
        session.add(user)
    session.commit()
    return corrections
