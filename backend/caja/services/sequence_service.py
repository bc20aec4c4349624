# Overview: Scoped monotonic counters backed by the number_sequences table.

from __future__ import annotations

from typing import Callable

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import NumberSequence


class SequenceError(Exception):
    """Raised when sequence allocation fails."""
    pass


def _allocate_existing(scope: str, key: str) -> int | None:
    stmt = (
        update(NumberSequence)
        .where(NumberSequence.scope == scope, NumberSequence.key == key)
        .values(next_value=NumberSequence.next_value + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(NumberSequence.next_value)
        .filter_by(scope=scope, key=key)
        .scalar()
    )
    return current - 1


def next_sequence_value(
    scope: str,
    key: str,
    *,
    seed: Callable[[], int | None] | None = None,
) -> int:
    """
    Allocate the next number in (scope, key). Does not commit.

    Must run inside the transaction that inserts the numbered row. The
    first allocation in a scope starts at max(existing)+1 as reported by
    ``seed`` (or 1), so rows written before the counter existed are honored.
    """
    if not scope:
        raise SequenceError("scope is required")
    if not key:
        raise SequenceError("key is required")

    value = _allocate_existing(scope, key)
    if value is not None:
        return value

    start = (seed() or 0) + 1 if seed else 1
    try:
        with db.session.begin_nested():
            db.session.add(NumberSequence(scope=scope, key=key, next_value=start + 1))
        return start
    except IntegrityError:
        # Another writer created the row first; take the next value from it.
        value = _allocate_existing(scope, key)
        if value is None:
            raise
        return value
