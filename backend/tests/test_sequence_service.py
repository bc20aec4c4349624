"""
Scoped counter tests.
"""

import pytest

from caja.extensions import db
from caja.models import NumberSequence
from caja.services.sequence_service import SequenceError, next_sequence_value


def _allocate(scope, key, **kwargs):
    value = next_sequence_value(scope, key, **kwargs)
    db.session.commit()
    return value


def test_counts_from_one(app):
    assert [_allocate("order", "1") for _ in range(3)] == [1, 2, 3]


def test_keys_are_independent(app):
    assert _allocate("invoice", "1-A") == 1
    assert _allocate("invoice", "1-B") == 1
    assert _allocate("invoice", "1-A") == 2
    assert _allocate("order", "1-A") == 1


def test_seed_only_used_on_first_allocation(app):
    calls = []

    def seed():
        calls.append(1)
        return 9

    assert _allocate("cash_shift", "2026-03-02", seed=seed) == 10
    assert _allocate("cash_shift", "2026-03-02", seed=seed) == 11
    assert len(calls) == 1


def test_empty_seed_starts_at_one(app):
    assert _allocate("order", "7", seed=lambda: None) == 1


def test_rollback_returns_the_number(app):
    _allocate("order", "5")

    assert next_sequence_value("order", "5") == 2
    db.session.rollback()

    assert _allocate("order", "5") == 2
    row = db.session.query(NumberSequence).filter_by(scope="order", key="5").one()
    assert row.next_value == 3


@pytest.mark.parametrize("scope,key", [("", "1"), ("order", ""), (None, "1")])
def test_scope_and_key_required(app, scope, key):
    with pytest.raises(SequenceError):
        next_sequence_value(scope, key)
