"""
Tests for the round-monotonic price store and derived prices.
"""
import pytest
from oracle_v2.core import PriceEntry, Operation, RoundComparison
from oracle_v2.errors import (
    RoundOutOfBounds,
    NotFound,
    SamePairId,
    InvalidOperation,
    DecimalOutOfRange,
    DivisionByZero,
    DomainError,
)
from oracle_v2.events import EventBus, PRICE_UPDATED
from oracle_v2.memory_db import MemoryDB
from oracle_v2.price_store import PriceStore, ROUND_TOLERANCE
from oracle_v2.state import StateOverlay

NOW = 1_700_000_000_000
E18 = 10**18


def entry(pair_id, value, decimal=18, round_=NOW):
    return PriceEntry(pair_id=pair_id, value=value, decimal=decimal, timestamp=round_, round=round_)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def store(events):
    return PriceStore(StateOverlay(MemoryDB()), events)


def test_first_write_creates_slot(store, events):
    assert store.upsert(entry(1, 5), NOW)
    assert store.get(1) == entry(1, 5)
    assert [n.kind for n in events.pending] == [PRICE_UPDATED]


def test_same_round_is_ignored(store, events):
    store.upsert(entry(1, 5, round_=100), NOW)
    events.discard()

    assert not store.upsert(entry(1, 6, round_=100), NOW)
    assert store.get(1).value == 5
    assert events.pending == []

    assert store.upsert(entry(1, 7, round_=101), NOW)
    assert store.get(1).value == 7
    assert store.get(1).round == 101


def test_older_round_is_ignored(store):
    store.upsert(entry(1, 5, round_=200), NOW)
    assert not store.upsert(entry(1, 9, round_=150), NOW)
    assert store.get(1).round == 200


def test_round_too_far_ahead(store):
    store.upsert(entry(1, 5, round_=NOW + ROUND_TOLERANCE), NOW)
    with pytest.raises(RoundOutOfBounds):
        store.upsert(entry(1, 5, round_=NOW + ROUND_TOLERANCE + 1), NOW)


def test_round_too_far_ahead_without_slot(store):
    with pytest.raises(RoundOutOfBounds):
        store.upsert(entry(2, 5, round_=NOW + ROUND_TOLERANCE + 1), NOW)
    with pytest.raises(NotFound):
        store.get(2)


def test_get_many_skips_missing(store):
    store.upsert(entry(1, 5), NOW)
    store.upsert(entry(3, 7), NOW)
    assert [e.pair_id for e in store.get_many([3, 2, 1])] == [3, 1]
    assert store.get_many([]) == []


def test_missing_pair(store):
    with pytest.raises(NotFound) as exc:
        store.get(42)
    assert "42" in str(exc.value)
    assert isinstance(exc.value, KeyError)


def test_multiply(store):
    store.upsert(entry(1, 2 * E18, round_=NOW), NOW)
    store.upsert(entry(2, 4 * E18, round_=NOW), NOW)

    derived = store.get_derived(1, 2, Operation.MULTIPLY)
    assert derived.value == 8 * E18
    assert derived.decimal == 18
    assert derived.round_gap == 0
    assert derived.comparison == RoundComparison.EQUAL


def test_divide_normalizes_decimals(store):
    # 3000.00 (2 decimals) / 2.000000 (6 decimals) = 1500
    store.upsert(entry(1, 300_000, decimal=2, round_=NOW - 5), NOW)
    store.upsert(entry(2, 2_000_000, decimal=6, round_=NOW), NOW)

    derived = store.get_derived(1, 2, Operation.DIVIDE)
    assert derived.value == 1500 * E18
    assert derived.round_gap == 5
    assert derived.comparison == RoundComparison.SECOND_NEWER

    reverse = store.get_derived(2, 1, 1)
    assert reverse.value == E18 // 1500
    assert reverse.comparison == RoundComparison.FIRST_NEWER


def test_same_pair(store):
    store.upsert(entry(1, E18), NOW)
    with pytest.raises(SamePairId):
        store.get_derived(1, 1, Operation.MULTIPLY)


def test_invalid_operation(store):
    store.upsert(entry(1, E18), NOW)
    store.upsert(entry(2, E18), NOW)
    with pytest.raises(InvalidOperation):
        store.get_derived(1, 2, 2)


def test_derived_missing_operand(store):
    store.upsert(entry(1, E18), NOW)
    with pytest.raises(NotFound):
        store.get_derived(1, 2, Operation.MULTIPLY)


def test_decimal_out_of_range(store):
    store.upsert(entry(1, E18, decimal=19), NOW)
    store.upsert(entry(2, E18), NOW)
    with pytest.raises(DecimalOutOfRange):
        store.get_derived(1, 2, Operation.MULTIPLY)


def test_division_by_zero(store):
    store.upsert(entry(1, E18), NOW)
    store.upsert(entry(2, 0), NOW)
    with pytest.raises(DivisionByZero):
        store.get_derived(1, 2, Operation.DIVIDE)
    assert store.get_derived(1, 2, Operation.MULTIPLY).value == 0


def test_domain_errors_share_base(store):
    with pytest.raises(DomainError):
        store.get_derived(5, 5, Operation.MULTIPLY)
