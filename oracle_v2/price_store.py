"""
Latest verified price per trading pair.

Rounds and timestamps are millisecond values. A slot's round only ever
increases: an entry whose round is not strictly newer than the stored one is
ignored without error.
"""
import logging
from typing import Iterable, Optional

from oracle_v2.core import (
    PriceEntry,
    DerivedPrice,
    Operation,
    RoundComparison,
    MAX_DECIMAL,
)
from oracle_v2.errors import (
    RoundOutOfBounds,
    NotFound,
    SamePairId,
    InvalidOperation,
    DecimalOutOfRange,
    DivisionByZero,
)
from oracle_v2.events import EventBus, PRICE_UPDATED
from oracle_v2.state import StateOverlay, price_key

logger = logging.getLogger(__name__)

# How far (ms) a round may run ahead of the current time
ROUND_TOLERANCE = 10_000
DERIVED_DECIMAL = 18


class PriceStore:
    def __init__(self, state: StateOverlay, events: Optional[EventBus] = None,
                 round_tolerance: int = ROUND_TOLERANCE, max_decimal: int = MAX_DECIMAL):
        self.state = state
        self.events = events or EventBus()
        self.round_tolerance = round_tolerance
        self.max_decimal = max_decimal

    def _load(self, pair_id: int) -> Optional[PriceEntry]:
        data = self.state.get_obj(price_key(pair_id))
        return PriceEntry.from_dict(data) if data else None

    def upsert(self, entry: PriceEntry, now: int) -> bool:
        """
        Store entry if its round is newer than the stored one.

        Returns True when the slot changed. Raises RoundOutOfBounds if the
        round is further than round_tolerance ahead of now, whether or not
        the pair already has a slot.
        """
        if entry.round > now + self.round_tolerance:
            raise RoundOutOfBounds(
                f"Pair {entry.pair_id}: round {entry.round} is more than "
                f"{self.round_tolerance}ms ahead of {now}"
            )

        current = self._load(entry.pair_id)
        if current is not None and current.round >= entry.round:
            logger.debug(
                f"Pair {entry.pair_id}: ignoring round {entry.round}, stored round is {current.round}"
            )
            return False

        self.state.put_obj(price_key(entry.pair_id), entry.to_dict())
        self.events.emit(
            PRICE_UPDATED,
            pair_id=entry.pair_id,
            value=entry.value,
            decimal=entry.decimal,
            timestamp=entry.timestamp,
            round=entry.round,
        )
        return True

    def get(self, pair_id: int) -> PriceEntry:
        entry = self._load(pair_id)
        if entry is None:
            raise NotFound(f"No price stored for pair {pair_id}")
        return entry

    def get_many(self, pair_ids: Iterable[int]) -> list[PriceEntry]:
        """Entries for the pairs that have data, in request order."""
        entries = []
        for pair_id in pair_ids:
            entry = self._load(pair_id)
            if entry is not None:
                entries.append(entry)
        return entries

    def get_derived(self, pair_a: int, pair_b: int, op) -> DerivedPrice:
        """
        Combine two stored prices into an 18-decimal fixed-point value.

        Args:
            pair_a: First operand pair
            pair_b: Second operand pair
            op: Operation.MULTIPLY (a * b) or Operation.DIVIDE (a / b), or their int codes

        Returns:
            DerivedPrice carrying the value, decimal 18, the absolute round gap
            and which operand has the newer round.
        """
        if pair_a == pair_b:
            raise SamePairId(f"Cannot derive pair {pair_a} against itself")
        try:
            operation = Operation(op)
        except ValueError:
            raise InvalidOperation(f"Unsupported derived price operation: {op!r}")

        first = self.get(pair_a)
        second = self.get(pair_b)
        a = self._normalize(first)
        b = self._normalize(second)
        scale = 10 ** DERIVED_DECIMAL

        if operation == Operation.MULTIPLY:
            value = a * b // scale
        else:
            if b == 0:
                raise DivisionByZero(f"Pair {pair_b} has a zero price")
            value = a * scale // b

        if first.round == second.round:
            comparison = RoundComparison.EQUAL
        elif first.round > second.round:
            comparison = RoundComparison.FIRST_NEWER
        else:
            comparison = RoundComparison.SECOND_NEWER

        return DerivedPrice(
            value=value,
            decimal=DERIVED_DECIMAL,
            round_gap=abs(first.round - second.round),
            comparison=comparison,
        )

    def _normalize(self, entry: PriceEntry) -> int:
        if entry.decimal > self.max_decimal:
            raise DecimalOutOfRange(
                f"Pair {entry.pair_id} has decimal {entry.decimal} > {self.max_decimal}"
            )
        return entry.value * 10 ** (DERIVED_DECIMAL - entry.decimal)
