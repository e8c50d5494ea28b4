"""
Historical consistency check (HCC).

For every opted-in pair a sliding window of the last N accepted values is kept
as a ring buffer plus running sum and sum of squares. Once the window is full,
each new value is compared against a band of k standard deviations around the
reference value (the last value not flagged inconsistent).

All arithmetic is on integers so that every implementation classifies the
same value the same way.
"""
import logging
from typing import Iterable, Optional

from oracle_v2.containers import EnumerableSet, RingBuffer
from oracle_v2.core import HccState
from oracle_v2.errors import VarianceBitWidthExceeded
from oracle_v2.events import EventBus, HCC_STATE_CHANGED
from oracle_v2.state import StateOverlay, hcc_window_key, HCC_PAIRS_KEY

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SIZE = 50
DEFAULT_K = 3
VARIANCE_BIT_LIMIT = 256


def rounded_variance(total: int, total_sq: int, n: int) -> int:
    """
    Population variance (n*sum_sq - sum^2) / n^2 rounded to the nearest
    integer, halves rounding up.
    """
    numerator = n * total_sq - total * total
    if numerator.bit_length() >= VARIANCE_BIT_LIMIT:
        raise VarianceBitWidthExceeded(
            f"variance numerator needs {numerator.bit_length()} bits"
        )
    denominator = n * n
    quotient, remainder = divmod(numerator, denominator)
    if denominator - remainder <= remainder:
        quotient += 1
    return quotient


def nearest_isqrt(value: int) -> int:
    """
    Integer square root by bisection, returning whichever of floor(sqrt) and
    floor(sqrt) + 1 squares closer to value (ties keep the floor).
    """
    if value < 0:
        raise ValueError("square root of a negative value")
    bits = value.bit_length()
    lo, hi = 0, (1 << ((bits + 1) // 2 + 1)) - 1
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if mid * mid <= value:
            lo = mid
        else:
            hi = mid - 1
    floor_root = lo
    ceil_root = floor_root + 1
    if ceil_root * ceil_root - value < value - floor_root * floor_root:
        return ceil_root
    return floor_root


class ConsistencyWindow:
    def __init__(self, size: int = DEFAULT_WINDOW_SIZE):
        self.size = size
        self.ring: RingBuffer[int] = RingBuffer(size)
        self.total = 0
        self.total_sq = 0
        self.reference: Optional[int] = None
        self.state = HccState.INSUFFICIENT_HISTORY

    def push(self, value: int, k: int = DEFAULT_K) -> HccState:
        """Add value to the window and classify it."""
        if not self.ring.is_full():
            self.total += value
            self.total_sq += value * value
            self.ring.push(value)
            self.state = HccState.INSUFFICIENT_HISTORY
            self.reference = value
            return self.state

        stale = self.ring.oldest()
        total = self.total + value - stale
        total_sq = self.total_sq + value * value - stale * stale

        variance = rounded_variance(total, total_sq, self.size)
        deviation = nearest_isqrt(variance)
        lower = max(0, self.reference - k * deviation)
        upper = self.reference + k * deviation

        if lower <= value <= upper:
            state = HccState.CONSISTENT
        else:
            state = HccState.INCONSISTENT
        logger.debug(
            f"HCC value={value} reference={self.reference} variance={variance} "
            f"band=[{lower}, {upper}] -> {state.value}"
        )

        self.ring.push(value)
        self.total = total
        self.total_sq = total_sq
        self.state = state
        if state == HccState.CONSISTENT:
            self.reference = value
        return state

    def to_dict(self) -> dict:
        # Sums exceed msgpack's integer range, store them as decimal strings
        return {
            'size': self.size,
            'values': [str(v) for v in self.ring],
            'total': str(self.total),
            'total_sq': str(self.total_sq),
            'reference': None if self.reference is None else str(self.reference),
            'state': self.state.value,
        }

    @staticmethod
    def from_dict(data: dict) -> 'ConsistencyWindow':
        window = ConsistencyWindow(data['size'])
        window.ring = RingBuffer(data['size'], [int(v) for v in data['values']])
        window.total = int(data['total'])
        window.total_sq = int(data['total_sq'])
        window.reference = None if data['reference'] is None else int(data['reference'])
        window.state = HccState(data['state'])
        return window


class ConsistencyChecker:
    def __init__(self, state: StateOverlay, events: Optional[EventBus] = None,
                 window_size: int = DEFAULT_WINDOW_SIZE, k: int = DEFAULT_K):
        self.state = state
        self.events = events or EventBus()
        self.window_size = window_size
        self.k = k

    # --- opt-in set ---

    def _pairs(self) -> EnumerableSet[int]:
        return EnumerableSet(self.state.get_obj(HCC_PAIRS_KEY) or [])

    def enabled_pairs(self) -> list[int]:
        return self._pairs().to_list()

    def is_enabled(self, pair_id: int) -> bool:
        return pair_id in self._pairs()

    def enable(self, pair_ids: Iterable[int]) -> list[int]:
        """Opt pairs in; returns the ones that were not already tracked."""
        pairs = self._pairs()
        added = [pair_id for pair_id in pair_ids if pairs.add(pair_id)]
        self.state.put_obj(HCC_PAIRS_KEY, pairs.to_list())
        return added

    def disable(self, pair_ids: Iterable[int]) -> list[int]:
        """Opt pairs out and drop their windows."""
        pairs = self._pairs()
        removed = []
        for pair_id in pair_ids:
            if pairs.remove(pair_id):
                self.state.delete(hcc_window_key(pair_id))
                removed.append(pair_id)
        self.state.put_obj(HCC_PAIRS_KEY, pairs.to_list())
        return removed

    # --- windows ---

    def _load_window(self, pair_id: int) -> Optional[ConsistencyWindow]:
        data = self.state.get_obj(hcc_window_key(pair_id))
        if data is None:
            return None
        window = ConsistencyWindow.from_dict(data)
        if window.size != self.window_size:
            logger.info(
                f"Pair {pair_id}: window size changed {window.size} -> {self.window_size}, restarting"
            )
            return None
        return window

    def update(self, pair_id: int, value: int) -> HccState:
        window = self._load_window(pair_id)
        previous = window.state if window else None
        if window is None:
            window = ConsistencyWindow(self.window_size)

        try:
            state = window.push(value, self.k)
        except VarianceBitWidthExceeded as e:
            logger.error(f"Pair {pair_id}: HCC overflow guard hit for value {value}: {e}")
            raise

        self.state.put_obj(hcc_window_key(pair_id), window.to_dict())
        if state != previous:
            self.events.emit(
                HCC_STATE_CHANGED,
                pair_id=pair_id,
                previous=previous.value if previous else None,
                state=state.value,
            )
        return state

    def state_of(self, pair_id: int) -> HccState:
        window = self._load_window(pair_id)
        return window.state if window else HccState.INSUFFICIENT_HISTORY

    def states(self, pair_ids: Iterable[int]) -> list[tuple[int, HccState]]:
        """(pair_id, state) for each requested pair that is opted in."""
        pairs = self._pairs()
        return [(pair_id, self.state_of(pair_id)) for pair_id in pair_ids if pair_id in pairs]
