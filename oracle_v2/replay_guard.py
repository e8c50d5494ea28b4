"""
Bounded memory of Merkle roots whose committee signature already verified.

A root found here lets a resubmitted batch skip the pairing check. It does
not skip Merkle verification or price upserts; freshness is enforced by the
price store's round rule.
"""
import logging

from oracle_v2.containers import BoundedRingSet
from oracle_v2.errors import DuplicateRoot
from oracle_v2.state import StateOverlay, REPLAY_GUARD_KEY

logger = logging.getLogger(__name__)

DEFAULT_REPLAY_WINDOW = 500


class ReplayGuard:
    def __init__(self, capacity: int = DEFAULT_REPLAY_WINDOW):
        self.roots: BoundedRingSet[bytes] = BoundedRingSet(capacity)

    @property
    def capacity(self) -> int:
        return self.roots.capacity

    def seen(self, root: bytes) -> bool:
        return root in self.roots

    def record(self, root: bytes):
        """Remember root, evicting the oldest one when the window is full."""
        if root in self.roots:
            raise DuplicateRoot(f"root {root.hex()} already recorded")
        evicted = self.roots.add(root)
        if evicted is not None:
            logger.debug(f"Replay guard evicted root {evicted.hex()[:16]}")

    def __len__(self) -> int:
        return len(self.roots)

    def to_dict(self) -> dict:
        return self.roots.to_dict()

    @staticmethod
    def from_dict(data: dict) -> 'ReplayGuard':
        guard = ReplayGuard(data['capacity'])
        guard.roots = BoundedRingSet.from_dict(data)
        return guard

    @classmethod
    def load(cls, state: StateOverlay, capacity: int = DEFAULT_REPLAY_WINDOW) -> 'ReplayGuard':
        data = state.get_obj(REPLAY_GUARD_KEY)
        if data is None:
            return cls(capacity)
        guard = cls.from_dict(data)
        if guard.capacity != capacity:
            # Window size changed in config: keep the newest roots that still fit
            resized = cls(capacity)
            for root in list(guard.roots)[-capacity:]:
                resized.record(root)
            return resized
        return guard

    def save(self, state: StateOverlay):
        state.put_obj(REPLAY_GUARD_KEY, self.to_dict())
