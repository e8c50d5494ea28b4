"""
Staged view of the oracle store.

Every verification call works against one StateOverlay. Reads fall through
to the underlying store unless the key was written during the call; writes
stay staged until commit() flushes them in a single atomic batch. A call
that fails simply discards its overlay.
"""
import logging
from typing import Optional

import msgpack

logger = logging.getLogger(__name__)

# Key schema
COMMITTEE_PREFIX = b'committee:'
COMMITTEE_IDS_KEY = b'committee:ids'
PRICE_PREFIX = b'price:'
HCC_WINDOW_PREFIX = b'hcc:window:'
HCC_PAIRS_KEY = b'hcc:pairs'
REPLAY_GUARD_KEY = b'replay:guard'
ADMIN_SET_KEY = b'admin:set'
OWNER_KEY = b'admin:owner'


def committee_key(committee_id: int) -> bytes:
    return COMMITTEE_PREFIX + str(committee_id).encode()


def price_key(pair_id: int) -> bytes:
    return PRICE_PREFIX + str(pair_id).encode()


def hcc_window_key(pair_id: int) -> bytes:
    return HCC_WINDOW_PREFIX + str(pair_id).encode()


class StateOverlay:
    def __init__(self, db):
        self.db = db
        # None marks a staged delete
        self._staged: dict[bytes, Optional[bytes]] = {}

    def get(self, key: bytes) -> Optional[bytes]:
        if key in self._staged:
            return self._staged[key]
        return self.db.get(key)

    def put(self, key: bytes, value: bytes):
        self._staged[key] = value

    def delete(self, key: bytes):
        self._staged[key] = None

    def get_obj(self, key: bytes):
        """Decode a msgpack value, or None if the key is absent."""
        raw = self.get(key)
        if raw is None:
            return None
        return msgpack.unpackb(raw, raw=False)

    def put_obj(self, key: bytes, obj):
        self.put(key, msgpack.packb(obj, use_bin_type=True))

    @property
    def dirty(self) -> bool:
        return bool(self._staged)

    def commit(self) -> int:
        """Write every staged change atomically; returns the number of keys touched."""
        if not self._staged:
            return 0
        count = len(self._staged)
        with self.db.write_batch() as batch:
            for key, value in self._staged.items():
                if value is None:
                    batch.delete(key)
                else:
                    batch.put(key, value)
        self._staged.clear()
        logger.debug(f"Committed {count} staged keys")
        return count

    def discard(self):
        if self._staged:
            logger.debug(f"Discarded {len(self._staged)} staged keys")
        self._staged.clear()
