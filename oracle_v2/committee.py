"""
Registry of committee BLS public keys and verification of committee
signatures over Merkle roots.
"""
import logging
from typing import Callable, Optional

from oracle_v2.containers import EnumerableSet
from oracle_v2.crypto import bls_verify, BLS_PUBLIC_KEY_LENGTH
from oracle_v2.errors import CommitteeKeyMissing, InvalidKeyLength, Unauthorized
from oracle_v2.events import EventBus, COMMITTEE_KEY_ADDED, COMMITTEE_KEY_REMOVED
from oracle_v2.state import StateOverlay, committee_key, COMMITTEE_IDS_KEY

logger = logging.getLogger(__name__)


class CommitteeRegistry:
    def __init__(self,
                 state: StateOverlay,
                 is_authorized: Callable[[Optional[bytes]], bool],
                 events: Optional[EventBus] = None):
        """
        Args:
            state: Overlay the registry reads and stages writes through
            is_authorized: Governance predicate gating register/remove
            events: Bus receiving key added/removed notifications
        """
        self.state = state
        self.is_authorized = is_authorized
        self.events = events or EventBus()

    def _ids(self) -> EnumerableSet[int]:
        return EnumerableSet(self.state.get_obj(COMMITTEE_IDS_KEY) or [])

    def _require_authorized(self, caller, action: str):
        if not self.is_authorized(caller):
            who = caller.hex() if isinstance(caller, bytes) else caller
            raise Unauthorized(f"Caller {who} may not {action}")

    def register(self, caller: bytes, committee_id: int, public_key: bytes):
        """Add or rotate the public key of a committee."""
        self._require_authorized(caller, "register committee keys")
        if len(public_key) != BLS_PUBLIC_KEY_LENGTH:
            raise InvalidKeyLength(
                f"Committee public key must be {BLS_PUBLIC_KEY_LENGTH} bytes, got {len(public_key)}"
            )

        ids = self._ids()
        rotated = committee_id in ids
        ids.add(committee_id)
        self.state.put(committee_key(committee_id), bytes(public_key))
        self.state.put_obj(COMMITTEE_IDS_KEY, ids.to_list())

        self.events.emit(
            COMMITTEE_KEY_ADDED,
            committee_id=committee_id,
            public_key=bytes(public_key),
            rotated=rotated,
        )

    def remove(self, caller: bytes, committee_id: int):
        self._require_authorized(caller, "remove committee keys")
        ids = self._ids()
        if not ids.remove(committee_id):
            raise CommitteeKeyMissing(f"No key registered for committee {committee_id}")
        self.state.delete(committee_key(committee_id))
        self.state.put_obj(COMMITTEE_IDS_KEY, ids.to_list())
        self.events.emit(COMMITTEE_KEY_REMOVED, committee_id=committee_id)

    def public_key(self, committee_id: int) -> bytes:
        key = self.state.get(committee_key(committee_id))
        if key is None:
            raise CommitteeKeyMissing(f"No key registered for committee {committee_id}")
        return key

    def committee_ids(self) -> list[int]:
        return self._ids().to_list()

    def verify(self, committee_id: int, message: bytes, signature: bytes) -> bool:
        """
        Pairing check of signature over message (the raw root bytes).
        Fails closed with CommitteeKeyMissing; never mutates state.
        """
        public_key = self.public_key(committee_id)
        return bls_verify(public_key, message, signature)
