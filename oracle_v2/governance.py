"""
Admin whitelist backing the is_authorized(caller) predicate.

Callers are identified by 20-byte addresses (see crypto.caller_address).
The owner is always authorized and is the only one who may change the list.
"""
import logging
from typing import Optional

from oracle_v2.containers import EnumerableSet
from oracle_v2.errors import Unauthorized
from oracle_v2.state import StateOverlay, ADMIN_SET_KEY, OWNER_KEY

logger = logging.getLogger(__name__)


class AdminAuthority:
    def __init__(self, owner: bytes, admins=None):
        self.owner = owner
        self.admins: EnumerableSet[bytes] = EnumerableSet(admins)

    def is_authorized(self, caller: Optional[bytes]) -> bool:
        if caller is None:
            return False
        return caller == self.owner or caller in self.admins

    def add_admin(self, caller: bytes, admin: bytes) -> bool:
        self._require_owner(caller)
        added = self.admins.add(admin)
        if added:
            logger.info(f"Admin {admin.hex()} added")
        return added

    def remove_admin(self, caller: bytes, admin: bytes) -> bool:
        self._require_owner(caller)
        removed = self.admins.remove(admin)
        if removed:
            logger.info(f"Admin {admin.hex()} removed")
        return removed

    def transfer_ownership(self, caller: bytes, new_owner: bytes):
        self._require_owner(caller)
        logger.info(f"Ownership transferred from {self.owner.hex()} to {new_owner.hex()}")
        self.owner = new_owner

    def _require_owner(self, caller: bytes):
        if caller != self.owner:
            raise Unauthorized("Only the owner can change the admin list")

    @classmethod
    def load(cls, state: StateOverlay, default_owner: Optional[bytes] = None) -> 'AdminAuthority':
        owner = state.get(OWNER_KEY) or default_owner
        if owner is None:
            raise Unauthorized("No owner configured for the oracle")
        admins = state.get_obj(ADMIN_SET_KEY) or []
        return cls(owner, admins)

    def save(self, state: StateOverlay):
        state.put(OWNER_KEY, self.owner)
        state.put_obj(ADMIN_SET_KEY, self.admins.to_list())
