"""
Verification pipeline for signed, batched price observations.

OracleVerifier is the only writer of oracle state. A call to
verify_and_ingest either applies every step of a batch or none of them:

    decode -> committee signature per new root -> Merkle multiproof per block
           -> round-monotonic upsert per entry -> consistency check per opted-in pair

All steps stage their writes in one StateOverlay that is committed only after
the last step succeeded. Notifications are dispatched after the commit.
"""
import logging
import threading
import time
from collections import Counter
from contextlib import contextmanager
from typing import Callable, Iterable, Optional

from oracle_v2.codec import decode
from oracle_v2.committee import CommitteeRegistry
from oracle_v2.config import OracleConfig
from oracle_v2.core import PriceEntry, DerivedPrice, HccState
from oracle_v2.errors import OracleError, InvalidSignature, InvalidMerkleProof, Unauthorized
from oracle_v2.events import EventBus, Notification, ROOT_ACCEPTED, PRICE_UPDATED, HCC_STATE_CHANGED
from oracle_v2.governance import AdminAuthority
from oracle_v2.hcc import ConsistencyChecker
from oracle_v2.merkle import verify_multiproof
from oracle_v2.monitoring import Monitor
from oracle_v2.price_store import PriceStore
from oracle_v2.replay_guard import ReplayGuard
from oracle_v2.state import StateOverlay, OWNER_KEY

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class OracleVerifier:
    def __init__(self, db, owner: Optional[bytes] = None,
                 config: Optional[OracleConfig] = None,
                 clock: Optional[Callable[[], int]] = None,
                 is_authorized: Optional[Callable[[Optional[bytes]], bool]] = None,
                 monitor: Optional[Monitor] = None):
        """
        Args:
            db: Key-value store (db.DB or memory_db.MemoryDB)
            owner: Address recorded as governance owner if the store has none yet
            config: Pipeline settings
            clock: Returns the current time in ms; read once per ingest call
            is_authorized: Governance predicate; defaults to the stored admin whitelist
            monitor: Optional Prometheus metrics sink
        """
        self.db = db
        self.config = config or OracleConfig()
        self.clock = clock or _now_ms
        self.monitor = monitor
        self.events = EventBus()
        self._authorizer = is_authorized
        self._lock = threading.Lock()

        if owner is not None and db.get(OWNER_KEY) is None:
            with self._transaction() as state:
                AdminAuthority(owner).save(state)
            logger.info(f"Oracle owner set to {owner.hex()}")

    # ==========================================================================
    # STATE HELPERS
    # ==========================================================================

    @contextmanager
    def _transaction(self):
        """Run a block against a fresh overlay; commit on success, discard on error."""
        with self._lock:
            state = StateOverlay(self.db)
            try:
                yield state
                state.commit()
            except Exception:
                state.discard()
                self.events.discard()
                raise
            notes = self.events.take()
        # Outside the lock so subscribers may call back into the verifier
        self._dispatch(self.events.publish(notes))

    def _dispatch(self, notes: list[Notification]):
        if not self.monitor:
            return
        for note in notes:
            if note.kind == PRICE_UPDATED:
                self.monitor.prices_updated.inc()
            elif note.kind == HCC_STATE_CHANGED and note.data["state"] == HccState.INCONSISTENT.value:
                self.monitor.hcc_inconsistent.inc()

    def _registry(self, state: StateOverlay) -> CommitteeRegistry:
        return CommitteeRegistry(state, self.is_authorized, self.events)

    def _price_store(self, state: StateOverlay) -> PriceStore:
        return PriceStore(
            state, self.events,
            round_tolerance=self.config.round_tolerance,
            max_decimal=self.config.max_decimal,
        )

    def _checker(self, state: StateOverlay) -> ConsistencyChecker:
        return ConsistencyChecker(
            state, self.events, window_size=self.config.hcc_window, k=self.config.hcc_k
        )

    def subscribe(self, callback: Callable[[Notification], None]):
        self.events.subscribe(callback)

    # ==========================================================================
    # GOVERNANCE
    # ==========================================================================

    def is_authorized(self, caller: Optional[bytes]) -> bool:
        if self._authorizer is not None:
            return self._authorizer(caller)
        if self.db.get(OWNER_KEY) is None:
            return False
        return AdminAuthority.load(StateOverlay(self.db)).is_authorized(caller)

    def register_committee(self, caller: bytes, committee_id: int, public_key: bytes):
        with self._transaction() as state:
            self._registry(state).register(caller, committee_id, public_key)

    def remove_committee(self, caller: bytes, committee_id: int):
        with self._transaction() as state:
            self._registry(state).remove(caller, committee_id)

    def enable_hcc(self, caller: bytes, pair_ids: Iterable[int]) -> list[int]:
        with self._transaction() as state:
            self._require_authorized(caller)
            added = self._checker(state).enable(pair_ids)
        logger.info(f"HCC enabled for pairs {added}")
        return added

    def disable_hcc(self, caller: bytes, pair_ids: Iterable[int]) -> list[int]:
        with self._transaction() as state:
            self._require_authorized(caller)
            removed = self._checker(state).disable(pair_ids)
        logger.info(f"HCC disabled for pairs {removed}")
        return removed

    def add_admin(self, caller: bytes, admin: bytes) -> bool:
        with self._transaction() as state:
            authority = AdminAuthority.load(state)
            added = authority.add_admin(caller, admin)
            authority.save(state)
        return added

    def remove_admin(self, caller: bytes, admin: bytes) -> bool:
        with self._transaction() as state:
            authority = AdminAuthority.load(state)
            removed = authority.remove_admin(caller, admin)
            authority.save(state)
        return removed

    def transfer_ownership(self, caller: bytes, new_owner: bytes):
        with self._transaction() as state:
            authority = AdminAuthority.load(state)
            authority.transfer_ownership(caller, new_owner)
            authority.save(state)

    def owner(self) -> Optional[bytes]:
        return self.db.get(OWNER_KEY)

    def _require_authorized(self, caller):
        if not self.is_authorized(caller):
            raise Unauthorized(f"Caller {caller.hex() if caller else caller} is not an admin")

    # ==========================================================================
    # INGESTION
    # ==========================================================================

    def verify_and_ingest(self, payload: bytes) -> list[PriceEntry]:
        """
        Verify a submitted proof payload and apply its price entries.

        Returns the entries that replaced a stored price, in payload order.
        Entries whose round is not newer than the stored one are verified but
        not returned. Any error rejects the whole batch and leaves state untouched.
        """
        start = time.time()
        now = self.clock()
        try:
            proof = decode(payload)
            tally = Counter()
            with self._transaction() as state:
                accepted = self._ingest(proof, state, now, tally)
        except OracleError as e:
            logger.warning(f"Rejected batch: {type(e).__name__}: {e}")
            if self.monitor:
                self.monitor.record_batch('rejected', time.time() - start, type(e).__name__)
            raise

        logger.info(f"Accepted batch of {len(proof.blocks)} blocks, {len(accepted)} prices updated")
        if self.monitor:
            self._record_tally(tally)
            self.monitor.record_batch('accepted', time.time() - start)
        return accepted

    def _record_tally(self, tally: Counter):
        self.monitor.record_signature('verified', tally['verified'])
        self.monitor.record_signature('skipped', tally['skipped'])
        self.monitor.stale_updates.inc(tally['stale'])
        self.monitor.update(tally['tracked_pairs'], tally['replay_roots'])

    def _ingest(self, proof, state: StateOverlay, now: int, tally: Counter) -> list[PriceEntry]:
        """Stages one batch in state. Metric counts go to tally, applied only after commit."""
        guard = ReplayGuard.load(state, self.config.replay_window)
        registry = self._registry(state)

        # Signature check once per distinct root the guard has not seen
        checked = set()
        for index, block in enumerate(proof.blocks):
            if block.root in checked:
                continue
            checked.add(block.root)
            if guard.seen(block.root):
                logger.debug(f"Root {block.root.hex()[:16]} already verified, skipping signature")
                tally['skipped'] += 1
                continue
            if not registry.verify(block.committee_id, block.root, block.signature):
                raise InvalidSignature(
                    f"Block {index}: bad signature from committee {block.committee_id}"
                )
            tally['verified'] += 1
            guard.record(block.root)
            self.events.emit(ROOT_ACCEPTED, root=block.root, committee_id=block.committee_id)

        for index, block in enumerate(proof.blocks):
            if not verify_multiproof(block.leaf_hashes(), block.proof, block.flags, block.root):
                raise InvalidMerkleProof(
                    f"Block {index}: leaves do not prove root {block.root.hex()}"
                )

        store = self._price_store(state)
        checker = self._checker(state)
        tracked = set(checker.enabled_pairs())
        accepted = []
        for entry in proof.entries():
            if not store.upsert(entry, now):
                tally['stale'] += 1
                continue
            accepted.append(entry)
            if entry.pair_id in tracked:
                checker.update(entry.pair_id, entry.value)

        guard.save(state)
        tally['tracked_pairs'] = len(tracked)
        tally['replay_roots'] = len(guard)
        return accepted

    # ==========================================================================
    # READ ACCESSORS
    # ==========================================================================

    def _reader(self) -> StateOverlay:
        return StateOverlay(self.db)

    def get_price(self, pair_id: int) -> PriceEntry:
        return self._price_store(self._reader()).get(pair_id)

    def get_prices(self, pair_ids: Iterable[int]) -> list[PriceEntry]:
        return self._price_store(self._reader()).get_many(pair_ids)

    def get_derived_price(self, pair_a: int, pair_b: int, op) -> DerivedPrice:
        return self._price_store(self._reader()).get_derived(pair_a, pair_b, op)

    def hcc_state(self, pair_ids: Iterable[int]) -> list[dict]:
        return [
            {'pair_id': pair_id, 'state': state}
            for pair_id, state in self._checker(self._reader()).states(pair_ids)
        ]

    def hcc_pairs(self) -> list[int]:
        return self._checker(self._reader()).enabled_pairs()

    def committee_public_key(self, committee_id: int) -> bytes:
        return self._registry(self._reader()).public_key(committee_id)

    def committee_ids(self) -> list[int]:
        return self._registry(self._reader()).committee_ids()

    def root_seen(self, root: bytes) -> bool:
        return ReplayGuard.load(self._reader(), self.config.replay_window).seen(root)
