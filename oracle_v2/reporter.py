# oracle_v2/reporter.py
"""
Committee side of the protocol: builds the Merkle tree over a batch of
observations, signs its root and packs the multiproof into a payload that
OracleVerifier.verify_and_ingest accepts.
"""
from typing import Iterable, Optional

from oracle_v2.codec import encode
from oracle_v2.core import OracleProof, ProofBlock, PriceEntry
from oracle_v2.crypto import bls_public_key, bls_sign
from oracle_v2.merkle import build_tree, get_multiproof, root_of


class CommitteeReporter:
    def __init__(self, committee_id: int, secret_key: int):
        self.committee_id = committee_id
        self.secret_key = secret_key
        self.public_key = bls_public_key(secret_key)

    def sign(self, root: bytes) -> bytes:
        return bls_sign(self.secret_key, root)

    def build_block(self, entries: list[PriceEntry],
                    prove: Optional[Iterable[int]] = None) -> ProofBlock:
        """
        Sign a batch and prove a subset of it.

        Args:
            entries: Every observation committed to by the root
            prove: Positions in entries to include as leaves (default: all)
        """
        tree = build_tree([entry.leaf_hash for entry in entries])
        root = root_of(tree)
        indices = list(range(len(entries))) if prove is None else list(prove)
        multiproof = get_multiproof(tree, indices)

        return ProofBlock(
            committee_id=self.committee_id,
            root=root,
            signature=self.sign(root),
            leaves=[entries[i] for i in multiproof.leaf_indices],
            proof=multiproof.proof,
            flags=multiproof.flags,
        )

    def build_payload(self, entries: list[PriceEntry],
                      prove: Optional[Iterable[int]] = None) -> bytes:
        return encode(OracleProof(blocks=[self.build_block(entries, prove)]))
