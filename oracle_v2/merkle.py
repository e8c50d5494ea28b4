"""
Merkle multiproofs over sorted-pair hashed trees.

Internal nodes are hash(min(a, b) || max(a, b)) with the children compared as
unsigned big-endian integers, so a proof never has to say which side a
sibling sits on.

Trees are kept as a flat array: node i has children 2i+1 and 2i+2 and the
leaves occupy the tail of the array in reverse order.
"""
from collections import deque
from dataclasses import dataclass

from oracle_v2.crypto import generate_hash
from oracle_v2.errors import InvalidMerkleProof, UnconsumedProof


def hash_pair(a: bytes, b: bytes) -> bytes:
    # Equal-length byte strings compare exactly like big-endian integers
    if a < b:
        return generate_hash(a + b)
    return generate_hash(b + a)


def process_multiproof(leaves: list[bytes], proof: list[bytes], flags: list[bool]) -> bytes:
    """
    Rebuild the root implied by a multiproof.

    Each flag combines two hashes. The first always comes from the pending
    leaves, then from hashes computed so far. The second comes from the same
    place when the flag is set and from the next proof hash otherwise.

    The decoder already rejects blocks where leaves + proof != flags + 1;
    callers passing other shapes get UnconsumedProof or InvalidMerkleProof.
    """
    pending = deque(leaves)
    computed = deque()
    proof_pos = 0

    def next_hash() -> bytes:
        if pending:
            return pending.popleft()
        if computed:
            return computed.popleft()
        raise InvalidMerkleProof("multiproof ran out of hashes to combine")

    for flag in flags:
        a = next_hash()
        if flag:
            b = next_hash()
        else:
            if proof_pos >= len(proof):
                raise InvalidMerkleProof("multiproof ran out of proof hashes")
            b = proof[proof_pos]
            proof_pos += 1
        computed.append(hash_pair(a, b))

    if flags:
        if proof_pos != len(proof):
            raise UnconsumedProof(f"{len(proof) - proof_pos} proof hashes left unused")
        if pending:
            raise InvalidMerkleProof(f"{len(pending)} leaves left unused")
        return computed[-1]
    if leaves:
        return leaves[0]
    if proof:
        return proof[0]
    raise InvalidMerkleProof("multiproof has no leaves, proof hashes or flags")


def verify_multiproof(leaves: list[bytes], proof: list[bytes], flags: list[bool], root: bytes) -> bool:
    """True iff the leaves, proof hashes and flags rebuild exactly root."""
    return process_multiproof(leaves, proof, flags) == root


# --- Tree construction and proof generation (relayer side) ---

def build_tree(leaves: list[bytes]) -> list[bytes]:
    if not leaves:
        raise ValueError("cannot build a Merkle tree without leaves")

    tree = [b''] * (2 * len(leaves) - 1)
    for i, leaf in enumerate(leaves):
        tree[len(tree) - 1 - i] = leaf
    for i in range(len(tree) - 1 - len(leaves), -1, -1):
        tree[i] = hash_pair(tree[2 * i + 1], tree[2 * i + 2])
    return tree


def root_of(tree: list[bytes]) -> bytes:
    return tree[0]


def _sibling(i: int) -> int:
    return i + 1 if i % 2 else i - 1


@dataclass
class MultiProof:
    leaf_indices: list[int]   # leaf positions, in the order the verifier consumes them
    leaves: list[bytes]
    proof: list[bytes]
    flags: list[bool]


def get_multiproof(tree: list[bytes], indices: list[int]) -> MultiProof:
    """
    Build a multiproof for the leaves at the given leaf positions.

    The returned leaves are reordered; callers must submit them in
    leaf_indices order.
    """
    leaf_count = (len(tree) + 1) // 2
    for index in indices:
        if not 0 <= index < leaf_count:
            raise IndexError(f"leaf index {index} out of range for {leaf_count} leaves")
    if len(set(indices)) != len(indices):
        raise ValueError("cannot prove the same leaf twice")

    tree_indices = sorted((len(tree) - 1 - i for i in indices), reverse=True)
    stack = deque(tree_indices)
    proof = []
    flags = []

    while stack and stack[0] > 0:
        j = stack.popleft()
        s = _sibling(j)
        p = (j - 1) // 2
        if stack and stack[0] == s:
            flags.append(True)
            stack.popleft()
        else:
            flags.append(False)
            proof.append(tree[s])
        stack.append(p)

    if not indices:
        proof.append(tree[0])

    return MultiProof(
        leaf_indices=[len(tree) - 1 - j for j in tree_indices],
        leaves=[tree[j] for j in tree_indices],
        proof=proof,
        flags=flags,
    )
