"""
Core data structures for the price-proof pipeline.
"""
from dataclasses import dataclass, field
from enum import Enum, IntEnum

from .crypto import generate_hash
from .utils.encoding import int_to_le

MAX_U32 = (1 << 32) - 1
MAX_U64 = (1 << 64) - 1
MAX_U128 = (1 << 128) - 1
MAX_DECIMAL = 18

# pair_id(4) + value(16) + timestamp(8) + decimal(2) + round(8)
PRICE_ENTRY_SIZE = 38
HASH_SIZE = 32


@dataclass(frozen=True)
class PriceEntry:
    """One observation of one trading pair. Superseded, never mutated."""
    pair_id: int
    value: int
    decimal: int
    timestamp: int
    round: int

    def __post_init__(self):
        _check_range('pair_id', self.pair_id, MAX_U32)
        _check_range('value', self.value, MAX_U128)
        _check_range('decimal', self.decimal, 0xFFFF)
        _check_range('timestamp', self.timestamp, MAX_U64)
        _check_range('round', self.round, MAX_U64)

    def serialize(self) -> bytes:
        """Wire layout, identical to the bytes that are hashed into a Merkle leaf."""
        return (
            int_to_le(self.pair_id, 4)
            + int_to_le(self.value, 16)
            + int_to_le(self.timestamp, 8)
            + int_to_le(self.decimal, 2)
            + int_to_le(self.round, 8)
        )

    @property
    def leaf_hash(self) -> bytes:
        return generate_hash(self.serialize())

    def to_dict(self) -> dict:
        # value can exceed msgpack's 64-bit integer range
        return {
            'pair_id': self.pair_id,
            'value': str(self.value),
            'decimal': self.decimal,
            'timestamp': self.timestamp,
            'round': self.round,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'PriceEntry':
        return cls(
            pair_id=data['pair_id'],
            value=int(data['value']),
            decimal=data['decimal'],
            timestamp=data['timestamp'],
            round=data['round'],
        )


def _check_range(name: str, value: int, maximum: int):
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value > maximum:
        raise ValueError(f"{name}={value} outside [0, {maximum}]")


@dataclass
class ProofBlock:
    """
    One committee's signed batch: a Merkle root, the signature over it,
    the price entries being proven and the multiproof material.
    """
    committee_id: int
    root: bytes
    signature: bytes
    leaves: list[PriceEntry] = field(default_factory=list)
    proof: list[bytes] = field(default_factory=list)
    flags: list[bool] = field(default_factory=list)

    def shape_is_valid(self) -> bool:
        return len(self.leaves) + len(self.proof) == len(self.flags) + 1

    def leaf_hashes(self) -> list[bytes]:
        return [entry.leaf_hash for entry in self.leaves]


@dataclass
class OracleProof:
    blocks: list[ProofBlock] = field(default_factory=list)

    def entries(self) -> list[PriceEntry]:
        return [entry for block in self.blocks for entry in block.leaves]


class Operation(IntEnum):
    MULTIPLY = 0
    DIVIDE = 1


class RoundComparison(Enum):
    EQUAL = 'equal'
    FIRST_NEWER = 'first_newer'
    SECOND_NEWER = 'second_newer'


class HccState(Enum):
    INSUFFICIENT_HISTORY = 'insufficient_history'
    CONSISTENT = 'consistent'
    INCONSISTENT = 'inconsistent'


@dataclass(frozen=True)
class DerivedPrice:
    value: int
    decimal: int
    round_gap: int
    comparison: RoundComparison
