"""
Binary codec for submitted oracle proofs.

Layout (integers little-endian, vector lengths as LEB128 varints):

    varint                 number of proof blocks
    per block:
      u64                  committee_id
      varint + bytes       root (32 bytes)
      varint + bytes       signature
      varint               number of price entries
      per entry:           pair_id u32, value u128, timestamp u64, decimal u16, round u64
      varint + 32*n bytes  proof hashes
      varint + n bytes     flags, each 0x00 or 0x01
"""
import logging

from oracle_v2.core import (
    OracleProof,
    ProofBlock,
    PriceEntry,
    PRICE_ENTRY_SIZE,
    HASH_SIZE,
)
from oracle_v2.errors import MalformedPayload, MalformedProofShape, InvalidBoolEncoding
from oracle_v2.utils.encoding import ByteReader, ByteWriter

logger = logging.getLogger(__name__)

# Smallest possible encoded block: committee id, four empty vectors and a root
MIN_BLOCK_SIZE = 8 + 1 + HASH_SIZE + 1 + 1 + 1 + 1


def decode(payload: bytes) -> OracleProof:
    """
    Parse a submitted payload into an OracleProof.

    Raises MalformedPayload, InvalidBoolEncoding or MalformedProofShape. The
    proof shape of each block is checked as soon as the block is read so a
    malformed batch is rejected before any hashing or pairing work.
    """
    reader = ByteReader(payload)
    count = reader.read_length(MIN_BLOCK_SIZE)
    blocks = []
    for index in range(count):
        block = _read_block(reader)
        if not block.shape_is_valid():
            raise MalformedProofShape(
                f"block {index}: {len(block.leaves)} leaves + {len(block.proof)} proof hashes "
                f"!= {len(block.flags)} flags + 1"
            )
        blocks.append(block)

    if reader.remaining:
        raise MalformedPayload(f"{reader.remaining} trailing bytes after last block")

    logger.debug(f"Decoded {len(blocks)} proof blocks from {len(payload)} bytes")
    return OracleProof(blocks=blocks)


def _read_block(reader: ByteReader) -> ProofBlock:
    committee_id = reader.read_u64()

    root = reader.read_vector()
    if len(root) != HASH_SIZE:
        raise MalformedPayload(f"root must be {HASH_SIZE} bytes, got {len(root)}")

    signature = reader.read_vector()

    leaves = [_read_entry(reader) for _ in range(reader.read_length(PRICE_ENTRY_SIZE))]
    proof = [reader.read_bytes(HASH_SIZE) for _ in range(reader.read_length(HASH_SIZE))]

    flags = []
    for _ in range(reader.read_length()):
        byte = reader.read_u8()
        if byte > 1:
            raise InvalidBoolEncoding(f"flag byte {byte:#04x} at offset {reader.pos - 1}")
        flags.append(byte == 1)

    return ProofBlock(
        committee_id=committee_id,
        root=root,
        signature=signature,
        leaves=leaves,
        proof=proof,
        flags=flags,
    )


def _read_entry(reader: ByteReader) -> PriceEntry:
    pair_id = reader.read_u32()
    value = reader.read_u128()
    timestamp = reader.read_u64()
    decimal = reader.read_u16()
    round_ = reader.read_u64()
    return PriceEntry(
        pair_id=pair_id,
        value=value,
        decimal=decimal,
        timestamp=timestamp,
        round=round_,
    )


def encode(proof: OracleProof) -> bytes:
    """Serialize an OracleProof; decode(encode(p)) == p for every well-formed p."""
    writer = ByteWriter()
    writer.write_varint(len(proof.blocks))
    for block in proof.blocks:
        writer.write_uint(block.committee_id, 8)
        writer.write_vector(block.root)
        writer.write_vector(block.signature)
        writer.write_varint(len(block.leaves))
        for entry in block.leaves:
            writer.write_bytes(entry.serialize())
        writer.write_varint(len(block.proof))
        for node in block.proof:
            if len(node) != HASH_SIZE:
                raise ValueError(f"proof hash must be {HASH_SIZE} bytes, got {len(node)}")
            writer.write_bytes(node)
        writer.write_vector(bytes(1 if flag else 0 for flag in block.flags))
    return writer.getvalue()
