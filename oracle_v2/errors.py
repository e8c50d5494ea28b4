"""
Exception hierarchy for the price-proof verification pipeline.

Every error raised by the pipeline derives from OracleError. The intermediate
classes group errors by how a caller should react to them.
"""


class OracleError(Exception):
    """Base class for all pipeline errors."""
    pass


# --- Malformed input: fatal, never retried ---

class MalformedInputError(OracleError):
    pass


class MalformedPayload(MalformedInputError):
    """Buffer exhausted mid-field or a vector length exceeds the remaining data."""
    pass


class MalformedProofShape(MalformedInputError):
    """len(leaves) + len(proof) != len(flags) + 1 for a proof block."""
    pass


class InvalidBoolEncoding(MalformedInputError):
    """A flag byte other than 0 or 1."""
    pass


# --- Authentication / authorization ---

class AuthError(OracleError):
    pass


class InvalidSignature(AuthError):
    pass


class CommitteeKeyMissing(AuthError):
    pass


class InvalidKeyLength(AuthError):
    pass


class Unauthorized(AuthError):
    pass


# --- Proof integrity ---

class ProofIntegrityError(OracleError):
    pass


class InvalidMerkleProof(ProofIntegrityError):
    pass


class UnconsumedProof(ProofIntegrityError):
    """The multiproof walk finished with proof hashes left over."""
    pass


# --- Freshness / ordering ---

class FreshnessError(OracleError):
    pass


class RoundOutOfBounds(FreshnessError):
    pass


# --- Read path domain errors ---

class DomainError(OracleError):
    pass


class SamePairId(DomainError):
    pass


class InvalidOperation(DomainError, ValueError):
    pass


class DecimalOutOfRange(DomainError):
    pass


class DivisionByZero(DomainError):
    pass


class NotFound(DomainError, KeyError):
    def __str__(self):
        # KeyError repr-quotes its argument
        return str(self.args[0]) if self.args else ""


# --- Defensive guards ---

class OverflowGuardError(OracleError):
    pass


class VarianceBitWidthExceeded(OverflowGuardError):
    pass


# --- State misuse ---

class StateError(OracleError):
    pass


class DuplicateRoot(StateError):
    pass
