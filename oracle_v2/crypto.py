"""
Core cryptographic functions for the price-proof pipeline.
"""
import hashlib
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives import serialization
from Crypto.Hash import keccak
from py_ecc.bls import G2Basic

# BLS12-381 minimal-public-key sizes
BLS_PUBLIC_KEY_LENGTH = 48
BLS_SIGNATURE_LENGTH = 96

# --- BLS committee signatures ---

def bls_keygen(seed: bytes) -> int:
    """Derives a BLS secret key from at least 32 bytes of keying material."""
    if len(seed) < 32:
        raise ValueError("BLS key material must be at least 32 bytes")
    return G2Basic.KeyGen(seed)

def bls_public_key(secret_key: int) -> bytes:
    """Compressed 48-byte G1 public key for a secret key."""
    return G2Basic.SkToPk(secret_key)

def bls_sign(secret_key: int, message: bytes) -> bytes:
    """Signs a message, returning a compressed 96-byte G2 signature."""
    return G2Basic.Sign(secret_key, message)

def bls_verify(public_key: bytes, message: bytes, signature: bytes) -> bool:
    """
    Verifies a BLS signature over message.
    Malformed keys or signatures verify False rather than raising.
    """
    if len(public_key) != BLS_PUBLIC_KEY_LENGTH or len(signature) != BLS_SIGNATURE_LENGTH:
        return False
    return G2Basic.Verify(public_key, message, signature)

# --- Hashing ---

def generate_hash(data: bytes) -> bytes:
    """Keccak-256, the digest used for leaves, tree nodes and signed roots."""
    return keccak.new(digest_bits=256, data=data).digest()

# --- Caller identity for governance ---

ADDRESS_LENGTH = 20


def new_caller_key() -> tuple[ec.EllipticCurvePrivateKey, str]:
    """Creates a SECP256R1 key for an administrator; returns the key and its public PEM."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return private_key, pem.decode('ascii')


def caller_address(public_key_pem: str) -> bytes:
    """
    Address an administrator is known by: the first 20 bytes of SHA-256 over
    the DER SubjectPublicKeyInfo of their public key.
    """
    public_key = serialization.load_pem_public_key(public_key_pem.encode('ascii'))
    der = public_key.public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return hashlib.sha256(der).digest()[:ADDRESS_LENGTH]
