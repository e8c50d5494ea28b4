"""
Tests for hashing, BLS committee signatures and caller addresses.
"""
import unittest
from oracle_v2.crypto import (
    generate_hash,
    bls_keygen,
    bls_public_key,
    bls_sign,
    bls_verify,
    new_caller_key,
    caller_address,
    ADDRESS_LENGTH,
    BLS_PUBLIC_KEY_LENGTH,
    BLS_SIGNATURE_LENGTH,
)


class TestHashing(unittest.TestCase):
    def test_keccak_empty(self):
        self.assertEqual(
            generate_hash(b'').hex(),
            'c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470',
        )

    def test_hash_length(self):
        self.assertEqual(len(generate_hash(b'price')), 32)


class TestBLS(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        # Pairings are slow in pure Python; sign once for the whole class
        cls.sk = bls_keygen(b'\x07' * 32)
        cls.pk = bls_public_key(cls.sk)
        cls.message = generate_hash(b'root')
        cls.signature = bls_sign(cls.sk, cls.message)

    def test_sizes(self):
        self.assertEqual(len(self.pk), BLS_PUBLIC_KEY_LENGTH)
        self.assertEqual(len(self.signature), BLS_SIGNATURE_LENGTH)

    def test_verify(self):
        self.assertTrue(bls_verify(self.pk, self.message, self.signature))

    def test_wrong_message(self):
        self.assertFalse(bls_verify(self.pk, generate_hash(b'other'), self.signature))

    def test_wrong_lengths(self):
        self.assertFalse(bls_verify(self.pk[:-1], self.message, self.signature))
        self.assertFalse(bls_verify(self.pk, self.message, self.signature + b'\x00'))

    def test_short_seed(self):
        with self.assertRaises(ValueError):
            bls_keygen(b'\x01' * 31)


class TestCallerAddress(unittest.TestCase):
    def test_address_is_stable(self):
        _, pem = new_caller_key()
        address = caller_address(pem)
        self.assertEqual(len(address), ADDRESS_LENGTH)
        self.assertEqual(address, caller_address(pem))

    def test_distinct_keys_distinct_addresses(self):
        _, pem_a = new_caller_key()
        _, pem_b = new_caller_key()
        self.assertNotEqual(caller_address(pem_a), caller_address(pem_b))

    def test_pem_shape(self):
        _, pem = new_caller_key()
        self.assertTrue(pem.startswith("-----BEGIN PUBLIC KEY-----"))


if __name__ == '__main__':
    unittest.main()
