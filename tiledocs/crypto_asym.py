"""Ed25519 signing helpers backed by PyNaCl.

Keys are never read from or written to disk: a signing key is derived from a
32-byte seed held by the caller, and verification always goes through an
explicit public key resolved from the signer's DID.
"""
import os
from nacl.signing import SigningKey, VerifyKey
from nacl.exceptions import CryptoError

SEED_SIZE = 32
PUBLIC_KEY_SIZE = 32


def signing_key_from_seed(seed: bytes) -> SigningKey:
    if not isinstance(seed, (bytes, bytearray)):
        raise TypeError('seed must be bytes')
    if len(seed) != SEED_SIZE:
        raise ValueError(f'seed must be {SEED_SIZE} bytes, got {len(seed)}')
    return SigningKey(bytes(seed))


def random_seed() -> bytes:
    return os.urandom(SEED_SIZE)


def get_public_key_bytes(sk: SigningKey) -> bytes:
    return sk.verify_key.encode()


def sign_bytes(sk: SigningKey, data: bytes) -> str:
    return sk.sign(data).signature.hex()


def verify_with_public_key(data: bytes, sig_hex: str, pub_bytes: bytes) -> bool:
    """Verify a hex signature against an explicit raw Ed25519 public key."""
    try:
        vk = VerifyKey(pub_bytes)
        vk.verify(data, bytes.fromhex(sig_hex))
        return True
    except (CryptoError, ValueError, TypeError):
        return False


def x25519_public_key(pub_bytes: bytes) -> bytes:
    # birational map used for the did:key keyAgreement entry
    return VerifyKey(pub_bytes).to_curve25519_public_key().encode()
