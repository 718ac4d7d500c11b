"""
Cryptographic primitives for the auction engine.

This module provides:
- Hashing functions (SHA-256, Keccak-256)
- secp256k1 key pairs and Ethereum-style address derivation
- Low-s ECDSA signatures used for input proofs and oracle attestations

Design Notes:
-------------
Identities are 0x-prefixed, lowercase, 20-byte hex addresses derived from the
Keccak-256 hash of the uncompressed public key, matching EVM conventions so that
the engine can sit behind a wallet-signed transport without translation.

Signatures are 64 bytes (r || s). Verification recovers the signer for both
recovery ids and compares against the expected public key, so callers never
need to carry the recovery byte around.
"""

import hashlib
import secrets
import string
from dataclasses import dataclass
from typing import Optional

from Crypto.Hash import keccak
from py_ecc.secp256k1 import secp256k1


# =============================================================================
# Constants
# =============================================================================

# secp256k1 curve order
SECP256K1_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

ADDRESS_SIZE = 20
ZERO_ADDRESS = "0x" + "00" * ADDRESS_SIZE


# =============================================================================
# Hashing
# =============================================================================


def sha256(data: bytes) -> bytes:
    """Compute SHA-256 hash."""
    return hashlib.sha256(data).digest()


def keccak256(data: bytes) -> bytes:
    """
    Compute Keccak-256 hash (Ethereum-style).

    Used for: address derivation, ciphertext handles, attestation digests.
    """
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# =============================================================================
# Key Generation
# =============================================================================


@dataclass
class KeyPair:
    """
    An ECDSA keypair on secp256k1.

    Attributes:
        private_key: 32-byte secret key
        public_key: 64-byte uncompressed public key (x || y coordinates)
    """
    private_key: bytes
    public_key: bytes

    @property
    def address(self) -> str:
        """Address = last 20 bytes of keccak256(public_key), 0x-prefixed."""
        return address_from_public_key(self.public_key)


def _public_key_for(private_key: bytes) -> bytes:
    point = secp256k1.privtopub(private_key)
    return point[0].to_bytes(32, byteorder="big") + point[1].to_bytes(32, byteorder="big")


def generate_keypair() -> KeyPair:
    """Generate a new random keypair."""
    private_key_int = secrets.randbelow(SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=_public_key_for(private_key))


def keypair_from_seed(seed: bytes) -> KeyPair:
    """
    Derive a deterministic keypair from a seed.

    Handy for fixtures and for services that load their key from config.
    """
    private_key_int = int.from_bytes(sha256(seed), byteorder="big") % (SECP256K1_ORDER - 1) + 1
    private_key = private_key_int.to_bytes(32, byteorder="big")
    return KeyPair(private_key=private_key, public_key=_public_key_for(private_key))


def private_key_to_public_key(private_key: bytes) -> bytes:
    """
    Derive public key from private key.

    Raises:
        ValueError: If the private key is not 32 bytes
    """
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")
    return _public_key_for(private_key)


def address_from_public_key(public_key: bytes) -> str:
    if len(public_key) != 64:
        raise ValueError("Public key must be 64 bytes")
    return "0x" + keccak256(public_key)[-ADDRESS_SIZE:].hex()


# =============================================================================
# Digital Signatures (ECDSA)
# =============================================================================


def sign(message_hash: bytes, private_key: bytes) -> bytes:
    """
    Sign a message hash using ECDSA on secp256k1.

    Args:
        message_hash: 32-byte digest
        private_key: 32-byte private key

    Returns:
        64-byte signature (r || s), s normalized to the lower half of the order
    """
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")
    if len(private_key) != 32:
        raise ValueError("Private key must be 32 bytes")

    _v, r, s = secp256k1.ecdsa_raw_sign(message_hash, private_key)

    # Low-s form, no malleable twin
    if s > SECP256K1_ORDER // 2:
        s = SECP256K1_ORDER - s

    return r.to_bytes(32, byteorder="big") + s.to_bytes(32, byteorder="big")


def recover_public_key(message_hash: bytes, signature: bytes, recovery_id: int) -> Optional[bytes]:
    """Recover the 64-byte public key for one recovery id, or None."""
    if len(message_hash) != 32 or len(signature) != 64:
        return None

    r = int.from_bytes(signature[:32], byteorder="big")
    s = int.from_bytes(signature[32:], byteorder="big")
    if not (1 <= r < SECP256K1_ORDER and 1 <= s < SECP256K1_ORDER):
        return None

    try:
        x, y = secp256k1.ecdsa_raw_recover(message_hash, (27 + recovery_id, r, s))
    except (ValueError, ZeroDivisionError, TypeError):
        return None
    return x.to_bytes(32, byteorder="big") + y.to_bytes(32, byteorder="big")


def verify(message_hash: bytes, signature: bytes, public_key: bytes) -> bool:
    """
    Verify an ECDSA signature.

    Returns:
        True if signature is valid for public_key, False otherwise
    """
    if len(message_hash) != 32 or len(signature) != 64 or len(public_key) != 64:
        return False

    s = int.from_bytes(signature[32:], byteorder="big")
    if s > SECP256K1_ORDER // 2:
        return False

    for recovery_id in (0, 1):
        if recover_public_key(message_hash, signature, recovery_id) == public_key:
            return True
    return False


# =============================================================================
# Utility Functions
# =============================================================================


def bytes_to_hex(data: bytes) -> str:
    """Convert bytes to hex string with 0x prefix."""
    return "0x" + data.hex()


def hex_to_bytes(hex_str: str) -> bytes:
    """Convert hex string (with or without 0x prefix) to bytes."""
    if hex_str.startswith("0x") or hex_str.startswith("0X"):
        hex_str = hex_str[2:]
    return bytes.fromhex(hex_str)


def is_valid_address(address: str) -> bool:
    """Check if string is a valid address format."""
    if not isinstance(address, str) or not address.startswith("0x"):
        return False
    if len(address) != 2 + 2 * ADDRESS_SIZE:
        return False
    return all(c in string.hexdigits for c in address[2:])


def normalize_address(address: str) -> str:
    """Lowercase an address so identities compare by value."""
    if not is_valid_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return address.lower()


def address_to_int(address: str) -> int:
    return int(normalize_address(address), 16)


def int_to_address(value: int) -> str:
    if not (0 <= value < 2 ** (8 * ADDRESS_SIZE)):
        raise ValueError(f"Value does not fit in an address: {value}")
    return "0x" + value.to_bytes(ADDRESS_SIZE, byteorder="big").hex()


__all__ = [
    "SECP256K1_ORDER",
    "ADDRESS_SIZE",
    "ZERO_ADDRESS",
    "sha256",
    "keccak256",
    "KeyPair",
    "generate_keypair",
    "keypair_from_seed",
    "private_key_to_public_key",
    "address_from_public_key",
    "sign",
    "recover_public_key",
    "verify",
    "bytes_to_hex",
    "hex_to_bytes",
    "is_valid_address",
    "normalize_address",
    "address_to_int",
    "int_to_address",
]
