"""
Oracle attestations.

An attestation is the oracle's ECDSA signature over everything the engine
will act on: the contract, the auction, the request id, the exact handles
that were submitted for decryption and the plaintexts returned for them.
A response copied from another auction, another request or another pair of
handles therefore fails verification.
"""

from fhenft.crypto import keccak256, normalize_address, sign, verify
from fhenft.fhe import Ciphertext

DOMAIN_ATTESTATION = b"fhenft.decryption.v1"


def attestation_digest(
    contract: str,
    auction_id: int,
    request_id: int,
    amount_handle: Ciphertext,
    bidder_handle: Ciphertext,
    plain_amount: int,
    plain_bidder: str,
) -> bytes:
    return keccak256(
        DOMAIN_ATTESTATION
        + bytes.fromhex(normalize_address(contract)[2:])
        + auction_id.to_bytes(32, "big")
        + request_id.to_bytes(32, "big")
        + amount_handle.handle
        + bidder_handle.handle
        + plain_amount.to_bytes(8, "big")
        + bytes.fromhex(normalize_address(plain_bidder)[2:])
    )


def sign_attestation(private_key: bytes, **fields) -> bytes:
    """Sign a decryption result. Keyword arguments as attestation_digest."""
    return sign(attestation_digest(**fields), private_key)


def verify_attestation(public_key: bytes, attestation: bytes, **fields) -> bool:
    """Check a decryption result against the oracle public key."""
    if not isinstance(attestation, (bytes, bytearray)) or len(attestation) != 64:
        return False
    try:
        digest = attestation_digest(**fields)
    except (ValueError, OverflowError):
        return False
    return verify(digest, bytes(attestation), public_key)
