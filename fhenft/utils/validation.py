"""
Input Validation - sanitization of everything crossing the engine boundary.

Validators return ``(is_valid, error_message)`` so callers can decide whether a
failure is a rejected command or a programming error.
"""

from typing import Any, Optional, Tuple

from fhenft.crypto import ADDRESS_SIZE, is_valid_address

# =============================================================================
# Constants
# =============================================================================

HANDLE_SIZE = 32
SIGNATURE_SIZE = 64
MAX_PROOF_SIZE = 1024

# Encrypted amounts are unsigned 64-bit
MIN_AMOUNT = 0
MAX_AMOUNT = 2**64 - 1

MIN_TOKEN_ID = 0
MAX_TOKEN_ID = 2**256 - 1


# =============================================================================
# Validation Functions
# =============================================================================


def validate_bytes(
    data: Any,
    name: str,
    expected_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Tuple[bool, str]:
    """
    Validate bytes input.

    Args:
        data: Data to validate
        name: Field name for error messages
        expected_length: Exact expected length
        max_length: Maximum allowed length
    """
    if not isinstance(data, (bytes, bytearray)):
        return False, f"{name} must be bytes, got {type(data).__name__}"

    if expected_length is not None and len(data) != expected_length:
        return False, f"{name} must be {expected_length} bytes, got {len(data)}"

    if max_length is not None and len(data) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(data)}"

    return True, ""


def validate_integer(
    value: Any,
    name: str,
    min_val: int = MIN_AMOUNT,
    max_val: int = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """Validate integer within bounds."""
    # bool is an int subclass, but never a meaningful amount or timestamp
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"{name} must be int, got {type(value).__name__}"

    if value < min_val:
        return False, f"{name} must be >= {min_val}, got {value}"

    if value > max_val:
        return False, f"{name} must be <= {max_val}, got {value}"

    return True, ""


def validate_amount(amount: Any, name: str = "amount") -> Tuple[bool, str]:
    """Validate a uint64 amount."""
    return validate_integer(amount, name, MIN_AMOUNT, MAX_AMOUNT)


def validate_timestamp(value: Any, name: str = "timestamp") -> Tuple[bool, str]:
    return validate_integer(value, name, 0, 2**63 - 1)


def validate_address(address: Any, name: str = "address") -> Tuple[bool, str]:
    """Validate a 0x-prefixed 20-byte hex address."""
    if not isinstance(address, str):
        return False, f"{name} must be str, got {type(address).__name__}"
    if not is_valid_address(address):
        return False, f"{name} must be a 0x-prefixed {ADDRESS_SIZE}-byte hex address"
    return True, ""


def validate_handle(handle: Any, name: str = "ciphertext") -> Tuple[bool, str]:
    return validate_bytes(handle, name, expected_length=HANDLE_SIZE)


def validate_proof(proof: Any) -> Tuple[bool, str]:
    valid, err = validate_bytes(proof, "proof", max_length=MAX_PROOF_SIZE)
    if not valid:
        return valid, err
    if len(proof) == 0:
        return False, "proof must not be empty"
    return True, ""


def validate_signature(signature: Any, name: str = "signature") -> Tuple[bool, str]:
    return validate_bytes(signature, name, expected_length=SIGNATURE_SIZE)


def validate_hex_string(value: Any, name: str, expected_bytes: Optional[int] = None) -> Tuple[bool, str]:
    """
    Validate a hex string (with or without 0x prefix).

    Args:
        value: Value to validate
        name: Field name
        expected_bytes: Expected byte length when decoded
    """
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    hex_str = value[2:] if value.startswith("0x") else value

    if len(hex_str) % 2 != 0:
        return False, f"{name} has odd length, invalid hex"

    try:
        bytes.fromhex(hex_str)
    except ValueError:
        return False, f"{name} contains invalid hex characters"

    if expected_bytes is not None:
        actual_bytes = len(hex_str) // 2
        if actual_bytes != expected_bytes:
            return False, f"{name} must be {expected_bytes} bytes, got {actual_bytes}"

    return True, ""


# =============================================================================
# Composite Validators
# =============================================================================


def validate_auction_params(
    collection: Any,
    token_id: Any,
    end_time: Any,
    min_bid: Any,
) -> Tuple[bool, str]:
    """Validate the arguments of an auction creation request."""
    valid, err = validate_address(collection, "collection")
    if not valid:
        return False, err

    valid, err = validate_integer(token_id, "token_id", MIN_TOKEN_ID, MAX_TOKEN_ID)
    if not valid:
        return False, err

    valid, err = validate_timestamp(end_time, "end_time")
    if not valid:
        return False, err

    return validate_amount(min_bid, "min_bid")


def validate_bid_input(ciphertext: Any, proof: Any) -> Tuple[bool, str]:
    """Validate the shape of an encrypted bid before it reaches the substrate."""
    valid, err = validate_handle(ciphertext)
    if not valid:
        return False, err
    return validate_proof(proof)


__all__ = [
    "validate_bytes",
    "validate_integer",
    "validate_amount",
    "validate_timestamp",
    "validate_address",
    "validate_handle",
    "validate_proof",
    "validate_signature",
    "validate_hex_string",
    "validate_auction_params",
    "validate_bid_input",
    "HANDLE_SIZE",
    "SIGNATURE_SIZE",
    "MAX_AMOUNT",
]
