"""
Ciphertext handles.

A handle is a 32-byte opaque reference to a value held by the encrypted
computation substrate. The engine only ever stores and passes handles; the
plaintext lives with the substrate.

Layout: keccak256(...)[:30] || fhe_type (1 byte) || handle version (1 byte)
"""

from dataclasses import dataclass
from enum import IntEnum

HANDLE_SIZE = 32
HANDLE_VERSION = 0


class FheType(IntEnum):
    """Encrypted value types understood by the substrate."""
    EBOOL = 0
    EUINT64 = 5
    EADDRESS = 7

    @property
    def bit_width(self) -> int:
        return {FheType.EBOOL: 1, FheType.EUINT64: 64, FheType.EADDRESS: 160}[self]

    def fits(self, value: int) -> bool:
        return 0 <= value < 2 ** self.bit_width


@dataclass(frozen=True)
class Ciphertext:
    """Reference to an encrypted value. Never carries plaintext."""
    handle: bytes

    def __post_init__(self):
        if len(self.handle) != HANDLE_SIZE:
            raise ValueError(f"Handle must be {HANDLE_SIZE} bytes, got {len(self.handle)}")

    @property
    def fhe_type(self) -> FheType:
        return FheType(self.handle[30])

    def hex(self) -> str:
        return "0x" + self.handle.hex()

    def __repr__(self) -> str:
        return f"Ciphertext({self.fhe_type.name.lower()}:{self.handle.hex()[:12]}...)"


@dataclass(frozen=True)
class EncryptedInput:
    """
    Client-side output of the encrypted-input producer.

    Attributes:
        handle: ciphertext handle to submit
        proof: input proof binding the handle to (contract, user)
    """
    handle: bytes
    proof: bytes


def pack_handle(digest: bytes, fhe_type: FheType) -> bytes:
    return digest[:30] + bytes([int(fhe_type), HANDLE_VERSION])
