"""
Encrypted execution interface.

The engine talks to the substrate only through this protocol. Every method
takes and returns ciphertext references; none of them returns a plaintext,
except ``reveal_unattested`` which exists solely for the operator-enabled
degraded settlement path.
"""

from typing import Optional, Protocol, runtime_checkable

from fhenft.fhe.handles import Ciphertext, FheType


@runtime_checkable
class FheExecutor(Protocol):
    """Homomorphic operations on behalf of one contract identity."""

    @property
    def contract(self) -> str:
        ...

    def verify_input(self, handle: bytes, proof: bytes, user: str) -> Optional[Ciphertext]:
        """Check an input proof bound to (contract, user). None if it fails."""
        ...

    def trivial_encrypt(self, value: int, fhe_type: FheType) -> Ciphertext:
        """Encrypt a public value."""
        ...

    def gt(self, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        """Encrypted a > b as an ebool."""
        ...

    def ge(self, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        """Encrypted a >= b as an ebool."""
        ...

    def select(self, condition: Ciphertext, if_true: Ciphertext, if_false: Ciphertext) -> Ciphertext:
        """Oblivious ternary over ciphertexts."""
        ...

    def make_publicly_decryptable(self, ciphertext: Ciphertext) -> None:
        """Authorize the decryption service to reveal this handle."""
        ...

    def reveal_unattested(self, ciphertext: Ciphertext) -> int:
        """Direct reveal without an oracle attestation (degraded mode only)."""
        ...
