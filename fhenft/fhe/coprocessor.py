"""
Local Coprocessor - in-process encrypted computation substrate.

Stands in for the external FHE coprocessor in development and tests. It keeps
plaintexts in a private table keyed by handle and exposes only handle-level
operations to contracts:

1. Input verification: bidders obtain ``(handle, proof)`` from
   ``encrypt_input``; the proof is an ECDSA signature by the input verifier
   over (handle, contract, user), so a handle cannot be replayed by another
   contract or another user.
2. Access control: every handle has an allow-list of contract identities.
   Operations fail for handles the calling contract was never granted.
3. Decryption gate: only handles explicitly marked publicly decryptable by
   the owning contract can be revealed, and only through ``reveal``.

Handles are derived from fresh randomness, so equal plaintexts never produce
equal handles.
"""

import secrets
import threading
from collections import defaultdict
from typing import Dict, Optional, Set, Tuple

from fhenft.crypto import (
    KeyPair,
    generate_keypair,
    keccak256,
    normalize_address,
    sign,
    verify,
)
from fhenft.fhe.handles import Ciphertext, EncryptedInput, FheType, pack_handle
from fhenft.utils.logger import get_logger

logger = get_logger("fhe")

DOMAIN_INPUT_PROOF = b"fhenft.input.v1"
DOMAIN_HANDLE = b"fhenft.handle.v1"


def input_proof_digest(handle: bytes, contract: str, user: str) -> bytes:
    """Digest signed by the input verifier."""
    return keccak256(
        DOMAIN_INPUT_PROOF
        + handle
        + bytes.fromhex(normalize_address(contract)[2:])
        + bytes.fromhex(normalize_address(user)[2:])
    )


class LocalCoprocessor:
    """
    In-memory substrate shared by all contracts in a process.

    Thread-safe: all table mutations happen under a single lock.
    """

    def __init__(self, verifier_key: Optional[KeyPair] = None):
        self._verifier = verifier_key or generate_keypair()
        self._values: Dict[bytes, Tuple[FheType, int]] = {}
        self._acl: Dict[bytes, Set[str]] = defaultdict(set)
        self._public: Set[bytes] = set()
        self._lock = threading.Lock()

    @property
    def verifier_public_key(self) -> bytes:
        return self._verifier.public_key

    # =========================================================================
    # Client Side
    # =========================================================================

    def encrypt_input(
        self,
        contract: str,
        user: str,
        value: int,
        fhe_type: FheType = FheType.EUINT64,
    ) -> EncryptedInput:
        """
        Encrypt a plaintext for submission to ``contract`` by ``user``.

        This is the client-side encrypted-input producer; the engine never
        calls it.
        """
        if not fhe_type.fits(value):
            raise ValueError(f"Value does not fit in {fhe_type.name}")

        handle = self._store(fhe_type, value)
        proof = sign(input_proof_digest(handle, contract, user), self._verifier.private_key)
        return EncryptedInput(handle=handle, proof=proof)

    def executor_for(self, contract: str) -> "ContractExecutor":
        return ContractExecutor(self, normalize_address(contract))

    # =========================================================================
    # Decryption Service Side
    # =========================================================================

    def reveal(self, ciphertext: Ciphertext) -> int:
        """
        Decrypt a handle that its owner marked publicly decryptable.

        Raises:
            PermissionError: If the handle was never released for decryption
        """
        with self._lock:
            if ciphertext.handle not in self._public:
                raise PermissionError(f"{ciphertext!r} is not publicly decryptable")
            _, value = self._values[ciphertext.handle]
        return value

    def is_publicly_decryptable(self, ciphertext: Ciphertext) -> bool:
        with self._lock:
            return ciphertext.handle in self._public

    # =========================================================================
    # Internals (used by ContractExecutor)
    # =========================================================================

    def _store(self, fhe_type: FheType, value: int, owner: Optional[str] = None) -> bytes:
        with self._lock:
            while True:
                digest = keccak256(DOMAIN_HANDLE + secrets.token_bytes(32))
                handle = pack_handle(digest, fhe_type)
                if handle not in self._values:
                    break
            self._values[handle] = (fhe_type, value)
            if owner is not None:
                self._acl[handle].add(owner)
        return handle

    def _load(self, contract: str, ciphertext: Ciphertext) -> Tuple[FheType, int]:
        with self._lock:
            entry = self._values.get(ciphertext.handle)
            if entry is None:
                raise ValueError(f"Unknown handle {ciphertext!r}")
            if contract not in self._acl[ciphertext.handle]:
                raise PermissionError(f"{contract} is not allowed to use {ciphertext!r}")
            return entry

    def _grant(self, handle: bytes, contract: str) -> None:
        with self._lock:
            self._acl[handle].add(contract)

    def _mark_public(self, contract: str, ciphertext: Ciphertext) -> None:
        self._load(contract, ciphertext)
        with self._lock:
            self._public.add(ciphertext.handle)

    def _check_input(self, handle: bytes, proof: bytes, contract: str, user: str) -> bool:
        with self._lock:
            entry = self._values.get(handle)
        if entry is None or entry[0] != FheType.EUINT64:
            return False
        return verify(input_proof_digest(handle, contract, user), proof, self._verifier.public_key)


class ContractExecutor:
    """FheExecutor bound to one contract identity."""

    def __init__(self, coprocessor: LocalCoprocessor, contract: str):
        self._coprocessor = coprocessor
        self._contract = contract

    @property
    def contract(self) -> str:
        return self._contract

    def verify_input(self, handle: bytes, proof: bytes, user: str) -> Optional[Ciphertext]:
        if len(handle) != 32 or len(proof) != 64:
            return None
        if not self._coprocessor._check_input(handle, proof, self._contract, normalize_address(user)):
            return None
        self._coprocessor._grant(handle, self._contract)
        return Ciphertext(handle)

    def trivial_encrypt(self, value: int, fhe_type: FheType) -> Ciphertext:
        if not fhe_type.fits(value):
            raise ValueError(f"Value does not fit in {fhe_type.name}")
        return Ciphertext(self._coprocessor._store(fhe_type, value, owner=self._contract))

    def gt(self, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        return self._compare(a, b, strict=True)

    def ge(self, a: Ciphertext, b: Ciphertext) -> Ciphertext:
        return self._compare(a, b, strict=False)

    def select(self, condition: Ciphertext, if_true: Ciphertext, if_false: Ciphertext) -> Ciphertext:
        cond_type, cond = self._coprocessor._load(self._contract, condition)
        if cond_type != FheType.EBOOL:
            raise TypeError("select condition must be an ebool")
        true_type, true_value = self._coprocessor._load(self._contract, if_true)
        false_type, false_value = self._coprocessor._load(self._contract, if_false)
        if true_type != false_type:
            raise TypeError(f"select branches differ: {true_type.name} vs {false_type.name}")

        value = true_value if cond else false_value
        return Ciphertext(self._coprocessor._store(true_type, value, owner=self._contract))

    def make_publicly_decryptable(self, ciphertext: Ciphertext) -> None:
        self._coprocessor._mark_public(self._contract, ciphertext)

    def reveal_unattested(self, ciphertext: Ciphertext) -> int:
        self._coprocessor._load(self._contract, ciphertext)
        return self._coprocessor.reveal(ciphertext)

    def _compare(self, a: Ciphertext, b: Ciphertext, strict: bool) -> Ciphertext:
        a_type, a_value = self._coprocessor._load(self._contract, a)
        b_type, b_value = self._coprocessor._load(self._contract, b)
        if a_type != b_type:
            raise TypeError(f"Cannot compare {a_type.name} with {b_type.name}")

        result = a_value > b_value if strict else a_value >= b_value
        return Ciphertext(self._coprocessor._store(FheType.EBOOL, int(result), owner=self._contract))
