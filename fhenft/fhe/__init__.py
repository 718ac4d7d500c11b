"""
Encrypted computation substrate.

The engine depends only on the FheExecutor protocol; LocalCoprocessor is the
in-process implementation used for development, demos and tests.
"""

from fhenft.fhe.handles import (
    Ciphertext,
    EncryptedInput,
    FheType,
    HANDLE_SIZE,
)
from fhenft.fhe.executor import FheExecutor
from fhenft.fhe.coprocessor import (
    LocalCoprocessor,
    ContractExecutor,
    input_proof_digest,
)

__all__ = [
    "Ciphertext",
    "EncryptedInput",
    "FheType",
    "HANDLE_SIZE",
    "FheExecutor",
    "LocalCoprocessor",
    "ContractExecutor",
    "input_proof_digest",
]
