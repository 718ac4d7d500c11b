"""
Decryption oracle boundary: attestations, wire messages, the local oracle
service and the asyncio relay that connects it to the engine.
"""

from fhenft.core.oracle.attestation import (
    DOMAIN_ATTESTATION,
    attestation_digest,
    sign_attestation,
    verify_attestation,
)
from fhenft.core.oracle.messages import DecryptionRequestMessage, DecryptionResponseMessage
from fhenft.core.oracle.service import DecryptionOracle, DecryptionService
from fhenft.core.oracle.relay import OracleRelay

__all__ = [
    "DOMAIN_ATTESTATION",
    "attestation_digest",
    "sign_attestation",
    "verify_attestation",
    "DecryptionRequestMessage",
    "DecryptionResponseMessage",
    "DecryptionOracle",
    "DecryptionService",
    "OracleRelay",
]
