"""
Decryption Oracle - one-time reveal of a settled auction's outcome.

The local oracle decrypts through the coprocessor's public-decryption gate,
so it can only reveal handles the engine explicitly released at close time.
Each response is signed with the oracle's secp256k1 key.
"""

from typing import Optional, Protocol, runtime_checkable

from fhenft.core.oracle.attestation import sign_attestation
from fhenft.core.oracle.messages import DecryptionRequestMessage, DecryptionResponseMessage
from fhenft.crypto import KeyPair, bytes_to_hex, generate_keypair, int_to_address
from fhenft.fhe import LocalCoprocessor
from fhenft.utils.logger import get_logger

logger = get_logger("oracle")


@runtime_checkable
class DecryptionService(Protocol):
    """Anything that can answer a decryption request."""

    @property
    def address(self) -> str:
        ...

    def fulfil(self, request: DecryptionRequestMessage) -> DecryptionResponseMessage:
        ...


class DecryptionOracle:
    """
    In-process decryption oracle.

    Args:
        coprocessor: Substrate holding the ciphertexts
        keypair: Signing key; its address is the oracle identity
    """

    def __init__(self, coprocessor: LocalCoprocessor, keypair: Optional[KeyPair] = None):
        self.coprocessor = coprocessor
        self.keypair = keypair or generate_keypair()
        self.fulfilled = 0

    @property
    def address(self) -> str:
        return self.keypair.address

    @property
    def public_key(self) -> bytes:
        return self.keypair.public_key

    def fulfil(self, request: DecryptionRequestMessage) -> DecryptionResponseMessage:
        """
        Reveal the requested handles and attest to the result.

        Raises:
            PermissionError: If the handles were not released for decryption
        """
        amount_handle = request.amount_ciphertext()
        bidder_handle = request.bidder_ciphertext()

        plain_amount = self.coprocessor.reveal(amount_handle)
        plain_bidder = int_to_address(self.coprocessor.reveal(bidder_handle))

        attestation = sign_attestation(
            self.keypair.private_key,
            contract=request.contract,
            auction_id=request.auction_id,
            request_id=request.request_id,
            amount_handle=amount_handle,
            bidder_handle=bidder_handle,
            plain_amount=plain_amount,
            plain_bidder=plain_bidder,
        )
        self.fulfilled += 1

        logger.info(f"Fulfilled decryption request {request.request_id} for auction {request.auction_id}")
        return DecryptionResponseMessage(
            auction_id=request.auction_id,
            request_id=request.request_id,
            plain_amount=plain_amount,
            plain_bidder=plain_bidder,
            attestation=bytes_to_hex(attestation),
        )
