"""
Wire messages exchanged with the decryption oracle.

The oracle is an external service, so both directions are validated at the
boundary: handles must be 32-byte hex, identities 20-byte hex addresses,
amounts uint64 and attestations 64-byte hex signatures.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fhenft.core.auction.model import DecryptionRequest
from fhenft.crypto import hex_to_bytes, normalize_address
from fhenft.fhe import Ciphertext
from fhenft.utils.validation import MAX_AMOUNT, validate_hex_string


def _check_hex(value: str, name: str, size: int) -> str:
    valid, err = validate_hex_string(value, name, size)
    if not valid:
        raise ValueError(err)
    return value.lower()


class DecryptionRequestMessage(BaseModel):
    """Engine -> oracle: reveal these two handles for this request."""
    model_config = ConfigDict(frozen=True)

    contract: str
    auction_id: int = Field(ge=0)
    request_id: int = Field(ge=0)
    amount_handle: str
    bidder_handle: str

    @field_validator("contract")
    @classmethod
    def _contract_address(cls, value: str) -> str:
        return normalize_address(value)

    @field_validator("amount_handle", "bidder_handle")
    @classmethod
    def _handle(cls, value: str) -> str:
        return _check_hex(value, "handle", 32)

    @classmethod
    def from_request(cls, contract: str, request: DecryptionRequest) -> "DecryptionRequestMessage":
        return cls(
            contract=contract,
            auction_id=request.auction_id,
            request_id=request.request_id,
            amount_handle=request.amount_handle.hex(),
            bidder_handle=request.bidder_handle.hex(),
        )

    def amount_ciphertext(self) -> Ciphertext:
        return Ciphertext(hex_to_bytes(self.amount_handle))

    def bidder_ciphertext(self) -> Ciphertext:
        return Ciphertext(hex_to_bytes(self.bidder_handle))


class DecryptionResponseMessage(BaseModel):
    """Oracle -> engine: plaintexts plus the oracle's attestation."""
    model_config = ConfigDict(frozen=True)

    auction_id: int = Field(ge=0)
    request_id: int = Field(ge=0)
    plain_amount: int = Field(ge=0, le=MAX_AMOUNT)
    plain_bidder: str
    attestation: str

    @field_validator("plain_bidder")
    @classmethod
    def _bidder_address(cls, value: str) -> str:
        return normalize_address(value)

    @field_validator("attestation")
    @classmethod
    def _signature(cls, value: str) -> str:
        return _check_hex(value, "attestation", 64)

    def attestation_bytes(self) -> bytes:
        return hex_to_bytes(self.attestation)
