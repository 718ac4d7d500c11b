"""
Engine exception hierarchy.

All engine errors inherit from AuctionError. Every one of them is raised
before any state is mutated, so a caught error means the auction is exactly as
it was before the call.
"""


class AuctionError(Exception):
    """Base exception for all engine errors"""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFound(AuctionError):
    """Unknown auction id"""


class InvalidState(AuctionError):
    """Operation not valid in the auction's current lifecycle state"""


class AssetAlreadyEscrowed(InvalidState):
    """Asset is already held by another auction"""


class StaleDecryptionRequest(InvalidState):
    """Callback does not answer the auction's outstanding decryption request"""


class Unauthorized(AuctionError):
    """Caller lacks the required role (seller, winner, oracle, operator)"""


class InvalidProof(AuctionError):
    """Encrypted bid's input proof failed verification"""


class UntrustedOracleResponse(AuctionError):
    """Decryption callback attestation failed verification"""


class AlreadyClaimed(AuctionError):
    """Escrowed asset has already been released"""


class DeadlineNotReached(AuctionError):
    """Operation requires the auction deadline to have passed"""


class DeadlinePassed(AuctionError):
    """Operation requires the auction deadline not to have passed"""


class InvalidArgument(AuctionError, ValueError):
    """Malformed command argument"""


__all__ = [
    "AuctionError",
    "NotFound",
    "InvalidState",
    "AssetAlreadyEscrowed",
    "StaleDecryptionRequest",
    "Unauthorized",
    "InvalidProof",
    "UntrustedOracleResponse",
    "AlreadyClaimed",
    "DeadlineNotReached",
    "DeadlinePassed",
    "InvalidArgument",
]
