"""
Encrypted Maximum Tracker - homomorphic running maximum.

For every accepted bid:

    take       = has_leader ? bid > max : eligible
    max        = take ? bid    : max
    leader     = take ? bidder : leader
    has_leader = take ? true   : has_leader

Every intermediate value is a ciphertext and is only ever consumed by the
oblivious select, so leadership changes without anything being decrypted.
Strict comparison means the earliest bid at the maximum keeps the lead. The
has_leader flag lets the first bid that met the floor lead even when its
amount is zero.

A new bidder costs constant work. A replacement bid re-folds the current bid
of every bidder in first-bid order, so a lowered bid really replaces the
earlier one.
"""

from typing import Iterable, Optional, Tuple

from fhenft.core.auction.model import EncryptedMaxState, SealedBid
from fhenft.crypto import ZERO_ADDRESS, address_to_int
from fhenft.fhe import Ciphertext, FheExecutor, FheType
from fhenft.utils.logger import get_logger

logger = get_logger("tracker")


class EncryptedMaxTracker:
    """Maintains EncryptedMaxState values through an FheExecutor."""

    def __init__(self, executor: FheExecutor):
        self.executor = executor

    def initial_state(self) -> EncryptedMaxState:
        """enc(0) as the maximum, enc(zero address) as the leader, no leader yet."""
        return EncryptedMaxState(
            max_ciphertext=self.executor.trivial_encrypt(0, FheType.EUINT64),
            max_bidder_ref=self.executor.trivial_encrypt(address_to_int(ZERO_ADDRESS), FheType.EADDRESS),
            has_leader=self.executor.trivial_encrypt(0, FheType.EBOOL),
        )

    def bidder_ref(self, bidder: str) -> Ciphertext:
        return self.executor.trivial_encrypt(address_to_int(bidder), FheType.EADDRESS)

    def absorb(
        self,
        state: EncryptedMaxState,
        ciphertext: Ciphertext,
        bidder_ref: Ciphertext,
        eligible: Optional[Ciphertext] = None,
    ) -> EncryptedMaxState:
        """
        Fold one bid into the running maximum.

        Args:
            state: Current running state (an empty state starts from initial_state)
            ciphertext: The bid amount, already clamped to the floor
            bidder_ref: Encrypted identity of the bidder
            eligible: Encrypted result of the floor check; None means the bid
                is eligible

        Returns a new state; the caller decides when to commit it, so a failure
        in the substrate leaves the previous state untouched.
        """
        if not state.initialized:
            state = self.initial_state()
        if eligible is None:
            eligible = self.executor.trivial_encrypt(1, FheType.EBOOL)

        is_greater = self.executor.gt(ciphertext, state.max_ciphertext)
        take = self.executor.select(state.has_leader, is_greater, eligible)
        enc_true = self.executor.trivial_encrypt(1, FheType.EBOOL)

        new_state = EncryptedMaxState(
            max_ciphertext=self.executor.select(take, ciphertext, state.max_ciphertext),
            max_bidder_ref=self.executor.select(take, bidder_ref, state.max_bidder_ref),
            has_leader=self.executor.select(take, enc_true, state.has_leader),
        )
        logger.debug(f"Absorbed {ciphertext!r} into running maximum")
        return new_state

    def rebuild(self, bids: Iterable[Tuple[str, SealedBid]]) -> EncryptedMaxState:
        """
        Recompute the running maximum from each bidder's current bid.

        Bids must be given in first-bid order; that order decides ties.
        """
        state = self.initial_state()
        count = 0
        for bidder, sealed in bids:
            state = self.absorb(state, sealed.amount, self.bidder_ref(bidder), sealed.eligible)
            count += 1
        logger.debug(f"Rebuilt running maximum over {count} bids")
        return state

    def release_for_decryption(self, state: EncryptedMaxState) -> EncryptedMaxState:
        """Authorize the decryption service for the final maximum and leader."""
        if not state.initialized:
            state = self.initial_state()
        self.executor.make_publicly_decryptable(state.max_ciphertext)
        self.executor.make_publicly_decryptable(state.max_bidder_ref)
        return state
