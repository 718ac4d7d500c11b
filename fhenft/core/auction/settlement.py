"""
Settlement Oracle Bridge - from closed bidding to a revealed outcome.

State machine per auction:

    ACTIVE --close, 0 bids--------------------------------> SETTLED
    ACTIVE --close--> ENDED --issue request--> SETTLEMENT_PENDING --callback--> SETTLED

The decryption round-trip is two messages. ``close`` records a request in the
request table and returns it; the engine publishes it to subscribers after
the transition is committed. The oracle's answer comes back later through
``apply_callback``, the only writer of winner and winning amount.

A callback is accepted only if it answers the auction's outstanding request
id and its attestation verifies against the configured oracle key over the
exact handles that were released. Anything else leaves the auction pending.
"""

import threading
from typing import Callable, List, Optional

from fhenft.core.auction.events import EventKind, EventLog
from fhenft.core.auction.model import (
    Auction,
    AuctionState,
    DecryptionRequest,
    RequestStatus,
    SettlementMode,
)
from fhenft.core.auction.tracker import EncryptedMaxTracker
from fhenft.core.errors import (
    DeadlineNotReached,
    InvalidState,
    StaleDecryptionRequest,
    UntrustedOracleResponse,
)
from fhenft.core.oracle.attestation import verify_attestation
from fhenft.crypto import ZERO_ADDRESS, int_to_address, is_valid_address, normalize_address
from fhenft.fhe import Ciphertext, FheExecutor
from fhenft.utils.logger import get_logger
from fhenft.utils.validation import validate_amount

logger = get_logger("settlement")


# =============================================================================
# Request Table
# =============================================================================


class DecryptionRequestTable:
    """
    Arena of decryption requests. request_id is the index into the arena.

    Auctions reference their outstanding entry by id; entries are never
    removed, only marked fulfilled or superseded.
    """

    def __init__(self):
        self._requests: List[DecryptionRequest] = []
        self._lock = threading.Lock()

    def issue(
        self,
        auction_id: int,
        amount_handle: Ciphertext,
        bidder_handle: Ciphertext,
        issued_at: int,
    ) -> DecryptionRequest:
        with self._lock:
            request = DecryptionRequest(
                request_id=len(self._requests),
                auction_id=auction_id,
                amount_handle=amount_handle,
                bidder_handle=bidder_handle,
                issued_at=issued_at,
            )
            self._requests.append(request)
        return request

    def get(self, request_id: int) -> Optional[DecryptionRequest]:
        with self._lock:
            if 0 <= request_id < len(self._requests):
                return self._requests[request_id]
            return None

    def mark(self, request_id: int, status: RequestStatus) -> DecryptionRequest:
        with self._lock:
            request = self._requests[request_id]
            request.status = status
            return request

    def for_auction(self, auction_id: int) -> List[DecryptionRequest]:
        with self._lock:
            return [r for r in self._requests if r.auction_id == auction_id]

    def pending(self) -> List[DecryptionRequest]:
        with self._lock:
            return [r for r in self._requests if r.status == RequestStatus.PENDING]

    def restore(self, requests: List[DecryptionRequest]) -> None:
        with self._lock:
            self._requests = sorted(requests, key=lambda r: r.request_id)

    def __len__(self) -> int:
        return len(self._requests)


# =============================================================================
# Bridge
# =============================================================================


class SettlementOracleBridge:
    """
    Drives auctions from ACTIVE to SETTLED.

    Args:
        executor: Encrypted execution bound to the engine contract
        tracker: Running-maximum tracker (releases handles for decryption)
        requests: Decryption-request table
        events: Engine event log
        clock: Returns the current time in seconds
        oracle_public_key: Key that must sign every accepted callback
    """

    def __init__(
        self,
        executor: FheExecutor,
        tracker: EncryptedMaxTracker,
        requests: DecryptionRequestTable,
        events: EventLog,
        clock: Callable[[], int],
        oracle_public_key: Optional[bytes] = None,
    ):
        self.executor = executor
        self.tracker = tracker
        self.requests = requests
        self.events = events
        self.clock = clock
        self.oracle_public_key = oracle_public_key
        self._subscribers: List[Callable[[DecryptionRequest], None]] = []

    # =========================================================================
    # Request Publication
    # =========================================================================

    def subscribe(self, callback: Callable[[DecryptionRequest], None]) -> None:
        """Register a consumer of issued decryption requests."""
        self._subscribers.append(callback)

    def publish(self, request: DecryptionRequest) -> None:
        for callback in self._subscribers:
            callback(request)

    # =========================================================================
    # Close
    # =========================================================================

    def close(self, auction: Auction) -> Optional[DecryptionRequest]:
        """
        Close bidding and request decryption of the outcome.

        Returns:
            The issued request, or None when nothing needs decrypting
            (zero bids, or already pending / settled)

        Raises:
            DeadlineNotReached: Bidding is still open
        """
        if auction.state in (AuctionState.SETTLEMENT_PENDING, AuctionState.SETTLED):
            logger.debug(f"close on auction {auction.auction_id} in {auction.state.name} is a no-op")
            return None

        if auction.state == AuctionState.ACTIVE:
            self._end_bidding(auction)
            if auction.state == AuctionState.SETTLED:
                return None

        return self._issue(auction, EventKind.DECRYPTION_REQUESTED)

    def rerequest(self, auction: Auction) -> DecryptionRequest:
        """
        Supersede a stuck request with a fresh one.

        Raises:
            InvalidState: No request is outstanding
        """
        if auction.state != AuctionState.SETTLEMENT_PENDING:
            raise InvalidState(
                f"No decryption outstanding (state: {auction.state.name})",
                {"auction_id": auction.auction_id},
            )

        superseded = auction.pending_request_id
        logger.warning(f"Re-requesting decryption for auction {auction.auction_id}, superseding request {superseded}")
        # The old request stays answerable until its replacement exists
        request = self._issue(auction, EventKind.DECRYPTION_REREQUESTED, superseded=superseded)
        self.requests.mark(superseded, RequestStatus.SUPERSEDED)
        return request

    def _end_bidding(self, auction: Auction) -> None:
        now = self.clock()
        if now < auction.end_time:
            raise DeadlineNotReached(
                "Auction is still accepting bids",
                {"auction_id": auction.auction_id, "end_time": auction.end_time},
            )

        if auction.bid_count == 0:
            self._settle(auction, None, 0, SettlementMode.NO_BIDS)
            return

        auction.advance(AuctionState.ENDED)
        self.events.emit(EventKind.AUCTION_ENDED, auction.auction_id, now, bid_count=auction.bid_count)
        logger.info(f"Auction {auction.auction_id} ended with {auction.bid_count} bidders")

    def _issue(self, auction: Auction, kind: EventKind, **extra) -> DecryptionRequest:
        if auction.state not in (AuctionState.ENDED, AuctionState.SETTLEMENT_PENDING):
            raise InvalidState(
                f"Cannot request decryption in state {auction.state.name}",
                {"auction_id": auction.auction_id},
            )

        now = self.clock()
        released = self.tracker.release_for_decryption(auction.encrypted_max)
        request = self.requests.issue(
            auction.auction_id,
            released.max_ciphertext,
            released.max_bidder_ref,
            now,
        )

        auction.encrypted_max = released
        auction.pending_request_id = request.request_id
        if auction.state == AuctionState.ENDED:
            auction.advance(AuctionState.SETTLEMENT_PENDING)

        self.events.emit(
            kind,
            auction.auction_id,
            now,
            request_id=request.request_id,
            amount_handle=request.amount_handle.hex(),
            bidder_handle=request.bidder_handle.hex(),
            **extra,
        )
        logger.info(f"Decryption request {request.request_id} issued for auction {auction.auction_id}")
        return request

    # =========================================================================
    # Callback
    # =========================================================================

    def apply_callback(
        self,
        auction: Auction,
        request_id: int,
        plain_amount: int,
        plain_bidder: str,
        attestation: bytes,
    ) -> None:
        """
        Apply a verified decryption result, exactly once.

        Raises:
            InvalidState: Auction is not waiting for a decryption result
            StaleDecryptionRequest: request_id is not the outstanding request
            UntrustedOracleResponse: Malformed payload or attestation failure
        """
        if auction.state != AuctionState.SETTLEMENT_PENDING:
            raise InvalidState(
                f"No decryption outstanding (state: {auction.state.name})",
                {"auction_id": auction.auction_id, "request_id": request_id},
            )

        if request_id != auction.pending_request_id:
            raise StaleDecryptionRequest(
                "Callback does not answer the outstanding request",
                {"auction_id": auction.auction_id, "request_id": request_id, "outstanding": auction.pending_request_id},
            )

        valid, err = validate_amount(plain_amount, "plain_amount")
        if not valid or not is_valid_address(plain_bidder):
            raise UntrustedOracleResponse(
                f"Malformed oracle response: {err or 'plain_bidder must be an address'}",
                {"auction_id": auction.auction_id},
            )
        plain_bidder = normalize_address(plain_bidder)

        if self.oracle_public_key is None:
            raise UntrustedOracleResponse("No oracle key configured", {"auction_id": auction.auction_id})

        request = self.requests.get(request_id)
        verified = verify_attestation(
            self.oracle_public_key,
            attestation,
            contract=self.executor.contract,
            auction_id=auction.auction_id,
            request_id=request_id,
            amount_handle=request.amount_handle,
            bidder_handle=request.bidder_handle,
            plain_amount=plain_amount,
            plain_bidder=plain_bidder,
        )
        if not verified:
            logger.error(f"Rejected unverifiable oracle response for auction {auction.auction_id}")
            raise UntrustedOracleResponse(
                "Attestation verification failed",
                {"auction_id": auction.auction_id, "request_id": request_id},
            )

        self.requests.mark(request_id, RequestStatus.FULFILLED)
        winner = None if plain_bidder == ZERO_ADDRESS else plain_bidder
        self._settle(auction, winner, plain_amount if winner else 0, SettlementMode.ORACLE)

    # =========================================================================
    # Degraded Mode
    # =========================================================================

    def close_degraded(self, auction: Auction) -> None:
        """
        Settle without the decryption oracle.

        Reveals only the final maximum and leader through the substrate's
        unattested reveal. Callers must have checked that degraded mode is
        enabled and that the caller is the operator.
        """
        if auction.state == AuctionState.SETTLED:
            logger.debug(f"degraded close on settled auction {auction.auction_id} is a no-op")
            return

        if auction.state == AuctionState.ACTIVE:
            self._end_bidding(auction)
            if auction.state == AuctionState.SETTLED:
                return

        if auction.pending_request_id is not None:
            self.requests.mark(auction.pending_request_id, RequestStatus.SUPERSEDED)

        released = self.tracker.release_for_decryption(auction.encrypted_max)
        plain_amount = self.executor.reveal_unattested(released.max_ciphertext)
        plain_bidder = int_to_address(self.executor.reveal_unattested(released.max_bidder_ref))
        auction.encrypted_max = released

        winner = None if plain_bidder == ZERO_ADDRESS else plain_bidder
        self._settle(auction, winner, plain_amount if winner else 0, SettlementMode.DEGRADED)

        self.events.emit(EventKind.DEGRADED_SETTLEMENT, auction.auction_id, self.clock())
        logger.warning(f"Auction {auction.auction_id} settled in DEGRADED mode without an oracle attestation")

    # =========================================================================
    # Finalization
    # =========================================================================

    def _settle(self, auction: Auction, winner: Optional[str], amount: int, mode: SettlementMode) -> None:
        now = self.clock()
        auction.advance(AuctionState.SETTLED)
        auction.winner = winner
        auction.winning_amount = amount
        auction.settlement_mode = mode
        auction.settled_at = now
        auction.pending_request_id = None

        self.events.emit(
            EventKind.AUCTION_SETTLED,
            auction.auction_id,
            now,
            winner=winner,
            winning_amount=amount,
            mode=mode.value,
        )
        logger.info(f"Auction {auction.auction_id} settled ({mode.value}): winner={winner}")
