"""
Auction Engine - public surface of the sealed-bid auction system.

Wires the five components together:

    EscrowLedger          custody in at creation, custody out once
    BidIngestionGate      encrypted bids -> floor clamp -> tracker
    EncryptedMaxTracker   homomorphic running maximum and leader
    SettlementOracleBridge close, decryption request, verified callback
    ClaimResolver         winner claim or seller reclaim

Design Notes:
- Every mutation on an auction runs under that auction's RLock; auctions are
  independent of each other. Id assignment runs under the engine lock.
- Callers are identities passed explicitly and trusted as given; the engine
  only normalizes them.
- Components mutate the auction record only after all checks pass, so a
  raised AuctionError means nothing changed.
- Decryption requests are published to subscribers after the state change is
  committed and the record persisted. The engine never waits for the oracle.
"""

import contextlib
import threading
from typing import TYPE_CHECKING, Callable, Dict, Iterator, List, Optional

from fhenft.core.auction.escrow import EscrowLedger
from fhenft.core.auction.events import AuctionEvent, EventKind, EventLog
from fhenft.core.auction.ingestion import BidIngestionGate
from fhenft.core.auction.model import Auction, AuctionState, AuctionView, DecryptionRequest
from fhenft.core.auction.resolver import ClaimResolver
from fhenft.core.auction.settlement import DecryptionRequestTable, SettlementOracleBridge
from fhenft.core.auction.tracker import EncryptedMaxTracker
from fhenft.core.config import EngineConfig
from fhenft.core.errors import DeadlinePassed, InvalidArgument, InvalidState, NotFound, Unauthorized
from fhenft.core.registry import AssetRef, AssetRegistry
from fhenft.crypto import address_from_public_key, is_valid_address, normalize_address
from fhenft.fhe import FheExecutor
from fhenft.utils.clock import SystemClock
from fhenft.utils.logger import get_logger
from fhenft.utils.validation import validate_auction_params

if TYPE_CHECKING:
    from fhenft.core.storage import StorageManager

logger = get_logger("engine")


class AuctionEngine:
    """
    Confidential sealed-bid auction engine.

    Args:
        config: Engine configuration (contract identity, oracle, operator)
        executor: Encrypted execution bound to config.contract_address
        registry: Asset registry holding the auctioned tokens
        clock: Callable returning the current time in seconds
        storage: Optional persistence; existing records are restored on init
    """

    def __init__(
        self,
        config: EngineConfig,
        executor: FheExecutor,
        registry: AssetRegistry,
        clock: Optional[Callable[[], int]] = None,
        storage: Optional["StorageManager"] = None,
    ):
        if normalize_address(executor.contract) != config.contract_address:
            raise ValueError("Executor is bound to a different contract identity")

        self.config = config
        self.executor = executor
        self.clock = clock or SystemClock()
        self.storage = storage

        self.oracle_address = config.oracle_address
        if self.oracle_address is None and config.oracle_public_key is not None:
            self.oracle_address = address_from_public_key(config.oracle_public_key)

        self.events = EventLog(sink=storage.persist_event if storage else None)
        self.requests = DecryptionRequestTable()
        self.escrow = EscrowLedger(registry, config.contract_address)
        self.tracker = EncryptedMaxTracker(executor)
        self.ingestion = BidIngestionGate(executor, self.tracker, self.events, self.clock)
        self.settlement = SettlementOracleBridge(
            executor,
            self.tracker,
            self.requests,
            self.events,
            self.clock,
            oracle_public_key=config.oracle_public_key,
        )
        self.resolver = ClaimResolver(self.escrow, self.events, self.clock)

        self._auctions: Dict[int, Auction] = {}
        self._locks: Dict[int, threading.RLock] = {}
        self._next_id = 0
        self._lock = threading.Lock()

        if storage is not None:
            self._restore()

        logger.info(f"Auction engine ready at {config.contract_address} ({len(self._auctions)} auctions)")

    @property
    def contract(self) -> str:
        return self.config.contract_address

    # =========================================================================
    # Internals
    # =========================================================================

    def _restore(self) -> None:
        auctions = self.storage.load_auctions()
        for auction in auctions:
            self._auctions[auction.auction_id] = auction
            self._locks[auction.auction_id] = threading.RLock()

        self.requests.restore(self.storage.load_requests())
        self.events.restore(self.storage.load_events())
        self.escrow.restore(auctions)
        self._next_id = max(self.storage.get_next_auction_id(), len(auctions))

        logger.info(f"Restored {len(auctions)} auctions and {len(self.events)} events from storage")

    def _persist(self, auction: Auction) -> None:
        if self.storage is None:
            return
        self.storage.persist_auction(auction, self.requests.for_auction(auction.auction_id), self._next_id)

    @contextlib.contextmanager
    def _locked(self, auction_id: int) -> Iterator[Auction]:
        with self._lock:
            auction = self._auctions.get(auction_id)
            lock = self._locks.get(auction_id)
        if auction is None:
            raise NotFound(f"Unknown auction {auction_id}", {"auction_id": auction_id})
        with lock:
            yield auction

    def _get(self, auction_id: int) -> Auction:
        auction = self._auctions.get(auction_id)
        if auction is None:
            raise NotFound(f"Unknown auction {auction_id}", {"auction_id": auction_id})
        return auction

    @staticmethod
    def _identity(caller: str, name: str = "caller") -> str:
        if not isinstance(caller, str) or not is_valid_address(caller):
            raise InvalidArgument(f"{name} must be a 0x-prefixed 20-byte hex address")
        return normalize_address(caller)

    def _require_operator(self, caller: str) -> None:
        if self.config.operator_address is None or caller != self.config.operator_address:
            raise Unauthorized("Operator-only operation", {"caller": caller})

    # =========================================================================
    # Write Surface
    # =========================================================================

    def create_auction(self, caller: str, asset: AssetRef, end_time: int, min_bid: int) -> int:
        """
        Escrow an asset and open an auction over it.

        Returns:
            The new auction id

        Raises:
            InvalidArgument: Malformed parameters
            DeadlinePassed: end_time is not in the future
            AssetAlreadyEscrowed: Another auction holds the asset
            Unauthorized: Caller does not hold the asset or the engine lacks approval
        """
        seller = self._identity(caller)
        if not isinstance(asset, AssetRef):
            raise InvalidArgument("asset must be an AssetRef")

        valid, err = validate_auction_params(asset.collection, asset.token_id, end_time, min_bid)
        if not valid:
            raise InvalidArgument(err)

        now = self.clock()
        if end_time <= now:
            raise DeadlinePassed("end_time must be in the future", {"end_time": end_time, "now": now})

        self.escrow.check_deposit(seller, asset)

        with self._lock:
            auction_id = self._next_id
            self.escrow.deposit(auction_id, seller, asset)
            self._next_id += 1

            auction = Auction(
                auction_id=auction_id,
                seller=seller,
                asset=asset,
                end_time=end_time,
                min_bid=min_bid,
                encrypted_max=self.tracker.initial_state(),
                created_at=now,
            )
            self._auctions[auction_id] = auction
            self._locks[auction_id] = threading.RLock()

        with self._locked(auction_id) as auction:
            self.events.emit(
                EventKind.AUCTION_CREATED,
                auction_id,
                now,
                seller=seller,
                collection=asset.collection,
                token_id=asset.token_id,
                end_time=end_time,
                min_bid=min_bid,
            )
            self._persist(auction)

        logger.info(f"Auction {auction_id} created by {seller} for {asset}, ends at {end_time}")
        return auction_id

    def place_bid(self, caller: str, auction_id: int, ciphertext: bytes, proof: bytes) -> None:
        """Submit an encrypted bid (or replace the caller's previous one)."""
        bidder = self._identity(caller)
        with self._locked(auction_id) as auction:
            self.ingestion.place_bid(auction, bidder, ciphertext, proof)
            self._persist(auction)

    def close_auction(self, caller: str, auction_id: int) -> AuctionState:
        """
        Close an expired auction. Anyone may call.

        Returns:
            The auction state after the call
        """
        self._identity(caller)
        with self._locked(auction_id) as auction:
            request = self.settlement.close(auction)
            self._persist(auction)
            state = auction.state

        if request is not None:
            self.settlement.publish(request)
        return state

    def on_decryption_callback(
        self,
        caller: str,
        auction_id: int,
        request_id: int,
        plain_amount: int,
        plain_bidder: str,
        attestation: bytes,
    ) -> None:
        """Finalize an auction from the oracle's attested decryption result."""
        oracle = self._identity(caller)
        if self.oracle_address is None or oracle != self.oracle_address:
            logger.warning(f"Decryption callback for auction {auction_id} from non-oracle {oracle}")
            raise Unauthorized("Only the decryption oracle may deliver results", {"caller": oracle})

        with self._locked(auction_id) as auction:
            self.settlement.apply_callback(auction, request_id, plain_amount, plain_bidder, attestation)
            self._persist(auction)

    def claim_asset(self, caller: str, auction_id: int) -> None:
        winner = self._identity(caller)
        with self._locked(auction_id) as auction:
            self.resolver.claim(auction, winner)
            self._persist(auction)

    def reclaim_asset(self, caller: str, auction_id: int) -> None:
        seller = self._identity(caller)
        with self._locked(auction_id) as auction:
            self.resolver.reclaim(auction, seller)
            self._persist(auction)

    def rerequest_decryption(self, caller: str, auction_id: int) -> int:
        """
        Operator recovery for a stuck settlement.

        Returns:
            The new request id
        """
        operator = self._identity(caller)
        self._require_operator(operator)
        with self._locked(auction_id) as auction:
            request = self.settlement.rerequest(auction)
            self._persist(auction)

        self.settlement.publish(request)
        return request.request_id

    def close_auction_degraded(self, caller: str, auction_id: int) -> AuctionState:
        """Operator close without the decryption oracle (must be enabled in config)."""
        operator = self._identity(caller)
        if not self.config.degraded_mode_enabled:
            raise InvalidState("Degraded settlement is disabled", {"auction_id": auction_id})
        self._require_operator(operator)

        with self._locked(auction_id) as auction:
            self.settlement.close_degraded(auction)
            self._persist(auction)
            return auction.state

    def subscribe_requests(self, callback: Callable[[DecryptionRequest], None]) -> None:
        """Register a consumer of issued decryption requests (the oracle relay)."""
        self.settlement.subscribe(callback)

    # =========================================================================
    # Read Surface
    # =========================================================================

    def get_auction(self, auction_id: int) -> AuctionView:
        with self._locked(auction_id) as auction:
            return auction.view()

    def get_bid_count(self, auction_id: int) -> int:
        return self._get(auction_id).bid_count

    def is_decryption_pending(self, auction_id: int) -> bool:
        return self._get(auction_id).state == AuctionState.SETTLEMENT_PENDING

    def has_bid(self, auction_id: int, bidder: str) -> bool:
        return self._get(auction_id).has_bid_from(self._identity(bidder, "bidder"))

    @property
    def next_auction_id(self) -> int:
        return self._next_id

    def auction_ids(self) -> List[int]:
        with self._lock:
            return sorted(self._auctions)

    def get_events(self, auction_id: Optional[int] = None) -> List[AuctionEvent]:
        if auction_id is None:
            return self.events.all()
        return self.events.for_auction(auction_id)

    def get_decryption_request(self, request_id: int) -> DecryptionRequest:
        request = self.requests.get(request_id)
        if request is None:
            raise NotFound(f"Unknown decryption request {request_id}", {"request_id": request_id})
        return request
