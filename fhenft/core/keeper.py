"""
Keeper - periodic sweeper that closes expired auctions.

Walks every auction id from 0 to next_auction_id, and closes those whose
deadline has passed but which have not settled yet. Closing is permissionless,
so the keeper needs no special role unless it runs in degraded mode, where it
must be the configured operator.

One auction failing to close is logged and reported in the sweep result; the
sweep continues with the next auction.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from fhenft.core.auction.engine import AuctionEngine
from fhenft.core.auction.model import AuctionState
from fhenft.core.errors import AuctionError
from fhenft.utils.logger import get_logger

logger = get_logger("keeper")


@dataclass
class SweepResult:
    """Outcome of one close attempt."""
    auction_id: int
    state: Optional[AuctionState] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class Keeper:
    """
    Args:
        engine: Engine to sweep
        caller: Identity the keeper acts as
        use_degraded: Close through the degraded (no-oracle) path
    """

    def __init__(self, engine: AuctionEngine, caller: str, use_degraded: bool = False):
        self.engine = engine
        self.caller = caller
        self.use_degraded = use_degraded
        self.sweeps = 0

    def due(self) -> List[int]:
        """Auction ids whose deadline passed and that still need closing."""
        now = self.engine.clock()
        due = []
        for auction_id in range(self.engine.next_auction_id):
            view = self.engine.get_auction(auction_id)
            if view.state in (AuctionState.ACTIVE, AuctionState.ENDED) and now >= view.end_time:
                due.append(auction_id)
        return due

    def run_once(self) -> List[SweepResult]:
        """Close every due auction once."""
        results = []
        for auction_id in self.due():
            try:
                if self.use_degraded:
                    state = self.engine.close_auction_degraded(self.caller, auction_id)
                else:
                    state = self.engine.close_auction(self.caller, auction_id)
            except AuctionError as exc:
                logger.error(f"Failed to close auction {auction_id}: {exc}")
                results.append(SweepResult(auction_id, error=str(exc)))
                continue

            logger.info(f"Closed auction {auction_id} -> {state.name}")
            results.append(SweepResult(auction_id, state=state))

        self.sweeps += 1
        return results

    async def run_forever(self, interval: float, stop: Optional[asyncio.Event] = None) -> None:
        """Sweep every ``interval`` seconds until ``stop`` is set or the task is cancelled."""
        logger.info(f"Keeper started (interval {interval}s, degraded={self.use_degraded})")
        while stop is None or not stop.is_set():
            self.run_once()
            if stop is None:
                await asyncio.sleep(interval)
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Keeper stopped")
