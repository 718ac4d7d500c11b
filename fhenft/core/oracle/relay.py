"""
Oracle Relay - asyncio transport between the engine and a decryption oracle.

Requests flow engine -> queue -> oracle, responses flow oracle -> engine
callback. The engine never blocks on the oracle: ``close_auction`` returns as
soon as the request is queued and the callback lands whenever the relay task
gets to it.

Requests may be submitted from any thread; they are handed to the event loop
with ``call_soon_threadsafe``. Submissions made before the relay runs are held
in a backlog and flushed into the queue on start.
"""

import asyncio
import contextlib
import threading
from typing import TYPE_CHECKING, List, Optional, Tuple

from fhenft.core.auction.model import DecryptionRequest
from fhenft.core.errors import AuctionError
from fhenft.core.oracle.messages import DecryptionRequestMessage, DecryptionResponseMessage
from fhenft.core.oracle.service import DecryptionService
from fhenft.utils.logger import get_logger

if TYPE_CHECKING:
    from fhenft.core.auction.engine import AuctionEngine

logger = get_logger("relay")


class OracleRelay:
    """
    Carries decryption requests to an oracle and responses back.

    Args:
        engine: Engine whose requests are relayed (subscribed on construction)
        oracle: Decryption service answering the requests
        latency: Simulated delay before each request is answered, in seconds
    """

    def __init__(self, engine: "AuctionEngine", oracle: DecryptionService, latency: float = 0.0):
        self.engine = engine
        self.oracle = oracle
        self.latency = latency

        self.delivered: List[DecryptionResponseMessage] = []
        self.failures: List[Tuple[DecryptionRequestMessage, Exception]] = []

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._backlog: List[DecryptionRequestMessage] = []
        self._backlog_lock = threading.Lock()
        self._task: Optional[asyncio.Task] = None

        engine.subscribe_requests(self.submit)

    # =========================================================================
    # Submission
    # =========================================================================

    def submit(self, request: DecryptionRequest) -> None:
        """Queue a request for the oracle. Safe to call from any thread."""
        message = DecryptionRequestMessage.from_request(self.engine.contract, request)

        with self._backlog_lock:
            if self._loop is None:
                self._backlog.append(message)
                logger.debug(f"Request {request.request_id} held until the relay starts")
                return

        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._queue.put_nowait(message)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, message)
        logger.debug(f"Request {request.request_id} queued for the oracle")

    @property
    def pending(self) -> int:
        """Requests waiting for delivery."""
        queued = self._queue.qsize() if self._queue is not None else 0
        return queued + len(self._backlog)

    # =========================================================================
    # Loop
    # =========================================================================

    def _bind(self) -> None:
        with self._backlog_lock:
            if self._loop is not None:
                return
            self._loop = asyncio.get_running_loop()
            self._queue = asyncio.Queue()
            for message in self._backlog:
                self._queue.put_nowait(message)
            self._backlog.clear()

    async def run(self, stop_when_idle: bool = False) -> None:
        """
        Deliver requests until cancelled.

        Args:
            stop_when_idle: Return as soon as the queue is empty
        """
        self._bind()
        while True:
            if stop_when_idle and self._queue.empty():
                return
            message = await self._queue.get()
            try:
                await self._deliver(message)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Deliver everything queued so far, then return."""
        await self.run(stop_when_idle=True)

    def start(self) -> asyncio.Task:
        """Run the relay as a background task on the current loop."""
        self._bind()
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
            logger.info("Oracle relay started")
        return self._task

    async def join(self) -> None:
        """Wait until every queued request has been handled."""
        self._bind()
        await self._queue.join()

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Oracle relay stopped")

    # =========================================================================
    # Delivery
    # =========================================================================

    async def _deliver(self, message: DecryptionRequestMessage) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

        try:
            response = self.oracle.fulfil(message)
            self.engine.on_decryption_callback(
                self.oracle.address,
                response.auction_id,
                response.request_id,
                response.plain_amount,
                response.plain_bidder,
                response.attestation_bytes(),
            )
        except (PermissionError, AuctionError) as exc:
            logger.error(f"Relay failed for request {message.request_id} on auction {message.auction_id}: {exc}")
            self.failures.append((message, exc))
            return
        except Exception as exc:
            # One bad request must not stop the relay loop
            logger.exception(
                f"Unexpected relay error for request {message.request_id} on auction {message.auction_id}"
            )
            self.failures.append((message, exc))
            return

        self.delivered.append(response)
        logger.info(f"Delivered decryption result for auction {message.auction_id} (request {message.request_id})")
