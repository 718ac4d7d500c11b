"""
Shared fixtures: a complete in-process auction world.

Every world gets its own coprocessor, oracle, collection and manual clock, so
tests never share ciphertexts or tokens.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import pytest

from fhenft.core.auction import AuctionEngine, DecryptionRequest
from fhenft.core.config import EngineConfig
from fhenft.core.oracle import DecryptionOracle, DecryptionRequestMessage, DecryptionResponseMessage
from fhenft.core.registry import AssetRef, CollectionDirectory, NftCollection
from fhenft.crypto import keypair_from_seed
from fhenft.fhe import EncryptedInput, LocalCoprocessor
from fhenft.utils.clock import ManualClock

T0 = 1_700_000_000


@dataclass
class AuctionWorld:
    coprocessor: LocalCoprocessor
    oracle: DecryptionOracle
    config: EngineConfig
    collection: NftCollection
    registry: CollectionDirectory
    clock: ManualClock
    engine: AuctionEngine
    published: List[DecryptionRequest] = field(default_factory=list)

    seller: str = keypair_from_seed(b"seller").address
    alice: str = keypair_from_seed(b"alice").address
    bob: str = keypair_from_seed(b"bob").address
    carol: str = keypair_from_seed(b"carol").address
    operator: str = keypair_from_seed(b"operator").address

    def mint(self, owner: Optional[str] = None, approve: bool = True) -> AssetRef:
        owner = owner or self.seller
        token_id = self.collection.mint(owner, name=f"Token for {owner[:8]}")
        if approve:
            self.collection.approve(owner, self.engine.contract, token_id)
        return AssetRef(self.collection.address, token_id)

    def list_token(self, end_in: int = 60, min_bid: int = 10, seller: Optional[str] = None) -> int:
        seller = seller or self.seller
        asset = self.mint(seller)
        return self.engine.create_auction(seller, asset, self.clock() + end_in, min_bid)

    def encrypt(self, who: str, amount: int, contract: Optional[str] = None) -> EncryptedInput:
        return self.coprocessor.encrypt_input(contract or self.engine.contract, who, amount)

    def bid(self, who: str, auction_id: int, amount: int) -> None:
        encrypted = self.encrypt(who, amount)
        self.engine.place_bid(who, auction_id, encrypted.handle, encrypted.proof)

    def last_request(self, auction_id: int) -> DecryptionRequest:
        return [r for r in self.published if r.auction_id == auction_id][-1]

    def fulfil(self, request: DecryptionRequest) -> DecryptionResponseMessage:
        return self.oracle.fulfil(DecryptionRequestMessage.from_request(self.engine.contract, request))

    def deliver(self, auction_id: int) -> DecryptionResponseMessage:
        response = self.fulfil(self.last_request(auction_id))
        self.engine.on_decryption_callback(
            self.oracle.address,
            response.auction_id,
            response.request_id,
            response.plain_amount,
            response.plain_bidder,
            response.attestation_bytes(),
        )
        return response

    def settle(self, auction_id: int) -> None:
        """Advance past the deadline, close and deliver the oracle result."""
        view = self.engine.get_auction(auction_id)
        self.clock.set(max(self.clock(), view.end_time + 1))
        self.engine.close_auction(self.carol, auction_id)
        if self.engine.is_decryption_pending(auction_id):
            self.deliver(auction_id)


def build_world(storage=None, coprocessor=None, collection=None, **config_overrides) -> AuctionWorld:
    coprocessor = coprocessor or LocalCoprocessor(keypair_from_seed(b"input-verifier"))
    oracle = DecryptionOracle(coprocessor, keypair_from_seed(b"oracle"))
    settings = dict(
        oracle_address=oracle.address,
        oracle_public_key=oracle.public_key,
        operator_address=keypair_from_seed(b"operator").address,
    )
    settings.update(config_overrides)
    config = EngineConfig(**settings)

    collection = collection or NftCollection.deploy("test-collection")
    registry = CollectionDirectory(collection)
    clock = ManualClock(T0)
    engine = AuctionEngine(config, coprocessor.executor_for(config.contract_address), registry, clock, storage)

    world = AuctionWorld(
        coprocessor=coprocessor,
        oracle=oracle,
        config=config,
        collection=collection,
        registry=registry,
        clock=clock,
        engine=engine,
    )
    engine.subscribe_requests(world.published.append)
    return world


@pytest.fixture
def world():
    return build_world()


@pytest.fixture
def degraded_world():
    return build_world(degraded_mode_enabled=True)
