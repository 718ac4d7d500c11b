"""
Adversarial Tests - robustness of the auction engine against hostile callers.

Tests verify:
1. Encrypted inputs cannot be replayed across bidders or contracts
2. Oracle responses cannot be forged, copied or replayed
3. Custody cannot be taken by anyone but the rightful party
4. Rejected calls leave no trace
"""

import pytest

from fhenft.core.auction import AuctionState, EventKind
from fhenft.core.errors import (
    AlreadyClaimed,
    AssetAlreadyEscrowed,
    InvalidProof,
    InvalidState,
    StaleDecryptionRequest,
    Unauthorized,
    UntrustedOracleResponse,
)
from fhenft.core.oracle import DecryptionOracle, DecryptionRequestMessage
from fhenft.crypto import keypair_from_seed
from fhenft.fhe import FheType

from conftest import T0


def _pending(world, *bids):
    auction_id = world.list_token()
    for who, amount in bids:
        world.bid(who, auction_id, amount)
    world.clock.set(world.engine.get_auction(auction_id).end_time + 1)
    world.engine.close_auction(world.carol, auction_id)
    return auction_id


# =============================================================================
# Bid Forgery
# =============================================================================


class TestBidForgery:

    def test_input_replayed_by_other_bidder(self, world):
        auction_id = world.list_token()
        encrypted = world.encrypt(world.alice, 50)
        with pytest.raises(InvalidProof):
            world.engine.place_bid(world.bob, auction_id, encrypted.handle, encrypted.proof)
        assert world.engine.get_bid_count(auction_id) == 0

    def test_input_bound_to_other_contract(self, world):
        auction_id = world.list_token()
        encrypted = world.encrypt(world.alice, 50, contract="0x" + "de" * 20)
        with pytest.raises(InvalidProof):
            world.engine.place_bid(world.alice, auction_id, encrypted.handle, encrypted.proof)

    def test_wrong_encrypted_type(self, world):
        auction_id = world.list_token()
        encrypted = world.coprocessor.encrypt_input(world.engine.contract, world.alice, 50, FheType.EADDRESS)
        with pytest.raises(InvalidProof):
            world.engine.place_bid(world.alice, auction_id, encrypted.handle, encrypted.proof)

    def test_internal_handle_as_bid(self, world):
        """The running maximum handle cannot be resubmitted as a bid."""
        auction_id = world.list_token()
        world.bid(world.bob, auction_id, 70)
        leaked = world.engine._auctions[auction_id].encrypted_max.max_ciphertext
        proof = world.encrypt(world.alice, 1).proof
        with pytest.raises(InvalidProof):
            world.engine.place_bid(world.alice, auction_id, leaked.handle, proof)

    def test_seller_self_bid(self, world):
        auction_id = world.list_token()
        with pytest.raises(Unauthorized):
            world.bid(world.seller, auction_id, 1_000)
        assert [e.kind for e in world.engine.get_events(auction_id)] == [EventKind.AUCTION_CREATED]

    def test_late_bid_after_close_attempt(self, world):
        auction_id = world.list_token()
        world.clock.set(T0 + 60)
        world.engine.close_auction(world.carol, auction_id)
        with pytest.raises(InvalidState):
            world.bid(world.alice, auction_id, 99)


# =============================================================================
# Oracle Forgery
# =============================================================================


class TestOracleForgery:

    def test_impersonated_oracle(self, world):
        auction_id = _pending(world, (world.alice, 15))
        response = world.fulfil(world.last_request(auction_id))
        with pytest.raises(Unauthorized):
            world.engine.on_decryption_callback(
                world.bob,
                auction_id,
                response.request_id,
                response.plain_amount,
                world.bob,
                response.attestation_bytes(),
            )

    def test_response_copied_across_auctions(self, world):
        first = _pending(world, (world.alice, 15))
        second = _pending(world, (world.bob, 90))
        response = world.fulfil(world.last_request(first))
        target = world.last_request(second)

        with pytest.raises(UntrustedOracleResponse):
            world.engine.on_decryption_callback(
                world.oracle.address,
                second,
                target.request_id,
                response.plain_amount,
                response.plain_bidder,
                response.attestation_bytes(),
            )
        assert world.engine.is_decryption_pending(second)

    def test_rogue_oracle_key(self, world):
        """A different oracle key signing for the right identity is rejected."""
        rogue = DecryptionOracle(world.coprocessor, keypair_from_seed(b"rogue"))
        auction_id = _pending(world, (world.alice, 15))
        request = world.last_request(auction_id)

        response = rogue.fulfil(DecryptionRequestMessage.from_request(world.engine.contract, request))
        with pytest.raises(UntrustedOracleResponse):
            world.engine.on_decryption_callback(
                world.oracle.address,
                auction_id,
                response.request_id,
                response.plain_amount,
                response.plain_bidder,
                response.attestation_bytes(),
            )

    def test_replay_after_rerequest(self, world):
        auction_id = _pending(world, (world.alice, 15), (world.bob, 14))
        stale = world.fulfil(world.last_request(auction_id))
        world.engine.rerequest_decryption(world.operator, auction_id)

        with pytest.raises(StaleDecryptionRequest):
            world.engine.on_decryption_callback(
                world.oracle.address,
                auction_id,
                stale.request_id,
                stale.plain_amount,
                stale.plain_bidder,
                stale.attestation_bytes(),
            )

        world.deliver(auction_id)
        with pytest.raises(InvalidState):
            world.deliver(auction_id)
        assert world.engine.get_auction(auction_id).winner == world.alice


# =============================================================================
# Custody
# =============================================================================


class TestCustody:

    def test_list_foreign_token(self, world):
        asset = world.mint(world.alice)
        with pytest.raises(Unauthorized):
            world.engine.create_auction(world.seller, asset, T0 + 60, 1)
        assert world.registry.owner_of(asset) == world.alice

    def test_list_without_approval(self, world):
        asset = world.mint(world.seller, approve=False)
        with pytest.raises(Unauthorized):
            world.engine.create_auction(world.seller, asset, T0 + 60, 1)
        assert world.engine.next_auction_id == 0

    def test_relist_escrowed_token(self, world):
        auction_id = world.list_token()
        asset = world.engine.get_auction(auction_id).asset
        with pytest.raises(AssetAlreadyEscrowed):
            world.engine.create_auction(world.seller, asset, T0 + 60, 1)

    def test_claim_race(self, world):
        auction_id = world.list_token()
        world.bid(world.alice, auction_id, 30)
        world.settle(auction_id)

        with pytest.raises(Unauthorized):
            world.engine.claim_asset(world.bob, auction_id)
        with pytest.raises(InvalidState):
            world.engine.reclaim_asset(world.seller, auction_id)

        world.engine.claim_asset(world.alice, auction_id)
        with pytest.raises(AlreadyClaimed):
            world.engine.claim_asset(world.alice, auction_id)
        assert world.engine.get_auction(auction_id).state == AuctionState.SETTLED
