"""
Unit tests for claim / reclaim.
"""

import pytest

from fhenft.core.auction import EventKind
from fhenft.core.errors import AlreadyClaimed, InvalidState, Unauthorized


@pytest.fixture
def won(world):
    """Settled auction won by alice."""
    auction_id = world.list_token()
    world.bid(world.alice, auction_id, 30)
    world.bid(world.bob, auction_id, 20)
    world.settle(auction_id)
    return auction_id


@pytest.fixture
def unsold(world):
    """Settled auction with no bids."""
    auction_id = world.list_token()
    world.settle(auction_id)
    return auction_id


class TestClaim:

    def test_winner_claims(self, world, won):
        asset = world.engine.get_auction(won).asset
        world.engine.claim_asset(world.alice, won)
        assert world.registry.owner_of(asset) == world.alice
        assert world.engine.escrow.holder_of(asset) is None

        event = world.engine.get_events(won)[-1]
        assert event.kind == EventKind.ASSET_CLAIMED
        assert event.payload == {"winner": world.alice}

    def test_loser_cannot_claim(self, world, won):
        with pytest.raises(Unauthorized):
            world.engine.claim_asset(world.bob, won)

    def test_double_claim(self, world, won):
        world.engine.claim_asset(world.alice, won)
        with pytest.raises(AlreadyClaimed):
            world.engine.claim_asset(world.alice, won)

    def test_seller_cannot_reclaim_won_auction(self, world, won):
        with pytest.raises(InvalidState):
            world.engine.reclaim_asset(world.seller, won)

    def test_claim_before_settlement(self, world):
        auction_id = world.list_token()
        world.bid(world.alice, auction_id, 30)
        with pytest.raises(InvalidState):
            world.engine.claim_asset(world.alice, auction_id)

    def test_claim_while_pending(self, world):
        auction_id = world.list_token()
        world.bid(world.alice, auction_id, 30)
        world.clock.advance(61)
        world.engine.close_auction(world.carol, auction_id)
        with pytest.raises(InvalidState):
            world.engine.claim_asset(world.alice, auction_id)


class TestReclaim:

    def test_seller_reclaims(self, world, unsold):
        asset = world.engine.get_auction(unsold).asset
        world.engine.reclaim_asset(world.seller, unsold)
        assert world.registry.owner_of(asset) == world.seller
        assert world.engine.get_events(unsold)[-1].kind == EventKind.ASSET_RECLAIMED

    def test_only_seller(self, world, unsold):
        with pytest.raises(Unauthorized):
            world.engine.reclaim_asset(world.alice, unsold)

    def test_nobody_can_claim_unsold(self, world, unsold):
        with pytest.raises(InvalidState):
            world.engine.claim_asset(world.seller, unsold)

    def test_double_reclaim(self, world, unsold):
        world.engine.reclaim_asset(world.seller, unsold)
        with pytest.raises(AlreadyClaimed):
            world.engine.reclaim_asset(world.seller, unsold)

    def test_relist_after_reclaim(self, world, unsold):
        """A reclaimed asset may be escrowed again."""
        asset = world.engine.get_auction(unsold).asset
        world.engine.reclaim_asset(world.seller, unsold)
        world.collection.approve(world.seller, world.engine.contract, asset.token_id)
        again = world.engine.create_auction(world.seller, asset, world.clock() + 60, 5)
        assert world.engine.escrow.holder_of(asset) == again
