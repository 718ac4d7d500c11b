"""
Concurrent access to one engine from many threads.
"""

import threading

from fhenft.core.auction import AuctionState
from fhenft.crypto import keypair_from_seed


def _run(workers):
    threads = [threading.Thread(target=w) for w in workers]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def test_parallel_bids_count_every_bidder(world):
    auction_id = world.list_token(min_bid=1)
    bidders = [keypair_from_seed(f"bidder-{i}".encode()).address for i in range(12)]
    errors = []

    def bidder(address, amount):
        def work():
            try:
                for step in range(3):
                    world.bid(address, auction_id, amount + step)
            except Exception as exc:
                errors.append(exc)
        return work

    _run([bidder(address, 100 + 10 * i) for i, address in enumerate(bidders)])

    assert errors == []
    assert world.engine.get_bid_count(auction_id) == len(bidders)
    assert len(world.engine.get_events(auction_id)) == 1 + 3 * len(bidders)

    world.settle(auction_id)
    view = world.engine.get_auction(auction_id)
    assert view.winner == bidders[-1]
    assert view.winning_amount == 100 + 10 * 11 + 2


def test_parallel_close_issues_one_request(world):
    auction_id = world.list_token()
    world.bid(world.alice, auction_id, 15)
    world.clock.advance(61)
    states = []

    _run([lambda: states.append(world.engine.close_auction(world.carol, auction_id)) for _ in range(8)])

    assert states == [AuctionState.SETTLEMENT_PENDING] * 8
    assert len(world.published) == 1


def test_parallel_auctions(world):
    auction_ids = [world.list_token() for _ in range(6)]

    def work(auction_id):
        return lambda: [world.bid(who, auction_id, 20 + auction_id) for who in (world.alice, world.bob)]

    _run([work(a) for a in auction_ids])

    for auction_id in auction_ids:
        world.settle(auction_id)
        view = world.engine.get_auction(auction_id)
        assert view.winner == world.alice
        assert view.winning_amount == 20 + auction_id
