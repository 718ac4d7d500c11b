"""
FHENFT CLI - Command Line Interface for confidential NFT auctions

Main entry point for all CLI commands.
"""

import json
import click
from pathlib import Path

from fhenft.utils.logger import setup_logging, get_logger


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--env-file", default=None, help="dotenv file with FHENFT_* settings")
@click.option("--log-file", default=None, type=click.Path(dir_okay=False), help="Also write logs to this file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, env_file, log_file):
    """FHENFT - sealed-bid NFT auctions with encrypted bids"""
    import logging

    level = logging.DEBUG if debug else logging.INFO
    setup_logging(level=level, log_file=log_file)

    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
@click.option("--latency", default=0.0, type=float, help="Simulated oracle latency (seconds)")
@click.option("--data-dir", default=None, help="Persist the demo auction to this directory")
def demo(latency, data_dir):
    """Run a full sealed-bid auction end to end"""
    import asyncio
    from fhenft.core.auction import AuctionEngine
    from fhenft.core.config import EngineConfig
    from fhenft.core.oracle import DecryptionOracle, OracleRelay
    from fhenft.core.registry import AssetRef, CollectionDirectory, NftCollection
    from fhenft.core.storage import StorageManager
    from fhenft.crypto import keypair_from_seed
    from fhenft.fhe import LocalCoprocessor
    from fhenft.utils.clock import ManualClock

    click.echo("=" * 60)
    click.echo("  FHENFT - CONFIDENTIAL AUCTION DEMO")
    click.echo("=" * 60)
    click.echo()

    # Setup
    click.echo("📦 Initializing components...")
    seller = keypair_from_seed(b"demo-seller").address
    alice = keypair_from_seed(b"demo-alice").address
    bob = keypair_from_seed(b"demo-bob").address

    coprocessor = LocalCoprocessor()
    oracle = DecryptionOracle(coprocessor, keypair_from_seed(b"demo-oracle"))
    config = EngineConfig(oracle_address=oracle.address, oracle_public_key=oracle.public_key)
    storage = StorageManager(Path(data_dir), config.db_name) if data_dir else None

    collection = NftCollection.deploy("demo-collection", name="Demo Collection")
    registry = CollectionDirectory(collection)
    clock = ManualClock(1_700_000_000)
    engine = AuctionEngine(config, coprocessor.executor_for(config.contract_address), registry, clock, storage)
    relay = OracleRelay(engine, oracle, latency=latency)

    click.echo(f"  ✓ Engine at {engine.contract}")
    click.echo(f"  ✓ Oracle at {oracle.address}")
    click.echo()

    # Escrow
    click.echo("🖼️  Seller mints and lists a token...")
    token_id = collection.mint(seller, name="Sealed #1")
    collection.approve(seller, engine.contract, token_id)
    t0 = clock()
    auction_id = engine.create_auction(seller, AssetRef(collection.address, token_id), t0 + 60, 10)
    click.echo(f"  ✓ Auction {auction_id}: min bid 10, ends in 60s")
    click.echo(f"  ✓ Token now held by {collection.owner_of(token_id)}")
    click.echo()

    def bid(who: str, name: str, amount: int, at: int):
        clock.set(t0 + at)
        encrypted = coprocessor.encrypt_input(engine.contract, who, amount)
        engine.place_bid(who, auction_id, encrypted.handle, encrypted.proof)
        click.echo(f"  ✓ t+{at}s {name} bids (encrypted {encrypted.handle.hex()[:12]}...)")

    async def settle():
        relay.start()
        click.echo("🔒 Bidding...")
        bid(alice, "Alice", 15, 10)
        bid(bob, "Bob", 12, 20)
        bid(alice, "Alice", 20, 30)
        click.echo(f"  ✓ Distinct bidders: {engine.get_bid_count(auction_id)}")
        click.echo()

        click.echo("⏱️  Closing after the deadline...")
        clock.set(t0 + 61)
        state = engine.close_auction(bob, auction_id)
        click.echo(f"  ✓ State: {state.name}")
        await relay.join()
        await relay.stop()
        click.echo()

    asyncio.run(settle())

    view = engine.get_auction(auction_id)
    click.echo("⚖️  Settlement:")
    click.echo(f"  ✓ State: {view.state.name}")
    click.echo(f"  ✓ Winner: {'Alice' if view.winner == alice else view.winner}")
    click.echo(f"  ✓ Winning amount: {view.winning_amount}")
    click.echo()

    if view.winner is not None:
        engine.claim_asset(view.winner, auction_id)
        click.echo(f"🎁 Winner claimed the token; owner is now {collection.owner_of(token_id)}")
    else:
        engine.reclaim_asset(seller, auction_id)
        click.echo("↩️  No winner; seller reclaimed the token")
    click.echo()

    click.echo("📊 Events:")
    for event in engine.get_events(auction_id):
        click.echo(f"  {event.sequence:>3} {event.kind.value}")
    click.echo()
    click.echo("✅ Demo complete!")


# =============================================================================
# Inspect Command
# =============================================================================


@cli.command("inspect")
@click.option("--data-dir", default="data", help="Directory holding the auction database")
@click.option("--db-name", default="auctions.db", help="Database file name")
@click.option("--events", "show_events", is_flag=True, help="Also print the event log")
def inspect(data_dir, db_name, show_events):
    """Print persisted auctions"""
    from fhenft.core.storage import StorageManager

    logger = get_logger("cli")
    db_path = Path(data_dir) / db_name
    if not db_path.exists():
        raise click.ClickException(f"No database at {db_path}")

    storage = StorageManager(Path(data_dir), db_name)
    auctions = storage.load_auctions()
    logger.debug(f"Loaded {len(auctions)} auctions from {db_path}")

    click.echo(f"Auctions in {db_path}")
    click.echo("-" * 60)
    for auction in auctions:
        click.echo(f"  #{auction.auction_id} {auction.state.name:<18} {auction.asset}")
        click.echo(f"      seller={auction.seller} bidders={auction.bid_count} end={auction.end_time}")
        if auction.winner:
            click.echo(f"      winner={auction.winner} amount={auction.winning_amount}")
        if auction.settlement_mode:
            click.echo(f"      mode={auction.settlement_mode.value} released_to={auction.released_to}")

    if show_events:
        click.echo()
        click.echo("Events")
        click.echo("-" * 60)
        for event in storage.load_events():
            click.echo(f"  {event.sequence:>4} #{event.auction_id} {event.kind.value} {json.dumps(event.payload)}")

    storage.close()


# =============================================================================
# Config Command
# =============================================================================


@cli.command("config")
@click.pass_context
def show_config(ctx):
    """Show the effective engine configuration"""
    from dataclasses import asdict
    from fhenft.core.config import load_config
    from fhenft.crypto import bytes_to_hex

    try:
        config = load_config(ctx.obj.get("env_file"))
    except (FileNotFoundError, ValueError) as exc:
        raise click.ClickException(str(exc))

    values = asdict(config)
    if config.oracle_public_key is not None:
        values["oracle_public_key"] = bytes_to_hex(config.oracle_public_key)
    for key, value in values.items():
        click.echo(f"  {key}: {value}")


if __name__ == "__main__":
    cli()
