"""
Unit tests for the in-memory NFT collections.
"""

import pytest

from fhenft.core.registry import AssetRef, AssetRegistry, CollectionDirectory, NftCollection
from fhenft.crypto import ZERO_ADDRESS, keypair_from_seed

ALICE = keypair_from_seed(b"alice").address
BOB = keypair_from_seed(b"bob").address
ENGINE = "0x" + "0e" * 20


@pytest.fixture
def collection():
    return NftCollection.deploy("unit-collection", name="Unit")


class TestNftCollection:

    def test_deploy_is_deterministic(self):
        assert NftCollection.deploy("x").address == NftCollection.deploy("x").address
        assert NftCollection.deploy("x").address != NftCollection.deploy("y").address

    def test_mint_assigns_sequential_ids(self, collection):
        assert collection.mint(ALICE, name="First") == 0
        assert collection.mint(ALICE) == 1
        assert collection.owner_of(0) == ALICE
        assert collection.token_name(0) == "First"

    def test_mint_to_zero_rejected(self, collection):
        with pytest.raises(ValueError):
            collection.mint(ZERO_ADDRESS)

    def test_unknown_token(self, collection):
        with pytest.raises(LookupError):
            collection.owner_of(99)

    def test_approved_transfer_clears_approval(self, collection):
        token_id = collection.mint(ALICE)
        collection.approve(ALICE, ENGINE, token_id)
        assert collection.get_approved(token_id) == ENGINE

        collection.transfer_from(ENGINE, ALICE, ENGINE, token_id)
        assert collection.owner_of(token_id) == ENGINE
        assert collection.get_approved(token_id) == ZERO_ADDRESS

    def test_operator_transfer(self, collection):
        token_id = collection.mint(ALICE)
        collection.set_approval_for_all(ALICE, ENGINE, True)
        assert collection.is_approved_for_all(ALICE, ENGINE)
        collection.transfer_from(ENGINE, ALICE, BOB, token_id)
        assert collection.owner_of(token_id) == BOB

    def test_revoked_operator(self, collection):
        token_id = collection.mint(ALICE)
        collection.set_approval_for_all(ALICE, ENGINE, True)
        collection.set_approval_for_all(ALICE, ENGINE, False)
        with pytest.raises(PermissionError):
            collection.transfer_from(ENGINE, ALICE, BOB, token_id)

    def test_unauthorized_transfer(self, collection):
        token_id = collection.mint(ALICE)
        with pytest.raises(PermissionError):
            collection.transfer_from(BOB, ALICE, BOB, token_id)

    def test_wrong_sender(self, collection):
        token_id = collection.mint(ALICE)
        with pytest.raises(PermissionError):
            collection.transfer_from(ALICE, BOB, ALICE, token_id)

    def test_only_owner_approves(self, collection):
        token_id = collection.mint(ALICE)
        with pytest.raises(PermissionError):
            collection.approve(BOB, BOB, token_id)


class TestCollectionDirectory:

    def test_routes_by_collection(self, collection):
        other = NftCollection.deploy("other")
        directory = CollectionDirectory(collection, other)
        token_id = other.mint(BOB)

        asset = AssetRef(other.address, token_id)
        assert isinstance(directory, AssetRegistry)
        assert directory.owner_of(asset) == BOB
        assert directory.holdings(BOB) == (asset,)

    def test_unknown_collection(self, collection):
        directory = CollectionDirectory(collection)
        with pytest.raises(LookupError):
            directory.owner_of(AssetRef("0x" + "99" * 20, 0))

    def test_asset_ref_roundtrip(self, collection):
        asset = AssetRef(collection.address.upper().replace("0X", "0x"), 3)
        assert asset.collection == collection.address
        assert AssetRef.from_dict(asset.to_dict()) == asset
        assert str(asset) == f"{collection.address}#3"
