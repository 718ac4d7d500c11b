"""
NFT Collection - custody primitives for auctioned assets.

This module provides:
- The AssetRegistry protocol the escrow ledger consults (ownership,
  transfer authority, custody transfer)
- NftCollection: an in-memory ERC-721 style collection (mint, approve,
  operator approval, transfer)
- CollectionDirectory: resolves collection addresses to collections and
  implements AssetRegistry over all of them
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Set, Tuple, runtime_checkable

from fhenft.crypto import ZERO_ADDRESS, keccak256, normalize_address
from fhenft.utils.logger import get_logger

logger = get_logger("registry")


@dataclass(frozen=True)
class AssetRef:
    """Reference to one token in one collection."""
    collection: str
    token_id: int

    def __post_init__(self):
        object.__setattr__(self, "collection", normalize_address(self.collection))
        if self.token_id < 0:
            raise ValueError("token_id must be non-negative")

    def to_dict(self) -> dict:
        return {"collection": self.collection, "token_id": self.token_id}

    @classmethod
    def from_dict(cls, data: dict) -> "AssetRef":
        return cls(collection=data["collection"], token_id=int(data["token_id"]))

    def __str__(self) -> str:
        return f"{self.collection}#{self.token_id}"


@runtime_checkable
class AssetRegistry(Protocol):
    """Ownership queries and custody transfer for assets."""

    def owner_of(self, asset: AssetRef) -> str:
        ...

    def get_approved(self, asset: AssetRef) -> str:
        ...

    def is_approved_for_all(self, collection: str, owner: str, operator: str) -> bool:
        ...

    def transfer_from(self, operator: str, sender: str, recipient: str, asset: AssetRef) -> None:
        ...


@dataclass
class TokenRecord:
    token_id: int
    owner: str
    name: str = ""
    token_uri: str = ""
    approved: str = ZERO_ADDRESS


@dataclass
class NftCollection:
    """
    In-memory ERC-721 style collection.

    Errors follow the registry convention: LookupError for unknown tokens,
    PermissionError for unauthorized transfers or approvals.
    """
    address: str
    name: str = "FHE NFT Collection"
    tokens: Dict[int, TokenRecord] = field(default_factory=dict)
    operator_approvals: Dict[str, Set[str]] = field(default_factory=dict)
    next_token_id: int = 0

    def __post_init__(self):
        self.address = normalize_address(self.address)
        self._lock = threading.Lock()

    @classmethod
    def deploy(cls, label: str, name: str = "FHE NFT Collection") -> "NftCollection":
        """Create a collection at an address derived from a label."""
        return cls(address="0x" + keccak256(label.encode())[-20:].hex(), name=name)

    def mint(self, to: str, name: str = "", token_uri: str = "") -> int:
        to = normalize_address(to)
        if to == ZERO_ADDRESS:
            raise ValueError("Cannot mint to the zero address")

        with self._lock:
            token_id = self.next_token_id
            self.tokens[token_id] = TokenRecord(token_id=token_id, owner=to, name=name, token_uri=token_uri)
            self.next_token_id += 1

        logger.debug(f"Minted {self.address}#{token_id} to {to}")
        return token_id

    def owner_of(self, token_id: int) -> str:
        return self._token(token_id).owner

    def token_name(self, token_id: int) -> str:
        return self._token(token_id).name

    def get_approved(self, token_id: int) -> str:
        return self._token(token_id).approved

    def approve(self, caller: str, approved: str, token_id: int) -> None:
        caller = normalize_address(caller)
        token = self._token(token_id)
        if caller != token.owner and not self.is_approved_for_all(token.owner, caller):
            raise PermissionError(f"{caller} cannot approve token {token_id}")
        token.approved = normalize_address(approved)

    def set_approval_for_all(self, caller: str, operator: str, approved: bool) -> None:
        caller = normalize_address(caller)
        operator = normalize_address(operator)
        with self._lock:
            operators = self.operator_approvals.setdefault(caller, set())
            if approved:
                operators.add(operator)
            else:
                operators.discard(operator)

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return normalize_address(operator) in self.operator_approvals.get(normalize_address(owner), set())

    def transfer_from(self, operator: str, sender: str, recipient: str, token_id: int) -> None:
        operator = normalize_address(operator)
        sender = normalize_address(sender)
        recipient = normalize_address(recipient)

        with self._lock:
            token = self._token(token_id)
            if token.owner != sender:
                raise PermissionError(f"{sender} does not own token {token_id}")
            if recipient == ZERO_ADDRESS:
                raise ValueError("Cannot transfer to the zero address")
            authorized = (
                operator == token.owner
                or operator == token.approved
                or operator in self.operator_approvals.get(token.owner, set())
            )
            if not authorized:
                raise PermissionError(f"{operator} is not authorized to move token {token_id}")

            token.owner = recipient
            token.approved = ZERO_ADDRESS

        logger.debug(f"Transferred {self.address}#{token_id}: {sender} -> {recipient}")

    def _token(self, token_id: int) -> TokenRecord:
        token = self.tokens.get(token_id)
        if token is None:
            raise LookupError(f"Token {token_id} does not exist in {self.address}")
        return token


class CollectionDirectory:
    """AssetRegistry over every collection registered with it."""

    def __init__(self, *collections: NftCollection):
        self._collections: Dict[str, NftCollection] = {}
        for collection in collections:
            self.register(collection)

    def register(self, collection: NftCollection) -> None:
        self._collections[collection.address] = collection

    def collection(self, address: str) -> NftCollection:
        found = self._collections.get(normalize_address(address))
        if found is None:
            raise LookupError(f"Unknown collection {address}")
        return found

    def owner_of(self, asset: AssetRef) -> str:
        return self.collection(asset.collection).owner_of(asset.token_id)

    def get_approved(self, asset: AssetRef) -> str:
        return self.collection(asset.collection).get_approved(asset.token_id)

    def is_approved_for_all(self, collection: str, owner: str, operator: str) -> bool:
        return self.collection(collection).is_approved_for_all(owner, operator)

    def transfer_from(self, operator: str, sender: str, recipient: str, asset: AssetRef) -> None:
        self.collection(asset.collection).transfer_from(operator, sender, recipient, asset.token_id)

    def holdings(self, owner: str) -> Tuple[AssetRef, ...]:
        """All assets currently held by owner, across collections."""
        owner = normalize_address(owner)
        return tuple(
            AssetRef(collection.address, token.token_id)
            for collection in self._collections.values()
            for token in collection.tokens.values()
            if token.owner == owner
        )
