"""Storage backend factory."""

from __future__ import annotations

from typing import Protocol

from ..auction.models import Auction, Bid, BidderProfile
from ..config import ServerConfig
from .in_memory import InMemoryStorage
from .postgres import PostgresStorage
from .redis import RedisStorage


class AuctionStore(Protocol):
    async def find_bids_by_auction(self, auction_id: str) -> list[Bid]: ...

    async def find_auction_by_id(self, auction_id: str) -> Auction | None: ...

    async def find_bid_by_id(self, bid_id: str) -> Bid | None: ...

    async def find_bidder_profile(self, user_id: str) -> BidderProfile | None: ...

    async def save_auction(self, auction: Auction) -> Auction: ...

    async def complete_auction(self, auction_id: str, bid_id: str) -> Auction:
        """Record the winning bid and end the auction.

        Compare-and-set: applies only while no winner is recorded and the
        auction is not cancelled, otherwise raises ``AlreadyResolvedError``.
        """
        ...

    async def create_auction(self, auction: Auction) -> Auction: ...

    async def create_bid(self, bid: Bid) -> Bid: ...

    async def create_bidder_profile(self, profile: BidderProfile) -> BidderProfile: ...

    async def ping(self) -> None:
        """Raise ``PersistenceError`` when the backend cannot be reached."""
        ...

    async def close(self) -> None: ...


def build_storage(config: ServerConfig) -> AuctionStore:
    backend = config.storage.backend
    options = dict(config.storage.options)
    if backend == "in_memory":
        return InMemoryStorage()
    if backend == "redis":
        return RedisStorage(**options)
    if backend == "postgres":
        return PostgresStorage(**options)
    raise ValueError(f"unknown storage backend {backend}")
