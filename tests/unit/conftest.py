"""Shared fixtures for live bidding tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from livebid.auction.models import Auction, AuctionStatus, Bid, BidderProfile
from livebid.auction.resolver import WinnerResolver
from livebid.errors import DeliveryError, PersistenceError
from livebid.realtime.registry import ConnectionRegistry
from livebid.realtime.relay import BidEventRelay
from livebid.storage.in_memory import InMemoryStorage

T0 = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeConnection:
    """Connection handle recording every frame it receives."""

    def __init__(
        self,
        connection_id: str,
        *,
        open: bool = True,
        fail: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.connection_id = connection_id
        self.sent: list[tuple[str, Any]] = []
        self._open = open
        self._fail = fail
        self._delay = delay

    @property
    def is_open(self) -> bool:
        return self._open

    def close(self) -> None:
        self._open = False

    async def send(self, event: str, data: Any) -> None:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise DeliveryError(f"{self.connection_id} went away")
        self.sent.append((event, data))

    def events(self, name: str) -> list[Any]:
        return [data for event, data in self.sent if event == name]


class RecordingStorage(InMemoryStorage):
    """In-memory store counting winner writes and failing the first ``failures`` of them."""

    def __init__(self, failures: int = 0) -> None:
        super().__init__()
        self.complete_calls = 0
        self.writes = 0
        self._failures = failures

    async def complete_auction(self, auction_id: str, bid_id: str) -> Auction:
        self.complete_calls += 1
        if self._failures:
            self._failures -= 1
            raise PersistenceError("connection reset during write")
        result = await super().complete_auction(auction_id, bid_id)
        self.writes += 1
        return result


def make_auction(
    auction_id: str = "a1",
    *,
    name: str = "Vase",
    status: AuctionStatus = AuctionStatus.LIVE,
    winning_bid_id: str | None = None,
) -> Auction:
    return Auction(
        auction_id=auction_id,
        name=name,
        seller_id="seller",
        starting_price=10,
        start_time=T0,
        end_time=T0 + timedelta(hours=1),
        status=status,
        winning_bid_id=winning_bid_id,
    )


def make_bid(bid_id: str, bidder_id: str, amount: int, minutes: int = 0, auction_id: str = "a1") -> Bid:
    return Bid(
        bid_id=bid_id,
        bidder_id=bidder_id,
        auction_id=auction_id,
        amount=amount,
        placed_at=T0 + timedelta(minutes=minutes),
    )


@pytest.fixture
def store() -> RecordingStorage:
    return RecordingStorage()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def relay(registry: ConnectionRegistry) -> BidEventRelay:
    return BidEventRelay(registry, send_timeout_ms=50)


@pytest.fixture
def resolver(store: RecordingStorage, relay: BidEventRelay) -> WinnerResolver:
    return WinnerResolver(store, relay, max_retries=1)


@pytest.fixture
def seed(store: RecordingStorage):
    """Create an auction, its bids and the bidders' profiles in ``store``."""

    async def _seed(bids: list[Bid], auction: Auction | None = None) -> Auction:
        auction = auction or make_auction()
        await store.create_auction(auction)
        for bid in bids:
            await store.create_bid(bid)
        for bidder_id in sorted({bid.bidder_id for bid in bids}):
            await store.create_bidder_profile(
                BidderProfile(
                    user_id=bidder_id,
                    full_name=f"Bidder {bidder_id}",
                    email=f"{bidder_id}@example.com",
                )
            )
        return auction

    return _seed
