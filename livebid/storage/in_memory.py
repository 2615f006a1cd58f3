"""In-memory storage backend for auctions, bids and bidder profiles."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import replace

from ..auction.fsm import close_status
from ..auction.models import Auction, AuctionStatus, Bid, BidderProfile
from ..errors import AlreadyResolvedError, DuplicateBidError, InvalidTransitionError, NotFoundError


class InMemoryStorage:
    def __init__(self) -> None:
        self._auctions: dict[str, Auction] = {}
        self._bids: dict[str, Bid] = {}
        self._bids_by_auction: dict[str, list[str]] = defaultdict(list)
        self._bid_amounts: set[tuple[str, str, int]] = set()
        self._profiles: dict[str, BidderProfile] = {}
        self._lock = asyncio.Lock()

    async def find_bids_by_auction(self, auction_id: str) -> list[Bid]:
        async with self._lock:
            bids = [self._bids[bid_id] for bid_id in self._bids_by_auction.get(auction_id, [])]
        return sorted(bids, key=lambda bid: (bid.placed_at, bid.bid_id))

    async def find_auction_by_id(self, auction_id: str) -> Auction | None:
        async with self._lock:
            return self._auctions.get(auction_id)

    async def find_bid_by_id(self, bid_id: str) -> Bid | None:
        async with self._lock:
            return self._bids.get(bid_id)

    async def find_bidder_profile(self, user_id: str) -> BidderProfile | None:
        async with self._lock:
            return self._profiles.get(user_id)

    async def save_auction(self, auction: Auction) -> Auction:
        async with self._lock:
            current = self._auctions.get(auction.auction_id)
            if current is None:
                raise NotFoundError(f"auction {auction.auction_id} not found")
            if current.winning_bid_id and current.winning_bid_id != auction.winning_bid_id:
                raise AlreadyResolvedError(f"auction {auction.auction_id} already has a winner")
            if current.is_terminal and current.status is not auction.status:
                raise InvalidTransitionError(
                    f"auction {auction.auction_id} is already {current.status.value}"
                )
            self._auctions[auction.auction_id] = auction
            return auction

    async def complete_auction(self, auction_id: str, bid_id: str) -> Auction:
        async with self._lock:
            current = self._auctions.get(auction_id)
            if current is None:
                raise NotFoundError(f"auction {auction_id} not found")
            bid = self._bids.get(bid_id)
            if bid is None or bid.auction_id != auction_id:
                raise NotFoundError(f"bid {bid_id} not found on auction {auction_id}")
            if current.winning_bid_id or current.status is AuctionStatus.CANCELLED:
                raise AlreadyResolvedError(f"auction {auction_id} is not resolvable")
            updated = replace(
                current,
                status=close_status(current.status),
                winning_bid_id=bid_id,
            )
            self._auctions[auction_id] = updated
            return updated

    async def create_auction(self, auction: Auction) -> Auction:
        async with self._lock:
            if auction.auction_id in self._auctions:
                raise ValueError(f"auction {auction.auction_id} already exists")
            self._auctions[auction.auction_id] = auction
            return auction

    async def create_bid(self, bid: Bid) -> Bid:
        async with self._lock:
            if bid.auction_id not in self._auctions:
                raise NotFoundError(f"auction {bid.auction_id} not found")
            if bid.bid_id in self._bids:
                raise DuplicateBidError(f"bid {bid.bid_id} already exists")
            amount_key = (bid.bidder_id, bid.auction_id, bid.amount)
            if amount_key in self._bid_amounts:
                raise DuplicateBidError(
                    f"bidder {bid.bidder_id} already bid {bid.amount} on auction {bid.auction_id}"
                )
            self._bid_amounts.add(amount_key)
            self._bids[bid.bid_id] = bid
            self._bids_by_auction[bid.auction_id].append(bid.bid_id)
            return bid

    async def create_bidder_profile(self, profile: BidderProfile) -> BidderProfile:
        async with self._lock:
            self._profiles[profile.user_id] = profile
            return profile

    async def ping(self) -> None:
        return None

    async def close(self) -> None:
        return None
