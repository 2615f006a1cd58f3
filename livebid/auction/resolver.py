"""Glue between bid selection, auction persistence and the winner broadcast."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from contextlib import asynccontextmanager
from typing import AsyncIterator

from ..errors import AlreadyResolvedError, NotFoundError, PersistenceError
from ..realtime.relay import WINNER_SELECTED, BidEventRelay
from ..storage import AuctionStore
from .models import Auction, AuctionStatus, BidderProfile, NoBids, Resolution, WinningBid
from .selection import select_winner

logger = logging.getLogger(__name__)


class WinnerResolver:
    def __init__(
        self,
        store: AuctionStore,
        relay: BidEventRelay,
        *,
        max_retries: int = 1,
    ) -> None:
        self._store = store
        self._relay = relay
        self._max_retries = max_retries
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: Counter[str] = Counter()
        self.stats: Counter[str] = Counter()

    @property
    def in_flight(self) -> int:
        return sum(self._waiters.values())

    @asynccontextmanager
    async def _auction_lock(self, auction_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(auction_id, asyncio.Lock())
        self._waiters[auction_id] += 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[auction_id] -= 1
            if not self._waiters[auction_id]:
                del self._waiters[auction_id]
                self._locks.pop(auction_id, None)

    async def resolve(self, auction_id: str) -> Resolution:
        async with self._auction_lock(auction_id):
            outcome = await self._select_and_record(auction_id)
        if isinstance(outcome, NoBids):
            self.stats[outcome.reason] += 1
            if outcome.reason == "no_bids":
                await self._relay.broadcast(WINNER_SELECTED, None)
            return outcome
        if outcome.already_resolved:
            self.stats["already_resolved"] += 1
            return outcome
        profile = await self._winner_profile(auction_id, outcome.bid.bidder_id)
        winner = WinningBid(bid=outcome.bid, auction=outcome.auction, bidder=profile)
        self.stats["resolved"] += 1
        await self._relay.broadcast(WINNER_SELECTED, winner.to_payload())
        logger.info(
            "auction=%s winner bid=%s bidder=%s amount=%d",
            auction_id,
            winner.bid.bid_id,
            winner.bid.bidder_id,
            winner.bid.amount,
        )
        return winner

    async def _select_and_record(self, auction_id: str) -> Resolution:
        auction = await self._store.find_auction_by_id(auction_id)
        if auction is None:
            logger.warning("auction=%s not found, nothing to resolve", auction_id)
            return NoBids(auction_id, reason="not_found")
        if auction.winning_bid_id:
            return await self.current_winner(auction)
        if auction.status is AuctionStatus.CANCELLED:
            logger.info("auction=%s is cancelled, skipping resolution", auction_id)
            return NoBids(auction_id, reason="cancelled")
        bids = await self._store.find_bids_by_auction(auction_id)
        winning_bid = select_winner(bids)
        if winning_bid is None:
            logger.info("auction=%s closed without bids", auction_id)
            return NoBids(auction_id, reason="no_bids")
        try:
            updated = await self._complete(auction_id, winning_bid.bid_id)
        except AlreadyResolvedError:
            current = await self._store.find_auction_by_id(auction_id)
            if current is None:
                raise NotFoundError(f"auction {auction_id} disappeared during resolution")
            if not current.winning_bid_id:
                return NoBids(auction_id, reason="cancelled")
            if current.winning_bid_id == winning_bid.bid_id:
                # an earlier attempt landed before its acknowledgement failed
                return WinningBid(bid=winning_bid, auction=current)
            return await self.current_winner(current)
        return WinningBid(bid=winning_bid, auction=updated)

    async def _winner_profile(self, auction_id: str, bidder_id: str) -> BidderProfile | None:
        # runs after the winner is recorded, so a read failure only drops the profile
        try:
            return await self._store.find_bidder_profile(bidder_id)
        except PersistenceError:
            logger.warning(
                "auction=%s profile read failed for bidder=%s, broadcasting without it",
                auction_id,
                bidder_id,
                exc_info=True,
            )
            return None

    async def _complete(self, auction_id: str, bid_id: str) -> Auction:
        attempt = 0
        while True:
            try:
                return await self._store.complete_auction(auction_id, bid_id)
            except PersistenceError:
                if attempt >= self._max_retries:
                    self.stats["persistence_failures"] += 1
                    logger.error(
                        "auction=%s could not record winner bid=%s",
                        auction_id,
                        bid_id,
                        exc_info=True,
                    )
                    raise
                attempt += 1
                logger.warning(
                    "auction=%s winner write failed, retrying (%d/%d)",
                    auction_id,
                    attempt,
                    self._max_retries,
                )

    async def current_winner(self, auction: Auction) -> WinningBid:
        bid = await self._store.find_bid_by_id(auction.winning_bid_id)
        if bid is None:
            raise NotFoundError(
                f"auction {auction.auction_id} references missing bid {auction.winning_bid_id}"
            )
        profile = await self._store.find_bidder_profile(bid.bidder_id)
        return WinningBid(bid=bid, auction=auction, bidder=profile, already_resolved=True)
