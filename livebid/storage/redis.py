"""Redis storage backend using redis-py asyncio client."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable

import orjson
from redis import asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from ..auction.fsm import close_status
from ..auction.models import Auction, AuctionStatus, Bid, BidderProfile
from ..errors import (
    AlreadyResolvedError,
    DuplicateBidError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
)


class RedisStorage:
    def __init__(self, *, url: str, prefix: str = "livebid") -> None:
        if not url:
            raise ValueError("redis url missing")
        self._redis = aioredis.from_url(url)
        self._prefix = prefix.rstrip(":")

    def _auction_key(self, auction_id: str) -> str:
        return f"{self._prefix}:auction:{auction_id}"

    def _auction_bids_key(self, auction_id: str) -> str:
        return f"{self._prefix}:auction:{auction_id}:bids"

    def _bid_key(self, bid_id: str) -> str:
        return f"{self._prefix}:bid:{bid_id}"

    def _bid_amounts_key(self, auction_id: str, bidder_id: str) -> str:
        return f"{self._prefix}:bid-amounts:{auction_id}:{bidder_id}"

    def _profile_key(self, user_id: str) -> str:
        return f"{self._prefix}:profile:{user_id}"

    async def _get_json(self, key: str) -> dict[str, Any] | None:
        try:
            raw = await self._redis.get(key)
        except RedisError as exc:
            raise PersistenceError(f"redis read failed for {key}") from exc
        if raw is None:
            return None
        return orjson.loads(raw)

    async def find_bids_by_auction(self, auction_id: str) -> list[Bid]:
        try:
            bid_ids = await self._redis.smembers(self._auction_bids_key(auction_id))
            if not bid_ids:
                return []
            keys = [self._bid_key(bid_id.decode() if isinstance(bid_id, bytes) else bid_id) for bid_id in bid_ids]
            values = await self._redis.mget(keys)
        except RedisError as exc:
            raise PersistenceError(f"redis read failed for auction {auction_id} bids") from exc
        bids = [Bid.from_dict(orjson.loads(value)) for value in values if value]
        return sorted(bids, key=lambda bid: (bid.placed_at, bid.bid_id))

    async def find_auction_by_id(self, auction_id: str) -> Auction | None:
        data = await self._get_json(self._auction_key(auction_id))
        return Auction.from_dict(data) if data else None

    async def find_bid_by_id(self, bid_id: str) -> Bid | None:
        data = await self._get_json(self._bid_key(bid_id))
        return Bid.from_dict(data) if data else None

    async def find_bidder_profile(self, user_id: str) -> BidderProfile | None:
        data = await self._get_json(self._profile_key(user_id))
        return BidderProfile.from_dict(data) if data else None

    async def _update_auction(
        self, auction_id: str, mutate: Callable[[Auction], Auction]
    ) -> Auction:
        key = self._auction_key(auction_id)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(key)
                        raw = await pipe.get(key)
                        if raw is None:
                            raise NotFoundError(f"auction {auction_id} not found")
                        updated = mutate(Auction.from_dict(orjson.loads(raw)))
                        pipe.multi()
                        pipe.set(key, orjson.dumps(updated.to_dict()))
                        await pipe.execute()
                        return updated
                    except WatchError:
                        continue
        except RedisError as exc:
            raise PersistenceError(f"redis write failed for auction {auction_id}") from exc

    async def save_auction(self, auction: Auction) -> Auction:
        def apply(current: Auction) -> Auction:
            if current.winning_bid_id and current.winning_bid_id != auction.winning_bid_id:
                raise AlreadyResolvedError(f"auction {auction.auction_id} already has a winner")
            if current.is_terminal and current.status is not auction.status:
                raise InvalidTransitionError(
                    f"auction {auction.auction_id} is already {current.status.value}"
                )
            return auction

        return await self._update_auction(auction.auction_id, apply)

    async def complete_auction(self, auction_id: str, bid_id: str) -> Auction:
        bid = await self.find_bid_by_id(bid_id)
        if bid is None or bid.auction_id != auction_id:
            raise NotFoundError(f"bid {bid_id} not found on auction {auction_id}")

        def apply(current: Auction) -> Auction:
            if current.winning_bid_id or current.status is AuctionStatus.CANCELLED:
                raise AlreadyResolvedError(f"auction {auction_id} is not resolvable")
            return replace(current, status=close_status(current.status), winning_bid_id=bid_id)

        return await self._update_auction(auction_id, apply)

    async def create_auction(self, auction: Auction) -> Auction:
        try:
            created = await self._redis.set(
                self._auction_key(auction.auction_id),
                orjson.dumps(auction.to_dict()),
                nx=True,
            )
        except RedisError as exc:
            raise PersistenceError(f"redis write failed for auction {auction.auction_id}") from exc
        if not created:
            raise ValueError(f"auction {auction.auction_id} already exists")
        return auction

    async def create_bid(self, bid: Bid) -> Bid:
        if await self.find_auction_by_id(bid.auction_id) is None:
            raise NotFoundError(f"auction {bid.auction_id} not found")
        bid_key = self._bid_key(bid.bid_id)
        amounts_key = self._bid_amounts_key(bid.auction_id, bid.bidder_id)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(bid_key, amounts_key)
                        if await pipe.exists(bid_key):
                            raise DuplicateBidError(f"bid {bid.bid_id} already exists")
                        if await pipe.sismember(amounts_key, bid.amount):
                            raise DuplicateBidError(
                                f"bidder {bid.bidder_id} already bid {bid.amount} "
                                f"on auction {bid.auction_id}"
                            )
                        # amount reservation, bid document and index land together or not at all
                        pipe.multi()
                        pipe.sadd(amounts_key, bid.amount)
                        pipe.set(bid_key, orjson.dumps(bid.to_dict()))
                        pipe.sadd(self._auction_bids_key(bid.auction_id), bid.bid_id)
                        await pipe.execute()
                        return bid
                    except WatchError:
                        continue
        except RedisError as exc:
            raise PersistenceError(f"redis write failed for bid {bid.bid_id}") from exc

    async def create_bidder_profile(self, profile: BidderProfile) -> BidderProfile:
        try:
            await self._redis.set(self._profile_key(profile.user_id), orjson.dumps(profile.to_dict()))
        except RedisError as exc:
            raise PersistenceError(f"redis write failed for profile {profile.user_id}") from exc
        return profile

    async def ping(self) -> None:
        try:
            await self._redis.ping()
        except RedisError as exc:
            raise PersistenceError("redis unreachable") from exc

    async def close(self) -> None:
        await self._redis.aclose()
