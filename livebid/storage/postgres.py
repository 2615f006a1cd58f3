"""Postgres storage backend leveraging asyncpg."""

from __future__ import annotations

from typing import Any

import asyncpg
import orjson

from ..auction.models import Auction, Bid, BidderProfile
from ..errors import (
    AlreadyResolvedError,
    DuplicateBidError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS auctions (
    auction_id TEXT PRIMARY KEY,
    data JSONB NOT NULL
);
CREATE TABLE IF NOT EXISTS bids (
    bid_id TEXT PRIMARY KEY,
    auction_id TEXT NOT NULL REFERENCES auctions (auction_id),
    bidder_id TEXT NOT NULL,
    amount BIGINT NOT NULL CHECK (amount > 0),
    placed_at TIMESTAMPTZ NOT NULL,
    data JSONB NOT NULL,
    UNIQUE (bidder_id, auction_id, amount)
);
CREATE INDEX IF NOT EXISTS idx_bids_auction_placed
ON bids (auction_id, placed_at, bid_id);
CREATE TABLE IF NOT EXISTS bidder_profiles (
    user_id TEXT PRIMARY KEY,
    data JSONB NOT NULL
);
"""


class PostgresStorage:
    def __init__(self, *, dsn: str | None = None, **connect_kwargs: Any) -> None:
        if not dsn and not connect_kwargs:
            raise ValueError("postgres connection details missing")
        self._dsn = dsn
        self._connect_kwargs = connect_kwargs
        self._pool: asyncpg.Pool | None = None

    def _encode(self, payload: dict[str, Any]) -> str:
        return orjson.dumps(payload).decode()

    def _decode(self, value: Any) -> dict[str, Any]:
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            return orjson.loads(value)
        return value

    async def _ensure_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            self._pool = await asyncpg.create_pool(dsn=self._dsn, **self._connect_kwargs)
            async with self._pool.acquire() as conn:
                await conn.execute(_SCHEMA)
        return self._pool

    async def _fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        try:
            pool = await self._ensure_pool()
            async with pool.acquire() as conn:
                return await conn.fetchrow(query, *args)
        except (asyncpg.PostgresError, OSError) as exc:
            raise PersistenceError(f"postgres query failed: {exc}") from exc

    async def _fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        try:
            pool = await self._ensure_pool()
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except (asyncpg.PostgresError, OSError) as exc:
            raise PersistenceError(f"postgres query failed: {exc}") from exc

    async def find_bids_by_auction(self, auction_id: str) -> list[Bid]:
        rows = await self._fetch(
            """SELECT data FROM bids WHERE auction_id=$1 ORDER BY placed_at, bid_id""",
            auction_id,
        )
        return [Bid.from_dict(self._decode(row["data"])) for row in rows]

    async def find_auction_by_id(self, auction_id: str) -> Auction | None:
        row = await self._fetchrow(
            """SELECT data FROM auctions WHERE auction_id=$1""",
            auction_id,
        )
        return Auction.from_dict(self._decode(row["data"])) if row else None

    async def find_bid_by_id(self, bid_id: str) -> Bid | None:
        row = await self._fetchrow("""SELECT data FROM bids WHERE bid_id=$1""", bid_id)
        return Bid.from_dict(self._decode(row["data"])) if row else None

    async def find_bidder_profile(self, user_id: str) -> BidderProfile | None:
        row = await self._fetchrow(
            """SELECT data FROM bidder_profiles WHERE user_id=$1""",
            user_id,
        )
        return BidderProfile.from_dict(self._decode(row["data"])) if row else None

    async def save_auction(self, auction: Auction) -> Auction:
        row = await self._fetchrow(
            """
            UPDATE auctions SET data=$2
            WHERE auction_id=$1
              AND (data->>'winning_bid_id' IS NULL OR data->>'winning_bid_id' = $3)
              AND (data->>'status' NOT IN ('ended', 'cancelled') OR data->>'status' = $4)
            RETURNING data
            """,
            auction.auction_id,
            self._encode(auction.to_dict()),
            auction.winning_bid_id,
            auction.status.value,
        )
        if row:
            return auction
        current = await self.find_auction_by_id(auction.auction_id)
        if current is None:
            raise NotFoundError(f"auction {auction.auction_id} not found")
        if current.winning_bid_id:
            raise AlreadyResolvedError(f"auction {auction.auction_id} already has a winner")
        raise InvalidTransitionError(
            f"auction {auction.auction_id} is already {current.status.value}"
        )

    async def complete_auction(self, auction_id: str, bid_id: str) -> Auction:
        bid = await self.find_bid_by_id(bid_id)
        if bid is None or bid.auction_id != auction_id:
            raise NotFoundError(f"bid {bid_id} not found on auction {auction_id}")
        row = await self._fetchrow(
            """
            UPDATE auctions
            SET data = data || jsonb_build_object('winning_bid_id', $2::text, 'status', 'ended')
            WHERE auction_id=$1
              AND data->>'winning_bid_id' IS NULL
              AND data->>'status' <> 'cancelled'
            RETURNING data
            """,
            auction_id,
            bid_id,
        )
        if row:
            return Auction.from_dict(self._decode(row["data"]))
        if await self.find_auction_by_id(auction_id) is None:
            raise NotFoundError(f"auction {auction_id} not found")
        raise AlreadyResolvedError(f"auction {auction_id} is not resolvable")

    async def create_auction(self, auction: Auction) -> Auction:
        try:
            await self._fetchrow(
                """INSERT INTO auctions(auction_id, data) VALUES($1, $2)""",
                auction.auction_id,
                self._encode(auction.to_dict()),
            )
        except PersistenceError as exc:
            if isinstance(exc.__cause__, asyncpg.UniqueViolationError):
                raise ValueError(f"auction {auction.auction_id} already exists") from exc
            raise
        return auction

    async def create_bid(self, bid: Bid) -> Bid:
        try:
            await self._fetchrow(
                """
                INSERT INTO bids(bid_id, auction_id, bidder_id, amount, placed_at, data)
                VALUES($1, $2, $3, $4, $5, $6)
                """,
                bid.bid_id,
                bid.auction_id,
                bid.bidder_id,
                bid.amount,
                bid.placed_at,
                self._encode(bid.to_dict()),
            )
        except PersistenceError as exc:
            if isinstance(exc.__cause__, asyncpg.UniqueViolationError):
                raise DuplicateBidError(
                    f"bidder {bid.bidder_id} already bid {bid.amount} on auction {bid.auction_id}"
                ) from exc
            if isinstance(exc.__cause__, asyncpg.ForeignKeyViolationError):
                raise NotFoundError(f"auction {bid.auction_id} not found") from exc
            raise
        return bid

    async def create_bidder_profile(self, profile: BidderProfile) -> BidderProfile:
        await self._fetchrow(
            """
            INSERT INTO bidder_profiles(user_id, data) VALUES($1, $2)
            ON CONFLICT (user_id) DO UPDATE SET data = EXCLUDED.data
            """,
            profile.user_id,
            self._encode(profile.to_dict()),
        )
        return profile

    async def ping(self) -> None:
        await self._fetchrow("SELECT 1")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
