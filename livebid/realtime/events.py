"""Inbound real-time event handling."""

from __future__ import annotations

import logging
from typing import Any

from ..auction.models import BidEvent, NoBids, Resolution, WinningBid
from ..auction.resolver import WinnerResolver
from ..storage import AuctionStore
from ..validation.validator import SchemaRegistry
from .registry import ConnectionRegistry
from .relay import WINNER_SELECTED, BidEventRelay, DeliveryReport
from .transport import ConnectionHandle

logger = logging.getLogger(__name__)

JOINED = "joined"
ERROR = "error"

EVENT_ALIASES = {
    "join": "join",
    "bidPlaced": "bidPlaced",
    "selectWinner": "selectWinner",
    # Backwards compatibility aliases
    "joinAuction": "join",
    "newBid": "newBid",
    "sendNewBidNotification": "sendNewBidNotification",
}

_BID_FIELD_ALIASES = {
    "bidder_id": ("bidder_id", "bidderId", "id"),
    "auction_id": ("auction_id", "auctionId"),
    "amount": ("amount", "newBidAmount", "bidAmount"),
    "bidder_name": ("bidder_name", "bidderName", "fullName"),
}


class LiveEventService:
    def __init__(
        self,
        registry: ConnectionRegistry,
        relay: BidEventRelay,
        resolver: WinnerResolver,
        store: AuctionStore,
        schemas: SchemaRegistry,
    ) -> None:
        self._registry = registry
        self._relay = relay
        self._resolver = resolver
        self._store = store
        self._schemas = schemas

    async def handle(self, handle: ConnectionHandle, event: str, data: Any) -> None:
        name = EVENT_ALIASES.get(event)
        if name is None:
            raise ValueError(f"unknown event {event}")
        if name == "join":
            await self.join(handle, data)
        elif name == "bidPlaced":
            bid_event = self.parse_bid_event(data)
            await self._relay.relay(bid_event)
            await self.notify_bid(bid_event)
        elif name == "newBid":
            await self._relay.relay(self.parse_bid_event(data))
        elif name == "sendNewBidNotification":
            await self.notify_bid(self.parse_bid_event(data))
        elif name == "selectWinner":
            await self.select_winner(handle, data)

    async def join(self, handle: ConnectionHandle, data: Any) -> str:
        payload = {"user_id": data} if isinstance(data, str) else _pick(data, {"user_id": ("user_id", "userId")})
        self._schemas.validate("join", payload)
        user_id = payload["user_id"]
        await self._registry.register(user_id, handle)
        await self._relay.send_to(handle, JOINED, {"user_id": user_id})
        return user_id

    def parse_bid_event(self, data: Any) -> BidEvent:
        payload = _pick(data, _BID_FIELD_ALIASES)
        for key in ("bidder_id", "auction_id"):
            if isinstance(payload.get(key), int) and not isinstance(payload.get(key), bool):
                payload[key] = str(payload[key])
        amount = payload.get("amount")
        if isinstance(amount, str) and amount.strip().isdigit():
            payload["amount"] = int(amount.strip())
        self._schemas.validate("bid_event", payload)
        return BidEvent.from_payload(payload)

    async def notify_bid(self, bid_event: BidEvent) -> DeliveryReport | None:
        auction = await self._store.find_auction_by_id(bid_event.auction_id)
        if auction is None:
            logger.warning("auction=%s not found, bid notification dropped", bid_event.auction_id)
            return None
        return await self._relay.notify(bid_event, auction.name)

    async def select_winner(self, handle: ConnectionHandle, data: Any) -> Resolution:
        payload = (
            {"auction_id": data}
            if isinstance(data, str)
            else _pick(data, {"auction_id": ("auction_id", "auctionId")})
        )
        self._schemas.validate("select_winner", payload)
        resolution = await self._resolver.resolve(payload["auction_id"])
        # fresh winners and empty auctions were already broadcast to everyone
        if isinstance(resolution, WinningBid) and resolution.already_resolved:
            await self._relay.send_to(handle, WINNER_SELECTED, resolution.to_payload())
        elif isinstance(resolution, NoBids) and resolution.reason != "no_bids":
            await self._relay.send_to(handle, WINNER_SELECTED, None)
        return resolution

    async def reject(self, handle: ConnectionHandle, detail: str) -> None:
        await self._relay.send_to(handle, ERROR, {"detail": detail})

    async def disconnect(self, handle: ConnectionHandle) -> None:
        await self._registry.unregister(handle)


def _pick(data: Any, aliases: dict[str, tuple[str, ...]]) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError("event payload must be an object")
    picked: dict[str, Any] = {}
    for field, candidates in aliases.items():
        for candidate in candidates:
            if data.get(candidate) is not None:
                picked[field] = data[candidate]
                break
    return picked
