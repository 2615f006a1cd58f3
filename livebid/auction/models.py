"""Shared auction data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from ..transport.timestamps import format_timestamp, parse_timestamp, utcnow


class AuctionStatus(str, Enum):
    UPCOMING = "upcoming"
    LIVE = "live"
    ENDED = "ended"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Bid:
    bid_id: str
    bidder_id: str
    auction_id: str
    amount: int
    placed_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int) or self.amount < 1:
            raise ValueError(f"bid amount must be a positive integer, got {self.amount!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "bid_id": self.bid_id,
            "bidder_id": self.bidder_id,
            "auction_id": self.auction_id,
            "amount": self.amount,
            "placed_at": format_timestamp(self.placed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Bid":
        return cls(
            bid_id=str(data["bid_id"]),
            bidder_id=str(data["bidder_id"]),
            auction_id=str(data["auction_id"]),
            amount=int(data["amount"]),
            placed_at=parse_timestamp(data["placed_at"]),
        )


@dataclass(frozen=True)
class Auction:
    auction_id: str
    name: str
    seller_id: str
    starting_price: int
    start_time: datetime
    end_time: datetime
    status: AuctionStatus = AuctionStatus.UPCOMING
    winning_bid_id: str | None = None

    def __post_init__(self) -> None:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be greater than start_time")
        if self.starting_price < 0:
            raise ValueError("starting_price cannot be negative")

    @property
    def is_terminal(self) -> bool:
        return self.status in (AuctionStatus.ENDED, AuctionStatus.CANCELLED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "auction_id": self.auction_id,
            "name": self.name,
            "seller_id": self.seller_id,
            "starting_price": self.starting_price,
            "start_time": format_timestamp(self.start_time),
            "end_time": format_timestamp(self.end_time),
            "status": self.status.value,
            "winning_bid_id": self.winning_bid_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Auction":
        return cls(
            auction_id=str(data["auction_id"]),
            name=data["name"],
            seller_id=str(data["seller_id"]),
            starting_price=int(data.get("starting_price", 0)),
            start_time=parse_timestamp(data["start_time"]),
            end_time=parse_timestamp(data["end_time"]),
            status=AuctionStatus(data.get("status", AuctionStatus.UPCOMING.value)),
            winning_bid_id=data.get("winning_bid_id"),
        )


@dataclass(frozen=True)
class BidderProfile:
    """Public profile fields attached to a broadcast winning bid."""

    user_id: str
    full_name: str
    email: str | None = None
    phone: str | None = None
    profile_picture: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "profile_picture": self.profile_picture,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BidderProfile":
        return cls(
            user_id=str(data["user_id"]),
            full_name=data["full_name"],
            email=data.get("email"),
            phone=data.get("phone"),
            profile_picture=data.get("profile_picture"),
        )


@dataclass(frozen=True)
class BidEvent:
    """Real-time event a client emits right after placing a bid."""

    bidder_id: str
    auction_id: str
    amount: int
    bidder_name: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "bidder_id": self.bidder_id,
            "auction_id": self.auction_id,
            "amount": self.amount,
            "bidder_name": self.bidder_name,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "BidEvent":
        return cls(
            bidder_id=str(payload["bidder_id"]),
            auction_id=str(payload["auction_id"]),
            amount=int(payload["amount"]),
            bidder_name=str(payload["bidder_name"]),
        )


@dataclass(frozen=True)
class Notification:
    recipient_id: str | None
    message: str
    category: str
    auction_id: str
    link: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient_id": self.recipient_id,
            "message": self.message,
            "category": self.category,
            "auction_id": self.auction_id,
            "link": self.link,
        }


@dataclass(frozen=True)
class WinningBid:
    bid: Bid
    auction: Auction
    bidder: BidderProfile | None = None
    already_resolved: bool = False

    def to_payload(self) -> dict[str, Any]:
        """Winning bid with the bidder's public profile in place of its identity."""
        payload = self.bid.to_dict()
        payload["bidder"] = (
            self.bidder.to_dict() if self.bidder else {"user_id": self.bid.bidder_id}
        )
        payload["auction"] = self.auction.to_dict()
        return payload


@dataclass(frozen=True)
class NoBids:
    auction_id: str
    reason: str = "no_bids"


Resolution = Union[WinningBid, NoBids]
