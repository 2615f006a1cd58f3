"""Per-recipient bid notification text."""

from __future__ import annotations

from ..auction.models import BidEvent, Notification
from ..config import DEFAULT_LINK_TEMPLATE

BID_CATEGORY = "bid"


def compose(bid_event: BidEvent, recipient_id: str | None, auction_name: str) -> str:
    actor = "You" if recipient_id == bid_event.bidder_id else bid_event.bidder_name
    return f"{actor} placed a ${bid_event.amount} bid on {auction_name}"


def build_notification(
    bid_event: BidEvent,
    recipient_id: str | None,
    auction_name: str,
    link_template: str = DEFAULT_LINK_TEMPLATE,
) -> Notification:
    return Notification(
        recipient_id=recipient_id,
        message=compose(bid_event, recipient_id, auction_name),
        category=BID_CATEGORY,
        auction_id=bid_event.auction_id,
        link=link_template.format(auction_id=bid_event.auction_id),
    )
