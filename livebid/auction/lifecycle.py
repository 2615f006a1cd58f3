"""Operator-driven auction status changes."""

from __future__ import annotations

import logging
from dataclasses import replace

from ..errors import NotFoundError
from ..storage import AuctionStore
from .fsm import transition
from .models import Auction, AuctionStatus

logger = logging.getLogger(__name__)


async def transition_status(
    store: AuctionStore, auction_id: str, target: AuctionStatus
) -> Auction:
    auction = await store.find_auction_by_id(auction_id)
    if auction is None:
        raise NotFoundError(f"auction {auction_id} not found")
    if auction.status is target:
        return auction
    updated = replace(auction, status=transition(auction.status, target))
    saved = await store.save_auction(updated)
    logger.info("auction=%s status %s -> %s", auction_id, auction.status.value, target.value)
    return saved
