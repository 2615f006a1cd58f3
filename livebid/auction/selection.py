"""Winner selection helpers."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .models import Bid


def ranking_key(bid: Bid) -> tuple[int, datetime, str]:
    """Highest amount first, earliest placement breaks ties, then bid id."""
    return (-bid.amount, bid.placed_at, bid.bid_id)


def select_winner(bids: Iterable[Bid]) -> Optional[Bid]:
    return min(bids, key=ranking_key, default=None)


def rank_bids(bids: Iterable[Bid]) -> list[Bid]:
    return sorted(bids, key=ranking_key)
