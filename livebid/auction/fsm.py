"""Auction status finite state machine."""

from __future__ import annotations

from ..errors import InvalidTransitionError
from .models import AuctionStatus

_TRANSITIONS = {
    AuctionStatus.UPCOMING: {AuctionStatus.LIVE, AuctionStatus.ENDED, AuctionStatus.CANCELLED},
    AuctionStatus.LIVE: {AuctionStatus.ENDED, AuctionStatus.CANCELLED},
    AuctionStatus.ENDED: set(),
    AuctionStatus.CANCELLED: set(),
}


def can_transition(current: AuctionStatus, target: AuctionStatus) -> bool:
    return target in _TRANSITIONS[current]


def transition(current: AuctionStatus, target: AuctionStatus) -> AuctionStatus:
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"invalid transition from {current.value} to {target.value}"
        )
    return target


def close_status(current: AuctionStatus) -> AuctionStatus:
    """Status an auction takes when its winner is recorded.

    An auction already ended by the scheduler stays ended; the winner is still
    recorded once.
    """
    if current is AuctionStatus.ENDED:
        return current
    return transition(current, AuctionStatus.ENDED)
