"""Error taxonomy shared by the resolver, relay and storage backends."""

from __future__ import annotations


class LiveBidError(Exception):
    """Base class for service errors."""


class NotFoundError(LiveBidError, LookupError):
    """Raised when an auction, bid or profile identity does not exist."""


class AlreadyResolvedError(LiveBidError):
    """Raised when an auction is no longer in a resolvable state."""


class PersistenceError(LiveBidError):
    """Raised when a store read or write fails."""


class DeliveryError(LiveBidError):
    """Raised when a single connection cannot receive a message."""


class DuplicateBidError(LiveBidError, ValueError):
    """Raised when a bidder repeats an amount on the same auction."""


class InvalidTransitionError(LiveBidError, ValueError):
    """Raised when an auction status change is not monotonic."""
