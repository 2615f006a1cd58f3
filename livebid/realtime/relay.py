"""Best-effort fan-out of real-time events to registered connections."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable

from ..auction.models import BidEvent
from ..config import DEFAULT_LINK_TEMPLATE
from ..errors import DeliveryError
from ..notifications.composer import build_notification
from .registry import ConnectionRegistry
from .transport import ConnectionHandle

logger = logging.getLogger(__name__)

NEW_BID_DATA = "newBidData"
NEW_BID_NOTIFICATION = "newBidNotification"
WINNER_SELECTED = "winnerSelected"

_DELIVERED = "delivered"
_SKIPPED = "skipped"
_FAILED = "failed"


@dataclass
class DeliveryReport:
    delivered: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def attempted(self) -> int:
        return self.delivered + self.skipped + self.failed


class BidEventRelay:
    def __init__(
        self,
        registry: ConnectionRegistry,
        *,
        send_timeout_ms: int = 1000,
        link_template: str = DEFAULT_LINK_TEMPLATE,
    ) -> None:
        self._registry = registry
        self._send_timeout = send_timeout_ms / 1000
        self._link_template = link_template
        self.stats: Counter[str] = Counter()

    async def relay(self, bid_event: BidEvent) -> DeliveryReport:
        return await self.broadcast(NEW_BID_DATA, bid_event.to_dict())

    async def broadcast(self, event: str, payload: Any) -> DeliveryReport:
        deliveries = [(user_id, handle, payload) for user_id, handle in self._registry.snapshot()]
        return await self._fan_out(event, deliveries)

    async def notify(self, bid_event: BidEvent, auction_name: str) -> DeliveryReport:
        deliveries = [
            (
                user_id,
                handle,
                build_notification(bid_event, user_id, auction_name, self._link_template).to_dict(),
            )
            for user_id, handle in self._registry.snapshot()
        ]
        return await self._fan_out(NEW_BID_NOTIFICATION, deliveries)

    async def send_to(self, handle: ConnectionHandle, event: str, payload: Any) -> bool:
        outcome = await self._deliver(None, handle, event, payload)
        self.stats[outcome] += 1
        return outcome == _DELIVERED

    async def _fan_out(
        self,
        event: str,
        deliveries: Iterable[tuple[str, ConnectionHandle, Any]],
    ) -> DeliveryReport:
        tasks = [self._deliver(user_id, handle, event, payload) for user_id, handle, payload in deliveries]
        outcomes = await asyncio.gather(*tasks) if tasks else []
        report = DeliveryReport()
        for outcome in outcomes:
            setattr(report, outcome, getattr(report, outcome) + 1)
            self.stats[outcome] += 1
        logger.debug(
            "event=%s delivered=%d skipped=%d failed=%d",
            event,
            report.delivered,
            report.skipped,
            report.failed,
        )
        return report

    async def _deliver(
        self,
        user_id: str | None,
        handle: ConnectionHandle,
        event: str,
        payload: Any,
    ) -> str:
        if not handle.is_open:
            return _SKIPPED
        try:
            await asyncio.wait_for(handle.send(event, payload), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "event=%s user=%s connection=%s send timed out",
                event,
                user_id,
                handle.connection_id,
            )
            return _FAILED
        except DeliveryError as exc:
            logger.warning(
                "event=%s user=%s connection=%s delivery failed: %s",
                event,
                user_id,
                handle.connection_id,
                exc,
            )
            return _FAILED
        return _DELIVERED
