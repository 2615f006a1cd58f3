"""Operational stats endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from ..auction.resolver import WinnerResolver
from ..realtime.registry import ConnectionRegistry
from ..realtime.relay import BidEventRelay

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_relay(request: Request) -> BidEventRelay:
    return request.app.state.relay


def _get_resolver(request: Request) -> WinnerResolver:
    return request.app.state.resolver


def _get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.connection_registry


@router.get("/stats")
async def stats(
    relay: BidEventRelay = Depends(_get_relay),
    resolver: WinnerResolver = Depends(_get_resolver),
    registry: ConnectionRegistry = Depends(_get_registry),
) -> dict[str, Any]:
    deliveries = relay.stats
    attempted = sum(deliveries.values())
    failure_rate = (deliveries["failed"] / attempted) if attempted else 0.0
    return {
        "registered_connections": len(registry),
        "deliveries": {
            "delivered": deliveries["delivered"],
            "skipped": deliveries["skipped"],
            "failed": deliveries["failed"],
            "failure_rate": round(failure_rate, 4),
        },
        "resolutions": {
            "resolved": resolver.stats["resolved"],
            "already_resolved": resolver.stats["already_resolved"],
            "no_bids": resolver.stats["no_bids"],
            "not_found": resolver.stats["not_found"],
            "cancelled": resolver.stats["cancelled"],
            "persistence_failures": resolver.stats["persistence_failures"],
        },
    }
