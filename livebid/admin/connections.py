"""Expose the live connection registry."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from ..realtime.registry import ConnectionRegistry

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.connection_registry


@router.get("/connections")
async def connections(registry: ConnectionRegistry = Depends(_get_registry)) -> list[dict[str, Any]]:
    inventory = []
    for user_id, handle in registry.snapshot():
        inventory.append(
            {
                "user_id": user_id,
                "connection_id": handle.connection_id,
                "status": "open" if handle.is_open else "closed",
            }
        )
    return inventory
