"""Liveness and storage reachability for operators."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

from ..errors import PersistenceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    state = request.app.state
    try:
        await state.storage.ping()
        reachable = True
    except PersistenceError:
        logger.warning("storage backend %s unreachable", state.server_config.storage.backend, exc_info=True)
        reachable = False
    started = getattr(state, "start_time", None)
    return {
        "status": "healthy" if reachable else "degraded",
        "version": request.app.version,
        "uptime_seconds": int((datetime.now(timezone.utc) - started).total_seconds()) if started else 0,
        "storage": {"backend": state.server_config.storage.backend, "reachable": reachable},
        "connections": len(state.connection_registry),
        "resolutions_in_flight": state.resolver.in_flight,
    }
