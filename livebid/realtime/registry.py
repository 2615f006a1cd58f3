"""Registry of live connections keyed by user identity."""

from __future__ import annotations

import asyncio
import logging

from .transport import ConnectionHandle

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps a user identity to at most one live connection handle.

    Entries keep their insertion order; a reconnect swaps the handle in place.
    """

    def __init__(self) -> None:
        self._handles: dict[str, ConnectionHandle] = {}
        self._lock = asyncio.Lock()

    async def register(self, user_id: str, handle: ConnectionHandle) -> ConnectionHandle | None:
        if not user_id:
            raise ValueError("user identity missing")
        async with self._lock:
            previous = self._handles.get(user_id)
            self._handles[user_id] = handle
        if previous is not None and previous is not handle:
            logger.info("user=%s reconnected via %s", user_id, handle.connection_id)
            return previous
        logger.info("user=%s registered via %s", user_id, handle.connection_id)
        return None

    async def unregister(self, handle: ConnectionHandle) -> list[str]:
        async with self._lock:
            removed = [user_id for user_id, current in self._handles.items() if current is handle]
            for user_id in removed:
                del self._handles[user_id]
        for user_id in removed:
            logger.info("user=%s disconnected from %s", user_id, handle.connection_id)
        return removed

    def handle_for(self, user_id: str) -> ConnectionHandle | None:
        return self._handles.get(user_id)

    def snapshot(self) -> list[tuple[str, ConnectionHandle]]:
        return list(self._handles.items())

    async def clear(self) -> None:
        async with self._lock:
            self._handles.clear()

    def __len__(self) -> int:
        return len(self._handles)
