"""Connection handles wrapping live transport sockets."""

from __future__ import annotations

import uuid
from typing import Any, Protocol

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from ..errors import DeliveryError
from ..transport.codec import encode_frame


class ConnectionHandle(Protocol):
    connection_id: str

    @property
    def is_open(self) -> bool: ...

    async def send(self, event: str, data: Any) -> None: ...


class WebSocketConnection:
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self.connection_id = connection_id or f"conn_{uuid.uuid4().hex}"

    @property
    def is_open(self) -> bool:
        return (
            self._websocket.client_state is WebSocketState.CONNECTED
            and self._websocket.application_state is WebSocketState.CONNECTED
        )

    async def send(self, event: str, data: Any) -> None:
        if not self.is_open:
            raise DeliveryError(f"{self.connection_id} is closed")
        try:
            await self._websocket.send_text(encode_frame(event, data))
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            raise DeliveryError(f"send to {self.connection_id} failed") from exc

    def __repr__(self) -> str:
        return f"WebSocketConnection({self.connection_id})"
