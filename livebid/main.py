"""FastAPI app: service wiring, auction routes and the /ws live channel."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from jsonschema import ValidationError

from . import __version__
from .admin import config as admin_config
from .admin import connections as admin_connections
from .admin import health as admin_health
from .admin import stats as admin_stats
from .auction.lifecycle import transition_status
from .auction.models import AuctionStatus, NoBids, WinningBid
from .auction.resolver import WinnerResolver
from .config import ServerConfig, get_server_config
from .errors import AlreadyResolvedError, InvalidTransitionError, NotFoundError, PersistenceError
from .realtime.events import LiveEventService
from .realtime.registry import ConnectionRegistry
from .realtime.relay import BidEventRelay
from .realtime.transport import WebSocketConnection
from .storage import AuctionStore, build_storage
from .transport.codec import FrameError, decode_frame
from .validation.validator import SchemaRegistry, get_schema_registry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    server_config = get_server_config()
    logging.getLogger("livebid").setLevel(server_config.logging.level)
    schema_registry = get_schema_registry()
    storage = build_storage(server_config)
    connection_registry = ConnectionRegistry()
    relay = BidEventRelay(
        connection_registry,
        send_timeout_ms=server_config.transport.send_timeout_ms,
        link_template=server_config.notifications.link_template,
    )
    resolver = WinnerResolver(
        storage,
        relay,
        max_retries=server_config.resolution.max_retries,
    )
    event_service = LiveEventService(
        connection_registry,
        relay,
        resolver,
        storage,
        schema_registry,
    )

    app.state.server_config = server_config
    app.state.schema_registry = schema_registry
    app.state.storage = storage
    app.state.connection_registry = connection_registry
    app.state.relay = relay
    app.state.resolver = resolver
    app.state.event_service = event_service
    app.state.start_time = datetime.now(timezone.utc)
    logger.info("livebid started with %s storage", server_config.storage.backend)

    yield

    await connection_registry.clear()
    await storage.close()
    logger.info("livebid stopped")


app = FastAPI(
    title="Live Bidding Server",
    version=__version__,
    docs_url="/docs",
    lifespan=lifespan,
)

app.include_router(admin_health.router)
app.include_router(admin_stats.router)
app.include_router(admin_config.router)
app.include_router(admin_connections.router)


# Dependency helpers ---------------------------------------------------------


def get_server_settings(request: Request) -> ServerConfig:
    return request.app.state.server_config


def get_schema_service(request: Request) -> SchemaRegistry:
    return request.app.state.schema_registry


def get_storage_backend(request: Request) -> AuctionStore:
    return request.app.state.storage


def get_resolver(request: Request) -> WinnerResolver:
    return request.app.state.resolver


# Routes ---------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root(settings: ServerConfig = Depends(get_server_settings)) -> dict[str, Any]:
    return {
        "service": "livebid",
        "version": app.version,
        "transport": {"send_timeout_ms": settings.transport.send_timeout_ms},
        "storage_backend": settings.storage.backend,
    }


@app.get("/ping", tags=["meta"])
async def ping() -> dict[str, Any]:
    return {"status": "ok", "version": app.version}


@app.get("/auctions/{auction_id}", tags=["auctions"])
async def get_auction(
    auction_id: str,
    store: AuctionStore = Depends(get_storage_backend),
    resolver: WinnerResolver = Depends(get_resolver),
) -> dict[str, Any]:
    try:
        auction = await store.find_auction_by_id(auction_id)
        if auction is None:
            raise HTTPException(status_code=404, detail=f"auction {auction_id} not found")
        winner = await resolver.current_winner(auction) if auction.winning_bid_id else None
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return {
        "auction": auction.to_dict(),
        "winner": winner.to_payload() if winner else None,
    }


@app.post("/auctions/{auction_id}/winner", tags=["auctions"])
async def resolve_winner(
    auction_id: str,
    resolver: WinnerResolver = Depends(get_resolver),
) -> dict[str, Any]:
    try:
        resolution = await resolver.resolve(auction_id)
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    return format_resolution(resolution)


@app.patch("/auctions/{auction_id}/status", tags=["auctions"])
async def change_status(
    auction_id: str,
    payload: dict[str, Any] = Body(...),
    store: AuctionStore = Depends(get_storage_backend),
    schemas: SchemaRegistry = Depends(get_schema_service),
) -> dict[str, Any]:
    try:
        schemas.validate("status_change", payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc.message)) from exc
    try:
        auction = await transition_status(store, auction_id, AuctionStatus(payload["status"]))
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (InvalidTransitionError, AlreadyResolvedError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return {"auction": auction.to_dict()}


@app.websocket("/ws")
async def live_channel(websocket: WebSocket) -> None:
    service: LiveEventService = websocket.app.state.event_service
    await websocket.accept()
    handle = WebSocketConnection(websocket)
    logger.info("connection %s opened", handle.connection_id)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            try:
                if raw is None:
                    raise FrameError("frame carries no payload")
                event, data = decode_frame(raw)
                await service.handle(handle, event, data)
            except ValidationError as exc:
                await service.reject(handle, str(exc.message))
            except (FrameError, ValueError, NotFoundError, PersistenceError) as exc:
                await service.reject(handle, str(exc))
    except WebSocketDisconnect:
        logger.info("connection %s closed", handle.connection_id)
    finally:
        await service.disconnect(handle)


def format_resolution(resolution: NoBids | WinningBid) -> dict[str, Any]:
    if isinstance(resolution, WinningBid):
        return {
            "auction_id": resolution.auction.auction_id,
            "winner": resolution.to_payload(),
            "already_resolved": resolution.already_resolved,
        }
    if resolution.reason == "not_found":
        raise HTTPException(status_code=404, detail=f"auction {resolution.auction_id} not found")
    if resolution.reason == "cancelled":
        raise HTTPException(status_code=409, detail=f"auction {resolution.auction_id} is cancelled")
    return {"auction_id": resolution.auction_id, "winner": None, "no_bid": True}
