"""Expose currently loaded server config for debugging."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ..config import ServerConfig

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_config(request: Request) -> ServerConfig:
    return request.app.state.server_config


@router.get("/config")
async def config(request: Request, config: ServerConfig = Depends(_get_config)) -> dict:
    return {
        "version": request.app.version,
        "storage_backend": config.storage.backend,
        "send_timeout_ms": config.transport.send_timeout_ms,
        "resolution_max_retries": config.resolution.max_retries,
        "notification_link_template": config.notifications.link_template,
        "log_level": config.logging.level,
        "schemas": request.app.state.schema_registry.names,
    }
