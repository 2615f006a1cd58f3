"""Configuration helpers for the live bidding server."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

_DEFAULT_SERVER_CONFIG = Path(__file__).resolve().parent / "server.yaml"
DEFAULT_LINK_TEMPLATE = "/single-auction-detail/{auction_id}"


@dataclass(frozen=True)
class TransportConfig:
    send_timeout_ms: int


@dataclass(frozen=True)
class StorageConfig:
    backend: str
    options: Mapping[str, Any]


@dataclass(frozen=True)
class ResolutionConfig:
    max_retries: int


@dataclass(frozen=True)
class NotificationConfig:
    link_template: str


@dataclass(frozen=True)
class LoggingConfig:
    level: str


@dataclass(frozen=True)
class ServerConfig:
    listen: Mapping[str, Any]
    transport: TransportConfig
    storage: StorageConfig
    resolution: ResolutionConfig
    notifications: NotificationConfig
    logging: LoggingConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    return yaml.safe_load(path.read_text()) or {}


def parse_server_config(data: Mapping[str, Any]) -> ServerConfig:
    transport = data.get("transport", {})
    storage = data.get("storage", {})
    resolution = data.get("resolution", {})
    notifications = data.get("notifications", {})
    logging_section = data.get("logging", {})
    max_retries = int(resolution.get("max_retries", 1))
    if max_retries < 0:
        raise ValueError("resolution.max_retries cannot be negative")
    return ServerConfig(
        listen=data.get("listen", {}),
        transport=TransportConfig(
            send_timeout_ms=int(transport.get("send_timeout_ms", 1000)),
        ),
        storage=StorageConfig(
            backend=str(storage.get("backend", "in_memory")),
            options=dict(storage.get("options") or {}),
        ),
        resolution=ResolutionConfig(max_retries=max_retries),
        notifications=NotificationConfig(
            link_template=str(notifications.get("link_template", DEFAULT_LINK_TEMPLATE)),
        ),
        logging=LoggingConfig(level=str(logging_section.get("level", "INFO")).upper()),
    )


@lru_cache(maxsize=1)
def get_server_config() -> ServerConfig:
    path = Path(os.getenv("LIVEBID_CONFIG_PATH", _DEFAULT_SERVER_CONFIG))
    return parse_server_config(_load_yaml(path))
