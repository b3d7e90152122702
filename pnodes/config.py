from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Tuple


def _int_env(name: str, default: int) -> int:
    raw = str(os.getenv(name, str(default))).strip()
    try:
        return int(raw)
    except Exception:
        return default


def _float_env(name: str, default: float) -> float:
    raw = str(os.getenv(name, str(default))).strip()
    try:
        return float(raw)
    except Exception:
        return default


def _offsets_env(name: str, default: Tuple[int, ...]) -> Tuple[int, ...]:
    raw = str(os.getenv(name, "")).strip()
    if not raw:
        return default
    try:
        offsets = tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError:
        return default
    if not offsets or any(o < 0 for o in offsets):
        return default
    return offsets


FEEDS = ("pods", "accounts")


@dataclass(frozen=True)
class Settings:
    prpc_url: str
    feed: str
    program_id: str
    rpc_timeout: float

    refresh_window: int
    tick_seconds: float
    page_size: int
    decode_offsets: Tuple[int, ...]

    api_host: str
    api_port: int

    log_level: str
    log_file: str | None


def get_settings() -> Settings:
    feed = str(os.getenv("PNODE_FEED", "pods")).strip().lower()
    if feed not in FEEDS:
        feed = "pods"

    settings = Settings(
        prpc_url=str(os.getenv("PNODE_PRPC_URL", "http://127.0.0.1:6000")).strip(),
        feed=feed,
        program_id=str(os.getenv("PNODE_PROGRAM_ID", "")).strip(),
        rpc_timeout=_float_env("PNODE_RPC_TIMEOUT", 5.0),
        refresh_window=_int_env("PNODE_REFRESH_WINDOW", 59),
        tick_seconds=_float_env("PNODE_TICK_SECONDS", 1.0),
        page_size=_int_env("PNODE_PAGE_SIZE", 10),
        decode_offsets=_offsets_env("PNODE_DECODE_OFFSETS", (0, 8)),
        api_host=str(os.getenv("PNODE_API_HOST", "0.0.0.0")).strip(),
        api_port=_int_env("PNODE_API_PORT", 8080),
        log_level=str(os.getenv("PNODE_LOG_LEVEL", "INFO")).strip().upper(),
        log_file=(os.getenv("PNODE_LOG_FILE") or "").strip() or None,
    )
    validate_settings(settings)
    return settings


def _require_valid_port(port: int, field_name: str = "port") -> None:
    if int(port) < 1 or int(port) > 65535:
        raise ValueError(f"{field_name} must be in range 1..65535")


def _require_non_empty(value: str, field_name: str) -> None:
    if not str(value or "").strip():
        raise ValueError(f"{field_name} is required")


def validate_settings(settings: Settings) -> None:
    _require_non_empty(settings.prpc_url, "prpc_url")
    _require_non_empty(settings.api_host, "api_host")
    _require_valid_port(settings.api_port, "api_port")
    if settings.refresh_window < 1:
        raise ValueError("refresh_window must be at least 1 tick")
    if settings.tick_seconds <= 0:
        raise ValueError("tick_seconds must be positive")
    if settings.page_size < 1:
        raise ValueError("page_size must be at least 1")
    if settings.rpc_timeout <= 0:
        raise ValueError("rpc_timeout must be positive")
