# src/assetex/runtime/market_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from assetex.ledger.constants import DEFAULT_FEE_BPS, MAX_FEE_BPS

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


@dataclass(frozen=True)
class MarketConfig:
    market_id: str
    mode: str  # "dev" | "testnet" | "prod"

    # Identity of the platform operator; fixed for the life of the market.
    platform_owner: str
    initial_fee_bps: int

    # Single SQLite DB file for snapshot + event log.
    db_path: str

    api_host: str
    api_port: int

    log_level: str


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_market_config(cfg: MarketConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.market_id, str) or not cfg.market_id.strip():
        raise ValueError("market_id must be a non-empty string")

    if not isinstance(cfg.platform_owner, str) or not cfg.platform_owner.strip():
        raise ValueError("platform_owner must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if int(cfg.initial_fee_bps) < 0 or int(cfg.initial_fee_bps) > MAX_FEE_BPS:
        raise ValueError(f"initial_fee_bps must be 0..{MAX_FEE_BPS}; got: {cfg.initial_fee_bps}")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")


def default_market_config() -> MarketConfig:
    return MarketConfig(
        market_id="assetex-dev",
        # Production-safe default: never drop into a permissive dev posture
        # without an explicit config.
        mode="prod",
        platform_owner=os.environ.get("ASSETEX_PLATFORM_OWNER", "platform"),
        initial_fee_bps=DEFAULT_FEE_BPS,
        db_path="./data/assetex.db",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def read_market_config_file(path: str) -> MarketConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError("market config must be a JSON object")

    d = default_market_config()

    cfg = MarketConfig(
        market_id=_as_str(raw.get("market_id"), d.market_id),
        mode=_as_str(raw.get("mode"), d.mode),
        platform_owner=_as_str(raw.get("platform_owner"), d.platform_owner),
        initial_fee_bps=_as_int(raw.get("initial_fee_bps"), d.initial_fee_bps),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level),
    )

    validate_market_config(cfg)
    return cfg


def load_market_config(*, config_path: Optional[str] = None) -> MarketConfig:
    p = config_path or os.environ.get("ASSETEX_MARKET_CONFIG_PATH")
    if p:
        return read_market_config_file(p)

    cfg = default_market_config()
    validate_market_config(cfg)
    return cfg


def apply_market_config_to_env(cfg: MarketConfig) -> None:
    validate_market_config(cfg)
    os.environ["ASSETEX_MARKET_ID"] = cfg.market_id
    os.environ["ASSETEX_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["ASSETEX_PLATFORM_OWNER"] = cfg.platform_owner
    os.environ["ASSETEX_FEE_BPS"] = str(int(cfg.initial_fee_bps))
    os.environ["ASSETEX_DB_PATH"] = cfg.db_path
    os.environ["ASSETEX_API_HOST"] = cfg.api_host
    os.environ["ASSETEX_API_PORT"] = str(int(cfg.api_port))
    os.environ["ASSETEX_LOG_LEVEL"] = cfg.log_level
