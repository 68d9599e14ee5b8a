# src/assetex/runtime/executor_boot.py

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from assetex.ledger.constants import DEFAULT_FEE_BPS
from assetex.runtime.executor import MarketExecutor


@dataclass
class ExecutorBootConfig:
    db_path: str
    market_id: str
    platform_owner: str
    fee_bps: int


def boot_config_from_env() -> ExecutorBootConfig:
    return ExecutorBootConfig(
        db_path=os.environ.get("ASSETEX_DB_PATH", "./data/assetex.db"),
        market_id=os.environ.get("ASSETEX_MARKET_ID", "assetex-dev"),
        platform_owner=os.environ.get("ASSETEX_PLATFORM_OWNER", "platform"),
        fee_bps=int(os.environ.get("ASSETEX_FEE_BPS", str(DEFAULT_FEE_BPS))),
    )


def build_executor(cfg: Optional[ExecutorBootConfig] = None) -> MarketExecutor:
    """
    Build a MarketExecutor from an explicit boot config or, if omitted,
    from environment variables.

    The fee is only used when the database is created; afterwards the
    persisted fee (as changed through FEE_SET) wins.
    """
    c = cfg or boot_config_from_env()
    return MarketExecutor(
        db_path=c.db_path,
        market_id=c.market_id,
        platform_owner=c.platform_owner,
        fee_bps=c.fee_bps,
    )
