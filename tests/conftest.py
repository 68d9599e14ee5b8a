from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator, List, Tuple

import pytest

# Ensure local "src/" takes precedence over any globally-installed "assetex" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from assetex.runtime import metrics  # noqa: E402
from assetex.runtime.executor import MarketExecutor  # noqa: E402
from assetex.runtime.payouts import MemoryPayoutRail, PayoutRailError  # noqa: E402

PLATFORM = "platform"


class FlakyRail(MemoryPayoutRail):
    """Memory rail that fails pay() for chosen recipients."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_for: set[str] = set()
        self.calls: List[Tuple[str, str, int]] = []

    def pay(self, recipient: str, amount: int) -> None:
        self.calls.append(("pay", recipient, int(amount)))
        if recipient in self.fail_for:
            raise PayoutRailError(f"rail down for {recipient}")
        super().pay(recipient, amount)

    def reverse(self, recipient: str, amount: int) -> None:
        self.calls.append(("reverse", recipient, int(amount)))
        super().reverse(recipient, amount)


@pytest.fixture(autouse=True)
def _reset_metrics() -> Iterator[None]:
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def rail() -> FlakyRail:
    return FlakyRail()


@pytest.fixture
def market(rail: FlakyRail) -> MarketExecutor:
    """In-memory market with the default 2.5% fee."""
    return MarketExecutor(platform_owner=PLATFORM, market_id="assetex-test", fee_bps=250, payout_rail=rail)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "assetex_test.db")
