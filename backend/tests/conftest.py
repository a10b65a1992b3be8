import asyncio
import inspect
import pathlib
import sys
from datetime import date
from decimal import Decimal

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from journal_analytics.config import AnalyticsSettings  # noqa: E402
from journal_analytics.services.domain import (  # noqa: E402
    ZERO,
    CategoryTotals,
    DailyPnLRecord,
    Position,
    Segment,
    TimeOfDay,
    TradeType,
)


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers used in the suite."""

    config.addinivalue_line("markers", "asyncio: mark test as running in an asyncio event loop")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    test_function = pyfuncitem.obj
    if inspect.iscoroutinefunction(test_function):
        loop = asyncio.new_event_loop()
        try:
            asyncio.set_event_loop(loop)
            funcargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
            loop.run_until_complete(test_function(**funcargs))
        finally:
            asyncio.set_event_loop(None)
            loop.close()
        return True
    return None


def daily_record(
    day: date,
    net: str | int,
    *,
    charges: str = "20",
    segment: Segment = Segment.EQUITY,
    trade_type: TradeType = TradeType.INTRADAY,
    position: Position = Position.LONG,
    time_of_day: TimeOfDay = TimeOfDay.MORNING,
) -> DailyPnLRecord:
    """One-trade day whose figures are derived from its net P&L."""

    net_pnl = Decimal(str(net))
    totals = CategoryTotals(pnl=net_pnl, trades=1)
    return DailyPnLRecord(
        date=day,
        total_trades=1,
        winning_trades=1 if net_pnl > 0 else 0,
        losing_trades=1 if net_pnl < 0 else 0,
        break_even_trades=1 if net_pnl == 0 else 0,
        gross_pnl=net_pnl + Decimal(charges),
        net_pnl=net_pnl,
        total_charges=Decimal(charges),
        average_win=net_pnl if net_pnl > 0 else ZERO,
        average_loss=-net_pnl if net_pnl < 0 else ZERO,
        largest_win=max(net_pnl, ZERO),
        largest_loss=min(net_pnl, ZERO),
        by_segment={segment: totals},
        by_trade_type={trade_type: totals},
        by_position={position: totals},
        by_time_of_day={time_of_day: totals},
    )


@pytest.fixture
def make_record():
    return daily_record


@pytest.fixture
def settings() -> AnalyticsSettings:
    return AnalyticsSettings(ledger_backend="memory", cache_backend="memory", _env_file=None)
