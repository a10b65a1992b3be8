"""AnalyticsService wiring: ledger fetches, caching and invalidation."""

from __future__ import annotations

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from journal_analytics.services.analytics import AnalyticsService
from journal_analytics.services.cache import InMemoryCacheBackend, ResultCache
from journal_analytics.services.domain import (
    BreakdownDimension,
    DailyPnLRecord,
    PeriodType,
    PnLInput,
    Position,
    Segment,
    SymbolAggregate,
    TradeType,
)
from journal_analytics.services.errors import CacheBackendError, InvalidInputError
from journal_analytics.services.ledger import InMemoryLedgerStore

TODAY = date(2024, 3, 13)
USER = "trader-1"


class BrokenBackend:
    async def get(self, key):
        raise CacheBackendError("down")

    async def set(self, key, value, ttl_seconds):
        raise CacheBackendError("down")

    async def delete(self, key):
        raise CacheBackendError("down")

    async def delete_prefix(self, prefix):
        raise CacheBackendError("down")


class CountingLedger(InMemoryLedgerStore):
    def __init__(self) -> None:
        super().__init__()
        self.daily_fetches = 0

    async def fetch_daily_records(self, user_id, date_range):
        self.daily_fetches += 1
        return await super().fetch_daily_records(user_id, date_range)


def _symbol(name: str, net: str, trades: int) -> SymbolAggregate:
    return SymbolAggregate(symbol=name, net_pnl=Decimal(net), total_trades=trades, win_rate=Decimal("50"))


@pytest.fixture
def ledger(make_record) -> CountingLedger:
    store = CountingLedger()
    store.add_daily(
        USER,
        make_record(date(2023, 12, 1), -10),
        make_record(date(2024, 2, 20), 60),
        make_record(date(2024, 3, 11), -40, segment=Segment.FUTURES),
        make_record(TODAY, 100, trade_type=TradeType.SWING),
    )
    store.add_symbols(USER, _symbol("INFY", "500", 3), _symbol("TCS", "-200", 2), _symbol("FLAT", "0", 1))
    return store


@pytest.fixture
def service(ledger, settings) -> AnalyticsService:
    return AnalyticsService(ledger, ResultCache(InMemoryCacheBackend()), settings, clock=lambda: TODAY)


async def test_dashboard_summary_without_period_record(service):
    summary = await service.compute_dashboard_summary(USER)

    assert (summary.today.total_trades, summary.today.net_pnl, summary.today.win_rate) == (
        1,
        Decimal("100.00"),
        Decimal("100.00"),
    )
    month = summary.this_month
    assert (month.total_trades, month.net_pnl, month.win_rate) == (2, Decimal("60.00"), Decimal("50.00"))
    assert (month.trading_days, month.average_daily_pnl) == (2, Decimal("30.00"))
    assert summary.all_time.total_trades == 4
    assert summary.all_time.net_pnl == Decimal("110.00")
    assert summary.all_time.win_rate == Decimal("50.00")
    assert summary.all_time.profit_factor == Decimal("3.20")
    assert [p.date for p in summary.recent_performance] == [date(2024, 2, 20), date(2024, 3, 11), TODAY]
    assert [s.symbol for s in summary.top_symbols] == ["INFY"]
    assert [s.symbol for s in summary.worst_symbols] == ["TCS"]


async def test_dashboard_prefers_pre_aggregated_month(service, ledger):
    ledger.add_period(
        USER,
        "2024-03",
        DailyPnLRecord(
            date=date(2024, 3, 1),
            trading_days=5,
            total_trades=4,
            winning_trades=3,
            losing_trades=1,
            net_pnl=Decimal("250"),
        ),
    )

    month = (await service.compute_dashboard_summary(USER)).this_month

    assert (month.total_trades, month.net_pnl, month.win_rate) == (4, Decimal("250.00"), Decimal("75.00"))
    assert (month.trading_days, month.average_daily_pnl) == (5, Decimal("50.00"))


async def test_dashboard_for_new_user_is_all_zero(service):
    summary = await service.compute_dashboard_summary("nobody")

    assert summary.today.total_trades == 0
    assert summary.this_month.average_daily_pnl == Decimal("0.00")
    assert summary.all_time.profit_factor == Decimal("0.00")
    assert summary.recent_performance == []
    assert summary.top_symbols == []


async def test_metrics_are_cached_until_invalidated(service, ledger, make_record):
    first = await service.compute_performance_metrics(USER)
    ledger.add_daily(USER, make_record(date(2024, 3, 12), -500))

    cached = await service.compute_performance_metrics(USER)
    assert cached == first
    assert ledger.daily_fetches == 1

    assert await service.invalidate_user(USER) >= 1
    fresh = await service.compute_performance_metrics(USER)

    assert ledger.daily_fetches == 2
    assert fresh.max_drawdown == Decimal("540.00")
    assert fresh.max_drawdown_date == date(2024, 3, 12)


async def test_different_windows_are_cached_separately(service, ledger):
    await service.compute_performance_metrics(USER, date(2024, 1, 1), date(2024, 3, 31))
    await service.compute_performance_metrics(USER, date(2024, 3, 1), date(2024, 3, 31))
    await service.compute_performance_metrics(USER, date(2024, 1, 1), date(2024, 3, 31))

    assert ledger.daily_fetches == 2


async def test_broken_cache_still_serves_results(ledger, settings):
    service = AnalyticsService(ledger, ResultCache(BrokenBackend()), settings, clock=lambda: TODAY)

    metrics = await service.compute_performance_metrics(USER)
    again = await service.compute_performance_metrics(USER)

    assert metrics == again
    assert ledger.daily_fetches == 2
    assert await service.invalidate_user(USER) == 0


class HeldLedger(CountingLedger):
    def __init__(self) -> None:
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch_daily_records(self, user_id, date_range):
        records = await super().fetch_daily_records(user_id, date_range)
        if self.daily_fetches == 1:
            self.started.set()
            await self.release.wait()
        return records


async def test_invalidation_during_fetch_discards_the_in_flight_result(settings, make_record):
    ledger = HeldLedger()
    ledger.add_daily(USER, make_record(date(2024, 3, 11), 40))
    service = AnalyticsService(ledger, ResultCache(InMemoryCacheBackend()), settings, clock=lambda: TODAY)

    pending = asyncio.ensure_future(service.compute_performance_metrics(USER))
    await ledger.started.wait()
    ledger.add_daily(USER, make_record(date(2024, 3, 12), -500))
    await service.invalidate_user(USER)
    ledger.release.set()
    stale = await pending

    fresh = await service.compute_performance_metrics(USER)

    assert stale.max_drawdown == Decimal("0.00")
    assert ledger.daily_fetches == 2
    assert fresh.max_drawdown == Decimal("500.00")


async def test_monthly_report_round_trips_through_cache(service):
    report = await service.generate_monthly_report(USER, 2024, 3)
    cached = await service.generate_monthly_report(USER, 2024, 3)

    assert report.period_type is PeriodType.MONTHLY
    assert (report.start, report.end) == (date(2024, 3, 1), date(2024, 3, 31))
    assert report.summary.net_pnl == Decimal("60.00")
    assert cached.summary == report.summary
    assert cached.period_type is PeriodType.MONTHLY
    assert [p.date for p in cached.daily_breakdown] == [date(2024, 3, 11), TODAY]


async def test_yearly_report_covers_calendar_year(service):
    report = await service.generate_yearly_report(USER, 2024)

    assert report.period_type is PeriodType.YEARLY
    assert report.summary.total_trades == 3
    assert [row.label for row in report.by_segment] == ["equity", "futures", "options"]


async def test_report_rejects_inverted_range(service):
    with pytest.raises(InvalidInputError):
        await service.generate_report(USER, date(2024, 3, 31), date(2024, 3, 1))


async def test_compare_periods(service):
    comparison = await service.compare_periods(
        USER, date(2024, 2, 1), date(2024, 2, 29), date(2024, 3, 1), date(2024, 3, 31)
    )

    assert comparison.period1.net_pnl == Decimal("60.00")
    assert comparison.period2.net_pnl == Decimal("60.00")
    assert comparison.change.net_pnl == Decimal("0.00")
    assert comparison.change.trades == 1
    assert comparison.change.win_rate == Decimal("-50.00")


async def test_compare_periods_rejects_inverted_range(service):
    with pytest.raises(InvalidInputError):
        await service.compare_periods(USER, date(2024, 2, 1), date(2024, 2, 29), date(2024, 3, 31), date(2024, 3, 1))


async def test_breakdown_accepts_dimension_names(service):
    entries = await service.compute_pnl_breakdown(USER, "segment")

    assert [(e.label, e.value, e.count) for e in entries] == [
        ("Equity", Decimal("150.00"), 3),
        ("Futures", Decimal("-40.00"), 1),
        ("Options", Decimal("0.00"), 0),
    ]
    assert await service.compute_pnl_breakdown(USER, BreakdownDimension.SEGMENT) == entries


async def test_breakdown_rejects_unknown_dimension(service):
    with pytest.raises(InvalidInputError):
        await service.compute_pnl_breakdown(USER, "weather")


async def test_monthly_trend(service):
    points = await service.compute_pnl_trend(USER, "monthly", 3)

    assert [(p.period, p.pnl, p.trades) for p in points] == [
        ("2024-02", Decimal("60.00"), 1),
        ("2024-03", Decimal("60.00"), 2),
    ]


@pytest.mark.parametrize("granularity, periods", [("daily", 3), ("monthly", 0), ("hourly", 3)])
async def test_trend_rejects_bad_arguments(service, granularity, periods):
    with pytest.raises(InvalidInputError):
        await service.compute_pnl_trend(USER, granularity, periods)


async def test_export_csv_is_not_cached(service, ledger):
    await service.export_csv(USER, date(2024, 3, 1), date(2024, 3, 31))
    csv_text = await service.export_csv(USER, date(2024, 3, 1), date(2024, 3, 31))

    assert ledger.daily_fetches == 2
    assert len(csv_text.splitlines()) == 3


def test_calculate_charges_delegates_to_calculator(service):
    result = service.calculate_charges(
        PnLInput(
            entry_price=Decimal("100"),
            exit_price=Decimal("110"),
            quantity=Decimal("100"),
            position=Position.LONG,
            trade_type=TradeType.INTRADAY,
            segment=Segment.EQUITY,
        )
    )

    assert result.gross == Decimal("1000.00")
    assert result.is_profit


async def test_named_period_overrides_explicit_bounds(service):
    entries = await service.compute_pnl_breakdown(
        USER, "segment", date(2020, 1, 1), date(2024, 3, 31), period="this_month"
    )

    assert [(e.label, e.value) for e in entries][:2] == [
        ("Equity", Decimal("100.00")),
        ("Futures", Decimal("-40.00")),
    ]
    with pytest.raises(InvalidInputError):
        await service.compute_performance_metrics(USER, period="last_10_days")
