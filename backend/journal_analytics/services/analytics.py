"""Request-facing analytics operations.

``AnalyticsService`` wires the ledger, the result cache and the pure
calculators together. Every collaborator is passed in explicitly; nothing
here is a module-level singleton. Cached values are stored in their JSON
form so the in-memory and Redis backends are interchangeable.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import TypeAdapter

from journal_analytics.config import AnalyticsSettings
from journal_analytics.core.telemetry import get_tracer

from .cache import ResultCache
from .charges import ChargesCalculator
from .domain import (
    HUNDRED,
    AllTimeSummary,
    BreakdownDimension,
    BreakdownEntry,
    DailyPnLRecord,
    DailyPoint,
    DashboardSummary,
    DateRange,
    MonthSummary,
    PerformanceMetrics,
    PeriodComparison,
    PeriodType,
    PnLInput,
    PnLResult,
    TodaySummary,
    TradingReport,
    TrendPoint,
    money,
    parse_enum,
)
from .errors import InvalidInputError
from .ledger import LedgerStore
from .metrics import PerformanceMetricsEngine, average, win_rate
from .periods import (
    month_range,
    named_range,
    period_key,
    resolve_window,
    subtract_months,
    today,
    week_range,
    year_range,
)
from .reports import ReportAggregator, month_figures, rank_symbols

logger = logging.getLogger(__name__)
_tracer = get_tracer()

T = TypeVar("T")

ALL_TIME = date.min

_DASHBOARD = TypeAdapter(DashboardSummary)
_METRICS = TypeAdapter(PerformanceMetrics)
_REPORT = TypeAdapter(TradingReport)
_BREAKDOWN = TypeAdapter(list[BreakdownEntry])
_TREND = TypeAdapter(list[TrendPoint])


def _percent(winning: int, losing: int) -> Decimal:
    return money(win_rate(winning, losing) * HUNDRED)


class AnalyticsService:
    def __init__(
        self,
        ledger: LedgerStore,
        cache: ResultCache,
        settings: AnalyticsSettings,
        *,
        calculator: ChargesCalculator | None = None,
        engine: PerformanceMetricsEngine | None = None,
        aggregator: ReportAggregator | None = None,
        clock: Callable[[], date] | None = None,
    ):
        self.ledger = ledger
        self.cache = cache
        self.settings = settings
        self.calculator = calculator or ChargesCalculator()
        self.engine = engine or PerformanceMetricsEngine()
        self.aggregator = aggregator or ReportAggregator(top_limit=settings.top_symbols_limit)
        self._clock = clock or (lambda: today(settings.timezone))

    def today(self) -> date:
        return self._clock()

    async def _cached(
        self,
        user_id: str,
        namespace: str,
        adapter: TypeAdapter[T],
        ttl: int,
        compute: Callable[[], Awaitable[T]],
        **params: Any,
    ) -> T:
        key = self.cache.key_for(user_id, namespace, **params)

        async def traced() -> T:
            with _tracer.start_as_current_span(f"analytics.{namespace}", attributes={"enduser.id": user_id}):
                return await compute()

        return await self.cache.get_or_compute(
            key,
            traced,
            encode=lambda value: adapter.dump_python(value, mode="json"),
            decode=adapter.validate_python,
            ttl=ttl,
            user_id=user_id,
        )

    # Dashboard

    async def compute_dashboard_summary(self, user_id: str) -> DashboardSummary:
        reference = self.today()

        async def compute() -> DashboardSummary:
            return await self._build_dashboard(user_id, reference)

        return await self._cached(
            user_id,
            "dashboard",
            _DASHBOARD,
            self.settings.dashboard_cache_ttl_seconds,
            compute,
            date=reference,
        )

    async def _build_dashboard(self, user_id: str, reference: date) -> DashboardSummary:
        recent_start = reference - timedelta(days=self.settings.recent_performance_days - 1)
        today_records, month_record, all_records, recent_records, symbols = await asyncio.gather(
            self.ledger.fetch_daily_records(user_id, DateRange(reference, reference)),
            self.ledger.fetch_period_record(user_id, period_key(PeriodType.MONTHLY, reference)),
            self.ledger.fetch_daily_records(user_id, DateRange(ALL_TIME, reference)),
            self.ledger.fetch_daily_records(user_id, DateRange(recent_start, reference)),
            self.ledger.fetch_symbol_aggregates(user_id),
        )

        today_summary = TodaySummary()
        if today_records:
            day = today_records[0]
            today_summary = TodaySummary(
                total_trades=day.total_trades,
                net_pnl=money(day.net_pnl),
                win_rate=_percent(day.winning_trades, day.losing_trades),
            )

        all_time = self.aggregator.summarize(all_records)
        limit = self.settings.top_symbols_limit
        return DashboardSummary(
            today=today_summary,
            this_month=self._month_summary(month_record, all_records, reference),
            all_time=AllTimeSummary(
                total_trades=all_time.total_trades,
                net_pnl=all_time.net_pnl,
                win_rate=all_time.win_rate,
                profit_factor=all_time.profit_factor,
            ),
            recent_performance=[
                DailyPoint(date=r.date, pnl=money(r.net_pnl), trades=r.total_trades) for r in recent_records
            ],
            top_symbols=rank_symbols([s for s in symbols if s.net_pnl > 0], limit),
            worst_symbols=rank_symbols([s for s in symbols if s.net_pnl < 0], limit, worst=True),
        )

    def _month_summary(
        self,
        month_record: DailyPnLRecord | None,
        all_records: list[DailyPnLRecord],
        reference: date,
    ) -> MonthSummary:
        if month_record is not None:
            days = month_record.trading_days
            return MonthSummary(
                total_trades=month_record.total_trades,
                net_pnl=money(month_record.net_pnl),
                win_rate=_percent(month_record.winning_trades, month_record.losing_trades),
                trading_days=days,
                average_daily_pnl=money(average(month_record.net_pnl, days)),
            )
        window = month_range(reference.year, reference.month)
        in_month = [r for r in all_records if window.contains(r.date)]
        summary = self.aggregator.summarize(in_month)
        trading_days, average_daily = month_figures(in_month)
        return MonthSummary(
            total_trades=summary.total_trades,
            net_pnl=summary.net_pnl,
            win_rate=summary.win_rate,
            trading_days=trading_days,
            average_daily_pnl=average_daily,
        )

    # Metrics and breakdowns

    def _window(self, start: date | None, end: date | None, period: str | None = None) -> DateRange:
        if period:
            return named_range(period, self.today())
        return resolve_window(
            start,
            end,
            reference=self.today(),
            lookback_months=self.settings.default_lookback_months,
        )

    async def compute_performance_metrics(
        self,
        user_id: str,
        start: date | None = None,
        end: date | None = None,
        *,
        period: str | None = None,
    ) -> PerformanceMetrics:
        window = self._window(start, end, period)

        async def compute() -> PerformanceMetrics:
            records = await self.ledger.fetch_daily_records(user_id, window)
            return self.engine.compute(records)

        return await self._cached(
            user_id,
            "metrics",
            _METRICS,
            self.settings.metrics_cache_ttl_seconds,
            compute,
            start=window.start,
            end=window.end,
        )

    async def compute_pnl_breakdown(
        self,
        user_id: str,
        dimension: BreakdownDimension | str,
        start: date | None = None,
        end: date | None = None,
        *,
        period: str | None = None,
    ) -> list[BreakdownEntry]:
        dimension = parse_enum(BreakdownDimension, dimension, "dimension")
        window = self._window(start, end, period)

        async def compute() -> list[BreakdownEntry]:
            records = await self.ledger.fetch_daily_records(user_id, window)
            return self.aggregator.breakdown(records, dimension)

        return await self._cached(
            user_id,
            "breakdown",
            _BREAKDOWN,
            self.settings.metrics_cache_ttl_seconds,
            compute,
            dimension=dimension.value,
            start=window.start,
            end=window.end,
        )

    async def compute_pnl_trend(
        self,
        user_id: str,
        granularity: PeriodType | str = PeriodType.MONTHLY,
        periods: int = 12,
    ) -> list[TrendPoint]:
        granularity = parse_enum(PeriodType, granularity, "granularity")
        if granularity not in (PeriodType.WEEKLY, PeriodType.MONTHLY):
            raise InvalidInputError("granularity must be weekly or monthly")
        if periods <= 0:
            raise InvalidInputError("periods must be positive")
        reference = self.today()
        if granularity is PeriodType.WEEKLY:
            start = week_range(reference - timedelta(weeks=periods - 1)).start
        else:
            start = subtract_months(reference, periods - 1).replace(day=1)
        window = DateRange(start, reference)

        async def compute() -> list[TrendPoint]:
            records = await self.ledger.fetch_daily_records(user_id, window)
            return self.aggregator.trend(records, granularity, periods)

        return await self._cached(
            user_id,
            "trend",
            _TREND,
            self.settings.metrics_cache_ttl_seconds,
            compute,
            granularity=granularity.value,
            periods=periods,
            start=window.start,
            end=window.end,
        )

    # Reports

    async def generate_report(
        self,
        user_id: str,
        start: date,
        end: date,
        period_type: PeriodType | str = PeriodType.CUSTOM,
        *,
        include_daily: bool = True,
    ) -> TradingReport:
        period = DateRange(start, end)
        period_type = parse_enum(PeriodType, period_type, "type")

        async def compute() -> TradingReport:
            records, symbols = await asyncio.gather(
                self.ledger.fetch_daily_records(user_id, period),
                self.ledger.fetch_symbol_aggregates(user_id),
            )
            logger.debug("Building %s report for user %s over %d records", period_type.value, user_id, len(records))
            return self.aggregator.build_report(
                records,
                symbols,
                period,
                period_type,
                include_daily=include_daily,
            )

        return await self._cached(
            user_id,
            "report",
            _REPORT,
            self.settings.report_cache_ttl_seconds,
            compute,
            start=period.start,
            end=period.end,
            type=period_type.value,
            daily=include_daily,
        )

    async def generate_monthly_report(self, user_id: str, year: int, month: int) -> TradingReport:
        period = month_range(year, month)
        return await self.generate_report(user_id, period.start, period.end, PeriodType.MONTHLY)

    async def generate_yearly_report(self, user_id: str, year: int) -> TradingReport:
        period = year_range(year)
        return await self.generate_report(user_id, period.start, period.end, PeriodType.YEARLY)

    async def compare_periods(
        self,
        user_id: str,
        period1_start: date,
        period1_end: date,
        period2_start: date,
        period2_end: date,
    ) -> PeriodComparison:
        first, second = await asyncio.gather(
            self.generate_report(user_id, period1_start, period1_end, include_daily=False),
            self.generate_report(user_id, period2_start, period2_end, include_daily=False),
        )
        return self.aggregator.compare(first, second)

    async def export_csv(self, user_id: str, start: date, end: date) -> str:
        records = await self.ledger.fetch_daily_records(user_id, DateRange(start, end))
        return self.aggregator.export_csv(records)

    # Mutations and per-trade math

    async def invalidate_user(self, user_id: str) -> int:
        """Drop cached results after a trade create, update, delete or broker sync."""

        return await self.cache.invalidate(user_id)

    def calculate_charges(self, pnl_input: PnLInput) -> PnLResult:
        return self.calculator.calculate(pnl_input)


__all__ = ["AnalyticsService", "ALL_TIME"]
