"""Period reports, category breakdowns, comparisons and CSV export."""

from __future__ import annotations

import heapq
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Sequence

import pandas as pd

from .domain import (
    HUNDRED,
    REPORT_POSITIONS,
    REPORT_SEGMENTS,
    REPORT_TRADE_TYPES,
    ZERO,
    BreakdownDimension,
    BreakdownEntry,
    BreakdownRow,
    CategoryTotals,
    DailyPnLRecord,
    DailyPoint,
    DateRange,
    PeriodComparison,
    PeriodFigures,
    PeriodType,
    ReportSummary,
    SymbolAggregate,
    TimeOfDay,
    TradingReport,
    TrendPoint,
    money,
)
from .errors import InvalidInputError
from .metrics import average, expectancy, profit_factor, win_rate
from .periods import WEEKDAY_LABELS, period_key

CSV_HEADER = [
    "Date",
    "Total Trades",
    "Winning Trades",
    "Losing Trades",
    "Gross P&L",
    "Net P&L",
    "Charges",
    "Win Rate",
    "Profit Factor",
]


def _label(value: str) -> str:
    return value.replace("_", " ").title()


class _SummaryTotals:
    def __init__(self) -> None:
        self.total_trades = 0
        self.winning_trades = 0
        self.losing_trades = 0
        self.break_even_trades = 0
        self.gross_pnl = ZERO
        self.net_pnl = ZERO
        self.total_charges = ZERO
        self.total_wins = ZERO
        self.total_losses = ZERO
        self.largest_win = ZERO
        self.largest_loss = ZERO

    def push(self, record: DailyPnLRecord) -> None:
        self.total_trades += record.total_trades
        self.winning_trades += record.winning_trades
        self.losing_trades += record.losing_trades
        self.break_even_trades += record.break_even_trades
        self.gross_pnl += record.gross_pnl
        self.net_pnl += record.net_pnl
        self.total_charges += record.total_charges
        self.total_wins += record.total_wins
        self.total_losses += record.total_losses
        self.largest_win = max(self.largest_win, record.largest_win)
        self.largest_loss = min(self.largest_loss, record.largest_loss)

    def summary(self) -> ReportSummary:
        rate = win_rate(self.winning_trades, self.losing_trades)
        avg_win = average(self.total_wins, self.winning_trades)
        avg_loss = average(self.total_losses, self.losing_trades)
        return ReportSummary(
            total_trades=self.total_trades,
            winning_trades=self.winning_trades,
            losing_trades=self.losing_trades,
            break_even_trades=self.break_even_trades,
            gross_pnl=money(self.gross_pnl),
            net_pnl=money(self.net_pnl),
            total_charges=money(self.total_charges),
            win_rate=money(rate * HUNDRED),
            profit_factor=money(profit_factor(self.total_wins, self.total_losses)),
            average_win=money(avg_win),
            average_loss=money(avg_loss),
            largest_win=money(self.largest_win),
            largest_loss=money(self.largest_loss),
            expectancy=money(expectancy(rate, avg_win, avg_loss)),
        )


def _sum_categories(records: Iterable[DailyPnLRecord], attribute: str, categories: Sequence) -> list[BreakdownRow]:
    totals = {category: CategoryTotals() for category in categories}
    for record in records:
        for category, value in getattr(record, attribute).items():
            if category in totals:
                totals[category] = totals[category] + value
    return [BreakdownRow(label=category.value, pnl=money(t.pnl), trades=t.trades) for category, t in totals.items()]


def rank_symbols(
    symbols: Iterable[SymbolAggregate],
    limit: int,
    *,
    worst: bool = False,
) -> list[SymbolAggregate]:
    """Best (or worst) symbols by net P&L; ties go to more trades, then symbol order."""

    if worst:
        return heapq.nsmallest(limit, symbols, key=lambda s: (s.net_pnl, -s.total_trades, s.symbol))
    return heapq.nsmallest(limit, symbols, key=lambda s: (-s.net_pnl, -s.total_trades, s.symbol))


class ReportAggregator:
    """Combine daily ledger records into reports and breakdowns."""

    def __init__(self, top_limit: int = 5):
        self.top_limit = top_limit

    def summarize(self, records: Iterable[DailyPnLRecord]) -> ReportSummary:
        totals = _SummaryTotals()
        for record in records:
            totals.push(record)
        return totals.summary()

    def build_report(
        self,
        records: Sequence[DailyPnLRecord],
        symbols: Sequence[SymbolAggregate],
        period: DateRange,
        period_type: PeriodType = PeriodType.CUSTOM,
        *,
        include_daily: bool = True,
        generated_at: datetime | None = None,
    ) -> TradingReport:
        in_range = sorted((r for r in records if period.contains(r.date)), key=lambda r: r.date)
        daily = (
            [DailyPoint(date=r.date, pnl=money(r.net_pnl), trades=r.total_trades) for r in in_range]
            if include_daily
            else None
        )
        return TradingReport(
            start=period.start,
            end=period.end,
            period_type=period_type,
            summary=self.summarize(in_range),
            by_segment=_sum_categories(in_range, "by_segment", REPORT_SEGMENTS),
            by_trade_type=_sum_categories(in_range, "by_trade_type", REPORT_TRADE_TYPES),
            by_position=_sum_categories(in_range, "by_position", REPORT_POSITIONS),
            top_performers=rank_symbols(symbols, self.top_limit),
            worst_performers=rank_symbols(symbols, self.top_limit, worst=True),
            daily_breakdown=daily,
            generated_at=generated_at or datetime.now(timezone.utc),
        )

    @staticmethod
    def compare(first: TradingReport, second: TradingReport) -> PeriodComparison:
        """Signed ``second - first`` deltas of two independently built reports."""

        period1 = PeriodFigures(
            net_pnl=first.summary.net_pnl,
            win_rate=first.summary.win_rate,
            trades=first.summary.total_trades,
        )
        period2 = PeriodFigures(
            net_pnl=second.summary.net_pnl,
            win_rate=second.summary.win_rate,
            trades=second.summary.total_trades,
        )
        return PeriodComparison(
            period1=period1,
            period2=period2,
            change=PeriodFigures(
                net_pnl=period2.net_pnl - period1.net_pnl,
                win_rate=period2.win_rate - period1.win_rate,
                trades=period2.trades - period1.trades,
            ),
        )

    def breakdown(self, records: Iterable[DailyPnLRecord], dimension: BreakdownDimension) -> list[BreakdownEntry]:
        if dimension is BreakdownDimension.SEGMENT:
            rows = _sum_categories(records, "by_segment", REPORT_SEGMENTS)
        elif dimension is BreakdownDimension.TRADE_TYPE:
            rows = _sum_categories(records, "by_trade_type", REPORT_TRADE_TYPES)
        elif dimension is BreakdownDimension.POSITION:
            rows = _sum_categories(records, "by_position", REPORT_POSITIONS)
        elif dimension is BreakdownDimension.TIME_OF_DAY:
            rows = _sum_categories(records, "by_time_of_day", tuple(TimeOfDay))
        elif dimension is BreakdownDimension.DAY_OF_WEEK:
            days = [CategoryTotals() for _ in WEEKDAY_LABELS]
            for record in records:
                index = record.date.weekday()
                days[index] = days[index] + CategoryTotals(pnl=record.net_pnl, trades=record.total_trades)
            return [
                BreakdownEntry(label=label, value=money(t.pnl), count=t.trades)
                for label, t in zip(WEEKDAY_LABELS, days)
            ]
        else:  # pragma: no cover - enum is closed
            raise InvalidInputError(f"Unsupported dimension: {dimension}")
        return [BreakdownEntry(label=_label(row.label), value=row.pnl, count=row.trades) for row in rows]

    def trend(
        self,
        records: Iterable[DailyPnLRecord],
        granularity: PeriodType,
        periods: int,
    ) -> list[TrendPoint]:
        """Net P&L per ISO week or calendar month, keeping the latest ``periods`` buckets."""

        if granularity not in (PeriodType.WEEKLY, PeriodType.MONTHLY):
            raise InvalidInputError("trend granularity must be weekly or monthly")
        if periods <= 0:
            raise InvalidInputError("periods must be positive")
        buckets: dict[str, CategoryTotals] = {}
        for record in sorted(records, key=lambda r: r.date):
            key = period_key(granularity, record.date)
            buckets[key] = buckets.get(key, CategoryTotals()) + CategoryTotals(
                pnl=record.net_pnl, trades=record.total_trades
            )
        points = [TrendPoint(period=key, pnl=money(t.pnl), trades=t.trades) for key, t in buckets.items()]
        return points[-periods:]

    def export_csv(self, records: Iterable[DailyPnLRecord]) -> str:
        rows = []
        for record in sorted(records, key=lambda r: r.date):
            rows.append(
                {
                    "Date": record.date.isoformat(),
                    "Total Trades": record.total_trades,
                    "Winning Trades": record.winning_trades,
                    "Losing Trades": record.losing_trades,
                    "Gross P&L": money(record.gross_pnl),
                    "Net P&L": money(record.net_pnl),
                    "Charges": money(record.total_charges),
                    "Win Rate": money(win_rate(record.winning_trades, record.losing_trades) * HUNDRED),
                    "Profit Factor": money(profit_factor(record.total_wins, record.total_losses)),
                }
            )
        frame = pd.DataFrame(rows, columns=CSV_HEADER)
        return frame.to_csv(index=False, lineterminator="\n")


def month_figures(records: Sequence[DailyPnLRecord]) -> tuple[int, Decimal]:
    """Return ``(trading_days, average_daily_pnl)`` for a run of daily records."""

    trading_days = sum(1 for r in records if r.total_trades > 0)
    net = sum((r.net_pnl for r in records), ZERO)
    return trading_days, money(average(net, trading_days))


__all__ = [
    "CSV_HEADER",
    "ReportAggregator",
    "rank_symbols",
    "month_figures",
]
