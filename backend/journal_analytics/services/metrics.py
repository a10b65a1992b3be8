"""Risk and performance statistics over a daily P&L series.

The engine makes one forward pass over date-ordered ``DailyPnLRecord``s and
keeps only running sums, so memory use does not grow with the window. The
ratio helpers at the top are shared with the report aggregator so the
dashboard and reports can never disagree on a formula.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from itertools import pairwise
from typing import Sequence

from .domain import HUNDRED, ZERO, DailyPnLRecord, PerformanceMetrics, money

TRADING_DAYS_PER_YEAR = 252
_ANNUALIZATION = Decimal(TRADING_DAYS_PER_YEAR)
_SQRT_ANNUALIZATION = _ANNUALIZATION.sqrt()


def safe_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """``numerator / denominator``, or 0 when the denominator is not positive."""

    if denominator <= 0:
        return ZERO
    return numerator / denominator


def win_rate(winning_trades: int, losing_trades: int) -> Decimal:
    """Fraction of decided trades that were winners; break-even trades are ignored."""

    return safe_ratio(Decimal(winning_trades), Decimal(winning_trades + losing_trades))


def profit_factor(total_wins: Decimal, total_losses: Decimal) -> Decimal:
    # 0 when there are no losses, even if there are wins.
    return safe_ratio(total_wins, total_losses)


def average(total: Decimal, count: int) -> Decimal:
    return safe_ratio(total, Decimal(count))


def expectancy(rate: Decimal, average_win: Decimal, average_loss: Decimal) -> Decimal:
    return rate * average_win - (1 - rate) * average_loss


class MetricsAccumulator:
    """Running state for a single pass over date-ordered daily records."""

    def __init__(self) -> None:
        self.count = 0
        self.sum = ZERO
        self.sum_of_squares = ZERO
        self.downside_sum_of_squares = ZERO
        self.negative_days = 0
        self.profitable_days = 0
        self.running_total = ZERO
        self.peak = ZERO
        self.max_drawdown = ZERO
        self.max_drawdown_date: date | None = None
        self.total_wins = ZERO
        self.total_losses = ZERO
        self.winning_trades = 0
        self.losing_trades = 0
        self.win_streak = 0
        self.loss_streak = 0
        self.max_win_streak = 0
        self.max_loss_streak = 0
        self.last_pnl = ZERO

    def push(self, record: DailyPnLRecord) -> None:
        pnl = record.net_pnl
        self.count += 1
        self.sum += pnl
        self.sum_of_squares += pnl * pnl
        if pnl < 0:
            self.downside_sum_of_squares += pnl * pnl
            self.negative_days += 1
            self.loss_streak += 1
            self.win_streak = 0
            self.max_loss_streak = max(self.max_loss_streak, self.loss_streak)
        elif pnl > 0:
            self.profitable_days += 1
            self.win_streak += 1
            self.loss_streak = 0
            self.max_win_streak = max(self.max_win_streak, self.win_streak)
        else:
            # A flat day ends both streaks.
            self.win_streak = 0
            self.loss_streak = 0
        self.last_pnl = pnl

        self.running_total += pnl
        if self.running_total > self.peak:
            self.peak = self.running_total
        drawdown = self.peak - self.running_total
        if drawdown > self.max_drawdown:
            self.max_drawdown = drawdown
            self.max_drawdown_date = record.date

        self.total_wins += record.total_wins
        self.total_losses += record.total_losses
        self.winning_trades += record.winning_trades
        self.losing_trades += record.losing_trades

    def result(self) -> PerformanceMetrics:
        if self.count == 0:
            return PerformanceMetrics()
        n = Decimal(self.count)
        mean = self.sum / n
        variance = max(ZERO, self.sum_of_squares / n - mean * mean)
        std_dev = variance.sqrt()
        downside_dev = (
            (self.downside_sum_of_squares / Decimal(self.negative_days)).sqrt() if self.negative_days else ZERO
        )

        avg_win = average(self.total_wins, self.winning_trades)
        avg_loss = average(self.total_losses, self.losing_trades)
        rate = win_rate(self.winning_trades, self.losing_trades)
        return PerformanceMetrics(
            sharpe_ratio=money(safe_ratio(mean, std_dev) * _SQRT_ANNUALIZATION),
            sortino_ratio=money(safe_ratio(mean, downside_dev) * _SQRT_ANNUALIZATION),
            max_drawdown=money(self.max_drawdown),
            max_drawdown_date=self.max_drawdown_date,
            recovery_factor=money(safe_ratio(self.sum, self.max_drawdown)),
            calmar_ratio=money(safe_ratio(mean * _ANNUALIZATION, self.max_drawdown)),
            average_rrr=money(safe_ratio(avg_win, avg_loss)),
            expectancy=money(expectancy(rate, avg_win, avg_loss)),
            consistency=money(Decimal(self.profitable_days) / n * HUNDRED),
            max_win_streak=self.max_win_streak,
            max_loss_streak=self.max_loss_streak,
            current_win_streak=self.win_streak if self.last_pnl > 0 else 0,
            current_loss_streak=self.loss_streak if self.last_pnl < 0 else 0,
        )


class PerformanceMetricsEngine:
    """Compute ``PerformanceMetrics`` for a window of daily records."""

    def compute(self, records: Sequence[DailyPnLRecord]) -> PerformanceMetrics:
        if not _is_date_ordered(records):
            records = sorted(records, key=lambda r: r.date)
        accumulator = MetricsAccumulator()
        for record in records:
            accumulator.push(record)
        return accumulator.result()


def _is_date_ordered(records: Sequence[DailyPnLRecord]) -> bool:
    return all(a.date <= b.date for a, b in pairwise(records))


__all__ = [
    "TRADING_DAYS_PER_YEAR",
    "safe_ratio",
    "win_rate",
    "profit_factor",
    "average",
    "expectancy",
    "MetricsAccumulator",
    "PerformanceMetricsEngine",
]
