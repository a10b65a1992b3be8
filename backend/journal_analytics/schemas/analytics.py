"""Pydantic schemas for analytics, reports and the dashboard."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel

from journal_analytics.services.domain import PeriodType


class _FromDomain(BaseModel):
    class Config:
        from_attributes = True


class PerformanceMetricsSchema(_FromDomain):
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown: float
    max_drawdown_date: date | None = None
    recovery_factor: float
    calmar_ratio: float
    average_rrr: float
    expectancy: float
    consistency: float
    max_win_streak: int = 0
    max_loss_streak: int = 0
    current_win_streak: int = 0
    current_loss_streak: int = 0

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "sharpe_ratio": 1.42,
                "sortino_ratio": 2.1,
                "max_drawdown": 300.0,
                "max_drawdown_date": "2024-03-04",
                "recovery_factor": 0.0,
                "calmar_ratio": 0.0,
                "average_rrr": 1.8,
                "expectancy": 42.5,
                "consistency": 60.0,
                "max_win_streak": 3,
                "max_loss_streak": 1,
                "current_win_streak": 1,
                "current_loss_streak": 0,
            }
        }


class SymbolAggregateSchema(_FromDomain):
    symbol: str
    net_pnl: float
    total_trades: int
    win_rate: float


class DailyPointSchema(_FromDomain):
    date: date
    pnl: float
    trades: int = 0


class BreakdownRowSchema(_FromDomain):
    label: str
    pnl: float
    trades: int


class ReportSummarySchema(_FromDomain):
    total_trades: int
    winning_trades: int
    losing_trades: int
    break_even_trades: int
    gross_pnl: float
    net_pnl: float
    total_charges: float
    win_rate: float
    profit_factor: float
    average_win: float
    average_loss: float
    largest_win: float
    largest_loss: float
    expectancy: float


class TradingReportSchema(_FromDomain):
    start: date
    end: date
    period_type: PeriodType
    summary: ReportSummarySchema
    by_segment: list[BreakdownRowSchema]
    by_trade_type: list[BreakdownRowSchema]
    by_position: list[BreakdownRowSchema]
    top_performers: list[SymbolAggregateSchema]
    worst_performers: list[SymbolAggregateSchema]
    daily_breakdown: list[DailyPointSchema] | None = None
    generated_at: datetime


class PeriodFiguresSchema(_FromDomain):
    net_pnl: float
    win_rate: float
    trades: int


class PeriodComparisonSchema(_FromDomain):
    period1: PeriodFiguresSchema
    period2: PeriodFiguresSchema
    change: PeriodFiguresSchema


class BreakdownEntrySchema(_FromDomain):
    label: str
    value: float
    count: int


class TrendPointSchema(_FromDomain):
    period: str
    pnl: float
    trades: int


class TodaySummarySchema(_FromDomain):
    total_trades: int
    net_pnl: float
    win_rate: float


class MonthSummarySchema(_FromDomain):
    total_trades: int
    net_pnl: float
    win_rate: float
    trading_days: int
    average_daily_pnl: float


class AllTimeSummarySchema(_FromDomain):
    total_trades: int
    net_pnl: float
    win_rate: float
    profit_factor: float


class DashboardSummarySchema(_FromDomain):
    today: TodaySummarySchema
    this_month: MonthSummarySchema
    all_time: AllTimeSummarySchema
    recent_performance: list[DailyPointSchema]
    top_symbols: list[SymbolAggregateSchema]
    worst_symbols: list[SymbolAggregateSchema]


class CacheInvalidationResponse(BaseModel):
    user_id: str
    removed: int


__all__ = [
    "PerformanceMetricsSchema",
    "SymbolAggregateSchema",
    "DailyPointSchema",
    "BreakdownRowSchema",
    "ReportSummarySchema",
    "TradingReportSchema",
    "PeriodFiguresSchema",
    "PeriodComparisonSchema",
    "BreakdownEntrySchema",
    "TrendPointSchema",
    "TodaySummarySchema",
    "MonthSummarySchema",
    "AllTimeSummarySchema",
    "DashboardSummarySchema",
    "CacheInvalidationResponse",
]
