"""Pydantic schema exports."""

from .analytics import (
    AllTimeSummarySchema,
    BreakdownEntrySchema,
    BreakdownRowSchema,
    CacheInvalidationResponse,
    DailyPointSchema,
    DashboardSummarySchema,
    MonthSummarySchema,
    PerformanceMetricsSchema,
    PeriodComparisonSchema,
    PeriodFiguresSchema,
    ReportSummarySchema,
    SymbolAggregateSchema,
    TodaySummarySchema,
    TradingReportSchema,
    TrendPointSchema,
)
from .charges import (
    ChargesBreakdownSchema,
    ChargesRequest,
    PnLResultSchema,
    PositionSizeRequest,
    PositionSizeResponse,
    RiskRewardRequest,
    RiskRewardResponse,
    UnrealizedRequest,
    UnrealizedResponse,
)

__all__ = [
    "AllTimeSummarySchema",
    "BreakdownEntrySchema",
    "BreakdownRowSchema",
    "CacheInvalidationResponse",
    "DailyPointSchema",
    "DashboardSummarySchema",
    "MonthSummarySchema",
    "PerformanceMetricsSchema",
    "PeriodComparisonSchema",
    "PeriodFiguresSchema",
    "ReportSummarySchema",
    "SymbolAggregateSchema",
    "TodaySummarySchema",
    "TradingReportSchema",
    "TrendPointSchema",
    "ChargesBreakdownSchema",
    "ChargesRequest",
    "PnLResultSchema",
    "PositionSizeRequest",
    "PositionSizeResponse",
    "RiskRewardRequest",
    "RiskRewardResponse",
    "UnrealizedRequest",
    "UnrealizedResponse",
]
