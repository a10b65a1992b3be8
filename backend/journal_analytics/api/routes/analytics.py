"""Dashboard, metrics, breakdown, report and export endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Path, Query, Response

from journal_analytics.api.dependencies.auth import get_analytics_service, get_current_user_id
from journal_analytics.schemas import (
    BreakdownEntrySchema,
    CacheInvalidationResponse,
    DashboardSummarySchema,
    PerformanceMetricsSchema,
    PeriodComparisonSchema,
    TradingReportSchema,
    TrendPointSchema,
)
from journal_analytics.services.analytics import AnalyticsService
from journal_analytics.services.domain import BreakdownDimension, PeriodType

router = APIRouter()


@router.get("/dashboard", response_model=DashboardSummarySchema)
async def get_dashboard(
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> DashboardSummarySchema:
    summary = await service.compute_dashboard_summary(user_id)
    return DashboardSummarySchema.model_validate(summary)


@router.get("/metrics", response_model=PerformanceMetricsSchema)
async def get_metrics(
    start: date | None = Query(default=None, description="Defaults to twelve months before end"),
    end: date | None = Query(default=None, description="Defaults to today"),
    period: str | None = Query(default=None, description="Named range such as last_30_days; overrides start and end"),
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> PerformanceMetricsSchema:
    metrics = await service.compute_performance_metrics(user_id, start, end, period=period)
    return PerformanceMetricsSchema.model_validate(metrics)


@router.get("/breakdown", response_model=list[BreakdownEntrySchema])
async def get_breakdown(
    dimension: BreakdownDimension = Query(default=BreakdownDimension.SEGMENT),
    start: date | None = Query(default=None),
    end: date | None = Query(default=None),
    period: str | None = Query(default=None),
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> list[BreakdownEntrySchema]:
    entries = await service.compute_pnl_breakdown(user_id, dimension, start, end, period=period)
    return [BreakdownEntrySchema.model_validate(entry) for entry in entries]


@router.get("/trend", response_model=list[TrendPointSchema])
async def get_trend(
    granularity: PeriodType = Query(default=PeriodType.MONTHLY),
    periods: int = Query(default=12, ge=1, le=260),
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> list[TrendPointSchema]:
    points = await service.compute_pnl_trend(user_id, granularity, periods)
    return [TrendPointSchema.model_validate(point) for point in points]


@router.get("/reports", response_model=TradingReportSchema)
async def get_report(
    start: date = Query(...),
    end: date = Query(...),
    period_type: PeriodType = Query(default=PeriodType.CUSTOM, alias="type"),
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> TradingReportSchema:
    report = await service.generate_report(user_id, start, end, period_type)
    return TradingReportSchema.model_validate(report)


@router.get("/reports/monthly/{year}/{month}", response_model=TradingReportSchema)
async def get_monthly_report(
    year: int = Path(..., ge=1900, le=9999),
    month: int = Path(..., ge=1, le=12),
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> TradingReportSchema:
    report = await service.generate_monthly_report(user_id, year, month)
    return TradingReportSchema.model_validate(report)


@router.get("/reports/yearly/{year}", response_model=TradingReportSchema)
async def get_yearly_report(
    year: int = Path(..., ge=1900, le=9999),
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> TradingReportSchema:
    report = await service.generate_yearly_report(user_id, year)
    return TradingReportSchema.model_validate(report)


@router.get("/reports/compare", response_model=PeriodComparisonSchema)
async def compare_reports(
    period1_start: date = Query(...),
    period1_end: date = Query(...),
    period2_start: date = Query(...),
    period2_end: date = Query(...),
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> PeriodComparisonSchema:
    comparison = await service.compare_periods(user_id, period1_start, period1_end, period2_start, period2_end)
    return PeriodComparisonSchema.model_validate(comparison)


@router.get("/export.csv", response_class=Response)
async def export_csv(
    start: date = Query(...),
    end: date = Query(...),
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> Response:
    content = await service.export_csv(user_id, start, end)
    filename = f"trading-report-{start.isoformat()}-{end.isoformat()}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/cache/invalidate", response_model=CacheInvalidationResponse)
async def invalidate_cache(
    user_id: str = Depends(get_current_user_id),
    service: AnalyticsService = Depends(get_analytics_service),
) -> CacheInvalidationResponse:
    removed = await service.invalidate_user(user_id)
    return CacheInvalidationResponse(user_id=user_id, removed=removed)


__all__ = ["router"]
