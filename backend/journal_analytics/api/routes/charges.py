"""Per-trade charges, unrealized P&L and position sizing endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from journal_analytics.api.dependencies.auth import get_analytics_service
from journal_analytics.schemas import (
    ChargesRequest,
    PnLResultSchema,
    PositionSizeRequest,
    PositionSizeResponse,
    RiskRewardRequest,
    RiskRewardResponse,
    UnrealizedRequest,
    UnrealizedResponse,
)
from journal_analytics.services.analytics import AnalyticsService
from journal_analytics.services.charges import (
    calculate_position_size,
    calculate_risk_reward_ratio,
    calculate_unrealized_pnl,
)
from journal_analytics.services.domain import Broker, PnLInput

router = APIRouter()


@router.post("", response_model=PnLResultSchema)
async def calculate_charges(
    payload: ChargesRequest,
    service: AnalyticsService = Depends(get_analytics_service),
) -> PnLResultSchema:
    result = service.calculate_charges(
        PnLInput(
            entry_price=payload.entry_price,
            exit_price=payload.exit_price,
            quantity=payload.quantity,
            position=payload.position,
            trade_type=payload.trade_type,
            segment=payload.segment,
            exchange=payload.exchange,
            broker=Broker.resolve(payload.broker),
            entry_brokerage=payload.entry_brokerage,
            exit_brokerage=payload.exit_brokerage,
        )
    )
    return PnLResultSchema.model_validate(result)


@router.post("/unrealized", response_model=UnrealizedResponse)
async def unrealized_pnl(payload: UnrealizedRequest) -> UnrealizedResponse:
    pnl, percent = calculate_unrealized_pnl(
        payload.entry_price,
        payload.current_price,
        payload.quantity,
        payload.position,
    )
    return UnrealizedResponse(unrealized_pnl=pnl, unrealized_percent=percent)


@router.post("/risk-reward", response_model=RiskRewardResponse)
async def risk_reward(payload: RiskRewardRequest) -> RiskRewardResponse:
    ratio = calculate_risk_reward_ratio(payload.entry_price, payload.stop_loss, payload.target, payload.position)
    return RiskRewardResponse(ratio=ratio)


@router.post("/position-size", response_model=PositionSizeResponse)
async def position_size(payload: PositionSizeRequest) -> PositionSizeResponse:
    quantity, risk_amount = calculate_position_size(
        payload.capital,
        payload.risk_percent,
        payload.entry_price,
        payload.stop_loss,
    )
    return PositionSizeResponse(quantity=quantity, risk_amount=risk_amount)


__all__ = ["router"]
