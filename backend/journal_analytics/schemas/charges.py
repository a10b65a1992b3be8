"""Pydantic schemas for the per-trade charges and sizing endpoints."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field

from journal_analytics.services.domain import Exchange, Position, Segment, TradeType


class ChargesRequest(BaseModel):
    entry_price: Decimal = Field(..., examples=[100])
    exit_price: Decimal = Field(..., examples=[110])
    quantity: Decimal = Field(..., examples=[100])
    position: Position = Position.LONG
    trade_type: TradeType = TradeType.INTRADAY
    segment: Segment = Segment.EQUITY
    exchange: Exchange = Exchange.NSE
    broker: str | None = Field(default=None, description="Broker name; unknown brokers use the default schedule")
    entry_brokerage: Decimal | None = Field(default=None, description="Explicit brokerage for the entry leg")
    exit_brokerage: Decimal | None = Field(default=None, description="Explicit brokerage for the exit leg")


class ChargesBreakdownSchema(BaseModel):
    brokerage: float
    stt: float
    stamp_duty: float
    gst: float
    sebi_turnover: float
    exchange_txn: float
    total: float

    class Config:
        from_attributes = True


class PnLResultSchema(BaseModel):
    gross: float
    net: float
    percentage_gain: float
    roi: float
    break_even_price: float
    investment: float
    entry_value: float
    exit_value: float
    entry_charges: ChargesBreakdownSchema
    exit_charges: ChargesBreakdownSchema
    total_charges: ChargesBreakdownSchema
    is_profit: bool

    class Config:
        from_attributes = True
        json_schema_extra = {
            "example": {
                "gross": 1000.0,
                "net": 951.97,
                "percentage_gain": 9.52,
                "roi": 9.52,
                "break_even_price": 100.48,
                "investment": 10000.0,
                "entry_value": 10000.0,
                "exit_value": 11000.0,
                "is_profit": True,
            }
        }


class UnrealizedRequest(BaseModel):
    entry_price: Decimal
    current_price: Decimal
    quantity: Decimal
    position: Position = Position.LONG


class UnrealizedResponse(BaseModel):
    unrealized_pnl: float
    unrealized_percent: float


class RiskRewardRequest(BaseModel):
    entry_price: Decimal
    stop_loss: Decimal
    target: Decimal
    position: Position = Position.LONG


class RiskRewardResponse(BaseModel):
    ratio: float


class PositionSizeRequest(BaseModel):
    capital: Decimal = Field(..., gt=0)
    risk_percent: Decimal = Field(..., gt=0, le=100)
    entry_price: Decimal = Field(..., gt=0)
    stop_loss: Decimal = Field(..., gt=0)


class PositionSizeResponse(BaseModel):
    quantity: int
    risk_amount: float


__all__ = [
    "ChargesRequest",
    "ChargesBreakdownSchema",
    "PnLResultSchema",
    "UnrealizedRequest",
    "UnrealizedResponse",
    "RiskRewardRequest",
    "RiskRewardResponse",
    "PositionSizeRequest",
    "PositionSizeResponse",
]
