"""Brokerage, statutory charges and net P&L for closed trades.

All rates live in one ``RateTable``; call sites never hard-code a rate. The
calculator works in exact ``Decimal`` arithmetic and rounds only when it
builds the per-leg ``ChargesBreakdown`` and the final ``PnLResult``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from typing import Mapping

from .domain import (
    CENT,
    HUNDRED,
    ZERO,
    Broker,
    ChargesBreakdown,
    ClosedTrade,
    Exchange,
    PnLInput,
    PnLResult,
    Position,
    Segment,
    Side,
    TradeType,
    money,
    to_decimal,
)
from .errors import InvalidInputError


@dataclass(frozen=True)
class BrokerSchedule:
    delivery_rate: Decimal
    intraday_rate: Decimal
    intraday_max: Decimal
    futures_rate: Decimal
    futures_max: Decimal
    options_flat: Decimal


# Swing trades are charged like intraday and positional like delivery.
CHARGE_SCHEDULE: dict[TradeType, TradeType] = {
    TradeType.INTRADAY: TradeType.INTRADAY,
    TradeType.SWING: TradeType.INTRADAY,
    TradeType.DELIVERY: TradeType.DELIVERY,
    TradeType.POSITIONAL: TradeType.DELIVERY,
}

BROKER_SCHEDULES: dict[Broker, BrokerSchedule] = {
    Broker.ZERODHA: BrokerSchedule(
        delivery_rate=Decimal("0"),
        intraday_rate=Decimal("0.0003"),
        intraday_max=Decimal("20"),
        futures_rate=Decimal("0.0003"),
        futures_max=Decimal("20"),
        options_flat=Decimal("20"),
    ),
    Broker.UPSTOX: BrokerSchedule(
        delivery_rate=Decimal("0"),
        intraday_rate=Decimal("0.0003"),
        intraday_max=Decimal("20"),
        futures_rate=Decimal("0.0003"),
        futures_max=Decimal("20"),
        options_flat=Decimal("20"),
    ),
    Broker.DEFAULT: BrokerSchedule(
        delivery_rate=Decimal("0.001"),
        intraday_rate=Decimal("0.0003"),
        intraday_max=Decimal("20"),
        futures_rate=Decimal("0.0003"),
        futures_max=Decimal("20"),
        options_flat=Decimal("20"),
    ),
}

# (segment, charge schedule, side) -> rate on trade value; missing keys are 0.
STT_RATES: dict[tuple[Segment, TradeType, Side], Decimal] = {
    (Segment.EQUITY, TradeType.DELIVERY, Side.BUY): Decimal("0.001"),
    (Segment.EQUITY, TradeType.DELIVERY, Side.SELL): Decimal("0.001"),
    (Segment.EQUITY, TradeType.INTRADAY, Side.SELL): Decimal("0.00025"),
    (Segment.FUTURES, TradeType.INTRADAY, Side.SELL): Decimal("0.0001"),
    (Segment.FUTURES, TradeType.DELIVERY, Side.SELL): Decimal("0.0001"),
    (Segment.OPTIONS, TradeType.INTRADAY, Side.SELL): Decimal("0.0005"),
    (Segment.OPTIONS, TradeType.DELIVERY, Side.SELL): Decimal("0.0005"),
}

STAMP_DUTY_RATES: dict[Side, Decimal] = {
    Side.BUY: Decimal("0.00015"),
    Side.SELL: Decimal("0"),
}

# (segment, exchange) -> rate; ``None`` is the segment-wide fallback.
EXCHANGE_TXN_RATES: dict[tuple[Segment, Exchange | None], Decimal] = {
    (Segment.EQUITY, Exchange.BSE): Decimal("0.0000375"),
    (Segment.EQUITY, None): Decimal("0.0000345"),
    (Segment.FUTURES, None): Decimal("0.000019"),
    (Segment.OPTIONS, None): Decimal("0.00053"),
    (Segment.COMMODITY, None): Decimal("0.0000345"),
}

GST_RATE = Decimal("0.18")
SEBI_TURNOVER_RATE = Decimal("0.000001")


@dataclass(frozen=True)
class RateTable:
    """Every rate the calculator applies, in one injectable place."""

    brokers: Mapping[Broker, BrokerSchedule] = field(default_factory=lambda: dict(BROKER_SCHEDULES))
    stt: Mapping[tuple[Segment, TradeType, Side], Decimal] = field(default_factory=lambda: dict(STT_RATES))
    stamp_duty: Mapping[Side, Decimal] = field(default_factory=lambda: dict(STAMP_DUTY_RATES))
    exchange_txn: Mapping[tuple[Segment, Exchange | None], Decimal] = field(
        default_factory=lambda: dict(EXCHANGE_TXN_RATES)
    )
    gst: Decimal = GST_RATE
    sebi_turnover: Decimal = SEBI_TURNOVER_RATE

    def schedule_for(self, broker: Broker) -> BrokerSchedule:
        return self.brokers.get(broker) or self.brokers[Broker.DEFAULT]

    def stt_rate(self, segment: Segment, trade_type: TradeType, side: Side) -> Decimal:
        return self.stt.get((segment, CHARGE_SCHEDULE[trade_type], side), ZERO)

    def exchange_rate(self, segment: Segment, exchange: Exchange) -> Decimal:
        rate = self.exchange_txn.get((segment, exchange))
        if rate is None:
            rate = self.exchange_txn.get((segment, None), ZERO)
        return rate


def _round_breakdown(components: dict[str, Decimal]) -> ChargesBreakdown:
    """Round components to cents so that they sum exactly to the rounded total.

    Each component is floored and the leftover cents go to the components
    with the largest remainders.
    """

    total = money(sum(components.values(), ZERO))
    rounded = {name: value.quantize(CENT, rounding=ROUND_FLOOR) for name, value in components.items()}
    leftover = int((total - sum(rounded.values(), ZERO)) / CENT)
    by_remainder = sorted(components, key=lambda name: components[name] - rounded[name], reverse=True)
    for name in by_remainder[:leftover]:
        rounded[name] += CENT
    return ChargesBreakdown(total=total, **rounded)


class ChargesCalculator:
    """Compute per-leg charges and round-trip P&L for one closed trade."""

    def __init__(self, rates: RateTable | None = None):
        self.rates = rates or RateTable()

    def brokerage(self, trade_value: Decimal, trade_type: TradeType, segment: Segment, broker: Broker) -> Decimal:
        schedule = self.rates.schedule_for(broker)
        if segment is Segment.OPTIONS:
            return schedule.options_flat
        if segment is Segment.FUTURES:
            return min(trade_value * schedule.futures_rate, schedule.futures_max)
        if CHARGE_SCHEDULE[trade_type] is TradeType.DELIVERY:
            return trade_value * schedule.delivery_rate
        return min(trade_value * schedule.intraday_rate, schedule.intraday_max)

    def leg_charges(
        self,
        trade_value: Decimal,
        side: Side,
        trade_type: TradeType,
        segment: Segment,
        exchange: Exchange = Exchange.NSE,
        broker: Broker = Broker.DEFAULT,
        brokerage_override: Decimal | None = None,
    ) -> ChargesBreakdown:
        if brokerage_override is not None:
            if brokerage_override < 0:
                raise InvalidInputError("brokerage override cannot be negative")
            brokerage = brokerage_override
        else:
            brokerage = self.brokerage(trade_value, trade_type, segment, broker)
        return _round_breakdown(
            {
                "brokerage": brokerage,
                "stt": trade_value * self.rates.stt_rate(segment, trade_type, side),
                "stamp_duty": trade_value * self.rates.stamp_duty.get(side, ZERO),
                "gst": brokerage * self.rates.gst,
                "sebi_turnover": trade_value * self.rates.sebi_turnover,
                "exchange_txn": trade_value * self.rates.exchange_rate(segment, exchange),
            }
        )

    def calculate(self, request: PnLInput) -> PnLResult:
        entry_price = to_decimal(request.entry_price)
        exit_price = to_decimal(request.exit_price)
        quantity = to_decimal(request.quantity)
        if quantity <= 0:
            raise InvalidInputError("quantity must be > 0")
        if entry_price <= 0:
            raise InvalidInputError("entry_price must be > 0")
        if exit_price <= 0:
            raise InvalidInputError("exit_price must be > 0")

        entry_value = entry_price * quantity
        exit_value = exit_price * quantity
        # A short position opens with a sell and closes with a buy.
        entry_side, exit_side = (
            (Side.BUY, Side.SELL) if request.position is Position.LONG else (Side.SELL, Side.BUY)
        )
        entry_charges = self.leg_charges(
            entry_value,
            entry_side,
            request.trade_type,
            request.segment,
            request.exchange,
            request.broker,
            _optional_decimal(request.entry_brokerage),
        )
        exit_charges = self.leg_charges(
            exit_value,
            exit_side,
            request.trade_type,
            request.segment,
            request.exchange,
            request.broker,
            _optional_decimal(request.exit_brokerage),
        )
        total_charges = entry_charges + exit_charges

        sign = request.position.sign
        gross = money(sign * (exit_price - entry_price) * quantity)
        net = gross - total_charges.total
        investment = entry_value
        percentage = net / investment * HUNDRED
        return PnLResult(
            gross=gross,
            net=net,
            percentage_gain=money(percentage),
            roi=money(percentage),
            break_even_price=money(entry_price + sign * (total_charges.total / quantity)),
            investment=money(investment),
            entry_value=money(entry_value),
            exit_value=money(exit_value),
            entry_charges=entry_charges,
            exit_charges=exit_charges,
            total_charges=total_charges,
        )

    def calculate_trade(self, trade: ClosedTrade) -> PnLResult:
        return self.calculate(PnLInput.from_trade(trade))


def _optional_decimal(value: Decimal | None) -> Decimal | None:
    return None if value is None else to_decimal(value)


def calculate_unrealized_pnl(
    entry_price: Decimal,
    current_price: Decimal,
    quantity: Decimal,
    position: Position,
) -> tuple[Decimal, Decimal]:
    """Return ``(unrealized_pnl, unrealized_percent)`` for an open position."""

    unrealized = position.sign * (current_price - entry_price) * quantity
    investment = entry_price * quantity
    percent = unrealized / investment * HUNDRED if investment > 0 else ZERO
    return money(unrealized), money(percent)


def calculate_risk_reward_ratio(
    entry_price: Decimal,
    stop_loss: Decimal,
    target: Decimal,
    position: Position,
) -> Decimal:
    risk = abs(entry_price - stop_loss)
    reward = abs(target - entry_price) if position is Position.LONG else abs(entry_price - target)
    if risk == 0:
        return ZERO
    return money(reward / risk)


def calculate_position_size(
    capital: Decimal,
    risk_percent: Decimal,
    entry_price: Decimal,
    stop_loss: Decimal,
) -> tuple[int, Decimal]:
    """Return ``(quantity, risk_amount)`` for a fixed-fractional risk budget."""

    risk_amount = capital * risk_percent / HUNDRED
    risk_per_share = abs(entry_price - stop_loss)
    quantity = int(risk_amount // risk_per_share) if risk_per_share > 0 else 0
    return quantity, money(risk_amount)


__all__ = [
    "BrokerSchedule",
    "RateTable",
    "ChargesCalculator",
    "BROKER_SCHEDULES",
    "CHARGE_SCHEDULE",
    "STT_RATES",
    "STAMP_DUTY_RATES",
    "EXCHANGE_TXN_RATES",
    "GST_RATE",
    "SEBI_TURNOVER_RATE",
    "calculate_unrealized_pnl",
    "calculate_risk_reward_ratio",
    "calculate_position_size",
]
