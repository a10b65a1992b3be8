"""Domain records shared by the charges, metrics and report services.

Everything here is plain data: enums for the closed category sets, frozen
dataclasses for trades, daily ledger records and computed results. Monetary
values are ``Decimal`` throughout and are only quantized to cents when a
result object is produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, getcontext
from enum import Enum
from typing import Any, Mapping, TypeVar

from .errors import InvalidInputError

getcontext().prec = 28

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")


class Position(str, Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def sign(self) -> int:
        return 1 if self is Position.LONG else -1


class TradeType(str, Enum):
    INTRADAY = "intraday"
    DELIVERY = "delivery"
    POSITIONAL = "positional"
    SWING = "swing"


class Segment(str, Enum):
    EQUITY = "equity"
    FUTURES = "futures"
    OPTIONS = "options"
    COMMODITY = "commodity"


class Exchange(str, Enum):
    NSE = "NSE"
    BSE = "BSE"
    MCX = "MCX"
    NFO = "NFO"


class Broker(str, Enum):
    ZERODHA = "zerodha"
    UPSTOX = "upstox"
    DEFAULT = "default"

    @classmethod
    def resolve(cls, value: str | Broker | None) -> Broker:
        """Map a broker name onto a known schedule, falling back to the default one."""

        if isinstance(value, Broker):
            return value
        if not value:
            return cls.DEFAULT
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.DEFAULT


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"
    STOP_LOSS = "sl"
    STOP_LOSS_MARKET = "sl-m"


class PeriodType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class BreakdownDimension(str, Enum):
    SEGMENT = "segment"
    TRADE_TYPE = "tradeType"
    POSITION = "position"
    DAY_OF_WEEK = "dayOfWeek"
    TIME_OF_DAY = "timeOfDay"


class TimeOfDay(str, Enum):
    OPENING = "opening"
    MORNING = "morning"
    MIDDAY = "midday"
    CLOSING = "closing"
    AFTER_HOURS = "after_hours"


# Fixed category orders used by breakdowns and reports.
REPORT_SEGMENTS: tuple[Segment, ...] = (Segment.EQUITY, Segment.FUTURES, Segment.OPTIONS)
REPORT_TRADE_TYPES: tuple[TradeType, ...] = (TradeType.INTRADAY, TradeType.POSITIONAL, TradeType.SWING)
REPORT_POSITIONS: tuple[Position, ...] = (Position.LONG, Position.SHORT)

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: Any, field_name: str) -> E:
    """Coerce ``value`` into ``enum_cls`` or raise ``InvalidInputError``."""

    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(str(member.value) for member in enum_cls)
        raise InvalidInputError(f"{field_name} must be one of: {allowed}") from exc


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise InvalidInputError(f"Not a number: {value!r}") from exc


def money(value: Decimal) -> Decimal:
    """Quantize to cents; used only when building output records."""

    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidInputError("start date cannot be after end date")

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


# Trades


@dataclass(frozen=True)
class TradeLeg:
    """One execution of a closed trade.

    ``brokerage`` overrides the schedule-derived brokerage for this leg when
    set. ``taxes`` carries the broker-reported tax amount as recorded and is
    informational only.
    """

    price: Decimal
    quantity: Decimal
    timestamp: datetime
    order_type: OrderType = OrderType.MARKET
    brokerage: Decimal | None = None
    taxes: Decimal | None = None


@dataclass(frozen=True)
class ClosedTrade:
    symbol: str
    entry: TradeLeg
    exit: TradeLeg
    position: Position
    trade_type: TradeType
    segment: Segment
    exchange: Exchange = Exchange.NSE
    broker: Broker = Broker.DEFAULT


@dataclass(frozen=True)
class PnLInput:
    entry_price: Decimal
    exit_price: Decimal
    quantity: Decimal
    position: Position
    trade_type: TradeType
    segment: Segment
    exchange: Exchange = Exchange.NSE
    broker: Broker = Broker.DEFAULT
    entry_brokerage: Decimal | None = None
    exit_brokerage: Decimal | None = None

    @classmethod
    def from_trade(cls, trade: ClosedTrade) -> PnLInput:
        if trade.entry.quantity != trade.exit.quantity:
            raise InvalidInputError("entry and exit quantities must match for a closed trade")
        return cls(
            entry_price=trade.entry.price,
            exit_price=trade.exit.price,
            quantity=trade.entry.quantity,
            position=trade.position,
            trade_type=trade.trade_type,
            segment=trade.segment,
            exchange=trade.exchange,
            broker=trade.broker,
            entry_brokerage=trade.entry.brokerage,
            exit_brokerage=trade.exit.brokerage,
        )


@dataclass(frozen=True)
class ChargesBreakdown:
    brokerage: Decimal = ZERO
    stt: Decimal = ZERO
    stamp_duty: Decimal = ZERO
    gst: Decimal = ZERO
    sebi_turnover: Decimal = ZERO
    exchange_txn: Decimal = ZERO
    total: Decimal = ZERO

    def __add__(self, other: ChargesBreakdown) -> ChargesBreakdown:
        return ChargesBreakdown(
            brokerage=self.brokerage + other.brokerage,
            stt=self.stt + other.stt,
            stamp_duty=self.stamp_duty + other.stamp_duty,
            gst=self.gst + other.gst,
            sebi_turnover=self.sebi_turnover + other.sebi_turnover,
            exchange_txn=self.exchange_txn + other.exchange_txn,
            total=self.total + other.total,
        )

    def components(self) -> dict[str, Decimal]:
        return {
            "brokerage": self.brokerage,
            "stt": self.stt,
            "stamp_duty": self.stamp_duty,
            "gst": self.gst,
            "sebi_turnover": self.sebi_turnover,
            "exchange_txn": self.exchange_txn,
        }


@dataclass(frozen=True)
class PnLResult:
    gross: Decimal
    net: Decimal
    percentage_gain: Decimal
    roi: Decimal
    break_even_price: Decimal
    investment: Decimal
    entry_value: Decimal
    exit_value: Decimal
    entry_charges: ChargesBreakdown
    exit_charges: ChargesBreakdown
    total_charges: ChargesBreakdown

    @property
    def is_profit(self) -> bool:
        return self.net > 0


# Ledger records


@dataclass(frozen=True)
class CategoryTotals:
    pnl: Decimal = ZERO
    trades: int = 0

    def __add__(self, other: CategoryTotals) -> CategoryTotals:
        return CategoryTotals(pnl=self.pnl + other.pnl, trades=self.trades + other.trades)


@dataclass(frozen=True)
class DailyPnLRecord:
    """Per-user, per-trading-day aggregate maintained by the ledger.

    Pre-aggregated period records (weeks, months) use the same shape with
    ``date`` set to the first day of the period and ``trading_days`` set to
    the number of days that had closed trades.
    """

    date: date
    trading_days: int = 1
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    break_even_trades: int = 0
    gross_pnl: Decimal = ZERO
    net_pnl: Decimal = ZERO
    total_charges: Decimal = ZERO
    average_win: Decimal = ZERO
    average_loss: Decimal = ZERO
    largest_win: Decimal = ZERO
    largest_loss: Decimal = ZERO
    by_segment: Mapping[Segment, CategoryTotals] = field(default_factory=dict)
    by_trade_type: Mapping[TradeType, CategoryTotals] = field(default_factory=dict)
    by_position: Mapping[Position, CategoryTotals] = field(default_factory=dict)
    by_time_of_day: Mapping[TimeOfDay, CategoryTotals] = field(default_factory=dict)

    @property
    def total_wins(self) -> Decimal:
        return self.average_win * self.winning_trades

    @property
    def total_losses(self) -> Decimal:
        return self.average_loss * self.losing_trades


@dataclass(frozen=True)
class SymbolAggregate:
    symbol: str
    net_pnl: Decimal
    total_trades: int
    win_rate: Decimal


# Computed results


@dataclass(frozen=True)
class PerformanceMetrics:
    sharpe_ratio: Decimal = ZERO
    sortino_ratio: Decimal = ZERO
    max_drawdown: Decimal = ZERO
    max_drawdown_date: date | None = None
    recovery_factor: Decimal = ZERO
    calmar_ratio: Decimal = ZERO
    average_rrr: Decimal = ZERO
    expectancy: Decimal = ZERO
    consistency: Decimal = ZERO
    max_win_streak: int = 0
    max_loss_streak: int = 0
    current_win_streak: int = 0
    current_loss_streak: int = 0


@dataclass(frozen=True)
class ReportSummary:
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    break_even_trades: int = 0
    gross_pnl: Decimal = ZERO
    net_pnl: Decimal = ZERO
    total_charges: Decimal = ZERO
    win_rate: Decimal = ZERO
    profit_factor: Decimal = ZERO
    average_win: Decimal = ZERO
    average_loss: Decimal = ZERO
    largest_win: Decimal = ZERO
    largest_loss: Decimal = ZERO
    expectancy: Decimal = ZERO


@dataclass(frozen=True)
class BreakdownRow:
    label: str
    pnl: Decimal
    trades: int


@dataclass(frozen=True)
class DailyPoint:
    date: date
    pnl: Decimal
    trades: int = 0


@dataclass(frozen=True)
class TradingReport:
    start: date
    end: date
    period_type: PeriodType
    summary: ReportSummary
    by_segment: list[BreakdownRow]
    by_trade_type: list[BreakdownRow]
    by_position: list[BreakdownRow]
    top_performers: list[SymbolAggregate]
    worst_performers: list[SymbolAggregate]
    daily_breakdown: list[DailyPoint] | None
    generated_at: datetime


@dataclass(frozen=True)
class PeriodFigures:
    net_pnl: Decimal
    win_rate: Decimal
    trades: int


@dataclass(frozen=True)
class PeriodComparison:
    period1: PeriodFigures
    period2: PeriodFigures
    change: PeriodFigures


@dataclass(frozen=True)
class BreakdownEntry:
    label: str
    value: Decimal
    count: int


@dataclass(frozen=True)
class TrendPoint:
    period: str
    pnl: Decimal
    trades: int


# Dashboard


@dataclass(frozen=True)
class TodaySummary:
    total_trades: int = 0
    net_pnl: Decimal = ZERO
    win_rate: Decimal = ZERO


@dataclass(frozen=True)
class MonthSummary:
    total_trades: int = 0
    net_pnl: Decimal = ZERO
    win_rate: Decimal = ZERO
    trading_days: int = 0
    average_daily_pnl: Decimal = ZERO


@dataclass(frozen=True)
class AllTimeSummary:
    total_trades: int = 0
    net_pnl: Decimal = ZERO
    win_rate: Decimal = ZERO
    profit_factor: Decimal = ZERO


@dataclass(frozen=True)
class DashboardSummary:
    today: TodaySummary
    this_month: MonthSummary
    all_time: AllTimeSummary
    recent_performance: list[DailyPoint]
    top_symbols: list[SymbolAggregate]
    worst_symbols: list[SymbolAggregate]


__all__ = [
    "ZERO",
    "CENT",
    "HUNDRED",
    "Position",
    "TradeType",
    "Segment",
    "Exchange",
    "Broker",
    "Side",
    "OrderType",
    "PeriodType",
    "BreakdownDimension",
    "TimeOfDay",
    "REPORT_SEGMENTS",
    "REPORT_TRADE_TYPES",
    "REPORT_POSITIONS",
    "parse_enum",
    "to_decimal",
    "money",
    "DateRange",
    "TradeLeg",
    "ClosedTrade",
    "PnLInput",
    "ChargesBreakdown",
    "PnLResult",
    "CategoryTotals",
    "DailyPnLRecord",
    "SymbolAggregate",
    "PerformanceMetrics",
    "ReportSummary",
    "BreakdownRow",
    "DailyPoint",
    "TradingReport",
    "PeriodFigures",
    "PeriodComparison",
    "BreakdownEntry",
    "TrendPoint",
    "TodaySummary",
    "MonthSummary",
    "AllTimeSummary",
    "DashboardSummary",
]
