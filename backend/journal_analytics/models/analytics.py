"""Pre-aggregated ledger tables read by the SQL ledger adapter."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import JSON, Date, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from journal_analytics.db.base import Base


class PnLColumnsMixin:
    """Columns shared by daily and period aggregate rows."""

    total_trades: Mapped[int] = mapped_column(Integer, default=0)
    winning_trades: Mapped[int] = mapped_column(Integer, default=0)
    losing_trades: Mapped[int] = mapped_column(Integer, default=0)
    break_even_trades: Mapped[int] = mapped_column(Integer, default=0)
    gross_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    net_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    total_charges: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    average_win: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    average_loss: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    largest_win: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    largest_loss: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    equity_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    futures_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    options_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    intraday_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    positional_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    swing_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    long_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    short_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    # {"equity": 3, "intraday": 2, "long": 3, ...}
    category_trades: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    # {"opening": {"pnl": "120.50", "trades": 2}, ...}
    time_of_day: Mapped[dict | None] = mapped_column(JSON, nullable=True)


class DailyAnalytics(PnLColumnsMixin, Base):
    __tablename__ = "daily_analytics"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_daily_analytics_user_date"),
        Index("ix_daily_analytics_user_date", "user_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64))
    date: Mapped[date] = mapped_column(Date)


class PeriodAnalytics(PnLColumnsMixin, Base):
    __tablename__ = "period_analytics"
    __table_args__ = (UniqueConstraint("user_id", "period_key", name="uq_period_analytics_user_key"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    period_type: Mapped[str] = mapped_column(String(16))
    period_key: Mapped[str] = mapped_column(String(16))
    start_date: Mapped[date] = mapped_column(Date)
    trading_days: Mapped[int] = mapped_column(Integer, default=0)


class SymbolAnalytics(Base):
    __tablename__ = "symbol_analytics"
    __table_args__ = (UniqueConstraint("user_id", "symbol", name="uq_symbol_analytics_user_symbol"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    symbol: Mapped[str] = mapped_column(String(32))
    net_pnl: Mapped[Decimal] = mapped_column(Numeric(18, 4), default=0)
    total_trades: Mapped[int] = mapped_column(Integer, default=0)
    win_rate: Mapped[Decimal] = mapped_column(Numeric(10, 4), default=0)


__all__ = ["PnLColumnsMixin", "DailyAnalytics", "PeriodAnalytics", "SymbolAnalytics"]
