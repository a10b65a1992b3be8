"""Read adapters for the trade ledger that owns daily and per-symbol aggregates.

The analytics core never writes ledger data. Three interchangeable stores
satisfy ``LedgerStore``: an in-memory one for tests and local runs, an HTTP
client for the ledger microservice, and a SQLAlchemy reader over the
aggregate tables. Fetch failures surface as ``LedgerUnavailableError`` and
are not retried here.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence

import httpx
from opentelemetry.propagate import inject
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from journal_analytics.config import AnalyticsSettings
from journal_analytics.models import DailyAnalytics, PeriodAnalytics, SymbolAnalytics

from .domain import (
    ZERO,
    CategoryTotals,
    DailyPnLRecord,
    DateRange,
    Position,
    Segment,
    SymbolAggregate,
    TimeOfDay,
    TradeType,
    to_decimal,
)
from .errors import InvalidInputError, LedgerUnavailableError

logger = logging.getLogger(__name__)

# Record attribute -> categories the ledger stores a flat P&L column for.
CATEGORY_FIELDS: dict[str, tuple[Enum, ...]] = {
    "by_segment": (Segment.EQUITY, Segment.FUTURES, Segment.OPTIONS),
    "by_trade_type": (TradeType.INTRADAY, TradeType.POSITIONAL, TradeType.SWING),
    "by_position": (Position.LONG, Position.SHORT),
}


class LedgerStore(Protocol):
    async def fetch_daily_records(self, user_id: str, date_range: DateRange) -> list[DailyPnLRecord]:
        """Daily records inside ``date_range`` in ascending date order."""

    async def fetch_symbol_aggregates(self, user_id: str) -> list[SymbolAggregate]:
        """Lifetime per-symbol figures."""

    async def fetch_period_record(self, user_id: str, period_key: str) -> DailyPnLRecord | None:
        """Pre-aggregated record for a period key such as ``2024-03``, if the ledger keeps one."""


class InMemoryLedgerStore:
    def __init__(self) -> None:
        self._daily: dict[str, dict[date, DailyPnLRecord]] = {}
        self._symbols: dict[str, dict[str, SymbolAggregate]] = {}
        self._periods: dict[str, dict[str, DailyPnLRecord]] = {}

    def add_daily(self, user_id: str, *records: DailyPnLRecord) -> None:
        bucket = self._daily.setdefault(user_id, {})
        for record in records:
            bucket[record.date] = record

    def add_symbols(self, user_id: str, *aggregates: SymbolAggregate) -> None:
        bucket = self._symbols.setdefault(user_id, {})
        for aggregate in aggregates:
            bucket[aggregate.symbol] = aggregate

    def add_period(self, user_id: str, period_key: str, record: DailyPnLRecord) -> None:
        self._periods.setdefault(user_id, {})[period_key] = record

    async def fetch_daily_records(self, user_id: str, date_range: DateRange) -> list[DailyPnLRecord]:
        records = self._daily.get(user_id, {})
        return [records[day] for day in sorted(records) if date_range.contains(day)]

    async def fetch_symbol_aggregates(self, user_id: str) -> list[SymbolAggregate]:
        return list(self._symbols.get(user_id, {}).values())

    async def fetch_period_record(self, user_id: str, period_key: str) -> DailyPnLRecord | None:
        return self._periods.get(user_id, {}).get(period_key)


# HTTP ledger service


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _payload_categories(payload: Mapping[str, Any]) -> dict[str, dict[Enum, CategoryTotals]]:
    categories: dict[str, dict[Enum, CategoryTotals]] = {}
    for attribute, members in CATEGORY_FIELDS.items():
        categories[attribute] = {
            member: CategoryTotals(
                pnl=to_decimal(payload.get(f"{member.value}PnL")),
                trades=int(payload.get(f"{member.value}Trades") or 0),
            )
            for member in members
        }
    buckets = payload.get("timeOfDay") or {}
    if not isinstance(buckets, Mapping) or not all(isinstance(item, Mapping) for item in buckets.values()):
        raise TypeError("timeOfDay must map bucket names to objects")
    categories["by_time_of_day"] = {
        TimeOfDay(name): CategoryTotals(pnl=to_decimal(item.get("pnl")), trades=int(item.get("trades") or 0))
        for name, item in buckets.items()
    }
    return categories


def record_from_payload(payload: Mapping[str, Any]) -> DailyPnLRecord:
    """Build a record from the ledger service's camelCase JSON."""

    return DailyPnLRecord(
        date=_parse_date(payload["date"]),
        trading_days=int(payload.get("tradingDays", 1)),
        total_trades=int(payload.get("totalTrades", 0)),
        winning_trades=int(payload.get("winningTrades", 0)),
        losing_trades=int(payload.get("losingTrades", 0)),
        break_even_trades=int(payload.get("breakEvenTrades", 0)),
        gross_pnl=to_decimal(payload.get("grossPnL")),
        net_pnl=to_decimal(payload.get("netPnL")),
        total_charges=to_decimal(payload.get("totalCharges")),
        average_win=to_decimal(payload.get("averageWin")),
        average_loss=abs(to_decimal(payload.get("averageLoss"))),
        largest_win=to_decimal(payload.get("largestWin")),
        largest_loss=to_decimal(payload.get("largestLoss")),
        **_payload_categories(payload),
    )


def symbol_from_payload(payload: Mapping[str, Any]) -> SymbolAggregate:
    return SymbolAggregate(
        symbol=str(payload["symbol"]),
        net_pnl=to_decimal(payload.get("netPnL")),
        total_trades=int(payload.get("totalTrades", 0)),
        win_rate=to_decimal(payload.get("winRate")),
    )


class HttpLedgerStore:
    """Client for the ledger microservice.

    ``client`` may be supplied to share a connection pool or to plug in a
    mock transport; otherwise a short-lived ``httpx.AsyncClient`` is opened
    per request.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: AnalyticsSettings) -> HttpLedgerStore:
        return cls(
            settings.ledger_service_url,
            token=settings.ledger_service_token,
            timeout=settings.ledger_timeout_seconds,
        )

    async def _get(self, path: str, *, user_id: str, params: dict[str, str] | None = None) -> httpx.Response:
        url = f"{self.base_url}{path}"
        headers = {"X-User-Id": str(user_id)}
        if self.token:
            headers["X-Internal-Token"] = self.token
        inject(headers)
        try:
            if self._client is not None:
                return await self._client.get(url, params=params, headers=headers)
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Ledger request to %s failed: %s", url, exc)
            raise LedgerUnavailableError(f"Ledger service unreachable: {exc}") from exc

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        if response.status_code >= 400:
            logger.warning("Ledger service error %s for %s", response.status_code, response.request.url)
            raise LedgerUnavailableError(f"Ledger service responded with {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise LedgerUnavailableError("Ledger service returned invalid JSON") from exc

    async def fetch_daily_records(self, user_id: str, date_range: DateRange) -> list[DailyPnLRecord]:
        response = await self._get(
            "/daily-records",
            user_id=user_id,
            params={"start": date_range.start.isoformat(), "end": date_range.end.isoformat()},
        )
        payload = self._json(response)
        try:
            records = [record_from_payload(item) for item in payload]
        except (KeyError, TypeError, ValueError, InvalidInputError) as exc:
            raise LedgerUnavailableError(f"Malformed daily record from ledger: {exc}") from exc
        return sorted(records, key=lambda r: r.date)

    async def fetch_symbol_aggregates(self, user_id: str) -> list[SymbolAggregate]:
        payload = self._json(await self._get("/symbol-aggregates", user_id=user_id))
        try:
            return [symbol_from_payload(item) for item in payload]
        except (KeyError, TypeError, ValueError, InvalidInputError) as exc:
            raise LedgerUnavailableError(f"Malformed symbol aggregate from ledger: {exc}") from exc

    async def fetch_period_record(self, user_id: str, period_key: str) -> DailyPnLRecord | None:
        response = await self._get(f"/period-records/{period_key}", user_id=user_id)
        if response.status_code == 404:
            return None
        payload = self._json(response)
        if not payload:
            return None
        try:
            return record_from_payload(payload)
        except (KeyError, TypeError, ValueError, InvalidInputError) as exc:
            raise LedgerUnavailableError(f"Malformed period record from ledger: {exc}") from exc


# SQL aggregate tables


def _row_record(row: DailyAnalytics | PeriodAnalytics, day: date, trading_days: int) -> DailyPnLRecord:
    trades = row.category_trades or {}
    categories = {
        attribute: {
            member: CategoryTotals(
                pnl=getattr(row, f"{member.value}_pnl") or ZERO,
                trades=int(trades.get(member.value, 0)),
            )
            for member in members
        }
        for attribute, members in CATEGORY_FIELDS.items()
    }
    categories["by_time_of_day"] = {
        TimeOfDay(name): CategoryTotals(pnl=to_decimal(item.get("pnl")), trades=int(item.get("trades") or 0))
        for name, item in (row.time_of_day or {}).items()
    }
    return DailyPnLRecord(
        date=day,
        trading_days=trading_days,
        total_trades=row.total_trades,
        winning_trades=row.winning_trades,
        losing_trades=row.losing_trades,
        break_even_trades=row.break_even_trades,
        gross_pnl=Decimal(row.gross_pnl),
        net_pnl=Decimal(row.net_pnl),
        total_charges=Decimal(row.total_charges),
        average_win=Decimal(row.average_win),
        average_loss=abs(Decimal(row.average_loss)),
        largest_win=Decimal(row.largest_win),
        largest_loss=Decimal(row.largest_loss),
        **categories,
    )


class SqlLedgerStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _scalars(self, stmt) -> Sequence[Any]:
        try:
            async with self._session_factory() as session:
                result = await session.scalars(stmt)
                return result.all()
        except SQLAlchemyError as exc:
            logger.exception("Ledger query failed")
            raise LedgerUnavailableError(f"Ledger database error: {exc}") from exc

    async def fetch_daily_records(self, user_id: str, date_range: DateRange) -> list[DailyPnLRecord]:
        stmt = (
            select(DailyAnalytics)
            .where(
                DailyAnalytics.user_id == user_id,
                DailyAnalytics.date >= date_range.start,
                DailyAnalytics.date <= date_range.end,
            )
            .order_by(DailyAnalytics.date)
        )
        rows = await self._scalars(stmt)
        return [_row_record(row, row.date, 1) for row in rows]

    async def fetch_symbol_aggregates(self, user_id: str) -> list[SymbolAggregate]:
        stmt = select(SymbolAnalytics).where(SymbolAnalytics.user_id == user_id).order_by(SymbolAnalytics.symbol)
        rows = await self._scalars(stmt)
        return [
            SymbolAggregate(
                symbol=row.symbol,
                net_pnl=Decimal(row.net_pnl),
                total_trades=row.total_trades,
                win_rate=Decimal(row.win_rate),
            )
            for row in rows
        ]

    async def fetch_period_record(self, user_id: str, period_key: str) -> DailyPnLRecord | None:
        stmt = select(PeriodAnalytics).where(
            PeriodAnalytics.user_id == user_id,
            PeriodAnalytics.period_key == period_key,
        )
        rows = await self._scalars(stmt)
        if not rows:
            return None
        row = rows[0]
        return _row_record(row, row.start_date, row.trading_days)


__all__ = [
    "CATEGORY_FIELDS",
    "LedgerStore",
    "InMemoryLedgerStore",
    "HttpLedgerStore",
    "SqlLedgerStore",
    "record_from_payload",
    "symbol_from_payload",
]
