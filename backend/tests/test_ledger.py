"""Ledger adapter tests."""

from __future__ import annotations

import json
from datetime import date
from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from journal_analytics.db.init import init_database
from journal_analytics.db.session import create_session_factory
from journal_analytics.models import DailyAnalytics, PeriodAnalytics, SymbolAnalytics
from journal_analytics.services.domain import DateRange, Position, Segment, TimeOfDay, TradeType
from journal_analytics.services.errors import LedgerUnavailableError
from journal_analytics.services.ledger import HttpLedgerStore, InMemoryLedgerStore, SqlLedgerStore

MARCH = DateRange(date(2024, 3, 1), date(2024, 3, 31))

DAILY_PAYLOAD = [
    {
        "date": "2024-03-05T00:00:00.000Z",
        "totalTrades": 3,
        "winningTrades": 2,
        "losingTrades": 1,
        "breakEvenTrades": 0,
        "grossPnL": 540.5,
        "netPnL": 500.25,
        "totalCharges": 40.25,
        "averageWin": 300,
        "averageLoss": 99.75,
        "largestWin": 350,
        "largestLoss": -99.75,
        "equityPnL": 200.25,
        "optionsPnL": 300,
        "intradayPnL": 500.25,
        "longPnL": 600,
        "shortPnL": -99.75,
        "equityTrades": 2,
        "timeOfDay": {"opening": {"pnl": 350, "trades": 1}},
    },
    {"date": "2024-03-04", "totalTrades": 1, "netPnL": -10},
]


def _mock_store(handler) -> HttpLedgerStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpLedgerStore("http://ledger.test/api/", token="secret", client=client)


async def test_http_store_parses_daily_records_and_forwards_identity():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["user"] = request.headers.get("X-User-Id")
        seen["token"] = request.headers.get("X-Internal-Token")
        return httpx.Response(200, json=DAILY_PAYLOAD)

    records = await _mock_store(handler).fetch_daily_records("user-7", MARCH)

    assert seen == {
        "path": "/api/daily-records",
        "params": {"start": "2024-03-01", "end": "2024-03-31"},
        "user": "user-7",
        "token": "secret",
    }
    assert [r.date for r in records] == [date(2024, 3, 4), date(2024, 3, 5)]
    record = records[1]
    assert record.net_pnl == Decimal("500.25")
    assert record.total_losses == Decimal("99.75")
    assert record.by_segment[Segment.EQUITY].pnl == Decimal("200.25")
    assert record.by_segment[Segment.EQUITY].trades == 2
    assert record.by_segment[Segment.FUTURES].pnl == Decimal("0")
    assert record.by_trade_type[TradeType.INTRADAY].pnl == Decimal("500.25")
    assert record.by_position[Position.SHORT].pnl == Decimal("-99.75")
    assert record.by_time_of_day[TimeOfDay.OPENING].trades == 1


async def test_http_store_period_record_missing_is_none():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/period-records/2024-03"
        return httpx.Response(404, json={"detail": "not found"})

    assert await _mock_store(handler).fetch_period_record("user-7", "2024-03") is None


async def test_http_store_symbol_aggregates():
    payload = [{"symbol": "INFY", "netPnL": "1250.5", "totalTrades": 8, "winRate": 62.5}]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=json.dumps(payload), headers={"content-type": "application/json"})

    symbols = await _mock_store(handler).fetch_symbol_aggregates("user-7")

    assert symbols[0].symbol == "INFY"
    assert symbols[0].net_pnl == Decimal("1250.5")
    assert symbols[0].win_rate == Decimal("62.5")


@pytest.mark.parametrize("status_code", [500, 503])
async def test_http_store_server_errors_are_unavailable(status_code):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"detail": "down"})

    with pytest.raises(LedgerUnavailableError):
        await _mock_store(handler).fetch_daily_records("user-7", MARCH)


async def test_http_store_transport_errors_are_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LedgerUnavailableError):
        await _mock_store(handler).fetch_symbol_aggregates("user-7")


@pytest.mark.parametrize(
    "payload",
    [
        [{"totalTrades": 1}],
        [{"date": "2024-03-01", "netPnL": 10, "timeOfDay": ["opening"]}],
        [{"date": "2024-03-01", "netPnL": 10, "timeOfDay": {"opening": 5}}],
        ["2024-03-01"],
    ],
)
async def test_http_store_malformed_payload_is_unavailable(payload):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    with pytest.raises(LedgerUnavailableError):
        await _mock_store(handler).fetch_daily_records("user-7", MARCH)


async def test_in_memory_store_filters_and_orders(make_record):
    store = InMemoryLedgerStore()
    store.add_daily("u", make_record(date(2024, 3, 9), 5), make_record(date(2024, 3, 2), 1))
    store.add_daily("u", make_record(date(2024, 4, 1), 7))

    records = await store.fetch_daily_records("u", MARCH)

    assert [r.date for r in records] == [date(2024, 3, 2), date(2024, 3, 9)]
    assert await store.fetch_daily_records("someone-else", MARCH) == []
    assert await store.fetch_period_record("u", "2024-03") is None


async def test_sql_store_reads_aggregate_tables(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await init_database(engine)
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        session.add_all(
            [
                DailyAnalytics(
                    user_id="u",
                    date=date(2024, 3, 5),
                    total_trades=2,
                    winning_trades=1,
                    losing_trades=1,
                    gross_pnl=Decimal("130"),
                    net_pnl=Decimal("110.5"),
                    total_charges=Decimal("19.5"),
                    average_win=Decimal("150.5"),
                    average_loss=Decimal("40"),
                    largest_win=Decimal("150.5"),
                    largest_loss=Decimal("-40"),
                    equity_pnl=Decimal("110.5"),
                    intraday_pnl=Decimal("110.5"),
                    long_pnl=Decimal("150.5"),
                    short_pnl=Decimal("-40"),
                    category_trades={"equity": 2, "long": 1, "short": 1},
                    time_of_day={"closing": {"pnl": "150.5", "trades": 1}},
                ),
                DailyAnalytics(user_id="u", date=date(2024, 3, 1), total_trades=1, net_pnl=Decimal("-5")),
                DailyAnalytics(user_id="other", date=date(2024, 3, 1), total_trades=1, net_pnl=Decimal("99")),
                PeriodAnalytics(
                    user_id="u",
                    period_type="monthly",
                    period_key="2024-03",
                    start_date=date(2024, 3, 1),
                    trading_days=2,
                    total_trades=3,
                    net_pnl=Decimal("105.5"),
                ),
                SymbolAnalytics(user_id="u", symbol="TCS", net_pnl=Decimal("110.5"), total_trades=2, win_rate=50),
            ]
        )
        await session.commit()

    store = SqlLedgerStore(session_factory)
    records = await store.fetch_daily_records("u", MARCH)
    month = await store.fetch_period_record("u", "2024-03")
    symbols = await store.fetch_symbol_aggregates("u")
    await engine.dispose()

    assert [r.date for r in records] == [date(2024, 3, 1), date(2024, 3, 5)]
    day = records[1]
    assert day.net_pnl == Decimal("110.5")
    assert day.total_wins == Decimal("150.5")
    assert day.by_segment[Segment.EQUITY].trades == 2
    assert day.by_position[Position.SHORT].pnl == Decimal("-40")
    assert day.by_time_of_day[TimeOfDay.CLOSING].pnl == Decimal("150.5")
    assert month is not None
    assert (month.date, month.trading_days, month.total_trades) == (date(2024, 3, 1), 2, 3)
    assert await store.fetch_period_record("u", "2024-02") is None
    assert [(s.symbol, s.net_pnl) for s in symbols] == [("TCS", Decimal("110.5"))]
