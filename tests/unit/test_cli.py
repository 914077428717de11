"""Tests for the CLI module."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from quote_engine.cli import cli
from quote_engine.core.config import QuoteEngineConfig, StorageConfig
from quote_engine.core.exceptions import ResolutionError
from quote_engine.core.models import (
    PriceSeries,
    QuotePoint,
    QuoteSource,
    StockPrice,
    StoreStatistics,
    SymbolSuggestion,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config():
    return QuoteEngineConfig(storage=StorageConfig(sqlite_path=":memory:"))


@pytest.fixture
def service():
    """QuoteService mock with async operations."""
    return MagicMock(
        get_multiple_prices=AsyncMock(),
        get_series=AsyncMock(),
        search_symbols=AsyncMock(),
        update_stock_data_bulk=AsyncMock(),
        cleanup_old_data=AsyncMock(),
        get_statistics=AsyncMock(),
    )


@pytest.fixture
def patched(config, service):
    """Route every command through the mocked service."""

    @asynccontextmanager
    async def fake_open_service(_config):
        yield service

    with patch("quote_engine.core.load_config", return_value=config), \
         patch("quote_engine.cli._open_service", fake_open_service):
        yield service


def stock_price(symbol: str, price: str, stale: bool = False) -> StockPrice:
    return StockPrice(
        symbol=symbol,
        price=Decimal(price),
        data_date=date(2024, 5, 1),
        as_of=datetime(2024, 5, 1, 15, 30, tzinfo=timezone.utc),
        source=QuoteSource.STORE if stale else QuoteSource.REMOTE,
        stale=stale,
    )


# ---------------------------------------------------------------------------
# Group
# ---------------------------------------------------------------------------


class TestCliGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "local-first" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_unknown_command(self, runner):
        result = runner.invoke(cli, ["nonexistent"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# price
# ---------------------------------------------------------------------------


class TestPriceCommand:
    def test_requires_symbol(self, runner):
        result = runner.invoke(cli, ["price"])
        assert result.exit_code != 0

    def test_table_output(self, runner, patched):
        patched.get_multiple_prices.return_value = [
            stock_price("AAPL", "150.25"),
            stock_price("MSFT", "372.46", stale=True),
        ]

        result = runner.invoke(cli, ["price", "AAPL", "MSFT"])

        assert result.exit_code == 0
        assert "AAPL" in result.output
        assert "150.25" in result.output
        assert "stale" in result.output
        patched.get_multiple_prices.assert_awaited_once_with(["AAPL", "MSFT"])

    def test_json_output(self, runner, patched):
        patched.get_multiple_prices.return_value = [stock_price("AAPL", "150.25")]

        result = runner.invoke(cli, ["price", "AAPL", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data[0]["symbol"] == "AAPL"
        assert data[0]["price"] == "150.25"
        assert data[0]["stale"] is False

    def test_resolution_failure_exits_1(self, runner, patched):
        patched.get_multiple_prices.side_effect = ResolutionError(
            "Unable to get current price for ZZZZ"
        )

        result = runner.invoke(cli, ["price", "ZZZZ"])

        assert result.exit_code == 1
        assert "Unable to get current price for ZZZZ" in result.output



class TestInvalidSymbols:
    """Rejected symbols go through the real service and print the error line."""

    @pytest.fixture
    def real_service(self, runner, config):
        wide = Console(stderr=True, width=200)
        with patch("quote_engine.core.load_config", return_value=config), \
             patch("quote_engine.cli.console", wide):
            yield

    def test_blank_symbol(self, runner, real_service):
        result = runner.invoke(cli, ["price", " "])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Error:" in result.output
        assert "must not be blank" in result.output
        assert "Traceback" not in result.output

    def test_symbol_too_long(self, runner, real_service):
        result = runner.invoke(cli, ["series", "0P0000XVDS.L"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "at most 10 characters" in result.output


# ---------------------------------------------------------------------------
# series
# ---------------------------------------------------------------------------


class TestSeriesCommand:
    def test_rejects_unknown_period(self, runner):
        result = runner.invoke(cli, ["series", "AAPL", "--period", "3Y"])
        assert result.exit_code != 0

    def test_json_output(self, runner, patched):
        patched.get_series.return_value = PriceSeries(
            symbol="AAPL",
            period="1Y",
            points=[
                QuotePoint(
                    symbol="AAPL", date=date(2024, 4, 30), price=Decimal("170.33"), volume=10
                )
            ],
            source=QuoteSource.REMOTE,
        )

        result = runner.invoke(cli, ["series", "AAPL", "-p", "1Y", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["period"] == "1Y"
        assert data["points"][0]["date"] == "2024-04-30"
        patched.get_series.assert_awaited_once_with("AAPL", "1Y")

    def test_stale_notice(self, runner, patched):
        patched.get_series.return_value = PriceSeries(
            symbol="AAPL", period="1M", points=[], source=QuoteSource.STORE, stale=True
        )

        result = runner.invoke(cli, ["series", "AAPL"])

        assert result.exit_code == 0
        assert "stored data" in result.output
        patched.get_series.assert_awaited_once_with("AAPL", "1M")


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


class TestSearchCommand:
    def test_table_output(self, runner, patched):
        patched.search_symbols.return_value = [
            SymbolSuggestion(symbol="AAPL", name="Apple Inc.", exchange="NASDAQ")
        ]

        result = runner.invoke(cli, ["search", "apple", "--limit", "3"])

        assert result.exit_code == 0
        assert "AAPL" in result.output
        patched.search_symbols.assert_awaited_once_with("apple", 3)

    def test_no_results(self, runner, patched):
        patched.search_symbols.return_value = []

        result = runner.invoke(cli, ["search", "zzzz"])

        assert result.exit_code == 0
        assert "No equities found" in result.output

    def test_rejects_zero_limit(self, runner):
        result = runner.invoke(cli, ["search", "apple", "--limit", "0"])
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# update / cleanup / stats
# ---------------------------------------------------------------------------


class TestMaintenanceCommands:
    def test_update(self, runner, patched):
        patched.update_stock_data_bulk.return_value = 2

        result = runner.invoke(cli, ["update", "AAPL", "MSFT", "GOOGL"])

        assert result.exit_code == 0
        assert "Updated 2 of 3 symbols" in result.output

    def test_cleanup_uses_config_default(self, runner, patched, config):
        patched.cleanup_old_data.return_value = 7

        result = runner.invoke(cli, ["cleanup"])

        assert result.exit_code == 0
        assert "Deleted 7 quotes" in result.output
        patched.cleanup_old_data.assert_awaited_once_with(config.cleanup.days_to_keep)

    def test_cleanup_days_option(self, runner, patched):
        patched.cleanup_old_data.return_value = 0

        result = runner.invoke(cli, ["cleanup", "--days", "30"])

        assert result.exit_code == 0
        patched.cleanup_old_data.assert_awaited_once_with(30)

    def test_stats(self, runner, patched):
        patched.get_statistics.return_value = StoreStatistics(
            total_records=42,
            unique_symbols=3,
            date_range_start=date(2024, 1, 2),
            date_range_end=date(2024, 5, 1),
        )

        result = runner.invoke(cli, ["stats"])

        assert result.exit_code == 0
        assert "42" in result.output
        assert "2024-01-02" in result.output
