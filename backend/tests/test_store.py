"""Tests for holdings stores."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from etf_overlap.holdings import Holding, HoldingsSet
from etf_overlap.store import FundInfo, InMemoryHoldingsStore, JsonFileHoldingsStore


def write_fund(data_dir: Path, ticker: str, last_updated: datetime, holdings: list[dict]) -> None:
    etfs_dir = data_dir / "etfs"
    etfs_dir.mkdir(parents=True, exist_ok=True)
    data = {
        "symbol": ticker,
        "name": f"{ticker} Fund",
        "last_updated": last_updated.isoformat(),
        "holdings": holdings,
    }
    (etfs_dir / f"{ticker}.json").write_text(json.dumps(data))


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    now = datetime.now(timezone.utc)
    write_fund(
        tmp_path,
        "SPY",
        now - timedelta(hours=1),
        [
            {"symbol": "AAPL", "name": "Apple Inc", "weight": 7.0, "shares": 100},
            {"symbol": "MSFT", "name": "Microsoft Corp", "weight": 6.5},
        ],
    )
    write_fund(tmp_path, "OLD", now - timedelta(hours=48), [{"symbol": "AAPL", "weight": 1.0}])
    (tmp_path / "index.json").write_text(
        json.dumps({"etfs": [{"symbol": "spy", "name": "SPDR S&P 500 ETF Trust"}, {"symbol": "OLD"}]})
    )
    return tmp_path


class TestJsonFileHoldingsStore:
    """Tests for the JSON file store."""

    def test_loads_fresh_holdings(self, data_dir: Path) -> None:
        """Test that a fresh file is loaded and normalized."""
        store = JsonFileHoldingsStore(data_dir)

        holdings = store.get_holdings("spy", max_age_hours=24)

        assert holdings is not None
        assert holdings.fund_id == "SPY"
        assert holdings.symbols() == ["AAPL", "MSFT"]
        assert holdings.holdings[0].shares == 100.0

    def test_stale_holdings_are_a_miss(self, data_dir: Path) -> None:
        """Test that records older than the maximum age are not served."""
        store = JsonFileHoldingsStore(data_dir)

        assert store.get_holdings("OLD", max_age_hours=24) is None
        assert store.get_holdings("OLD", max_age_hours=None) is not None

    def test_unknown_ticker_is_a_miss(self, data_dir: Path) -> None:
        assert JsonFileHoldingsStore(data_dir).get_holdings("NOPE") is None

    def test_corrupt_file_is_a_miss(self, data_dir: Path) -> None:
        """Test that an unreadable file is treated as missing."""
        (data_dir / "etfs" / "BAD.json").write_text("{not json")

        assert JsonFileHoldingsStore(data_dir).get_holdings("BAD") is None

    def test_non_string_timestamp_is_a_miss(self, data_dir: Path) -> None:
        """Test that a numeric last_updated is treated as unreadable."""
        data = {"symbol": "NUM", "last_updated": 12345, "holdings": [{"symbol": "AAPL", "weight": 1.0}]}
        (data_dir / "etfs" / "NUM.json").write_text(json.dumps(data))

        assert JsonFileHoldingsStore(data_dir).get_holdings("NUM", max_age_hours=24) is None

    def test_malformed_holdings_list_is_a_miss(self, data_dir: Path) -> None:
        """Test that holdings stored as something other than objects are a miss."""
        data = {"symbol": "ODD", "holdings": ["AAPL", "MSFT"]}
        (data_dir / "etfs" / "ODD.json").write_text(json.dumps(data))

        assert JsonFileHoldingsStore(data_dir).get_holdings("ODD") is None

    def test_numeric_holding_name_loaded(self, data_dir: Path) -> None:
        """Test that a numeric holding name is read as text."""
        write_fund(
            data_dir,
            "NAMES",
            datetime.now(timezone.utc),
            [{"symbol": "AAPL", "name": 5, "weight": 1.0}],
        )

        holdings = JsonFileHoldingsStore(data_dir).get_holdings("NAMES", max_age_hours=24)

        assert holdings is not None
        assert holdings.holdings[0].name == "5"

    def test_save_round_trip(self, tmp_path: Path) -> None:
        """Test that saved holdings can be read back as fresh."""
        store = JsonFileHoldingsStore(tmp_path)
        holdings = HoldingsSet("VOO", [Holding(symbol="AAPL", name="Apple", weight=7.2)])

        store.save(holdings, name="Vanguard S&P 500 ETF")

        assert store.get_holdings("VOO", max_age_hours=1) == holdings

    def test_list_funds(self, data_dir: Path) -> None:
        """Test that the index lists funds with name fallback."""
        funds = JsonFileHoldingsStore(data_dir).list_funds()

        assert funds == [
            FundInfo(ticker="SPY", name="SPDR S&P 500 ETF Trust"),
            FundInfo(ticker="OLD", name="OLD"),
        ]

    def test_missing_index(self, tmp_path: Path) -> None:
        assert JsonFileHoldingsStore(tmp_path).list_funds() == []


class TestInMemoryHoldingsStore:
    """Tests for the in-memory store."""

    def test_put_and_get(self) -> None:
        store = InMemoryHoldingsStore()
        holdings = HoldingsSet("QQQ", [Holding(symbol="NVDA", name="NVIDIA", weight=8.0)])

        store.put(holdings, name="Invesco QQQ Trust")

        assert store.get_holdings("qqq") is holdings
        assert store.list_funds() == [FundInfo(ticker="QQQ", name="Invesco QQQ Trust")]
