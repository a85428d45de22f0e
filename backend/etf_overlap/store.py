"""Holdings stores consumed by the request-handling layer."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Protocol

from .holdings import HoldingsSet

logger = logging.getLogger(__name__)


@dataclass
class FundInfo:
    """Ticker and display name of a fund known to a store."""

    ticker: str
    name: str


class HoldingsStore(Protocol):
    """Source of already-normalized holdings."""

    def get_holdings(
        self, ticker: str, max_age_hours: Optional[float] = None
    ) -> Optional[HoldingsSet]:
        ...

    def list_funds(self) -> list[FundInfo]:
        ...


class InMemoryHoldingsStore:
    """Dict-backed store without expiry."""

    def __init__(self) -> None:
        self._holdings: dict[str, HoldingsSet] = {}
        self._names: dict[str, str] = {}

    def put(self, holdings: HoldingsSet, name: Optional[str] = None) -> None:
        ticker = holdings.fund_id.upper()
        self._holdings[ticker] = holdings
        self._names[ticker] = name or ticker

    def get_holdings(
        self, ticker: str, max_age_hours: Optional[float] = None
    ) -> Optional[HoldingsSet]:
        return self._holdings.get(ticker.upper())

    def list_funds(self) -> list[FundInfo]:
        return [FundInfo(ticker=t, name=self._names[t]) for t in self._holdings]


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class JsonFileHoldingsStore:
    """Store reading one JSON file per fund.

    Layout::

        {data_dir}/index.json          {"etfs": [{"symbol": ..., "name": ...}]}
        {data_dir}/etfs/{TICKER}.json  {"symbol", "name", "last_updated", "holdings"}
    """

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)

    def _get_fund_path(self, ticker: str) -> Path:
        return self.data_dir / "etfs" / f"{ticker.upper()}.json"

    def _is_fresh(self, last_updated: Optional[str], max_age_hours: Optional[float]) -> bool:
        """Check whether a record is within the maximum age.

        Args:
            last_updated: ISO timestamp stored with the record.
            max_age_hours: Maximum age, or None to accept any record.

        Returns:
            True if the record may be served.
        """
        if max_age_hours is None:
            return True
        if not last_updated:
            return False

        age = datetime.now(timezone.utc) - _parse_timestamp(last_updated)
        return age < timedelta(hours=max_age_hours)

    def get_holdings(
        self, ticker: str, max_age_hours: Optional[float] = None
    ) -> Optional[HoldingsSet]:
        """Load holdings for a fund if present and fresh enough.

        Args:
            ticker: The fund ticker symbol.
            max_age_hours: Maximum record age, or None to skip the check.

        Returns:
            HoldingsSet if found, None on a miss.
        """
        path = self._get_fund_path(ticker)
        if not path.exists():
            logger.info(f"No holdings file for {ticker.upper()}")
            return None

        try:
            with open(path, "r") as f:
                data = json.load(f)
            if not self._is_fresh(data.get("last_updated"), max_age_hours):
                logger.info(f"Holdings for {ticker.upper()} are older than {max_age_hours}h")
                return None
            return HoldingsSet.from_records(data.get("symbol", ticker), data["holdings"])
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Failed to load holdings for {ticker}: {e}")
            return None

    def save(self, holdings: HoldingsSet, name: Optional[str] = None) -> None:
        """Write holdings for a fund, stamped with the current time.

        Args:
            holdings: The holdings to store.
            name: Optional fund display name.
        """
        path = self._get_fund_path(holdings.fund_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "symbol": holdings.fund_id.upper(),
            "name": name,
            "last_updated": datetime.now(timezone.utc).isoformat(),
            "holdings": [
                {
                    "symbol": h.symbol,
                    "name": h.name,
                    "weight": h.weight,
                    "shares": h.shares,
                }
                for h in holdings
            ],
        }
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    def list_funds(self) -> list[FundInfo]:
        """List funds from the index file.

        Returns:
            Funds in index order; empty if the index is missing or unreadable.
        """
        index_path = self.data_dir / "index.json"
        if not index_path.exists():
            return []

        try:
            with open(index_path, "r") as f:
                data = json.load(f)
            return [
                FundInfo(ticker=e["symbol"].upper(), name=e.get("name") or e["symbol"].upper())
                for e in data.get("etfs", [])
            ]
        except (json.JSONDecodeError, KeyError, AttributeError) as e:
            logger.warning(f"Failed to read ETF index: {e}")
            return []
