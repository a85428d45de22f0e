"""Fund holdings data model and normalization."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Optional

logger = logging.getLogger(__name__)

# Placeholder the data sources use for holdings without a ticker
MISSING_SYMBOL = "N/A"
DERIVED_SYMBOL_MAX_LENGTH = 50

_DERIVED_SYMBOL_RE = re.compile(r"[^a-zA-Z0-9\s-]")


@dataclass
class Holding:
    """Represents a single security position inside a fund."""

    symbol: str
    name: str
    weight: float
    shares: Optional[float] = None


@dataclass
class HoldingsSet:
    """Represents all holdings for one fund, unique by symbol."""

    fund_id: str
    holdings: list[Holding] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.holdings)

    def __iter__(self) -> Iterator[Holding]:
        return iter(self.holdings)

    def symbols(self) -> list[str]:
        return [h.symbol for h in self.holdings]

    def index(self) -> dict[str, Holding]:
        """Build a symbol to holding lookup."""
        return {h.symbol: h for h in self.holdings}

    @classmethod
    def from_records(cls, fund_id: str, records: Iterable[dict[str, Any]]) -> "HoldingsSet":
        """Normalize raw holding records into a de-duplicated set.

        Args:
            fund_id: The fund identifier (upper-cased).
            records: Raw holdings with symbol, name, weight and optional shares.

        Returns:
            HoldingsSet with unique symbols, in record order.
        """
        holdings = []
        for record in records:
            holding = normalize_holding(record)
            if holding is None:
                logger.debug(f"Skipping unidentifiable holding in {fund_id}: {record}")
                continue
            holdings.append(holding)

        return cls(fund_id=fund_id.strip().upper(), holdings=dedupe_holdings(holdings))


def derive_symbol(name: str) -> str:
    """Derive an identifier for holdings without a ticker, such as bonds.

    Args:
        name: The holding display name.

    Returns:
        Upper-cased identifier built from the name, possibly empty.
    """
    cleaned = _DERIVED_SYMBOL_RE.sub("", name[:DERIVED_SYMBOL_MAX_LENGTH])
    return cleaned.strip().upper()


def normalize_holding(record: dict[str, Any]) -> Optional[Holding]:
    """Build a Holding from a raw record.

    Args:
        record: Mapping with symbol, name, weight and optional shares.

    Returns:
        Normalized Holding, or None if no symbol can be resolved.
    """
    name = str(record.get("name") or "").strip()
    symbol = str(record.get("symbol") or "").strip()

    if not symbol or symbol.upper() == MISSING_SYMBOL:
        symbol = derive_symbol(name)
    symbol = symbol.upper()

    if not symbol:
        return None

    shares = record.get("shares")
    return Holding(
        symbol=symbol,
        name=name or symbol,
        weight=float(record.get("weight", 0.0)),
        shares=float(shares) if shares is not None else None,
    )


def dedupe_holdings(holdings: Iterable[Holding]) -> list[Holding]:
    """Drop repeated symbols, keeping the first occurrence.

    Args:
        holdings: Holdings that may repeat a symbol.

    Returns:
        Holdings with unique symbols, in original order.
    """
    seen: set[str] = set()
    unique: list[Holding] = []

    for h in holdings:
        if h.symbol in seen:
            logger.debug(f"Dropping duplicate holding {h.symbol}")
            continue
        seen.add(h.symbol)
        unique.append(h)

    return unique
