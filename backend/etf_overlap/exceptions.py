"""Errors raised by the overlap computations."""


class OverlapError(Exception):
    """Base class for overlap computation errors."""


class InsufficientFundsError(OverlapError):
    """Raised when fewer than two distinct funds are supplied."""

    def __init__(self, fund_ids: list[str]) -> None:
        self.fund_ids = list(fund_ids)
        super().__init__(
            f"At least 2 ETF tickers are required, got {len(set(self.fund_ids))}"
        )


class DuplicateFundsError(OverlapError):
    """Raised when the same fund is requested more than once."""

    def __init__(self, fund_ids: list[str]) -> None:
        self.fund_ids = list(fund_ids)
        repeated = sorted({f for f in self.fund_ids if self.fund_ids.count(f) > 1})
        super().__init__(f"ETF tickers must be distinct: {', '.join(repeated)}")


class MissingHoldingsError(OverlapError):
    """Raised when a requested fund has no holdings."""

    def __init__(self, fund_id: str) -> None:
        self.fund_id = fund_id
        super().__init__(
            f"No cached holdings found for {fund_id}. "
            f"Please fetch {fund_id} holdings first."
        )
