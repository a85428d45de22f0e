"""ETF overlap calculation logic."""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Mapping, Optional

from .exceptions import DuplicateFundsError, InsufficientFundsError, MissingHoldingsError
from .holdings import HoldingsSet

logger = logging.getLogger(__name__)

# Self-overlap on the matrix diagonal
SELF_OVERLAP = 100.0
MATRIX_DECIMALS = 2
# Digits needed to quantize the largest finite float to cents
ROUNDING_PRECISION = 400


@dataclass
class SharedHolding:
    """Represents a holding that appears in both funds of a pair."""

    symbol: str
    name: str
    weight1: float
    weight2: float
    overlap_contribution: float


@dataclass
class PairwiseOverlapResult:
    """Result of an overlap analysis between two funds."""

    etf1: str
    etf2: str
    overlap_percentage: float
    shared_holdings: list[SharedHolding]
    total_shared_holdings: int
    unique_holdings1: int
    unique_holdings2: int


@dataclass
class CoreHolding:
    """Represents a holding that appears in every selected fund."""

    symbol: str
    name: str
    weights: dict[str, float]
    min_weight: float


@dataclass
class CoreOverlapResult:
    """Holdings shared by all selected funds."""

    total_overlap: float = 0.0
    shared_holdings: list[CoreHolding] = field(default_factory=list)
    total_shared_holdings: int = 0


@dataclass
class OverlapMatrixResult:
    """Pairwise matrix, per-pair details and core overlap for a fund list."""

    etfs: list[str]
    matrix: list[list[float]]
    details: dict[str, PairwiseOverlapResult]
    core_overlap: CoreOverlapResult


def round_half_up(value: float, decimals: int = MATRIX_DECIMALS) -> float:
    """Round a percentage for display, with halves rounded up.

    Non-finite values are returned unchanged.
    """
    if not math.isfinite(value):
        return value

    quantum = Decimal(1).scaleb(-decimals)
    with localcontext() as ctx:
        ctx.prec = ROUNDING_PRECISION
        return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def pair_key(fund_id1: str, fund_id2: str) -> str:
    return f"{fund_id1}-{fund_id2}"


def compute_overlap(holdings1: HoldingsSet, holdings2: HoldingsSet) -> PairwiseOverlapResult:
    """Calculate the weighted overlap between two funds.

    The overlap percentage is the sum of minimum weights for holdings that
    appear in both funds. For example, if the first fund has 3% in AAPL and
    the second has 5% in AAPL, the overlap contribution is 3%.

    Argument order decides which side reports ``weight1`` and ``weight2``;
    the overlap percentage is the same either way.

    Args:
        holdings1: Holdings of the first fund.
        holdings2: Holdings of the second fund.

    Returns:
        PairwiseOverlapResult with unrounded overlap and shared positions.
    """
    by_symbol2 = holdings2.index()

    shared: list[SharedHolding] = []
    for h1 in holdings1:
        h2 = by_symbol2.get(h1.symbol)
        if h2 is None:
            continue

        shared.append(SharedHolding(
            symbol=h1.symbol,
            name=h1.name or h2.name,
            weight1=h1.weight,
            weight2=h2.weight,
            overlap_contribution=min(h1.weight, h2.weight),
        ))

    # Stable sort keeps the first fund's order on ties
    shared.sort(key=lambda x: x.overlap_contribution, reverse=True)

    return PairwiseOverlapResult(
        etf1=holdings1.fund_id,
        etf2=holdings2.fund_id,
        overlap_percentage=sum(h.overlap_contribution for h in shared),
        shared_holdings=shared,
        total_shared_holdings=len(shared),
        unique_holdings1=len(holdings1) - len(shared),
        unique_holdings2=len(holdings2) - len(shared),
    )


def compute_core_overlap(
    holdings_by_fund: Mapping[str, HoldingsSet], fund_ids: list[str]
) -> CoreOverlapResult:
    """Calculate the N-way overlap of holdings shared by every fund.

    Candidates come from the first fund in ``fund_ids`` and keep its
    holdings order on ties. The display name is the first non-empty name
    found across funds in ``fund_ids`` order.

    Args:
        holdings_by_fund: Holdings keyed by fund id.
        fund_ids: Ordered fund ids to intersect.

    Returns:
        CoreOverlapResult; empty when fewer than two funds are given.
    """
    if len(fund_ids) < 2:
        return CoreOverlapResult()

    indexes = {fund_id: holdings_by_fund[fund_id].index() for fund_id in fund_ids}
    others = fund_ids[1:]

    shared: list[CoreHolding] = []
    for candidate in holdings_by_fund[fund_ids[0]]:
        if not all(candidate.symbol in indexes[fund_id] for fund_id in others):
            continue

        matches = [indexes[fund_id][candidate.symbol] for fund_id in fund_ids]
        weights = {fund_id: h.weight for fund_id, h in zip(fund_ids, matches)}
        name = next((h.name for h in matches if h.name), candidate.symbol)

        shared.append(CoreHolding(
            symbol=candidate.symbol,
            name=name,
            weights=weights,
            min_weight=min(weights.values()),
        ))

    shared.sort(key=lambda x: x.min_weight, reverse=True)

    return CoreOverlapResult(
        total_overlap=sum(h.min_weight for h in shared),
        shared_holdings=shared,
        total_shared_holdings=len(shared),
    )


def build_matrix(
    fund_ids: list[str],
    holdings_by_fund: Mapping[str, HoldingsSet],
    max_workers: Optional[int] = None,
) -> OverlapMatrixResult:
    """Build the overlap matrix for an ordered list of funds.

    Args:
        fund_ids: Ordered fund ids, at least two.
        holdings_by_fund: Non-empty holdings for every fund id.
        max_workers: Compute pairs on a thread pool when greater than 1.

    Returns:
        OverlapMatrixResult with rounded matrix, unrounded details and
        core overlap.

    Raises:
        InsufficientFundsError: If fewer than two distinct fund ids are given.
        DuplicateFundsError: If a fund id is repeated.
        MissingHoldingsError: If a fund id has no holdings.
    """
    fund_ids = list(fund_ids)
    distinct = set(fund_ids)
    if len(distinct) < 2:
        raise InsufficientFundsError(fund_ids)
    if len(distinct) != len(fund_ids):
        raise DuplicateFundsError(fund_ids)

    for fund_id in fund_ids:
        holdings = holdings_by_fund.get(fund_id)
        if holdings is None or len(holdings) == 0:
            raise MissingHoldingsError(fund_id)

    n = len(fund_ids)
    pairs = [(i, j) for i in range(n) for j in range(n) if i != j]

    def _compute(pair: tuple[int, int]) -> PairwiseOverlapResult:
        i, j = pair
        result = compute_overlap(holdings_by_fund[fund_ids[i]], holdings_by_fund[fund_ids[j]])
        # Label with the requested ids rather than whatever the sets carry
        result.etf1 = fund_ids[i]
        result.etf2 = fund_ids[j]
        return result

    if max_workers and max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(_compute, pairs))
    else:
        results = [_compute(pair) for pair in pairs]

    matrix = [[SELF_OVERLAP if i == j else 0.0 for j in range(n)] for i in range(n)]
    details: dict[str, PairwiseOverlapResult] = {}

    for (i, j), result in zip(pairs, results):
        matrix[i][j] = round_half_up(result.overlap_percentage)
        details[pair_key(fund_ids[i], fund_ids[j])] = result

    core_overlap = compute_core_overlap(holdings_by_fund, fund_ids)

    logger.info(
        f"Computed overlap for {n} funds: {len(details)} pairs, "
        f"{core_overlap.total_shared_holdings} core holdings"
    )

    return OverlapMatrixResult(
        etfs=fund_ids,
        matrix=matrix,
        details=details,
        core_overlap=core_overlap,
    )
