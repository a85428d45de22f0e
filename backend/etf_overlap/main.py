"""FastAPI application for ETF Overlap Matrix."""

from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
import logging

from . import config
from .exceptions import DuplicateFundsError, InsufficientFundsError, MissingHoldingsError
from .holdings import HoldingsSet
from .overlap import OverlapMatrixResult, build_matrix
from .store import HoldingsStore, JsonFileHoldingsStore

# Configure logging
logging.basicConfig(level=config.get_log_level())
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ETF Overlap Matrix",
    description="Pairwise and N-way holdings overlap between ETFs",
    version="1.0.0",
)

# Configure CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_store: Optional[HoldingsStore] = None


def get_store() -> HoldingsStore:
    """Return the configured holdings store, created on first use."""
    global _store
    if _store is None:
        _store = JsonFileHoldingsStore(config.get_data_dir())
    return _store


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HoldingIn(CamelModel):
    """Request model for a single holding."""

    symbol: str = Field(min_length=1)
    name: str = ""
    weight: float = Field(ge=0, allow_inf_nan=False)
    shares: Optional[float] = None


class FundHoldingsIn(CamelModel):
    """Request model for one fund and its holdings."""

    fund_id: str = Field(min_length=1)
    holdings: list[HoldingIn]


class OverlapRequest(CamelModel):
    """Request body for overlap analysis with inline holdings."""

    funds: list[FundHoldingsIn]


class HoldingResponse(CamelModel):
    """Response model for a single holding."""

    symbol: str
    name: str
    weight: float
    shares: Optional[float] = None


class HoldingsResponse(CamelModel):
    """Response model for ETF holdings."""

    symbol: str
    holdings: list[HoldingResponse]


class SharedHoldingResponse(CamelModel):
    """Response model for a holding shared by a pair of ETFs."""

    symbol: str
    name: str
    weight1: float
    weight2: float
    overlap_contribution: float


class PairwiseOverlapResponse(CamelModel):
    """Response model for overlap between two ETFs."""

    etf1: str
    etf2: str
    overlap_percentage: float
    shared_holdings: list[SharedHoldingResponse]
    total_shared_holdings: int
    unique_holdings1: int
    unique_holdings2: int


class CoreHoldingResponse(CamelModel):
    """Response model for a holding shared by every ETF."""

    symbol: str
    name: str
    weights: dict[str, float]
    min_weight: float


class CoreOverlapResponse(CamelModel):
    """Response model for the N-way core overlap."""

    total_overlap: float
    shared_holdings: list[CoreHoldingResponse]
    total_shared_holdings: int


class OverlapMatrixResponse(CamelModel):
    """Response model for overlap analysis."""

    etfs: list[str]
    matrix: list[list[float]]
    details: dict[str, PairwiseOverlapResponse]
    core_overlap: CoreOverlapResponse


class ETFInfo(CamelModel):
    """Response model for ETF info."""

    ticker: str
    name: str


def parse_tickers(tickers: str) -> list[str]:
    """Split a comma-separated ticker list.

    Args:
        tickers: Raw query value such as "spy, qqq,SPY".

    Returns:
        Upper-cased tickers without blanks or repeats, in request order.
    """
    parsed: list[str] = []
    for ticker in tickers.split(","):
        ticker = ticker.strip().upper()
        if ticker and ticker not in parsed:
            parsed.append(ticker)
    return parsed


def _to_response(result: OverlapMatrixResult) -> OverlapMatrixResponse:
    return OverlapMatrixResponse(
        etfs=result.etfs,
        matrix=result.matrix,
        details={
            key: PairwiseOverlapResponse(
                etf1=d.etf1,
                etf2=d.etf2,
                overlap_percentage=d.overlap_percentage,
                shared_holdings=[
                    SharedHoldingResponse(
                        symbol=h.symbol,
                        name=h.name,
                        weight1=h.weight1,
                        weight2=h.weight2,
                        overlap_contribution=h.overlap_contribution,
                    )
                    for h in d.shared_holdings
                ],
                total_shared_holdings=d.total_shared_holdings,
                unique_holdings1=d.unique_holdings1,
                unique_holdings2=d.unique_holdings2,
            )
            for key, d in result.details.items()
        },
        core_overlap=CoreOverlapResponse(
            total_overlap=result.core_overlap.total_overlap,
            shared_holdings=[
                CoreHoldingResponse(
                    symbol=h.symbol,
                    name=h.name,
                    weights=h.weights,
                    min_weight=h.min_weight,
                )
                for h in result.core_overlap.shared_holdings
            ],
            total_shared_holdings=result.core_overlap.total_shared_holdings,
        ),
    )


def _build(fund_ids: list[str], holdings_by_fund: dict[str, HoldingsSet]) -> OverlapMatrixResponse:
    """Run the matrix computation, mapping its errors to HTTP errors."""
    try:
        result = build_matrix(fund_ids, holdings_by_fund)
    except (InsufficientFundsError, DuplicateFundsError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except MissingHoldingsError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return _to_response(result)


def _missing_holdings_response(fund_id: str, fund_ids: list[str]) -> JSONResponse:
    """404 body that also carries the requested tickers and an empty matrix."""
    message = str(MissingHoldingsError(fund_id))
    return JSONResponse(
        status_code=404,
        content={"detail": message, "error": message, "etfs": fund_ids, "matrix": []},
    )


@app.get("/api/etfs", response_model=list[ETFInfo])
async def list_etfs(store: HoldingsStore = Depends(get_store)) -> list[ETFInfo]:
    """Get list of available ETFs.

    Returns:
        List of ETF tickers and names known to the store.
    """
    return [ETFInfo(ticker=f.ticker, name=f.name) for f in store.list_funds()]


@app.get("/api/holdings/{ticker}", response_model=HoldingsResponse)
async def get_holdings(
    ticker: str, store: HoldingsStore = Depends(get_store)
) -> HoldingsResponse:
    """Get cached holdings for an ETF.

    Args:
        ticker: The ETF ticker symbol.

    Returns:
        Holdings data for the ETF.

    Raises:
        HTTPException: If no fresh holdings are cached for the ticker.
    """
    ticker = ticker.strip().upper()
    holdings = store.get_holdings(ticker, config.get_cache_max_age_hours())

    if holdings is None or len(holdings) == 0:
        raise HTTPException(status_code=404, detail=str(MissingHoldingsError(ticker)))

    return HoldingsResponse(
        symbol=holdings.fund_id,
        holdings=[
            HoldingResponse(symbol=h.symbol, name=h.name, weight=h.weight, shares=h.shares)
            for h in holdings
        ],
    )


@app.get("/api/overlap", response_model=OverlapMatrixResponse)
async def overlap_matrix(
    tickers: Optional[str] = None, store: HoldingsStore = Depends(get_store)
) -> OverlapMatrixResponse:
    """Analyze overlap between cached ETFs.

    Args:
        tickers: Comma-separated ETF tickers, at least two.

    Returns:
        Overlap matrix, per-pair details and core overlap, or a 404 body
        with the requested tickers and an empty matrix if a fund is not cached.

    Raises:
        HTTPException: If fewer than two tickers are given.
    """
    if not tickers:
        raise HTTPException(
            status_code=400,
            detail="tickers parameter is required (comma-separated)",
        )

    fund_ids = parse_tickers(tickers)
    if len(fund_ids) < 2:
        raise HTTPException(status_code=400, detail=str(InsufficientFundsError(fund_ids)))

    max_age_hours = config.get_cache_max_age_hours()
    holdings_by_fund: dict[str, HoldingsSet] = {}

    # Reject before computing anything if a fund is missing
    for fund_id in fund_ids:
        holdings = store.get_holdings(fund_id, max_age_hours)
        if holdings is None or len(holdings) == 0:
            return _missing_holdings_response(fund_id, fund_ids)
        holdings_by_fund[fund_id] = holdings

    logger.info(f"Computing overlap for {', '.join(fund_ids)}")
    return _build(fund_ids, holdings_by_fund)


@app.post("/api/overlap", response_model=OverlapMatrixResponse)
async def overlap_matrix_inline(request: OverlapRequest) -> OverlapMatrixResponse:
    """Analyze overlap between ETFs whose holdings are sent in the body.

    Args:
        request: Funds with their holdings.

    Returns:
        Overlap matrix, per-pair details and core overlap.

    Raises:
        HTTPException: If fewer than two distinct funds or an empty fund is sent.
    """
    fund_ids: list[str] = []
    holdings_by_fund: dict[str, HoldingsSet] = {}

    for fund in request.funds:
        holdings = HoldingsSet.from_records(
            fund.fund_id, [h.model_dump() for h in fund.holdings]
        )
        if holdings.fund_id in holdings_by_fund:
            continue
        if len(holdings) == 0:
            raise HTTPException(
                status_code=400,
                detail=f"ETF '{holdings.fund_id}' has no identifiable holdings in the request.",
            )
        fund_ids.append(holdings.fund_id)
        holdings_by_fund[holdings.fund_id] = holdings

    return _build(fund_ids, holdings_by_fund)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint.

    Returns:
        Health status.
    """
    return {"status": "healthy"}
