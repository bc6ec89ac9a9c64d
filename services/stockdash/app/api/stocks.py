from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.services.market_data import MarketState, UnknownSymbolError

router = APIRouter()


# ---------- Dependency state ----------

def get_market_state(request: Request) -> MarketState:
    return request.app.state.market


# ---------- Pydantic models ----------

class CamelModel(BaseModel):
    # python in snake_case, JSON in camelCase come si aspetta il frontend
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuoteResponse(CamelModel):
    symbol: str
    name: str
    current_price: float
    change: float
    change_percent: float
    volume: int


class HistoryBarResponse(CamelModel):
    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int


class StockDetailResponse(QuoteResponse):
    history: list[HistoryBarResponse] = []


class QuoteListEnvelope(CamelModel):
    success: bool = True
    data: list[QuoteResponse]
    timestamp: datetime


class StockDetailEnvelope(CamelModel):
    success: bool = True
    data: StockDetailResponse
    timestamp: datetime


# ---------- Endpoints ----------

@router.get("", response_model=QuoteListEnvelope)
async def list_stocks(state: MarketState = Depends(get_market_state)):
    """
    Snapshot di tutti i titoli tracciati.

    Non avanza il random walk: l'unico scrittore è il ticker.
    """
    return QuoteListEnvelope(
        data=[QuoteResponse(**quote) for quote in state.snapshot_quotes()],
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/{symbol}", response_model=StockDetailEnvelope)
async def get_stock(symbol: str, state: MarketState = Depends(get_market_state)):
    """Quote di un simbolo (case-insensitive) con la sua finestra di storia."""
    try:
        snapshot = state.snapshot_symbol(symbol)
    except UnknownSymbolError:
        raise HTTPException(status_code=404, detail="Stock not found")

    return StockDetailEnvelope(
        data=StockDetailResponse(**snapshot),
        timestamp=datetime.now(timezone.utc),
    )
