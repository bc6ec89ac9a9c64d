from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Deque, Dict, Iterable, Iterator, List, Optional


class UnknownSymbolError(KeyError):
    """Il simbolo richiesto non è nella tabella dei titoli tracciati."""

    def __init__(self, symbol: str) -> None:
        super().__init__(symbol)
        self.symbol = symbol


@dataclass(frozen=True)
class HistoryBar:
    """
    Barra OHLCV aggiunta alla storia di un simbolo.

    Immutabile: l'unico modo per toglierla è l'eviction FIFO
    della finestra (deque con maxlen).
    """

    timestamp: datetime  # timezone-aware (UTC)
    open: float
    high: float
    low: float
    close: float
    volume: int

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass
class TrackedSymbol:
    """
    Stato "vivo" di un titolo, modificato in place a ogni tick.

    - price:          ultimo prezzo (centesimi)
    - change:         variazione assoluta dell'ultimo tick
    - change_percent: variazione percentuale dell'ultimo tick
    - volume:         volume dell'ultima barra (o quello di seed)
    - history:        finestra mobile di HistoryBar, la più vecchia esce per prima
    """

    symbol: str
    name: str
    price: float
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    history: Deque[HistoryBar] = field(default_factory=deque)

    def quote(self) -> dict:
        return {
            "symbol": self.symbol,
            "name": self.name,
            "current_price": self.price,
            "change": self.change,
            "change_percent": self.change_percent,
            "volume": self.volume,
        }

    def price_update_payload(self, ts: Optional[datetime] = None) -> dict:
        """Payload del messaggio priceUpdate (chiavi camelCase, come sul wire)."""
        ts = ts or datetime.now(timezone.utc)
        return {
            "currentPrice": self.price,
            "change": self.change,
            "changePercent": self.change_percent,
            "volume": self.volume,
            "timestamp": ts.isoformat(),
        }


@dataclass(frozen=True)
class SeedSymbol:
    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
    volume: int


# Universo di partenza del demo (valori della tabella mock originale)
DEFAULT_UNIVERSE: List[SeedSymbol] = [
    SeedSymbol("AAPL", "Apple Inc.", 185.50, 2.30, 1.26, 45_230_000),
    SeedSymbol("GOOGL", "Alphabet Inc.", 142.80, -1.20, -0.83, 28_450_000),
    SeedSymbol("MSFT", "Microsoft Corporation", 378.90, 4.50, 1.20, 32_100_000),
    SeedSymbol("TSLA", "Tesla Inc.", 245.60, -8.40, -3.31, 89_450_000),
    SeedSymbol("NVDA", "NVIDIA Corporation", 875.30, 12.80, 1.48, 56_780_000),
]


class MarketState:
    """
    Tabella posseduta dei titoli tracciati.

    Viene creata dalla factory dell'app e passata per riferimento sia al
    PriceMutator (unico scrittore) sia alle API di snapshot (lettori).
    Un solo lock "grosso" protegge tutta la tabella.
    """

    def __init__(self, history_window: int = 30) -> None:
        if history_window < 1:
            raise ValueError("history_window must be >= 1")
        self.history_window = history_window
        self.lock = RLock()
        self._symbols: Dict[str, TrackedSymbol] = {}

    @classmethod
    def from_seed(
        cls,
        seeds: Iterable[SeedSymbol] = DEFAULT_UNIVERSE,
        history_window: int = 30,
    ) -> "MarketState":
        state = cls(history_window=history_window)
        for seed in seeds:
            state.add(
                TrackedSymbol(
                    symbol=seed.symbol,
                    name=seed.name,
                    price=seed.price,
                    change=seed.change,
                    change_percent=seed.change_percent,
                    volume=seed.volume,
                )
            )
        return state

    def add(self, tracked: TrackedSymbol) -> TrackedSymbol:
        symbol = tracked.symbol.upper()
        if tracked.price <= 0:
            raise ValueError(f"price must be > 0 for {symbol}: {tracked.price!r}")
        tracked.symbol = symbol
        # la storia passa sempre per una deque limitata alla finestra
        tracked.history = deque(tracked.history, maxlen=self.history_window)
        with self.lock:
            self._symbols[symbol] = tracked
        return tracked

    def get(self, symbol: str) -> TrackedSymbol:
        try:
            return self._symbols[symbol.upper()]
        except KeyError:
            raise UnknownSymbolError(symbol.upper()) from None

    def symbols(self) -> List[str]:
        with self.lock:
            return list(self._symbols)

    def __iter__(self) -> Iterator[TrackedSymbol]:
        with self.lock:
            return iter(list(self._symbols.values()))

    def __len__(self) -> int:
        return len(self._symbols)

    def __contains__(self, symbol: object) -> bool:
        return isinstance(symbol, str) and symbol.upper() in self._symbols

    # ---------- snapshot per le API ----------

    def snapshot_quotes(self) -> List[dict]:
        with self.lock:
            return [tracked.quote() for tracked in self._symbols.values()]

    def snapshot_symbol(self, symbol: str) -> dict:
        with self.lock:
            tracked = self.get(symbol)
            data = tracked.quote()
            data["history"] = [bar.to_dict() for bar in tracked.history]
            return data
