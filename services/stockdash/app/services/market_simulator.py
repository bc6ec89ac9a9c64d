from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Callable, Optional

from app.services.market_data import HistoryBar, MarketState

logger = logging.getLogger("market")

# Stessi limiti di Settings (PRICE_TICK_BAND_PCT / BAR_SPREAD_PCT <= 10), come frazione
MAX_BAND = 0.10
MAX_SPREAD = 0.10


class PriceMutator:
    """
    Random walk molto semplice sui titoli tracciati.

    Per ogni simbolo, a ogni tick:
    - variazione uniforme in [-band, +band], applicata in modo moltiplicativo
    - prezzo arrotondato ai centesimi
    - change / change_percent calcolati rispetto al prezzo pre-tick
    - nuova HistoryBar con open=close=prezzo e high/low spostati di `spread`
    - la finestra della storia scarta le barre più vecchie (FIFO)
    """

    def __init__(
        self,
        state: MarketState,
        band: float = 0.01,
        spread: float = 0.01,
        volume_range: tuple[int, int] = (5_000_000, 14_999_999),
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        # con band <= 10% un prezzo di 0.01 arrotondato ai centesimi resta 0.01
        if not 0 < band <= MAX_BAND:
            raise ValueError(f"band must be in (0, {MAX_BAND}], got {band!r}")
        if not 0 <= spread <= MAX_SPREAD:
            raise ValueError(f"spread must be in [0, {MAX_SPREAD}], got {spread!r}")
        low_vol, high_vol = volume_range
        if low_vol < 0 or high_vol < low_vol:
            raise ValueError(f"invalid volume_range: {volume_range!r}")

        self.state = state
        self.band = band
        self.spread = spread
        self.volume_range = (low_vol, high_vol)
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, state: MarketState, settings) -> "PriceMutator":
        return cls(
            state,
            band=settings.tick_band,
            spread=settings.bar_spread,
            volume_range=(settings.BAR_VOLUME_MIN, settings.BAR_VOLUME_MAX),
            rng=random.Random(settings.PRICE_RANDOM_SEED),
        )

    def tick(self) -> None:
        """Esegue un ciclo di mutazione su tutta la tabella (no-op se vuota)."""
        now = self._clock()

        with self.state.lock:
            for tracked in self.state:
                old_price = tracked.price
                delta = self._rng.uniform(-self.band, self.band)
                new_price = round(old_price * (1 + delta), 2)

                tracked.price = new_price
                tracked.change = round(new_price - old_price, 2)
                tracked.change_percent = round((new_price - old_price) / old_price * 100, 2)

                bar = HistoryBar(
                    timestamp=now,
                    open=new_price,
                    high=round(new_price * (1 + self.spread), 2),
                    low=round(new_price * (1 - self.spread), 2),
                    close=new_price,
                    volume=self._rng.randint(*self.volume_range),
                )
                # deque(maxlen=window): l'append scarta la barra più vecchia
                tracked.history.append(bar)
                tracked.volume = bar.volume

        logger.debug({"event": "price_tick", "symbols": len(self.state), "ts": now.isoformat()})
