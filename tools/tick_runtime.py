from __future__ import annotations

import sys
from pathlib import Path

# -------------------------------------------------------------------
# Setup path per importare app.* (stesso trucco degli altri tool)
# -------------------------------------------------------------------
# Vai dalla cartella tools/ alla root del progetto, poi in services/stockdash
ROOT = Path(__file__).resolve().parent.parent / "services" / "stockdash"
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from app.core.config import settings
from app.core.scheduler import run_price_cycle
from app.services.broadcaster import ListenerRegistry
from app.services.market_data import MarketState
from app.services.market_simulator import PriceMutator


TICKS = 5


def main() -> None:
    print("==============================================")
    print(" Runtime PriceMutator test (StockDash)")
    print("==============================================")
    print(f"ENVIRONMENT       : {settings.environment}")
    print(f"TICK_BAND_PCT     : {settings.PRICE_TICK_BAND_PCT}")
    print(f"HISTORY_WINDOW    : {settings.HISTORY_WINDOW}")
    print(f"PRICE_RANDOM_SEED : {settings.PRICE_RANDOM_SEED}")
    print()

    state = MarketState.from_seed(history_window=settings.HISTORY_WINDOW)
    mutator = PriceMutator.from_settings(state, settings)
    registry = ListenerRegistry()

    # un listener senza filtro che stampa tutto quello che riceve
    registry.connect(lambda msg: print(f"  <- {msg['symbol']:<6} {msg['data']}"))

    for i in range(1, TICKS + 1):
        print(f"Tick #{i}")
        delivered = run_price_cycle(mutator, registry)
        print(f"  consegnati: {delivered}")

    print("\nStorie:")
    for tracked in state:
        print(f"  {tracked.symbol:<6} price={tracked.price:<10} bars={len(tracked.history)}")

    print("==============================================")
    print(" Fine test PriceMutator runtime")
    print("==============================================")


if __name__ == "__main__":
    main()
