import time
from typing import Optional

from fastapi import FastAPI

from app.api import health, stocks, stream
from app.core.config import Settings, settings as default_settings
from app.core.logging import setup_logging
from app.core.scheduler import start_scheduler
from app.services.broadcaster import ListenerRegistry
from app.services.market_data import MarketState
from app.services.market_simulator import PriceMutator


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Factory dell'app: crea lo stato posseduto (tabella titoli, registry
    dei listener, mutator) e lo aggancia ad app.state.
    """
    settings = settings or default_settings

    app = FastAPI(title=settings.SERVICE_NAME, version=settings.APP_VERSION)

    market = MarketState.from_seed(history_window=settings.HISTORY_WINDOW)
    app.state.settings = settings
    app.state.market = market
    app.state.registry = ListenerRegistry()
    app.state.mutator = PriceMutator.from_settings(market, settings)
    app.state.ticker_task = None
    app.state.started_at = time.monotonic()

    # avvia il ticker dei prezzi (startup) e lo ferma allo shutdown
    start_scheduler(app)

    # registra i router
    app.include_router(health.router)
    app.include_router(stocks.router, prefix="/stocks", tags=["stocks"])
    app.include_router(stream.router, tags=["stream"])

    @app.get("/")
    async def root():
        return {"status": "ok", "service": settings.SERVICE_NAME}

    return app


# inizializza logging JSON
setup_logging(default_settings.LOG_LEVEL)

# istanza FastAPI
app = create_app()
