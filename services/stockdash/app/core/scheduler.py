# app/core/scheduler.py
import asyncio
import logging
from datetime import datetime, timezone

from app.services.broadcaster import ListenerRegistry
from app.services.market_data import MarketState
from app.services.market_simulator import PriceMutator

logger = logging.getLogger("scheduler")


def price_update_messages(state: MarketState) -> list[tuple[str, dict]]:
    """
    Costruisce un messaggio priceUpdate per ogni simbolo tracciato.

    Il timestamp è quello dell'ultima barra (la stessa servita da
    /stocks/{symbol}); prima del primo tick si usa l'ora corrente.
    """
    fallback_ts = datetime.now(timezone.utc)
    with state.lock:
        return [
            (
                tracked.symbol,
                {
                    "type": "priceUpdate",
                    "symbol": tracked.symbol,
                    "data": tracked.price_update_payload(
                        tracked.history[-1].timestamp if tracked.history else fallback_ts
                    ),
                },
            )
            for tracked in state
        ]


def run_price_cycle(mutator: PriceMutator, registry: ListenerRegistry) -> int:
    """Un ciclo completo: tick + fan-out. Ritorna il totale dei messaggi consegnati."""
    mutator.tick()

    delivered = 0
    for symbol, message in price_update_messages(mutator.state):
        delivered += registry.publish(symbol, message)
    return delivered


async def price_ticker(mutator: PriceMutator, registry: ListenerRegistry, interval_sec: float) -> None:
    """
    Loop di background che esegue periodicamente run_price_cycle().

    L'intervallo arriva da Settings.PRICE_UPDATE_INTERVAL_SEC (validato > 0).
    Un errore in un ciclo viene loggato e il loop continua.
    """
    logger.info(
        {
            "event": "price_ticker_started",
            "interval_sec": interval_sec,
            "symbols": len(mutator.state),
        }
    )

    try:
        while True:
            await asyncio.sleep(interval_sec)
            try:
                delivered = run_price_cycle(mutator, registry)
            except Exception as e:
                logger.error(
                    {
                        "event": "price_ticker_error",
                        "error_type": type(e).__name__,
                        "error": str(e),
                    }
                )
            else:
                logger.debug({"event": "price_ticker_cycle", "delivered": delivered, "listeners": len(registry)})
    finally:
        logger.info({"event": "price_ticker_stopped"})


def start_scheduler(app) -> None:
    """
    Registra il ticker come background task all'avvio di FastAPI
    e lo ferma allo shutdown.

    Usa app.state.mutator / app.state.registry / app.state.settings,
    preparati da create_app().
    """

    @app.on_event("startup")
    async def _start_ticker() -> None:
        settings = app.state.settings
        app.state.ticker_task = None

        if not settings.PRICE_TICKER_ENABLED:
            logger.info({"event": "price_ticker_disabled"})
            return

        app.state.ticker_task = asyncio.create_task(
            price_ticker(
                app.state.mutator,
                app.state.registry,
                settings.price_update_interval_sec,
            )
        )

    @app.on_event("shutdown")
    async def _stop_ticker() -> None:
        task = getattr(app.state, "ticker_task", None)
        if task is None:
            return

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        app.state.ticker_task = None
