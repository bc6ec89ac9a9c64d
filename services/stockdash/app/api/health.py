import time

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request):
    """
    Endpoint di health-check del feed.

    Ritorna info base di configurazione e lo stato del ticker,
    utili per capire in che modalità sta girando il servizio.
    """
    state = request.app.state
    settings = state.settings
    task = getattr(state, "ticker_task", None)

    return {
        "ok": True,
        "service": settings.service_name,
        "status": "healthy",
        "environment": settings.environment,
        "version": settings.APP_VERSION,
        "uptime_sec": round(time.monotonic() - state.started_at, 3),
        "tracked_symbols": len(state.market),
        "listeners": len(state.registry),
        "ticker_interval_sec": settings.price_update_interval_sec,
        "ticker_running": task is not None and not task.done(),
        "history_window": state.market.history_window,
    }
