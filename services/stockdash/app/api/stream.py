import asyncio
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.broadcaster import (
    DeliveryError,
    ListenerClosedError,
    ListenerRegistry,
)

router = APIRouter()
logger = logging.getLogger("stream")

# Stesso formato accettato dal frontend: 1-5 lettere, suffisso di classe opzionale
SYMBOL_RE = re.compile(r"^[A-Z]{1,5}(-[A-Z])?$")

WELCOME_MESSAGE = "Connected to Stock Market Dashboard API"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class OutboxSender:
    """
    Capability di invio di un listener WebSocket.

    Non scrive mai direttamente sul socket: mette il messaggio in una coda
    limitata, svuotata da un writer task dedicato. Così un client lento
    non blocca il tick per gli altri.
    """

    def __init__(self, outbox: asyncio.Queue) -> None:
        self._outbox = outbox
        self.closed = False

    def __call__(self, message: dict) -> None:
        if self.closed:
            raise ListenerClosedError("websocket closed")
        try:
            self._outbox.put_nowait(message)
        except asyncio.QueueFull:
            raise DeliveryError(f"outbox full ({self._outbox.maxsize} messages)") from None

    def close(self) -> None:
        self.closed = True


def _error(message: str) -> dict:
    return {"type": "error", "message": message}


def handle_client_message(registry: ListenerRegistry, listener_id: str, raw: str) -> dict:
    """
    Interpreta un messaggio del client e ritorna la risposta da inviargli.

    - {"type": "subscribe", "symbol": "AAPL"} → filtro sul simbolo
    - {"type": "unsubscribe"}                → nessun filtro
    - altro                                   → messaggio di errore

    Gli errori riguardano solo questo client: ticker e altri listener
    non ne risentono.
    """
    try:
        data: Any = json.loads(raw)
    except (TypeError, ValueError):
        logger.info({"event": "stream_invalid_message", "listener_id": listener_id})
        return _error("Invalid message format")

    if not isinstance(data, dict):
        logger.info({"event": "stream_invalid_message", "listener_id": listener_id})
        return _error("Invalid message format")

    msg_type = data.get("type")

    if msg_type == "subscribe":
        raw_symbol = data.get("symbol")
        symbol: Optional[str] = None

        if raw_symbol is not None:
            if not isinstance(raw_symbol, str) or not SYMBOL_RE.match(raw_symbol.strip().upper()):
                return _error("Invalid symbol")
            symbol = raw_symbol.strip().upper()

        listener = registry.subscribe(listener_id, symbol)
        if listener.filter is None:
            return {"type": "subscribed", "symbol": None, "message": "Subscribed to all updates"}
        return {
            "type": "subscribed",
            "symbol": listener.filter,
            "message": f"Subscribed to {listener.filter} updates",
        }

    if msg_type == "unsubscribe":
        registry.unsubscribe(listener_id)
        return {"type": "unsubscribed", "message": "Unsubscribed from updates"}

    logger.info({"event": "stream_unknown_message_type", "listener_id": listener_id, "type": str(msg_type)})
    return _error("Unknown message type")


async def _drain_outbox(websocket: WebSocket, outbox: asyncio.Queue, listener_id: str) -> None:
    """Writer: svuota la coda sul socket. Un errore di invio chiude la connessione."""
    try:
        while True:
            message = await outbox.get()
            await websocket.send_json(message)
    except Exception as e:
        logger.info(
            {
                "event": "stream_writer_stopped",
                "listener_id": listener_id,
                "error_type": type(e).__name__,
                "error": str(e),
            }
        )


async def _read_frames(
    websocket: WebSocket,
    registry: ListenerRegistry,
    listener_id: str,
    outbox: asyncio.Queue,
) -> None:
    """Reader: interpreta i messaggi del client fino alla disconnessione."""
    try:
        while True:
            raw = await websocket.receive_text()
            reply = handle_client_message(registry, listener_id, raw)
            # le risposte dirette aspettano posto in coda: rallentano solo questo client
            await outbox.put(reply)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(
            {
                "event": "stream_error",
                "listener_id": listener_id,
                "error_type": type(e).__name__,
                "error": str(e),
            }
        )


@router.websocket("/ws")
async def stream(websocket: WebSocket):
    """
    Feed real-time dei prezzi.

    Ogni connessione diventa un Listener nel registry dell'app.
    Reader e writer girano come task separati: quando uno dei due
    termina (client disconnesso, invio fallito) il listener viene
    rimosso e l'altro task cancellato.
    """
    registry: ListenerRegistry = websocket.app.state.registry
    queue_size: int = websocket.app.state.settings.LISTENER_QUEUE_SIZE

    await websocket.accept()

    outbox: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
    sender = OutboxSender(outbox)
    listener = registry.connect(sender)
    outbox.put_nowait({"type": "welcome", "message": WELCOME_MESSAGE, "timestamp": _now_iso()})

    writer = asyncio.create_task(_drain_outbox(websocket, outbox, listener.id))
    reader = asyncio.create_task(_read_frames(websocket, registry, listener.id, outbox))
    # writer morto: i publish successivi vedono subito il canale chiuso
    writer.add_done_callback(lambda _task: sender.close())

    try:
        await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        sender.close()
        registry.disconnect(listener.id)
        for task in (reader, writer):
            task.cancel()
        await asyncio.gather(reader, writer, return_exceptions=True)
