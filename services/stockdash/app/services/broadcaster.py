from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Optional


logger = logging.getLogger("broadcaster")


class BroadcastError(Exception):
    """Errore di alto livello del broadcaster."""


class ListenerNotFoundError(BroadcastError):
    def __init__(self, listener_id: str) -> None:
        super().__init__(f"listener not registered: {listener_id}")
        self.listener_id = listener_id


class DeliveryError(BroadcastError):
    """
    Consegna fallita verso un listener.

    Il messaggio viene scartato (at-most-once, nessun retry) ma il
    listener resta registrato: tipicamente la coda di uscita è piena.
    """


class ListenerClosedError(DeliveryError):
    """Il canale del listener è chiuso: il listener va rimosso dal registry."""


class ListenerState(str, Enum):
    """
    Stati di un listener.

    - connected_unfiltered: riceve tutti i simboli
    - connected_filtered:   riceve solo il simbolo sottoscritto
    - disconnected:         terminale, non è più nel registry
    """

    CONNECTED_UNFILTERED = "connected_unfiltered"
    CONNECTED_FILTERED = "connected_filtered"
    DISCONNECTED = "disconnected"


# Capability di invio: consegna un messaggio senza bloccare,
# oppure solleva DeliveryError / ListenerClosedError
SendFn = Callable[[Dict[str, Any]], None]


@dataclass
class Listener:
    id: str
    send: SendFn
    filter: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    connected: bool = True

    @property
    def state(self) -> ListenerState:
        if not self.connected:
            return ListenerState.DISCONNECTED
        if self.filter is None:
            return ListenerState.CONNECTED_UNFILTERED
        return ListenerState.CONNECTED_FILTERED

    def wants(self, symbol: str) -> bool:
        return self.connected and (self.filter is None or self.filter == symbol)


def _normalize_symbol(symbol: Optional[str]) -> Optional[str]:
    if symbol is None:
        return None
    s = symbol.strip().upper()
    return s or None


class ListenerRegistry:
    """
    Registry dei listener connessi, indicizzato per id.

    publish() consegna il payload a ogni listener senza filtro o con
    filtro uguale al simbolo dell'evento. Ogni listener riceve al massimo
    un messaggio per chiamata; un invio fallito non interrompe il giro.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._listeners: Dict[str, Listener] = {}

    def __len__(self) -> int:
        return len(self._listeners)

    def __contains__(self, listener_id: object) -> bool:
        return listener_id in self._listeners

    def connect(self, send: SendFn, listener_id: Optional[str] = None) -> Listener:
        listener = Listener(id=listener_id or uuid.uuid4().hex, send=send)
        with self._lock:
            self._listeners[listener.id] = listener

        logger.info({"event": "listener_connected", "listener_id": listener.id, "listeners": len(self)})
        return listener

    def disconnect(self, listener_id: str) -> None:
        with self._lock:
            listener = self._listeners.pop(listener_id, None)
        if listener is None:
            return

        listener.connected = False
        logger.info({"event": "listener_disconnected", "listener_id": listener_id, "listeners": len(self)})

    def get(self, listener_id: str) -> Listener:
        try:
            return self._listeners[listener_id]
        except KeyError:
            raise ListenerNotFoundError(listener_id) from None

    def subscribe(self, listener_id: str, symbol: Optional[str]) -> Listener:
        """Imposta il filtro del listener (None = riceve tutto). Idempotente."""
        with self._lock:
            listener = self.get(listener_id)
            listener.filter = _normalize_symbol(symbol)

        logger.info({"event": "listener_subscribed", "listener_id": listener_id, "symbol": listener.filter})
        return listener

    def unsubscribe(self, listener_id: str) -> None:
        """Toglie il filtro. Idempotente: id sconosciuto o già senza filtro → no-op."""
        with self._lock:
            listener = self._listeners.get(listener_id)
            if listener is None or listener.filter is None:
                return
            listener.filter = None

        logger.info({"event": "listener_unsubscribed", "listener_id": listener_id})

    def matching(self, symbol: str) -> List[Listener]:
        symbol = symbol.upper()
        with self._lock:
            return [listener for listener in self._listeners.values() if listener.wants(symbol)]

    def publish(self, symbol: str, payload: Dict[str, Any]) -> int:
        """
        Fan-out best-effort di un evento.

        Ritorna il numero di listener a cui il payload è stato consegnato.
        I listener con canale chiuso vengono rimossi alla fine del giro.
        """
        delivered = 0
        closed: List[str] = []

        for listener in self.matching(symbol):
            try:
                listener.send(payload)
            except ListenerClosedError:
                closed.append(listener.id)
            except DeliveryError as exc:
                logger.warning(
                    {
                        "event": "listener_message_dropped",
                        "listener_id": listener.id,
                        "symbol": symbol,
                        "error": str(exc),
                    }
                )
            else:
                delivered += 1

        for listener_id in closed:
            logger.info({"event": "listener_dropped", "listener_id": listener_id, "reason": "closed"})
            self.disconnect(listener_id)

        return delivered
