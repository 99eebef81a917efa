# ==============================================================================
# BUS DE EVENTOS DEL PROCESO
# ==============================================================================
# Publicación / suscripción en memoria. Reemplaza a los eventos de ventana
# del navegador: cada escritura local publica "collection_changed:<clave>" y
# todos los suscriptores de esa colección vuelven a leer.
#
# TÓPICOS:
#   collection_changed:<clave>  -> payload: clave de la colección
#   cloud_error                 -> payload: mensaje legible para el banner
#   backend_status              -> payload: estado del backend al arrancar
# ==============================================================================

import logging
import threading
from typing import Any, Callable, Dict, List


log = logging.getLogger("app_pos.events")

CLOUD_ERROR = 'cloud_error'
BACKEND_STATUS = 'backend_status'

Handler = Callable[[Any], None]


def collection_topic(key: str) -> str:
    """Tópico de cambios de una colección."""
    return f'collection_changed:{key}'


class EventBus:
    """
    Bus pub/sub síncrono con alcance de proceso.

    La entrega es inmediata (antes de que publish() retorne) y se hace
    sobre una copia de los handlers, por lo que un handler puede
    desuscribirse a sí mismo durante la entrega.
    """

    def __init__(self):
        self._handlers: Dict[str, List[Handler]] = {}
        self._lock = threading.RLock()

    def subscribe(self, topic: str, handler: Handler) -> Callable[[], None]:
        """
        Registra un handler para un tópico.

        Args:
            topic: Nombre del tópico
            handler: Función que recibe el payload

        Returns:
            Función para desuscribir (idempotente)
        """
        with self._lock:
            self._handlers.setdefault(topic, []).append(handler)

        detached = threading.Event()

        def dispose() -> None:
            if detached.is_set():
                return
            detached.set()
            with self._lock:
                handlers = self._handlers.get(topic, [])
                if handler in handlers:
                    handlers.remove(handler)
                if not handlers:
                    self._handlers.pop(topic, None)

        return dispose

    def publish(self, topic: str, payload: Any = None) -> int:
        """
        Entrega el payload a todos los handlers del tópico.

        Returns:
            Cantidad de handlers notificados
        """
        with self._lock:
            handlers = list(self._handlers.get(topic, []))

        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                log.exception("Handler falló en el tópico %s", topic)
        return len(handlers)

    def handler_count(self, topic: str) -> int:
        with self._lock:
            return len(self._handlers.get(topic, []))
