# ==============================================================================
# LOCKS POR CLAVE
# ==============================================================================
# Serializa dentro del proceso las operaciones sobre un mismo registro
# (stock de un producto, finalización de un pedido) sin bloquear las
# operaciones sobre registros distintos.
# ==============================================================================

import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class KeyedLock:
    """Un RLock por clave, creado bajo demanda."""

    def __init__(self):
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(str(key))
        with lock:
            yield
