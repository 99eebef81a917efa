# ==============================================================================
# BACKEND LOCAL - Modo offline de un solo dispositivo
# ==============================================================================
# Persistencia en archivos JSON (uno por colección) dentro de data_dir.
#
# NOTIFICACIONES:
#   - Mismo proceso: cada write() publica "collection_changed:<clave>" en el
#     bus ANTES de retornar, así todos los suscriptores (incluido quien
#     escribió) reciben la colección actualizada.
#   - Otros procesos: FileWatcher revisa la fecha de modificación de los
#     archivos y publica el mismo evento cuando otro proceso los reescribe.
#
# FALLOS:
#   Nada se propaga hacia los servicios. JSON corrupto = clave ausente
#   (se usa la semilla); error de escritura = se registra y no-op.
# ==============================================================================

import copy
import logging
import os
import threading
import uuid
from typing import Any, Callable, Dict, List, Optional, Tuple

from app_pos.errors import BackendError, NotFoundError
from app_pos.events import EventBus, collection_topic
from app_pos.models.catalog import DEFAULT_SEEDS
from app_pos.performance_logger import profile_function
from app_pos.repositories.base import JsonCollectionFile
from app_pos.repositories.interfaces import Record, SnapshotCallback, Unsubscribe


log = logging.getLogger("app_pos.repositories.local")


def new_local_id() -> str:
    """Id generado en el cliente (9 caracteres)."""
    return uuid.uuid4().hex[:9]


def apply_query(
    records: List[Record],
    order_by: Optional[str] = None,
    descending: bool = True,
    limit: Optional[int] = None,
) -> List[Record]:
    """
    Ordena y recorta una lista de registros igual que la consulta en la nube.
    Los registros sin el campo de orden quedan al final.
    """
    result = list(records)
    if order_by:
        present = [r for r in result if r.get(order_by) is not None]
        missing = [r for r in result if r.get(order_by) is None]
        present.sort(key=lambda r: r[order_by], reverse=descending)
        result = present + missing
    # 0 o None: sin límite, igual que en la nube
    if limit and limit > 0:
        result = result[:limit]
    return result


class LocalStore:
    """
    Backend local basado en archivos JSON.

    Uso:
        store = LocalStore('/ruta/data', bus)
        unsubscribe = store.subscribe('products', print)
        store.write('products', [...])   # print recibe la lista nueva
        unsubscribe()
    """

    kind = 'local'

    def __init__(
        self,
        data_dir: str,
        bus: EventBus,
        seeds: Dict[str, Callable[[], List[Record]]] = None,
        watch_interval: float = 1.0,
    ):
        """
        Args:
            data_dir: Carpeta donde viven los <clave>.json
            bus: Bus de eventos del proceso
            seeds: Semilla por clave (por defecto DEFAULT_SEEDS)
            watch_interval: Segundos entre revisiones de cambios externos
        """
        self.data_dir = data_dir
        self.bus = bus
        self._seeds = dict(DEFAULT_SEEDS if seeds is None else seeds)
        self._files: Dict[str, JsonCollectionFile] = {}
        self._files_lock = threading.Lock()
        self._seed_cache: Dict[str, List[Record]] = {}
        self._watcher = FileWatcher(self, watch_interval)
        os.makedirs(data_dir, exist_ok=True)

    # =========================================================================
    # OPERACIONES BÁSICAS (read / write / subscribe)
    # =========================================================================

    def _file(self, key: str) -> JsonCollectionFile:
        with self._files_lock:
            if key not in self._files:
                self._files[key] = JsonCollectionFile(os.path.join(self.data_dir, f'{key}.json'))
            return self._files[key]

    def seed(self, key: str) -> List[Record]:
        """Semilla de la clave, generada una sola vez por store."""
        with self._files_lock:
            if key not in self._seed_cache:
                factory = self._seeds.get(key)
                self._seed_cache[key] = factory() if factory else []
            return copy.deepcopy(self._seed_cache[key])

    def read(self, key: str) -> List[Record]:
        """
        Lee la colección. Si la clave nunca se escribió (o el archivo está
        corrupto) devuelve la semilla de esa clave.
        """
        found, records = self._file(key).read()
        if not found:
            return self.seed(key)
        return records

    @profile_function(name="Escritura local")
    def write(self, key: str, records: List[Record]) -> bool:
        """
        Sobrescribe la colección completa y notifica a los suscriptores.

        Returns:
            True si se escribió; False si el disco rechazó la escritura
        """
        json_file = self._file(key)
        try:
            json_file.write(records)
        except (OSError, TypeError, ValueError) as e:
            log.error("No se pudo guardar '%s' en disco: %s", key, e)
            return False

        self._watcher.mark_seen(key, json_file.mtime_ns())
        self.bus.publish(collection_topic(key), key)
        return True

    def subscribe(
        self,
        key: str,
        callback: SnapshotCallback,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> Unsubscribe:
        """
        Entrega la colección actual de inmediato y luego en cada cambio.

        Returns:
            Disposer idempotente
        """
        active = threading.Event()
        active.set()

        def load(_payload: Any = None) -> None:
            if not active.is_set():
                return
            callback(apply_query(self.read(key), order_by, descending, limit))

        detach = self.bus.subscribe(collection_topic(key), load)
        self._watcher.track(key, self._file(key).mtime_ns())
        load()

        def unsubscribe() -> None:
            active.clear()
            detach()

        return unsubscribe

    # =========================================================================
    # OPERACIONES DEL BACKEND (sobre read / write)
    # =========================================================================

    def read_all(self, collection: str) -> List[Record]:
        return copy.deepcopy(self.read(collection))

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        for record in self.read(collection):
            if str(record.get('id')) == str(record_id):
                return copy.deepcopy(record)
        return None

    def _save(self, collection: str, records: List[Record]) -> None:
        if not self.write(collection, records):
            raise BackendError(f"No se pudo guardar '{collection}' en disco")

    def insert(self, collection: str, record: Record) -> str:
        """
        Inserta al inicio de la lista (lo más nuevo primero).
        Un id vacío o ya usado en la colección se reemplaza por uno nuevo.

        Raises:
            BackendError: El disco rechazó la escritura
        """
        record = dict(record)
        with self._file(collection).lock:
            current = self.read(collection)
            taken = {str(r.get('id')) for r in current}
            requested = record.get('id')
            if not requested or str(requested) in taken:
                if requested:
                    log.warning("Id '%s' ya existe en %s; se asigna uno nuevo", requested, collection)
                record['id'] = new_local_id()
                while record['id'] in taken:
                    record['id'] = new_local_id()
            self._save(collection, [record] + current)
        return record['id']

    def _modify(self, collection: str, record_id: str, change: Callable[[Record], Record]) -> None:
        with self._file(collection).lock:
            current = self.read(collection)
            found = False
            updated = []
            for record in current:
                if str(record.get('id')) == str(record_id):
                    record = change(record)
                    found = True
                updated.append(record)
            if not found:
                raise NotFoundError(f"No existe '{record_id}' en {collection}")
            self._save(collection, updated)

    def update(self, collection: str, record_id: str, fields: Record) -> None:
        self._modify(collection, record_id, lambda r: dict(r, **fields))

    def replace(self, collection: str, record_id: str, record: Record) -> None:
        self._modify(collection, record_id, lambda _r: dict(record, id=record_id))

    def increment(self, collection: str, record_id: str, field: str, delta: int) -> None:
        def bump(record: Record) -> Record:
            return dict(record, **{field: (record.get(field) or 0) + delta})
        self._modify(collection, record_id, bump)

    def batch_insert(self, operations: List[Tuple[str, Record]]) -> int:
        """
        Agrega al final de cada colección los registros cuyo id no existe.
        Una sola reescritura por colección.
        """
        grouped: Dict[str, List[Record]] = {}
        for collection, record in operations:
            grouped.setdefault(collection, []).append(dict(record))

        inserted = 0
        for collection, records in grouped.items():
            with self._file(collection).lock:
                current = self.read(collection)
                existing = {str(r.get('id')) for r in current}
                new_records = [r for r in records if str(r.get('id')) not in existing]
                if new_records:
                    self._save(collection, current + new_records)
                    inserted += len(new_records)
        return inserted

    def replace_all(self, collection: str, records: List[Record]) -> None:
        self._save(collection, copy.deepcopy(records))

    # =========================================================================
    # CICLO DE VIDA
    # =========================================================================

    def start_watching(self) -> None:
        """Empieza a detectar cambios hechos por otros procesos."""
        self._watcher.start()

    def close(self) -> None:
        self._watcher.stop()


class FileWatcher:
    """
    Detecta cambios hechos por OTROS procesos en los archivos de datos.

    Compara la fecha de modificación de cada archivo seguido con la última
    vista; las escrituras propias se marcan con mark_seen() y no disparan
    notificaciones duplicadas.
    """

    def __init__(self, store: LocalStore, interval: float = 1.0):
        self._store = store
        self.interval = interval
        self._seen: Dict[str, Optional[int]] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def track(self, key: str, mtime_ns: Optional[int]) -> None:
        with self._lock:
            self._seen.setdefault(key, mtime_ns)

    def mark_seen(self, key: str, mtime_ns: Optional[int]) -> None:
        with self._lock:
            self._seen[key] = mtime_ns

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name='local-file-watcher', daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval * 2)
        self._thread = None

    def check_once(self) -> List[str]:
        """
        Revisa los archivos seguidos y publica los que cambiaron.

        Returns:
            Claves que cambiaron desde la última revisión
        """
        with self._lock:
            tracked = dict(self._seen)

        changed = []
        for key, last in tracked.items():
            current = self._store._file(key).mtime_ns()
            if current != last:
                changed.append(key)
                self.mark_seen(key, current)

        for key in changed:
            log.debug("Cambio externo detectado en '%s'", key)
            self._store.bus.publish(collection_topic(key), key)
        return changed

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.check_once()
            except OSError as e:
                log.warning("Error revisando archivos de datos: %s", e)
