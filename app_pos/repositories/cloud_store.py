# ==============================================================================
# BACKEND EN LA NUBE - Base de datos documental (MongoDB)
# ==============================================================================
# - Una colección por entidad: products, sales, assets, whatsapp_orders,
#   kitchen_orders.
# - La identidad del documento vive en '_id' y NUNCA como campo dentro del
#   documento: se quita 'id' antes de escribir y se vuelve a poner al leer.
# - Los campos ausentes (None) se omiten antes de enviar.
#
# SUSCRIPCIONES:
#   Carga inicial síncrona + hilo que sigue el change stream de la
#   colección y reentrega el resultado COMPLETO de la consulta en cada
#   cambio. Las escrituras propias además publican en el bus del proceso,
#   así quien escribe ve su cambio aunque el servidor no tenga change
#   streams (standalone sin replica set).
#
# ERRORES:
#   - Permisos (código 13/18) -> evento "cloud_error" en el bus. En una
#     suscripción no se lanza nada: queda abierta y sin datos.
#   - Cualquier otro fallo en escrituras -> BackendError al llamador.
# ==============================================================================

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, UpdateOne
from pymongo.errors import OperationFailure, PyMongoError

from app_pos.errors import BackendError, CloudPermissionError, ImportDisabledError, NotFoundError
from app_pos.events import CLOUD_ERROR, EventBus, collection_topic
from app_pos.performance_logger import profile_function
from app_pos.repositories.interfaces import Record, SnapshotCallback, Unsubscribe


log = logging.getLogger("app_pos.repositories.cloud")

# Códigos de error de permisos/autenticación del servidor
PERMISSION_CODES = frozenset([13, 18])

# El servidor no soporta change streams (no es replica set)
CHANGE_STREAM_UNSUPPORTED = frozenset([40573])

RETRY_SECONDS = 5.0

PERMISSION_MESSAGE = (
    "Error de permisos en {context}: verifica que el usuario de la base de datos "
    "tenga permisos de lectura/escritura sobre las colecciones."
)


def classify_error(error: PyMongoError, context: str) -> BackendError:
    """Convierte un error del driver en el error del dominio."""
    if isinstance(error, OperationFailure):
        details = str(error).lower()
        if error.code in PERMISSION_CODES or 'not authorized' in details or 'unauthorized' in details:
            return CloudPermissionError(PERMISSION_MESSAGE.format(context=context))
    return BackendError(f"Error en {context}: {error}")


def clean_payload(data: Any) -> Any:
    """Quita recursivamente los campos None (el servidor no los acepta)."""
    if isinstance(data, dict):
        return {k: clean_payload(v) for k, v in data.items() if v is not None}
    if isinstance(data, list):
        return [clean_payload(v) for v in data]
    return data


def to_document(record: Record) -> Record:
    """Registro -> documento: sin 'id' y sin campos ausentes."""
    return clean_payload({k: v for k, v in record.items() if k != 'id'})


def from_document(document: Record) -> Record:
    """Documento -> registro: '_id' vuelve como 'id' (string)."""
    record = {k: v for k, v in document.items() if k != '_id'}
    record['id'] = str(document.get('_id'))
    return record


def id_filter(record_id: str) -> Dict[str, Any]:
    """Filtro por id aceptando ids del servidor (ObjectId) y de catálogo ('p1')."""
    record_id = str(record_id)
    if ObjectId.is_valid(record_id):
        return {'_id': {'$in': [ObjectId(record_id), record_id]}}
    return {'_id': record_id}


class CloudStore:
    """
    Backend documental en la nube.

    Args:
        database: pymongo Database ya conectada
        bus: Bus de eventos (para 'cloud_error' y refrescos locales)
        watch: Si False no se abren change streams (solo refresco por bus)
    """

    kind = 'cloud'

    def __init__(self, database, bus: EventBus, watch: bool = True):
        self._db = database
        self.bus = bus
        self._watch = watch
        self._subscriptions: List['_Subscription'] = []
        self._lock = threading.Lock()

    # =========================================================================
    # SUSCRIPCIONES
    # =========================================================================

    def report_permission_error(self, error: CloudPermissionError) -> None:
        log.warning("%s", error)
        self.bus.publish(CLOUD_ERROR, str(error))

    def subscribe(
        self,
        collection: str,
        callback: SnapshotCallback,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> Unsubscribe:
        """
        Abre una consulta en vivo sobre la colección.
        Nunca lanza hacia el llamador: los errores de permisos se difunden
        por el bus y la suscripción queda abierta sin datos.
        """
        col = self._db[collection]

        def load() -> List[Record]:
            cursor = col.find({})
            if order_by:
                cursor = cursor.sort(order_by, DESCENDING if descending else ASCENDING)
            # 0 o None: sin límite
            if limit and limit > 0:
                cursor = cursor.limit(limit)
            return [from_document(doc) for doc in cursor]

        subscription = _Subscription(self, collection, load, callback)

        try:
            subscription.deliver()
        except PyMongoError as e:
            error = classify_error(e, collection)
            if isinstance(error, CloudPermissionError):
                self.report_permission_error(error)
                return subscription.close
            log.error("Carga inicial de '%s' falló: %s", collection, e)

        subscription.start(watch=self._watch)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription.close

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def read_all(self, collection: str) -> List[Record]:
        try:
            return [from_document(doc) for doc in self._db[collection].find({})]
        except PyMongoError as e:
            raise self._failure(e, collection) from e

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        try:
            doc = self._db[collection].find_one(id_filter(record_id))
        except PyMongoError as e:
            raise self._failure(e, collection) from e
        return from_document(doc) if doc else None

    # =========================================================================
    # ESCRITURAS
    # =========================================================================

    def _failure(self, error: PyMongoError, context: str) -> BackendError:
        failure = classify_error(error, context)
        if isinstance(failure, CloudPermissionError):
            self.report_permission_error(failure)
        else:
            log.error("%s", failure)
        return failure

    def _changed(self, collection: str) -> None:
        self.bus.publish(collection_topic(collection), collection)

    @profile_function(name="Insertar en la nube")
    def insert(self, collection: str, record: Record) -> str:
        try:
            result = self._db[collection].insert_one(to_document(record))
        except PyMongoError as e:
            raise self._failure(e, collection) from e
        self._changed(collection)
        return str(result.inserted_id)

    def _update_one(self, collection: str, record_id: str, update: Record) -> None:
        try:
            result = self._db[collection].update_one(id_filter(record_id), update)
        except PyMongoError as e:
            raise self._failure(e, collection) from e
        if result.matched_count == 0:
            raise NotFoundError(f"No existe '{record_id}' en {collection}")
        self._changed(collection)

    @profile_function(name="Actualizar en la nube")
    def update(self, collection: str, record_id: str, fields: Record) -> None:
        payload = to_document(fields)
        if not payload:
            return
        self._update_one(collection, record_id, {'$set': payload})

    def replace(self, collection: str, record_id: str, record: Record) -> None:
        try:
            result = self._db[collection].replace_one(id_filter(record_id), to_document(record))
        except PyMongoError as e:
            raise self._failure(e, collection) from e
        if result.matched_count == 0:
            raise NotFoundError(f"No existe '{record_id}' en {collection}")
        self._changed(collection)

    @profile_function(name="Descontar stock en la nube")
    def increment(self, collection: str, record_id: str, field: str, delta: int) -> None:
        # $inc es atómico en el servidor: dos ventas simultáneas no se pisan
        self._update_one(collection, record_id, {'$inc': {field: delta}})

    @profile_function(name="Lote en la nube")
    def batch_insert(self, operations: List[Tuple[str, Record]]) -> int:
        """
        Un bulk_write por colección con upserts "$setOnInsert": un id que ya
        existe nunca se sobrescribe. Cualquier fallo se reporta como UN solo
        BackendError para todo el lote, sin detalle de éxitos parciales.
        """
        grouped: Dict[str, List[UpdateOne]] = {}
        for collection, record in operations:
            grouped.setdefault(collection, []).append(
                UpdateOne({'_id': str(record['id'])}, {'$setOnInsert': to_document(record)}, upsert=True)
            )

        inserted = 0
        try:
            for collection, requests in grouped.items():
                result = self._db[collection].bulk_write(requests, ordered=True)
                inserted += result.upserted_count
        except PyMongoError as e:
            raise self._failure(e, 'lote de escritura') from e

        for collection in grouped:
            self._changed(collection)
        return inserted

    def replace_all(self, collection: str, records: List[Record]) -> None:
        raise ImportDisabledError(
            "La importación masiva está deshabilitada en modo nube para no "
            "sobrescribir datos en tiempo real."
        )

    def subscription_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def _forget(self, subscription: '_Subscription') -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def close(self) -> None:
        with self._lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            subscription.close()


class _Subscription:
    """
    Una consulta en vivo: se refresca por el bus del proceso y, si el
    servidor lo permite, por el change stream de la colección.
    """

    def __init__(
        self,
        store: CloudStore,
        collection: str,
        load: Callable[[], List[Record]],
        callback: SnapshotCallback,
    ):
        self._store = store
        self.collection = collection
        self._load = load
        self._callback = callback
        self._closed = threading.Event()
        self._deliver_lock = threading.RLock()
        self._detach_bus: Optional[Callable[[], None]] = None
        self._thread: Optional[threading.Thread] = None
        self._stream = None

    def deliver(self) -> None:
        """Carga la consulta y entrega el resultado si sigue abierta."""
        with self._deliver_lock:
            if self._closed.is_set():
                return
            records = self._load()
            if not self._closed.is_set():
                self._callback(records)

    def _refresh(self, _payload: Any = None) -> None:
        try:
            self.deliver()
        except PyMongoError as e:
            error = classify_error(e, self.collection)
            if isinstance(error, CloudPermissionError):
                self._store.report_permission_error(error)
            else:
                log.error("No se pudo refrescar '%s': %s", self.collection, e)

    def start(self, watch: bool = True) -> None:
        self._detach_bus = self._store.bus.subscribe(collection_topic(self.collection), self._refresh)
        if watch:
            self._thread = threading.Thread(
                target=self._follow_changes,
                name=f'change-stream-{self.collection}',
                daemon=True,
            )
            self._thread.start()

    def _follow_changes(self) -> None:
        col = self._store._db[self.collection]
        while not self._closed.is_set():
            try:
                with col.watch(max_await_time_ms=500) as stream:
                    self._stream = stream
                    while stream.alive and not self._closed.is_set():
                        change = stream.try_next()
                        if change is not None:
                            self._refresh()
            except PyMongoError as e:
                if self._closed.is_set():
                    return
                if isinstance(e, OperationFailure) and e.code in CHANGE_STREAM_UNSUPPORTED:
                    log.warning(
                        "El servidor no soporta change streams; '%s' solo se "
                        "refresca con escrituras de este proceso", self.collection
                    )
                    return
                error = classify_error(e, self.collection)
                if isinstance(error, CloudPermissionError):
                    self._store.report_permission_error(error)
                    return
                log.warning("Change stream de '%s' interrumpido: %s", self.collection, e)
                self._closed.wait(RETRY_SECONDS)
            finally:
                self._stream = None

    def close(self) -> None:
        """Detiene entregas futuras. Idempotente."""
        if self._closed.is_set():
            return
        self._closed.set()
        self._store._forget(self)
        if self._detach_bus is not None:
            self._detach_bus()
        stream = self._stream
        if stream is not None:
            try:
                stream.close()
            except PyMongoError as e:
                log.debug("Error cerrando change stream de %s: %s", self.collection, e)
        # Espera a que termine una entrega en curso
        with self._deliver_lock:
            pass
