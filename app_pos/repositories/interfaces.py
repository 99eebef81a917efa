# ==============================================================================
# INTERFAZ DE BACKEND DE ALMACENAMIENTO
# ==============================================================================
#
# Los servicios dependen de este protocolo, NO de una implementación:
#
#   - LocalStore  -> archivos JSON en disco + bus de eventos del proceso
#   - CloudStore  -> base de datos documental en la nube (change streams)
#
# El backend se elige UNA vez al arrancar (repositories/backend.py) y se
# inyecta a cada servicio desde app_container.py. Los tests pueden pasar
# un backend propio sin tocar estado global.
#
# CONTRATO DE SUSCRIPCIÓN:
#   El callback siempre recibe la colección COMPLETA (no un diff), al
#   suscribirse y después de cada cambio. El valor devuelto es un
#   "disposer": llamarlo detiene las entregas y es idempotente.
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable


Record = Dict[str, Any]
SnapshotCallback = Callable[[List[Record]], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class StorageBackend(Protocol):
    """
    Contrato común de los dos backends (nube / local).
    """

    #: 'cloud' o 'local'
    kind: str

    def subscribe(
        self,
        collection: str,
        callback: SnapshotCallback,
        order_by: Optional[str] = None,
        descending: bool = True,
        limit: Optional[int] = None,
    ) -> Unsubscribe:
        """Suscribe un callback a la colección completa."""
        ...

    def read_all(self, collection: str) -> List[Record]:
        """Lee todos los registros (cada uno con su 'id')."""
        ...

    def get(self, collection: str, record_id: str) -> Optional[Record]:
        """Obtiene un registro por id, o None."""
        ...

    def insert(self, collection: str, record: Record) -> str:
        """Inserta un registro y retorna su id."""
        ...

    def update(self, collection: str, record_id: str, fields: Record) -> None:
        """Combina solo los campos dados en el registro existente."""
        ...

    def replace(self, collection: str, record_id: str, record: Record) -> None:
        """Reemplaza el registro completo."""
        ...

    def increment(self, collection: str, record_id: str, field: str, delta: int) -> None:
        """Suma delta a un campo numérico de forma atómica."""
        ...

    def batch_insert(self, operations: List[Tuple[str, Record]]) -> int:
        """
        Inserta (colección, registro) conservando el 'id' de cada registro.
        Los ids que ya existen NO se sobrescriben.
        """
        ...

    def replace_all(self, collection: str, records: List[Record]) -> None:
        """Reemplaza la colección entera (solo backend local)."""
        ...

    def close(self) -> None:
        """Libera hilos y conexiones."""
        ...
