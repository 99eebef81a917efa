# ==============================================================================
# CAPA DE REPOSITORIOS - Backends de almacenamiento
# ==============================================================================
# ESTRUCTURA:
# ├── interfaces.py   → StorageBackend (contrato común)
# ├── base.py         → Archivo JSON de una colección (escritura atómica)
# ├── local_store.py  → Backend local (JSON + bus + vigilancia de archivos)
# ├── cloud_store.py  → Backend en la nube (MongoDB + change streams)
# └── backend.py      → Selector: decide nube/local una vez al arrancar
#
# Los servicios reciben el backend por constructor; nunca lo leen de un
# estado global.
# ==============================================================================

from .interfaces import StorageBackend, Record, SnapshotCallback, Unsubscribe
from .base import JsonCollectionFile
from .local_store import LocalStore, FileWatcher, apply_query
from .cloud_store import CloudStore
from .backend import BackendSelection, BackendStatus, select_backend

__all__ = [
    'StorageBackend',
    'Record',
    'SnapshotCallback',
    'Unsubscribe',
    'JsonCollectionFile',
    'LocalStore',
    'FileWatcher',
    'apply_query',
    'CloudStore',
    'BackendSelection',
    'BackendStatus',
    'select_backend',
]
