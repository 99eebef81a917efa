# ==============================================================================
# SELECTOR DE BACKEND
# ==============================================================================
# Decide UNA vez, al arrancar el proceso, qué backend respalda todas las
# operaciones:
#
#   descriptor de nube válido          -> CloudStore   (CONNECTED)
#   descriptor válido pero el cliente
#   no se puede construir              -> LocalStore   (MISCONFIGURED)
#   sin descriptor / valores de ejemplo-> LocalStore   (OFFLINE)
#
# La decisión no se reevalúa: no hay reconexión ni cambio en caliente.
# ==============================================================================

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from app_pos.config import Settings, is_placeholder
from app_pos.events import BACKEND_STATUS, EventBus
from app_pos.repositories.cloud_store import CloudStore
from app_pos.repositories.interfaces import StorageBackend
from app_pos.repositories.local_store import LocalStore


log = logging.getLogger("app_pos.repositories.backend")


class BackendStatus(str, Enum):
    CONNECTED = "connected"
    MISCONFIGURED = "misconfigured"
    OFFLINE = "offline"


@dataclass(frozen=True)
class BackendSelection:
    """
    Resultado de la selección.

    Attributes:
        backend: Backend elegido (se inyecta a todos los servicios)
        status: Diagnóstico para el banner de la interfaz
        message: Texto legible del diagnóstico
    """
    backend: StorageBackend
    status: BackendStatus
    message: str

    @property
    def is_cloud(self) -> bool:
        return self.backend.kind == 'cloud'


def _default_client_factory(descriptor):
    return MongoClient(
        descriptor['uri'],
        appname=descriptor.get('app_name') or None,
        serverSelectionTimeoutMS=5000,
        tz_aware=True,
    )


def select_backend(
    settings: Settings,
    bus: EventBus,
    client_factory: Optional[Callable] = None,
) -> BackendSelection:
    """
    Elige el backend según la configuración.

    Args:
        settings: Configuración del proceso
        bus: Bus de eventos compartido
        client_factory: Constructor del cliente de la nube (inyectable en tests)

    Returns:
        BackendSelection
    """
    descriptor = settings.cloud_descriptor()

    if is_placeholder(descriptor):
        message = "MODO OFFLINE: la nube no está configurada. Usando almacenamiento local."
        log.warning(message)
        selection = BackendSelection(_local(settings, bus), BackendStatus.OFFLINE, message)
    else:
        factory = client_factory or _default_client_factory
        try:
            client = factory(descriptor)
            database = client[descriptor['database']]
        except (PyMongoError, ValueError, TypeError) as e:
            message = f"Error inicializando la conexión a la nube: {e}"
            log.error(message)
            selection = BackendSelection(_local(settings, bus), BackendStatus.MISCONFIGURED, message)
        else:
            message = f"Conexión a la nube establecida ({descriptor['database']})."
            log.info(message)
            selection = BackendSelection(CloudStore(database, bus), BackendStatus.CONNECTED, message)

    bus.publish(BACKEND_STATUS, selection.status)
    return selection


def _local(settings: Settings, bus: EventBus) -> LocalStore:
    store = LocalStore(settings.data_dir, bus, watch_interval=settings.watch_interval)
    store.start_watching()
    return store
