# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único donde se arma la aplicación:
#   - Settings (configuración del proceso)
#   - EventBus (notificaciones entre suscriptores)
#   - Backend elegido UNA vez por select_backend() (nube o local)
#   - Servicios, todos con el MISMO backend inyectado
#
# Para tests se puede inyectar un backend ya construido (LocalStore sobre
# una carpeta temporal o CloudStore sobre colecciones simuladas).
# ==============================================================================

import logging
from typing import Optional

from app_pos.config import Settings, load_settings
from app_pos.events import EventBus
from app_pos.repositories import BackendSelection, BackendStatus, StorageBackend, select_backend
from app_pos.services import (
    AssetService,
    BackupService,
    CatalogService,
    InventoryService,
    KitchenService,
    SalesService,
    StatsService,
    WhatsAppService,
)


log = logging.getLogger("app_pos.container")


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Uso:
        container = AppContainer(settings)
        container.sales_service.record_sale(sale, products)
        container.close()
    """

    _instance: Optional['AppContainer'] = None

    def __init__(
        self,
        settings: Optional[Settings] = None,
        bus: Optional[EventBus] = None,
        backend: Optional[StorageBackend] = None,
    ):
        """
        Args:
            settings: Configuración (por defecto load_settings())
            bus: Bus de eventos (por defecto uno nuevo)
            backend: Backend ya construido; si se omite se elige por configuración
        """
        self.settings = settings or load_settings()
        self.bus = bus or EventBus()
        self._selection: Optional[BackendSelection] = None
        if backend is not None:
            status = BackendStatus.CONNECTED if backend.kind == 'cloud' else BackendStatus.OFFLINE
            self._selection = BackendSelection(backend, status, f"Backend inyectado ({backend.kind})")

        self._inventory_service: Optional[InventoryService] = None
        self._sales_service: Optional[SalesService] = None
        self._asset_service: Optional[AssetService] = None
        self._whatsapp_service: Optional[WhatsAppService] = None
        self._kitchen_service: Optional[KitchenService] = None
        self._catalog_service: Optional[CatalogService] = None
        self._backup_service: Optional[BackupService] = None
        self._stats_service: Optional[StatsService] = None

    # =========================================================================
    # BACKEND
    # =========================================================================

    @property
    def selection(self) -> BackendSelection:
        """Selección de backend (se hace una sola vez)."""
        if self._selection is None:
            self._selection = select_backend(self.settings, self.bus)
        return self._selection

    @property
    def backend(self) -> StorageBackend:
        return self.selection.backend

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def inventory_service(self) -> InventoryService:
        if self._inventory_service is None:
            self._inventory_service = InventoryService(self.backend)
        return self._inventory_service

    @property
    def sales_service(self) -> SalesService:
        if self._sales_service is None:
            self._sales_service = SalesService(self.backend, self.inventory_service)
        return self._sales_service

    @property
    def asset_service(self) -> AssetService:
        if self._asset_service is None:
            self._asset_service = AssetService(self.backend)
        return self._asset_service

    @property
    def whatsapp_service(self) -> WhatsAppService:
        if self._whatsapp_service is None:
            self._whatsapp_service = WhatsAppService(
                self.backend,
                self.sales_service,
                strict_transitions=self.settings.strict_transitions,
            )
        return self._whatsapp_service

    @property
    def kitchen_service(self) -> KitchenService:
        if self._kitchen_service is None:
            self._kitchen_service = KitchenService(self.backend, limit=self.settings.kitchen_limit)
        return self._kitchen_service

    @property
    def catalog_service(self) -> CatalogService:
        if self._catalog_service is None:
            self._catalog_service = CatalogService(self.backend)
        return self._catalog_service

    @property
    def backup_service(self) -> BackupService:
        if self._backup_service is None:
            self._backup_service = BackupService(self.backend, self.settings.data_dir)
        return self._backup_service

    @property
    def stats_service(self) -> StatsService:
        if self._stats_service is None:
            self._stats_service = StatsService()
        return self._stats_service

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """Descarta los servicios (el backend elegido se conserva)."""
        self._inventory_service = None
        self._sales_service = None
        self._asset_service = None
        self._whatsapp_service = None
        self._kitchen_service = None
        self._catalog_service = None
        self._backup_service = None
        self._stats_service = None

    def close(self) -> None:
        """Detiene hilos de vigilancia y suscripciones del backend."""
        if self._selection is not None:
            self._selection.backend.close()
        self.reset()

    @classmethod
    def get_instance(cls, settings: Optional[Settings] = None) -> 'AppContainer':
        """Contenedor global del proceso (se crea en la primera llamada)."""
        if cls._instance is None:
            cls._instance = cls(settings)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Cierra y elimina el contenedor global (útil para tests)."""
        if cls._instance is not None:
            cls._instance.close()
            cls._instance = None


def get_container(settings: Optional[Settings] = None) -> AppContainer:
    return AppContainer.get_instance(settings)
