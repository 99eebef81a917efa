# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Cada servicio recibe el backend activo por constructor (nube o local) y
# no sabe cuál es: la diferencia queda encerrada en repositories/.
# ==============================================================================

from .locks import KeyedLock
from .inventory_service import InventoryService
from .sales_service import SalesService
from .asset_service import AssetService
from .whatsapp_service import WhatsAppService
from .kitchen_service import KitchenService
from .catalog_service import CatalogService, SeedResult
from .backup_service import BackupService
from .stats_service import StatsService

__all__ = [
    'KeyedLock',
    'InventoryService',
    'SalesService',
    'AssetService',
    'WhatsAppService',
    'KitchenService',
    'CatalogService',
    'SeedResult',
    'BackupService',
    'StatsService',
]
