# ==============================================================================
# SERVICIO DE ACTIVOS FIJOS
# ==============================================================================
# Solo lectura en vivo: los activos se cargan por reconciliación del
# catálogo base; la edición de activos no forma parte de esta capa.
# ==============================================================================

from typing import Callable, List

from app_pos.models import Asset, from_record
from app_pos.models.catalog import ASSETS
from app_pos.repositories.interfaces import StorageBackend, Unsubscribe


class AssetService:

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    def subscribe_assets(self, callback: Callable[[List[Asset]], None]) -> Unsubscribe:
        return self.backend.subscribe(
            ASSETS, lambda records: callback([from_record(Asset, r) for r in records])
        )

    @staticmethod
    def total_value(assets: List[Asset]) -> float:
        return round(sum(a.value for a in assets), 2)
