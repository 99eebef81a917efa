# ==============================================================================
# SERVICIO DE CATÁLOGO - Reconciliación con el catálogo base
# ==============================================================================
# "Actualizar sistema": agrega al backend los productos y activos del
# catálogo base que todavía no existen (comparando por id).
#
# - Nunca modifica ni borra registros existentes
# - Usa los ids del catálogo base, así repetirlo no duplica nada
# - Todo lo faltante se escribe en UN lote
# ==============================================================================

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from app_pos.models.catalog import ASSETS, PRODUCTS, initial_assets, initial_products
from app_pos.performance_logger import profile_function
from app_pos.repositories.interfaces import StorageBackend


log = logging.getLogger("app_pos.services.catalog")


@dataclass(frozen=True)
class SeedResult:
    """
    Resultado de una reconciliación.

    Attributes:
        products: Productos agregados
        assets: Activos agregados
        applied: False si no había nada que agregar (no se escribió nada)
    """
    products: int = 0
    assets: int = 0
    applied: bool = False

    @property
    def nothing_to_do(self) -> bool:
        return not self.applied


def _missing(baseline: List[Dict[str, Any]], existing: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    existing_ids = {str(record.get('id')) for record in existing}
    return [record for record in baseline if str(record.get('id')) not in existing_ids]


class CatalogService:

    def __init__(self, backend: StorageBackend):
        self.backend = backend

    @profile_function(name="Reconciliar catálogo")
    def reconcile(
        self,
        baseline_products: Optional[List[Dict[str, Any]]] = None,
        baseline_assets: Optional[List[Dict[str, Any]]] = None,
    ) -> SeedResult:
        """
        Inserta los productos y activos base que faltan.

        Args:
            baseline_products: Catálogo base de productos (por defecto el inicial)
            baseline_assets: Activos base (por defecto los iniciales)

        Returns:
            SeedResult con las cantidades agregadas

        Raises:
            BackendError: Falló la lectura o la escritura del lote
        """
        if baseline_products is None:
            baseline_products = initial_products()
        if baseline_assets is None:
            baseline_assets = initial_assets()

        missing_products = _missing(baseline_products, self.backend.read_all(PRODUCTS))
        missing_assets = _missing(baseline_assets, self.backend.read_all(ASSETS))

        if not missing_products and not missing_assets:
            log.info("Catálogo al día: no hay productos ni activos nuevos")
            return SeedResult()

        operations = [(PRODUCTS, record) for record in missing_products]
        operations += [(ASSETS, record) for record in missing_assets]
        self.backend.batch_insert(operations)

        log.info("Catálogo actualizado: %d productos y %d activos agregados",
                 len(missing_products), len(missing_assets))
        return SeedResult(products=len(missing_products), assets=len(missing_assets), applied=True)

    def system_update(self) -> Dict[str, Any]:
        """
        Acción "Actualizar sistema".

        Returns:
            Dict {ok, message, products, assets}
        """
        result = self.reconcile()
        if result.nothing_to_do:
            message = 'El sistema ya está actualizado'
        else:
            message = (f'Sistema actualizado: {result.products} productos '
                       f'y {result.assets} activos agregados')
        return {
            'ok': True,
            'message': message,
            'products': result.products,
            'assets': result.assets,
        }
