# ==============================================================================
# SERVICIO DE VENTAS
# ==============================================================================
# Registra ventas y aplica el descuento de stock asociado.
#
# FLUJO DE record_sale():
#   1. Guardar la venta (con copia CONGELADA de las líneas)
#   2. Por cada línea, ubicar el producto en la foto del catálogo que envía
#      el punto de venta y descontar la cantidad vendida
#
# No hay atomicidad entre 1 y 2: si el descuento falla, la venta ya quedó
# registrada y el error llega al llamador. Tampoco hay clave de
# idempotencia: reintentar tras un fallo puede duplicar la venta.
# ==============================================================================

import logging
from typing import Callable, List, Optional

from app_pos.errors import ValidationError
from app_pos.models import CartItem, Product, Sale, from_record, to_record
from app_pos.models.catalog import SALES
from app_pos.performance_logger import profile_function
from app_pos.repositories.interfaces import StorageBackend, Unsubscribe
from app_pos.services.inventory_service import InventoryService


log = logging.getLogger("app_pos.services.sales")


def records_to_sales(records) -> List[Sale]:
    return [from_record(Sale, record) for record in records]


def find_product(item: CartItem, products: List[Product]) -> Optional[Product]:
    """Producto de la foto que corresponde a la línea: por id y, si no, por nombre."""
    for product in products:
        if item.id and product.id == item.id:
            return product
    for product in products:
        if product.name == item.name:
            return product
    return None


class SalesService:
    """
    Servicio para gestión de ventas.

    Responsabilidades:
    - Suscripción al historial (más reciente primero)
    - Registro de venta + descuento de stock
    """

    def __init__(self, backend: StorageBackend, inventory_service: InventoryService):
        """
        Args:
            backend: Backend activo
            inventory_service: Servicio de inventario (descuento de stock)
        """
        self.backend = backend
        self.inventory_service = inventory_service

    def subscribe_sales(self, callback: Callable[[List[Sale]], None]) -> Unsubscribe:
        """Suscribe al historial de ventas ordenado por fecha descendente."""
        return self.backend.subscribe(
            SALES,
            lambda records: callback(records_to_sales(records)),
            order_by='date',
            descending=True,
        )

    def _validate(self, sale: Sale) -> None:
        if not sale.items:
            raise ValidationError("La venta no tiene productos")
        for item in sale.items:
            if item.quantity <= 0:
                raise ValidationError(f"Cantidad inválida para {item.name}: {item.quantity}")
        if sale.total < 0:
            raise ValidationError("El total no puede ser negativo")

    @profile_function(name="Registrar venta")
    def record_sale(self, sale: Sale, products: List[Product]) -> str:
        """
        Registra una venta y descuenta el stock vendido.

        Args:
            sale: Venta a registrar (el total se guarda tal cual)
            products: Foto actual del catálogo que tiene el punto de venta

        Returns:
            Id de la venta registrada

        Raises:
            ValidationError: Venta vacía o con cantidades inválidas
            BackendError: Fallo al guardar la venta o al descontar stock
        """
        self._validate(sale)
        frozen = sale.frozen_copy()
        record = to_record(frozen)
        if self.backend.kind == 'cloud':
            record.pop('id', None)

        sale_id = self.backend.insert(SALES, record)
        log.info("Venta %s registrada: %.2f (%d líneas)", sale_id, frozen.total, len(frozen.items))

        for item in frozen.items:
            product = find_product(item, products)
            if product is None:
                log.warning("Venta %s: '%s' no está en el catálogo, no se descuenta stock",
                            sale_id, item.name)
                continue
            self.inventory_service.decrement_stock(product.id, item.quantity)

        return sale_id
