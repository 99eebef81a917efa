# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Centraliza la lógica de productos y stock:
#   - Suscripción al catálogo (colección completa en cada cambio)
#   - Alta y edición de productos
#   - Descuento de stock serializado por producto
#   - Alertas de stock bajo y orden del menú digital
# ==============================================================================

import logging
from typing import Callable, List, Optional

from app_pos.errors import ValidationError
from app_pos.models import Product, from_record, to_record
from app_pos.models.catalog import PRODUCTS
from app_pos.repositories.interfaces import StorageBackend, Unsubscribe
from app_pos.services.locks import KeyedLock


log = logging.getLogger("app_pos.services.inventory")


def records_to_products(records) -> List[Product]:
    return [from_record(Product, record) for record in records]


class InventoryService:
    """
    Servicio para gestión de inventario.

    Responsabilidades:
    - CRUD de productos (sin borrado)
    - Control de stock (descuento por venta)
    - Stock bajo y orden del menú
    """

    def __init__(self, backend: StorageBackend):
        """
        Inicializa el servicio de inventario.

        Args:
            backend: Backend activo (nube o local)
        """
        self.backend = backend
        self._stock_locks = KeyedLock()

    # =========================================================================
    # SUSCRIPCIÓN
    # =========================================================================

    def subscribe_products(self, callback: Callable[[List[Product]], None]) -> Unsubscribe:
        """
        Suscribe al catálogo. Sin orden: la interfaz ordena/filtra a su gusto.

        Returns:
            Función para desuscribir
        """
        return self.backend.subscribe(
            PRODUCTS, lambda records: callback(records_to_products(records))
        )

    def get_all_products(self) -> List[Product]:
        return records_to_products(self.backend.read_all(PRODUCTS))

    # =========================================================================
    # OPERACIONES DE PRODUCTOS
    # =========================================================================

    def add_product(self, product: Product) -> str:
        """
        Crea un producto.
        El id siempre lo asigna el backend (id local nuevo o id del servidor);
        un id enviado por el llamador se ignora.

        Returns:
            Id del producto creado
        """
        product.validate()
        record = to_record(product)
        record.pop('id', None)
        product_id = self.backend.insert(PRODUCTS, record)
        log.info("Producto creado: %s (%s)", product.name, product_id)
        return product_id

    def update_product(self, product: Product) -> None:
        """Reemplaza el producto completo por id."""
        if not product.id:
            raise ValidationError("No se puede actualizar un producto sin id")
        product.validate()
        self.backend.replace(PRODUCTS, product.id, to_record(product))

    def decrement_stock(self, product_id: str, quantity: int) -> None:
        """
        Descuenta stock de un producto.

        Las operaciones sobre el mismo producto se serializan en el proceso y
        el backend aplica el descuento sobre el stock REAL (no sobre una foto
        en memoria), así dos ventas concurrentes no se pisan. El stock puede
        quedar negativo.
        """
        if quantity <= 0:
            raise ValidationError(f"Cantidad inválida para descontar: {quantity}")
        with self._stock_locks.hold(product_id):
            self.backend.increment(PRODUCTS, product_id, 'stock', -int(quantity))

    # =========================================================================
    # CONSULTAS SOBRE UNA FOTO DEL CATÁLOGO
    # =========================================================================

    @staticmethod
    def low_stock(products: List[Product]) -> List[Product]:
        """Productos con stock por debajo del mínimo."""
        return [p for p in products if p.is_low_stock()]

    @staticmethod
    def find_by_barcode(products: List[Product], code: str) -> Optional[Product]:
        """Primer producto con ese código escaneado (los códigos pueden repetirse)."""
        code = (code or '').strip()
        if not code:
            return None
        return next((p for p in products if p.barcode == code), None)

    @staticmethod
    def menu_products(products: List[Product], category: Optional[str] = None) -> List[Product]:
        """Productos del menú digital ordenados por displayOrder (ausente = 0)."""
        selected = [p for p in products if category is None or p.category == category]
        return sorted(selected, key=lambda p: p.display_order or 0)

    def save_menu_order(self, ordered: List[Product], original: List[Product]) -> int:
        """
        Reasigna displayOrder según la posición en 'ordered' y guarda SOLO los
        productos cuyo orden cambió respecto de 'original'.

        Returns:
            Cantidad de productos actualizados
        """
        previous = {p.id: p.display_order for p in original}
        updated = 0
        for index, product in enumerate(ordered):
            if product.id not in previous:
                continue
            if previous[product.id] == index:
                continue
            product.display_order = index
            self.update_product(product)
            updated += 1
        return updated
