# ==============================================================================
# SERVICIO DE COCINA (KDS)
# ==============================================================================
# Comandas enviadas desde el salón a la pantalla de cocina.
# Colección propia ("kitchen_orders"), independiente de las ventas.
#
# La suscripción trae las comandas más recientes primero, con un tope
# (50 por defecto) igual para nube y modo local.
# ==============================================================================

import logging
from typing import Callable, Iterable, List, Optional

from app_pos.errors import ValidationError
from app_pos.models import KitchenItem, KitchenOrder, KitchenStatus, from_record, now_iso, to_record
from app_pos.models.catalog import KITCHEN_ORDERS
from app_pos.repositories.interfaces import StorageBackend, Unsubscribe


log = logging.getLogger("app_pos.services.kitchen")

DEFAULT_LIMIT = 50


def _as_item(item) -> KitchenItem:
    if isinstance(item, KitchenItem):
        return item
    if isinstance(item, dict):
        return from_record(KitchenItem, item)
    raise ValidationError(f"Línea de comanda inválida: {item!r}")


class KitchenService:

    def __init__(self, backend: StorageBackend, limit: int = DEFAULT_LIMIT):
        self.backend = backend
        self.limit = limit

    def place_order(self, table_id: str, items: Iterable, user_id: str) -> str:
        """
        Envía una comanda a cocina (estado PENDING, hora actual).

        Args:
            table_id: Mesa o identificador de la venta
            items: Líneas {name, quantity}
            user_id: Usuario que envía la comanda

        Returns:
            Id de la comanda
        """
        lines = [_as_item(item) for item in items]
        if not lines:
            raise ValidationError("La comanda no tiene productos")
        for line in lines:
            if not line.name:
                raise ValidationError("Cada línea de la comanda necesita un nombre")
            if line.quantity <= 0:
                raise ValidationError(f"Cantidad inválida para {line.name}: {line.quantity}")

        order = KitchenOrder(
            table_id=str(table_id),
            items=lines,
            status=KitchenStatus.PENDING,
            timestamp=now_iso(),
            user_id=str(user_id or ''),
        )
        record = to_record(order)
        order_id = self.backend.insert(KITCHEN_ORDERS, record)
        log.info("Comanda %s enviada (mesa %s, %d líneas)", order_id, table_id, len(lines))
        return order_id

    def subscribe_orders(self, callback: Callable[[List[KitchenOrder]], None],
                         limit: Optional[int] = None) -> Unsubscribe:
        return self.backend.subscribe(
            KITCHEN_ORDERS,
            lambda records: callback([from_record(KitchenOrder, r) for r in records]),
            order_by='timestamp',
            descending=True,
            limit=self.limit if limit is None else limit,
        )

    def mark_delivered(self, order_id: str) -> None:
        self.backend.update(KITCHEN_ORDERS, order_id, {'status': KitchenStatus.DELIVERED.value})

    @staticmethod
    def pending(orders: List[KitchenOrder]) -> List[KitchenOrder]:
        """Cola de cocina: solo PENDING, la más antigua primero."""
        queue = [o for o in orders if o.status == KitchenStatus.PENDING]
        return sorted(queue, key=lambda o: o.timestamp)
