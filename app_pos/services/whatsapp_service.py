# ==============================================================================
# SERVICIO DE PEDIDOS DE WHATSAPP
# ==============================================================================
# Ciclo de vida de un pedido:
#
#   PENDIENTE → PREPARACION → LISTO → ENTREGADO
#                                        ↑
#                         finalize_order(): registra la venta y cierra
#
# MODO ESTRICTO (por defecto):
#   Solo se avanza un paso a la vez y solo un pedido LISTO se finaliza.
#   Con strict_transitions=False se acepta cualquier cambio de estado.
#
# En ambos modos, finalizar un pedido ya ENTREGADO se rechaza: la venta
# ya fue registrada y el stock ya se descontó.
# ==============================================================================

import logging
from typing import Callable, List, Optional, Union

from app_pos.errors import (
    InvalidTransitionError,
    NotFoundError,
    OrderAlreadyFinalizedError,
    ValidationError,
)
from app_pos.models import (
    DocumentType,
    OrderStatus,
    PaymentMethod,
    Product,
    Sale,
    WhatsAppOrder,
    from_record,
    now_iso,
    to_record,
    transition,
)
from app_pos.models.catalog import WHATSAPP_ORDERS
from app_pos.models.entities import parse_enum
from app_pos.repositories.interfaces import StorageBackend, Unsubscribe
from app_pos.services.locks import KeyedLock
from app_pos.services.sales_service import SalesService


log = logging.getLogger("app_pos.services.whatsapp")

DEFAULT_CASHIER = 'Sistema WA'


class WhatsAppService:
    """
    Servicio para pedidos recibidos por WhatsApp.

    Responsabilidades:
    - Suscripción a pedidos (más nuevos primero)
    - Alta y cambio de estado
    - Finalización: pedido LISTO → venta registrada + ENTREGADO
    """

    def __init__(self, backend: StorageBackend, sales_service: SalesService,
                 strict_transitions: bool = True):
        """
        Args:
            backend: Backend activo
            sales_service: Servicio de ventas (para finalizar pedidos)
            strict_transitions: Exigir avance de un paso por vez
        """
        self.backend = backend
        self.sales_service = sales_service
        self.strict_transitions = strict_transitions
        self._order_locks = KeyedLock()

    def subscribe_orders(self, callback: Callable[[List[WhatsAppOrder]], None]) -> Unsubscribe:
        return self.backend.subscribe(
            WHATSAPP_ORDERS,
            lambda records: callback([from_record(WhatsAppOrder, r) for r in records]),
            order_by='createdAt',
            descending=True,
        )

    def add_order(self, order: WhatsAppOrder) -> str:
        """Registra un pedido nuevo. Returns: id del pedido."""
        if not order.items:
            raise ValidationError("El pedido no tiene productos")
        if not order.created_at:
            order.created_at = now_iso()
        record = to_record(order)
        if self.backend.kind == 'cloud':
            record.pop('id', None)
        order_id = self.backend.insert(WHATSAPP_ORDERS, record)
        log.info("Pedido WhatsApp %s de %s", order_id, order.customer_name or '(sin nombre)')
        return order_id

    def get_order(self, order_id: str) -> WhatsAppOrder:
        record = self.backend.get(WHATSAPP_ORDERS, order_id)
        if record is None:
            raise NotFoundError(f"No existe el pedido '{order_id}'")
        return from_record(WhatsAppOrder, record)

    def set_status(self, order_id: str, status: Union[OrderStatus, str]) -> OrderStatus:
        """
        Cambia el estado de un pedido.

        Raises:
            ValidationError: Estado desconocido
            NotFoundError: El pedido no existe
            InvalidTransitionError: Retroceso o salto en modo estricto
        """
        target = parse_enum(OrderStatus, status)
        with self._order_locks.hold(order_id):
            current = self.get_order(order_id).status
            new_status = transition(current, target, self.strict_transitions)
            self.backend.update(WHATSAPP_ORDERS, order_id, {'status': new_status.value})
        log.info("Pedido %s: %s → %s", order_id, current.value, new_status.value)
        return new_status

    def finalize_order(
        self,
        order: Union[WhatsAppOrder, str],
        products: List[Product],
        cashier_name: Optional[str] = None,
    ) -> str:
        """
        Convierte un pedido en venta y lo marca ENTREGADO.

        El pedido se vuelve a leer del backend: el estado que cuenta es el
        persistido, no el de la foto que tiene la interfaz. Si el registro
        de la venta falla, el estado del pedido no cambia.

        Args:
            order: Pedido o id del pedido
            products: Foto del catálogo para ubicar los productos vendidos
            cashier_name: Cajero que figura en la venta

        Returns:
            Id de la venta registrada

        Raises:
            OrderAlreadyFinalizedError: El pedido ya estaba ENTREGADO
            InvalidTransitionError: En modo estricto, el pedido no está LISTO
        """
        order_id = order if isinstance(order, str) else order.id
        if not order_id:
            raise ValidationError("El pedido no tiene id")

        with self._order_locks.hold(order_id):
            current = self.get_order(order_id)
            if current.status == OrderStatus.ENTREGADO:
                raise OrderAlreadyFinalizedError(
                    current.status, OrderStatus.ENTREGADO,
                    f"El pedido '{order_id}' ya fue entregado y cobrado",
                )
            if self.strict_transitions and current.status != OrderStatus.LISTO:
                raise InvalidTransitionError(
                    current.status, OrderStatus.ENTREGADO,
                    f"Solo se finalizan pedidos LISTO (estado actual: {current.status.value})",
                )

            sale = Sale(
                items=current.items,
                total=current.total,
                payment_method=PaymentMethod.EFECTIVO,
                cashier_name=cashier_name or DEFAULT_CASHIER,
                customer_name=current.customer_name,
                document_type=DocumentType.RECIBO,
            )
            sale_id = self.sales_service.record_sale(sale, products)
            self.backend.update(WHATSAPP_ORDERS, order_id, {'status': OrderStatus.ENTREGADO.value})

        log.info("Pedido %s finalizado como venta %s", order_id, sale_id)
        return sale_id
