# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Entidades del dominio como dataclasses, independientes del backend.
# to_record()/from_record() son la frontera única de serialización.
# ==============================================================================

from .entities import (
    # Productos
    Product,
    ProductCategory,
    CartItem,

    # Ventas
    Sale,
    PaymentMethod,
    DocumentType,
    DeliveryMethod,

    # Activos
    Asset,
    AssetStatus,

    # Pedidos
    WhatsAppOrder,
    OrderStatus,
    transition,

    # Cocina
    KitchenOrder,
    KitchenItem,
    KitchenStatus,

    # Serialización
    to_record,
    from_record,
    now_iso,
)

__all__ = [
    'Product',
    'ProductCategory',
    'CartItem',
    'Sale',
    'PaymentMethod',
    'DocumentType',
    'DeliveryMethod',
    'Asset',
    'AssetStatus',
    'WhatsAppOrder',
    'OrderStatus',
    'transition',
    'KitchenOrder',
    'KitchenItem',
    'KitchenStatus',
    'to_record',
    'from_record',
    'now_iso',
]
