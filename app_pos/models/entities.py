# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio y es independiente del
# backend (nube o local).
#
# SERIALIZACIÓN:
#   Los registros persistidos usan claves camelCase (minStock, createdAt...).
#   to_record() es el ÚNICO punto que convierte entidad -> registro, y omite
#   los campos ausentes (None): el backend en la nube rechaza valores nulos
#   "marcadores de ausencia" dentro de un documento.
# ==============================================================================

import copy
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from app_pos.errors import InvalidTransitionError, ValidationError


T = TypeVar('T')


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class ProductCategory(str, Enum):
    """Categorías fijas del catálogo."""
    ALFAJORES = "Alfajores artesanales"
    PASTELERIA = "Pasteleria"
    SNACKS = "Snacks salados"
    BEBIDAS_CALIENTES = "Bebidas calientes"
    BEBIDAS_FRIAS = "Bebidas frías"
    OTRO = "Otro"


class PaymentMethod(str, Enum):
    """Métodos de pago aceptados."""
    EFECTIVO = "Efectivo"
    TARJETA = "Tarjeta"
    TRANSFERENCIA = "Transferencia"


class DocumentType(str, Enum):
    FACTURA = "FACTURA"
    RECIBO = "RECIBO"
    NINGUNO = "NINGUNO"


class DeliveryMethod(str, Enum):
    """Cómo se entregó el comprobante al cliente."""
    IMPRESO = "IMPRESO"
    DIGITAL_EMAIL = "DIGITAL_EMAIL"
    DIGITAL_WA = "DIGITAL_WA"
    NONE = "NONE"


class AssetStatus(str, Enum):
    FUNCIONANDO = "Funcionando"
    EN_REPARACION = "En Reparación"
    BAJA = "Baja"


class OrderStatus(str, Enum):
    """
    Estados de un pedido de WhatsApp.
    Solo avanzan: PENDIENTE → PREPARACION → LISTO → ENTREGADO.
    """
    PENDIENTE = "PENDIENTE"
    PREPARACION = "PREPARACION"
    LISTO = "LISTO"
    ENTREGADO = "ENTREGADO"

    @property
    def rank(self) -> int:
        return _ORDER_FLOW.index(self)

    def next(self) -> Optional['OrderStatus']:
        """Siguiente estado del flujo, o None si ya está ENTREGADO."""
        idx = self.rank + 1
        return _ORDER_FLOW[idx] if idx < len(_ORDER_FLOW) else None

    def can_transition_to(self, target: 'OrderStatus') -> bool:
        """Un paso hacia adelante (o quedarse en el mismo estado)."""
        return target.rank in (self.rank, self.rank + 1)


_ORDER_FLOW = [
    OrderStatus.PENDIENTE,
    OrderStatus.PREPARACION,
    OrderStatus.LISTO,
    OrderStatus.ENTREGADO,
]


class KitchenStatus(str, Enum):
    """Estados de una comanda. Única transición: PENDING → DELIVERED."""
    PENDING = "PENDING"
    DELIVERED = "DELIVERED"


def transition(current: OrderStatus, target: OrderStatus, strict: bool = True) -> OrderStatus:
    """
    Función de transición de la máquina de estados de pedidos.

    Args:
        current: Estado actual
        target: Estado solicitado
        strict: Si es False se acepta cualquier destino (comportamiento histórico)

    Returns:
        El estado destino

    Raises:
        InvalidTransitionError: Si la transición no está permitida en modo estricto
    """
    if not strict:
        return target
    if not current.can_transition_to(target):
        raise InvalidTransitionError(current, target)
    return target


def parse_enum(enum_cls: Type[Enum], value: Any, default: Enum = None) -> Enum:
    """Convierte un valor crudo al enum; usa default si no es válido."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        if default is not None:
            return default
        raise ValidationError(f"Valor inválido para {enum_cls.__name__}: {value!r}")


def now_iso() -> str:
    """Timestamp ISO-8601 en UTC."""
    return datetime.now(timezone.utc).isoformat()


# ==============================================================================
# SERIALIZACIÓN (registro <-> entidad)
# ==============================================================================

def _key(f) -> str:
    return f.metadata.get('key', f.name)


def to_record(entity: Any) -> Any:
    """
    Convierte una entidad (o lista/dict de entidades) a un registro JSON.

    - Claves camelCase según metadata 'key'
    - Enums -> su valor
    - Campos None -> se omiten
    """
    if is_dataclass(entity) and not isinstance(entity, type):
        record = {}
        for f in fields(entity):
            value = getattr(entity, f.name)
            if value is None:
                continue
            record[_key(f)] = to_record(value)
        return record
    if isinstance(entity, Enum):
        return entity.value
    if isinstance(entity, (list, tuple)):
        return [to_record(v) for v in entity]
    if isinstance(entity, dict):
        return {k: to_record(v) for k, v in entity.items() if v is not None}
    return entity


def from_record(cls: Type[T], data: Dict[str, Any]) -> T:
    """
    Construye una entidad desde un registro persistido.

    Cada campo puede declarar metadata 'parse' para convertir el valor.
    Las claves desconocidas se ignoran.
    """
    if data is None:
        raise ValidationError(f"Registro vacío para {cls.__name__}")
    kwargs = {}
    for f in fields(cls):
        key = _key(f)
        if key not in data:
            continue
        value = data[key]
        parse: Optional[Callable[[Any], Any]] = f.metadata.get('parse')
        if parse is not None and value is not None:
            value = parse(value)
        kwargs[f.name] = value
    return cls(**kwargs)


def _num(value: Any) -> float:
    return float(value or 0)


def _int(value: Any) -> int:
    return int(value or 0)


def _opt_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def _str(value: Any) -> str:
    return '' if value is None else str(value)


# ==============================================================================
# PRODUCTOS
# ==============================================================================

@dataclass
class Product:
    """
    Producto del catálogo.

    Attributes:
        id: Identidad opaca y estable
        name: Nombre visible
        barcode: EAN/UPC (no necesariamente único)
        price: Precio de venta
        cost: Costo
        stock: Existencia actual (puede quedar negativa, no se recorta)
        min_stock: Umbral de alerta de stock bajo
        category: Una de las 6 categorías fijas
        unit: Etiqueta de unidad (unid, taza, porción...)
        image: URL o imagen embebida (opcional)
        display_order: Posición en el menú digital (opcional)
    """
    id: Optional[str] = field(default=None, metadata={'parse': _str})
    name: str = ''
    barcode: str = field(default='', metadata={'parse': _str})
    price: float = field(default=0.0, metadata={'parse': _num})
    cost: float = field(default=0.0, metadata={'parse': _num})
    stock: int = field(default=0, metadata={'parse': _int})
    min_stock: int = field(default=0, metadata={'key': 'minStock', 'parse': _int})
    category: ProductCategory = field(
        default=ProductCategory.OTRO,
        metadata={'parse': lambda v: parse_enum(ProductCategory, v, ProductCategory.OTRO)},
    )
    unit: str = 'unid'
    image: Optional[str] = None
    display_order: Optional[int] = field(
        default=None, metadata={'key': 'displayOrder', 'parse': _opt_int}
    )

    def validate(self) -> 'Product':
        if not self.name or not self.name.strip():
            raise ValidationError("El producto necesita un nombre")
        if self.price < 0 or self.cost < 0:
            raise ValidationError(f"Precio y costo no pueden ser negativos ({self.name})")
        return self

    def is_low_stock(self) -> bool:
        return self.stock < self.min_stock


@dataclass
class CartItem(Product):
    """
    Línea de venta/pedido: COPIA del producto + cantidad.
    Es una foto congelada; editar el producto después no la altera.
    """
    quantity: int = field(default=1, metadata={'parse': _int})

    @classmethod
    def from_product(cls, product: Product, quantity: int) -> 'CartItem':
        snapshot = copy.deepcopy(product)
        values = {f.name: getattr(snapshot, f.name) for f in fields(Product)}
        return cls(quantity=int(quantity), **values)

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)


def _items(value: Any) -> List[CartItem]:
    return [from_record(CartItem, item) for item in (value or [])]


# ==============================================================================
# VENTAS
# ==============================================================================

@dataclass
class Sale:
    """
    Venta registrada. Inmutable una vez creada.
    El total NO se recalcula: se guarda tal como lo envía el punto de venta.
    """
    id: Optional[str] = field(default=None, metadata={'parse': _str})
    date: str = field(default_factory=now_iso)
    items: List[CartItem] = field(default_factory=list, metadata={'parse': _items})
    total: float = field(default=0.0, metadata={'parse': _num})
    payment_method: PaymentMethod = field(
        default=PaymentMethod.EFECTIVO,
        metadata={'key': 'paymentMethod', 'parse': lambda v: parse_enum(PaymentMethod, v)},
    )
    cashier_name: str = field(default='', metadata={'key': 'cashierName'})
    customer_name: str = field(default='', metadata={'key': 'customerName'})
    tax_id: Optional[str] = field(default=None, metadata={'key': 'taxId'})
    document_type: DocumentType = field(
        default=DocumentType.RECIBO,
        metadata={'key': 'documentType', 'parse': lambda v: parse_enum(DocumentType, v)},
    )
    delivery_method: Optional[DeliveryMethod] = field(
        default=None,
        metadata={'key': 'deliveryMethod', 'parse': lambda v: parse_enum(DeliveryMethod, v)},
    )

    def frozen_copy(self) -> 'Sale':
        """Copia profunda: las líneas no comparten objetos con el catálogo."""
        return copy.deepcopy(self)

    def items_total(self) -> float:
        return round(sum(item.line_total for item in self.items), 2)


# ==============================================================================
# ACTIVOS FIJOS
# ==============================================================================

@dataclass
class Asset:
    id: Optional[str] = field(default=None, metadata={'parse': _str})
    name: str = ''
    value: float = field(default=0.0, metadata={'parse': _num})
    purchase_date: str = field(default='', metadata={'key': 'purchaseDate'})
    location: str = ''
    status: AssetStatus = field(
        default=AssetStatus.FUNCIONANDO,
        metadata={'parse': lambda v: parse_enum(AssetStatus, v, AssetStatus.FUNCIONANDO)},
    )
    qr_code: str = field(default='', metadata={'key': 'qrCode'})


# ==============================================================================
# PEDIDOS DE WHATSAPP
# ==============================================================================

@dataclass
class WhatsAppOrder:
    id: Optional[str] = field(default=None, metadata={'parse': _str})
    customer_name: str = field(default='', metadata={'key': 'customerName'})
    phone_number: str = field(default='', metadata={'key': 'phoneNumber'})
    items: List[CartItem] = field(default_factory=list, metadata={'parse': _items})
    total: float = field(default=0.0, metadata={'parse': _num})
    status: OrderStatus = field(
        default=OrderStatus.PENDIENTE,
        metadata={'parse': lambda v: parse_enum(OrderStatus, v)},
    )
    created_at: str = field(default_factory=now_iso, metadata={'key': 'createdAt'})
    notes: Optional[str] = None


# ==============================================================================
# COCINA (KDS)
# ==============================================================================

@dataclass
class KitchenItem:
    """Línea liviana de comanda: solo nombre y cantidad."""
    name: str = ''
    quantity: int = field(default=1, metadata={'parse': _int})


def _kitchen_items(value: Any) -> List[KitchenItem]:
    return [from_record(KitchenItem, item) for item in (value or [])]


@dataclass
class KitchenOrder:
    id: Optional[str] = field(default=None, metadata={'parse': _str})
    table_id: str = field(default='', metadata={'key': 'tableId', 'parse': _str})
    items: List[KitchenItem] = field(default_factory=list, metadata={'parse': _kitchen_items})
    status: KitchenStatus = field(
        default=KitchenStatus.PENDING,
        metadata={'parse': lambda v: parse_enum(KitchenStatus, v)},
    )
    timestamp: str = field(default_factory=now_iso)
    user_id: str = field(default='', metadata={'key': 'userId', 'parse': _str})
