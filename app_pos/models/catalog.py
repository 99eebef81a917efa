# ==============================================================================
# CATÁLOGO BASE Y DATOS SEMILLA
# ==============================================================================
# - INITIAL_PRODUCTS / INITIAL_ASSETS: catálogo base usado por la
#   reconciliación ("actualizar sistema") y como semilla local.
# - MOCK_SALES / MOCK_WHATSAPP_ORDERS: datos de demostración que ve el modo
#   offline la primera vez que se abre (clave ausente en disco).
#
# Las funciones devuelven COPIAS nuevas en cada llamada: nadie debe poder
# modificar la semilla compartida por accidente.
# ==============================================================================

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List


_UNSPLASH = 'https://images.unsplash.com/{}?w=500&auto=format&fit=crop&q=60'

_PRODUCTS: List[Dict[str, Any]] = [
    {
        'id': 'p1', 'name': 'Alfajor de Maicena', 'barcode': '779001',
        'price': 2.50, 'cost': 0.80, 'stock': 50, 'minStock': 20,
        'category': 'Alfajores artesanales', 'unit': 'unid',
        'image': _UNSPLASH.format('photo-1598514983088-254e4c29792e'),
    },
    {
        'id': 'p2', 'name': 'Alfajor Chocolate Negro', 'barcode': '779002',
        'price': 3.00, 'cost': 1.20, 'stock': 15, 'minStock': 20,
        'category': 'Alfajores artesanales', 'unit': 'unid',
        'image': _UNSPLASH.format('photo-1621252062325-1158c56e30de'),
    },
    {
        'id': 'p3', 'name': 'Tarta de Frutilla', 'barcode': '779003',
        'price': 15.00, 'cost': 8.00, 'stock': 5, 'minStock': 2,
        'category': 'Pasteleria', 'unit': 'porción',
        'image': _UNSPLASH.format('photo-1565958011703-44f9829ba187'),
    },
    {
        'id': 'p4', 'name': 'Café Espresso', 'barcode': '990001',
        'price': 10.00, 'cost': 3.50, 'stock': 500, 'minStock': 100,
        'category': 'Bebidas calientes', 'unit': 'taza',
        'image': _UNSPLASH.format('photo-1514432324607-a09d9b4aefdd'),
    },
    {
        'id': 'p5', 'name': 'Capuchino', 'barcode': '990002',
        'price': 14.00, 'cost': 4.90, 'stock': 450, 'minStock': 100,
        'category': 'Bebidas calientes', 'unit': 'taza',
        'image': _UNSPLASH.format('photo-1572442388796-11668a67e53d'),
    },
    {
        'id': 'p6', 'name': 'Empanada de Carne', 'barcode': '880001',
        'price': 8.50, 'cost': 3.40, 'stock': 24, 'minStock': 10,
        'category': 'Snacks salados', 'unit': 'unid',
        'image': _UNSPLASH.format('photo-1604908176997-125f25cc6f3d'),
    },
    {
        'id': 'p7', 'name': 'Frappé de Moca', 'barcode': '990003',
        'price': 18.00, 'cost': 6.00, 'stock': 100, 'minStock': 20,
        'category': 'Bebidas frías', 'unit': 'vaso',
        'image': _UNSPLASH.format('photo-1577805947697-89e18249d767'),
    },
]

_ASSETS: List[Dict[str, Any]] = [
    {'id': 'a1', 'name': 'Cafetera Industrial Simonelli', 'value': 2500,
     'purchaseDate': '2023-01-15', 'location': 'Barra', 'status': 'Funcionando',
     'qrCode': 'ASSET-001'},
    {'id': 'a2', 'name': 'Vitrina Refrigerada', 'value': 1200,
     'purchaseDate': '2023-02-01', 'location': 'Salón', 'status': 'Funcionando',
     'qrCode': 'ASSET-002'},
    {'id': 'a3', 'name': 'Tablet Samsung (TPV)', 'value': 300,
     'purchaseDate': '2023-06-10', 'location': 'Caja', 'status': 'En Reparación',
     'qrCode': 'ASSET-003'},
]


def initial_products() -> List[Dict[str, Any]]:
    return copy.deepcopy(_PRODUCTS)


def initial_assets() -> List[Dict[str, Any]]:
    return copy.deepcopy(_ASSETS)


def mock_sales() -> List[Dict[str, Any]]:
    """Ventas de demostración (hoy, ayer y anteayer)."""
    now = datetime.now(timezone.utc)
    base = {
        'items': [],
        'cashierName': 'Carlos Cajero',
        'customerName': 'Público General',
        'documentType': 'RECIBO',
    }
    return [
        dict(base, id='s3', date=now.isoformat(), total=45.00,
             paymentMethod='Efectivo', deliveryMethod='NONE'),
        dict(base, id='s1', date=(now - timedelta(days=1)).isoformat(), total=150.50,
             paymentMethod='Efectivo', deliveryMethod='IMPRESO'),
        dict(base, id='s2', date=(now - timedelta(days=2)).isoformat(), total=200.00,
             paymentMethod='Tarjeta', deliveryMethod='IMPRESO'),
    ]


def mock_whatsapp_orders() -> List[Dict[str, Any]]:
    products = initial_products()
    return [
        {
            'id': 'w1',
            'customerName': 'Maria Gomez',
            'phoneNumber': '+5491112345678',
            'items': [
                dict(products[0], quantity=6),
                dict(products[3], quantity=1),
            ],
            'total': 25.00,
            'status': 'PENDIENTE',
            'createdAt': datetime.now(timezone.utc).isoformat(),
            'notes': 'Sin azúcar en el café',
        },
    ]


# Nombres de colección (nube) y claves (local) de cada entidad
PRODUCTS = 'products'
SALES = 'sales'
ASSETS = 'assets'
WHATSAPP_ORDERS = 'whatsapp_orders'
KITCHEN_ORDERS = 'kitchen_orders'

ALL_COLLECTIONS = (PRODUCTS, SALES, ASSETS, WHATSAPP_ORDERS, KITCHEN_ORDERS)

# Semilla por defecto de cada colección local (solo en el primer acceso)
DEFAULT_SEEDS = {
    PRODUCTS: initial_products,
    SALES: mock_sales,
    ASSETS: initial_assets,
    WHATSAPP_ORDERS: mock_whatsapp_orders,
    KITCHEN_ORDERS: list,
}
