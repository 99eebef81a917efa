# ==============================================================================
# APP POS - Punto de venta, inventario y pedidos con sincronización
# ==============================================================================
# Capas:
#   models/        -> Entidades del dominio (dataclasses + enums)
#   repositories/  -> Backends de almacenamiento (nube / local) y selector
#   services/      -> Lógica de negocio (ventas, stock, pedidos, cocina...)
#   main.py        -> API HTTP (Flask) que consume los servicios
# ==============================================================================

__version__ = '1.0.0'
