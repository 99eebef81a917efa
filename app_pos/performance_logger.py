# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide rendimiento de rutas HTTP y de operaciones de sincronización
# (escrituras en la nube, escrituras locales, ventas) sin afectar al usuario.
# Los registros van al logger "app_pos.performance".
#
# ACTIVAR/DESACTIVAR: set_enabled(False) o APP_POS_PROFILING=0
# ==============================================================================

import logging
import threading
import time
from functools import wraps


log = logging.getLogger("app_pos.performance")

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = True

# Umbrales de tiempo (en milisegundos)
THRESHOLD_WARNING = 300   # Advertencia si supera 300ms
THRESHOLD_CRITICAL = 700  # Crítico si supera 700ms

# Mapeo de rutas a nombres legibles (para logs más humanos)
ROUTE_NAMES = {
    'GET /api/status': 'Ver estado del backend',
    'GET /api/products': 'Ver productos',
    'POST /api/products': 'Crear producto',
    'PUT /api/products/<product_id>': 'Editar producto',
    'POST /api/products/menu-order': 'Guardar orden del menú',
    'GET /api/sales': 'Ver ventas',
    'POST /api/sales': 'Registrar venta',
    'GET /api/assets': 'Ver activos fijos',
    'GET /api/whatsapp-orders': 'Ver pedidos WhatsApp',
    'POST /api/whatsapp-orders': 'Crear pedido WhatsApp',
    'POST /api/whatsapp-orders/<order_id>/status': 'Cambiar estado de pedido',
    'POST /api/whatsapp-orders/<order_id>/finalize': 'Finalizar pedido',
    'GET /api/kitchen-orders': 'Ver comandas',
    'POST /api/kitchen-orders': 'Enviar comanda a cocina',
    'POST /api/kitchen-orders/<order_id>/delivered': 'Marcar comanda entregada',
    'POST /api/system/update': 'Actualizar sistema',
    'GET /api/export': 'Exportar base de datos',
    'POST /api/import': 'Importar base de datos',
    'GET /api/dashboard': 'Ver panel principal',
    'GET /api/system/performance': 'Ver tiempos de operaciones',
}


def set_enabled(enabled: bool) -> None:
    global ENABLE_PROFILING
    ENABLE_PROFILING = bool(enabled)


# ═══════════════════════════════════════════════════════════════════════════
# ESTADÍSTICAS DE OPERACIONES (en memoria)
# ═══════════════════════════════════════════════════════════════════════════

class OperationStats:
    """Acumulado de una operación perfilada: llamadas, total y peor tiempo (ms)."""

    __slots__ = ('calls', 'total_ms', 'max_ms')

    def __init__(self):
        self.calls = 0
        self.total_ms = 0.0
        self.max_ms = 0.0

    def add(self, elapsed_ms: float) -> None:
        self.calls += 1
        self.total_ms += elapsed_ms
        self.max_ms = max(self.max_ms, elapsed_ms)

    def as_dict(self) -> dict:
        avg = self.total_ms / self.calls if self.calls else 0
        return {'calls': self.calls, 'avg_time': round(avg, 2), 'max_time': round(self.max_ms, 2)}


_operations = {}
_stats_lock = threading.Lock()


def _record(op_name: str, elapsed_ms: float) -> None:
    with _stats_lock:
        _operations.setdefault(op_name, OperationStats()).add(elapsed_ms)


def _get_route_name(method, rule):
    """Nombre legible de una ruta; si no está mapeada devuelve la regla."""
    return ROUTE_NAMES.get(f"{method} {rule}", f"{method} {rule}")


def _severity(time_ms):
    if time_ms >= THRESHOLD_CRITICAL:
        return logging.CRITICAL
    if time_ms >= THRESHOLD_WARNING:
        return logging.WARNING
    return None


# ═══════════════════════════════════════════════════════════════════════════
# 1️⃣ HOOKS PARA FLASK (before/after request)
# ═══════════════════════════════════════════════════════════════════════════

def init_profiling(app):
    """
    Inicializa el profiling en una app Flask.
    Registra hooks before_request y after_request.

    Uso:
        from app_pos.performance_logger import init_profiling
        init_profiling(app)
    """

    @app.before_request
    def _start_timer():
        from flask import g
        g.start_time = time.perf_counter()

    @app.after_request
    def _log_request(response):
        from flask import g, request

        if not ENABLE_PROFILING or not hasattr(g, 'start_time'):
            return response

        # Los streams SSE quedan abiertos: su duración no es una métrica útil
        if request.path.startswith('/api/stream'):
            return response

        elapsed = (time.perf_counter() - g.start_time) * 1000  # ms
        rule = str(request.url_rule) if request.url_rule else request.path
        action = _get_route_name(request.method, rule)

        log.debug("%s (%s %s) %d -> %.0f ms",
                  action, request.method, request.path, response.status_code, elapsed)

        level = _severity(elapsed)
        if level is not None:
            log.log(level, "Ruta lenta: %s (%s %s) %.0f ms",
                    action, request.method, request.path, elapsed)

        return response


# ═══════════════════════════════════════════════════════════════════════════
# 2️⃣ DECORADOR PARA OPERACIONES CLAVE
# ═══════════════════════════════════════════════════════════════════════════

def profile_function(func=None, name=None):
    """
    Decorador para medir rendimiento de operaciones críticas.

    Uso:
        @profile_function
        def mi_funcion():
            ...

        @profile_function(name="Registrar venta")
        def record_sale():
            ...

    Registra cantidad de llamadas, tiempo promedio y tiempo máximo.
    """
    def decorator(fn):
        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not ENABLE_PROFILING:
                return fn(*args, **kwargs)
            start = time.perf_counter()
            try:
                return fn(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                _record(func_name, elapsed_ms)
                level = _severity(elapsed_ms)
                if level is not None:
                    log.log(level, "Operación lenta: %s %.0f ms", func_name, elapsed_ms)

        return wrapper

    # Permitir uso sin paréntesis: @profile_function
    if func is not None:
        return decorator(func)
    return decorator


# ═══════════════════════════════════════════════════════════════════════════
# 3️⃣ REPORTE DE ESTADÍSTICAS
# ═══════════════════════════════════════════════════════════════════════════

def get_function_stats():
    """
    Returns:
        dict: {nombre de operación: {calls, avg_time, max_time}}
    """
    with _stats_lock:
        return {op: stats.as_dict() for op, stats in _operations.items()}


def reset_stats():
    with _stats_lock:
        _operations.clear()


__all__ = [
    'init_profiling',
    'profile_function',
    'get_function_stats',
    'reset_stats',
    'set_enabled',
]
