# ==============================================================================
# API HTTP - Consumidor de la capa de sincronización
# ==============================================================================
# create_app() arma la aplicación Flask sobre un AppContainer:
#   - SnapshotCache se suscribe a todas las colecciones (la "vista" que
#     siempre tiene el estado actual) y recuerda el último cloud_error
#   - Las rutas JSON delegan en los servicios; nunca tocan el backend
#   - /api/stream/<colección> reenvía cada foto nueva como Server-Sent Events
#
# RESPUESTAS:
#   Éxito -> {"ok": true, ...}
#   Error -> {"ok": false, "error": "<mensaje>"} con el código HTTP del tipo
# ==============================================================================

import copy
import json
import logging
import os
import threading
from queue import Empty, Queue
from typing import Any, Dict, List, Optional

from flask import Flask, Response, request
from werkzeug.exceptions import HTTPException
from werkzeug.utils import secure_filename

from app_pos.app_container import AppContainer
from app_pos.config import configure_logging
from app_pos.errors import (
    BackendError,
    ImportDisabledError,
    InvalidTransitionError,
    NotFoundError,
    SyncError,
    ValidationError,
)
from app_pos.events import CLOUD_ERROR
from app_pos.models import (
    Product,
    Sale,
    WhatsAppOrder,
    from_record,
    to_record,
)
from app_pos.models.catalog import ASSETS, KITCHEN_ORDERS, PRODUCTS, SALES, WHATSAPP_ORDERS
from app_pos import performance_logger
from app_pos.performance_logger import init_profiling


log = logging.getLogger("app_pos.api")

# Segundos sin cambios antes de enviar un comentario keep-alive por SSE
STREAM_KEEPALIVE = 15.0


# ═══════════════════════════════════════════════════════════════════════════
# CACHÉ DE FOTOS EN VIVO
# ═══════════════════════════════════════════════════════════════════════════

class SnapshotCache:
    """
    Última foto de cada colección, mantenida por las suscripciones.

    Además reparte cada foto nueva a los streams SSE abiertos (una cola por
    cliente) y guarda el último error de permisos de la nube.
    """

    def __init__(self, container: AppContainer):
        self._container = container
        self._data: Dict[str, List[Any]] = {}
        self._listeners: Dict[str, List[Queue]] = {}
        self._lock = threading.RLock()
        self._unsubscribes = []
        self.last_cloud_error: Optional[str] = None

    def start(self) -> None:
        c = self._container
        self._unsubscribes = [
            c.bus.subscribe(CLOUD_ERROR, self._on_cloud_error),
            c.inventory_service.subscribe_products(lambda v: self._update(PRODUCTS, v)),
            c.sales_service.subscribe_sales(lambda v: self._update(SALES, v)),
            c.asset_service.subscribe_assets(lambda v: self._update(ASSETS, v)),
            c.whatsapp_service.subscribe_orders(lambda v: self._update(WHATSAPP_ORDERS, v)),
            c.kitchen_service.subscribe_orders(lambda v: self._update(KITCHEN_ORDERS, v)),
        ]

    def stop(self) -> None:
        for unsubscribe in self._unsubscribes:
            unsubscribe()
        self._unsubscribes = []

    def _update(self, collection: str, values: List[Any]) -> None:
        with self._lock:
            self._data[collection] = values
            listeners = list(self._listeners.get(collection, []))
        for queue in listeners:
            queue.put(('snapshot', values))

    def _on_cloud_error(self, message: str) -> None:
        with self._lock:
            self.last_cloud_error = message
            listeners = [q for queues in self._listeners.values() for q in queues]
        for queue in listeners:
            queue.put(('cloud_error', message))

    def get(self, collection: str) -> List[Any]:
        with self._lock:
            return list(self._data.get(collection, []))

    def listen(self, collection: str) -> Queue:
        queue: Queue = Queue()
        with self._lock:
            self._listeners.setdefault(collection, []).append(queue)
            current = self._data.get(collection)
        if current is not None:
            queue.put(('snapshot', current))
        return queue

    def unlisten(self, collection: str, queue: Queue) -> None:
        with self._lock:
            queues = self._listeners.get(collection, [])
            if queue in queues:
                queues.remove(queue)


# ═══════════════════════════════════════════════════════════════════════════
# HELPERS
# ═══════════════════════════════════════════════════════════════════════════

def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Se esperaba un objeto JSON")
    return data


def _entity(cls, data: Dict[str, Any]):
    """Registro recibido -> entidad; errores de tipo se informan como 400."""
    try:
        return from_record(cls, data)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Datos inválidos para {cls.__name__}: {e}") from e


def _records(values: List[Any]) -> List[Dict[str, Any]]:
    return [to_record(v) for v in values]


def _sse(event: str, data: Any) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False, default=str)}\n\n"


# Tipo de error -> código HTTP (el primero que coincide)
ERROR_STATUS = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (InvalidTransitionError, 409),
    (ImportDisabledError, 403),
    (BackendError, 502),
)


def status_for(error: SyncError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


# ═══════════════════════════════════════════════════════════════════════════
# FÁBRICA DE LA APLICACIÓN
# ═══════════════════════════════════════════════════════════════════════════

def create_app(container: Optional[AppContainer] = None) -> Flask:
    """
    Crea la aplicación Flask.

    Args:
        container: Contenedor ya armado (tests); por defecto el global

    Returns:
        Aplicación Flask con el caché de fotos ya suscrito
    """
    container = container or AppContainer.get_instance()
    settings = container.settings

    configure_logging(settings)
    performance_logger.set_enabled(settings.enable_profiling)

    app = Flask(__name__)
    app.json.ensure_ascii = False
    init_profiling(app)

    selection = container.selection
    cache = SnapshotCache(container)
    cache.start()

    app.extensions['app_pos_container'] = container
    app.extensions['app_pos_cache'] = cache

    @app.errorhandler(SyncError)
    def handle_sync_error(error):
        status = status_for(error)
        if status >= 500:
            log.error("%s %s: %s", request.method, request.path, error)
        else:
            log.info("%s %s rechazado: %s", request.method, request.path, error)
        return {'ok': False, 'error': str(error)}, status

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return {'ok': False, 'error': error.description}, error.code

    # =========================================================================
    # ESTADO
    # =========================================================================

    @app.route('/api/status', methods=['GET'])
    def api_status():
        return {
            'ok': True,
            'backend': selection.backend.kind,
            'status': selection.status.value,
            'message': selection.message,
            'cloud_error': cache.last_cloud_error,
            'import_enabled': container.backup_service.import_enabled,
        }

    # =========================================================================
    # PRODUCTOS
    # =========================================================================

    @app.route('/api/products', methods=['GET'])
    def api_products():
        products = cache.get(PRODUCTS)
        category = request.args.get('category')
        barcode = request.args.get('barcode')
        if barcode is not None:
            # Escaneo: a lo sumo un producto
            match = container.inventory_service.find_by_barcode(products, barcode)
            products = [match] if match else []
        elif request.args.get('menu'):
            products = container.inventory_service.menu_products(products, category)
        elif category:
            products = [p for p in products if p.category == category]
        return {
            'ok': True,
            'products': _records(products),
            'low_stock': _records(container.inventory_service.low_stock(products)),
        }

    @app.route('/api/products', methods=['POST'])
    def api_add_product():
        product = _entity(Product, _json_body())
        product_id = container.inventory_service.add_product(product)
        return {'ok': True, 'id': product_id}, 201

    @app.route('/api/products/<product_id>', methods=['PUT'])
    def api_update_product(product_id):
        data = dict(_json_body(), id=product_id)
        container.inventory_service.update_product(_entity(Product, data))
        return {'ok': True, 'id': product_id}

    @app.route('/api/products/menu-order', methods=['POST'])
    def api_menu_order():
        ids = _json_body().get('order')
        if not isinstance(ids, list):
            raise ValidationError("'order' debe ser una lista de ids")
        original = cache.get(PRODUCTS)
        by_id = {p.id: p for p in original}
        missing = [i for i in ids if i not in by_id]
        if missing:
            raise NotFoundError(f"Productos inexistentes: {', '.join(map(str, missing))}")
        ordered = [copy.deepcopy(by_id[i]) for i in ids]
        updated = container.inventory_service.save_menu_order(ordered, original)
        return {'ok': True, 'updated': updated}

    # =========================================================================
    # VENTAS
    # =========================================================================

    @app.route('/api/sales', methods=['GET'])
    def api_sales():
        return {'ok': True, 'sales': _records(cache.get(SALES))}

    @app.route('/api/sales', methods=['POST'])
    def api_record_sale():
        sale = _entity(Sale, _json_body())
        sale_id = container.sales_service.record_sale(sale, cache.get(PRODUCTS))
        return {'ok': True, 'id': sale_id}, 201

    # =========================================================================
    # ACTIVOS
    # =========================================================================

    @app.route('/api/assets', methods=['GET'])
    def api_assets():
        assets = cache.get(ASSETS)
        return {
            'ok': True,
            'assets': _records(assets),
            'total_value': container.asset_service.total_value(assets),
        }

    # =========================================================================
    # PEDIDOS DE WHATSAPP
    # =========================================================================

    @app.route('/api/whatsapp-orders', methods=['GET'])
    def api_whatsapp_orders():
        return {'ok': True, 'orders': _records(cache.get(WHATSAPP_ORDERS))}

    @app.route('/api/whatsapp-orders', methods=['POST'])
    def api_add_whatsapp_order():
        data = _json_body()
        data.pop('status', None)
        order = _entity(WhatsAppOrder, data)
        order_id = container.whatsapp_service.add_order(order)
        return {'ok': True, 'id': order_id}, 201

    @app.route('/api/whatsapp-orders/<order_id>/status', methods=['POST'])
    def api_whatsapp_status(order_id):
        status = _json_body().get('status')
        new_status = container.whatsapp_service.set_status(order_id, status)
        return {'ok': True, 'id': order_id, 'status': new_status.value}

    @app.route('/api/whatsapp-orders/<order_id>/finalize', methods=['POST'])
    def api_whatsapp_finalize(order_id):
        data = request.get_json(silent=True) or {}
        sale_id = container.whatsapp_service.finalize_order(
            order_id, cache.get(PRODUCTS), cashier_name=data.get('cashierName')
        )
        return {'ok': True, 'id': order_id, 'sale_id': sale_id}

    # =========================================================================
    # COCINA
    # =========================================================================

    @app.route('/api/kitchen-orders', methods=['GET'])
    def api_kitchen_orders():
        orders = cache.get(KITCHEN_ORDERS)
        return {
            'ok': True,
            'orders': _records(orders),
            'pending': _records(container.kitchen_service.pending(orders)),
        }

    @app.route('/api/kitchen-orders', methods=['POST'])
    def api_place_kitchen_order():
        data = _json_body()
        items = data.get('items')
        if not isinstance(items, list):
            raise ValidationError("'items' debe ser una lista")
        order_id = container.kitchen_service.place_order(
            data.get('tableId', ''), items, data.get('userId', '')
        )
        return {'ok': True, 'id': order_id}, 201

    @app.route('/api/kitchen-orders/<order_id>/delivered', methods=['POST'])
    def api_kitchen_delivered(order_id):
        container.kitchen_service.mark_delivered(order_id)
        return {'ok': True, 'id': order_id}

    # =========================================================================
    # SISTEMA / EXPORTACIÓN / IMPORTACIÓN
    # =========================================================================

    @app.route('/api/system/update', methods=['POST'])
    def api_system_update():
        return container.catalog_service.system_update()

    @app.route('/api/system/performance', methods=['GET'])
    def api_performance():
        return {'ok': True, 'operations': performance_logger.get_function_stats()}

    @app.route('/api/export', methods=['GET'])
    def api_export():
        data = container.backup_service.export_database()
        filename = os.path.basename(container.backup_service.default_path())
        return Response(
            json.dumps(data, ensure_ascii=False, indent=2, default=str),
            mimetype='application/json',
            headers={'Content-Disposition': f'attachment;filename={filename}'},
        )

    @app.route('/api/import', methods=['POST'])
    def api_import():
        upload = request.files.get('file')
        if upload is not None:
            log.info("Importando archivo %s", secure_filename(upload.filename or '') or '(sin nombre)')
            data = upload.read()
        else:
            data = request.get_json(silent=True)
            if data is None:
                data = request.get_data(as_text=True)
        counts = container.backup_service.import_database(data)
        return {'ok': True, 'imported': counts}

    # =========================================================================
    # PANEL
    # =========================================================================

    @app.route('/api/dashboard', methods=['GET'])
    def api_dashboard():
        summary = container.stats_service.summary(cache.get(SALES), cache.get(PRODUCTS))
        return dict(summary, ok=True)

    # =========================================================================
    # STREAM EN VIVO (SSE)
    # =========================================================================

    streams = {
        PRODUCTS: PRODUCTS,
        SALES: SALES,
        ASSETS: ASSETS,
        'whatsapp-orders': WHATSAPP_ORDERS,
        WHATSAPP_ORDERS: WHATSAPP_ORDERS,
        'kitchen-orders': KITCHEN_ORDERS,
        KITCHEN_ORDERS: KITCHEN_ORDERS,
    }

    @app.route('/api/stream/<collection>', methods=['GET'])
    def api_stream(collection):
        key = streams.get(collection)
        if key is None:
            raise NotFoundError(f"Colección desconocida: {collection}")
        queue = cache.listen(key)

        def generate():
            try:
                while True:
                    try:
                        kind, payload = queue.get(timeout=STREAM_KEEPALIVE)
                    except Empty:
                        yield ": keep-alive\n\n"
                        continue
                    if kind == 'snapshot':
                        yield _sse(key, _records(payload))
                    else:
                        yield _sse(CLOUD_ERROR, payload)
            finally:
                cache.unlisten(key, queue)

        return Response(generate(), mimetype='text/event-stream',
                        headers={'Cache-Control': 'no-cache'})

    log.info("API lista (backend: %s, %s)", selection.backend.kind, selection.status.value)
    return app
