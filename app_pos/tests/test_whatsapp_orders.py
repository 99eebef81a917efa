import pytest

from app_pos.errors import InvalidTransitionError, NotFoundError, OrderAlreadyFinalizedError
from app_pos.models import CartItem, OrderStatus, WhatsAppOrder
from app_pos.models.catalog import SALES
from app_pos.services import WhatsAppService


def stock_of(container, product_id):
    return container.backend.get('products', product_id)['stock']


def advance_to_ready(service, order_id):
    for status in (OrderStatus.PREPARACION, OrderStatus.LISTO):
        service.set_status(order_id, status)


def test_lifecycle_and_finalize(container):
    service = container.whatsapp_service
    products = container.inventory_service.get_all_products()

    advance_to_ready(service, 'w1')
    sale_id = service.finalize_order('w1', products)

    assert service.get_order('w1').status == OrderStatus.ENTREGADO
    sale = container.backend.get(SALES, sale_id)
    assert sale['cashierName'] == 'Sistema WA'
    assert sale['paymentMethod'] == 'Efectivo'
    assert sale['documentType'] == 'RECIBO'
    assert sale['customerName'] == 'Maria Gomez'
    assert sale['total'] == 25.0
    # 6 alfajores y 1 café
    assert stock_of(container, 'p1') == 44
    assert stock_of(container, 'p4') == 499


def test_finalize_twice_is_rejected(container):
    service = container.whatsapp_service
    products = container.inventory_service.get_all_products()
    advance_to_ready(service, 'w1')
    service.finalize_order('w1', products)

    with pytest.raises(OrderAlreadyFinalizedError):
        service.finalize_order('w1', products)

    assert stock_of(container, 'p1') == 44
    assert len(container.backend.read_all(SALES)) == 4


def test_strict_mode_requires_ready_order(container):
    with pytest.raises(InvalidTransitionError):
        container.whatsapp_service.finalize_order('w1', container.inventory_service.get_all_products())
    assert container.whatsapp_service.get_order('w1').status == OrderStatus.PENDIENTE


def test_strict_mode_rejects_backwards_and_skips(container):
    service = container.whatsapp_service
    advance_to_ready(service, 'w1')

    with pytest.raises(InvalidTransitionError):
        service.set_status('w1', OrderStatus.PENDIENTE)

    service.set_status('w1', 'LISTO')
    assert service.get_order('w1').status == OrderStatus.LISTO


def test_non_strict_mode_allows_any_move(container):
    service = WhatsAppService(container.backend, container.sales_service, strict_transitions=False)
    service.set_status('w1', OrderStatus.LISTO)
    service.set_status('w1', OrderStatus.PENDIENTE)

    sale_id = service.finalize_order('w1', container.inventory_service.get_all_products(),
                                     cashier_name='Ana')

    assert container.backend.get(SALES, sale_id)['cashierName'] == 'Ana'
    with pytest.raises(OrderAlreadyFinalizedError):
        service.finalize_order('w1', [])


def test_failed_sale_leaves_status_untouched(container, monkeypatch):
    service = container.whatsapp_service
    advance_to_ready(service, 'w1')

    def broken(*_args, **_kwargs):
        raise RuntimeError('sin conexión')

    monkeypatch.setattr(container.sales_service, 'record_sale', broken)
    with pytest.raises(RuntimeError):
        service.finalize_order('w1', [])

    assert service.get_order('w1').status == OrderStatus.LISTO


def test_add_order_and_subscribe_newest_first(container):
    service = container.whatsapp_service
    seen = []
    service.subscribe_orders(seen.append)

    product = container.inventory_service.get_all_products()[0]
    order = WhatsAppOrder(customer_name='Juan', phone_number='+54911', total=2.5,
                          items=[CartItem.from_product(product, 1)],
                          created_at='2999-01-01T00:00:00+00:00')
    order_id = service.add_order(order)

    assert [o.id for o in seen[-1]] == [order_id, 'w1']
    assert seen[-1][0].status == OrderStatus.PENDIENTE


def test_unknown_order(container):
    with pytest.raises(NotFoundError):
        container.whatsapp_service.set_status('nope', OrderStatus.LISTO)
