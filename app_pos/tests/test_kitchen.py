import pytest

from app_pos.errors import NotFoundError, ValidationError
from app_pos.models import KitchenOrder, KitchenStatus
from app_pos.models.catalog import KITCHEN_ORDERS
from app_pos.services import KitchenService


def test_place_order_starts_pending(container):
    kitchen = container.kitchen_service
    order_id = kitchen.place_order('Mesa 4', [{'name': 'Capuchino', 'quantity': 2}], 'u1')

    record = container.backend.get(KITCHEN_ORDERS, order_id)
    assert record['status'] == 'PENDING'
    assert record['tableId'] == 'Mesa 4'
    assert record['items'] == [{'name': 'Capuchino', 'quantity': 2}]
    assert record['timestamp']


def test_kitchen_collection_starts_empty(container):
    seen = []
    container.kitchen_service.subscribe_orders(seen.append)
    assert seen == [[]]


@pytest.mark.parametrize('items', [
    [],
    [{'name': '', 'quantity': 1}],
    [{'name': 'Café', 'quantity': 0}],
])
def test_invalid_items_are_rejected(container, items):
    with pytest.raises(ValidationError):
        container.kitchen_service.place_order('1', items, 'u1')
    assert container.backend.read_all(KITCHEN_ORDERS) == []


def test_subscription_is_capped_and_newest_first(container):
    records = [
        {'id': str(i), 'tableId': '1', 'items': [], 'status': 'PENDING',
         'timestamp': f'2024-01-01T10:{i:02d}:00+00:00', 'userId': 'u'}
        for i in range(60)
    ]
    container.backend.replace_all(KITCHEN_ORDERS, records)

    seen = []
    container.kitchen_service.subscribe_orders(seen.append)

    assert len(seen[-1]) == 50
    assert seen[-1][0].id == '59'


def test_custom_limit(container):
    kitchen = KitchenService(container.backend, limit=2)
    for table in ('1', '2', '3'):
        kitchen.place_order(table, [{'name': 'Té', 'quantity': 1}], 'u')
    seen = []
    kitchen.subscribe_orders(seen.append)
    assert len(seen[-1]) == 2


def test_mark_delivered(container):
    kitchen = container.kitchen_service
    order_id = kitchen.place_order('2', [{'name': 'Empanada', 'quantity': 3}], 'u1')
    kitchen.mark_delivered(order_id)
    assert container.backend.get(KITCHEN_ORDERS, order_id)['status'] == 'DELIVERED'


def test_mark_delivered_unknown_order(container):
    with pytest.raises(NotFoundError):
        container.kitchen_service.mark_delivered('nope')


def test_pending_queue_is_oldest_first():
    orders = [
        KitchenOrder(id='b', timestamp='2024-01-01T10:05:00'),
        KitchenOrder(id='a', timestamp='2024-01-01T10:00:00'),
        KitchenOrder(id='c', timestamp='2024-01-01T09:00:00', status=KitchenStatus.DELIVERED),
    ]
    assert [o.id for o in KitchenService.pending(orders)] == ['a', 'b']
