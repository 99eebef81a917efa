import threading

import pytest

from app_pos.errors import BackendError, NotFoundError, ValidationError
from app_pos.models import CartItem, Sale
from app_pos.models.catalog import PRODUCTS, SALES
from app_pos.repositories import JsonCollectionFile


def snapshot(container):
    return container.inventory_service.get_all_products()


def product(container, product_id):
    return next(p for p in snapshot(container) if p.id == product_id)


def make_sale(container, lines, total=None):
    items = [CartItem.from_product(product(container, pid), qty) for pid, qty in lines]
    return Sale(items=items, total=total if total is not None else sum(i.line_total for i in items),
                cashier_name='Ana')


def test_sale_decrements_stock(container):
    products = snapshot(container)
    sale_id = container.sales_service.record_sale(make_sale(container, [('p1', 6)]), products)

    assert product(container, 'p1').stock == 44
    assert container.backend.get(SALES, sale_id)['total'] == 15.0


def test_sale_stores_frozen_items(container):
    sale = make_sale(container, [('p1', 1)])
    sale_id = container.sales_service.record_sale(sale, snapshot(container))

    edited = product(container, 'p1')
    edited.price = 100
    container.inventory_service.update_product(edited)

    stored = container.backend.get(SALES, sale_id)
    assert stored['items'][0]['price'] == 2.5


def test_total_is_stored_as_sent(container):
    sale = make_sale(container, [('p4', 1)], total=7.0)
    sale_id = container.sales_service.record_sale(sale, snapshot(container))
    assert container.backend.get(SALES, sale_id)['total'] == 7.0


def test_two_sales_from_the_same_stale_snapshot_both_apply(container):
    stale = snapshot(container)
    container.sales_service.record_sale(make_sale(container, [('p1', 2)]), stale)
    container.sales_service.record_sale(make_sale(container, [('p1', 3)]), stale)

    assert product(container, 'p1').stock == 45


def test_concurrent_sales_do_not_lose_updates(container):
    stale = snapshot(container)
    sales = [make_sale(container, [('p4', 1)]) for _ in range(10)]
    threads = [
        threading.Thread(target=container.sales_service.record_sale, args=(sale, stale))
        for sale in sales
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert product(container, 'p4').stock == 490


def test_stock_can_go_negative(container):
    container.sales_service.record_sale(make_sale(container, [('p3', 8)]), snapshot(container))
    assert product(container, 'p3').stock == -3


def test_item_matched_by_name_when_id_is_unknown(container):
    sale = make_sale(container, [('p2', 1)])
    sale.items[0].id = 'id-viejo'
    container.sales_service.record_sale(sale, snapshot(container))
    assert product(container, 'p2').stock == 14


def test_unmatched_item_is_skipped(container):
    sale = make_sale(container, [('p6', 1)])
    sale.items[0].id = None
    sale.items[0].name = 'Producto borrado'
    container.sales_service.record_sale(sale, snapshot(container))
    assert product(container, 'p6').stock == 24


def test_empty_sale_is_rejected_before_writing(container):
    with pytest.raises(ValidationError):
        container.sales_service.record_sale(Sale(items=[]), snapshot(container))
    assert [s['id'] for s in container.backend.read_all(SALES)] == ['s3', 's1', 's2']


def test_decrement_failure_propagates_after_sale_is_recorded(container):
    container.backend.replace_all(PRODUCTS, [])
    item = CartItem(id='p1', name='Alfajor de Maicena', price=2.5, quantity=1)
    sale = Sale(items=[item], total=2.5)
    stale = [item]

    with pytest.raises(NotFoundError):
        container.sales_service.record_sale(sale, stale)
    assert len(container.backend.read_all(SALES)) == 4


def test_subscribe_sales_newest_first(container):
    seen = []
    container.sales_service.subscribe_sales(seen.append)
    sale = make_sale(container, [('p5', 1)])
    sale.date = '2999-01-01T00:00:00+00:00'
    sale_id = container.sales_service.record_sale(sale, snapshot(container))

    assert [s.id for s in seen[-1]] == [sale_id, 's3', 's1', 's2']


def test_unsaved_sale_does_not_touch_stock(container, monkeypatch):
    products = snapshot(container)
    container.backend.replace_all(PRODUCTS, container.backend.read_all(PRODUCTS))
    sales_before = container.backend.read_all(SALES)
    real_write = JsonCollectionFile.write

    def fail_sales(self, data):
        if self.file_path.endswith('sales.json'):
            raise OSError('disco lleno')
        return real_write(self, data)

    monkeypatch.setattr(JsonCollectionFile, 'write', fail_sales)

    with pytest.raises(BackendError):
        container.sales_service.record_sale(make_sale(container, [('p1', 6)]), products)

    assert product(container, 'p1').stock == 50
    assert container.backend.read_all(SALES) == sales_before
