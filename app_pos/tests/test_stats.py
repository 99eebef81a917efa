from datetime import datetime, timedelta, timezone

from app_pos.models import CartItem, Product, ProductCategory, Sale
from app_pos.services import StatsService


def test_summary():
    products = [
        Product(id='a', name='A', stock=1, min_stock=5, category=ProductCategory.ALFAJORES),
        Product(id='b', name='B', stock=10, min_stock=5, category=ProductCategory.ALFAJORES),
        Product(id='c', name='C', stock=3, min_stock=0, category=ProductCategory.BEBIDAS_FRIAS),
    ]
    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    sales = [
        Sale(id='1', total=10.0, items=[CartItem(name='A', cost=2.0, quantity=2)]),
        Sale(id='2', total=5.5, date=yesterday),
    ]

    summary = StatsService().summary(sales, products)

    assert summary['total_sales'] == 15.5
    assert summary['transactions'] == 2
    assert summary['sales_today'] == 10.0
    assert summary['gross_profit'] == 11.5
    assert summary['low_stock_count'] == 1
    assert summary['low_stock'] == [{'id': 'a', 'name': 'A', 'stock': 1, 'minStock': 5}]
    assert summary['stock_by_category'] == {'Alfajores artesanales': 11, 'Bebidas frías': 3}


def test_summary_of_nothing():
    summary = StatsService().summary([], [])
    assert summary['total_sales'] == 0
    assert summary['low_stock'] == []


def test_unparseable_dates_are_ignored():
    sales = [Sale(id='1', total=3, date='ayer')]
    assert StatsService().sales_on(sales, datetime.now(timezone.utc)) == []
