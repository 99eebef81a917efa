import json
import os

import pytest

from app_pos.errors import BackendError, NotFoundError
from app_pos.models.catalog import initial_products
from app_pos.repositories import JsonCollectionFile, LocalStore, apply_query


def test_absent_key_returns_seed(local_store):
    ids = [p['id'] for p in local_store.read('products')]
    assert ids == [p['id'] for p in initial_products()]


def test_empty_list_is_not_replaced_by_seed(local_store):
    local_store.write('sales', [])
    assert local_store.read('sales') == []


def test_corrupt_file_falls_back_to_seed(local_store, data_file):
    os.makedirs(os.path.dirname(data_file('assets')), exist_ok=True)
    with open(data_file('assets'), 'w', encoding='utf-8') as f:
        f.write('{esto no es json')

    assets = local_store.read('assets')
    assert [a['id'] for a in assets] == ['a1', 'a2', 'a3']


def test_unknown_key_without_seed_is_empty(local_store):
    assert local_store.read('no_existe') == []


def test_write_notifies_every_subscriber_including_writer(local_store):
    seen_a, seen_b = [], []
    local_store.subscribe('products', seen_a.append)
    local_store.subscribe('products', seen_b.append)

    local_store.write('products', [{'id': 'x', 'name': 'Nuevo'}])

    assert seen_a[-1] == [{'id': 'x', 'name': 'Nuevo'}]
    assert seen_b[-1] == [{'id': 'x', 'name': 'Nuevo'}]
    # una entrega inicial + una por escritura
    assert len(seen_a) == 2


def test_subscribe_delivers_immediately(local_store):
    seen = []
    local_store.subscribe('whatsapp_orders', seen.append)
    assert len(seen) == 1
    assert seen[0][0]['id'] == 'w1'


def test_unsubscribe_is_idempotent_and_stops_delivery(local_store):
    seen = []
    unsubscribe = local_store.subscribe('products', seen.append)
    unsubscribe()
    unsubscribe()

    local_store.write('products', [])
    assert len(seen) == 1


def test_subscribe_applies_order_and_limit(local_store):
    local_store.write('kitchen_orders', [
        {'id': '1', 'timestamp': '2024-01-01T10:00:00'},
        {'id': '2', 'timestamp': '2024-01-01T12:00:00'},
        {'id': '3', 'timestamp': '2024-01-01T11:00:00'},
    ])
    seen = []
    local_store.subscribe('kitchen_orders', seen.append, order_by='timestamp', limit=2)
    assert [r['id'] for r in seen[0]] == ['2', '3']


def test_apply_query_puts_records_without_field_last():
    records = [{'id': 'a'}, {'id': 'b', 'date': '2024'}, {'id': 'c', 'date': '2025'}]
    result = apply_query(records, order_by='date', descending=True)
    assert [r['id'] for r in result] == ['c', 'b', 'a']


def test_insert_generates_id_and_prepends(local_store):
    local_store.write('sales', [{'id': 'old'}])
    new_id = local_store.insert('sales', {'total': 10})

    assert len(new_id) == 9
    assert [r['id'] for r in local_store.read('sales')] == [new_id, 'old']


def test_update_merges_fields(local_store):
    local_store.update('products', 'p1', {'stock': 3})
    product = local_store.get('products', 'p1')
    assert product['stock'] == 3
    assert product['name'] == 'Alfajor de Maicena'


def test_increment_missing_record_raises(local_store):
    with pytest.raises(NotFoundError):
        local_store.increment('products', 'nope', 'stock', -1)


def test_batch_insert_never_overwrites(local_store):
    local_store.write('products', [{'id': 'p1', 'name': 'Editado'}])
    inserted = local_store.batch_insert([
        ('products', {'id': 'p1', 'name': 'Original'}),
        ('products', {'id': 'p2', 'name': 'Nuevo'}),
        ('assets', {'id': 'a9', 'name': 'Horno'}),
    ])

    assert inserted == 2
    assert local_store.get('products', 'p1')['name'] == 'Editado'
    assert local_store.get('products', 'p2')['name'] == 'Nuevo'
    assert local_store.get('assets', 'a9') is not None


def test_write_failure_is_logged_not_raised(local_store, monkeypatch):
    def fail(self, data):
        raise OSError('disco lleno')

    monkeypatch.setattr(JsonCollectionFile, 'write', fail)
    seen = []
    local_store.subscribe('sales', seen.append)

    assert local_store.write('sales', []) is False
    assert len(seen) == 1


def test_file_watcher_detects_external_writes(local_store, data_file):
    local_store.write('products', [{'id': 'p1', 'name': 'Antes'}])
    seen = []
    local_store.subscribe('products', seen.append)

    # otro proceso reescribe el archivo
    path = data_file('products')
    with open(path, 'w', encoding='utf-8') as f:
        json.dump([{'id': 'p1', 'name': 'Después'}], f)
    stat = os.stat(path)
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 1_000_000))

    changed = local_store._watcher.check_once()

    assert changed == ['products']
    assert seen[-1] == [{'id': 'p1', 'name': 'Después'}]
    assert local_store._watcher.check_once() == []


def test_own_writes_are_not_reported_as_external(local_store):
    local_store.subscribe('sales', lambda _records: None)
    local_store.write('sales', [{'id': 's'}])
    assert local_store._watcher.check_once() == []


def test_two_stores_on_same_directory_share_data(settings, bus):
    first = LocalStore(settings.data_dir, bus)
    second = LocalStore(settings.data_dir, bus)
    first.write('assets', [{'id': 'z'}])
    assert second.read('assets') == [{'id': 'z'}]


def test_failed_disk_write_raises_on_mutations(local_store, monkeypatch):
    local_store.write('products', [{'id': 'p1', 'stock': 5}])

    def fail(self, data):
        raise OSError('disco lleno')

    monkeypatch.setattr(JsonCollectionFile, 'write', fail)

    with pytest.raises(BackendError):
        local_store.insert('sales', {'total': 3})
    with pytest.raises(BackendError):
        local_store.increment('products', 'p1', 'stock', -1)
    with pytest.raises(BackendError):
        local_store.batch_insert([('assets', {'id': 'a9', 'name': 'Silla'})])
    with pytest.raises(BackendError):
        local_store.replace_all('products', [])

    monkeypatch.undo()
    assert local_store.read('products') == [{'id': 'p1', 'stock': 5}]


def test_insert_never_duplicates_an_existing_id(local_store):
    local_store.write('products', [{'id': 'p1', 'stock': 5}])

    new_id = local_store.insert('products', {'id': 'p1', 'stock': 1})

    assert new_id != 'p1'
    assert [r['id'] for r in local_store.read('products')] == [new_id, 'p1']
    assert local_store.get('products', 'p1')['stock'] == 5


def test_zero_limit_means_no_limit():
    records = [{'id': str(i)} for i in range(4)]
    assert len(apply_query(records, limit=0)) == 4
    assert len(apply_query(records, limit=None)) == 4
    assert len(apply_query(records, limit=2)) == 2


def test_seed_is_stable_until_first_write(local_store):
    first = local_store.read('sales')
    second = local_store.read('sales')
    assert first == second

    first[0]['total'] = -1
    assert local_store.read('sales') == second
