import json
import os

import pytest

from app_pos.errors import ImportDisabledError, ImportValidationError
from app_pos.models.catalog import ASSETS, KITCHEN_ORDERS, PRODUCTS, SALES, WHATSAPP_ORDERS
from app_pos.services import BackupService


def test_export_contains_every_collection(container):
    data = container.backup_service.export_database()
    assert set(data) == {'timestamp', 'products', 'sales', 'assets', 'whatsappOrders'}
    assert len(data['products']) == 7
    assert data['whatsappOrders'][0]['id'] == 'w1'


def test_export_then_import_restores_state(container):
    backup = container.backup_service
    exported = backup.export_database()

    backup.clear_all()
    assert container.backend.read_all(PRODUCTS) == []

    counts = backup.import_database(json.dumps(exported))

    assert counts == {'products': 7, 'sales': 3, 'assets': 3, 'whatsappOrders': 1}
    for key, collection in BackupService.EXPORT_KEYS.items():
        assert container.backend.read_all(collection) == exported[key]


@pytest.mark.parametrize('payload', [
    'no es json',
    '[]',
    {'products': []},
    {'sales': []},
    {'products': {}, 'sales': []},
    {'products': [], 'sales': [], 'assets': 'x'},
    {'products': [1], 'sales': []},
])
def test_invalid_import_changes_nothing(container, payload):
    # persist the demo data so both exports read the same files
    for collection in BackupService.EXPORT_KEYS.values():
        container.backend.replace_all(collection, container.backend.read_all(collection))
    before = container.backup_service.export_database()

    with pytest.raises(ImportValidationError):
        container.backup_service.import_database(payload)

    after = container.backup_service.export_database()
    for key in BackupService.EXPORT_KEYS:
        assert after[key] == before[key]


def test_import_without_optional_keys_keeps_them(container):
    container.backup_service.import_database({'products': [], 'sales': []})

    assert container.backend.read_all(PRODUCTS) == []
    assert container.backend.read_all(SALES) == []
    assert len(container.backend.read_all(ASSETS)) == 3
    assert len(container.backend.read_all(WHATSAPP_ORDERS)) == 1


def test_import_disabled_for_cloud(cloud_store, tmp_path):
    backup = BackupService(cloud_store, str(tmp_path))
    with pytest.raises(ImportDisabledError):
        backup.import_database({'products': [], 'sales': []})
    with pytest.raises(ImportDisabledError):
        backup.clear_all()


def test_clear_all_also_empties_kitchen(container):
    container.kitchen_service.place_order('1', [{'name': 'Té', 'quantity': 1}], 'u')
    container.backup_service.clear_all()
    assert container.backend.read_all(KITCHEN_ORDERS) == []


def test_export_to_file_and_import_from_file(container, settings):
    backup = container.backup_service
    path = backup.export_to_file()

    assert os.path.dirname(path) == os.path.join(settings.data_dir, 'backups')
    assert os.path.basename(path).startswith('control_alfajores_backup_')

    backup.clear_all()
    backup.import_from_file(path)
    assert len(container.backend.read_all(PRODUCTS)) == 7


def test_rotation_keeps_latest_exports(container):
    backup = container.backup_service
    os.makedirs(backup.backup_root, exist_ok=True)
    for day in range(1, 11):
        name = f'control_alfajores_backup_2024-01-{day:02d}.json'
        with open(os.path.join(backup.backup_root, name), 'w', encoding='utf-8') as f:
            f.write('{}')
    with open(os.path.join(backup.backup_root, 'otro.json'), 'w', encoding='utf-8') as f:
        f.write('{}')

    deleted = backup.rotate_backups()

    assert deleted == 3
    remaining = backup.list_backups()
    assert len(remaining) == BackupService.MAX_BACKUPS
    assert remaining[0] == 'control_alfajores_backup_2024-01-10.json'
    assert os.path.exists(os.path.join(backup.backup_root, 'otro.json'))
