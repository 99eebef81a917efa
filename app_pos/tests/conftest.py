import os
from unittest.mock import MagicMock

import pytest

from app_pos.app_container import AppContainer
from app_pos.config import Settings
from app_pos.events import EventBus
from app_pos.main import create_app
from app_pos.repositories import CloudStore, LocalStore


@pytest.fixture
def settings(tmp_path):
    return Settings(
        data_dir=str(tmp_path / 'data'),
        logs_dir=str(tmp_path / 'logs'),
        watch_interval=0.05,
        enable_profiling=False,
    )


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def local_store(settings, bus):
    store = LocalStore(settings.data_dir, bus, watch_interval=settings.watch_interval)
    yield store
    store.close()


@pytest.fixture
def fake_db():
    """Base de datos simulada: db['coleccion'] devuelve siempre el mismo mock por nombre."""
    collections = {}

    def get_collection(name):
        if name not in collections:
            collections[name] = MagicMock(name=f'collection:{name}')
        return collections[name]

    db = MagicMock(name='database')
    db.__getitem__.side_effect = get_collection
    return db


@pytest.fixture
def cloud_store(fake_db, bus):
    store = CloudStore(fake_db, bus, watch=False)
    yield store
    store.close()


@pytest.fixture
def container(settings, bus, local_store):
    c = AppContainer(settings, bus=bus, backend=local_store)
    yield c
    c.close()


@pytest.fixture
def app(container):
    return create_app(container)


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def data_file(settings):
    """Ruta del JSON de una colección local."""
    return lambda key: os.path.join(settings.data_dir, f'{key}.json')
