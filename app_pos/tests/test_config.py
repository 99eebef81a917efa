from app_pos.config import load_settings


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv('APP_POS_DATA_DIR', str(tmp_path))
    monkeypatch.setenv('APP_POS_CLOUD_URI', 'mongodb://localhost:27017')
    monkeypatch.setenv('APP_POS_CLOUD_DB', 'pos')
    monkeypatch.setenv('APP_POS_STRICT_TRANSITIONS', 'no')
    monkeypatch.setenv('APP_POS_KITCHEN_LIMIT', '20')
    monkeypatch.setenv('LOG_LEVEL', 'debug')

    settings = load_settings(env_file=str(tmp_path / 'missing.env'))

    assert settings.data_dir == str(tmp_path)
    assert settings.strict_transitions is False
    assert settings.kitchen_limit == 20
    assert settings.log_level == 'DEBUG'
    assert settings.cloud_descriptor() == {
        'uri': 'mongodb://localhost:27017', 'database': 'pos', 'app_name': 'app_pos',
    }


def test_defaults_without_cloud(monkeypatch, tmp_path):
    for name in ('APP_POS_CLOUD_URI', 'APP_POS_CLOUD_DB', 'APP_POS_STRICT_TRANSITIONS',
                 'APP_POS_KITCHEN_LIMIT'):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings(env_file=str(tmp_path / 'missing.env'))

    assert settings.cloud_descriptor() is None
    assert settings.strict_transitions is True
    assert settings.kitchen_limit == 50


def test_env_file_is_loaded(monkeypatch, tmp_path):
    # setenv + delenv: monkeypatch restores the variable as absent afterwards
    monkeypatch.setenv('APP_POS_KITCHEN_LIMIT', '0')
    monkeypatch.delenv('APP_POS_KITCHEN_LIMIT')
    env_file = tmp_path / '.env'
    env_file.write_text('APP_POS_KITCHEN_LIMIT=7\n', encoding='utf-8')

    settings = load_settings(env_file=str(env_file))

    assert settings.kitchen_limit == 7
