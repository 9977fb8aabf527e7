import importlib

import pytest

import config


@pytest.fixture
def reload_config(monkeypatch):
    yield lambda: importlib.reload(config)
    for name in ("DEXCALL_PORT", "DEXCALL_DEBUG", "DEXCALL_RECORDS_FILE"):
        monkeypatch.delenv(name, raising=False)
    importlib.reload(config)


def test_environment_overrides(monkeypatch, reload_config, tmp_path):
    monkeypatch.setenv("DEXCALL_PORT", "9001")
    monkeypatch.setenv("DEXCALL_DEBUG", "Yes")
    monkeypatch.setenv("DEXCALL_RECORDS_FILE", str(tmp_path / "calls.json"))

    reload_config()

    assert config.PORT == 9001
    assert config.DEBUG is True
    assert config.RECORDS_FILE == str(tmp_path / "calls.json")


def test_unrecognized_flag_value_is_false(monkeypatch, reload_config):
    monkeypatch.setenv("DEXCALL_DEBUG", "maybe")
    reload_config()
    assert config.DEBUG is False
