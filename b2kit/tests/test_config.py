"""Tests for the ``config`` module."""

import os

import yaml

from b2kit import config


def test_get_config_yaml_fpath(isolated_config):
    assert config.get_config_yaml_fpath() == os.path.join(
        str(isolated_config), ".b2kit", "config.yaml"
    )


def test_defaults():
    cfg = config.read()
    assert cfg.key_id is None
    assert cfg.application_key is None
    assert cfg.api_version == "v3"
    assert cfg.storage_maximum == 0
    assert cfg.part_size == config.DEFAULT_PART_SIZE
    assert cfg.timeout == 10.0
    assert not cfg.logging


def test_write_and_read():
    cfg = config.read()
    cfg.key_id = "key-id"
    cfg.application_key = "app-key"
    cfg.local_path = "storage"
    cfg.storage_maximum = 1000
    cfg.write()
    # Without a keyring, secrets are written to the file
    with open(config.get_config_yaml_fpath()) as f:
        saved = yaml.safe_load(f)
    assert saved["application_key"] == "app-key"
    assert saved["storage_maximum"] == 1000
    cfg = config.read()
    assert cfg.key_id == "key-id"
    assert cfg.application_key == "app-key"
    assert isinstance(cfg.application_key, config.KeyringSecret)
    assert cfg.local_path == "storage"
    assert cfg.storage_maximum == 1000


def test_env_overrides_file(monkeypatch):
    cfg = config.read()
    cfg.bucket_id = "from-file"
    cfg.write()
    monkeypatch.setenv("B2KIT_BUCKET_ID", "from-env")
    monkeypatch.setenv("B2KIT_LOGGING", "true")
    cfg = config.read()
    assert cfg.bucket_id == "from-env"
    assert cfg.logging
    assert config.Settings(bucket_id="from-init").bucket_id == "from-init"


def test_secrets_use_keyring(monkeypatch):
    secrets = {}
    monkeypatch.setattr(config, "KEYRING_SUPPORTED", True)
    monkeypatch.setattr(
        config, "set_secret", lambda key, value: secrets.update({key: value})
    )
    monkeypatch.setattr(config, "get_secret", lambda key: secrets.get(key))
    cfg = config.read()
    cfg.application_key = "app-key"
    cfg.write()
    assert secrets == {"application_key": "app-key"}
    with open(config.get_config_yaml_fpath()) as f:
        saved = yaml.safe_load(f)
    assert "application_key" not in saved
    assert config.read().application_key == "app-key"
