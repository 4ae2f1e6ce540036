from __future__ import annotations

import json

import pytest

from honorary_fee import config


def test_defaults():
    cfg = config.EngineConfig()
    cfg.validate()
    assert cfg.seconds_per_day == 86_400
    assert cfg.max_pages == 512
    assert cfg.rollover_carry == "reset"
    assert cfg.treasury_account("vault-1") == "treasury:vault-1"


@pytest.mark.parametrize(
    "kw",
    [
        {"seconds_per_day": 0},
        {"max_pages": 100},
        {"rollover_carry": "keep"},
        {"log_level": "LOUD"},
        {"treasury_prefix": ""},
    ],
)
def test_validate_rejects(kw):
    with pytest.raises(ValueError):
        config.EngineConfig(**kw).validate()


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("HONORARY_FEE_SECONDS_PER_DAY", "3_600")
    monkeypatch.setenv("HONORARY_FEE_ROLLOVER_CARRY", "CARRY")
    monkeypatch.setenv("HONORARY_FEE_LOG_LEVEL", "debug")
    cfg = config.from_env()
    assert cfg.seconds_per_day == 3_600
    assert cfg.rollover_carry == "carry"
    assert cfg.log_level == "DEBUG"


def test_env_rejects_bad_int(monkeypatch):
    monkeypatch.setenv("HONORARY_FEE_MAX_PAGES", "lots")
    with pytest.raises(ValueError, match="HONORARY_FEE_MAX_PAGES"):
        config.from_env()


def test_yaml_file_then_env(tmp_path, monkeypatch):
    path = tmp_path / "honorary.yaml"
    path.write_text("max_pages: 64\ndb_path: /tmp/h.db\n", encoding="utf-8")
    monkeypatch.setenv("HONORARY_FEE_CONFIG_FILE", str(path))
    monkeypatch.setenv("HONORARY_FEE_DB_PATH", "/var/h.db")

    cfg = config.load()
    assert cfg.max_pages == 64
    assert cfg.db_path == "/var/h.db"
    assert json.loads(config.pretty(cfg))["max_pages"] == 64


def test_file_rejects_unknown_keys(tmp_path):
    path = tmp_path / "honorary.json"
    path.write_text(json.dumps({"max_pages": 64, "colour": "blue"}), encoding="utf-8")
    with pytest.raises(ValueError, match="colour"):
        config.from_file(path)
