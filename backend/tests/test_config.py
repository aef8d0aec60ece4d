import json
import logging

import pytest
from pydantic import ValidationError

from heatlog.core.config import Settings, normalize_database_url
from heatlog.core.logger import JSONFormatter, bind_request_id, clear_request_id
from heatlog.db.base import _connect_args


def test_normalize_database_url():
    assert normalize_database_url("postgres://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert normalize_database_url("postgresql://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert normalize_database_url("postgresql+asyncpg://u:p@h/db") == "postgresql+asyncpg://u:p@h/db"
    assert normalize_database_url("sqlite+aiosqlite:///./x.db") == "sqlite+aiosqlite:///./x.db"


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgres://u:p@db/heats")
    monkeypatch.setenv("DATABASE_SSL", "true")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("ANNOTATION_POLICY", "LENIENT")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.example, http://b.example")

    config = Settings()
    assert config.DATABASE_URL == "postgresql+asyncpg://u:p@db/heats"
    assert config.database_ssl is True
    assert config.port == 8080
    assert config.annotation_policy == "lenient"
    assert config.cors_origins == ["http://a.example", "http://b.example"]
    assert not config.is_sqlite


def test_settings_defaults(monkeypatch):
    for name in ("DATABASE_URL", "DATABASE_SSL", "PORT", "ANNOTATION_POLICY", "CORS_ORIGINS"):
        monkeypatch.delenv(name, raising=False)

    config = Settings()
    assert config.is_sqlite
    assert config.port == 3001
    assert config.annotation_policy == "strict"
    assert config.cors_origins == ["*"]


def test_unknown_annotation_policy_is_rejected():
    with pytest.raises(ValidationError):
        Settings(annotation_policy="sometimes")


def test_tls_connect_args():
    plain = Settings(DATABASE_URL="postgresql://u:p@h/db", database_ssl=False)
    assert _connect_args(plain) == {}

    tls = Settings(DATABASE_URL="postgresql://u:p@h/db", database_ssl=True)
    assert "ssl" in _connect_args(tls)

    # The TLS flag only applies to network stores
    local = Settings(DATABASE_URL="sqlite+aiosqlite:///./x.db", database_ssl=True)
    assert _connect_args(local) == {}


def test_json_formatter_includes_request_id_and_extra():
    bind_request_id("abc")
    record = logging.LogRecord("heatlog.test", logging.INFO, __file__, 10, "saved %s", ("L1",), None)
    record.extra_data = {"annotations": 2}

    out = json.loads(JSONFormatter().format(record))
    assert out["msg"] == "saved L1"
    assert out["request_id"] == "abc"
    assert out["data"] == {"annotations": 2}
    assert out["level"] == "INFO"
    clear_request_id()


def test_bind_request_id_generates_when_missing():
    generated = bind_request_id(None)
    assert len(generated) == 32
    assert bind_request_id("  ") != "  "
    clear_request_id()
