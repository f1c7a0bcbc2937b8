"""Unit tests for core.config.Settings, PoolConfig validation and core.log helpers."""

import logging

import pytest
from pydantic import ValidationError

from dbaccess.core.config import Settings
from dbaccess.core.log import configure_logging, log_section, log_step
from dbaccess.models import PoolConfig, ProductTypeEnum
from tests.utils.pool import make_config


def _settings(**values) -> Settings:
    return Settings(_env_file=None, **values)


def test_pool_config_built_from_settings() -> None:
    s = _settings(
        DB_PRODUCT_TYPE="mysql",
        DB_USER="app",
        DB_PASSWORD="secret",
        DB_CONNECTION_STRING="db:3307/shop",
        DB_POOL_MIN=2,
        DB_POOL_MAX=8,
        DB_POOL_INCREMENT=2,
        DB_STATEMENT_TIMEOUT=5,
    )

    cfg = s.pool_config

    assert cfg.product_type is ProductTypeEnum.MYSQL
    assert (cfg.min_size, cfg.max_size, cfg.increment) == (2, 8, 2)
    assert cfg.statement_timeout_seconds == 5
    assert cfg.display_target == "db:3307/shop"


def test_settings_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DB_PRODUCT_TYPE", "postgres")
    monkeypatch.setenv("DB_POOL_MAX", "4")
    monkeypatch.setenv("DB_CONNECTION_STRING", "pg/app")
    s = _settings()
    assert s.DB_POOL_MAX == 4
    assert s.pool_config.display_target == "pg:5432/app"


def test_missing_required_lists_empty_values() -> None:
    s = _settings(DB_USER="app", DB_PASSWORD="", DB_CONNECTION_STRING=" ")
    assert s.missing_required() == ["DB_PASSWORD", "DB_CONNECTION_STRING"]


def test_warn_missing_logs_warning(caplog: pytest.LogCaptureFixture) -> None:
    s = _settings(DB_USER="", DB_PASSWORD="", DB_CONNECTION_STRING="")
    with caplog.at_level(logging.WARNING, logger="dbaccess.core.config"):
        missing = s.warn_missing()
    assert missing == ["DB_USER", "DB_PASSWORD", "DB_CONNECTION_STRING"]
    assert "Missing environment variables" in caplog.text


def test_describe_masks_credentials() -> None:
    s = _settings(DB_USER="app", DB_PASSWORD="hunter2", DB_CONNECTION_STRING="h/db")
    info = s.describe()
    assert info["user"] == "***"
    assert info["password"] == "***"
    assert "hunter2" not in str(info)
    assert _settings(DB_PASSWORD="").describe()["password"] == "Not Set"


def test_password_hidden_from_repr() -> None:
    assert "hunter2" not in repr(make_config(password="hunter2"))


@pytest.mark.parametrize(
    "overrides",
    [
        {"min_size": 6, "max_size": 5},
        {"max_size": 0},
        {"increment": 0},
        {"acquire_timeout_seconds": 0},
        {"min_size": -1},
    ],
)
def test_invalid_pool_config_rejected(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        make_config(**overrides)


def test_pool_config_is_frozen() -> None:
    cfg = make_config()
    with pytest.raises(ValidationError):
        cfg.max_size = 50  # type: ignore[misc]


@pytest.mark.parametrize(
    "product_type, raw, expected",
    [
        (ProductTypeEnum.POSTGRES, "h/db", ("h", 5432, "db")),
        (ProductTypeEnum.MYSQL, "h/db", ("h", 3306, "db")),
        (ProductTypeEnum.POSTGRES, "h:6000/db", ("h", 6000, "db")),
        (ProductTypeEnum.POSTGRES, "postgresql://x:y@h:5555/db", ("h", 5555, "db")),
    ],
)
def test_parse_target(product_type: ProductTypeEnum, raw: str, expected: tuple) -> None:
    t = make_config(product_type=product_type, connection_string=raw).parse_target()
    assert (t.host, t.port, t.database) == expected


def test_parse_target_keeps_explicit_credentials() -> None:
    t = make_config(connection_string="postgresql://x:y@h/db").parse_target()
    assert (t.user, t.password) == ("u", "p")


@pytest.mark.parametrize("raw", ["", "host-only", "/db", "h:port/db"])
def test_parse_target_invalid(raw: str) -> None:
    cfg = make_config(connection_string=raw)
    with pytest.raises(ValueError):
        cfg.parse_target()
    assert cfg.display_target == "<invalid connection string>"


def test_configure_logging_sets_root_level() -> None:
    root = logging.getLogger()
    previous = root.level
    try:
        configure_logging("WARNING")
        assert root.level == logging.WARNING
    finally:
        root.setLevel(previous)


def test_log_section_and_step(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("tests.narration")
    with caplog.at_level(logging.INFO, logger="tests.narration"):
        log_section(logger, "Transaction rollback")
        log_step(logger, "insert order")
    messages = [r.getMessage() for r in caplog.records]
    assert messages[0] == "=" * 80
    assert messages[1] == "  Transaction rollback"
    assert messages[3] == "STEP: insert order"
