from collections.abc import Generator

import pytest

from dbaccess.core.pool import PoolManager
from dbaccess.engines.sql import DatabaseHelper
from dbaccess.models import PoolConfig
from tests.utils.fake_db import FakeDatabase
from tests.utils.pool import make_config


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def pool_config() -> PoolConfig:
    return make_config()


@pytest.fixture
def pool(fake_db: FakeDatabase, pool_config: PoolConfig) -> Generator[PoolManager, None, None]:
    pm = PoolManager(pool_config, connect_fn=fake_db.connect)
    yield pm
    pm.shutdown(drain_seconds=0)


@pytest.fixture
def db(pool: PoolManager) -> DatabaseHelper:
    return DatabaseHelper(pool)
