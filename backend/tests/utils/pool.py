from typing import Any

from dbaccess.models import PoolConfig, ProductTypeEnum


def make_config(**overrides: Any) -> PoolConfig:
    params: dict[str, Any] = {
        "product_type": ProductTypeEnum.POSTGRES,
        "user": "u",
        "password": "p",
        "connection_string": "localhost:5432/app",
        "min_size": 1,
        "max_size": 5,
        "increment": 1,
        "acquire_timeout_seconds": 2,
    }
    params.update(overrides)
    return PoolConfig(**params)
