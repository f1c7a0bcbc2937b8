import logging
from typing import Any

from pydantic_settings import BaseSettings, SettingsConfigDict

from dbaccess.models import PoolConfig, ProductTypeEnum

_log = logging.getLogger(__name__)

_REQUIRED = ("DB_USER", "DB_PASSWORD", "DB_CONNECTION_STRING")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Use top level .env file (one level above ./backend/)
        env_file=("../.env", ".env"),
        env_ignore_empty=True,
        extra="ignore",
    )
    PROJECT_NAME: str = "dbaccess"
    TEST_ENV: str = "dev"

    DB_PRODUCT_TYPE: ProductTypeEnum = ProductTypeEnum.POSTGRES
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_CONNECTION_STRING: str = ""
    DB_POOL_MIN: int = 1
    DB_POOL_MAX: int = 10
    DB_POOL_INCREMENT: int = 1
    DB_POOL_IDLE_TIMEOUT: float = 60
    DB_POOL_ACQUIRE_TIMEOUT: float = 30
    DB_POOL_DRAIN_SECONDS: float = 10
    DB_POOL_MAX_AGE_SEC: float = 600
    DB_CONNECT_TIMEOUT: int = 10
    DB_STATEMENT_TIMEOUT: float | None = None

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    @property
    def pool_config(self) -> PoolConfig:
        return PoolConfig(
            product_type=self.DB_PRODUCT_TYPE,
            user=self.DB_USER,
            password=self.DB_PASSWORD,
            connection_string=self.DB_CONNECTION_STRING,
            min_size=self.DB_POOL_MIN,
            max_size=self.DB_POOL_MAX,
            increment=self.DB_POOL_INCREMENT,
            idle_timeout_seconds=self.DB_POOL_IDLE_TIMEOUT,
            acquire_timeout_seconds=self.DB_POOL_ACQUIRE_TIMEOUT,
            connect_timeout_seconds=self.DB_CONNECT_TIMEOUT,
            statement_timeout_seconds=self.DB_STATEMENT_TIMEOUT,
            max_age_seconds=self.DB_POOL_MAX_AGE_SEC,
        )

    def missing_required(self) -> list[str]:
        """Names of required DB_* variables that are empty."""
        return [name for name in _REQUIRED if not str(getattr(self, name)).strip()]

    def warn_missing(self) -> list[str]:
        missing = self.missing_required()
        if missing:
            _log.warning(
                "Missing environment variables: %s. "
                "Copy .env.example to .env and fill in the required values.",
                ", ".join(missing),
            )
        return missing

    def describe(self) -> dict[str, Any]:
        """Current configuration without sensitive data."""
        return {
            "environment": self.TEST_ENV,
            "product_type": self.DB_PRODUCT_TYPE.value,
            "database": self.DB_CONNECTION_STRING,
            "user": "***" if self.DB_USER else "Not Set",
            "password": "***" if self.DB_PASSWORD else "Not Set",
            "pool": f"{self.DB_POOL_MIN}-{self.DB_POOL_MAX} (+{self.DB_POOL_INCREMENT})",
            "statement_timeout": self.DB_STATEMENT_TIMEOUT,
        }


settings = Settings()  # type: ignore
