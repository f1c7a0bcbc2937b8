import logging

from tenacity import after_log, before_log, retry, stop_after_attempt, wait_fixed

from dbaccess.core.config import settings
from dbaccess.core.log import configure_logging
from dbaccess.core.pool import connect, health_check
from dbaccess.models import PoolConfig

logger = logging.getLogger(__name__)

max_tries = 60 * 5  # 5 minutes
wait_seconds = 1


@retry(
    stop=stop_after_attempt(max_tries),
    wait=wait_fixed(wait_seconds),
    before=before_log(logger, logging.INFO),
    after=after_log(logger, logging.WARNING),
)
def init(config: PoolConfig) -> None:
    conn = None
    try:
        # Try to open a connection and run SELECT 1 to check if the DB is awake
        conn = connect(config)
        if not health_check(conn, config.product_type):
            raise RuntimeError(f"SELECT 1 failed on {config.display_target}")
    except Exception as e:
        logger.error(e)
        raise e
    finally:
        if conn is not None:
            conn.close()


def main() -> None:
    configure_logging()
    settings.warn_missing()
    config = settings.pool_config
    logger.info("Waiting for database %s", config.display_target)
    init(config)
    logger.info("Database is ready")


if __name__ == "__main__":
    main()
