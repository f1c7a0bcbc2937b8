from unittest.mock import MagicMock, patch

import pytest
from tenacity import RetryError, stop_after_attempt

from dbaccess.pre_start import init, logger, main
from tests.utils.pool import make_config


def test_init_successful_connection() -> None:
    conn_mock = MagicMock()

    with (
        patch("dbaccess.pre_start.connect", return_value=conn_mock),
        patch("dbaccess.pre_start.health_check", return_value=True) as check_mock,
        patch.object(logger, "info"),
        patch.object(logger, "error"),
        patch.object(logger, "warning"),
    ):
        try:
            init(make_config())
            connection_successful = True
        except Exception:
            connection_successful = False

        assert (
            connection_successful
        ), "The database connection should be successful and not raise an exception."

        check_mock.assert_called_once()
        conn_mock.close.assert_called_once()


def test_init_gives_up_when_database_stays_down() -> None:
    conn_mock = MagicMock()

    with (
        patch("dbaccess.pre_start.connect", return_value=conn_mock),
        patch("dbaccess.pre_start.health_check", return_value=False),
        patch.object(logger, "error") as error_mock,
    ):
        with pytest.raises(RetryError):
            init.retry_with(stop=stop_after_attempt(2), wait=lambda _: 0)(make_config())

    assert error_mock.call_count == 2
    assert conn_mock.close.call_count == 2


def test_main_waits_for_configured_database() -> None:
    with (
        patch("dbaccess.pre_start.configure_logging"),
        patch("dbaccess.pre_start.init") as init_mock,
        patch("dbaccess.pre_start.settings") as settings_mock,
    ):
        settings_mock.pool_config = make_config()
        main()

    settings_mock.warn_missing.assert_called_once()
    init_mock.assert_called_once_with(settings_mock.pool_config)
