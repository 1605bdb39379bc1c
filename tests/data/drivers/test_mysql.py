# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the MySQL driver and the driver registry (client library mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import mysql.connector
import pytest

from graphite_data.config import DbSourceConfig
from graphite_data.data.drivers import DRIVERS, DbDriver, MySQLDriver, escape_string, get_driver, register_driver


@pytest.fixture
def tcp() -> DbSourceConfig:
    return DbSourceConfig(host="db1", user="app", password="secret", name="app", port=3307)


@pytest.fixture
def sock() -> DbSourceConfig:
    return DbSourceConfig(user="app", password="secret", name="app", socket="/run/mysqld/mysqld.sock")


def _cursor(rows=None, rowcount=0, lastrowid=None, columns=()):
    cursor = MagicMock()
    cursor.with_rows = rows is not None
    cursor.fetchall.return_value = rows or []
    cursor.column_names = columns
    cursor.rowcount = rowcount
    cursor.lastrowid = lastrowid
    return cursor


# ---------------------------------------------------------------------------
# Registry Tests
# ---------------------------------------------------------------------------


class TestRegistry:
    """Test get_driver() and register_driver()."""

    def test_mysql(self, tcp):
        driver = get_driver("MySQL", tcp)
        assert isinstance(driver, MySQLDriver)
        assert driver.credentials is tcp

    def test_unknown(self, tcp):
        with pytest.raises(ValueError, match="Supported: mysql"):
            get_driver("oracle", tcp)

    def test_register(self, tcp):
        class NullDriver(MySQLDriver):
            pass

        register_driver("Null", NullDriver)
        try:
            assert isinstance(get_driver("null", tcp), NullDriver)
        finally:
            DRIVERS.pop("null")

    def test_is_db_driver(self):
        assert issubclass(MySQLDriver, DbDriver)


class TestEscape:
    """Test escape_string()."""

    def test_quotes_and_controls(self):
        assert escape_string("it's") == "it\\'s"
        assert escape_string('say "hi"') == 'say \\"hi\\"'
        assert escape_string("a\\b") == "a\\\\b"
        assert escape_string("line\nbreak") == "line\\nbreak"

    def test_non_strings(self):
        assert escape_string(42) == "42"


# ---------------------------------------------------------------------------
# Connection Handling Tests
# ---------------------------------------------------------------------------


class TestConnect:
    """Test open() and close()."""

    def test_connect_args_tcp(self, tcp):
        args = MySQLDriver(tcp).connect_args()
        assert args == {
            "user": "app",
            "password": "secret",
            "database": "app",
            "charset": "utf8mb4",
            "autocommit": True,
            "host": "db1",
            "port": 3307,
        }

    def test_connect_args_socket(self, sock):
        args = MySQLDriver(sock).connect_args()
        assert args["unix_socket"] == "/run/mysqld/mysqld.sock"
        assert "host" not in args

    def test_open(self, tcp):
        with patch("mysql.connector.connect") as connect:
            driver = MySQLDriver(tcp)
            assert driver.open() is True
            assert driver.open() is True
        connect.assert_called_once_with(**driver.connect_args())
        assert driver.is_open

    def test_open_failure(self, tcp):
        error = mysql.connector.Error(msg="Access denied for user 'app'", errno=1045)
        with patch("mysql.connector.connect", side_effect=error):
            driver = MySQLDriver(tcp)
            assert driver.open() is False
        assert not driver.is_open
        assert driver.connect_errno == 1045
        assert driver.connect_error == "Access denied for user 'app'"

    def test_close(self, tcp):
        with patch("mysql.connector.connect") as connect:
            driver = MySQLDriver(tcp)
            driver.open()
        driver.close()
        driver.close()
        connect.return_value.close.assert_called_once_with()
        assert not driver.is_open

    def test_close_error_ignored(self, tcp):
        with patch("mysql.connector.connect") as connect:
            connect.return_value.close.side_effect = mysql.connector.Error(msg="gone", errno=2006)
            driver = MySQLDriver(tcp)
            driver.open()
        driver.close()
        assert not driver.is_open

    def test_host_info(self, tcp, sock):
        assert MySQLDriver(tcp).host_info == "db1 via TCP/IP port 3307"
        assert MySQLDriver(sock).host_info == "Localhost via UNIX socket /run/mysqld/mysqld.sock"


# ---------------------------------------------------------------------------
# Query Tests
# ---------------------------------------------------------------------------


class TestQuery:
    """Test query() result conversion."""

    @pytest.fixture
    def opened(self, tcp):
        with patch("mysql.connector.connect") as connect:
            driver = MySQLDriver(tcp)
            driver.open()
        return driver, connect.return_value

    def test_rows(self, opened):
        driver, link = opened
        cursor = _cursor(rows=[{"a": 1}, {"a": 2}], columns=("a",))
        link.cursor.return_value = cursor
        result = driver.query("SELECT a FROM t")
        link.cursor.assert_called_once_with(dictionary=True, buffered=True)
        cursor.execute.assert_called_once_with("SELECT a FROM t")
        cursor.close.assert_called_once_with()
        assert result.ok
        assert result.rows == [{"a": 1}, {"a": 2}]
        assert result.columns == ["a"]
        assert result.affected_rows == 2

    def test_write(self, opened):
        driver, link = opened
        link.cursor.return_value = _cursor(rowcount=3, lastrowid=9)
        result = driver.query("INSERT INTO t VALUES (1)")
        assert result.ok
        assert result.rows == []
        assert result.affected_rows == 3
        assert result.insert_id == 9

    def test_error(self, opened):
        driver, link = opened
        cursor = _cursor()
        cursor.execute.side_effect = mysql.connector.Error(msg="Lost connection to MySQL server", errno=2013)
        link.cursor.return_value = cursor
        result = driver.query("SELECT 1")
        assert not result
        assert result.errno == 2013
        assert result.error == "Lost connection to MySQL server"
        cursor.close.assert_called_once_with()

    def test_closed(self, tcp):
        result = MySQLDriver(tcp).query("SELECT 1")
        assert result.errno == 2006
