import os
from unittest.mock import MagicMock, mock_open, patch

import psycopg2
import pytest

from fuel_orders.domain.errors import BackendUnavailable
from fuel_orders.infrastructure.persistence import db_initializer
from fuel_orders.infrastructure.persistence.db_initializer import _read_sql_file, initialize_database

MODULE = 'fuel_orders.infrastructure.persistence.db_initializer'


class InitConfig:
    RUN_DB_INIT_ON_STARTUP = True


class SkipConfig:
    RUN_DB_INIT_ON_STARTUP = False


# --- Mocks Comunes (Fixtures) ---

@pytest.fixture
def mock_db_connection():
    mock_cursor = MagicMock()
    mock_conn = MagicMock()
    mock_conn.cursor.return_value = mock_cursor
    return mock_conn


@pytest.fixture(autouse=True)
def mock_db_connector(mock_db_connection):
    with patch(f'{MODULE}.get_connection', return_value=mock_db_connection) as get_conn_mock, \
            patch(f'{MODULE}.release_connection') as release_conn_mock:
        yield get_conn_mock, release_conn_mock


# --- _read_sql_file ---

def test_read_sql_file_success():
    with patch('builtins.open', mock_open(read_data="CREATE SCHEMA fuel;")):
        assert _read_sql_file("dummy.sql") == "CREATE SCHEMA fuel;"


def test_read_sql_file_not_found():
    with patch('builtins.open', side_effect=FileNotFoundError):
        assert _read_sql_file("missing.sql") == ""


def test_packaged_sql_files_exist():
    assert os.path.isfile(db_initializer.SCHEMA_FILE)
    assert os.path.isfile(db_initializer.INSERT_DATA_FILE)
    with open(db_initializer.SCHEMA_FILE, encoding='utf-8') as f:
        assert "fuel.orders" in f.read()


# --- initialize_database ---

def test_skipped_by_configuration(mock_db_connector):
    get_conn_mock, _ = mock_db_connector
    assert initialize_database(SkipConfig) is False
    get_conn_mock.assert_not_called()


@patch(f'{MODULE}._read_sql_file', side_effect=["CREATE TABLE x;", "INSERT INTO x;"])
def test_runs_schema_and_seed(mock_read, mock_db_connection, mock_db_connector):
    _, release_conn_mock = mock_db_connector

    assert initialize_database(InitConfig) is True

    cursor = mock_db_connection.cursor.return_value
    assert [c.args[0] for c in cursor.execute.call_args_list] == ["CREATE TABLE x;", "INSERT INTO x;"]
    assert mock_db_connection.commit.call_count == 2
    release_conn_mock.assert_called_once_with(mock_db_connection)


@patch(f'{MODULE}._read_sql_file', side_effect=["", ""])
def test_empty_schema_aborts(mock_read, mock_db_connector):
    get_conn_mock, _ = mock_db_connector
    assert initialize_database(InitConfig) is False
    get_conn_mock.assert_not_called()


@patch(f'{MODULE}._read_sql_file', side_effect=["CREATE TABLE x;", "INSERT INTO x;"])
def test_seed_failure_keeps_schema(mock_read, mock_db_connection):
    cursor = mock_db_connection.cursor.return_value
    cursor.execute.side_effect = [None, psycopg2.ProgrammingError("bad insert")]

    assert initialize_database(InitConfig) is True
    mock_db_connection.rollback.assert_called_once()


@patch(f'{MODULE}._read_sql_file', side_effect=["CREATE TABLE x;", ""])
def test_schema_failure(mock_read, mock_db_connection):
    mock_db_connection.cursor.return_value.execute.side_effect = psycopg2.OperationalError("down")

    assert initialize_database(InitConfig) is False
    mock_db_connection.rollback.assert_called_once()


@patch(f'{MODULE}._read_sql_file', side_effect=["CREATE TABLE x;", ""])
def test_pool_unavailable(mock_read, mock_db_connector):
    get_conn_mock, release_conn_mock = mock_db_connector
    get_conn_mock.side_effect = BackendUnavailable("Database pool is not initialized.")

    assert initialize_database(InitConfig) is False
    release_conn_mock.assert_not_called()
