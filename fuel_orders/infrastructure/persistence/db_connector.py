# fuel_orders/infrastructure/persistence/db_connector.py
import logging

import psycopg2
from psycopg2 import pool

from fuel_orders.config import Config
from fuel_orders.domain.errors import BackendUnavailable

logger = logging.getLogger(__name__)

# Se usa un pool de conexiones para manejo eficiente en un entorno web
db_pool = None


def init_db_pool(config=Config):
    """Inicializa el pool de conexiones de PostgreSQL."""
    global db_pool
    if db_pool is None:
        try:
            db_pool = pool.SimpleConnectionPool(
                minconn=int(config.DB_POOL_MIN),
                maxconn=int(config.DB_POOL_MAX),
                host=config.DB_HOST,
                port=config.DB_PORT,
                database=config.DB_NAME,
                user=config.DB_USER,
                password=config.DB_PASSWORD
            )
            logger.info("Pool de conexiones a la base de datos inicializado.")
        except psycopg2.Error as e:
            logger.error(f"No se pudo conectar a la base de datos. {e}")
            raise BackendUnavailable("Initial database connection failed.") from e


def close_db_pool():
    global db_pool
    if db_pool is not None:
        db_pool.closeall()
        db_pool = None


def get_connection():
    """Obtiene una conexión del pool."""
    if db_pool is None:
        raise BackendUnavailable("Database pool is not initialized.")
    try:
        return db_pool.getconn()
    except pool.PoolError as e:
        logger.warning(f"Pool de conexiones agotado: {e}")
        raise BackendUnavailable("No database connection available.") from e


def release_connection(conn):
    """Devuelve una conexión al pool."""
    if db_pool:
        db_pool.putconn(conn)


def handle_db_error(error: psycopg2.Error, conn, operation: str):
    """
    Deshace la transacción en curso y relanza el error.
    Las caídas de conexión se traducen a BackendUnavailable (reintentable).
    """
    logger.error(f"Error de base de datos al {operation}: {error}")
    if conn is not None and not conn.closed:
        try:
            conn.rollback()
        except psycopg2.Error as rollback_error:
            logger.warning(f"No se pudo deshacer la transacción: {rollback_error}")
    if isinstance(error, (psycopg2.OperationalError, psycopg2.InterfaceError)):
        raise BackendUnavailable(f"Database unavailable while trying to {operation}.") from error
    raise error
