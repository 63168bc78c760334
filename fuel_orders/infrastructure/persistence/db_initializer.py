# fuel_orders/infrastructure/persistence/db_initializer.py
import logging
import os

import psycopg2

from fuel_orders.config import Config
from fuel_orders.domain.errors import BackendUnavailable
from .db_connector import get_connection, release_connection

logger = logging.getLogger(__name__)

# Rutas a los archivos SQL
PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
RESOURCES_DIR = os.path.join(PACKAGE_DIR, 'resources')
SCHEMA_FILE = os.path.join(RESOURCES_DIR, 'schema.sql')
INSERT_DATA_FILE = os.path.join(RESOURCES_DIR, 'insert_data.sql')


def _read_sql_file(filepath: str) -> str:
    """Lee el contenido de un archivo SQL."""
    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            return f.read()
    except FileNotFoundError:
        logger.error(f"Archivo SQL no encontrado: {filepath}")
        return ""


def initialize_database(config=Config) -> bool:
    """
    Crea el esquema y carga los datos maestros iniciales si las tablas están vacías.
    Retorna True si el esquema quedó aplicado.
    """
    if not config.RUN_DB_INIT_ON_STARTUP:
        logger.info("Inicialización de la base de datos omitida por configuración.")
        return False

    schema_sql = _read_sql_file(SCHEMA_FILE)
    insert_data_sql = _read_sql_file(INSERT_DATA_FILE)

    if not schema_sql:
        logger.error("El script de esquema (schema.sql) está vacío o no se encontró. Abortando inicialización.")
        return False

    conn = None
    try:
        conn = get_connection()
        cursor = conn.cursor()

        # 1. Crear Tablas
        logger.info("Ejecutando scripts de creación de esquema...")
        cursor.execute(schema_sql)
        conn.commit()

        # 2. Datos iniciales (las sentencias usan ON CONFLICT DO NOTHING)
        if insert_data_sql:
            logger.info("Ejecutando scripts de inserción de datos iniciales...")
            try:
                cursor.execute(insert_data_sql)
                conn.commit()
            except psycopg2.ProgrammingError as pe:
                logger.warning(f"Fallo al ejecutar el script de inserción: {pe}")
                conn.rollback()
        return True

    except psycopg2.Error as e:
        logger.error(f"Fallo durante la inicialización de la base de datos: {e}")
        if conn:
            conn.rollback()
        return False
    except BackendUnavailable as e:
        logger.error(f"{e}")
        return False
    finally:
        if conn:
            release_connection(conn)
