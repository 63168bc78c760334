# fuel_orders/config.py
import os


class Config:
    """Clase base de configuración, con variables de entorno para DB y flujo de pedidos."""
    # Configuración de la Base de Datos (PostgreSQL)
    DB_HOST = os.environ.get('DB_HOST', 'localhost')
    DB_PORT = os.environ.get('DB_PORT', '5432')
    DB_NAME = os.environ.get('DB_NAME', 'fuel_orders_db')
    DB_USER = os.environ.get('DB_USER', 'postgres')
    DB_PASSWORD = os.environ.get('DB_PASSWORD', 'postgres')
    DB_POOL_MIN = int(os.environ.get('DB_POOL_MIN', '1'))
    DB_POOL_MAX = int(os.environ.get('DB_POOL_MAX', '10'))
    # Parámetros para la inicialización de la BD
    RUN_DB_INIT_ON_STARTUP = os.environ.get('RUN_DB_INIT_ON_STARTUP', 'False').lower() == 'true'

    # Backend de persistencia: 'postgres' o 'memory'
    ORDER_BACKEND = os.environ.get('ORDER_BACKEND', 'postgres').lower()

    # Reintentos ante BackendUnavailable
    RETRY_MAX_ATTEMPTS = int(os.environ.get('RETRY_MAX_ATTEMPTS', '3'))
    RETRY_BASE_DELAY = float(os.environ.get('RETRY_BASE_DELAY', '0.5'))

    # Almacenamiento de documentos (S3)
    DOCUMENTS_BUCKET = os.environ.get('DOCUMENTS_BUCKET', 'fuel-order-documents')
    DOCUMENT_URL_EXPIRES = int(os.environ.get('DOCUMENT_URL_EXPIRES', '3600'))

    ANALYTICS_DEFAULT_DAYS = int(os.environ.get('ANALYTICS_DEFAULT_DAYS', '30'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
