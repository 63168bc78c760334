# fuel_orders/app.py
import logging

from dotenv import load_dotenv  # Necesario para cargar variables de entorno
from flask import Flask, jsonify
from flask_cors import CORS

from fuel_orders.application.analytics_use_case import AnalyticsUseCase
from fuel_orders.application.document_use_cases import (
    GetDocumentUrlUseCase,
    ListDocumentsUseCase,
    UploadDocumentUseCase,
)
from fuel_orders.application.reference_use_cases import (
    ListReferenceDataUseCase,
    ListRegulatoryPricesUseCase,
    ManageReferenceDataUseCase,
    UpdateRegulatoryPriceUseCase,
)
from fuel_orders.application.use_cases import (
    AddNoteUseCase,
    ApplyWorkflowActionUseCase,
    CreateOrderUseCase,
    DashboardUseCase,
    EnterDocumentUseCase,
    GetOrderUseCase,
    ListNotesUseCase,
    ListOrdersUseCase,
)
from fuel_orders.config import Config
from fuel_orders.domain.errors import BackendUnavailable
from fuel_orders.infrastructure.web.flask_analytics_routes import create_analytics_blueprint
from fuel_orders.infrastructure.web.flask_reference_routes import create_reference_blueprint
from fuel_orders.infrastructure.web.flask_routes import create_api_blueprint

# Cargar variables de entorno del archivo .env (si existe)
load_dotenv()

logger = logging.getLogger(__name__)


def build_backend(config):
    """Retorna (pedidos, datos maestros, documentos, archivos) según ORDER_BACKEND."""
    if config.ORDER_BACKEND == 'memory':
        from fuel_orders.infrastructure.persistence.memory_repository import (
            InMemoryDocumentRepository,
            InMemoryFileStorage,
            InMemoryOrderRepository,
            InMemoryReferenceDataRepository,
        )
        return (InMemoryOrderRepository(), InMemoryReferenceDataRepository(),
                InMemoryDocumentRepository(), InMemoryFileStorage())

    if config.ORDER_BACKEND == 'postgres':
        from fuel_orders.infrastructure.persistence.db_connector import init_db_pool
        from fuel_orders.infrastructure.persistence.db_initializer import initialize_database
        from fuel_orders.infrastructure.persistence.pg_document_repository import PgDocumentRepository
        from fuel_orders.infrastructure.persistence.pg_reference_repository import PgReferenceDataRepository
        from fuel_orders.infrastructure.persistence.pg_repository import PgOrderRepository
        from fuel_orders.infrastructure.storage.s3_storage import S3FileStorage

        # El servicio arranca igual; las peticiones responderán 503 hasta que la BD esté disponible.
        try:
            init_db_pool(config)
            initialize_database(config)
        except BackendUnavailable as e:
            logger.critical(f"Fallo al inicializar la BD. {e}")

        return (PgOrderRepository(), PgReferenceDataRepository(),
                PgDocumentRepository(),
                S3FileStorage(config.DOCUMENTS_BUCKET, url_expires=config.DOCUMENT_URL_EXPIRES))

    raise ValueError(f"Unknown ORDER_BACKEND '{config.ORDER_BACKEND}'")


def create_app(config_object=None, **overrides):
    """Crea, configura y cablea la aplicación Flask siguiendo la Arquitectura Limpia."""
    config = type('AppConfig', (config_object or Config,), overrides)

    app = Flask(__name__)
    app.config.from_object(config)

    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )

    # --- CABLEADO DE DEPENDENCIAS (Dependency Injection - DI) ---

    # 1. Infraestructura (PostgreSQL + S3, o memoria)
    order_repository, reference_repository, document_repository, file_storage = build_backend(config)

    # 2. Capa de Aplicación (Use Cases)
    workflow_case = ApplyWorkflowActionUseCase(
        order_repository,
        max_attempts=config.RETRY_MAX_ATTEMPTS,
        base_delay=config.RETRY_BASE_DELAY,
    )
    api_bp = create_api_blueprint(
        list_case=ListOrdersUseCase(order_repository),
        get_case=GetOrderUseCase(order_repository),
        create_case=CreateOrderUseCase(order_repository, reference_repository),
        workflow_case=workflow_case,
        document_entry_case=EnterDocumentUseCase(workflow_case),
        list_notes_case=ListNotesUseCase(order_repository),
        add_note_case=AddNoteUseCase(order_repository),
        dashboard_case=DashboardUseCase(order_repository),
        list_documents_case=ListDocumentsUseCase(order_repository, document_repository),
        upload_document_case=UploadDocumentUseCase(order_repository, document_repository, file_storage),
        document_url_case=GetDocumentUrlUseCase(order_repository, document_repository, file_storage),
    )
    reference_bp = create_reference_blueprint(
        list_case=ListReferenceDataUseCase(reference_repository),
        manage_case=ManageReferenceDataUseCase(reference_repository),
        list_prices_case=ListRegulatoryPricesUseCase(reference_repository),
        update_price_case=UpdateRegulatoryPriceUseCase(reference_repository),
    )
    analytics_bp = create_analytics_blueprint(
        AnalyticsUseCase(order_repository, default_days=config.ANALYTICS_DEFAULT_DAYS)
    )

    # Configurar CORS
    CORS(app, resources={
        r"/*": {
            "origins": "*",
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "X-Requested-With",
                              "X-User-Id", "X-User-Name", "X-Department"]
        }
    })

    # 3. Capa de Presentación (Web)
    app.register_blueprint(api_bp, url_prefix='/orders')
    app.register_blueprint(reference_bp, url_prefix='/reference')
    app.register_blueprint(analytics_bp, url_prefix='/analytics')

    app.extensions['fuel_orders'] = {
        'orders': order_repository,
        'reference': reference_repository,
        'documents': document_repository,
        'storage': file_storage,
    }

    # --- Ruta de control ---
    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok', 'backend': config.ORDER_BACKEND})

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=8080, debug=False)
