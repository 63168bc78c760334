# fuel_orders/application/document_use_cases.py
import logging
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, List, Optional

from fuel_orders.application.use_cases import get_visible_order
from fuel_orders.domain.context import RequestContext
from fuel_orders.domain.entities import DOCUMENT_TYPES, Document
from fuel_orders.domain.errors import ValidationError
from fuel_orders.domain.interfaces import DocumentRepository, FileStorage, OrderRepository

logger = logging.getLogger(__name__)


class ListDocumentsUseCase:
    def __init__(self, order_repository: OrderRepository, document_repository: DocumentRepository):
        self.order_repository = order_repository
        self.document_repository = document_repository

    def execute(self, context: RequestContext, order_id: str) -> List[Document]:
        get_visible_order(self.order_repository, context, order_id)
        return self.document_repository.list_documents(order_id)


class GetDocumentUrlUseCase:
    """Caso de uso: URL temporal para descargar un documento de un pedido visible."""

    def __init__(self, order_repository: OrderRepository, document_repository: DocumentRepository,
                 storage: FileStorage):
        self.order_repository = order_repository
        self.document_repository = document_repository
        self.storage = storage

    def execute(self, context: RequestContext, order_id: str, document_id: int) -> Dict[str, Any]:
        get_visible_order(self.order_repository, context, order_id)
        document = self.document_repository.get_document(order_id, document_id)
        return {
            'document': document,
            'url': self.storage.get_url(document.storage_path),
        }


class UploadDocumentUseCase:
    """
    Caso de uso: Adjuntar un documento (Ispratnica, CMR, POD, foto...) a un pedido.
    El archivo va al FileStorage y los metadatos al DocumentRepository.
    """

    def __init__(self, order_repository: OrderRepository, document_repository: DocumentRepository,
                 storage: FileStorage):
        self.order_repository = order_repository
        self.document_repository = document_repository
        self.storage = storage

    def execute(self, context: RequestContext, order_id: str, document_type: str, file_name: str,
                stream: BinaryIO, content_type: Optional[str] = None,
                file_size: Optional[int] = None) -> Document:
        # 1. Validaciones
        if document_type not in DOCUMENT_TYPES:
            raise ValidationError(f"Invalid document_type '{document_type}'.", field="document_type")
        if not file_name or stream is None:
            raise ValidationError("A file is required.", field="file")
        get_visible_order(self.order_repository, context, order_id)

        # 2. Subir el archivo
        content_type = content_type or 'application/octet-stream'
        storage_path = self.storage.upload(order_id, file_name, stream, content_type)

        # 3. Registrar metadatos
        document = Document(
            order_id=order_id,
            file_name=file_name,
            document_type=document_type,
            storage_path=storage_path,
            uploaded_by=context.user_id,
            file_size=file_size,
            mime_type=content_type,
            uploaded_at=datetime.now(timezone.utc),
        )
        saved = self.document_repository.insert_document(document)
        logger.info(f"Documento {document_type} '{file_name}' adjuntado a {order_id} por {context.user_id}")
        return saved
