# fuel_orders/domain/interfaces.py
from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any, BinaryIO
from .entities import Order, OrderNote, Document, Client, RegulatoryPrice


class OrderRepository(ABC):
    """
    Contrato (Interfaz) para el almacenamiento de Pedidos y sus notas.
    La capa de Aplicación solo conoce esta Interfaz; existen dos adaptadores
    intercambiables (PostgreSQL y memoria).
    """

    @abstractmethod
    def list_orders(self) -> List[Order]:
        """Recupera todos los pedidos, más recientes primero."""
        pass

    @abstractmethod
    def get_order(self, order_id: str) -> Order:
        """Recupera un pedido. Lanza NotFound si no existe."""
        pass

    @abstractmethod
    def insert_order(self, order: Order) -> Order:
        """Inserta un pedido nuevo (asigna order_id si viene vacío) y lo retorna."""
        pass

    @abstractmethod
    def apply_transition(self, order_id: str, result, dedupe_key: str) -> Order:
        """
        Persiste un TransitionResult exitoso de forma atómica:
        compare-and-set sobre el estado esperado (y sus precondiciones)
        más la nota de auditoría, o nada.
        Lanza InvalidTransition si otro escritor ganó la carrera.
        """
        pass

    @abstractmethod
    def has_transition(self, dedupe_key: str) -> bool:
        """Indica si ya existe la nota de auditoría con esa clave de deduplicación."""
        pass

    @abstractmethod
    def append_note(self, note: OrderNote) -> OrderNote:
        """Agrega una nota libre (solo inserción)."""
        pass

    @abstractmethod
    def list_notes(self, order_id: str) -> List[OrderNote]:
        """Notas del pedido en orden cronológico ascendente."""
        pass


class ReferenceDataRepository(ABC):
    """Contrato para datos maestros (clientes, choferes, camiones, transportistas) y precios."""

    @abstractmethod
    def list_active(self, kind: str) -> List[Any]:
        """Entidades activas del tipo indicado, ordenadas por su nombre visible."""
        pass

    @abstractmethod
    def get(self, kind: str, entity_id: str) -> Any:
        """Lanza NotFound si la entidad no existe."""
        pass

    @abstractmethod
    def create(self, kind: str, data: Dict[str, Any], actor_id: str) -> Any:
        pass

    @abstractmethod
    def update(self, kind: str, entity_id: str, data: Dict[str, Any], actor_id: str) -> Any:
        pass

    @abstractmethod
    def deactivate(self, kind: str, entity_id: str, actor_id: str) -> None:
        """Baja lógica (active = False); nunca borra la fila."""
        pass

    @abstractmethod
    def list_regulatory_prices(self) -> List[RegulatoryPrice]:
        """Precios vigentes por tipo de producto."""
        pass

    @abstractmethod
    def get_current_price(self, product_type: str) -> Optional[RegulatoryPrice]:
        pass

    @abstractmethod
    def set_regulatory_price(self, product_type: str, base_price: float, unit: str,
                             actor_id: str) -> RegulatoryPrice:
        """Cierra el precio vigente y abre uno nuevo."""
        pass

    def list_clients(self) -> List[Client]:
        return self.list_active('clients')

    def get_client(self, client_id: str) -> Client:
        return self.get('clients', client_id)

    def list_drivers(self):
        return self.list_active('drivers')

    def list_trucks(self):
        return self.list_active('trucks')

    def list_transport_companies(self):
        return self.list_active('companies')


class DocumentRepository(ABC):
    """Contrato para los metadatos de documentos adjuntos."""

    @abstractmethod
    def list_documents(self, order_id: str) -> List[Document]:
        """Documentos del pedido, más recientes primero."""
        pass

    @abstractmethod
    def insert_document(self, document: Document) -> Document:
        pass

    @abstractmethod
    def get_document(self, order_id: str, document_id: int) -> Document:
        """Documento del pedido; NotFound si no existe o pertenece a otro pedido."""
        pass


class FileStorage(ABC):
    """Almacenamiento de blobs; los metadatos quedan en DocumentRepository."""

    @abstractmethod
    def upload(self, order_id: str, file_name: str, stream: BinaryIO, content_type: str) -> str:
        """Sube el archivo y retorna su ruta de almacenamiento."""
        pass

    @abstractmethod
    def get_url(self, storage_path: str) -> str:
        """URL temporal de descarga para una ruta retornada por upload."""
        pass
