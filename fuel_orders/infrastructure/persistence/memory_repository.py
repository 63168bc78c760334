# fuel_orders/infrastructure/persistence/memory_repository.py
"""
Adaptadores en memoria, intercambiables con los de PostgreSQL.
Un threading.Lock serializa cada verificación-y-escritura.
"""
import logging
import threading
from dataclasses import asdict, replace
from datetime import datetime, timezone
from typing import Any, BinaryIO, Dict, List, Optional

from fuel_orders.domain.entities import REFERENCE_KINDS, Document, Order, OrderNote, RegulatoryPrice
from fuel_orders.domain.errors import InvalidTransition, NotFound, ValidationError
from fuel_orders.domain.interfaces import DocumentRepository, FileStorage, OrderRepository, ReferenceDataRepository
from fuel_orders.domain.visibility import as_utc_datetime

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class InMemoryOrderRepository(OrderRepository):

    def __init__(self, orders: Optional[List[Order]] = None):
        self._lock = threading.Lock()
        self._orders: Dict[str, Order] = {}
        self._notes: List[OrderNote] = []
        self._order_sequence = 0
        self._note_sequence = 0
        for order in orders or []:
            self.insert_order(order)

    def list_orders(self) -> List[Order]:
        with self._lock:
            orders = [replace(o) for o in self._orders.values()]
        orders.sort(key=lambda o: as_utc_datetime(o.order_date) or _EPOCH, reverse=True)
        return orders

    def get_order(self, order_id: str) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise NotFound(f"Order {order_id} not found.")
            return replace(order)

    def insert_order(self, order: Order) -> Order:
        with self._lock:
            if not order.order_id:
                self._order_sequence += 1
                order.order_id = f"ORD-{self._order_sequence:06d}"
            if order.order_id in self._orders:
                raise ValidationError(f"Order {order.order_id} already exists.", field="order_id")
            self._orders[order.order_id] = replace(order)
            return replace(order)

    def _store_note(self, note: OrderNote) -> OrderNote:
        self._note_sequence += 1
        stored = replace(note, note_id=self._note_sequence,
                         created_at=note.created_at or datetime.now(timezone.utc))
        self._notes.append(stored)
        return replace(stored)

    def apply_transition(self, order_id: str, result, dedupe_key: str) -> Order:
        with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                raise NotFound(f"Order {order_id} not found.")

            # Compare-and-set: estado esperado y campos que deben seguir vacíos
            lost = current.status != result.expected_status or any(
                not _is_blank(getattr(current, name)) for name in result.empty_fields
            )
            if lost:
                logger.warning(
                    f"Transición {result.action.value} sobre {order_id} perdida: "
                    f"estado actual '{current.status.value}'"
                )
                raise InvalidTransition(
                    f"Order {order_id} changed concurrently (status is '{current.status.value}')."
                )

            updated = replace(current, **result.changes)
            self._orders[order_id] = updated
            if not any(n.dedupe_key == dedupe_key for n in self._notes):
                self._store_note(replace(result.note, dedupe_key=dedupe_key))
            return replace(updated)

    def has_transition(self, dedupe_key: str) -> bool:
        with self._lock:
            return any(n.dedupe_key == dedupe_key for n in self._notes)

    def append_note(self, note: OrderNote) -> OrderNote:
        with self._lock:
            if note.order_id not in self._orders:
                raise NotFound(f"Order {note.order_id} not found.")
            return self._store_note(note)

    def list_notes(self, order_id: str) -> List[OrderNote]:
        with self._lock:
            notes = [replace(n) for n in self._notes if n.order_id == order_id]
        # sort estable: a igual created_at se respeta el orden de inserción
        notes.sort(key=lambda n: as_utc_datetime(n.created_at) or _EPOCH)
        return notes


class InMemoryReferenceDataRepository(ReferenceDataRepository):

    def __init__(self):
        self._lock = threading.Lock()
        self._entities: Dict[str, Dict[str, Any]] = {kind: {} for kind in REFERENCE_KINDS}
        self._prices: List[RegulatoryPrice] = []

    def _kind_entities(self, kind: str) -> Dict[str, Any]:
        if kind not in self._entities:
            raise ValidationError(f"Unknown reference data '{kind}'.", field="kind")
        return self._entities[kind]

    def list_active(self, kind: str) -> List[Any]:
        reference_kind = REFERENCE_KINDS[kind]
        with self._lock:
            active = [replace(e) for e in self._kind_entities(kind).values() if e.active]
        active.sort(key=lambda e: str(getattr(e, reference_kind.display) or ""))
        return active

    def get(self, kind: str, entity_id: str) -> Any:
        with self._lock:
            entity = self._kind_entities(kind).get(entity_id)
            if entity is None:
                raise NotFound(f"{kind} '{entity_id}' not found.")
            return replace(entity)

    def create(self, kind: str, data: Dict[str, Any], actor_id: str) -> Any:
        reference_kind = REFERENCE_KINDS[kind]
        entity = reference_kind.entity.from_dict(data)
        entity_id = getattr(entity, reference_kind.key)
        with self._lock:
            entities = self._kind_entities(kind)
            if entity_id in entities:
                raise ValidationError(f"{kind} '{entity_id}' already exists.", field=reference_kind.key)
            entities[entity_id] = entity
            return replace(entity)

    def update(self, kind: str, entity_id: str, data: Dict[str, Any], actor_id: str) -> Any:
        reference_kind = REFERENCE_KINDS[kind]
        with self._lock:
            entities = self._kind_entities(kind)
            current = entities.get(entity_id)
            if current is None:
                raise NotFound(f"{kind} '{entity_id}' not found.")
            merged = asdict(current)
            merged.update({k: v for k, v in data.items() if k != reference_kind.key})
            updated = reference_kind.entity.from_dict(merged)
            entities[entity_id] = updated
            return replace(updated)

    def deactivate(self, kind: str, entity_id: str, actor_id: str) -> None:
        with self._lock:
            entities = self._kind_entities(kind)
            current = entities.get(entity_id)
            if current is None:
                raise NotFound(f"{kind} '{entity_id}' not found.")
            entities[entity_id] = replace(current, active=False)

    def list_regulatory_prices(self) -> List[RegulatoryPrice]:
        with self._lock:
            current = [replace(p) for p in self._prices if p.effective_to is None]
        current.sort(key=lambda p: p.product_type)
        return current

    def get_current_price(self, product_type: str) -> Optional[RegulatoryPrice]:
        with self._lock:
            for price in self._prices:
                if price.product_type == product_type and price.effective_to is None:
                    return replace(price)
        return None

    def set_regulatory_price(self, product_type: str, base_price: float, unit: str,
                             actor_id: str) -> RegulatoryPrice:
        now = datetime.now(timezone.utc)
        with self._lock:
            for index, price in enumerate(self._prices):
                if price.product_type == product_type and price.effective_to is None:
                    self._prices[index] = replace(price, effective_to=now)
            new_price = RegulatoryPrice(product_type=product_type, base_price=base_price, unit=unit,
                                        effective_from=now, updated_by=actor_id)
            self._prices.append(new_price)
            return replace(new_price)


class InMemoryDocumentRepository(DocumentRepository):

    def __init__(self):
        self._lock = threading.Lock()
        self._documents: List[Document] = []

    def list_documents(self, order_id: str) -> List[Document]:
        with self._lock:
            documents = [replace(d) for d in self._documents if d.order_id == order_id]
        documents.sort(key=lambda d: d.document_id, reverse=True)
        return documents

    def insert_document(self, document: Document) -> Document:
        with self._lock:
            stored = replace(document, document_id=len(self._documents) + 1,
                             uploaded_at=document.uploaded_at or datetime.now(timezone.utc))
            self._documents.append(stored)
            return replace(stored)

    def get_document(self, order_id: str, document_id: int) -> Document:
        with self._lock:
            for document in self._documents:
                if document.order_id == order_id and document.document_id == document_id:
                    return replace(document)
        raise NotFound(f"Document {document_id} not found for order {order_id}.")


class InMemoryFileStorage(FileStorage):
    """Guarda el contenido en un diccionario; útil para el backend en memoria y las pruebas."""

    def __init__(self):
        self.files: Dict[str, bytes] = {}

    def upload(self, order_id: str, file_name: str, stream: BinaryIO, content_type: str) -> str:
        path = f"memory://{order_id}/{file_name}"
        self.files[path] = stream.read()
        return path

    def get_url(self, storage_path: str) -> str:
        if storage_path not in self.files:
            raise NotFound(f"File {storage_path} not found.")
        return storage_path
