# fuel_orders/application/use_cases.py
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dateutil import parser as date_parser

from fuel_orders.application.retry import call_with_retry
from fuel_orders.domain.context import RequestContext
from fuel_orders.domain.entities import (
    NOTE_TYPE_GENERAL,
    PAYMENT_TERMS,
    PRIORITIES,
    PRODUCT_TYPES,
    UNITS,
    WAREHOUSES,
    Order,
    OrderNote,
    OrderStatus,
)
from fuel_orders.domain.errors import NotFound, ValidationError
from fuel_orders.domain.interfaces import OrderRepository, ReferenceDataRepository
from fuel_orders.domain.visibility import (
    DEPARTMENT_FILTERS,
    apply_dashboard_filter,
    can_see_order,
    dashboard_counts,
    date_range,
    filter_orders_by_date,
    queue_orders,
    queues_for,
    visible_orders,
)
from fuel_orders.domain.workflow import (
    Capability,
    WorkflowAction,
    apply_transition,
    dedupe_key_for,
    require_capability,
)

logger = logging.getLogger(__name__)


def get_visible_order(repository: OrderRepository, context: RequestContext, order_id: str) -> Order:
    # Un pedido ajeno para Sales se reporta como inexistente.
    order = repository.get_order(order_id)
    if not can_see_order(context.department, context.user_id, order):
        raise NotFound(f"Order {order_id} not found.")
    return order


class ListOrdersUseCase:
    """
    Caso de uso: Listar los pedidos visibles para el actor.
    Admite una cola de trabajo, un filtro del tablero y una ventana de días.
    """

    def __init__(self, order_repository: OrderRepository):
        self.repository = order_repository

    def execute(self, context: RequestContext, queue: Optional[str] = None,
                filter_name: Optional[str] = None, days: Optional[int] = None) -> List[Order]:
        # 1. Obtener todos los pedidos y aplicar el subconjunto del departamento
        orders = visible_orders(context, self.repository.list_orders())

        # 2. Cola de trabajo y/o filtro del tablero
        if queue:
            orders = queue_orders(context, orders, queue)
        if filter_name:
            orders = apply_dashboard_filter(context, orders, filter_name)

        # 3. Ventana de fechas sobre order_date
        if days is not None:
            if days < 0:
                raise ValidationError("Parameter 'days' must be zero or positive.", field="days")
            start, end = date_range(days)
            orders = filter_orders_by_date(orders, start, end)

        return orders


class GetOrderUseCase:
    def __init__(self, order_repository: OrderRepository):
        self.repository = order_repository

    def execute(self, context: RequestContext, order_id: str) -> Order:
        return get_visible_order(self.repository, context, order_id)


class CreateOrderUseCase:
    """
    Caso de uso: Crear un pedido nuevo (solo Sales).
    Fija el precio regulado vigente y calcula precio con margen y total.
    """

    def __init__(self, order_repository: OrderRepository, reference_repository: ReferenceDataRepository):
        self.repository = order_repository
        self.reference_repository = reference_repository

    @staticmethod
    def _number(data: Dict[str, Any], name: str, required: bool = True) -> Optional[float]:
        value = data.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                raise ValidationError(f"Field '{name}' is required.", field=name)
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ValidationError(f"Field '{name}' must be a number.", field=name) from None

    @staticmethod
    def _choice(data: Dict[str, Any], name: str, options: List[str], default: str = "") -> str:
        value = data.get(name) or default
        if isinstance(value, str):
            value = value.strip()
        if value and value not in options:
            raise ValidationError(f"Invalid {name} '{value}'.", field=name)
        return value or ""

    def execute(self, context: RequestContext, data: Dict[str, Any]) -> Order:
        require_capability(context, Capability.CREATE_ORDER)

        # 1. Validar cliente y catálogos
        client_id = data.get('client_id')
        if not client_id:
            raise ValidationError("Field 'client_id' is required.", field="client_id")
        try:
            client = self.reference_repository.get_client(client_id)
        except NotFound:
            raise ValidationError(f"Unknown client '{client_id}'.", field="client_id") from None

        product_type = self._choice(data, 'product_type', PRODUCT_TYPES)
        if not product_type:
            raise ValidationError("Field 'product_type' is required.", field="product_type")
        unit = self._choice(data, 'unit', UNITS, default=UNITS[0])
        warehouse = self._choice(data, 'warehouse', WAREHOUSES)
        payment_terms = self._choice(data, 'payment_terms', PAYMENT_TERMS) or (client.payment_terms or "")
        priority = self._choice(data, 'priority', PRIORITIES, default='Normal')

        quantity = self._number(data, 'quantity')
        if quantity <= 0:
            raise ValidationError("Field 'quantity' must be greater than zero.", field="quantity")
        margin = self._number(data, 'margin', required=False) or 0.0

        # 2. Precio regulado vigente (el del llamador solo si no hay uno vigente)
        current = self.reference_repository.get_current_price(product_type)
        if current is not None:
            regulatory_price = float(current.base_price)
        else:
            regulatory_price = self._number(data, 'regulatory_price', required=False)
            if regulatory_price is None:
                raise ValidationError(
                    f"No regulatory price defined for '{product_type}'.", field="regulatory_price"
                )
        price_with_margin = round(regulatory_price + margin, 2)
        total_amount = round(price_with_margin * quantity, 2)

        requested = data.get('requested_delivery_date')
        if requested:
            try:
                requested = date_parser.parse(str(requested)).date()
            except (ValueError, OverflowError):
                raise ValidationError("Field 'requested_delivery_date' is not a valid date.",
                                      field="requested_delivery_date") from None

        now = datetime.now(timezone.utc)
        order = Order(
            order_id=None,
            created_by=context.user_id,
            client_id=client.client_id,
            client_name=client.client_name,
            product_type=product_type,
            unit=unit,
            quantity=quantity,
            status=OrderStatus.PENDING_APPROVAL,
            order_date=now,
            margin=margin,
            regulatory_price=regulatory_price,
            price_with_margin=price_with_margin,
            total_amount=total_amount,
            warehouse=warehouse,
            requested_delivery_date=requested or None,
            preferred_delivery_time=data.get('preferred_delivery_time') or "",
            avoid_afterwork=bool(data.get('avoid_afterwork', False)),
            payment_terms=payment_terms,
            priority=priority or 'Normal',
            no_gulf_brand=bool(data.get('no_gulf_brand', False)),
            updated_by=context.user_id,
            updated_at=now,
        )

        # 3. Persistir
        created = self.repository.insert_order(order)
        logger.info(f"Pedido {created.order_id} creado por {context.user_id} ({context.department.value})")
        return created


class ApplyWorkflowActionUseCase:
    """
    Caso de uso: Ejecutar una acción del flujo (cambio de estado o entrada de documento).

    Reintenta solo ante BackendUnavailable. En un reintento, si la nota con la
    clave de deduplicación ya existe, la escritura anterior llegó a la base:
    se retorna el pedido guardado sin escribir una segunda nota.
    """

    def __init__(self, order_repository: OrderRepository, max_attempts: int = 3, base_delay: float = 0.5):
        self.repository = order_repository
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    def execute(self, context: RequestContext, order_id: str, action: Any,
                payload: Optional[Dict[str, Any]] = None) -> Order:
        try:
            action = WorkflowAction(action)
        except ValueError:
            raise ValidationError(f"Unknown action '{action}'.", field="action") from None
        dedupe_key = dedupe_key_for(order_id, action, context.user_id)

        def attempt(number: int) -> Order:
            order = get_visible_order(self.repository, context, order_id)
            if number > 0 and self.repository.has_transition(dedupe_key):
                logger.info(f"Acción {action.value} sobre {order_id} ya aplicada (clave {dedupe_key})")
                return order
            result = apply_transition(order, action, context, payload)
            if not result.ok:
                raise result.error
            updated = self.repository.apply_transition(order_id, result, dedupe_key)
            logger.info(
                f"Pedido {order_id}: {action.value} por {context.user_id} "
                f"({result.expected_status.value} -> {updated.status.value})"
            )
            return updated

        return call_with_retry(attempt, self.max_attempts, self.base_delay)


class EnterDocumentUseCase:
    """Entrada de proforma/factura (Finance) por el mismo camino atómico que las transiciones."""

    ACTIONS = {
        'proforma': WorkflowAction.ENTER_PROFORMA,
        'invoice': WorkflowAction.ENTER_INVOICE,
    }

    def __init__(self, workflow_use_case: ApplyWorkflowActionUseCase):
        self.workflow = workflow_use_case

    def execute(self, context: RequestContext, order_id: str, document: str,
                payload: Optional[Dict[str, Any]] = None) -> Order:
        action = self.ACTIONS.get(document)
        if action is None:
            raise ValidationError(f"Unknown document '{document}'.", field="document")
        return self.workflow.execute(context, order_id, action, payload)


class ListNotesUseCase:
    def __init__(self, order_repository: OrderRepository):
        self.repository = order_repository

    def execute(self, context: RequestContext, order_id: str) -> List[OrderNote]:
        get_visible_order(self.repository, context, order_id)
        return self.repository.list_notes(order_id)


class AddNoteUseCase:
    """Comentario libre sobre un pedido; cualquier departamento que lo vea puede agregarlo."""

    def __init__(self, order_repository: OrderRepository):
        self.repository = order_repository

    def execute(self, context: RequestContext, order_id: str, text: Any) -> OrderNote:
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Field 'note' is required.", field="note")
        get_visible_order(self.repository, context, order_id)
        note = OrderNote(
            order_id=order_id,
            user_id=context.user_id,
            user_name=context.display_name,
            department=context.department.value,
            note=text.strip(),
            note_type=NOTE_TYPE_GENERAL,
            created_at=datetime.now(timezone.utc),
        )
        return self.repository.append_note(note)


class DashboardUseCase:
    """Conteos del tablero, colas y filtros disponibles para el departamento del actor."""

    def __init__(self, order_repository: OrderRepository):
        self.repository = order_repository

    def execute(self, context: RequestContext, days: Optional[int] = None) -> Dict[str, Any]:
        if days is not None and days < 0:
            raise ValidationError("Parameter 'days' must be zero or positive.", field="days")
        orders = self.repository.list_orders()
        if days is not None:
            start, end = date_range(days)
            orders = filter_orders_by_date(orders, start, end)
        return {
            'department': context.department.value,
            'counts': dashboard_counts(context, orders),
            'filters': list(DEPARTMENT_FILTERS[context.department]),
            'queues': queues_for(context.department),
        }
