# fuel_orders/domain/workflow.py
"""
Máquina de estados del pedido (Regla de Negocio Central).

Una sola tabla de transiciones alimenta a todos los llamadores. La función
apply_transition es pura: no hace I/O, no muta el pedido recibido y
retorna un TransitionResult etiquetado (ok + cambios, o error).
La persistencia atómica del resultado es responsabilidad del repositorio.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from dateutil import parser as date_parser

from .context import RequestContext
from .entities import (
    Department,
    NOTE_TYPE_STATUS_CHANGE,
    Order,
    OrderNote,
    OrderStatus,
)
from .errors import (
    InvalidTransition,
    OrderWorkflowError,
    PermissionDenied,
    ValidationError,
)


class WorkflowAction(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN_TRANSPORT = "assignTransport"
    MARK_IN_WAREHOUSE = "markInWarehouse"
    MARK_LOADING = "markLoading"
    MARK_LEFT_WAREHOUSE = "markLeftWarehouse"
    MARK_DELIVERED = "markDelivered"
    MARK_DISPUTED = "markDisputed"
    RESOLVE_DISPUTE = "resolveDispute"
    # Entrada de documentos: no cambian el estado
    ENTER_PROFORMA = "enterProforma"
    ENTER_INVOICE = "enterInvoice"


DOCUMENT_ACTIONS = frozenset({WorkflowAction.ENTER_PROFORMA, WorkflowAction.ENTER_INVOICE})


class Capability(str, Enum):
    CREATE_ORDER = "createOrder"
    APPROVE_ORDERS = "approveOrders"
    RESOLVE_DISPUTES = "resolveDisputes"
    ASSIGN_TRANSPORT = "assignTransport"
    CONFIRM_DELIVERY = "confirmDelivery"
    WAREHOUSE_STAGES = "warehouseStages"
    ENTER_DOCUMENTS = "enterDocuments"
    UPDATE_PRICES = "updateRegulatoryPrices"
    MANAGE_REFERENCE_DATA = "manageReferenceData"
    VIEW_ANALYTICS = "viewAnalytics"


# Tabla de capacidades por departamento (separada de las etiquetas visibles)
CAPABILITIES: Dict[Department, FrozenSet[Capability]] = {
    Department.SALES: frozenset({Capability.CREATE_ORDER}),
    Department.MANAGEMENT: frozenset({
        Capability.APPROVE_ORDERS,
        Capability.RESOLVE_DISPUTES,
        Capability.VIEW_ANALYTICS,
    }),
    Department.FINANCE: frozenset({Capability.ENTER_DOCUMENTS, Capability.UPDATE_PRICES}),
    Department.TRANSPORT: frozenset({Capability.ASSIGN_TRANSPORT, Capability.CONFIRM_DELIVERY}),
    Department.WAREHOUSE: frozenset({Capability.WAREHOUSE_STAGES}),
    Department.ADMIN: frozenset({
        Capability.APPROVE_ORDERS,
        Capability.RESOLVE_DISPUTES,
        Capability.VIEW_ANALYTICS,
        Capability.MANAGE_REFERENCE_DATA,
    }),
}


def has_capability(department: Department, capability: Capability) -> bool:
    return capability in CAPABILITIES.get(Department(department), frozenset())


def require_capability(context: RequestContext, capability: Capability) -> None:
    if not has_capability(context.department, capability):
        raise PermissionDenied(
            f"Department '{context.department.value}' is not allowed to {capability.value}."
        )


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _require(payload: Dict[str, Any], names: Tuple[str, ...]) -> Dict[str, str]:
    values = {}
    for name in names:
        value = payload.get(name)
        if _blank(value):
            raise ValidationError(f"Field '{name}' is required.", field=name)
        if not isinstance(value, str):
            raise ValidationError(f"Field '{name}' must be text.", field=name)
        values[name] = value.strip()
    return values


def _check_note(payload: Dict[str, Any]) -> None:
    note = payload.get('note')
    if note is not None and not isinstance(note, str):
        raise ValidationError("Field 'note' must be text.", field="note")


def _parse_datetime(value: Any, name: str) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return date_parser.parse(str(value))
    except (ValueError, OverflowError):
        raise ValidationError(f"Field '{name}' is not a valid date.", field=name) from None


def _parse_amount(value: Any, name: str) -> Optional[float]:
    if _blank(value):
        return None
    try:
        return round(float(value), 2)
    except (TypeError, ValueError):
        raise ValidationError(f"Field '{name}' must be a number.", field=name) from None


# --- Sellado de campos por transición ---
# Cada función retorna (cambios, texto de la nota de auditoría).

def _stamp_approve(transition, context, values, payload, now):
    return {'approved_by': context.user_id, 'approval_date': now}, "Order approved"


def _stamp_reject(transition, context, values, payload, now):
    reason = values['reason']
    changes = {
        'rejected_by': context.user_id,
        'rejection_date': now,
        'rejection_reason': reason,
    }
    return changes, f"Order rejected: {reason}"


def _stamp_assign_transport(transition, context, values, payload, now):
    changes = {
        'driver_name': values['driver_name'],
        'truck_plate': values['truck_plate'],
        'transport_company': values['transport_company'],
        'estimated_delivery': _parse_datetime(values['estimated_delivery'], 'estimated_delivery'),
        'transport_assigned_by': context.user_id,
        'transport_assigned_date': now,
    }
    text = (f"Transport assigned: {values['driver_name']}, {values['truck_plate']} "
            f"({values['transport_company']})")
    return changes, text


def _stamp_stage(date_field: str) -> Callable:
    def stamp(transition, context, values, payload, now):
        return {date_field: now}, f"Status updated to {transition.target.value}"
    return stamp


def _stamp_delivered(transition, context, values, payload, now):
    return {'delivered_by': context.user_id, 'delivered_date': now}, "Order delivered"


def _stamp_disputed(transition, context, values, payload, now):
    reason = values['reason']
    changes = {'dispute_reason': reason, 'disputed_by': context.user_id, 'dispute_date': now}
    return changes, f"Order disputed: {reason}"


def _stamp_resolved(transition, context, values, payload, now):
    resolution = values['resolution']
    changes = {'resolution': resolution, 'resolved_by': context.user_id, 'resolution_date': now}
    return changes, f"Dispute resolved: {resolution}"


@dataclass(frozen=True)
class Transition:
    action: WorkflowAction
    source: OrderStatus
    target: OrderStatus
    capability: Capability
    stamp: Callable
    required: Tuple[str, ...] = ()
    # Campos que deben estar vacíos para que la transición sea legal
    empty_fields: Tuple[str, ...] = ()


TRANSITIONS: Dict[WorkflowAction, Transition] = {t.action: t for t in [
    Transition(WorkflowAction.APPROVE, OrderStatus.PENDING_APPROVAL, OrderStatus.APPROVED,
               Capability.APPROVE_ORDERS, _stamp_approve),
    Transition(WorkflowAction.REJECT, OrderStatus.PENDING_APPROVAL, OrderStatus.REJECTED,
               Capability.APPROVE_ORDERS, _stamp_reject, required=('reason',)),
    Transition(WorkflowAction.ASSIGN_TRANSPORT, OrderStatus.APPROVED, OrderStatus.TRUCK_ASSIGNED,
               Capability.ASSIGN_TRANSPORT, _stamp_assign_transport,
               required=('driver_name', 'truck_plate', 'transport_company', 'estimated_delivery'),
               empty_fields=('driver_name',)),
    Transition(WorkflowAction.MARK_IN_WAREHOUSE, OrderStatus.TRUCK_ASSIGNED, OrderStatus.IN_WAREHOUSE,
               Capability.WAREHOUSE_STAGES, _stamp_stage('in_warehouse_date')),
    Transition(WorkflowAction.MARK_LOADING, OrderStatus.IN_WAREHOUSE, OrderStatus.LOADING,
               Capability.WAREHOUSE_STAGES, _stamp_stage('loading_date')),
    Transition(WorkflowAction.MARK_LEFT_WAREHOUSE, OrderStatus.LOADING, OrderStatus.LEFT_WAREHOUSE,
               Capability.WAREHOUSE_STAGES, _stamp_stage('left_warehouse_date')),
    Transition(WorkflowAction.MARK_DELIVERED, OrderStatus.LEFT_WAREHOUSE, OrderStatus.DELIVERED,
               Capability.CONFIRM_DELIVERY, _stamp_delivered),
    Transition(WorkflowAction.MARK_DISPUTED, OrderStatus.LEFT_WAREHOUSE, OrderStatus.DISPUTED,
               Capability.CONFIRM_DELIVERY, _stamp_disputed, required=('reason',)),
    Transition(WorkflowAction.RESOLVE_DISPUTE, OrderStatus.DISPUTED, OrderStatus.RESOLVED,
               Capability.RESOLVE_DISPUTES, _stamp_resolved, required=('resolution',)),
]}


@dataclass(frozen=True)
class TransitionResult:
    """Resultado etiquetado: ok=True con el pedido resultante, u ok=False con el error."""
    ok: bool
    action: Optional[WorkflowAction] = None
    order: Optional[Order] = None
    expected_status: Optional[OrderStatus] = None
    changes: Dict[str, Any] = field(default_factory=dict)
    empty_fields: Tuple[str, ...] = ()
    note: Optional[OrderNote] = None
    error: Optional[OrderWorkflowError] = None

    @classmethod
    def failure(cls, error: OrderWorkflowError, action: Optional[WorkflowAction] = None):
        return cls(ok=False, action=action, error=error)

    def unwrap(self) -> Order:
        if not self.ok:
            raise self.error
        return self.order


def dedupe_key_for(order_id: str, action: WorkflowAction, actor_id: str) -> str:
    """Clave order_id:estado_destino:actor (o la acción, para la entrada de documentos)."""
    action = WorkflowAction(action)
    target = action.value if action in DOCUMENT_ACTIONS else TRANSITIONS[action].target.value
    return f"{order_id}:{target}:{actor_id}"


def legal_actions(status: OrderStatus) -> List[WorkflowAction]:
    """Acciones de estado legales desde un estado, sin considerar el departamento."""
    return [t.action for t in TRANSITIONS.values() if t.source == OrderStatus(status)]


def available_actions(order: Order, department: Department) -> List[WorkflowAction]:
    """Acciones que el departamento puede ejecutar ahora sobre el pedido (botones de la UI)."""
    actions = []
    for transition in TRANSITIONS.values():
        if transition.source != order.status:
            continue
        if any(not _blank(getattr(order, name)) for name in transition.empty_fields):
            continue
        if has_capability(department, transition.capability):
            actions.append(transition.action)
    if has_capability(department, Capability.ENTER_DOCUMENTS):
        for action in (WorkflowAction.ENTER_PROFORMA, WorkflowAction.ENTER_INVOICE):
            if _document_entry_error(order, action) is None:
                actions.append(action)
    return actions


def _with_note(text: str, payload: Dict[str, Any]) -> str:
    note = payload.get('note')
    if not _blank(note):
        return f"{text} - {note.strip()}"
    return text


def _build_result(order, action, context, changes, text, payload, now, empty_fields):
    changes = dict(changes)
    changes['updated_by'] = context.user_id
    changes['updated_at'] = now
    note = OrderNote(
        order_id=order.order_id,
        user_id=context.user_id,
        user_name=context.display_name,
        department=context.department.value,
        note=_with_note(text, payload),
        note_type=NOTE_TYPE_STATUS_CHANGE,
        created_at=now,
        dedupe_key=dedupe_key_for(order.order_id, action, context.user_id),
    )
    return TransitionResult(
        ok=True,
        action=action,
        order=replace(order, **changes),
        expected_status=order.status,
        changes=changes,
        empty_fields=empty_fields,
        note=note,
    )


def _document_entry_error(order: Order, action: WorkflowAction) -> Optional[InvalidTransition]:
    if action == WorkflowAction.ENTER_PROFORMA:
        if order.status in (OrderStatus.PENDING_APPROVAL, OrderStatus.REJECTED):
            return InvalidTransition(
                f"Cannot enter a proforma for order {order.order_id} in status '{order.status.value}'."
            )
        if not _blank(order.proforma_number):
            return InvalidTransition(f"Order {order.order_id} already has a proforma.")
    else:
        if _blank(order.proforma_number):
            return InvalidTransition(f"Order {order.order_id} has no proforma yet.")
        if not _blank(order.invoice_number):
            return InvalidTransition(f"Order {order.order_id} already has an invoice.")
    return None


def _enter_document(order, action, context, payload, now) -> TransitionResult:
    if not has_capability(context.department, Capability.ENTER_DOCUMENTS):
        return TransitionResult.failure(PermissionDenied(
            f"Department '{context.department.value}' is not allowed to {action.value}."
        ), action)
    error = _document_entry_error(order, action)
    if error is not None:
        return TransitionResult.failure(error, action)

    prefix = 'proforma' if action == WorkflowAction.ENTER_PROFORMA else 'invoice'
    try:
        _check_note(payload)
        number = _require(payload, ('number',))['number']
        amount = _parse_amount(payload.get('amount'), 'amount')
    except ValidationError as e:
        return TransitionResult.failure(e, action)

    changes = {
        f'{prefix}_number': number,
        f'{prefix}_amount': amount,
        f'{prefix}_date': now,
    }
    text = f"{prefix.capitalize()} {number} entered"
    return _build_result(order, action, context, changes, text, payload, now,
                         empty_fields=(f'{prefix}_number',))


def apply_transition(
    order: Order,
    action: Any,
    context: RequestContext,
    payload: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Calcula el efecto de una acción del flujo sobre un pedido.

    Verifica, en este orden: que la acción exista, la capacidad del
    departamento, el estado de origen, las precondiciones de campos vacíos
    y los datos obligatorios. Nunca lanza errores de dominio: los devuelve
    dentro del resultado.
    """
    payload = payload or {}
    now = now or datetime.now(timezone.utc)
    try:
        action = WorkflowAction(action)
    except ValueError:
        return TransitionResult.failure(ValidationError(f"Unknown action '{action}'.", field="action"))

    if action in DOCUMENT_ACTIONS:
        return _enter_document(order, action, context, payload, now)

    transition = TRANSITIONS[action]
    if not has_capability(context.department, transition.capability):
        return TransitionResult.failure(PermissionDenied(
            f"Department '{context.department.value}' is not allowed to {action.value}."
        ), action)

    if order.status != transition.source:
        return TransitionResult.failure(InvalidTransition(
            f"Cannot {action.value} order {order.order_id}: status is '{order.status.value}', "
            f"expected '{transition.source.value}'."
        ), action)

    for name in transition.empty_fields:
        if not _blank(getattr(order, name)):
            return TransitionResult.failure(InvalidTransition(
                f"Cannot {action.value} order {order.order_id}: '{name}' is already set."
            ), action)

    try:
        _check_note(payload)
        values = _require(payload, transition.required)
        changes, text = transition.stamp(transition, context, values, payload, now)
    except ValidationError as e:
        return TransitionResult.failure(e, action)

    changes['status'] = transition.target
    return _build_result(order, action, context, changes, text, payload, now,
                         empty_fields=transition.empty_fields)
