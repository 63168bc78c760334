# fuel_orders/domain/visibility.py
"""
Reglas de visibilidad por departamento.

Dos reglas independientes y puras:
- Subconjunto de pedidos: Sales solo ve los pedidos que creó.
- Visibilidad de campos: los campos financieros solo llegan a Sales,
  Management y Finance; para el resto se eliminan de la representación.
Además, colas de trabajo por departamento y filtros del tablero.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from dateutil import parser as date_parser

from .context import RequestContext
from .entities import Department, Order, OrderStatus
from .errors import PermissionDenied, ValidationError

FINANCIAL_FIELDS: Tuple[str, ...] = (
    'margin',
    'total_amount',
    'price_with_margin',
    'regulatory_price',
    'proforma_amount',
    'invoice_amount',
)

FINANCIAL_DEPARTMENTS: FrozenSet[Department] = frozenset({
    Department.SALES,
    Department.MANAGEMENT,
    Department.FINANCE,
})

# Estados "cerrados" para los filtros del tablero
_CLOSED = frozenset({
    OrderStatus.PENDING_APPROVAL,
    OrderStatus.DELIVERED,
    OrderStatus.DISPUTED,
    OrderStatus.RESOLVED,
    OrderStatus.REJECTED,
})
_SALES_CLOSED = _CLOSED - {OrderStatus.PENDING_APPROVAL}
_ON_THE_ROAD = frozenset({
    OrderStatus.TRUCK_ASSIGNED,
    OrderStatus.IN_WAREHOUSE,
    OrderStatus.LOADING,
    OrderStatus.LEFT_WAREHOUSE,
})
_IN_YARD = frozenset({OrderStatus.TRUCK_ASSIGNED, OrderStatus.IN_WAREHOUSE, OrderStatus.LOADING})


def can_see_financial_info(department: Department) -> bool:
    return Department(department) in FINANCIAL_DEPARTMENTS


def can_see_order(department: Department, user_id: str, order: Order) -> bool:
    if Department(department) == Department.SALES:
        return order.created_by == user_id
    return True


def visible_orders(context: RequestContext, orders: Iterable[Order]) -> List[Order]:
    return [o for o in orders if can_see_order(context.department, context.user_id, o)]


def order_view(order: Order, department: Department) -> Dict[str, Any]:
    """Representación del pedido para un departamento (sin precios si no corresponde)."""
    data = order.to_dict()
    if not can_see_financial_info(department):
        for name in FINANCIAL_FIELDS:
            data.pop(name, None)
    return data


# --- Colas de trabajo por departamento ---

@dataclass(frozen=True)
class Queue:
    name: str
    departments: FrozenSet[Department]
    predicate: Callable[[Order], bool]


_MANAGERS = frozenset({Department.MANAGEMENT, Department.ADMIN})

QUEUES: Dict[str, Queue] = {q.name: q for q in [
    Queue('approval', _MANAGERS, lambda o: o.status == OrderStatus.PENDING_APPROVAL),
    Queue('disputes', _MANAGERS, lambda o: o.status == OrderStatus.DISPUTED),
    Queue('proforma', frozenset({Department.FINANCE}),
          lambda o: o.status not in (OrderStatus.PENDING_APPROVAL, OrderStatus.REJECTED)
          and not o.proforma_number),
    Queue('invoice', frozenset({Department.FINANCE}),
          lambda o: bool(o.proforma_number) and not o.invoice_number),
    Queue('assign', frozenset({Department.TRANSPORT}),
          lambda o: o.status == OrderStatus.APPROVED and not o.has_driver),
    Queue('assigned', frozenset({Department.TRANSPORT}),
          lambda o: o.has_driver and o.status in _IN_YARD),
    Queue('delivery', frozenset({Department.TRANSPORT}),
          lambda o: o.status == OrderStatus.LEFT_WAREHOUSE),
    Queue('warehouse', frozenset({Department.WAREHOUSE}), lambda o: o.status in _IN_YARD),
]}


def queues_for(department: Department) -> List[str]:
    return [q.name for q in QUEUES.values() if Department(department) in q.departments]


def queue_orders(context: RequestContext, orders: Iterable[Order], queue_name: str) -> List[Order]:
    queue = QUEUES.get(queue_name)
    if queue is None:
        raise ValidationError(f"Unknown queue '{queue_name}'.", field="queue")
    if context.department not in queue.departments:
        raise PermissionDenied(f"Queue '{queue_name}' is not available to {context.department.value}.")
    return [o for o in visible_orders(context, orders) if queue.predicate(o)]


# --- Filtros del tablero ---

DASHBOARD_FILTERS: Dict[str, Callable[[Order, str], bool]] = {
    'pending': lambda o, uid: o.status == OrderStatus.PENDING_APPROVAL,
    'active': lambda o, uid: o.status not in _CLOSED,
    'disputed': lambda o, uid: o.status == OrderStatus.DISPUTED,
    'resolved': lambda o, uid: o.status == OrderStatus.RESOLVED,
    'rejected': lambda o, uid: o.status == OrderStatus.REJECTED,
    'finished': lambda o, uid: o.status in (OrderStatus.DELIVERED, OrderStatus.RESOLVED),
    'myOrders': lambda o, uid: o.created_by == uid and o.status not in _SALES_CLOSED,
    'needsDocs': lambda o, uid: not o.proforma_number or not o.invoice_number,
    'completed': lambda o, uid: bool(o.proforma_number) and bool(o.invoice_number),
    'forAssigning': lambda o, uid: o.status == OrderStatus.APPROVED and not o.has_driver,
    'assigned': lambda o, uid: o.has_driver and o.status in _ON_THE_ROAD,
    'needsProcessing': lambda o, uid: o.status == OrderStatus.TRUCK_ASSIGNED,
    'inProgress': lambda o, uid: o.status in (OrderStatus.IN_WAREHOUSE, OrderStatus.LOADING,
                                              OrderStatus.LEFT_WAREHOUSE),
}

_COMMON_FILTERS = ['pending', 'active', 'disputed', 'resolved', 'rejected', 'finished']

DEPARTMENT_FILTERS: Dict[Department, List[str]] = {
    Department.SALES: _COMMON_FILTERS + ['myOrders'],
    Department.MANAGEMENT: list(_COMMON_FILTERS),
    Department.FINANCE: _COMMON_FILTERS + ['needsDocs', 'completed'],
    Department.TRANSPORT: _COMMON_FILTERS + ['forAssigning', 'assigned'],
    Department.WAREHOUSE: _COMMON_FILTERS + ['needsProcessing', 'inProgress'],
    Department.ADMIN: list(_COMMON_FILTERS),
}


def apply_dashboard_filter(context: RequestContext, orders: Iterable[Order], name: str) -> List[Order]:
    if name not in DEPARTMENT_FILTERS[context.department]:
        raise ValidationError(f"Unknown filter '{name}' for {context.department.value}.", field="filter")
    predicate = DASHBOARD_FILTERS[name]
    return [o for o in visible_orders(context, orders) if predicate(o, context.user_id)]


def dashboard_counts(context: RequestContext, orders: Iterable[Order]) -> Dict[str, int]:
    orders = visible_orders(context, orders)
    return {
        name: sum(1 for o in orders if DASHBOARD_FILTERS[name](o, context.user_id))
        for name in DEPARTMENT_FILTERS[context.department]
    }


# --- Rango de fechas ---

def as_utc_datetime(value) -> Optional[datetime]:
    """Normaliza fecha, datetime o texto ISO a datetime con zona (UTC si es ingenuo)."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = date_parser.parse(value)
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def date_range(days: int, now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """0 = desde el inicio de hoy; en otro caso, los últimos `days` días."""
    end = as_utc_datetime(now or datetime.now(timezone.utc))
    if days == 0:
        start = end.replace(hour=0, minute=0, second=0, microsecond=0)
    else:
        start = end - timedelta(days=days)
    return start, end


def filter_orders_by_date(orders: Iterable[Order], start: datetime, end: datetime) -> List[Order]:
    start, end = as_utc_datetime(start), as_utc_datetime(end)
    result = []
    for order in orders:
        order_date = as_utc_datetime(order.order_date)
        if order_date is not None and start <= order_date <= end:
            result.append(order)
    return result
