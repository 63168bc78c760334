# fuel_orders/domain/analytics.py
"""
Cálculo de analítica sobre una colección de pedidos (pliegue puro, solo lectura).
"""
import math
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .entities import Order, OrderStatus
from .visibility import as_utc_datetime

SECONDS_PER_DAY = 24 * 60 * 60

# (métrica, campo inicial, campo final)
TIME_METRIC_STAGES = [
    ('order_to_approval', 'order_date', 'approval_date'),
    ('approval_to_transport', 'approval_date', 'transport_assigned_date'),
    ('transport_to_warehouse', 'transport_assigned_date', 'in_warehouse_date'),
    ('warehouse_to_loading', 'in_warehouse_date', 'loading_date'),
    ('loading_to_left', 'loading_date', 'left_warehouse_date'),
    ('left_to_delivered', 'left_warehouse_date', 'delivered_date'),
    ('total_cycle_time', 'order_date', 'delivered_date'),
]

TIME_METRIC_LABELS = {
    'order_to_approval': 'Order to Approval',
    'approval_to_transport': 'Approval to Transport',
    'transport_to_warehouse': 'Transport to Warehouse',
    'warehouse_to_loading': 'Warehouse to Loading',
    'loading_to_left': 'Loading to Left',
    'left_to_delivered': 'Left to Delivered',
    'total_cycle_time': 'Total Cycle Time',
}


def days_between(start, end) -> Optional[int]:
    """Días completos (piso) entre dos instantes; None si falta alguno."""
    start, end = as_utc_datetime(start), as_utc_datetime(end)
    if start is None or end is None:
        return None
    return math.floor((end - start).total_seconds() / SECONDS_PER_DAY)


def classify_delivery_variance(variance: int) -> str:
    if variance < -1:
        return 'early'
    if abs(variance) <= 1:
        return 'onTime'
    return 'late'


def average(values: List[int]) -> float:
    if not values:
        return 0.0
    return round(sum(values) / len(values), 1)


@dataclass
class SalesManagerStats:
    count: int = 0
    delivered: int = 0
    rejected: int = 0
    disputed: int = 0

    @property
    def success_rate(self) -> float:
        if self.count == 0:
            return 0.0
        return round(self.delivered / self.count * 100, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'count': self.count,
            'delivered': self.delivered,
            'rejected': self.rejected,
            'disputed': self.disputed,
            'success_rate': self.success_rate,
        }


@dataclass
class DeliveryVariance:
    order_id: str
    variance: int

    @property
    def classification(self) -> str:
        return classify_delivery_variance(self.variance)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'order_id': self.order_id,
            'variance': self.variance,
            'early': self.classification == 'early',
            'on_time': self.classification == 'onTime',
            'classification': self.classification,
        }


@dataclass
class Analytics:
    total_orders: int = 0
    orders_by_sm: Dict[str, SalesManagerStats] = field(default_factory=OrderedDict)
    product_counts: Dict[str, int] = field(default_factory=OrderedDict)
    transport_counts: Dict[str, int] = field(default_factory=OrderedDict)
    status_counts: Dict[str, int] = field(default_factory=OrderedDict)
    time_metrics: Dict[str, List[int]] = field(
        default_factory=lambda: OrderedDict((name, []) for name, _, _ in TIME_METRIC_STAGES)
    )
    delivery_variance: List[DeliveryVariance] = field(default_factory=list)

    def status_count(self, status: OrderStatus) -> int:
        return self.status_counts.get(status.value, 0)

    @property
    def summary(self) -> Dict[str, int]:
        delivered = self.status_count(OrderStatus.DELIVERED)
        rejected = self.status_count(OrderStatus.REJECTED)
        return {
            'total_orders': self.total_orders,
            'delivered': delivered,
            'disputed': self.status_count(OrderStatus.DISPUTED),
            'rejected': rejected,
            'active': self.total_orders - delivered - rejected,
        }

    @property
    def average_times(self) -> Dict[str, float]:
        return {name: average(values) for name, values in self.time_metrics.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            'summary': self.summary,
            'orders_by_sm': {sm: stats.to_dict() for sm, stats in self.orders_by_sm.items()},
            'product_counts': dict(self.product_counts),
            'transport_counts': dict(self.transport_counts),
            'status_counts': dict(self.status_counts),
            'time_metrics': {name: list(values) for name, values in self.time_metrics.items()},
            'average_times': self.average_times,
            'delivery_variance': [v.to_dict() for v in self.delivery_variance],
        }


def _increment(counter: Dict[str, int], key: str) -> None:
    counter[key] = counter.get(key, 0) + 1


def calculate_analytics(orders: Iterable[Order]) -> Analytics:
    """Agrega los pedidos por vendedor, producto, transportista, estado y tiempos."""
    analytics = Analytics()
    for order in orders:
        analytics.total_orders += 1

        # 1. Rendimiento por vendedor (Sales manager = creador del pedido)
        stats = analytics.orders_by_sm.setdefault(order.created_by, SalesManagerStats())
        stats.count += 1
        if order.status == OrderStatus.DELIVERED:
            stats.delivered += 1
        elif order.status == OrderStatus.REJECTED:
            stats.rejected += 1
        elif order.status == OrderStatus.DISPUTED:
            stats.disputed += 1

        # 2. Conteos simples
        _increment(analytics.product_counts, order.product_type)
        if order.transport_company:
            _increment(analytics.transport_counts, order.transport_company)
        _increment(analytics.status_counts, order.status.value)

        # 3. Tiempos por etapa (solo intervalos completos y no negativos)
        for name, start_field, end_field in TIME_METRIC_STAGES:
            days = days_between(getattr(order, start_field), getattr(order, end_field))
            if days is not None and days >= 0:
                analytics.time_metrics[name].append(days)

        # 4. Desvío de entrega contra la fecha solicitada
        if order.delivered_date and order.requested_delivery_date:
            variance = days_between(order.requested_delivery_date, order.delivered_date)
            analytics.delivery_variance.append(DeliveryVariance(order.order_id, variance))

    return analytics
