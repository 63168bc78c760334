"""Fábrica de pedidos para las pruebas."""
from datetime import datetime, timezone

from fuel_orders.domain.entities import Order, OrderStatus

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def make_order(order_id="ORD-000001", status=OrderStatus.PENDING_APPROVAL, created_by="sales-1", **kwargs):
    data = dict(
        order_id=order_id,
        created_by=created_by,
        client_id="CL-001",
        client_name="Agro Tetovo DOOEL",
        product_type="Eurodiesel",
        unit="L",
        quantity=1000,
        status=status,
        order_date=NOW,
        margin=2.5,
        regulatory_price=78.5,
        price_with_margin=81.0,
        total_amount=81000.0,
        payment_terms="Credit payment",
    )
    data.update(kwargs)
    return Order(**data)
