from datetime import date, datetime, timedelta, timezone

import pytest

from fuel_orders.domain.analytics import (
    average,
    calculate_analytics,
    classify_delivery_variance,
    days_between,
)
from fuel_orders.domain.entities import OrderStatus
from tests.factories import NOW, make_order

D = date(2024, 3, 20)


def delivered_on(order_id, requested, delivered, **kwargs):
    return make_order(order_id, OrderStatus.DELIVERED, requested_delivery_date=requested,
                      delivered_date=delivered, **kwargs)


@pytest.mark.parametrize("variance,expected", [
    (1, 'onTime'),
    (0, 'onTime'),
    (-1, 'onTime'),
    (-3, 'early'),
    (-2, 'early'),
    (2, 'late'),
    (5, 'late'),
])
def test_classify_delivery_variance(variance, expected):
    assert classify_delivery_variance(variance) == expected


def test_days_between_floors_partial_days():
    start = datetime(2024, 3, 1, 12, tzinfo=timezone.utc)
    assert days_between(start, start + timedelta(hours=47)) == 1
    assert days_between(start, start - timedelta(hours=1)) == -1
    assert days_between(None, start) is None


def test_average():
    assert average([]) == 0.0
    assert average([1, 2, 2]) == 1.7


def test_delivery_variance_examples():
    orders = [
        delivered_on("PLUS1", D, datetime(2024, 3, 21, 15, tzinfo=timezone.utc)),
        delivered_on("MINUS3", D, datetime(2024, 3, 17, 8, tzinfo=timezone.utc)),
        delivered_on("PLUS5", D, datetime(2024, 3, 25, 9, tzinfo=timezone.utc)),
    ]
    analytics = calculate_analytics(orders)
    by_id = {v.order_id: v for v in analytics.delivery_variance}
    assert by_id["PLUS1"].variance == 1
    assert by_id["PLUS1"].classification == 'onTime'
    assert by_id["MINUS3"].variance == -3
    assert by_id["MINUS3"].classification == 'early'
    assert by_id["PLUS5"].classification == 'late'


def test_sales_manager_stats_and_counts():
    orders = [
        make_order("A", OrderStatus.DELIVERED, created_by="sm-1", transport_company="Makpetrol"),
        make_order("B", OrderStatus.REJECTED, created_by="sm-1"),
        make_order("C", OrderStatus.DISPUTED, created_by="sm-1", transport_company="Makpetrol"),
        make_order("D", OrderStatus.DELIVERED, created_by="sm-2", product_type="Mazut",
                   transport_company="Vardar"),
    ]
    analytics = calculate_analytics(orders)

    sm1 = analytics.orders_by_sm["sm-1"]
    assert (sm1.count, sm1.delivered, sm1.rejected, sm1.disputed) == (3, 1, 1, 1)
    assert sm1.success_rate == 33.3
    assert analytics.orders_by_sm["sm-2"].success_rate == 100.0

    assert analytics.product_counts == {"Eurodiesel": 3, "Mazut": 1}
    assert analytics.transport_counts == {"Makpetrol": 2, "Vardar": 1}
    assert analytics.status_counts == {"Delivered": 2, "Rejected": 1, "Disputed": 1}
    assert analytics.summary == {
        'total_orders': 4, 'delivered': 2, 'disputed': 1, 'rejected': 1, 'active': 1,
    }


def test_time_metrics_only_with_both_timestamps():
    order = make_order(
        "T", OrderStatus.DELIVERED,
        order_date=NOW,
        approval_date=NOW + timedelta(days=1, hours=2),
        transport_assigned_date=NOW + timedelta(days=2),
        delivered_date=NOW + timedelta(days=5),
    )
    backdated = make_order("X", order_date=NOW, approval_date=NOW - timedelta(days=2))
    analytics = calculate_analytics([order, backdated])

    assert analytics.time_metrics['order_to_approval'] == [1]
    assert analytics.time_metrics['approval_to_transport'] == [0]
    assert analytics.time_metrics['transport_to_warehouse'] == []
    assert analytics.time_metrics['total_cycle_time'] == [5]
    assert analytics.average_times['total_cycle_time'] == 5.0


def test_empty_collection():
    analytics = calculate_analytics([])
    data = analytics.to_dict()
    assert data['summary']['total_orders'] == 0
    assert data['orders_by_sm'] == {}
    assert data['average_times']['order_to_approval'] == 0.0
    assert data['delivery_variance'] == []


def test_to_dict_variance_flags():
    analytics = calculate_analytics([delivered_on("E", D, datetime(2024, 3, 16, tzinfo=timezone.utc))])
    variance = analytics.to_dict()['delivery_variance'][0]
    assert variance == {'order_id': 'E', 'variance': -4, 'early': True, 'on_time': False,
                        'classification': 'early'}
