import unittest
from datetime import date, datetime, timedelta, timezone

import pytest

from fuel_orders.domain.context import RequestContext
from fuel_orders.domain.entities import Department, OrderStatus
from fuel_orders.domain.errors import PermissionDenied, ValidationError
from fuel_orders.domain.visibility import (
    FINANCIAL_FIELDS,
    apply_dashboard_filter,
    as_utc_datetime,
    can_see_financial_info,
    dashboard_counts,
    date_range,
    filter_orders_by_date,
    order_view,
    queue_orders,
    queues_for,
    visible_orders,
)
from tests.factories import NOW, make_order

SALES = RequestContext("sales-1", Department.SALES)
OTHER_SALES = RequestContext("sales-2", Department.SALES)
MANAGEMENT = RequestContext("mgr-1", Department.MANAGEMENT)
FINANCE = RequestContext("fin-1", Department.FINANCE)
TRANSPORT = RequestContext("tr-1", Department.TRANSPORT)
WAREHOUSE = RequestContext("wh-1", Department.WAREHOUSE)


def sample_orders():
    return [
        make_order("ORD-1", OrderStatus.PENDING_APPROVAL, created_by="sales-1"),
        make_order("ORD-2", OrderStatus.APPROVED, created_by="sales-2"),
        make_order("ORD-3", OrderStatus.APPROVED, created_by="sales-1", proforma_number="PF-3"),
        make_order("ORD-4", OrderStatus.TRUCK_ASSIGNED, created_by="sales-3", driver_name="A", proforma_number="PF-4"),
        make_order("ORD-5", OrderStatus.LOADING, created_by="sales-3", driver_name="B"),
        make_order("ORD-6", OrderStatus.LEFT_WAREHOUSE, created_by="sales-3", driver_name="C"),
        make_order("ORD-7", OrderStatus.DISPUTED, created_by="sales-3", driver_name="D"),
        make_order("ORD-8", OrderStatus.DELIVERED, created_by="sales-3", proforma_number="PF-8",
                   invoice_number="INV-8"),
        make_order("ORD-9", OrderStatus.REJECTED, created_by="sales-1"),
    ]


class TestOrderSubset(unittest.TestCase):

    def test_sales_sees_only_own_orders(self):
        orders = sample_orders()
        result = visible_orders(SALES, orders)
        self.assertEqual([o.order_id for o in result], ["ORD-1", "ORD-3", "ORD-9"])
        self.assertTrue(all(o.created_by == "sales-1" for o in result))
        self.assertEqual([o.order_id for o in visible_orders(OTHER_SALES, orders)], ["ORD-2"])

    def test_other_departments_see_everything(self):
        orders = sample_orders()
        for context in (MANAGEMENT, FINANCE, TRANSPORT, WAREHOUSE):
            self.assertEqual(len(visible_orders(context, orders)), len(orders))


class TestFieldVisibility(unittest.TestCase):

    def test_financial_departments(self):
        self.assertTrue(can_see_financial_info(Department.SALES))
        self.assertTrue(can_see_financial_info(Department.FINANCE))
        self.assertFalse(can_see_financial_info(Department.WAREHOUSE))
        self.assertFalse(can_see_financial_info(Department.ADMIN))

    def test_transport_and_warehouse_never_see_prices(self):
        order = make_order(proforma_amount=100.0, invoice_amount=100.0)
        for department in (Department.TRANSPORT, Department.WAREHOUSE):
            view = order_view(order, department)
            for name in FINANCIAL_FIELDS:
                self.assertNotIn(name, view)
            self.assertEqual(view['quantity'], 1000.0)

    def test_management_sees_prices(self):
        view = order_view(make_order(), Department.MANAGEMENT)
        self.assertEqual(view['total_amount'], 81000.0)
        self.assertEqual(view['margin'], 2.5)


class TestQueues:

    @pytest.mark.parametrize("context,queue,expected", [
        (MANAGEMENT, 'approval', ["ORD-1"]),
        (MANAGEMENT, 'disputes', ["ORD-7"]),
        (FINANCE, 'proforma', ["ORD-2", "ORD-5", "ORD-6", "ORD-7"]),
        (FINANCE, 'invoice', ["ORD-3", "ORD-4"]),
        (TRANSPORT, 'assign', ["ORD-2", "ORD-3"]),
        (TRANSPORT, 'assigned', ["ORD-4", "ORD-5"]),
        (TRANSPORT, 'delivery', ["ORD-6"]),
        (WAREHOUSE, 'warehouse', ["ORD-4", "ORD-5"]),
    ])
    def test_queue_contents(self, context, queue, expected):
        assert [o.order_id for o in queue_orders(context, sample_orders(), queue)] == expected

    def test_unknown_queue(self):
        with pytest.raises(ValidationError):
            queue_orders(MANAGEMENT, sample_orders(), 'everything')

    def test_queue_of_another_department(self):
        with pytest.raises(PermissionDenied):
            queue_orders(WAREHOUSE, sample_orders(), 'approval')

    def test_queues_for_department(self):
        assert queues_for(Department.TRANSPORT) == ['assign', 'assigned', 'delivery']
        assert queues_for(Department.ADMIN) == ['approval', 'disputes']
        assert queues_for(Department.SALES) == []


class TestDashboard:

    def test_sales_counts_only_own_orders(self):
        counts = dashboard_counts(SALES, sample_orders())
        assert counts['pending'] == 1
        assert counts['rejected'] == 1
        assert counts['myOrders'] == 2
        assert 'needsDocs' not in counts

    def test_finance_counts(self):
        counts = dashboard_counts(FINANCE, sample_orders())
        assert counts['completed'] == 1
        assert counts['needsDocs'] == 8

    def test_transport_filters(self):
        result = apply_dashboard_filter(TRANSPORT, sample_orders(), 'assigned')
        assert [o.order_id for o in result] == ["ORD-4", "ORD-5", "ORD-6"]
        result = apply_dashboard_filter(TRANSPORT, sample_orders(), 'forAssigning')
        assert [o.order_id for o in result] == ["ORD-2", "ORD-3"]

    def test_active_and_finished(self):
        active = apply_dashboard_filter(MANAGEMENT, sample_orders(), 'active')
        assert [o.order_id for o in active] == ["ORD-2", "ORD-3", "ORD-4", "ORD-5", "ORD-6"]
        finished = apply_dashboard_filter(MANAGEMENT, sample_orders(), 'finished')
        assert [o.order_id for o in finished] == ["ORD-8"]

    def test_filter_not_offered_to_department(self):
        with pytest.raises(ValidationError):
            apply_dashboard_filter(WAREHOUSE, sample_orders(), 'myOrders')


class TestDateRange(unittest.TestCase):

    def test_zero_days_means_today(self):
        start, end = date_range(0, now=NOW)
        self.assertEqual(start, datetime(2024, 3, 10, tzinfo=timezone.utc))
        self.assertEqual(end, NOW)

    def test_trailing_window(self):
        start, end = date_range(7, now=NOW)
        self.assertEqual(end - start, timedelta(days=7))

    def test_filter_orders_by_date(self):
        orders = [
            make_order("OLD", order_date=NOW - timedelta(days=40)),
            make_order("NEW", order_date=NOW - timedelta(days=2)),
            make_order("NONE", order_date=None),
        ]
        start, end = date_range(30, now=NOW)
        self.assertEqual([o.order_id for o in filter_orders_by_date(orders, start, end)], ["NEW"])

    def test_as_utc_datetime(self):
        self.assertEqual(as_utc_datetime(date(2024, 3, 1)), datetime(2024, 3, 1, tzinfo=timezone.utc))
        self.assertEqual(as_utc_datetime("2024-03-01T10:00:00"), datetime(2024, 3, 1, 10, tzinfo=timezone.utc))
        self.assertIsNone(as_utc_datetime(None))
