import unittest
from unittest.mock import Mock

from fuel_orders.application.reference_use_cases import (
    ListReferenceDataUseCase,
    ListRegulatoryPricesUseCase,
    ManageReferenceDataUseCase,
    UpdateRegulatoryPriceUseCase,
)
from fuel_orders.domain.context import RequestContext
from fuel_orders.domain.entities import Department
from fuel_orders.domain.errors import NotFound, PermissionDenied, ValidationError
from fuel_orders.infrastructure.persistence.memory_repository import InMemoryReferenceDataRepository

ADMIN = RequestContext("admin-1", Department.ADMIN)
FINANCE = RequestContext("fin-1", Department.FINANCE)
TRANSPORT = RequestContext("tr-1", Department.TRANSPORT)


class TestManageReferenceData(unittest.TestCase):

    def setUp(self):
        self.repository = InMemoryReferenceDataRepository()
        self.manage = ManageReferenceDataUseCase(self.repository)
        self.list_case = ListReferenceDataUseCase(self.repository)

    def test_create_update_and_deactivate_driver(self):
        self.manage.create(ADMIN, 'drivers', {'driver_id': "DRV-2", 'driver_name': "Zoran"})
        self.manage.create(ADMIN, 'drivers', {'driver_id': "DRV-1", 'driver_name': "Bojan"})
        self.assertEqual([d.driver_name for d in self.list_case.execute('drivers')], ["Bojan", "Zoran"])

        updated = self.manage.update(ADMIN, 'drivers', "DRV-1", {'driver_id': "DRV-9", 'phone': "070 111 222"})
        self.assertEqual(updated.driver_id, "DRV-1")
        self.assertEqual(updated.phone, "070 111 222")

        self.manage.deactivate(ADMIN, 'drivers', "DRV-2")
        self.assertEqual([d.driver_id for d in self.list_case.execute('drivers')], ["DRV-1"])
        self.assertFalse(self.repository.get('drivers', "DRV-2").active)

    def test_only_admin_manages(self):
        with self.assertRaises(PermissionDenied):
            self.manage.create(TRANSPORT, 'trucks', {'truck_id': "TR-1", 'plate_number': "SK-1"})
        with self.assertRaises(PermissionDenied):
            self.manage.deactivate(FINANCE, 'clients', "CL-001")

    def test_required_fields(self):
        with self.assertRaises(ValidationError) as ctx:
            self.manage.create(ADMIN, 'companies', {'company_id': "TC-1", 'company_name': " "})
        self.assertEqual(ctx.exception.field, "company_name")

    def test_duplicate_key(self):
        self.manage.create(ADMIN, 'clients', {'client_id': "CL-1", 'client_name': "Agro"})
        with self.assertRaises(ValidationError):
            self.manage.create(ADMIN, 'clients', {'client_id': "CL-1", 'client_name': "Other"})

    def test_update_with_only_the_key(self):
        with self.assertRaises(ValidationError):
            self.manage.update(ADMIN, 'clients', "CL-1", {'client_id': "CL-2"})

    def test_update_missing_entity(self):
        with self.assertRaises(NotFound):
            self.manage.update(ADMIN, 'trucks', "TR-404", {'capacity': 30000})

    def test_unknown_kind(self):
        with self.assertRaises(ValidationError):
            self.list_case.execute('pilots')
        with self.assertRaises(ValidationError):
            self.manage.create(ADMIN, 'pilots', {})

    def test_list_passes_kind_to_repository(self):
        repository = Mock()
        repository.list_active.return_value = []
        self.assertEqual(ListReferenceDataUseCase(repository).execute('companies'), [])
        repository.list_active.assert_called_once_with('companies')


class TestRegulatoryPrices(unittest.TestCase):

    def setUp(self):
        self.repository = InMemoryReferenceDataRepository()
        self.update = UpdateRegulatoryPriceUseCase(self.repository)

    def test_update_closes_previous_price(self):
        self.update.execute(FINANCE, {'product_type': "Eurodiesel", 'base_price': "78.5"})
        price = self.update.execute(FINANCE, {'product_type': "Eurodiesel", 'base_price': 80, 'unit': "L"})

        self.assertEqual(price.base_price, 80.0)
        self.assertEqual(price.updated_by, "fin-1")
        current = ListRegulatoryPricesUseCase(self.repository).execute()
        self.assertEqual([(p.product_type, p.base_price) for p in current], [("Eurodiesel", 80.0)])
        self.assertEqual(self.repository.get_current_price("Eurodiesel").base_price, 80.0)

    def test_only_finance_updates_prices(self):
        with self.assertRaises(PermissionDenied):
            self.update.execute(ADMIN, {'product_type': "Eurodiesel", 'base_price': 80})

    def test_invalid_payloads(self):
        cases = [
            ({'product_type': "Kerosene", 'base_price': 1}, "product_type"),
            ({'product_type': "Mazut", 'base_price': 1, 'unit': "gal"}, "unit"),
            ({'product_type': "Mazut", 'base_price': "abc"}, "base_price"),
            ({'product_type': "Mazut"}, "base_price"),
            ({'product_type': "Mazut", 'base_price': 0}, "base_price"),
        ]
        for data, field in cases:
            with self.subTest(data=data):
                with self.assertRaises(ValidationError) as ctx:
                    self.update.execute(FINANCE, data)
                self.assertEqual(ctx.exception.field, field)
