"""Fixtures compartidos: contextos por departamento."""
import pytest

from fuel_orders.domain.context import RequestContext
from fuel_orders.domain.entities import Department


@pytest.fixture
def contexts():
    return {
        Department.SALES: RequestContext("sales-1", Department.SALES, "Ana Sales"),
        Department.MANAGEMENT: RequestContext("mgr-1", Department.MANAGEMENT, "Marko Manager"),
        Department.FINANCE: RequestContext("fin-1", Department.FINANCE, "Fiona Finance"),
        Department.TRANSPORT: RequestContext("tr-1", Department.TRANSPORT, "Toni Transport"),
        Department.WAREHOUSE: RequestContext("wh-1", Department.WAREHOUSE, "Vesna Warehouse"),
        Department.ADMIN: RequestContext("admin-1", Department.ADMIN, "Ada Admin"),
    }
