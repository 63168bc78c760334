# fuel_orders/domain/entities.py
from datetime import datetime, date
from dataclasses import dataclass, fields, asdict
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any


class OrderStatus(str, Enum):
    """Estados del pedido. Los valores viajan tal cual en el JSON."""
    PENDING_APPROVAL = "Pending Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    TRUCK_ASSIGNED = "Truck Assigned"
    IN_WAREHOUSE = "In Warehouse"
    LOADING = "Loading"
    LEFT_WAREHOUSE = "Left Warehouse"
    DELIVERED = "Delivered"
    DISPUTED = "Disputed"
    RESOLVED = "Resolved"


TERMINAL_STATUSES = frozenset({
    OrderStatus.DELIVERED,
    OrderStatus.REJECTED,
    OrderStatus.RESOLVED,
})


class Department(str, Enum):
    """Departamentos cerrados; la capacidad de cada uno vive en workflow.CAPABILITIES."""
    SALES = "Sales"
    MANAGEMENT = "Management"
    FINANCE = "Finance"
    TRANSPORT = "Transport"
    WAREHOUSE = "Warehouse"
    ADMIN = "Admin"


# Catálogos de negocio
PRODUCT_TYPES = [
    'Eurodiesel',
    'Eurosuper 95 BS',
    'GeForce 95 Plus',
    'Extreme Diesel',
    'Ekstra Lesno',
    'Mazut',
]
UNITS = ['L', 'Kg']
WAREHOUSES = ['Skopje Ohis', 'Tetovo']
PAYMENT_TERMS = ['Advanced payment', 'Credit payment', 'Paid Advance']
PRIORITIES = ['Normal', 'Low', 'High', 'Urgent', 'Critical']
DOCUMENT_TYPES = ['Ispratnica', 'Kantarna beleshka', 'CMR', 'POD', 'Photo', 'Other']

NOTE_TYPE_STATUS_CHANGE = "Status Change"
NOTE_TYPE_GENERAL = "General"


def serialize_value(value: Any) -> Any:
    """Convierte fechas, Decimal y Enum a tipos JSON."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


class _Record:
    """Mezcla con to_dict/from_dict para las entidades de dominio."""

    def to_dict(self) -> Dict[str, Any]:
        return {key: serialize_value(value) for key, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Crear instancia ignorando claves desconocidas (p.ej. columnas extra de la BD)."""
        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}
        for key, value in kwargs.items():
            if isinstance(value, Decimal):
                kwargs[key] = float(value)
        return cls(**kwargs)


@dataclass
class Order(_Record):
    """Entidad central de Pedido de combustible."""
    order_id: Optional[str]
    created_by: str
    client_id: str
    product_type: str
    unit: str
    quantity: float
    status: OrderStatus = OrderStatus.PENDING_APPROVAL
    order_date: Optional[datetime] = None
    client_name: str = ""
    # Campos comerciales (fijados al crear el pedido)
    margin: Optional[float] = None
    regulatory_price: Optional[float] = None
    price_with_margin: Optional[float] = None
    total_amount: Optional[float] = None
    warehouse: str = ""
    requested_delivery_date: Optional[date] = None
    preferred_delivery_time: str = ""
    avoid_afterwork: bool = False
    payment_terms: str = ""
    priority: str = "Normal"
    no_gulf_brand: bool = False
    # Aprobación / rechazo (Management)
    approved_by: Optional[str] = None
    approval_date: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejection_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    # Documentos (Finance)
    proforma_number: Optional[str] = None
    proforma_amount: Optional[float] = None
    proforma_date: Optional[datetime] = None
    invoice_number: Optional[str] = None
    invoice_amount: Optional[float] = None
    invoice_date: Optional[datetime] = None
    # Transporte
    driver_name: Optional[str] = None
    truck_plate: Optional[str] = None
    transport_company: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    transport_assigned_by: Optional[str] = None
    transport_assigned_date: Optional[datetime] = None
    # Almacén
    in_warehouse_date: Optional[datetime] = None
    loading_date: Optional[datetime] = None
    left_warehouse_date: Optional[datetime] = None
    # Entrega y disputa
    delivered_by: Optional[str] = None
    delivered_date: Optional[datetime] = None
    dispute_reason: Optional[str] = None
    disputed_by: Optional[str] = None
    dispute_date: Optional[datetime] = None
    resolution: Optional[str] = None
    resolved_by: Optional[str] = None
    resolution_date: Optional[datetime] = None
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        # Un estado desconocido es un error de datos, no un valor por defecto.
        self.status = OrderStatus(self.status)
        for name in ('quantity', 'margin', 'regulatory_price', 'price_with_margin',
                     'total_amount', 'proforma_amount', 'invoice_amount'):
            setattr(self, name, _to_float(getattr(self, name)))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def has_driver(self) -> bool:
        return bool(self.driver_name and self.driver_name.strip())


ORDER_COLUMNS: List[str] = [f.name for f in fields(Order)]


@dataclass
class OrderNote(_Record):
    """Entrada de auditoría/comentario; inmutable una vez creada."""
    order_id: str
    user_id: str
    note: str
    note_type: str = NOTE_TYPE_GENERAL
    user_name: str = ""
    department: str = ""
    created_at: Optional[datetime] = None
    note_id: Optional[int] = None
    dedupe_key: Optional[str] = None


@dataclass
class Document(_Record):
    """Metadatos de un archivo adjunto a un pedido."""
    order_id: str
    file_name: str
    document_type: str
    storage_path: str
    uploaded_by: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    document_id: Optional[int] = None


@dataclass
class Client(_Record):
    client_id: str
    client_name: str
    address: Optional[str] = None
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    tax_id: Optional[str] = None
    assigned_sm: Optional[str] = None
    payment_terms: Optional[str] = None
    credit_limit: Optional[float] = None
    notes: Optional[str] = None
    active: bool = True


@dataclass
class Driver(_Record):
    driver_id: str
    driver_name: str
    license_number: str = ""
    phone: Optional[str] = None
    email: Optional[str] = None
    license_expiry: Optional[date] = None
    assigned_company: Optional[str] = None
    active: bool = True


@dataclass
class Truck(_Record):
    truck_id: str
    plate_number: str
    truck_type: Optional[str] = None
    capacity: Optional[float] = None
    capacity_unit: Optional[str] = None
    assigned_driver_id: Optional[str] = None
    transport_company_id: Optional[str] = None
    active: bool = True


@dataclass
class TransportCompany(_Record):
    company_id: str
    company_name: str
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    rate_per_km: Optional[float] = None
    rate_per_load: Optional[float] = None
    payment_terms: Optional[str] = None
    notes: Optional[str] = None
    active: bool = True


@dataclass
class RegulatoryPrice(_Record):
    """Precio regulado vigente (effective_to = None) o histórico."""
    product_type: str
    base_price: float
    unit: str = "L"
    effective_from: Optional[datetime] = None
    effective_to: Optional[datetime] = None
    updated_by: Optional[str] = None


@dataclass
class ReferenceKind:
    """Describe una tabla de datos maestros: entidad, clave y campo de orden."""
    name: str
    entity: type
    key: str
    display: str
    table: str = ""

    def __post_init__(self):
        if not self.table:
            self.table = self.name


REFERENCE_KINDS: Dict[str, ReferenceKind] = {
    'clients': ReferenceKind('clients', Client, 'client_id', 'client_name'),
    'drivers': ReferenceKind('drivers', Driver, 'driver_id', 'driver_name'),
    'trucks': ReferenceKind('trucks', Truck, 'truck_id', 'plate_number'),
    'companies': ReferenceKind('companies', TransportCompany, 'company_id', 'company_name',
                               table='transport_companies'),
}
