# fuel_orders/application/reference_use_cases.py
import logging
from typing import Any, Dict, List

from fuel_orders.domain.context import RequestContext
from fuel_orders.domain.entities import PRODUCT_TYPES, REFERENCE_KINDS, UNITS, RegulatoryPrice, ReferenceKind
from fuel_orders.domain.errors import ValidationError
from fuel_orders.domain.interfaces import ReferenceDataRepository
from fuel_orders.domain.workflow import Capability, require_capability

logger = logging.getLogger(__name__)


def _reference_kind(kind: str) -> ReferenceKind:
    reference_kind = REFERENCE_KINDS.get(kind)
    if reference_kind is None:
        raise ValidationError(f"Unknown reference data '{kind}'.", field="kind")
    return reference_kind


class ListReferenceDataUseCase:
    """Caso de uso: Listar datos maestros activos (lectura para todos los departamentos)."""

    def __init__(self, reference_repository: ReferenceDataRepository):
        self.repository = reference_repository

    def execute(self, kind: str) -> List[Any]:
        _reference_kind(kind)
        return self.repository.list_active(kind)


class ManageReferenceDataUseCase:
    """
    Caso de uso: Alta, modificación y baja lógica de datos maestros (solo Admin).
    """

    def __init__(self, reference_repository: ReferenceDataRepository):
        self.repository = reference_repository

    def create(self, context: RequestContext, kind: str, data: Dict[str, Any]) -> Any:
        require_capability(context, Capability.MANAGE_REFERENCE_DATA)
        reference_kind = _reference_kind(kind)

        # La clave y el nombre visible son obligatorios
        for name in (reference_kind.key, reference_kind.display):
            value = data.get(name)
            if value is None or not str(value).strip():
                raise ValidationError(f"Field '{name}' is required.", field=name)

        entity = self.repository.create(kind, data, context.user_id)
        logger.info(f"{kind}: {data.get(reference_kind.key)} creado por {context.user_id}")
        return entity

    def update(self, context: RequestContext, kind: str, entity_id: str, data: Dict[str, Any]) -> Any:
        require_capability(context, Capability.MANAGE_REFERENCE_DATA)
        reference_kind = _reference_kind(kind)
        # La clave no se modifica
        data = {k: v for k, v in data.items() if k != reference_kind.key}
        if not data:
            raise ValidationError("Nothing to update.")
        entity = self.repository.update(kind, entity_id, data, context.user_id)
        logger.info(f"{kind}: {entity_id} actualizado por {context.user_id}")
        return entity

    def deactivate(self, context: RequestContext, kind: str, entity_id: str) -> None:
        require_capability(context, Capability.MANAGE_REFERENCE_DATA)
        _reference_kind(kind)
        self.repository.deactivate(kind, entity_id, context.user_id)
        logger.info(f"{kind}: {entity_id} desactivado por {context.user_id}")


class ListRegulatoryPricesUseCase:
    def __init__(self, reference_repository: ReferenceDataRepository):
        self.repository = reference_repository

    def execute(self) -> List[RegulatoryPrice]:
        return self.repository.list_regulatory_prices()


class UpdateRegulatoryPriceUseCase:
    """
    Caso de uso: Actualizar el precio regulado de un producto (Finance).
    El precio vigente se cierra y se abre uno nuevo; los pedidos existentes no cambian.
    """

    def __init__(self, reference_repository: ReferenceDataRepository):
        self.repository = reference_repository

    def execute(self, context: RequestContext, data: Dict[str, Any]) -> RegulatoryPrice:
        require_capability(context, Capability.UPDATE_PRICES)

        product_type = data.get('product_type')
        if product_type not in PRODUCT_TYPES:
            raise ValidationError(f"Invalid product_type '{product_type}'.", field="product_type")
        unit = data.get('unit') or UNITS[0]
        if unit not in UNITS:
            raise ValidationError(f"Invalid unit '{unit}'.", field="unit")
        try:
            base_price = round(float(data.get('base_price')), 4)
        except (TypeError, ValueError):
            raise ValidationError("Field 'base_price' must be a number.", field="base_price") from None
        if base_price <= 0:
            raise ValidationError("Field 'base_price' must be greater than zero.", field="base_price")

        price = self.repository.set_regulatory_price(product_type, base_price, unit, context.user_id)
        logger.info(f"Precio regulado de {product_type} actualizado a {base_price}/{unit} por {context.user_id}")
        return price
