# fuel_orders/domain/errors.py
"""
Errores de dominio del flujo de pedidos.

La capa web traduce cada tipo a un código HTTP; solo BackendUnavailable
se reintenta (ver application/retry.py).
"""
from typing import Optional


class OrderWorkflowError(Exception):
    """Error base del flujo de pedidos."""
    status_code = 500
    error_code = "ORDER_WORKFLOW_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self):
        payload = {"error": self.error_code, "message": self.message}
        if self.field:
            payload["field"] = self.field
        return payload


class ValidationError(OrderWorkflowError):
    """Falta un dato obligatorio o tiene un valor no permitido."""
    status_code = 400
    error_code = "VALIDATION_ERROR"


class PermissionDenied(OrderWorkflowError):
    """El departamento del actor no tiene la capacidad requerida."""
    status_code = 403
    error_code = "PERMISSION_DENIED"


class NotFound(OrderWorkflowError):
    """El pedido o la entidad solicitada no existe."""
    status_code = 404
    error_code = "NOT_FOUND"


class InvalidTransition(OrderWorkflowError):
    """La acción no es legal desde el estado actual del pedido."""
    status_code = 409
    error_code = "INVALID_TRANSITION"


class BackendUnavailable(OrderWorkflowError):
    """El almacenamiento no responde (caído o timeout)."""
    status_code = 503
    error_code = "BACKEND_UNAVAILABLE"
