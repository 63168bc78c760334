# fuel_orders/infrastructure/web/request_context.py
"""
Utilidades compartidas por los Blueprints: identidad del actor desde los
headers, parámetros de consulta y traducción de errores de dominio a JSON.
"""
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from fuel_orders.domain.context import RequestContext
from fuel_orders.domain.errors import OrderWorkflowError, ValidationError

USER_ID_HEADER = 'X-User-Id'
USER_NAME_HEADER = 'X-User-Name'
DEPARTMENT_HEADER = 'X-Department'


def context_from_request() -> RequestContext:
    """La autenticación ocurre antes; aquí solo se lee la identidad ya verificada."""
    user_id = request.headers.get(USER_ID_HEADER, '').strip()
    department = request.headers.get(DEPARTMENT_HEADER, '').strip()
    if not user_id or not department:
        raise ValidationError(f"Headers {USER_ID_HEADER} and {DEPARTMENT_HEADER} are required.")
    return RequestContext(
        user_id=user_id,
        department=department,
        user_name=request.headers.get(USER_NAME_HEADER, '').strip(),
    )


def json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def query_int(name: str) -> Optional[int]:
    value = request.args.get(name)
    if value is None or value == '':
        return None
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"Parameter '{name}' must be an integer.", field=name) from None


def register_error_handlers(blueprint: Blueprint) -> None:
    """Traduce la jerarquía OrderWorkflowError a respuestas {"error", "message"}."""

    @blueprint.errorhandler(OrderWorkflowError)
    def handle_workflow_error(error: OrderWorkflowError):
        return jsonify(error.to_dict()), error.status_code

    @blueprint.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        if isinstance(error, HTTPException):
            return error
        current_app.logger.exception(f"Error inesperado en {request.method} {request.path}: {error}")
        return jsonify({"error": "INTERNAL_ERROR", "message": "Internal error in the orders service."}), 500
