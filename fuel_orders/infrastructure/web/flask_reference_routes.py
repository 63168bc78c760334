# fuel_orders/infrastructure/web/flask_reference_routes.py
from flask import Blueprint, jsonify

from fuel_orders.application.reference_use_cases import (
    ListReferenceDataUseCase,
    ListRegulatoryPricesUseCase,
    ManageReferenceDataUseCase,
    UpdateRegulatoryPriceUseCase,
)
from .request_context import context_from_request, json_body, register_error_handlers


def create_reference_blueprint(
    list_case: ListReferenceDataUseCase,
    manage_case: ManageReferenceDataUseCase,
    list_prices_case: ListRegulatoryPricesUseCase,
    update_price_case: UpdateRegulatoryPriceUseCase,
):
    """Datos maestros (lectura para todos, administración para Admin) y precios regulados."""
    reference_bp = Blueprint('reference', __name__)
    register_error_handlers(reference_bp)

    # Las rutas estáticas tienen prioridad sobre /<kind>
    @reference_bp.route('/prices', methods=['GET'])
    def list_prices():
        context_from_request()
        prices = list_prices_case.execute()
        return jsonify({"prices": [p.to_dict() for p in prices]}), 200

    @reference_bp.route('/prices', methods=['PUT'])
    def update_price():
        context = context_from_request()
        price = update_price_case.execute(context, json_body())
        return jsonify({"price": price.to_dict()}), 200

    @reference_bp.route('/<kind>', methods=['GET'])
    def list_reference(kind):
        context_from_request()
        entities = list_case.execute(kind)
        return jsonify({kind: [e.to_dict() for e in entities]}), 200

    @reference_bp.route('/<kind>', methods=['POST'])
    def create_reference(kind):
        context = context_from_request()
        entity = manage_case.create(context, kind, json_body())
        return jsonify({"item": entity.to_dict()}), 201

    @reference_bp.route('/<kind>/<entity_id>', methods=['PUT'])
    def update_reference(kind, entity_id):
        context = context_from_request()
        entity = manage_case.update(context, kind, entity_id, json_body())
        return jsonify({"item": entity.to_dict()}), 200

    @reference_bp.route('/<kind>/<entity_id>', methods=['DELETE'])
    def deactivate_reference(kind, entity_id):
        context = context_from_request()
        manage_case.deactivate(context, kind, entity_id)
        return jsonify({"message": f"{kind} '{entity_id}' deactivated"}), 200

    return reference_bp
