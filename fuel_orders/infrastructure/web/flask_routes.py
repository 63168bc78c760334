# fuel_orders/infrastructure/web/flask_routes.py
from flask import Blueprint, jsonify, request

from fuel_orders.application.document_use_cases import (
    GetDocumentUrlUseCase,
    ListDocumentsUseCase,
    UploadDocumentUseCase,
)
from fuel_orders.application.use_cases import (
    AddNoteUseCase,
    ApplyWorkflowActionUseCase,
    CreateOrderUseCase,
    DashboardUseCase,
    EnterDocumentUseCase,
    GetOrderUseCase,
    ListNotesUseCase,
    ListOrdersUseCase,
)
from fuel_orders.domain.errors import ValidationError
from fuel_orders.domain.visibility import order_view
from fuel_orders.domain.workflow import available_actions
from .request_context import context_from_request, json_body, query_int, register_error_handlers


def _stream_size(stream) -> int:
    # Tamaño del archivo subido, no del cuerpo multipart completo
    stream.seek(0, 2)
    size = stream.tell()
    stream.seek(0)
    return size


def create_api_blueprint(
    list_case: ListOrdersUseCase,
    get_case: GetOrderUseCase,
    create_case: CreateOrderUseCase,
    workflow_case: ApplyWorkflowActionUseCase,
    document_entry_case: EnterDocumentUseCase,
    list_notes_case: ListNotesUseCase,
    add_note_case: AddNoteUseCase,
    dashboard_case: DashboardUseCase,
    list_documents_case: ListDocumentsUseCase,
    upload_document_case: UploadDocumentUseCase,
    document_url_case: GetDocumentUrlUseCase,
):
    """
    Función de fábrica para inyectar los Casos de Uso en el Blueprint.
    Crea un nuevo Blueprint en cada llamada para evitar conflictos en tests.
    """
    api_bp = Blueprint('orders', __name__)
    register_error_handlers(api_bp)

    @api_bp.route('/', methods=['GET'])
    def list_orders():
        # 1. Identidad y parámetros
        context = context_from_request()
        orders = list_case.execute(
            context,
            queue=request.args.get('queue'),
            filter_name=request.args.get('filter'),
            days=query_int('days'),
        )
        # 2. Representación según el departamento (sin campos financieros si no corresponde)
        return jsonify({"orders": [order_view(o, context.department) for o in orders]}), 200

    @api_bp.route('/dashboard', methods=['GET'])
    def dashboard():
        context = context_from_request()
        return jsonify(dashboard_case.execute(context, days=query_int('days'))), 200

    @api_bp.route('/', methods=['POST'])
    def create_order():
        context = context_from_request()
        order = create_case.execute(context, json_body())
        return jsonify({
            "order": order_view(order, context.department),
            "message": "Order created successfully"
        }), 201

    @api_bp.route('/<order_id>', methods=['GET'])
    def get_order(order_id):
        context = context_from_request()
        order = get_case.execute(context, order_id)
        return jsonify({
            "order": order_view(order, context.department),
            "available_actions": [a.value for a in available_actions(order, context.department)],
        }), 200

    @api_bp.route('/<order_id>/actions/<action>', methods=['POST'])
    def apply_action(order_id, action):
        context = context_from_request()
        order = workflow_case.execute(context, order_id, action, json_body())
        return jsonify({"order": order_view(order, context.department)}), 200

    @api_bp.route('/<order_id>/proforma', methods=['POST'])
    def enter_proforma(order_id):
        context = context_from_request()
        order = document_entry_case.execute(context, order_id, 'proforma', json_body())
        return jsonify({"order": order_view(order, context.department)}), 200

    @api_bp.route('/<order_id>/invoice', methods=['POST'])
    def enter_invoice(order_id):
        context = context_from_request()
        order = document_entry_case.execute(context, order_id, 'invoice', json_body())
        return jsonify({"order": order_view(order, context.department)}), 200

    @api_bp.route('/<order_id>/notes', methods=['GET'])
    def list_notes(order_id):
        context = context_from_request()
        notes = list_notes_case.execute(context, order_id)
        return jsonify({"notes": [n.to_dict() for n in notes]}), 200

    @api_bp.route('/<order_id>/notes', methods=['POST'])
    def add_note(order_id):
        context = context_from_request()
        note = add_note_case.execute(context, order_id, json_body().get('note'))
        return jsonify({"note": note.to_dict()}), 201

    @api_bp.route('/<order_id>/documents', methods=['GET'])
    def list_documents(order_id):
        context = context_from_request()
        documents = list_documents_case.execute(context, order_id)
        return jsonify({"documents": [d.to_dict() for d in documents]}), 200

    @api_bp.route('/<order_id>/documents', methods=['POST'])
    def upload_document(order_id):
        context = context_from_request()
        file = request.files.get('file')
        if file is None or not file.filename:
            raise ValidationError("A file is required.", field="file")
        document = upload_document_case.execute(
            context,
            order_id,
            document_type=request.form.get('document_type', ''),
            file_name=file.filename,
            stream=file.stream,
            content_type=file.mimetype,
            file_size=file.content_length or _stream_size(file.stream),
        )
        return jsonify({"document": document.to_dict()}), 201

    @api_bp.route('/<order_id>/documents/<int:document_id>/url', methods=['GET'])
    def document_url(order_id, document_id):
        context = context_from_request()
        result = document_url_case.execute(context, order_id, document_id)
        return jsonify({
            "document": result['document'].to_dict(),
            "url": result['url'],
        }), 200

    return api_bp
