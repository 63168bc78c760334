# fuel_orders/infrastructure/web/flask_analytics_routes.py
import io

from flask import Blueprint, jsonify, send_file

from fuel_orders.application.analytics_use_case import XLSX_MIMETYPE, AnalyticsUseCase
from .request_context import context_from_request, query_int, register_error_handlers


def create_analytics_blueprint(analytics_case: AnalyticsUseCase):
    analytics_bp = Blueprint('analytics', __name__)
    register_error_handlers(analytics_bp)

    @analytics_bp.route('/', methods=['GET'])
    def get_analytics():
        context = context_from_request()
        analytics, days = analytics_case.execute(context, days=query_int('days'))
        payload = analytics.to_dict()
        payload['days'] = days
        return jsonify(payload), 200

    @analytics_bp.route('/export', methods=['GET'])
    def export_analytics():
        context = context_from_request()
        content, file_name = analytics_case.export(context, days=query_int('days'))
        return send_file(
            io.BytesIO(content),
            mimetype=XLSX_MIMETYPE,
            as_attachment=True,
            download_name=file_name,
        )

    return analytics_bp
