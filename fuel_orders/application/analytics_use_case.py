# fuel_orders/application/analytics_use_case.py
import io
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

import pandas as pd

from fuel_orders.domain.analytics import TIME_METRIC_LABELS, Analytics, average, calculate_analytics
from fuel_orders.domain.context import RequestContext
from fuel_orders.domain.errors import ValidationError
from fuel_orders.domain.interfaces import OrderRepository
from fuel_orders.domain.visibility import date_range, filter_orders_by_date
from fuel_orders.domain.workflow import Capability, require_capability

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'

_VARIANCE_LABELS = {'early': 'Early', 'onTime': 'On Time', 'late': 'Late'}


class AnalyticsUseCase:
    """
    Caso de uso: Analítica de pedidos (Management y Admin) sobre una ventana de días.
    """

    def __init__(self, order_repository: OrderRepository, default_days: int = 30):
        self.repository = order_repository
        self.default_days = default_days

    def execute(self, context: RequestContext, days: Optional[int] = None) -> Tuple[Analytics, int]:
        require_capability(context, Capability.VIEW_ANALYTICS)
        days = self.default_days if days is None else days
        if days < 0:
            raise ValidationError("Parameter 'days' must be zero or positive.", field="days")

        start, end = date_range(days)
        orders = filter_orders_by_date(self.repository.list_orders(), start, end)
        return calculate_analytics(orders), days

    def export(self, context: RequestContext, days: Optional[int] = None) -> Tuple[bytes, str]:
        """Genera el libro Excel del reporte; retorna (contenido, nombre de archivo)."""
        analytics, days = self.execute(context, days)
        generated = datetime.now(timezone.utc)
        content = build_analytics_workbook(analytics, days, generated)
        file_name = f"Fuel_Orders_Analytics_{generated.strftime('%Y-%m-%d')}.xlsx"
        logger.info(f"Reporte de analítica exportado por {context.user_id} ({days} días)")
        return content, file_name


def _sheets(analytics: Analytics, days: int, generated: datetime):
    summary = analytics.summary
    yield 'Summary', pd.DataFrame([
        ['Generated', generated.strftime('%Y-%m-%d %H:%M:%S')],
        ['Date Range', f"Last {days} days"],
        ['Total Orders', summary['total_orders']],
        ['Delivered Orders', summary['delivered']],
        ['Disputed Orders', summary['disputed']],
        ['Rejected Orders', summary['rejected']],
        ['Active Orders', summary['active']],
    ], columns=['Metric', 'Value'])

    yield 'Sales Performance', pd.DataFrame(
        [[sm, s.count, s.delivered, s.rejected, s.disputed, f"{s.success_rate:.1f}%"]
         for sm, s in analytics.orders_by_sm.items()],
        columns=['Sales Manager', 'Total Orders', 'Delivered', 'Rejected', 'Disputed', 'Success Rate'],
    )
    yield 'Products', pd.DataFrame(list(analytics.product_counts.items()),
                                   columns=['Product Type', 'Order Count'])
    yield 'Transport', pd.DataFrame(list(analytics.transport_counts.items()),
                                    columns=['Company', 'Order Count'])
    yield 'Status', pd.DataFrame(list(analytics.status_counts.items()), columns=['Status', 'Count'])
    yield 'Time Metrics', pd.DataFrame(
        [[TIME_METRIC_LABELS[name], average(values)] for name, values in analytics.time_metrics.items()],
        columns=['Metric', 'Average Days'],
    )
    yield 'Delivery Variance', pd.DataFrame(
        [[v.order_id, v.variance, _VARIANCE_LABELS[v.classification]] for v in analytics.delivery_variance],
        columns=['Order ID', 'Variance (Days)', 'Status'],
    )


def build_analytics_workbook(analytics: Analytics, days: int, generated: datetime) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        for sheet_name, df in _sheets(analytics, days, generated):
            df.to_excel(writer, sheet_name=sheet_name, index=False)

            # Ancho de columnas básico
            ws = writer.sheets[sheet_name]
            for col_idx, col in enumerate(df.columns):
                ws.set_column(col_idx, col_idx, max(12, min(50, len(str(col)) + 6)))
    return buffer.getvalue()
