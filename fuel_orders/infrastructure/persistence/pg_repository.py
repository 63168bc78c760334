# fuel_orders/infrastructure/persistence/pg_repository.py
import logging
from enum import Enum
from typing import Any, List

import psycopg2
from psycopg2 import extras, sql

from fuel_orders.domain.entities import ORDER_COLUMNS, Order, OrderNote
from fuel_orders.domain.errors import InvalidTransition, NotFound
from fuel_orders.domain.interfaces import OrderRepository
from .db_connector import get_connection, handle_db_error, release_connection

logger = logging.getLogger(__name__)

NOTE_COLUMNS = ['order_id', 'user_id', 'user_name', 'department', 'note', 'note_type', 'created_at', 'dedupe_key']


def db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _note_params(note: OrderNote, dedupe_key=None):
    return (
        note.order_id,
        note.user_id,
        note.user_name,
        note.department,
        note.note,
        note.note_type,
        note.created_at,
        dedupe_key if dedupe_key is not None else note.dedupe_key,
    )


class PgOrderRepository(OrderRepository):
    """
    Implementación concreta que se conecta a PostgreSQL
    para obtener y persistir Pedidos y sus notas usando psycopg2.
    """

    def list_orders(self) -> List[Order]:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            cursor.execute("SELECT * FROM fuel.orders ORDER BY order_date DESC, order_id DESC;")
            return [Order.from_dict(row) for row in cursor.fetchall()]
        except psycopg2.Error as e:
            handle_db_error(e, conn, "list orders")
        finally:
            if conn:
                release_connection(conn)

    def get_order(self, order_id: str) -> Order:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            cursor.execute("SELECT * FROM fuel.orders WHERE order_id = %s;", (order_id,))
            row = cursor.fetchone()
        except psycopg2.Error as e:
            handle_db_error(e, conn, "get order")
        finally:
            if conn:
                release_connection(conn)

        if row is None:
            raise NotFound(f"Order {order_id} not found.")
        return Order.from_dict(row)

    def insert_order(self, order: Order) -> Order:
        """
        Inserta un pedido nuevo. Si no trae order_id se asigna ORD-NNNNNN desde la secuencia.
        """
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)

            if not order.order_id:
                cursor.execute("SELECT nextval('fuel.order_number_seq') AS seq;")
                order.order_id = f"ORD-{cursor.fetchone()['seq']:06d}"

            data = {name: db_value(getattr(order, name)) for name in ORDER_COLUMNS}
            query = sql.SQL("INSERT INTO fuel.orders ({}) VALUES ({}) RETURNING *;").format(
                sql.SQL(', ').join(map(sql.Identifier, data.keys())),
                sql.SQL(', ').join(sql.Placeholder() * len(data)),
            )
            cursor.execute(query, list(data.values()))
            row = cursor.fetchone()
            conn.commit()
            return Order.from_dict(row)

        except psycopg2.Error as e:
            handle_db_error(e, conn, "insert order")
        finally:
            if conn:
                release_connection(conn)

    def apply_transition(self, order_id: str, result, dedupe_key: str) -> Order:
        """
        Compare-and-set sobre el estado esperado y los campos que deben seguir vacíos,
        más la nota de auditoría, en una sola transacción.
        """
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)

            # 1. UPDATE condicionado: solo gana quien aún ve el estado esperado
            assignments = sql.SQL(', ').join(
                sql.SQL("{} = {}").format(sql.Identifier(name), sql.Placeholder())
                for name in result.changes
            )
            conditions = [sql.SQL("order_id = %s"), sql.SQL("status = %s")]
            conditions += [
                sql.SQL("COALESCE({}, '') = ''").format(sql.Identifier(name))
                for name in result.empty_fields
            ]
            query = sql.SQL("UPDATE fuel.orders SET {} WHERE {} RETURNING *;").format(
                assignments, sql.SQL(' AND ').join(conditions)
            )
            params = [db_value(value) for value in result.changes.values()]
            params += [order_id, db_value(result.expected_status)]
            cursor.execute(query, params)
            row = cursor.fetchone()

            if row is None:
                conn.rollback()
                cursor.execute("SELECT status FROM fuel.orders WHERE order_id = %s;", (order_id,))
                current = cursor.fetchone()
                conn.rollback()
                if current is None:
                    raise NotFound(f"Order {order_id} not found.")
                logger.warning(
                    f"Transición {result.action.value} sobre {order_id} perdida: "
                    f"estado actual '{current['status']}'"
                )
                raise InvalidTransition(
                    f"Order {order_id} changed concurrently (status is '{current['status']}')."
                )

            # 2. Nota de auditoría en la misma transacción
            note_query = sql.SQL(
                "INSERT INTO fuel.order_notes ({}) VALUES ({}) ON CONFLICT (dedupe_key) DO NOTHING;"
            ).format(
                sql.SQL(', ').join(map(sql.Identifier, NOTE_COLUMNS)),
                sql.SQL(', ').join(sql.Placeholder() * len(NOTE_COLUMNS)),
            )
            cursor.execute(note_query, _note_params(result.note, dedupe_key))

            conn.commit()
            return Order.from_dict(row)

        except psycopg2.Error as e:
            handle_db_error(e, conn, "apply transition")
        finally:
            if conn:
                release_connection(conn)

    def has_transition(self, dedupe_key: str) -> bool:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM fuel.order_notes WHERE dedupe_key = %s;", (dedupe_key,))
            return cursor.fetchone() is not None
        except psycopg2.Error as e:
            handle_db_error(e, conn, "check transition")
        finally:
            if conn:
                release_connection(conn)

    def append_note(self, note: OrderNote) -> OrderNote:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            query = sql.SQL("INSERT INTO fuel.order_notes ({}) VALUES ({}) RETURNING *;").format(
                sql.SQL(', ').join(map(sql.Identifier, NOTE_COLUMNS)),
                sql.SQL(', ').join(sql.Placeholder() * len(NOTE_COLUMNS)),
            )
            cursor.execute(query, _note_params(note))
            row = cursor.fetchone()
            conn.commit()
            return OrderNote.from_dict(row)
        except psycopg2.Error as e:
            handle_db_error(e, conn, "append note")
        finally:
            if conn:
                release_connection(conn)

    def list_notes(self, order_id: str) -> List[OrderNote]:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            cursor.execute(
                "SELECT * FROM fuel.order_notes WHERE order_id = %s ORDER BY created_at ASC, note_id ASC;",
                (order_id,),
            )
            return [OrderNote.from_dict(row) for row in cursor.fetchall()]
        except psycopg2.Error as e:
            handle_db_error(e, conn, "list notes")
        finally:
            if conn:
                release_connection(conn)
