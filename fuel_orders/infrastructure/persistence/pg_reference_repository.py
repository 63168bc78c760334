# fuel_orders/infrastructure/persistence/pg_reference_repository.py
import logging
from dataclasses import fields
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import errors, extras, sql

from fuel_orders.domain.entities import REFERENCE_KINDS, RegulatoryPrice, ReferenceKind
from fuel_orders.domain.errors import NotFound, ValidationError
from fuel_orders.domain.interfaces import ReferenceDataRepository
from .db_connector import get_connection, handle_db_error, release_connection

logger = logging.getLogger(__name__)


def _columns(kind: ReferenceKind, data: Dict[str, Any], include_key: bool) -> Dict[str, Any]:
    known = {f.name for f in fields(kind.entity)}
    if not include_key:
        known.discard(kind.key)
    return {name: value for name, value in data.items() if name in known}


class PgReferenceDataRepository(ReferenceDataRepository):
    """
    Datos maestros (clientes, choferes, camiones, transportistas) y precios regulados en PostgreSQL.
    """

    def _table(self, kind: ReferenceKind) -> sql.Composed:
        return sql.SQL("fuel.{}").format(sql.Identifier(kind.table))

    def list_active(self, kind: str) -> List[Any]:
        reference_kind = REFERENCE_KINDS[kind]
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            query = sql.SQL("SELECT * FROM {} WHERE active = TRUE ORDER BY {};").format(
                self._table(reference_kind), sql.Identifier(reference_kind.display)
            )
            cursor.execute(query)
            return [reference_kind.entity.from_dict(row) for row in cursor.fetchall()]
        except psycopg2.Error as e:
            handle_db_error(e, conn, f"list {kind}")
        finally:
            if conn:
                release_connection(conn)

    def get(self, kind: str, entity_id: str) -> Any:
        reference_kind = REFERENCE_KINDS[kind]
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            query = sql.SQL("SELECT * FROM {} WHERE {} = %s;").format(
                self._table(reference_kind), sql.Identifier(reference_kind.key)
            )
            cursor.execute(query, (entity_id,))
            row = cursor.fetchone()
        except psycopg2.Error as e:
            handle_db_error(e, conn, f"get {kind}")
        finally:
            if conn:
                release_connection(conn)

        if row is None:
            raise NotFound(f"{kind} '{entity_id}' not found.")
        return reference_kind.entity.from_dict(row)

    def create(self, kind: str, data: Dict[str, Any], actor_id: str) -> Any:
        reference_kind = REFERENCE_KINDS[kind]
        values = _columns(reference_kind, data, include_key=True)
        values['updated_by'] = actor_id
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            query = sql.SQL("INSERT INTO {} ({}, updated_at) VALUES ({}, NOW()) RETURNING *;").format(
                self._table(reference_kind),
                sql.SQL(', ').join(map(sql.Identifier, values.keys())),
                sql.SQL(', ').join(sql.Placeholder() * len(values)),
            )
            cursor.execute(query, list(values.values()))
            row = cursor.fetchone()
            conn.commit()
            return reference_kind.entity.from_dict(row)
        except errors.UniqueViolation:
            conn.rollback()
            raise ValidationError(
                f"{kind} '{data.get(reference_kind.key)}' already exists.", field=reference_kind.key
            ) from None
        except psycopg2.Error as e:
            handle_db_error(e, conn, f"create {kind}")
        finally:
            if conn:
                release_connection(conn)

    def update(self, kind: str, entity_id: str, data: Dict[str, Any], actor_id: str) -> Any:
        reference_kind = REFERENCE_KINDS[kind]
        values = _columns(reference_kind, data, include_key=False)
        if not values:
            raise ValidationError("Nothing to update.")
        values['updated_by'] = actor_id
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            query = sql.SQL("UPDATE {} SET {}, updated_at = NOW() WHERE {} = %s RETURNING *;").format(
                self._table(reference_kind),
                sql.SQL(', ').join(
                    sql.SQL("{} = {}").format(sql.Identifier(name), sql.Placeholder()) for name in values
                ),
                sql.Identifier(reference_kind.key),
            )
            cursor.execute(query, list(values.values()) + [entity_id])
            row = cursor.fetchone()
            conn.commit()
        except psycopg2.Error as e:
            handle_db_error(e, conn, f"update {kind}")
        finally:
            if conn:
                release_connection(conn)

        if row is None:
            raise NotFound(f"{kind} '{entity_id}' not found.")
        return reference_kind.entity.from_dict(row)

    def deactivate(self, kind: str, entity_id: str, actor_id: str) -> None:
        reference_kind = REFERENCE_KINDS[kind]
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor()
            query = sql.SQL(
                "UPDATE {} SET active = FALSE, updated_by = %s, updated_at = NOW() WHERE {} = %s;"
            ).format(self._table(reference_kind), sql.Identifier(reference_kind.key))
            cursor.execute(query, (actor_id, entity_id))
            updated = cursor.rowcount
            conn.commit()
        except psycopg2.Error as e:
            handle_db_error(e, conn, f"deactivate {kind}")
        finally:
            if conn:
                release_connection(conn)

        if not updated:
            raise NotFound(f"{kind} '{entity_id}' not found.")

    def list_regulatory_prices(self) -> List[RegulatoryPrice]:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            cursor.execute(
                "SELECT * FROM fuel.regulatory_prices WHERE effective_to IS NULL ORDER BY product_type;"
            )
            return [RegulatoryPrice.from_dict(row) for row in cursor.fetchall()]
        except psycopg2.Error as e:
            handle_db_error(e, conn, "list regulatory prices")
        finally:
            if conn:
                release_connection(conn)

    def get_current_price(self, product_type: str) -> Optional[RegulatoryPrice]:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            cursor.execute(
                "SELECT * FROM fuel.regulatory_prices WHERE product_type = %s AND effective_to IS NULL;",
                (product_type,),
            )
            row = cursor.fetchone()
            return RegulatoryPrice.from_dict(row) if row else None
        except psycopg2.Error as e:
            handle_db_error(e, conn, "get regulatory price")
        finally:
            if conn:
                release_connection(conn)

    def set_regulatory_price(self, product_type: str, base_price: float, unit: str,
                             actor_id: str) -> RegulatoryPrice:
        """Cierra el precio vigente y abre uno nuevo en la misma transacción."""
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            cursor.execute(
                "UPDATE fuel.regulatory_prices SET effective_to = NOW() "
                "WHERE product_type = %s AND effective_to IS NULL;",
                (product_type,),
            )
            cursor.execute(
                "INSERT INTO fuel.regulatory_prices (product_type, base_price, unit, effective_from, updated_by) "
                "VALUES (%s, %s, %s, NOW(), %s) RETURNING *;",
                (product_type, base_price, unit, actor_id),
            )
            row = cursor.fetchone()
            conn.commit()
            return RegulatoryPrice.from_dict(row)
        except psycopg2.Error as e:
            handle_db_error(e, conn, "set regulatory price")
        finally:
            if conn:
                release_connection(conn)
