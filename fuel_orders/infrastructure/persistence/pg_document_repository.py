# fuel_orders/infrastructure/persistence/pg_document_repository.py
from typing import List

import psycopg2
from psycopg2 import extras

from fuel_orders.domain.entities import Document
from fuel_orders.domain.errors import NotFound
from fuel_orders.domain.interfaces import DocumentRepository
from .db_connector import get_connection, handle_db_error, release_connection


class PgDocumentRepository(DocumentRepository):
    """Metadatos de documentos adjuntos en PostgreSQL."""

    def list_documents(self, order_id: str) -> List[Document]:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            cursor.execute(
                "SELECT * FROM fuel.documents WHERE order_id = %s ORDER BY uploaded_at DESC, document_id DESC;",
                (order_id,),
            )
            return [Document.from_dict(row) for row in cursor.fetchall()]
        except psycopg2.Error as e:
            handle_db_error(e, conn, "list documents")
        finally:
            if conn:
                release_connection(conn)

    def insert_document(self, document: Document) -> Document:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            cursor.execute(
                """
                INSERT INTO fuel.documents
                    (order_id, file_name, document_type, storage_path, file_size, mime_type, uploaded_by, uploaded_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()))
                RETURNING *;
                """,
                (
                    document.order_id,
                    document.file_name,
                    document.document_type,
                    document.storage_path,
                    document.file_size,
                    document.mime_type,
                    document.uploaded_by,
                    document.uploaded_at,
                ),
            )
            row = cursor.fetchone()
            conn.commit()
            return Document.from_dict(row)
        except psycopg2.Error as e:
            handle_db_error(e, conn, "insert document")
        finally:
            if conn:
                release_connection(conn)

    def get_document(self, order_id: str, document_id: int) -> Document:
        conn = None
        try:
            conn = get_connection()
            cursor = conn.cursor(cursor_factory=extras.RealDictCursor)
            cursor.execute(
                "SELECT * FROM fuel.documents WHERE order_id = %s AND document_id = %s;",
                (order_id, document_id),
            )
            row = cursor.fetchone()
        except psycopg2.Error as e:
            handle_db_error(e, conn, "get document")
        finally:
            if conn:
                release_connection(conn)

        if row is None:
            raise NotFound(f"Document {document_id} not found for order {order_id}.")
        return Document.from_dict(row)
