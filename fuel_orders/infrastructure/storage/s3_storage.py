# fuel_orders/infrastructure/storage/s3_storage.py
import logging
from typing import BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from fuel_orders.domain.errors import BackendUnavailable
from fuel_orders.domain.interfaces import FileStorage

logger = logging.getLogger(__name__)


class S3FileStorage(FileStorage):
    """Sube los documentos de los pedidos a un bucket S3 privado."""
    DOCUMENTS_PATH = "orders/documents"

    def __init__(self, bucket_name: str, s3_client=None, url_expires: int = 3600):
        self.bucket_name = bucket_name
        self.s3_client = s3_client or boto3.client('s3')
        self.url_expires = url_expires

    def upload(self, order_id: str, file_name: str, stream: BinaryIO, content_type: str) -> str:
        bucket_path = f"{self.DOCUMENTS_PATH}/{order_id}/{file_name}"
        try:
            self.s3_client.upload_fileobj(
                Fileobj=stream,
                Bucket=self.bucket_name,
                Key=bucket_path,
                ExtraArgs={
                    'ContentType': content_type or 'application/octet-stream',
                    'ACL': 'private'
                }
            )
            return f"s3://{self.bucket_name}/{bucket_path}"

        except ClientError as e:
            logger.error(f"Error de cliente S3 al subir {file_name} a {bucket_path}: {e}")
            raise BackendUnavailable("Storage service error (S3 Client Error).") from e
        except BotoCoreError as e:
            logger.error(f"Error inesperado al subir el archivo {file_name}: {e}")
            raise BackendUnavailable("Storage service unavailable.") from e

    def get_url(self, storage_path: str) -> str:
        """URL prefirmada de descarga; acepta rutas s3://bucket/clave o la clave sola."""
        prefix = f"s3://{self.bucket_name}/"
        key = storage_path[len(prefix):] if storage_path.startswith(prefix) else storage_path
        try:
            return self.s3_client.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket_name, 'Key': key},
                ExpiresIn=self.url_expires,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"No se pudo firmar la URL de {key}: {e}")
            raise BackendUnavailable("Storage service unavailable.") from e
