import io
import unittest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError, EndpointConnectionError

from fuel_orders.domain.errors import BackendUnavailable
from fuel_orders.infrastructure.storage.s3_storage import S3FileStorage


class TestS3FileStorage(unittest.TestCase):

    def setUp(self):
        self.s3_client = MagicMock()
        self.storage = S3FileStorage("fuel-docs", s3_client=self.s3_client)

    def test_upload_returns_s3_path(self):
        stream = io.BytesIO(b"%PDF")

        path = self.storage.upload("ORD-000001", "cmr.pdf", stream, "application/pdf")

        self.assertEqual(path, "s3://fuel-docs/orders/documents/ORD-000001/cmr.pdf")
        self.s3_client.upload_fileobj.assert_called_once_with(
            Fileobj=stream,
            Bucket="fuel-docs",
            Key="orders/documents/ORD-000001/cmr.pdf",
            ExtraArgs={'ContentType': "application/pdf", 'ACL': 'private'},
        )

    def test_client_error(self):
        self.s3_client.upload_fileobj.side_effect = ClientError(
            {'Error': {'Code': 'AccessDenied', 'Message': 'Access Denied'}}, 'PutObject'
        )
        with self.assertRaises(BackendUnavailable):
            self.storage.upload("ORD-000001", "cmr.pdf", io.BytesIO(b"x"), None)

    def test_connection_error(self):
        self.s3_client.upload_fileobj.side_effect = EndpointConnectionError(endpoint_url="https://s3")
        with self.assertRaises(BackendUnavailable):
            self.storage.upload("ORD-000001", "cmr.pdf", io.BytesIO(b"x"), "application/pdf")

    def test_presigned_url(self):
        self.s3_client.generate_presigned_url.return_value = "https://fuel-docs.s3.amazonaws.com/signed"

        url = self.storage.get_url("s3://fuel-docs/orders/documents/ORD-000001/cmr.pdf")

        self.assertEqual(url, "https://fuel-docs.s3.amazonaws.com/signed")
        self.s3_client.generate_presigned_url.assert_called_once_with(
            'get_object',
            Params={'Bucket': "fuel-docs", 'Key': "orders/documents/ORD-000001/cmr.pdf"},
            ExpiresIn=3600,
        )

    def test_presigned_url_custom_expiry(self):
        storage = S3FileStorage("fuel-docs", s3_client=self.s3_client, url_expires=60)
        storage.get_url("orders/documents/ORD-000001/cmr.pdf")
        kwargs = self.s3_client.generate_presigned_url.call_args.kwargs
        self.assertEqual(kwargs['Params']['Key'], "orders/documents/ORD-000001/cmr.pdf")
        self.assertEqual(kwargs['ExpiresIn'], 60)

    def test_presigned_url_error(self):
        self.s3_client.generate_presigned_url.side_effect = ClientError(
            {'Error': {'Code': 'AccessDenied', 'Message': 'Access Denied'}}, 'GetObject'
        )
        with self.assertRaises(BackendUnavailable):
            self.storage.get_url("s3://fuel-docs/orders/documents/ORD-000001/cmr.pdf")
