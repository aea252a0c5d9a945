import logging
import os
import uuid

import boto3
from botocore.config import Config

from docsign.config import settings

logger = logging.getLogger(__name__)


class ArtifactStorage:
    """Where completed PDFs go: the local output directory, plus S3 when set up."""

    @staticmethod
    def is_configured() -> bool:
        return bool(
            settings.s3_endpoint_url
            and settings.s3_access_key
            and settings.s3_secret_key
        )

    @staticmethod
    def _get_client():  # type: ignore[return]
        if not ArtifactStorage.is_configured():
            raise RuntimeError(
                "S3 storage is not configured. "
                "Set S3_ENDPOINT_URL, S3_ACCESS_KEY, and S3_SECRET_KEY."
            )
        return boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    @staticmethod
    def output_file_name() -> str:
        return f"completed_{uuid.uuid4()}.pdf"

    @staticmethod
    def output_path(file_name: str) -> str:
        os.makedirs(settings.output_dir, exist_ok=True)
        return os.path.join(settings.output_dir, file_name)

    @staticmethod
    def generate_storage_key(document_id: str, file_name: str) -> str:
        return f"completed/{document_id}/{file_name}"

    @staticmethod
    def upload(storage_key: str, content: bytes) -> None:
        client = ArtifactStorage._get_client()
        client.put_object(
            Bucket=settings.s3_bucket_name,
            Key=storage_key,
            Body=content,
            ContentType="application/pdf",
        )
        logger.info("Uploaded %s to bucket %s", storage_key, settings.s3_bucket_name)

    @staticmethod
    def generate_download_url(storage_key: str) -> str:
        client = ArtifactStorage._get_client()
        url: str = client.generate_presigned_url(
            "get_object",
            Params={
                "Bucket": settings.s3_bucket_name,
                "Key": storage_key,
            },
            ExpiresIn=settings.s3_presigned_url_expiry,
        )
        return url


artifact_storage = ArtifactStorage()
