# File: docsearch/services/s3_client.py
import asyncio
import boto3
from botocore.config import Config
from botocore.exceptions import ClientError, BotoCoreError
import structlog
from typing import Optional

from docsearch.application.ports.storage_port import ObjectUnavailableError, StorageError, StoragePort
from docsearch.core.config import settings
from docsearch.core.metrics import S3_DOWNLOAD_DURATION_SECONDS

log = structlog.get_logger(__name__)

class S3ClientError(StorageError):
    pass

class S3ObjectUnavailableError(S3ClientError, ObjectUnavailableError):
    """Missing key or access denied; not retried."""
    pass

class S3Client(StoragePort):
    """Client for S3-compatible object storage (MinIO in local deployments)."""

    def __init__(self, bucket_name: Optional[str] = None, s3_client=None):
        self.bucket_name = bucket_name or settings.STORAGE_BUCKET_NAME
        self.s3_client = s3_client or boto3.client(
            "s3",
            endpoint_url=settings.STORAGE_ENDPOINT_URL,
            region_name=settings.STORAGE_REGION,
            aws_access_key_id=settings.STORAGE_ACCESS_KEY.get_secret_value() if settings.STORAGE_ACCESS_KEY else None,
            aws_secret_access_key=settings.STORAGE_SECRET_KEY.get_secret_value() if settings.STORAGE_SECRET_KEY else None,
            config=Config(signature_version="s3v4", retries={"max_attempts": 3, "mode": "standard"}),
        )
        self.log = log.bind(s3_bucket=self.bucket_name, s3_endpoint=settings.STORAGE_ENDPOINT_URL)

    def download_bytes_sync(self, object_name: str, bucket_name: Optional[str] = None) -> bytes:
        bucket = bucket_name or self.bucket_name
        self.log.info("Downloading file from object storage...", object_name=object_name, bucket=bucket)
        try:
            with S3_DOWNLOAD_DURATION_SECONDS.time():
                response = self.s3_client.get_object(Bucket=bucket, Key=object_name)
                body = response["Body"].read()
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey"):
                self.log.error("Object not found in storage", object_name=object_name, bucket=bucket)
                raise S3ObjectUnavailableError(f"Object not found in storage: {bucket}/{object_name}") from e
            if code == "AccessDenied":
                self.log.error("Access Denied when trying to download", object_name=object_name, bucket=bucket)
                raise S3ObjectUnavailableError(f"Access Denied for object: {bucket}/{object_name}") from e
            self.log.error("Storage download failed", error_code=code, error=str(e))
            raise S3ClientError(f"Storage error downloading {bucket}/{object_name}") from e
        except BotoCoreError as e:
            self.log.error("Storage download failed", error=str(e))
            raise S3ClientError(f"Storage error downloading {bucket}/{object_name}: {e}") from e
        self.log.info("File downloaded successfully.", object_name=object_name, size=len(body))
        return body

    async def download(self, object_name: str, bucket_name: Optional[str] = None) -> bytes:
        return await asyncio.to_thread(self.download_bytes_sync, object_name, bucket_name)
