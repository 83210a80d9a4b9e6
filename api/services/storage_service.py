import logging
import os
import secrets
import time
from typing import Optional

import boto3

from api.errors import ErrorCode, ServiceException
from config import Settings

logger = logging.getLogger(__name__)


class StorageService:
    """Uploads image bytes to S3 and returns their public URL."""

    def __init__(self, settings: Settings, client=None):
        self.bucket = settings.S3_BUCKET_NAME
        self.region = settings.AWS_REGION
        self.key_prefix = settings.S3_KEY_PREFIX.strip("/")
        self._client = client
        if not self.bucket:
            logger.warning("S3_BUCKET_NAME is not set. Uploads will fail until this is configured.")

    @property
    def client(self):
        # Credentials come from the default provider chain
        if self._client is None:
            self._client = boto3.client("s3", region_name=self.region)
        return self._client

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        if not self.bucket:
            raise ServiceException(ErrorCode.STORAGE_NOT_CONFIGURED)

        params = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            params["ContentType"] = content_type
        self.client.put_object(**params)

        url = f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"
        logger.info(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{key}")
        return url

    def project_image_key(self, user_id: int, project_id: int, filename: Optional[str]) -> str:
        _, ext = os.path.splitext(filename or "")
        ext = ext.lstrip(".") or "bin"
        millis = int(time.time() * 1000)
        return (
            f"{self.key_prefix}/users/{user_id}/projects/{project_id}/"
            f"{millis}-{secrets.token_hex(5)}.{ext}"
        )
