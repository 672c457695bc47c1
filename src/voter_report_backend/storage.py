"""
Object storage for report inputs and outputs.

This module provides functionality for:
- Uploading generated reports to an S3-compatible bucket (Cloudflare R2)
- Downloading CSV inputs for statistical reports

Unlike a best-effort upload, a failed transfer here raises StorageError so
the job that needed it fails and reports the failure through its webhook.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from omegaconf import DictConfig

from .errors import StorageError

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def content_type_for(file_extension: str) -> str:
    return CONTENT_TYPES.get(file_extension, "application/octet-stream")


def _endpoint_url(storage_config: DictConfig) -> Optional[str]:
    if storage_config.get("endpoint_url"):
        return storage_config.endpoint_url
    if storage_config.get("account_id"):
        return f"https://{storage_config.account_id}.r2.cloudflarestorage.com"
    return None


class ObjectStorage:
    """
    Thin wrapper around a boto3 S3 client bound to one bucket.

    Args:
        bucket: Bucket name
        client: A boto3 S3 client (or anything with the same methods)
    """

    def __init__(self, bucket: str, client: Any) -> None:
        self.bucket = bucket
        self._client = client

    @classmethod
    def from_config(cls, storage_config: DictConfig) -> "ObjectStorage":
        """
        Create the storage wrapper from the ``storage`` config section.

        Note:
            No request is made here; credential problems surface on the first
            upload or download, where they fail that job.
        """
        client = boto3.client(
            "s3",
            endpoint_url=_endpoint_url(storage_config),
            region_name=storage_config.get("region") or None,
            aws_access_key_id=storage_config.get("access_key_id"),
            aws_secret_access_key=storage_config.get("secret_access_key"),
            config=BotoConfig(s3={"addressing_style": "path"}),
        )
        return cls(bucket=storage_config.get("bucket") or "", client=client)

    def _require_bucket(self) -> None:
        if not self.bucket:
            raise StorageError("Storage bucket is not configured")

    def upload_bytes(self, data: bytes, key: str, content_type: str) -> str:
        """
        Upload a generated file.

        Returns:
            The object key that was written

        Raises:
            StorageError: If the bucket is not configured or the upload fails
        """
        self._require_bucket()
        try:
            logger.info(f"Uploading {len(data)} bytes to {self.bucket}/{key}")
            self._client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"Upload failed for {key}: {exc}")
            raise StorageError(f"Failed to upload {key} to file storage: {exc}") from exc
        logger.info(f"Upload successful: {self.bucket}/{key}")
        return key

    def download_bytes(self, key: str) -> bytes:
        """
        Fetch an object's full contents.

        Raises:
            StorageError: If the object is missing, empty-bodied, or unreadable
        """
        self._require_bucket()
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"Download failed for {key}: {exc}")
            raise StorageError(f"Failed to download {key} from file storage: {exc}") from exc

        body = response.get("Body")
        if body is None:
            raise StorageError(f"No body in storage response for {key}")
        try:
            return body.read()
        finally:
            close = getattr(body, "close", None)
            if close:
                close()

    def download_text(self, key: str, encoding: str = "utf-8-sig") -> str:
        """Fetch an object and decode it; the default encoding strips a UTF-8 BOM."""
        return self.download_bytes(key).decode(encoding)
