# foliosign/adapters/s3/__init__.py
"""
S3 blob store (boto3). Also works against MinIO / LocalStack via endpoint_url.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from foliosign.core.errors import BlobNotFoundError, StorageError

logger = logging.getLogger(__name__)

_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


class S3BlobStore:
    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ):
        if not bucket:
            raise ValueError("S3 blob backend requires S3_BUCKET_NAME")
        self.bucket = bucket
        self.s3 = client or boto3.client("s3", region_name=region, endpoint_url=endpoint_url)

    def get(self, key: str) -> bytes:
        try:
            obj = self.s3.get_object(Bucket=self.bucket, Key=key)
            return obj["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                raise BlobNotFoundError(key) from e
            raise StorageError(f"Failed to get object from S3: {e}", key=key) from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to get object from S3: {e}", key=key) from e

    def put(self, key: str, data: bytes, content_type: str = "application/pdf") -> None:
        try:
            self.s3.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to put object to S3: {e}", key=key) from e

    def delete(self, key: str) -> None:
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete object from S3: {e}", key=key) from e

    def presign_put(self, key: str, expires_in: int) -> str:
        return self.s3.generate_presigned_url(
            "put_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )

    def presign_get(self, key: str, expires_in: int) -> str:
        return self.s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )
