"""Object store access for artifact bytes."""

import logging
from typing import Any, Protocol, runtime_checkable

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from artifact_registry.config import Settings
from artifact_registry.exceptions import StorageError

logger = logging.getLogger(__name__)

# Bucket creation errors that mean the bucket is already usable
BUCKET_EXISTS_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}


@runtime_checkable
class ObjectStore(Protocol):
    """Independent put/delete of blobs. There is no transaction or rollback."""

    def put(self, bucket: str, key: str, data: bytes) -> None:
        """Store data at bucket/key, raising StorageError unless it succeeded."""
        ...

    def delete(self, bucket: str, key: str) -> None:
        """Remove bucket/key, raising StorageError unless it succeeded."""
        ...


def object_key_for(package_name: str) -> str:
    """Deterministic object key for a package's artifact."""
    return f"/{package_name}/artifact"


class S3ObjectStore:
    """ObjectStore backed by S3 or an S3-compatible server such as MinIO."""

    def __init__(self, settings: Settings, client: Any = None):
        self.client = client or boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
        )
        self.region = settings.s3_region

    def put(self, bucket: str, key: str, data: bytes) -> None:
        try:
            response = self.client.put_object(Bucket=bucket, Key=key, Body=data)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 put_object failed for {bucket}{key}: {e}")
            raise StorageError(f"Failed to store artifact: {e}", "put", bucket, key) from e
        self._check_status(response, "put", bucket, key)

    def delete(self, bucket: str, key: str) -> None:
        try:
            response = self.client.delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 delete_object failed for {bucket}{key}: {e}")
            raise StorageError(f"Failed to delete artifact: {e}", "delete", bucket, key) from e
        self._check_status(response, "delete", bucket, key)

    def ensure_bucket(self, bucket: str) -> bool:
        """Create the bucket if needed. Returns True if it was created."""
        params: dict[str, Any] = {"Bucket": bucket}
        if self.region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self.client.create_bucket(**params)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in BUCKET_EXISTS_CODES:
                return False
            raise StorageError(f"Failed to create bucket: {e}", "create_bucket", bucket, "") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to create bucket: {e}", "create_bucket", bucket, "") from e
        logger.info(f"Created bucket {bucket}")
        return True

    @staticmethod
    def _check_status(response: dict[str, Any], operation: str, bucket: str, key: str) -> None:
        status_code = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if status_code is None or not 200 <= status_code < 300:
            raise StorageError(
                f"Object store {operation} returned status {status_code}", operation, bucket, key
            )
