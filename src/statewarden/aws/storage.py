"""Thin boto3 wrapper for reading state blobs from S3."""

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from statewarden.errors import TransientFetchError
from statewarden.models import StateLocation


class S3ObjectStore:
    """Metadata probes and full downloads of S3 objects."""

    def __init__(self, region: str | None = None):
        self._client = boto3.client("s3", **({"region_name": region} if region else {}))

    def probe(self, location: StateLocation) -> str:
        """Return the object's modification token without downloading it."""
        try:
            head = self._client.head_object(Bucket=location.bucket, Key=location.key)
        except (ClientError, BotoCoreError) as e:
            raise TransientFetchError(f"can't get object head data for {location}: {e}") from e
        return head["LastModified"].isoformat()

    def download(self, location: StateLocation) -> bytes:
        """Return the full object content."""
        try:
            response = self._client.get_object(Bucket=location.bucket, Key=location.key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise TransientFetchError(f"can't download item for {location}: {e}") from e
