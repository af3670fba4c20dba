"""S3 adapter for the object store."""
from typing import Any, Optional

from ..interfaces import ObjectStore
from ..models import ListPage


class S3ObjectStore(ObjectStore):
    """Object operations on a boto3 S3 client.

    botocore ClientErrors propagate unchanged; the sync engine decides how
    to classify them.
    """

    def __init__(self, client: Any):
        self.client = client

    def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        self.client.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)

    def delete_object(self, bucket: str, key: str) -> None:
        self.client.delete_object(Bucket=bucket, Key=key)

    def list_objects(self, bucket: str, continuation_token: Optional[str] = None) -> ListPage:
        kwargs = {'Bucket': bucket}
        if continuation_token:
            kwargs['ContinuationToken'] = continuation_token
        response = self.client.list_objects_v2(**kwargs)
        keys = [obj['Key'] for obj in response.get('Contents', []) if obj.get('Key')]
        next_token = response.get('NextContinuationToken') if response.get('IsTruncated') else None
        return ListPage(keys=keys, next_token=next_token)
