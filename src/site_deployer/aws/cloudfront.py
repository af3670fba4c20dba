"""CloudFront adapter for the cache distribution."""
from typing import Any, List

from botocore.exceptions import ClientError

from ..errors import AuthorizationError, CacheInvalidationError
from ..interfaces import CacheDistribution
from .errors import error_code, error_message, is_access_denied


def _translate(error: ClientError, action: str, distribution_id: str) -> Exception:
    message = f"Could not {action} for {distribution_id}: {error_code(error)}: {error_message(error)}"
    if is_access_denied(error):
        return AuthorizationError(message)
    return CacheInvalidationError(message)


class CloudFrontDistribution(CacheDistribution):

    def __init__(self, client: Any):
        self.client = client

    def create_invalidation(self, distribution_id: str, path_patterns: List[str],
                            caller_reference: str) -> str:
        try:
            response = self.client.create_invalidation(
                DistributionId=distribution_id,
                InvalidationBatch={
                    'CallerReference': caller_reference,
                    'Paths': {'Quantity': len(path_patterns), 'Items': list(path_patterns)},
                },
            )
        except ClientError as e:
            raise _translate(e, "create invalidation", distribution_id) from e
        return response['Invalidation']['Id']

    def get_invalidation(self, distribution_id: str, invalidation_id: str) -> str:
        try:
            response = self.client.get_invalidation(DistributionId=distribution_id, Id=invalidation_id)
        except ClientError as e:
            raise _translate(e, f"read invalidation {invalidation_id}", distribution_id) from e
        return response['Invalidation']['Status']
