"""STS adapter for the identity broker."""
from typing import Any

from botocore.exceptions import ClientError

from ..errors import AuthorizationError, ConfigurationError
from ..interfaces import IdentityBroker
from ..models import ScopedCredentials
from .errors import error_code, error_message, is_access_denied, is_bad_request


class StsIdentityBroker(IdentityBroker):

    def __init__(self, client: Any):
        self.client = client

    def assume_role(self, role_arn: str, session_name: str, external_id: str,
                    duration_seconds: int) -> ScopedCredentials:
        try:
            response = self.client.assume_role(
                RoleArn=role_arn,
                RoleSessionName=session_name,
                ExternalId=external_id,
                DurationSeconds=duration_seconds,
            )
        except ClientError as e:
            if is_bad_request(e):
                raise ConfigurationError(
                    f"Invalid assume-role request for {role_arn}: {error_message(e)}"
                ) from e
            if is_access_denied(e):
                raise AuthorizationError(
                    f"Not authorized to assume {role_arn}: {error_message(e)}"
                ) from e
            # ExpiredToken, InvalidClientTokenId, RegionDisabledException and the like
            raise AuthorizationError(
                f"Could not assume {role_arn}: {error_code(e)}: {error_message(e)}"
            ) from e

        credentials = response.get('Credentials')
        if not credentials:
            raise AuthorizationError(f"Assuming {role_arn} returned no credentials")

        return ScopedCredentials(
            access_key=credentials['AccessKeyId'],
            secret_key=credentials['SecretAccessKey'],
            session_token=credentials['SessionToken'],
            expires_at=credentials['Expiration'],
        )
