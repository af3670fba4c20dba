"""AWS client construction for ambient and scoped credentials."""
import logging
from typing import Any, Dict, Optional, Tuple

import boto3

from ..models import ScopedCredentials
from ..settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Creates and caches boto3 clients.

    Clients built from the deploy user's ambient identity are cached per
    (service, region). Clients for scoped credentials are never cached so
    they cannot leak between targets.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.region = self.settings.aws_region
        self.endpoint_url = self.settings.aws_endpoint_url
        self._clients: Dict[Tuple[str, str], Any] = {}
        self._session = None

    def _base_session(self) -> boto3.Session:
        if self._session is None:
            if self.settings.aws_profile:
                self._session = boto3.Session(profile_name=self.settings.aws_profile)
            else:
                self._session = boto3.Session()
        return self._session

    def _client_kwargs(self, region: Optional[str]) -> Dict[str, Any]:
        kwargs = {'region_name': region or self.region}
        if self.endpoint_url:
            kwargs['endpoint_url'] = self.endpoint_url
        return kwargs

    def get_client(self, service_name: str, region: Optional[str] = None) -> Any:
        """Get or create a client using the ambient identity."""
        key = (service_name, region or self.region)
        if key in self._clients:
            return self._clients[key]

        try:
            client = self._base_session().client(service_name, **self._client_kwargs(region))
        except Exception as e:
            logger.error(f"Error creating {service_name} client: {str(e)}")
            raise
        self._clients[key] = client
        logger.debug(f"Created {service_name} client in {key[1]}")
        return client

    def scoped_client(self, service_name: str, credentials: ScopedCredentials,
                      region: Optional[str] = None) -> Any:
        """Create a client bound to short-lived credentials."""
        session = boto3.Session(
            aws_access_key_id=credentials.access_key,
            aws_secret_access_key=credentials.secret_key,
            aws_session_token=credentials.session_token,
        )
        return session.client(service_name, **self._client_kwargs(region))

    def get_cloudformation_client(self, region: Optional[str] = None):
        return self.get_client('cloudformation', region)

    def get_sts_client(self):
        return self.get_client('sts')

    def get_s3_client(self):
        return self.get_client('s3')

    def get_iam_client(self):
        return self.get_client('iam')
