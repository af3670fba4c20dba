"""Scoped credential acquisition for post-provisioning steps."""
import re
from typing import Dict, Optional

from .errors import ConfigurationError
from .interfaces import IdentityBroker
from .models import ScopedCredentials
from .utils.logging import DeployLogger

DEFAULT_DURATION_SECONDS = 3600

# STS RoleSessionName: 2-64 chars of [\w+=,.@-]
_SESSION_NAME_INVALID = re.compile(r'[^\w+=,.@-]')


def session_name_for(session_context: str) -> str:
    name = _SESSION_NAME_INVALID.sub('-', session_context)[:64]
    return name if len(name) >= 2 else f"{name}-deploy"


def role_from_outputs(outputs: Dict[str, str], key: str, stack_name: str) -> str:
    """Role reference published by a stack.

    A missing role is a hard stop. Falling back to the caller's own identity
    would run the deployment with broader permissions than the stack grants.
    """
    role_ref = outputs.get(key)
    if not role_ref:
        raise ConfigurationError(
            f"{key} not found in outputs of stack {stack_name} - template may need updating"
        )
    return role_ref


class CredentialBroker:
    """Exchanges the deploy identity for per-target role credentials."""

    def __init__(self, identity_broker: IdentityBroker, logger: Optional[DeployLogger] = None,
                 duration_seconds: int = DEFAULT_DURATION_SECONDS):
        self.identity_broker = identity_broker
        self.logger = logger or DeployLogger(__name__)
        self.duration_seconds = duration_seconds

    def assume(self, role_ref: str, session_context: str) -> ScopedCredentials:
        """Assume ``role_ref`` using ``session_context`` as session name and external id.

        Raises:
            ConfigurationError: if no role reference was supplied
            AuthorizationError: if the role does not trust the caller
        """
        if not role_ref:
            raise ConfigurationError("No deploy role reference supplied")

        self.logger.info(f"Assuming deploy role: {role_ref}")
        credentials = self.identity_broker.assume_role(
            role_arn=role_ref,
            session_name=session_name_for(session_context),
            external_id=session_context,
            duration_seconds=self.duration_seconds,
        )
        self.logger.success(
            f"Assumed deploy role (expires {credentials.expires_at.isoformat()})"
        )
        return credentials
