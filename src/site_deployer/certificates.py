"""Shared wildcard certificate lookup for production custom domains."""
import threading
from typing import Optional

from .errors import DeploymentError
from .stacks import StackLifecycleManager, is_usable
from .utils.logging import DeployLogger

_UNRESOLVED = object()


class SharedCertificateResolver:
    """Finds the certificate ARN that custom-domain stacks attach to CloudFront.

    An explicit ``override`` wins. Otherwise the output is read live from the
    shared certificate stack, once per resolver. When neither is available
    the caller deploys without a custom domain.
    """

    def __init__(self, stacks: Optional[StackLifecycleManager], stack_name: str,
                 output_key: str, override: Optional[str] = None,
                 logger: Optional[DeployLogger] = None):
        self.stacks = stacks
        self.stack_name = stack_name
        self.output_key = output_key
        self.override = override
        self.logger = logger or DeployLogger(__name__)
        self._lock = threading.Lock()
        self._resolved = _UNRESOLVED

    def resolve(self) -> Optional[str]:
        with self._lock:
            if self._resolved is _UNRESOLVED:
                self._resolved = self._lookup()
            return self._resolved

    def _lookup(self) -> Optional[str]:
        if self.override:
            self.logger.info("Using configured certificate ARN")
            return self.override
        if self.stacks is None:
            self.logger.warning("No certificate configured and no certificate stack to read")
            return None

        try:
            state = self.stacks.describe(self.stack_name)
        except DeploymentError as e:
            self.logger.warning(f"Could not read shared certificate stack {self.stack_name}: {e}")
            return None

        if not is_usable(state):
            self.logger.warning(
                f"Shared certificate stack {self.stack_name} is {state.raw_status or 'not deployed'}"
            )
            return None
        certificate_arn = state.outputs.get(self.output_key)
        if not certificate_arn:
            self.logger.warning(f"{self.output_key} not in outputs of {self.stack_name}")
            return None
        self.logger.success("Using shared wildcard certificate")
        return certificate_arn
