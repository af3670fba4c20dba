"""Error taxonomy shared by every deployment component."""
from typing import Optional


class DeploymentError(Exception):
    """Base class for failures raised while deploying a target."""
    pass


class TransientPollTimeout(DeploymentError):
    """A wait loop ran out of attempts before a terminal state was observed."""

    def __init__(self, operation: str, attempts: int, interval: float):
        self.operation = operation
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            f"Timeout waiting for {operation} after {attempts} attempts "
            f"({attempts * interval:.0f}s)"
        )


class ControlPlaneFailure(DeploymentError):
    """A stack operation reached an explicit failure status."""

    def __init__(self, message: str, reason: Optional[str] = None):
        self.reason = reason or message
        super().__init__(message)


class AuthorizationError(DeploymentError):
    """The identity broker refused to issue credentials."""
    pass


class ConfigurationError(DeploymentError):
    """Required configuration or stack output is missing."""
    pass


class SyncFailure(DeploymentError):
    """An object upload, listing or delete failed during asset sync."""
    pass


class StackNotFoundError(DeploymentError):
    """The control plane has no stack with the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Stack {name} does not exist")


class NoChangesError(DeploymentError):
    """The control plane reported that an update has nothing to apply."""
    pass


class DeploymentCancelled(DeploymentError):
    """A wait was interrupted by an external cancellation request."""
    pass


class CacheInvalidationError(DeploymentError):
    """The CDN rejected an invalidation request or its status lookup."""
    pass
