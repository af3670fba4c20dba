"""
Stack lifecycle management.

Creates, updates and deletes stacks on the control plane and blocks until a
terminal status is observed. Failures carry the reason of the most recent
failed resource event so operators see why a stack rolled back instead of a
bare status string.
"""
import threading
from typing import List, Optional, Tuple

from .errors import ConfigurationError, ControlPlaneFailure, NoChangesError, StackNotFoundError
from .interfaces import StackControlPlane
from .models import StackDescriptor, StackState, StackStatus
from .utils.logging import DeployLogger
from .utils.polling import Poller

CREATE = "CREATE"
UPDATE = "UPDATE"
DELETE = "DELETE"

# Stable after a failed update: resources match the last good template
UPDATE_ROLLBACK_COMPLETE = "UPDATE_ROLLBACK_COMPLETE"
# Left behind by a failed first create; can only be deleted
ROLLBACK_COMPLETE = "ROLLBACK_COMPLETE"


def needs_recreate(state: StackState) -> bool:
    """Stacks that cannot be updated and never settle on their own.

    ROLLBACK_COMPLETE follows a failed first create. A PENDING stack
    (REVIEW_IN_PROGRESS) holds only an unexecuted change set.
    """
    return state.raw_status == ROLLBACK_COMPLETE or state.status == StackStatus.PENDING


def terminal_statuses(operation: str) -> Tuple[str, List[str]]:
    """Success status and failure markers for a stack operation."""
    success = f"{operation}_COMPLETE"
    if operation == DELETE:
        return success, [f"{operation}_FAILED"]
    return success, [
        f"{operation}_FAILED",
        "ROLLBACK_COMPLETE",
        "ROLLBACK_FAILED",
        f"{operation}_ROLLBACK_COMPLETE",
    ]


def is_usable(state: StackState) -> bool:
    """Whether a settled stack's outputs can drive a deployment."""
    return state.status == StackStatus.COMPLETE or state.raw_status == UPDATE_ROLLBACK_COMPLETE


class StackLifecycleManager:
    """Applies and destroys stacks idempotently."""

    def __init__(self, control_plane: StackControlPlane, logger: Optional[DeployLogger] = None,
                 poll_interval: float = 5.0, poll_attempts: int = 120,
                 cancel_event: Optional[threading.Event] = None):
        self.control_plane = control_plane
        self.logger = logger or DeployLogger(__name__)
        self.poller = Poller(poll_interval, poll_attempts, cancel_event)

    def describe(self, name: str) -> StackState:
        """Live read of a stack; missing stacks come back as NOT_FOUND."""
        try:
            return self.control_plane.describe_stack(name)
        except StackNotFoundError:
            return StackState.not_found(name)

    def require_complete(self, name: str) -> StackState:
        """Live read that refuses anything but a settled, successful stack."""
        state = self.control_plane.describe_stack(name)
        if not is_usable(state):
            raise ConfigurationError(
                f"Stack {name} is {state.raw_status}; deploy it before using its outputs"
            )
        return state

    def apply(self, descriptor: StackDescriptor) -> StackState:
        """Create or update a stack and wait for it to finish.

        Re-applying identical inputs is a successful no-op.
        """
        name = descriptor.name
        existing = self._settle(name)

        if existing is not None and needs_recreate(existing):
            self.logger.warning(
                f"Stack {name} is in {existing.raw_status} and cannot be updated; deleting it first"
            )
            self.destroy(name)
            existing = None

        if existing is None:
            self.logger.info(f"Creating stack: {name}")
            self.control_plane.create_stack(descriptor)
            return self.wait(name, CREATE)

        self.logger.info(f"Updating stack: {name}")
        try:
            self.control_plane.update_stack(descriptor)
        except NoChangesError:
            self.logger.info(f"No updates needed for stack {name}")
            state = self.control_plane.describe_stack(name)
            if not is_usable(state):
                raise ControlPlaneFailure(
                    f"Stack {name} is unchanged but in status {state.raw_status}",
                    reason=state.failure_reason or state.raw_status,
                )
            state.status = StackStatus.COMPLETE
            return state
        return self.wait(name, UPDATE)

    def destroy(self, name: str) -> None:
        """Delete a stack and wait until it is gone. Missing stacks are a no-op."""
        self.logger.info(f"Deleting stack: {name}")
        try:
            self.control_plane.delete_stack(name)
        except StackNotFoundError:
            self.logger.info(f"Stack {name} does not exist")
            return
        self.wait(name, DELETE)
        self.logger.success(f"Stack {name} deleted")

    def wait(self, name: str, operation: str) -> StackState:
        """Poll until the operation reaches a terminal status.

        Raises:
            ControlPlaneFailure: on a failure status, with the first failed event's reason
            TransientPollTimeout: when the attempt budget runs out
        """
        success, failures = terminal_statuses(operation)
        self.logger.info(
            f"Waiting for stack {operation.lower()} of {name} "
            f"(up to {self.poller.budget_seconds:.0f}s)..."
        )

        def check() -> Optional[StackState]:
            try:
                state = self.control_plane.describe_stack(name)
            except StackNotFoundError:
                # Deleted stacks vanish instead of reporting DELETE_COMPLETE
                if operation == DELETE:
                    return StackState.not_found(name)
                raise ControlPlaneFailure(
                    f"Stack {name} disappeared during {operation.lower()}"
                )

            raw = state.raw_status or ""
            self.logger.debug(f"Stack {name} status: {raw}")
            if raw == success:
                return state
            if any(marker in raw for marker in failures):
                reason = self.failure_reason(name, raw)
                raise ControlPlaneFailure(
                    f"Stack {operation.lower()} failed for {name}: {reason}", reason=reason
                )
            return None

        state = self.poller.poll(check, f"stack {operation.lower()} of {name}")
        if operation != DELETE:
            self.logger.success(f"Stack {operation.lower()} complete: {name}")
        return state

    def failure_reason(self, name: str, fallback: str) -> str:
        """Reason of the most recent failed resource event, or ``fallback``."""
        try:
            events = self.control_plane.list_stack_events(name)
        except (ControlPlaneFailure, StackNotFoundError) as e:
            self.logger.warning(f"Could not read events for {name}: {e}")
            return fallback

        for event in events:
            if "FAILED" in event.resource_status and event.reason:
                return event.reason
        return fallback

    def _settle(self, name: str) -> Optional[StackState]:
        """Current state, waiting out any operation already in flight."""
        state = self.describe(name)
        if state.status == StackStatus.NOT_FOUND:
            return None
        if state.status != StackStatus.IN_PROGRESS:
            return state

        self.logger.warning(f"Stack {name} is busy ({state.raw_status}); waiting for it to settle")

        def check() -> Optional[StackState]:
            current = self.describe(name)
            return None if current.status == StackStatus.IN_PROGRESS else current

        settled = self.poller.poll(check, f"stack {name} to settle")
        return None if settled.status == StackStatus.NOT_FOUND else settled
