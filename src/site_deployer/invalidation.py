"""CDN cache invalidation with bounded, non-fatal waiting."""
import threading
import time
from typing import Optional, Sequence

from .errors import TransientPollTimeout
from .interfaces import CacheDistribution
from .models import InvalidationOutcome
from .utils.logging import DeployLogger
from .utils.polling import Poller

ALL_PATHS = ("/*",)
COMPLETED = "completed"


class CacheInvalidationController:
    """Requests an invalidation and waits, within a bound, for it to finish.

    Not observing completion is reported as a warning outcome. Propagation
    converges on its own, so it never fails a deployment.
    """

    def __init__(self, distribution: CacheDistribution, logger: Optional[DeployLogger] = None,
                 poll_interval: float = 5.0, poll_attempts: int = 60,
                 cancel_event: Optional[threading.Event] = None):
        self.distribution = distribution
        self.logger = logger or DeployLogger(__name__)
        self.poller = Poller(poll_interval, poll_attempts, cancel_event)

    @staticmethod
    def caller_reference() -> str:
        # Unique per call so the provider never deduplicates repeat invalidations
        return str(time.time_ns() // 1_000_000)

    def invalidate(self, distribution_ref: str,
                   path_patterns: Sequence[str] = ALL_PATHS) -> InvalidationOutcome:
        """Invalidate ``path_patterns`` and wait for propagation.

        Errors creating the invalidation propagate; a wait timeout does not.
        """
        self.logger.info(f"Creating CloudFront invalidation for {distribution_ref}...")
        invalidation_id = self.distribution.create_invalidation(
            distribution_ref, list(path_patterns), self.caller_reference()
        )
        self.logger.info(f"   Invalidation ID: {invalidation_id}")

        def check() -> Optional[str]:
            status = self.distribution.get_invalidation(distribution_ref, invalidation_id)
            return status if status and status.lower() == COMPLETED else None

        try:
            self.poller.poll(check, f"invalidation {invalidation_id}")
        except TransientPollTimeout as e:
            warning = f"Invalidation still in progress (continuing anyway): {e}"
            self.logger.warning(warning)
            return InvalidationOutcome(distribution_ref, invalidation_id, completed=False,
                                       warning=warning)

        self.logger.success("CloudFront invalidation complete")
        return InvalidationOutcome(distribution_ref, invalidation_id, completed=True)
