"""Bounded, cancellable polling."""
import threading
from typing import Callable, Optional, TypeVar

from ..errors import DeploymentCancelled, TransientPollTimeout

T = TypeVar('T')


class Poller:
    """Repeats a check at a fixed interval until it yields a result.

    The delay between attempts waits on ``cancel_event`` so an interrupt or a
    sibling failure can stop the loop without waiting out the interval.
    """

    def __init__(self, interval: float, attempts: int,
                 cancel_event: Optional[threading.Event] = None):
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.interval = interval
        self.attempts = attempts
        self.cancel_event = cancel_event or threading.Event()

    @property
    def budget_seconds(self) -> float:
        return self.interval * self.attempts

    def sleep(self) -> None:
        if self.cancel_event.wait(self.interval):
            raise DeploymentCancelled("Deployment cancelled while waiting")

    def poll(self, check: Callable[[], Optional[T]], operation: str) -> T:
        """Call ``check`` until it returns something other than None.

        Raises:
            TransientPollTimeout: if every attempt returned None
            DeploymentCancelled: if the cancel event fires
        """
        for attempt in range(1, self.attempts + 1):
            if self.cancel_event.is_set():
                raise DeploymentCancelled(f"Deployment cancelled during {operation}")
            result = check()
            if result is not None:
                return result
            if attempt < self.attempts:
                self.sleep()
        raise TransientPollTimeout(operation, self.attempts, self.interval)
