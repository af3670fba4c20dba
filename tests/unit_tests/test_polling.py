import threading

import pytest

from site_deployer.errors import DeploymentCancelled, TransientPollTimeout
from site_deployer.utils.polling import Poller


def test_returns_first_result():
    results = iter([None, None, "done"])
    assert Poller(0, 5).poll(lambda: next(results), "test") == "done"


def test_gives_up_after_attempts():
    calls = []

    with pytest.raises(TransientPollTimeout) as exc_info:
        Poller(0, 4).poll(lambda: calls.append(1), "test")

    assert len(calls) == 4
    assert exc_info.value.operation == "test"


def test_cancelled_sleep_raises():
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(DeploymentCancelled):
        Poller(10, 2, cancel).sleep()


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        Poller(1, 0)


def test_budget():
    assert Poller(5, 120).budget_seconds == 600
