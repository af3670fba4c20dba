"""
Unit Tests for the stack lifecycle manager.
Runs against a scripted control plane with zero-second polling.
"""

import threading

import pytest

from site_deployer.errors import (
    ConfigurationError,
    ControlPlaneFailure,
    DeploymentCancelled,
    TransientPollTimeout,
)
from site_deployer.models import StackDescriptor, StackStatus
from site_deployer.stacks import StackLifecycleManager, is_usable, terminal_statuses
from tests.fixtures.fakes import FakeControlPlane

STACK = "landing-dev"


def make_descriptor(**parameters):
    params = {"Stage": "dev", "AppName": "landing"}
    params.update(parameters)
    return StackDescriptor(
        name=STACK,
        template_source="frontend.yaml",
        parameters=params,
        capabilities=frozenset({"CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"}),
        execution_role_ref="arn:aws:iam::123456789012:role/ssa-cloudformation-role",
    )


@pytest.fixture
def control_plane():
    return FakeControlPlane()


@pytest.fixture
def manager(control_plane):
    return StackLifecycleManager(control_plane, poll_interval=0, poll_attempts=5)


class TestTerminalStatuses:

    def test_create_failure_markers(self):
        success, failures = terminal_statuses("CREATE")
        assert success == "CREATE_COMPLETE"
        assert "ROLLBACK_COMPLETE" in failures
        assert "CREATE_FAILED" in failures

    def test_delete_only_fails_on_delete_failed(self):
        assert terminal_statuses("DELETE") == ("DELETE_COMPLETE", ["DELETE_FAILED"])


class TestApply:

    def test_creates_missing_stack(self, manager, control_plane):
        state = manager.apply(make_descriptor())

        assert state.status == StackStatus.COMPLETE
        assert state.raw_status == "CREATE_COMPLETE"
        assert state.outputs["WebsiteBucket"] == "some-bucket"
        assert control_plane.operations() == [("create", STACK)]

    def test_reapplying_identical_descriptor_is_a_successful_noop(self, manager, control_plane):
        first = manager.apply(make_descriptor())
        second = manager.apply(make_descriptor())

        assert first.status == StackStatus.COMPLETE
        assert second.status == StackStatus.COMPLETE
        assert second.outputs == first.outputs
        assert control_plane.operations() == [("create", STACK), ("update", STACK)]

    def test_changed_parameters_update_the_stack(self, manager, control_plane):
        manager.apply(make_descriptor())
        state = manager.apply(make_descriptor(Stage="dev", Extra="1"))

        assert state.raw_status == "UPDATE_COMPLETE"
        assert state.status == StackStatus.COMPLETE

    def test_create_failure_reports_first_failed_event_reason(self, manager, control_plane):
        control_plane.fail_create(STACK, "Bucket name already exists")

        with pytest.raises(ControlPlaneFailure) as exc_info:
            manager.apply(make_descriptor())

        assert exc_info.value.reason == "Bucket name already exists"
        assert "Bucket name already exists" in str(exc_info.value)

    def test_rolled_back_stack_is_deleted_then_recreated(self, manager, control_plane):
        control_plane.add_stack(STACK, "ROLLBACK_COMPLETE")

        state = manager.apply(make_descriptor())

        assert state.status == StackStatus.COMPLETE
        assert control_plane.operations() == [("delete", STACK), ("create", STACK)]

    def test_waits_for_in_flight_operation_before_updating(self, manager, control_plane):
        stack = control_plane.add_stack(STACK, "UPDATE_IN_PROGRESS")
        stack.timeline = ["UPDATE_IN_PROGRESS", "UPDATE_COMPLETE"]

        state = manager.apply(make_descriptor())

        assert state.status == StackStatus.COMPLETE
        assert control_plane.operations() == [("update", STACK)]

    def test_noop_on_update_rollback_complete_is_usable(self, manager, control_plane):
        descriptor = make_descriptor()
        control_plane.add_stack(STACK, "UPDATE_ROLLBACK_COMPLETE", descriptor=descriptor)

        state = manager.apply(descriptor)

        assert state.status == StackStatus.COMPLETE

    def test_polling_is_bounded(self, control_plane):
        control_plane.create_timeline = ["CREATE_IN_PROGRESS"]
        manager = StackLifecycleManager(control_plane, poll_interval=0, poll_attempts=3)

        with pytest.raises(TransientPollTimeout) as exc_info:
            manager.apply(make_descriptor())

        assert exc_info.value.attempts == 3
        describes = [c for c in control_plane.calls if c[0] == "describe"]
        # one describe to look for an existing stack, then one per attempt
        assert len(describes) == 4

    def test_cancel_event_stops_the_wait(self, control_plane):
        control_plane.create_timeline = ["CREATE_IN_PROGRESS"]
        cancel = threading.Event()
        cancel.set()
        manager = StackLifecycleManager(control_plane, poll_interval=0, poll_attempts=3,
                                        cancel_event=cancel)

        with pytest.raises(DeploymentCancelled):
            manager.apply(make_descriptor())


class TestDestroy:

    def test_missing_stack_is_a_noop(self, manager, control_plane):
        manager.destroy(STACK)
        assert control_plane.operations() == [("delete", STACK)]

    def test_stack_disappearing_counts_as_deleted(self, manager, control_plane):
        control_plane.add_stack(STACK, "CREATE_COMPLETE")

        manager.destroy(STACK)

        assert STACK not in control_plane.stacks

    def test_delete_failed_raises(self, manager, control_plane):
        control_plane.add_stack(STACK, "CREATE_COMPLETE")
        control_plane.delete_timeline = ["DELETE_IN_PROGRESS", "DELETE_FAILED"]

        with pytest.raises(ControlPlaneFailure):
            manager.destroy(STACK)


class TestDescribe:

    def test_missing_stack_is_not_found(self, manager):
        assert manager.describe(STACK).status == StackStatus.NOT_FOUND

    def test_require_complete_rejects_failed_stack(self, manager, control_plane):
        control_plane.add_stack(STACK, "ROLLBACK_COMPLETE")

        with pytest.raises(ConfigurationError):
            manager.require_complete(STACK)

    def test_is_usable(self, manager, control_plane):
        control_plane.add_stack(STACK, "UPDATE_ROLLBACK_COMPLETE")
        assert is_usable(manager.describe(STACK))


@pytest.mark.parametrize("raw, expected", [
    (None, StackStatus.NOT_FOUND),
    ("DELETE_COMPLETE", StackStatus.NOT_FOUND),
    ("REVIEW_IN_PROGRESS", StackStatus.PENDING),
    ("UPDATE_COMPLETE_CLEANUP_IN_PROGRESS", StackStatus.IN_PROGRESS),
    ("ROLLBACK_COMPLETE", StackStatus.ROLLED_BACK),
    ("UPDATE_ROLLBACK_COMPLETE", StackStatus.ROLLED_BACK),
    ("CREATE_FAILED", StackStatus.FAILED),
    ("UPDATE_COMPLETE", StackStatus.COMPLETE),
])
def test_status_normalisation(raw, expected):
    assert StackStatus.from_raw(raw) == expected


def test_stack_waiting_on_change_set_review_is_recreated(manager, control_plane):
    control_plane.add_stack(STACK, "REVIEW_IN_PROGRESS")

    state = manager.apply(make_descriptor())

    assert state.status == StackStatus.COMPLETE
    assert control_plane.operations() == [("delete", STACK), ("create", STACK)]
