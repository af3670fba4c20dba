"""
Unit Tests for the shared certificate lookup.
"""

from site_deployer.certificates import SharedCertificateResolver
from site_deployer.errors import ControlPlaneFailure
from site_deployer.stacks import StackLifecycleManager
from tests.fixtures.fakes import FakeControlPlane

STACK = "super-simple-apps-dns-certificate"
OUTPUT = "WildcardCertificateArn"
ARN = "arn:aws:acm:us-east-1:123456789012:certificate/wildcard"


def make_resolver(control_plane, override=None):
    stacks = StackLifecycleManager(control_plane, poll_interval=0, poll_attempts=1)
    return SharedCertificateResolver(stacks, STACK, OUTPUT, override=override)


def describe_calls(control_plane):
    return [call for call in control_plane.calls if call[0] == "describe"]


def test_reads_certificate_from_live_stack():
    control_plane = FakeControlPlane()
    control_plane.add_stack(STACK, "UPDATE_COMPLETE", outputs={OUTPUT: ARN})

    assert make_resolver(control_plane).resolve() == ARN


def test_lookup_happens_once():
    control_plane = FakeControlPlane()
    control_plane.add_stack(STACK, "CREATE_COMPLETE", outputs={OUTPUT: ARN})
    resolver = make_resolver(control_plane)

    resolver.resolve()
    resolver.resolve()

    assert len(describe_calls(control_plane)) == 1


def test_configured_override_skips_lookup():
    control_plane = FakeControlPlane()
    override = "arn:aws:acm:us-east-1:123456789012:certificate/override"

    assert make_resolver(control_plane, override=override).resolve() == override
    assert control_plane.calls == []


def test_missing_stack_means_no_certificate():
    assert make_resolver(FakeControlPlane()).resolve() is None


def test_missing_output_means_no_certificate():
    control_plane = FakeControlPlane()
    control_plane.add_stack(STACK, "CREATE_COMPLETE", outputs={"Other": "x"})

    assert make_resolver(control_plane).resolve() is None


def test_failed_stack_means_no_certificate():
    control_plane = FakeControlPlane()
    control_plane.add_stack(STACK, "ROLLBACK_COMPLETE", outputs={OUTPUT: ARN})

    assert make_resolver(control_plane).resolve() is None


def test_unreadable_stack_means_no_certificate():
    class Unreachable(FakeControlPlane):
        def describe_stack(self, name):
            raise ControlPlaneFailure("Could not describe stack: throttled")

    assert make_resolver(Unreachable()).resolve() is None


def test_no_lookup_configured():
    assert SharedCertificateResolver(None, STACK, OUTPUT).resolve() is None
