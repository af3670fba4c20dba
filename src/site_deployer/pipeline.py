"""
Deployment pipeline.

Drives each target through a fixed state machine:

    NOT_STARTED -> STACK_APPLYING -> STACK_APPLIED -> CREDENTIALS_ACQUIRED
      -> ASSETS_SYNCING -> ASSETS_SYNCED -> CACHE_INVALIDATING -> DONE

Removal runs use NOT_STARTED -> STACK_DESTROYING -> DONE. Any non-DONE state
can move to FAILED. A failure is recorded against its own target and the
batch carries on with the next one.
"""
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from .assets import AssetSyncEngine
from .certificates import SharedCertificateResolver
from .credentials import CredentialBroker, role_from_outputs
from .errors import AuthorizationError, ConfigurationError, DeploymentCancelled
from .interfaces import CacheDistribution
from .invalidation import CacheInvalidationController
from .models import InvalidationOutcome, ScopedCredentials, StackDescriptor, StackState, SyncReport
from .outputs import OutputsStore
from .settings import Settings
from .stacks import StackLifecycleManager
from .targets import DeployTarget
from .utils.logging import DeployLogger

DistributionFactory = Callable[[ScopedCredentials], CacheDistribution]


class TargetState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    STACK_APPLYING = "STACK_APPLYING"
    STACK_APPLIED = "STACK_APPLIED"
    CREDENTIALS_ACQUIRED = "CREDENTIALS_ACQUIRED"
    ASSETS_SYNCING = "ASSETS_SYNCING"
    ASSETS_SYNCED = "ASSETS_SYNCED"
    CACHE_INVALIDATING = "CACHE_INVALIDATING"
    STACK_DESTROYING = "STACK_DESTROYING"
    DONE = "DONE"
    FAILED = "FAILED"


_TRANSITIONS = {
    TargetState.NOT_STARTED: {TargetState.STACK_APPLYING, TargetState.STACK_DESTROYING},
    TargetState.STACK_APPLYING: {TargetState.STACK_APPLIED},
    TargetState.STACK_APPLIED: {TargetState.CREDENTIALS_ACQUIRED},
    TargetState.CREDENTIALS_ACQUIRED: {TargetState.ASSETS_SYNCING},
    TargetState.ASSETS_SYNCING: {TargetState.ASSETS_SYNCED},
    TargetState.ASSETS_SYNCED: {TargetState.CACHE_INVALIDATING},
    TargetState.CACHE_INVALIDATING: {TargetState.DONE},
    TargetState.STACK_DESTROYING: {TargetState.DONE},
    TargetState.DONE: set(),
    TargetState.FAILED: set(),
}


class TargetStateError(Exception):
    """Raised for transitions the state machine does not allow"""
    pass


@dataclass
class TargetResult:
    """Outcome of one target's run."""
    target: str
    state: TargetState = TargetState.NOT_STARTED
    history: List[TargetState] = field(default_factory=lambda: [TargetState.NOT_STARTED])
    failed_in: Optional[TargetState] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    outputs: Dict[str, str] = field(default_factory=dict)
    sync_report: Optional[SyncReport] = None
    invalidation: Optional[InvalidationOutcome] = None
    warnings: List[str] = field(default_factory=list)

    def transition(self, new_state: TargetState) -> None:
        if new_state != TargetState.FAILED and new_state not in _TRANSITIONS[self.state]:
            raise TargetStateError(f"Invalid transition from {self.state.value} to {new_state.value}")
        if new_state == TargetState.FAILED and self.state == TargetState.DONE:
            raise TargetStateError("A finished target cannot fail")
        self.state = new_state
        self.history.append(new_state)

    def fail(self, error: BaseException) -> None:
        self.failed_in = self.state
        self.error = str(error)
        self.error_type = type(error).__name__
        self.transition(TargetState.FAILED)

    @property
    def succeeded(self) -> bool:
        return self.state == TargetState.DONE


@dataclass
class PipelineReport:
    stage: str
    remove: bool = False
    results: List[TargetResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.cancelled and all(r.succeeded for r in self.results)

    @property
    def failed(self) -> List[TargetResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def exit_code(self) -> int:
        if self.cancelled:
            return 130
        return 0 if self.succeeded else 1

    def summary_lines(self) -> List[str]:
        lines = []
        for result in self.results:
            if result.succeeded:
                line = f"{result.target}: DONE"
                if result.warnings:
                    line += f" ({len(result.warnings)} warning(s))"
            else:
                failed_in = result.failed_in.value if result.failed_in else result.state.value
                line = f"{result.target}: {result.state.value} in {failed_in} - {result.error_type}: {result.error}"
            lines.append(line)
        return lines


class DeploymentPipeline:
    """Sequences stack, credential, asset and cache steps for each target."""

    def __init__(self, stacks: StackLifecycleManager, credentials: CredentialBroker,
                 assets: AssetSyncEngine, distribution_factory: DistributionFactory,
                 outputs_store: OutputsStore, settings: Settings,
                 logger: Optional[DeployLogger] = None,
                 cancel_event: Optional[threading.Event] = None,
                 max_workers: int = 1,
                 certificates: Optional[SharedCertificateResolver] = None):
        self.stacks = stacks
        self.credentials = credentials
        self.assets = assets
        self.distribution_factory = distribution_factory
        self.outputs_store = outputs_store
        self.settings = settings
        self.logger = logger or DeployLogger(__name__)
        self.cancel_event = cancel_event or threading.Event()
        self.max_workers = max(1, max_workers)
        self.certificates = certificates or SharedCertificateResolver(
            None, settings.certificate_stack_name, settings.certificate_output,
            override=settings.certificate_arn, logger=self.logger,
        )

    def run(self, targets: List[DeployTarget], stage: str, remove: bool = False) -> PipelineReport:
        """Run every target and report each outcome in input order."""
        report = PipelineReport(stage=stage, remove=remove,
                                results=[TargetResult(t.name) for t in targets])
        action = "Removing" if remove else "Deploying"
        self.logger.info("=" * 60)
        self.logger.info(f"{action} {len(targets)} target(s) to stage {stage}")
        self.logger.info("=" * 60)

        jobs = list(zip(targets, report.results))
        try:
            if self.max_workers == 1 or len(jobs) <= 1:
                for index, (target, result) in enumerate(jobs, start=1):
                    self.logger.info(f"--- Step {index}/{len(jobs)}: {target.name} ---")
                    self._run_target(target, stage, remove, result)
            else:
                self._run_parallel(jobs, stage, remove)
        except KeyboardInterrupt:
            self.logger.warning("Interrupted - cancelling remaining work")
            self.cancel_event.set()
            report.cancelled = True
            for result in report.results:
                if result.state not in (TargetState.DONE, TargetState.FAILED):
                    result.fail(DeploymentCancelled("Interrupted"))

        for line in report.summary_lines():
            self.logger.info(line)
        if report.succeeded:
            self.logger.success(f"All {len(targets)} target(s) finished")
        else:
            self.logger.error(f"{len(report.failed)} of {len(targets)} target(s) failed")
        return report

    def _run_parallel(self, jobs: List[Tuple[DeployTarget, TargetResult]], stage: str,
                      remove: bool) -> None:
        executor = ThreadPoolExecutor(max_workers=self.max_workers,
                                      thread_name_prefix="deploy")
        try:
            futures = [
                executor.submit(self._run_target, target, stage, remove, result)
                for target, result in jobs
            ]
            wait(futures)
        except KeyboardInterrupt:
            self.cancel_event.set()
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)

    def _run_target(self, target: DeployTarget, stage: str, remove: bool,
                    result: TargetResult) -> TargetResult:
        log = self.logger.child(target.name)
        if self.cancel_event.is_set():
            result.fail(DeploymentCancelled("Cancelled before start"))
            return result
        try:
            if remove:
                with log.step(f"remove {target.stack_name(stage)}"):
                    self._remove(target, stage, result, log)
            else:
                with log.step(f"deploy {target.stack_name(stage)}"):
                    self._deploy(target, stage, result, log)
        except Exception as e:
            log.error(f"{type(e).__name__} in {result.state.value}: {e}")
            result.fail(e)
        return result

    def _deploy(self, target: DeployTarget, stage: str, result: TargetResult,
                log: DeployLogger) -> None:
        result.transition(TargetState.STACK_APPLYING)
        state = self.stacks.apply(self._descriptor(target, stage, result, log))
        result.outputs = dict(state.outputs)
        result.transition(TargetState.STACK_APPLIED)

        self.outputs_store.save(target.outputs_path(self.settings), stage, state.outputs)
        log.info(f"   S3 Bucket: {state.outputs.get(target.bucket_output)}")
        log.info(f"   CloudFront: {state.outputs.get(target.distribution_output)}")
        log.info(f"   URL: {state.outputs.get(target.url_output)}")

        # Role, bucket and distribution come from this run's live stack state only
        role_ref = role_from_outputs(state.outputs, target.role_output, state.name)
        bucket = self._required_output(state, target.bucket_output)
        credentials = self.credentials.assume(role_ref, target.session_context(stage))
        result.transition(TargetState.CREDENTIALS_ACQUIRED)

        result.transition(TargetState.ASSETS_SYNCING)
        self._ensure_fresh(credentials)
        result.sync_report = self.assets.sync(target.build_dir, bucket, credentials)
        result.transition(TargetState.ASSETS_SYNCED)

        result.transition(TargetState.CACHE_INVALIDATING)
        distribution_id = state.outputs.get(target.distribution_output)
        if distribution_id:
            self._ensure_fresh(credentials)
            outcome = self._controller(credentials, log).invalidate(
                distribution_id, target.invalidation_paths
            )
            result.invalidation = outcome
            if outcome.warning:
                result.warnings.append(outcome.warning)
        else:
            warning = f"{target.distribution_output} not in stack outputs; skipping invalidation"
            log.warning(warning)
            result.warnings.append(warning)
        result.transition(TargetState.DONE)
        log.success(f"{target.name} deployed to {stage}")

    def _descriptor(self, target: DeployTarget, stage: str, result: TargetResult,
                    log: DeployLogger) -> StackDescriptor:
        certificate_arn = None
        if target.domain_name(stage, self.settings):
            certificate_arn = self.certificates.resolve()
            if not certificate_arn:
                warning = f"No shared certificate found; deploying {target.name} without custom domain"
                log.warning(warning)
                result.warnings.append(warning)
        return target.descriptor(stage, self.settings, certificate_arn)

    def _remove(self, target: DeployTarget, stage: str, result: TargetResult,
                log: DeployLogger) -> None:
        result.transition(TargetState.STACK_DESTROYING)
        self.stacks.destroy(target.stack_name(stage))
        if self.outputs_store.remove(target.outputs_path(self.settings), stage):
            log.info(f"Removed saved outputs for stage {stage}")
        result.transition(TargetState.DONE)

    def sync_only(self, target: DeployTarget, stage: str) -> Tuple[SyncReport, Optional[InvalidationOutcome]]:
        """Upload the current build to an already deployed stack, then invalidate."""
        log = self.logger.child(target.name)
        state = self.stacks.require_complete(target.stack_name(stage))
        role_ref = role_from_outputs(state.outputs, target.role_output, state.name)
        bucket = self._required_output(state, target.bucket_output)
        credentials = self.credentials.assume(role_ref, target.session_context(stage))
        self._ensure_fresh(credentials)
        report = self.assets.sync(target.build_dir, bucket, credentials)

        distribution_id = state.outputs.get(target.distribution_output)
        if not distribution_id:
            return report, None
        self._ensure_fresh(credentials)
        return report, self._controller(credentials, log).invalidate(
            distribution_id, target.invalidation_paths
        )

    def invalidate_only(self, target: DeployTarget, stage: str) -> InvalidationOutcome:
        """Invalidate the cache of an already deployed stack."""
        log = self.logger.child(target.name)
        state = self.stacks.require_complete(target.stack_name(stage))
        distribution_id = self._required_output(state, target.distribution_output)
        role_ref = role_from_outputs(state.outputs, target.role_output, state.name)
        credentials = self.credentials.assume(role_ref, target.session_context(stage))
        return self._controller(credentials, log).invalidate(
            distribution_id, target.invalidation_paths
        )

    def status(self, targets: List[DeployTarget], stage: str) -> List[Tuple[DeployTarget, StackState]]:
        return [(target, self.stacks.describe(target.stack_name(stage))) for target in targets]

    def _controller(self, credentials: ScopedCredentials,
                    log: DeployLogger) -> CacheInvalidationController:
        return CacheInvalidationController(
            self.distribution_factory(credentials),
            logger=log,
            poll_interval=self.settings.invalidation_poll_interval,
            poll_attempts=self.settings.invalidation_poll_attempts,
            cancel_event=self.cancel_event,
        )

    @staticmethod
    def _required_output(state: StackState, key: str) -> str:
        value = state.outputs.get(key)
        if not value:
            raise ConfigurationError(f"{key} not found in outputs of stack {state.name}")
        return value

    @staticmethod
    def _ensure_fresh(credentials: ScopedCredentials) -> None:
        if credentials.is_expired():
            raise AuthorizationError("Scoped deploy credentials expired before the step started")
