"""Wires the boto3 adapters into a ready-to-run pipeline."""
import threading
from typing import Optional

from .assets import AssetSyncEngine
from .aws import (
    AWSClientManager,
    CloudFormationControlPlane,
    CloudFrontDistribution,
    S3ObjectStore,
    StsIdentityBroker,
)
from .certificates import SharedCertificateResolver
from .credentials import CredentialBroker
from .outputs import OutputsStore
from .pipeline import DeploymentPipeline
from .settings import Settings
from .stacks import StackLifecycleManager
from .utils.logging import DeployLogger


def build_pipeline(settings: Settings, logger: Optional[DeployLogger] = None,
                   clients: Optional[AWSClientManager] = None,
                   cancel_event: Optional[threading.Event] = None,
                   max_workers: int = 1) -> DeploymentPipeline:
    logger = logger or DeployLogger("site_deployer")
    clients = clients or AWSClientManager(settings)
    cancel_event = cancel_event or threading.Event()

    control_plane = CloudFormationControlPlane(
        clients.get_cloudformation_client(),
        s3_client=clients.get_s3_client(),
        template_bucket=settings.template_bucket,
    )
    stacks = StackLifecycleManager(
        control_plane,
        logger=logger,
        poll_interval=settings.stack_poll_interval,
        poll_attempts=settings.stack_poll_attempts,
        cancel_event=cancel_event,
    )
    certificate_stacks = StackLifecycleManager(
        CloudFormationControlPlane(
            clients.get_cloudformation_client(settings.certificate_stack_region)
        ),
        logger=logger,
        poll_interval=settings.stack_poll_interval,
        poll_attempts=settings.stack_poll_attempts,
        cancel_event=cancel_event,
    )
    certificates = SharedCertificateResolver(
        certificate_stacks,
        stack_name=settings.certificate_stack_name,
        output_key=settings.certificate_output,
        override=settings.certificate_arn,
        logger=logger,
    )
    broker = CredentialBroker(
        StsIdentityBroker(clients.get_sts_client()),
        logger=logger,
        duration_seconds=settings.credential_duration_seconds,
    )
    assets = AssetSyncEngine(
        lambda credentials: S3ObjectStore(clients.scoped_client('s3', credentials)),
        logger=logger,
        cancel_event=cancel_event,
    )
    return DeploymentPipeline(
        stacks=stacks,
        credentials=broker,
        assets=assets,
        distribution_factory=lambda credentials: CloudFrontDistribution(
            clients.scoped_client('cloudfront', credentials)
        ),
        outputs_store=OutputsStore(),
        settings=settings,
        logger=logger,
        cancel_event=cancel_event,
        max_workers=max_workers,
        certificates=certificates,
    )
