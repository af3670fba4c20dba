"""
Pre-deployment bootstrap validation.

The deploy user can only pass a CloudFormation service role and write to one
template bucket; both are created once by an administrator. This module
checks that they exist and explains how to create whichever is missing.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError, NoCredentialsError

from .aws.clients import AWSClientManager
from .aws.errors import error_message
from .settings import Settings


@dataclass
class BootstrapReport:
    template_bucket: str
    cfn_role_name: str
    region: str
    caller_arn: Optional[str] = None
    missing_bucket: bool = False
    missing_role: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not (self.missing_bucket or self.missing_role or self.errors)


class BootstrapValidator:
    """Check credentials and the admin-provisioned deployment prerequisites."""

    def __init__(self, settings: Settings, clients: Optional[AWSClientManager] = None):
        self.settings = settings
        self.clients = clients or AWSClientManager(settings)

    def validate(self) -> BootstrapReport:
        report = BootstrapReport(
            template_bucket=self.settings.template_bucket,
            cfn_role_name=self.settings.cfn_role_name,
            region=self.settings.aws_region,
        )

        identity = self._caller_identity(report)
        if identity is None:
            return report
        report.caller_arn = identity.get('Arn')

        try:
            self.clients.get_s3_client().head_bucket(Bucket=report.template_bucket)
        except ClientError:
            report.missing_bucket = True

        try:
            self.clients.get_iam_client().get_role(RoleName=report.cfn_role_name)
        except ClientError:
            report.missing_role = True

        return report

    def _caller_identity(self, report: BootstrapReport) -> Optional[Dict[str, Any]]:
        try:
            return self.clients.get_sts_client().get_caller_identity()
        except NoCredentialsError:
            report.errors.append(
                "AWS credentials not configured. Please run 'aws configure' or set environment variables."
            )
        except ClientError as e:
            report.errors.append(f"AWS credentials invalid: {error_message(e)}")
        return None


def render_instructions(report: BootstrapReport) -> str:
    """Human instructions for creating missing bootstrap resources."""
    lines = ["=" * 70, "  BOOTSTRAP SETUP REQUIRED", "=" * 70]

    for error in report.errors:
        lines.extend(["", f"ERROR: {error}"])

    if report.missing_bucket:
        lines.extend([
            "",
            "MISSING: S3 Template Bucket",
            f"Create an S3 bucket named: {report.template_bucket}",
            "",
            "Or via CLI (with admin credentials):",
            f"  aws s3 mb s3://{report.template_bucket} --region {report.region}",
        ])

    if report.missing_role:
        lines.extend([
            "",
            "MISSING: CloudFormation Service Role",
            f"Create an IAM role named: {report.cfn_role_name}",
            "  Trusted entity: AWS service > CloudFormation",
            "  Attach the permissions CloudFormation needs to build your stacks",
        ])

    lines.extend([
        "",
        "=" * 70,
        "  After creating the missing resources, run the deploy again.",
        "=" * 70,
    ])
    return "\n".join(lines)
