# src/site_deployer/settings.py
from functools import lru_cache
from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Single source of truth for deployment settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from site_deployer.settings import get_settings
        settings = get_settings()
        region = settings.aws_region
    """

    # AWS Core Settings
    aws_region: str = Field(
        default="ap-southeast-2",
        alias="AWS_REGION"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL",
        description="Override endpoint, e.g. for a local AWS emulator"
    )

    aws_account_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCOUNT_ID"
    )

    aws_profile: Optional[str] = Field(
        default=None,
        alias="AWS_PROFILE"
    )

    # CloudFormation
    cfn_role_name: str = Field(
        default="ssa-cloudformation-role",
        description="Service role CloudFormation assumes while applying templates"
    )

    cfn_role_arn: Optional[str] = Field(
        default=None,
        alias="CFN_ROLE_ARN",
        description="Explicit service role ARN (derived from account id if unset)"
    )

    template_bucket: str = Field(
        default="ssa-deploy-templates",
        description="Bucket that holds templates too large to send inline"
    )

    stack_capabilities: str = Field(
        default="CAPABILITY_IAM,CAPABILITY_NAMED_IAM",
        description="Comma separated capabilities acknowledged on every stack"
    )

    # Identity
    deploy_user_arn: Optional[str] = Field(
        default=None,
        alias="DEPLOY_USER_ARN",
        description="Principal allowed to assume the per-app deploy role"
    )

    credential_duration_seconds: int = Field(
        default=3600,
        description="Lifetime of scoped deploy credentials"
    )

    # Domain Configuration
    root_domain: str = Field(
        default="super-simple-apps.com",
        alias="ROOT_DOMAIN"
    )

    hosted_zone_id: Optional[str] = Field(
        default=None,
        alias="HOSTED_ZONE_ID"
    )

    certificate_arn: Optional[str] = Field(
        default=None,
        alias="CERTIFICATE_ARN",
        description="Overrides the certificate read from the shared certificate stack"
    )

    certificate_stack_name: str = Field(
        default="super-simple-apps-dns-certificate",
        description="Stack that publishes the shared wildcard certificate"
    )

    certificate_stack_region: str = Field(
        default="us-east-1",
        description="CloudFront certificates must live in us-east-1"
    )

    certificate_output: str = Field(
        default="WildcardCertificateArn"
    )

    # Polling
    stack_poll_interval: float = Field(default=5.0)
    stack_poll_attempts: int = Field(default=120)
    invalidation_poll_interval: float = Field(default=5.0)
    invalidation_poll_attempts: int = Field(default=60)

    # Local files
    targets_file: str = Field(
        default="deploy_targets.json",
        description="Catalogue of deployable units"
    )

    outputs_dir: str = Field(
        default=".deploy-outputs",
        description="Directory holding per-target outputs documents"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_file: Optional[str] = Field(
        default=None,
        description="Optional file that receives a copy of every log line"
    )

    @validator('log_level', pre=True)
    def normalize_log_level(cls, v):
        """Accept lower-case level names from the environment."""
        return str(v).upper() if v else "INFO"

    @validator('stack_poll_attempts', 'invalidation_poll_attempts')
    def validate_attempts(cls, v):
        if v < 1:
            raise ValueError("Poll attempts must be at least 1")
        return v

    @validator('credential_duration_seconds')
    def validate_duration(cls, v):
        # STS accepts 15 minutes up to the role's maximum session duration
        if v < 900 or v > 43200:
            raise ValueError("credential_duration_seconds must be between 900 and 43200")
        return v

    @property
    def cloudformation_role_arn(self) -> Optional[str]:
        """Service role ARN passed to CloudFormation, if one can be determined."""
        if self.cfn_role_arn:
            return self.cfn_role_arn
        if self.aws_account_id:
            return f"arn:aws:iam::{self.aws_account_id}:role/{self.cfn_role_name}"
        return None

    @property
    def capabilities(self) -> frozenset:
        return frozenset(c.strip() for c in self.stack_capabilities.split(",") if c.strip())

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
