"""Catalogue of deployable units and the stack descriptors derived from them."""
import json
import os
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigurationError
from .models import StackDescriptor
from .settings import Settings

ALL = "all"


class DeployTarget(BaseModel):
    """One static site: its stack template and its build output."""

    name: str
    app_name: str
    template: str
    build_dir: str
    subdomain: str = ""
    parameters: Dict[str, str] = Field(default_factory=dict)
    capabilities: Optional[List[str]] = None
    outputs_file: Optional[str] = None
    invalidation_paths: List[str] = Field(default_factory=lambda: ["/*"])

    bucket_output: str = "WebsiteBucket"
    distribution_output: str = "CloudFrontDistributionId"
    role_output: str = "DeployRoleArn"
    url_output: str = "WebsiteUrl"

    def stack_name(self, stage: str) -> str:
        return f"{self.app_name}-{stage}"

    def session_context(self, stage: str) -> str:
        # Must match the external id the stack's deploy role trusts
        return f"{self.app_name}-{stage}"

    def domain_name(self, stage: str, settings: Settings) -> str:
        if stage != "prod":
            return ""
        if self.subdomain:
            return f"{self.subdomain}.{settings.root_domain}"
        return settings.root_domain

    def descriptor(self, stage: str, settings: Settings,
                   certificate_arn: Optional[str] = None) -> StackDescriptor:
        """Stack inputs for ``stage``. Custom domains need a certificate."""
        parameters = {"Stage": stage, "AppName": self.app_name}

        domain = self.domain_name(stage, settings)
        certificate_arn = certificate_arn or settings.certificate_arn
        if domain and certificate_arn:
            parameters["DomainName"] = domain
            parameters["CertificateArn"] = certificate_arn
            if settings.hosted_zone_id:
                parameters["HostedZoneId"] = settings.hosted_zone_id

        if settings.deploy_user_arn:
            parameters["DeployUserArn"] = settings.deploy_user_arn

        parameters.update(self.parameters)

        capabilities = (
            frozenset(self.capabilities) if self.capabilities is not None
            else settings.capabilities
        )
        return StackDescriptor(
            name=self.stack_name(stage),
            template_source=self.template,
            parameters=parameters,
            capabilities=capabilities,
            execution_role_ref=settings.cloudformation_role_arn,
        )

    def outputs_path(self, settings: Settings) -> str:
        if self.outputs_file:
            return self.outputs_file
        return os.path.join(settings.outputs_dir, f"{self.name}-outputs.json")


class TargetCatalogue(BaseModel):
    targets: List[DeployTarget]


def load_targets(path: str) -> List[DeployTarget]:
    """Read the targets file. Relative paths inside it resolve against its directory."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            catalogue = TargetCatalogue.model_validate(json.load(f))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Targets file {path} not found") from e
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigurationError(f"Targets file {path} is invalid: {e}") from e

    base_dir = os.path.dirname(os.path.abspath(path))
    names = set()
    for target in catalogue.targets:
        if target.name in names or target.name == ALL:
            raise ConfigurationError(f"Duplicate or reserved target name: {target.name}")
        names.add(target.name)
        target.build_dir = _resolve(base_dir, target.build_dir)
        if not target.template.startswith("https://"):
            target.template = _resolve(base_dir, target.template)
        if target.outputs_file:
            target.outputs_file = _resolve(base_dir, target.outputs_file)
    return catalogue.targets


def select(targets: List[DeployTarget], selector: str) -> List[DeployTarget]:
    """Targets matching ``selector``: a target name, or ``all``."""
    if selector == ALL:
        return list(targets)
    for target in targets:
        if target.name == selector:
            return [target]
    available = ", ".join(t.name for t in targets)
    raise ConfigurationError(f"Unknown target: {selector}. Available targets: {available}")


def _resolve(base_dir: str, path: str) -> str:
    return path if os.path.isabs(path) else os.path.normpath(os.path.join(base_dir, path))
