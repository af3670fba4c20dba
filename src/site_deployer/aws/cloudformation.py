"""CloudFormation adapter for the stack control plane."""
import logging
import os
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from ..errors import ControlPlaneFailure, NoChangesError, StackNotFoundError
from ..interfaces import StackControlPlane
from ..models import StackDescriptor, StackEvent, StackState, StackStatus
from .errors import error_message, is_no_updates, is_stack_missing

logger = logging.getLogger(__name__)

# CloudFormation rejects inline TemplateBody values above this size
MAX_INLINE_TEMPLATE_BYTES = 51200


class CloudFormationControlPlane(StackControlPlane):
    """Stack operations backed by a boto3 CloudFormation client."""

    def __init__(self, client: Any, s3_client: Any = None,
                 template_bucket: Optional[str] = None):
        self.client = client
        self.s3_client = s3_client
        self.template_bucket = template_bucket

    def describe_stack(self, name: str) -> StackState:
        try:
            response = self.client.describe_stacks(StackName=name)
        except ClientError as e:
            if is_stack_missing(e):
                raise StackNotFoundError(name) from e
            raise ControlPlaneFailure(f"Could not describe stack {name}: {error_message(e)}") from e

        stacks = response.get('Stacks', [])
        if not stacks:
            raise StackNotFoundError(name)

        stack = stacks[0]
        raw_status = stack.get('StackStatus')
        outputs = {
            output['OutputKey']: output['OutputValue']
            for output in stack.get('Outputs', [])
            if output.get('OutputKey') and output.get('OutputValue')
        }
        return StackState(
            name=name,
            status=StackStatus.from_raw(raw_status),
            raw_status=raw_status,
            outputs=outputs,
            failure_reason=stack.get('StackStatusReason'),
        )

    def create_stack(self, descriptor: StackDescriptor) -> None:
        try:
            self.client.create_stack(**self._stack_request(descriptor))
        except ClientError as e:
            raise ControlPlaneFailure(
                f"Could not create stack {descriptor.name}: {error_message(e)}"
            ) from e

    def update_stack(self, descriptor: StackDescriptor) -> None:
        try:
            self.client.update_stack(**self._stack_request(descriptor))
        except ClientError as e:
            if is_no_updates(e):
                raise NoChangesError(error_message(e)) from e
            raise ControlPlaneFailure(
                f"Could not update stack {descriptor.name}: {error_message(e)}"
            ) from e

    def delete_stack(self, name: str) -> None:
        try:
            self.client.delete_stack(StackName=name)
        except ClientError as e:
            if is_stack_missing(e):
                raise StackNotFoundError(name) from e
            raise ControlPlaneFailure(f"Could not delete stack {name}: {error_message(e)}") from e

    def list_stack_events(self, name: str) -> List[StackEvent]:
        try:
            response = self.client.describe_stack_events(StackName=name)
        except ClientError as e:
            if is_stack_missing(e):
                raise StackNotFoundError(name) from e
            raise ControlPlaneFailure(
                f"Could not read events for stack {name}: {error_message(e)}"
            ) from e

        return [
            StackEvent(
                resource_status=event.get('ResourceStatus', ''),
                reason=event.get('ResourceStatusReason'),
                logical_id=event.get('LogicalResourceId'),
            )
            for event in response.get('StackEvents', [])
        ]

    def _stack_request(self, descriptor: StackDescriptor) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            'StackName': descriptor.name,
            'Parameters': [
                {'ParameterKey': key, 'ParameterValue': value}
                for key, value in descriptor.parameters.items()
            ],
            'Capabilities': sorted(descriptor.capabilities),
        }
        if descriptor.execution_role_ref:
            request['RoleARN'] = descriptor.execution_role_ref
        request.update(self._template_argument(descriptor))
        return request

    def _template_argument(self, descriptor: StackDescriptor) -> Dict[str, str]:
        source = descriptor.template_source
        if source.startswith("https://"):
            return {'TemplateURL': source}

        try:
            with open(source, 'r', encoding='utf-8') as f:
                body = f.read()
        except OSError as e:
            raise ControlPlaneFailure(f"Template not found at {source}: {e}") from e

        if len(body.encode('utf-8')) <= MAX_INLINE_TEMPLATE_BYTES:
            return {'TemplateBody': body}

        if not (self.s3_client and self.template_bucket):
            raise ControlPlaneFailure(
                f"Template {source} exceeds {MAX_INLINE_TEMPLATE_BYTES} bytes "
                "and no template bucket is configured"
            )

        key = f"{descriptor.name}/{os.path.basename(source)}"
        logger.info(f"Uploading large template to s3://{self.template_bucket}/{key}")
        try:
            self.s3_client.put_object(
                Bucket=self.template_bucket,
                Key=key,
                Body=body.encode('utf-8'),
                ContentType='text/yaml',
            )
        except ClientError as e:
            raise ControlPlaneFailure(f"Could not upload template {source}: {error_message(e)}") from e
        return {'TemplateURL': f"https://{self.template_bucket}.s3.amazonaws.com/{key}"}
