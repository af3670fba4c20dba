"""boto3 implementations of the deployment collaborator interfaces."""
from .clients import AWSClientManager
from .cloudformation import CloudFormationControlPlane
from .cloudfront import CloudFrontDistribution
from .s3 import S3ObjectStore
from .sts import StsIdentityBroker

__all__ = [
    "AWSClientManager",
    "CloudFormationControlPlane",
    "CloudFrontDistribution",
    "S3ObjectStore",
    "StsIdentityBroker",
]
