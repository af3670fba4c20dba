"""
Tests for the STS, S3 and CloudFront adapters.
"""

from datetime import datetime

import boto3
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from site_deployer.assets import AssetSyncEngine
from site_deployer.aws import AWSClientManager, CloudFrontDistribution, S3ObjectStore, StsIdentityBroker
from site_deployer.errors import (
    AuthorizationError,
    CacheInvalidationError,
    ConfigurationError,
    DeploymentError,
    SyncFailure,
)
from tests.consts import TEST_BUCKET_NAME, TEST_DISTRIBUTION_ID, TEST_REGION, TEST_ROLE_ARN
from tests.fixtures.fakes import make_credentials


def test_assume_role_returns_scoped_credentials(mocked_aws):
    broker = StsIdentityBroker(boto3.client("sts", region_name=TEST_REGION))

    credentials = broker.assume_role(TEST_ROLE_ARN, "landing-dev", "landing-dev", 3600)

    assert credentials.access_key
    assert credentials.session_token
    assert not credentials.is_expired()


def test_assume_role_access_denied():
    client = boto3.client("sts", region_name=TEST_REGION,
                          aws_access_key_id="testing", aws_secret_access_key="testing")
    with Stubber(client) as stubber:
        stubber.add_client_error("assume_role", service_error_code="AccessDenied",
                                 service_message="not authorized", http_status_code=403)
        with pytest.raises(AuthorizationError):
            StsIdentityBroker(client).assume_role(TEST_ROLE_ARN, "landing-dev", "landing-dev", 3600)


def test_s3_store_mirror(mocked_aws, build_dir):
    client = boto3.client("s3", region_name=TEST_REGION)
    client.put_object(Bucket=TEST_BUCKET_NAME, Key="index.html", Body=b"old")
    client.put_object(Bucket=TEST_BUCKET_NAME, Key="old.css", Body=b"old")
    engine = AssetSyncEngine(lambda credentials: S3ObjectStore(client))

    report = engine.sync(build_dir, TEST_BUCKET_NAME, make_credentials())

    keys = {obj["Key"] for obj in client.list_objects_v2(Bucket=TEST_BUCKET_NAME)["Contents"]}
    assert keys == {"index.html", "app.js"}
    assert report.deleted == {"old.css"}
    head = client.head_object(Bucket=TEST_BUCKET_NAME, Key="index.html")
    assert head["ContentType"] == "text/html"


def test_s3_listing_follows_continuation_tokens():
    client = boto3.client("s3", region_name=TEST_REGION,
                          aws_access_key_id="testing", aws_secret_access_key="testing")
    with Stubber(client) as stubber:
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "a.html"}, {"Key": "b.css"}], "IsTruncated": True,
             "NextContinuationToken": "page-2"},
            {"Bucket": TEST_BUCKET_NAME},
        )
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "c.js"}], "IsTruncated": False},
            {"Bucket": TEST_BUCKET_NAME, "ContinuationToken": "page-2"},
        )

        keys = AssetSyncEngine(lambda credentials: None).list_remote(
            S3ObjectStore(client), TEST_BUCKET_NAME
        )

    assert keys == {"a.html", "b.css", "c.js"}


def test_s3_missing_bucket_is_a_sync_failure(mocked_aws, build_dir):
    client = boto3.client("s3", region_name=TEST_REGION)
    engine = AssetSyncEngine(lambda credentials: S3ObjectStore(client))

    with pytest.raises(SyncFailure):
        engine.sync(build_dir, "no-such-bucket", make_credentials())


def test_cloudfront_invalidation_calls():
    client = boto3.client("cloudfront", region_name="us-east-1",
                          aws_access_key_id="testing", aws_secret_access_key="testing")
    batch = {"Paths": {"Quantity": 1, "Items": ["/*"]}, "CallerReference": "1700000000000"}
    invalidation = {
        "Id": "I2J0I21PCUYOIK",
        "Status": "InProgress",
        "CreateTime": datetime(2024, 1, 1),
        "InvalidationBatch": batch,
    }
    with Stubber(client) as stubber:
        stubber.add_response(
            "create_invalidation",
            {"Location": "https://cloudfront.amazonaws.com/x", "Invalidation": invalidation},
            {"DistributionId": TEST_DISTRIBUTION_ID, "InvalidationBatch": batch},
        )
        stubber.add_response(
            "get_invalidation",
            {"Invalidation": dict(invalidation, Status="Completed")},
            {"DistributionId": TEST_DISTRIBUTION_ID, "Id": "I2J0I21PCUYOIK"},
        )
        distribution = CloudFrontDistribution(client)

        invalidation_id = distribution.create_invalidation(
            TEST_DISTRIBUTION_ID, ["/*"], "1700000000000"
        )
        status = distribution.get_invalidation(TEST_DISTRIBUTION_ID, invalidation_id)

    assert invalidation_id == "I2J0I21PCUYOIK"
    assert status == "Completed"


def test_client_manager_caches_ambient_clients(aws_credentials, settings):
    clients = AWSClientManager(settings)

    assert clients.get_s3_client() is clients.get_s3_client()
    scoped = clients.scoped_client("s3", make_credentials())
    assert scoped is not clients.get_s3_client()


def test_s3_errors_propagate_unwrapped(mocked_aws):
    store = S3ObjectStore(boto3.client("s3", region_name=TEST_REGION))

    with pytest.raises(ClientError):
        store.put_object("no-such-bucket", "index.html", b"x", "text/html")


def make_cloudfront_client():
    return boto3.client("cloudfront", region_name="us-east-1",
                        aws_access_key_id="testing", aws_secret_access_key="testing")


@pytest.mark.parametrize("code, expected", [
    ("TooManyInvalidationsInProgress", CacheInvalidationError),
    ("NoSuchDistribution", CacheInvalidationError),
    ("AccessDenied", AuthorizationError),
])
def test_cloudfront_client_errors_are_translated(code, expected):
    client = make_cloudfront_client()
    with Stubber(client) as stubber:
        stubber.add_client_error("create_invalidation", service_error_code=code,
                                 service_message="slow down", http_status_code=400)

        with pytest.raises(expected) as exc_info:
            CloudFrontDistribution(client).create_invalidation(TEST_DISTRIBUTION_ID, ["/*"], "1")

    assert isinstance(exc_info.value, DeploymentError)
    assert code in str(exc_info.value)


def test_cloudfront_status_errors_are_translated():
    client = make_cloudfront_client()
    with Stubber(client) as stubber:
        stubber.add_client_error("get_invalidation", service_error_code="NoSuchInvalidation",
                                 service_message="gone", http_status_code=404)

        with pytest.raises(CacheInvalidationError):
            CloudFrontDistribution(client).get_invalidation(TEST_DISTRIBUTION_ID, "I1")


@pytest.mark.parametrize("code, expected", [
    ("ExpiredToken", AuthorizationError),
    ("InvalidClientTokenId", AuthorizationError),
    ("RegionDisabledException", AuthorizationError),
    ("ValidationError", ConfigurationError),
])
def test_sts_client_errors_are_translated(code, expected):
    client = boto3.client("sts", region_name=TEST_REGION,
                          aws_access_key_id="testing", aws_secret_access_key="testing")
    with Stubber(client) as stubber:
        stubber.add_client_error("assume_role", service_error_code=code,
                                 service_message="rejected", http_status_code=400)

        with pytest.raises(expected):
            StsIdentityBroker(client).assume_role(TEST_ROLE_ARN, "landing-dev", "landing-dev", 3600)


def test_client_manager_caches_per_region(aws_credentials, settings):
    clients = AWSClientManager(settings)

    home = clients.get_cloudformation_client()
    certificates = clients.get_cloudformation_client("us-west-2")

    assert home is not certificates
    assert certificates is clients.get_cloudformation_client("us-west-2")
    assert certificates.meta.region_name == "us-west-2"
