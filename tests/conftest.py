import os

import boto3
import pytest
from moto import mock_aws

from site_deployer.settings import Settings
from tests.consts import TEST_ACCOUNT_ID, TEST_BUCKET_NAME, TEST_REGION


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so nothing can reach a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_REGION)
    monkeypatch.delenv("AWS_PROFILE", raising=False)
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)


@pytest.fixture
def mocked_aws(aws_credentials):
    with mock_aws():
        s3_client = boto3.client("s3", region_name=TEST_REGION)
        s3_client.create_bucket(Bucket=TEST_BUCKET_NAME)
        yield


@pytest.fixture
def settings(tmp_path):
    return Settings(
        aws_region=TEST_REGION,
        aws_account_id=TEST_ACCOUNT_ID,
        stack_poll_interval=0,
        stack_poll_attempts=5,
        invalidation_poll_interval=0,
        invalidation_poll_attempts=3,
        outputs_dir=str(tmp_path / "outputs"),
        _env_file=None,
    )


@pytest.fixture
def build_dir(tmp_path):
    """A small static build: index.html and app.js."""
    root = tmp_path / "out"
    root.mkdir()
    (root / "index.html").write_text("<html></html>")
    (root / "app.js").write_text("console.log('hi')")
    return str(root)
