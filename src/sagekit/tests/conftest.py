"""Shared fixtures: a Session wired to mocked boto3 clients."""

import os
import sys
from unittest.mock import MagicMock

import pytest

# Ensure 'src' is on sys.path for local runs
src_path = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from sagekit.config import AWSConfig, PollingConfig, SessionConfig  # noqa: E402
from sagekit.session import Session  # noqa: E402

REGION = "us-west-2"
BUCKET = "my-bucket"
ROLE = "arn:aws:iam::123456789012:role/SageMakerRole"


@pytest.fixture
def boto_session():
    """boto3 session whose ``client()`` returns one shared mock for S3, STS, IAM and logs."""
    boto = MagicMock(name="boto_session")
    boto.region_name = REGION
    return boto


@pytest.fixture
def sagemaker_client():
    """Mocked SageMaker client."""
    return MagicMock(name="sagemaker_client")


@pytest.fixture
def runtime_client():
    """Mocked SageMaker runtime client."""
    return MagicMock(name="sagemaker_runtime_client")


@pytest.fixture
def s3_client(boto_session):
    """The client returned by ``boto_session.client(...)``."""
    return boto_session.client.return_value


@pytest.fixture
def session_config():
    """Session configuration with tiny poll intervals."""
    return SessionConfig(
        aws=AWSConfig(region=REGION, bucket=BUCKET),
        polling=PollingConfig(job_poll_seconds=0.01, endpoint_poll_seconds=0.01, log_poll_seconds=0.01),
    )


@pytest.fixture
def session(session_config, boto_session, sagemaker_client, runtime_client):
    """Session backed entirely by mocks."""
    return Session(
        session_config,
        boto_session=boto_session,
        sagemaker_client=sagemaker_client,
        sagemaker_runtime_client=runtime_client,
    )


@pytest.fixture
def no_sleep(monkeypatch):
    """Make every ``time.sleep`` a no-op."""
    monkeypatch.setattr("time.sleep", lambda _seconds: None)


@pytest.fixture(autouse=True)
def _isolated_aws_env(monkeypatch):
    # Never pick up real credentials or sagekit settings from the environment
    for var in ("SAGEKIT_ROLE", "SAGEKIT_BUCKET", "AWS_PROFILE"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)
    monkeypatch.setenv("AWS_REGION", REGION)
