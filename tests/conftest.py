"""Pytest configuration and shared fixtures."""

from unittest.mock import AsyncMock, Mock

import pytest

from aws_toolkit.config import Settings


@pytest.fixture
def sample_instance_id() -> str:
    """Provide a sample EC2 instance ID for testing.

    Returns:
        A valid-format EC2 instance ID.
    """
    return "i-1234567890abcdef0"


@pytest.fixture
def sample_region() -> str:
    """Provide a sample AWS region for testing.

    Returns:
        AWS region name.
    """
    return "us-east-1"


@pytest.fixture
def settings(sample_region: str) -> Settings:
    """Provide settings with a complete EC2 launch configuration.

    The .env file is ignored so local files cannot leak into tests.
    """
    return Settings(
        _env_file=None,
        aws_region=sample_region,
        aws_access_key_id="",
        aws_secret_access_key="",
        vpc_id="vpc-0abc",
        subnet_id="subnet-0abc",
        availability_zone="us-east-1a",
        security_group_ids=["sg-0abc", "sg-0def"],
        ami_default="ami-0default",
        ami_windows="ami-0windows",
        ami_ubuntu="ami-0ubuntu",
        ec2_instance_type="t3.medium",
        ec2_key_name="my-key",
        ec2_ebs_size=50,
        ec2_ebs_type="gp3",
        ec2_name_prefix="EC2-Instance",
        iam_instance_profile="ec2-profile",
        dcv_port=8443,
        s3_bucket="my-bucket",
        s3_mount_point="/mnt/s3data",
    )


@pytest.fixture
def mock_client() -> Mock:
    """Provide a mocked AWSClientWrapper whose ``call`` is awaitable."""
    client = Mock()
    client.call = AsyncMock()
    return client
