"""Tests for AWS custom exceptions."""

import pytest

from aws_toolkit.aws.exceptions import (
    AWSError,
    BedrockError,
    CloudWatchError,
    CloudWatchLogsError,
    EC2Error,
    ECRError,
    IAMError,
    PermissionError,
    ResourceNotFoundError,
    SageMakerError,
    SSMError,
    STSError,
    TextractError,
    ThrottlingError,
    TimeoutError,
    ValidationError,
)


class TestAWSError:
    """Test suite for AWSError base exception."""

    def test_basic_error_creation(self) -> None:
        """Test creating basic AWSError with just a message."""
        error = AWSError("Something went wrong")

        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.service is None
        assert error.operation is None
        assert error.error_code is None
        assert error.details == {}

    def test_error_with_full_context(self) -> None:
        """Test AWSError with complete context information."""
        error = AWSError(
            message="Invalid instance ID",
            service="ec2",
            operation="describe_instances",
            error_code="InvalidInstanceID.Malformed",
            details={"instance_id": "i-invalid"},
        )

        assert str(error) == (
            "Invalid instance ID | Service: ec2 | Operation: describe_instances"
            " | Code: InvalidInstanceID.Malformed"
        )
        assert error.details["instance_id"] == "i-invalid"

    def test_error_with_partial_context(self) -> None:
        """Test AWSError with some context fields."""
        error = AWSError("Rate limit exceeded", service="sagemaker")

        assert str(error) == "Rate limit exceeded | Service: sagemaker"


class TestHierarchy:
    """Test suite for the exception hierarchy."""

    @pytest.mark.parametrize(
        "error_class",
        [
            EC2Error,
            SSMError,
            IAMError,
            STSError,
            SageMakerError,
            ECRError,
            CloudWatchError,
            CloudWatchLogsError,
            TextractError,
            BedrockError,
            ThrottlingError,
            ValidationError,
            ResourceNotFoundError,
            PermissionError,
            TimeoutError,
        ],
    )
    def test_subclasses_aws_error(self, error_class: type[AWSError]) -> None:
        """Test that every toolkit error can be caught as AWSError."""
        error = error_class("failed", service="svc", operation="op")

        assert isinstance(error, AWSError)
        assert error.service == "svc"
        assert error.operation == "op"

    def test_shadowed_builtins_are_distinct(self) -> None:
        """Test that PermissionError and TimeoutError are not the builtins."""
        assert not issubclass(PermissionError, OSError)
        assert not issubclass(TimeoutError, OSError)

    def test_catch_by_base_class(self) -> None:
        """Test catching a specific error through the base class."""
        with pytest.raises(AWSError) as exc_info:
            raise ResourceNotFoundError("Instance not found", service="ec2")

        assert isinstance(exc_info.value, ResourceNotFoundError)
