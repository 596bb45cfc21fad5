"""Exception hierarchy of the AWS toolkit.

Every service raises an ``AWSError`` subclass: one per AWS service for
failures specific to it, plus cross-service categories (throttling, permission,
not found, validation, timeout) chosen from the AWS error code. Errors converted
from botocore chain the original exception as ``__cause__``.
"""

from typing import Any


class AWSError(Exception):
    """Base exception for all AWS-related errors.

    Attributes:
        message: Human-readable error message.
        service: AWS service name (e.g., 'ec2', 'sagemaker').
        operation: AWS operation name (e.g., 'describe_instances').
        error_code: AWS error code if available (e.g., 'InvalidInstanceID.NotFound').
        details: Additional error context as dictionary.
    """

    def __init__(
        self,
        message: str,
        service: str | None = None,
        operation: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize AWS error with context.

        Args:
            message: Human-readable error message.
            service: AWS service name. Defaults to None.
            operation: AWS operation name. Defaults to None.
            error_code: AWS error code if available. Defaults to None.
            details: Additional error context. Defaults to None.
        """
        super().__init__(message)
        self.message = message
        self.service = service
        self.operation = operation
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        """Return formatted error string with context."""
        parts = [self.message]
        if self.service:
            parts.append(f"Service: {self.service}")
        if self.operation:
            parts.append(f"Operation: {self.operation}")
        if self.error_code:
            parts.append(f"Code: {self.error_code}")
        return " | ".join(parts)


class EC2Error(AWSError):
    """Exception raised for EC2 service errors.

    Raised when instance, AMI, tag or instance type operations fail.
    """


class SSMError(AWSError):
    """Exception raised for Systems Manager errors.

    Raised when command execution fails, or when a command finishes
    without producing the output the caller needs.
    """


class IAMError(AWSError):
    """Exception raised for IAM role, policy and instance profile errors."""


class STSError(AWSError):
    """Exception raised for STS identity and AssumeRole errors."""


class SageMakerError(AWSError):
    """Exception raised for SageMaker control-plane and runtime errors.

    Covers training jobs, models, endpoints, endpoint invocations and
    model monitoring schedules.
    """


class ECRError(AWSError):
    """Exception raised for ECR repository, image and registry errors."""


class CloudWatchError(AWSError):
    """Exception raised for CloudWatch metric and alarm errors."""


class CloudWatchLogsError(AWSError):
    """Exception raised for CloudWatch Logs errors."""


class TextractError(AWSError):
    """Exception raised for Textract document analysis errors."""


class BedrockError(AWSError):
    """Exception raised when a Bedrock conversation fails."""


class ThrottlingError(AWSError):
    """Exception raised when AWS API rate limits are exceeded."""


class ValidationError(AWSError):
    """Exception raised for input validation errors.

    Raised when the provided parameters fail validation before
    making the AWS API call, or when AWS rejects a parameter.
    This includes unsafe shell arguments, malformed identifiers and
    missing required values.
    """


class ResourceNotFoundError(AWSError):
    """Exception raised when an AWS resource is not found.

    Raised when attempting to access or operate on a resource
    that doesn't exist or is not accessible with the current credentials.
    """


class PermissionError(AWSError):
    """Exception raised for AWS permission/authorization errors.

    Raised when the current IAM credentials lack the necessary
    permissions to perform the requested operation.
    """


class TimeoutError(AWSError):
    """Exception raised when an AWS operation times out.

    Raised when polling for a state transition runs out of attempts,
    or when the SDK reports a timeout.
    """
