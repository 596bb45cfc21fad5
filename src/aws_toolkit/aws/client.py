"""AWS client wrapper with consistent error handling.

This module provides a wrapper around boto3 clients that runs the synchronous
SDK calls off the event loop and converts botocore errors into the toolkit's
exception hierarchy.
"""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Final

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from aws_toolkit.aws.exceptions import (
    AWSError,
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

if TYPE_CHECKING:
    from aws_toolkit.config.settings import Settings

logger: Final = logging.getLogger(__name__)

SERVICE_ERRORS: Final[dict[str, type[AWSError]]] = {
    "ec2": EC2Error,
    "ssm": SSMError,
    "iam": IAMError,
    "sts": STSError,
    "sagemaker": SageMakerError,
    "sagemaker-runtime": SageMakerError,
    "ecr": ECRError,
    "cloudwatch": CloudWatchError,
    "logs": CloudWatchLogsError,
    "textract": TextractError,
}

THROTTLING_CODES: Final = frozenset(
    {"Throttling", "ThrottlingException", "RequestLimitExceeded", "TooManyRequestsException"}
)
PERMISSION_CODES: Final = frozenset(
    {"UnauthorizedOperation", "AccessDenied", "AccessDeniedException"}
)
VALIDATION_CODES: Final = frozenset(
    {"ValidationError", "ValidationException", "InvalidParameterValue", "MissingParameter"}
)


class AWSClientWrapper:
    """Awaitable boto3 client shared by every service class of the toolkit.

    Services never talk to boto3 directly: they call ``call(operation, **params)``
    and receive either the raw response dict or an ``AWSError`` subclass chosen
    from the error code and the service name (see ``SERVICE_ERRORS``).

    Example:
        >>> sagemaker = AWSClientWrapper("sagemaker", region="eu-west-1")
        >>> job = await sagemaker.call("describe_training_job", TrainingJobName="xgb-001")
    """

    def __init__(self, service_name: str, region: str | None = None, **kwargs: Any) -> None:
        """Initialize AWS client wrapper.

        Args:
            service_name: AWS service name (e.g., 'ec2', 'sagemaker', 'logs').
            region: AWS region name. If None, uses default from environment/config.
                Defaults to None.
            **kwargs: Additional arguments passed to boto3.client(), such as
                credentials or endpoint_url.
        """
        self.service_name = service_name
        self.region = region
        self._client: BaseClient = boto3.client(  # type: ignore[call-overload]
            service_name, region_name=region, **kwargs
        )
        logger.info(f"Initialized AWS {service_name} client for region {region or 'default'}")

    async def call(self, operation: str, **kwargs: Any) -> Any:
        """Execute an AWS operation with error handling.

        The boto3 call runs in the default thread pool executor since boto3
        is synchronous.

        Args:
            operation: boto3 operation name (e.g., 'describe_instances').
            **kwargs: Operation-specific parameters.

        Returns:
            The response from the AWS operation.

        Raises:
            ValidationError: For invalid parameters.
            ResourceNotFoundError: When the requested resource doesn't exist.
            PermissionError: For IAM permission/authorization errors.
            ThrottlingError: When AWS rate limits are exceeded.
            TimeoutError: When the SDK reports a timeout.
            AWSError: The service-specific subclass for anything else.
        """
        operation_name = f"{self.service_name}:{operation}"

        logger.debug(f"Calling {operation_name} with params: {list(kwargs.keys())}")

        try:
            loop = asyncio.get_running_loop()
            client_method = getattr(self._client, operation)
            result = await loop.run_in_executor(None, lambda: client_method(**kwargs))

            logger.debug(f"Successfully completed {operation_name}")
            return result

        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            error_message = e.response.get("Error", {}).get("Message", str(e))

            logger.warning(f"{operation_name} failed with {error_code}: {error_message}")

            raise self._convert_client_error(e, operation, error_code, error_message) from e

        except BotoCoreError as e:
            logger.error(f"{operation_name} failed with BotoCoreError: {e}")

            if "timed out" in str(e).lower() or "timeout" in str(e).lower():
                raise TimeoutError(
                    f"Operation {operation} timed out",
                    service=self.service_name,
                    operation=operation,
                ) from e

            error_class = self._get_service_error_class()
            raise error_class(
                f"AWS operation failed: {e}",
                service=self.service_name,
                operation=operation,
            ) from e

        except Exception as e:
            logger.error(f"{operation_name} failed with unexpected error: {e}")
            error_class = self._get_service_error_class()
            raise error_class(
                f"Unexpected error during {operation}: {e}",
                service=self.service_name,
                operation=operation,
            ) from e

    def _convert_client_error(
        self, error: ClientError, operation: str, error_code: str, error_message: str
    ) -> AWSError:
        """Map a ClientError to the toolkit exception for its error code.

        Throttling and permission codes come first, then not-found codes, then
        validation codes; anything else becomes the service's own error class.
        HTTP status and request ID are kept in ``details``.
        """
        details = {
            "error_code": error_code,
            "http_status": error.response.get("ResponseMetadata", {}).get("HTTPStatusCode"),
            "request_id": error.response.get("ResponseMetadata", {}).get("RequestId"),
        }

        error_class: type[AWSError]
        if error_code in THROTTLING_CODES:
            error_class = ThrottlingError
        elif error_code in PERMISSION_CODES:
            error_class = PermissionError
        # Not-found codes must win over the generic Invalid* prefix
        elif (
            error_code.endswith(("NotFound", "NotFoundException"))
            or error_code in ("NoSuchEntity", "InvalidInstanceID.Malformed")
        ):
            error_class = ResourceNotFoundError
        elif error_code in VALIDATION_CODES or error_code.startswith("Invalid"):
            error_class = ValidationError
        else:
            error_class = self._get_service_error_class()

        return error_class(
            error_message,
            service=self.service_name,
            operation=operation,
            error_code=error_code,
            details=details,
        )

    def _get_service_error_class(self) -> type[AWSError]:
        """Get the service-specific error class, falling back to AWSError."""
        return SERVICE_ERRORS.get(self.service_name, AWSError)

    def get_client(self) -> BaseClient:
        """Get the underlying boto3 client for operations not wrapped here."""
        return self._client

    def close(self) -> None:
        """Close the underlying boto3 client and its connection pool."""
        logger.debug(f"Closing AWS {self.service_name} client")
        self._client.close()


def create_aws_client(
    service_name: str,
    region: str | None = None,
    settings: "Settings | None" = None,
    **kwargs: Any,
) -> AWSClientWrapper:
    """Build the client wrapper a service class uses by default.

    When settings are given, the region defaults to ``settings.aws_region`` and
    the credentials resolved by the settings are passed to boto3. Explicit
    keyword arguments win over both.

    Args:
        service_name: boto3 service name ('ec2', 'sagemaker-runtime', 'logs', ...).
        region: Region override. Defaults to None.
        settings: Toolkit settings providing region and credentials.
        **kwargs: Extra boto3.client() arguments, e.g. endpoint_url.

    Example:
        >>> logs = create_aws_client("logs", settings=get_settings())
        >>> groups = await logs.call("describe_log_groups", logGroupNamePrefix="/aws/sagemaker")
    """
    if settings is not None:
        region = region or settings.aws_region
        kwargs = {**settings.get_client_kwargs(), **kwargs}
    return AWSClientWrapper(service_name, region, **kwargs)
