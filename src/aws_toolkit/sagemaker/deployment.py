"""SageMaker model hosting: models, endpoint configs and endpoints.

A deployment is three resources created in order: the model (container image
plus artifacts), the endpoint config (instance type, count, data capture) and
the endpoint itself. Endpoint states: Creating, then InService or Failed.
"""

import asyncio
import logging
from typing import Any, Final

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import SAGEMAKER_DEFAULT_VARIANT, SAGEMAKER_POLL_INTERVAL
from aws_toolkit.sagemaker.models import EndpointConfig

logger: Final = logging.getLogger(__name__)

ENDPOINT_TERMINAL_STATUSES: Final = frozenset({"InService", "Failed"})
CLEANUP_ENDPOINT_DELAY: Final = 5


class SageMakerDeploymentService:
    """Service for deploying models to SageMaker real-time endpoints.

    Example:
        >>> service = SageMakerDeploymentService()
        >>> await service.deploy_model(config)
        >>> status = await service.wait_for_endpoint(config.endpoint_name, max_wait_minutes=20)
        >>> await service.cleanup_deployment(
        ...     config.endpoint_name, config.endpoint_config_name, config.model_name
        ... )
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("sagemaker", settings=self.settings)
        logger.info(
            f"Initialized SageMakerDeploymentService for region {self.settings.aws_region}"
        )

    # =========================================================================
    # Creation
    # =========================================================================

    async def create_model(self, config: EndpointConfig) -> str:
        """Create a model from the inference image and model artifacts.

        Returns:
            Model ARN.
        """
        logger.info(f"Creating model {config.model_name}")

        container: dict[str, Any] = {"Image": config.inference_image}
        if config.model_data_url:
            container["ModelDataUrl"] = config.model_data_url
        if config.environment:
            container["Environment"] = dict(config.environment)

        kwargs: dict[str, Any] = {"ModelName": config.model_name, "PrimaryContainer": container}
        if config.role_arn:
            kwargs["ExecutionRoleArn"] = config.role_arn

        try:
            response = await self.client.call("create_model", **kwargs)
            arn: str = response["ModelArn"]
            logger.info(f"Created model {arn}")
            return arn
        except Exception as e:
            logger.error(f"Failed to create model {config.model_name}: {e}")
            raise

    async def create_endpoint_config(self, config: EndpointConfig) -> str:
        """Create an endpoint config with a single 'AllTraffic' variant.

        When data capture is enabled, both requests and responses are
        captured for model monitoring.

        Returns:
            Endpoint config ARN.
        """
        logger.info(f"Creating endpoint config {config.endpoint_config_name}")

        kwargs: dict[str, Any] = {
            "EndpointConfigName": config.endpoint_config_name,
            "ProductionVariants": [
                {
                    "VariantName": SAGEMAKER_DEFAULT_VARIANT,
                    "ModelName": config.model_name,
                    "InstanceType": config.instance_type,
                    "InitialInstanceCount": config.initial_instance_count,
                    "InitialVariantWeight": 1.0,
                }
            ],
        }
        if config.enable_data_capture:
            kwargs["DataCaptureConfig"] = {
                "EnableCapture": True,
                "InitialSamplingPercentage": config.data_capture_percentage,
                "DestinationS3Uri": config.data_capture_s3_uri,
                "CaptureOptions": [{"CaptureMode": "Input"}, {"CaptureMode": "Output"}],
                "CaptureContentTypeHeader": {
                    "CsvContentTypes": ["text/csv"],
                    "JsonContentTypes": ["application/json"],
                },
            }

        try:
            response = await self.client.call("create_endpoint_config", **kwargs)
            arn: str = response["EndpointConfigArn"]
            logger.info(f"Created endpoint config {arn}")
            return arn
        except Exception as e:
            logger.error(f"Failed to create endpoint config {config.endpoint_config_name}: {e}")
            raise

    async def create_endpoint(self, config: EndpointConfig) -> str:
        """Create the endpoint. It starts in the Creating state.

        Returns:
            Endpoint ARN.
        """
        logger.info(f"Creating endpoint {config.endpoint_name}")
        try:
            response = await self.client.call(
                "create_endpoint",
                EndpointName=config.endpoint_name,
                EndpointConfigName=config.endpoint_config_name,
            )
            arn: str = response["EndpointArn"]
            logger.info(f"Endpoint {arn} is being created")
            return arn
        except Exception as e:
            logger.error(f"Failed to create endpoint {config.endpoint_name}: {e}")
            raise

    async def deploy_model(self, config: EndpointConfig) -> str:
        """Create the model, the endpoint config and the endpoint.

        Returns:
            Endpoint ARN. Use wait_for_endpoint() to wait for InService.
        """
        await self.create_model(config)
        await self.create_endpoint_config(config)
        return await self.create_endpoint(config)

    # =========================================================================
    # Status
    # =========================================================================

    async def describe_endpoint(self, endpoint_name: str) -> dict[str, Any]:
        """Get the full DescribeEndpoint response."""
        try:
            response: dict[str, Any] = await self.client.call(
                "describe_endpoint", EndpointName=endpoint_name
            )
            return response
        except Exception as e:
            logger.error(f"Failed to describe endpoint {endpoint_name}: {e}")
            raise

    async def get_endpoint_status(self, endpoint_name: str) -> str:
        """Get the endpoint status (Creating, InService, Updating, Failed, ...)."""
        endpoint = await self.describe_endpoint(endpoint_name)
        status: str = endpoint["EndpointStatus"]
        return status

    async def wait_for_endpoint(
        self,
        endpoint_name: str,
        max_wait_minutes: int = 30,
        poll_interval: float = SAGEMAKER_POLL_INTERVAL,
    ) -> str:
        """Poll until the endpoint is InService or Failed.

        Args:
            endpoint_name: Endpoint name.
            max_wait_minutes: Upper bound on waiting. Defaults to 30.
            poll_interval: Seconds between checks. Defaults to 30.

        Returns:
            The terminal status, or the current status if the wait timed out.
        """
        logger.info(f"Waiting for endpoint {endpoint_name}")
        max_attempts = max(1, int(max_wait_minutes * 60 // poll_interval))

        status = ""
        for attempt in range(1, max_attempts + 1):
            status = await self.get_endpoint_status(endpoint_name)
            logger.info(f"Endpoint {endpoint_name} status: {status}")
            if status in ENDPOINT_TERMINAL_STATUSES:
                return status
            if attempt < max_attempts:
                await asyncio.sleep(poll_interval)

        logger.warning(f"Timed out waiting for endpoint {endpoint_name}, status {status}")
        return status

    # =========================================================================
    # Update and Deletion
    # =========================================================================

    async def update_endpoint(self, endpoint_name: str, endpoint_config_name: str) -> None:
        """Switch an endpoint to another endpoint config (blue/green update)."""
        logger.info(f"Updating endpoint {endpoint_name} to config {endpoint_config_name}")
        try:
            await self.client.call(
                "update_endpoint",
                EndpointName=endpoint_name,
                EndpointConfigName=endpoint_config_name,
            )
        except Exception as e:
            logger.error(f"Failed to update endpoint {endpoint_name}: {e}")
            raise

    async def delete_endpoint(self, endpoint_name: str) -> None:
        logger.warning(f"Deleting endpoint {endpoint_name}")
        try:
            await self.client.call("delete_endpoint", EndpointName=endpoint_name)
        except Exception as e:
            logger.error(f"Failed to delete endpoint {endpoint_name}: {e}")
            raise

    async def delete_endpoint_config(self, endpoint_config_name: str) -> None:
        logger.warning(f"Deleting endpoint config {endpoint_config_name}")
        try:
            await self.client.call(
                "delete_endpoint_config", EndpointConfigName=endpoint_config_name
            )
        except Exception as e:
            logger.error(f"Failed to delete endpoint config {endpoint_config_name}: {e}")
            raise

    async def delete_model(self, model_name: str) -> None:
        logger.warning(f"Deleting model {model_name}")
        try:
            await self.client.call("delete_model", ModelName=model_name)
        except Exception as e:
            logger.error(f"Failed to delete model {model_name}: {e}")
            raise

    async def cleanup_deployment(
        self, endpoint_name: str, endpoint_config_name: str, model_name: str
    ) -> None:
        """Delete an endpoint, its config and its model.

        Each deletion is attempted even if an earlier one fails; failures are
        logged, not raised.
        """
        logger.info(f"Cleaning up deployment of endpoint {endpoint_name}")
        try:
            await self.delete_endpoint(endpoint_name)
            await asyncio.sleep(CLEANUP_ENDPOINT_DELAY)
        except Exception as e:
            logger.warning(f"Endpoint cleanup failed: {e}")

        try:
            await self.delete_endpoint_config(endpoint_config_name)
        except Exception as e:
            logger.warning(f"Endpoint config cleanup failed: {e}")

        try:
            await self.delete_model(model_name)
        except Exception as e:
            logger.warning(f"Model cleanup failed: {e}")

    # =========================================================================
    # Listing
    # =========================================================================

    async def list_endpoints(
        self, name_contains: str | None = None, max_results: int = 10
    ) -> list[dict[str, Any]]:
        """List endpoints, newest first."""
        return await self._list("list_endpoints", "Endpoints", name_contains, max_results)

    async def list_models(
        self, name_contains: str | None = None, max_results: int = 10
    ) -> list[dict[str, Any]]:
        """List models, newest first."""
        return await self._list("list_models", "Models", name_contains, max_results)

    async def _list(
        self, operation: str, result_key: str, name_contains: str | None, max_results: int
    ) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {
            "MaxResults": max_results,
            "SortBy": "CreationTime",
            "SortOrder": "Descending",
        }
        if name_contains:
            kwargs["NameContains"] = name_contains

        try:
            response = await self.client.call(operation, **kwargs)
        except Exception as e:
            logger.error(f"{operation} failed: {e}")
            raise

        items: list[dict[str, Any]] = response.get(result_key, [])
        return items

    async def print_endpoint_details(self, endpoint_name: str) -> None:
        """Print an endpoint summary to stdout."""
        endpoint = await self.describe_endpoint(endpoint_name)

        print("==================== Endpoint ====================")
        print(f"Name: {endpoint['EndpointName']}")
        print(f"ARN: {endpoint.get('EndpointArn')}")
        print(f"Status: {endpoint['EndpointStatus']}")
        print(f"Endpoint config: {endpoint.get('EndpointConfigName')}")
        print(f"Created: {endpoint.get('CreationTime')}")
        print(f"Last modified: {endpoint.get('LastModifiedTime')}")
        variants = endpoint.get("ProductionVariants", [])
        if variants:
            print("Production variants:")
            for variant in variants:
                print(
                    f"  - {variant['VariantName']} "
                    f"(instances: {variant.get('CurrentInstanceCount')})"
                )
        print("==================================================")

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
