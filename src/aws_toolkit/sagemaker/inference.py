"""Real-time inference against SageMaker endpoints."""

import asyncio
import logging
from typing import Any, Final

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.config import Settings, get_settings

logger: Final = logging.getLogger(__name__)

JSON_CONTENT_TYPE: Final = "application/json"
CSV_CONTENT_TYPE: Final = "text/csv"


class SageMakerInferenceService:
    """Service for invoking SageMaker endpoints.

    Example:
        >>> service = SageMakerInferenceService()
        >>> await service.invoke_endpoint_csv("churn-model-endpoint", "5.1,3.5,1.4,0.2")
        '0.9731'
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("sagemaker-runtime", settings=self.settings)

    async def invoke_endpoint_json(self, endpoint_name: str, payload: str) -> str:
        """Invoke an endpoint with a JSON payload and return the JSON response body."""
        return await self._invoke(endpoint_name, payload, JSON_CONTENT_TYPE)

    async def invoke_endpoint_csv(self, endpoint_name: str, payload: str) -> str:
        """Invoke an endpoint with CSV rows and return the CSV response body."""
        return await self._invoke(endpoint_name, payload, CSV_CONTENT_TYPE)

    async def invoke_endpoint_variant(
        self, endpoint_name: str, variant_name: str, payload: str
    ) -> str:
        """Invoke one production variant of an endpoint with a JSON payload."""
        return await self._invoke(
            endpoint_name, payload, JSON_CONTENT_TYPE, target_variant=variant_name
        )

    async def _invoke(
        self,
        endpoint_name: str,
        payload: str,
        content_type: str,
        target_variant: str | None = None,
    ) -> str:
        logger.info(f"Invoking endpoint {endpoint_name} ({content_type})")

        kwargs: dict[str, Any] = {
            "EndpointName": endpoint_name,
            "ContentType": content_type,
            "Accept": content_type,
            "Body": payload.encode("utf-8"),
        }
        if target_variant:
            kwargs["TargetVariant"] = target_variant

        try:
            response = await self.client.call("invoke_endpoint", **kwargs)
            loop = asyncio.get_running_loop()
            body: bytes = await loop.run_in_executor(None, response["Body"].read)
        except Exception as e:
            logger.error(f"Failed to invoke endpoint {endpoint_name}: {e}")
            raise

        result = body.decode("utf-8")
        logger.info(f"Inference complete, response length {len(result)}")
        return result

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
