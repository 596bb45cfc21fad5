"""SageMaker training job management.

Training job states: InProgress, then Completed, Failed, or Stopping followed
by Stopped.
"""

import asyncio
import logging
from typing import Any, Final

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import SAGEMAKER_POLL_INTERVAL
from aws_toolkit.sagemaker.models import TrainingJobConfig

logger: Final = logging.getLogger(__name__)

TRAINING_TERMINAL_STATUSES: Final = frozenset({"Completed", "Failed", "Stopped"})


def _s3_channel(name: str, s3_uri: str, content_type: str) -> dict[str, Any]:
    return {
        "ChannelName": name,
        "DataSource": {
            "S3DataSource": {
                "S3DataType": "S3Prefix",
                "S3Uri": s3_uri,
                "S3DataDistributionType": "FullyReplicated",
            }
        },
        "ContentType": content_type,
        "InputMode": "File",
    }


class SageMakerTrainingService:
    """Service for the SageMaker training job lifecycle.

    Example:
        >>> service = SageMakerTrainingService()
        >>> await service.create_training_job(config)
        >>> status = await service.wait_for_training_job(config.job_name, max_wait_minutes=60)
        >>> model_path = await service.get_model_artifact_path(config.job_name)
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("sagemaker", settings=self.settings)
        logger.info(f"Initialized SageMakerTrainingService for region {self.settings.aws_region}")

    async def create_training_job(self, config: TrainingJobConfig) -> str:
        """Create a training job.

        Input channels are File mode and FullyReplicated: every instance
        downloads a full copy before training starts. The 'train' and
        'validation' channels are added only when their URIs are set, and the
        VPC configuration only when both subnet and security group are set.

        Args:
            config: Training job parameters.

        Returns:
            Training job ARN.

        Raises:
            SageMakerError: If AWS API call fails.
        """
        logger.info(f"Creating training job {config.job_name}")

        channels = []
        if config.s3_train_data_uri:
            channels.append(
                _s3_channel("train", config.s3_train_data_uri, config.input_content_type)
            )
        if config.s3_validation_data_uri:
            channels.append(
                _s3_channel("validation", config.s3_validation_data_uri, config.input_content_type)
            )

        kwargs: dict[str, Any] = {
            "TrainingJobName": config.job_name,
            "RoleArn": config.role_arn,
            "AlgorithmSpecification": {
                "TrainingImage": config.training_image,
                "TrainingInputMode": "File",
            },
            "ResourceConfig": {
                "InstanceType": config.instance_type,
                "InstanceCount": config.instance_count,
                "VolumeSizeInGB": config.volume_size_gb,
            },
            "OutputDataConfig": {"S3OutputPath": config.s3_output_path or ""},
            "StoppingCondition": {"MaxRuntimeInSeconds": config.max_runtime_seconds},
            "HyperParameters": dict(config.hyper_parameters),
        }
        if channels:
            kwargs["InputDataConfig"] = channels
        if config.subnet_id and config.security_group_id:
            kwargs["VpcConfig"] = {
                "Subnets": [config.subnet_id],
                "SecurityGroupIds": [config.security_group_id],
            }

        try:
            response = await self.client.call("create_training_job", **kwargs)
            arn: str = response["TrainingJobArn"]
            logger.info(f"Created training job {arn}")
            return arn
        except Exception as e:
            logger.error(f"Failed to create training job {config.job_name}: {e}")
            raise

    async def describe_training_job(self, job_name: str) -> dict[str, Any]:
        """Get the full DescribeTrainingJob response."""
        try:
            response: dict[str, Any] = await self.client.call(
                "describe_training_job", TrainingJobName=job_name
            )
            return response
        except Exception as e:
            logger.error(f"Failed to describe training job {job_name}: {e}")
            raise

    async def get_training_job_status(self, job_name: str) -> str:
        """Get the training job status (InProgress, Completed, Failed, Stopping, Stopped)."""
        job = await self.describe_training_job(job_name)
        status: str = job["TrainingJobStatus"]
        return status

    async def wait_for_training_job(
        self,
        job_name: str,
        max_wait_minutes: int = 60,
        poll_interval: float = SAGEMAKER_POLL_INTERVAL,
    ) -> str:
        """Poll until the training job reaches a terminal status.

        Args:
            job_name: Training job name.
            max_wait_minutes: Upper bound on waiting. Defaults to 60.
            poll_interval: Seconds between checks. Defaults to 30.

        Returns:
            The terminal status, or the current status if the wait timed out.
        """
        logger.info(f"Waiting for training job {job_name}")
        max_attempts = max(1, int(max_wait_minutes * 60 // poll_interval))

        status = ""
        for attempt in range(1, max_attempts + 1):
            status = await self.get_training_job_status(job_name)
            logger.info(f"Training job {job_name} status: {status}")
            if status in TRAINING_TERMINAL_STATUSES:
                return status
            if attempt < max_attempts:
                await asyncio.sleep(poll_interval)

        logger.warning(f"Timed out waiting for training job {job_name}, status {status}")
        return status

    async def stop_training_job(self, job_name: str) -> None:
        """Request the job to stop. The status moves to Stopping, then Stopped."""
        logger.warning(f"Stopping training job {job_name}")
        try:
            await self.client.call("stop_training_job", TrainingJobName=job_name)
        except Exception as e:
            logger.error(f"Failed to stop training job {job_name}: {e}")
            raise

    async def list_training_jobs(
        self, name_contains: str | None = None, max_results: int = 10
    ) -> list[dict[str, Any]]:
        """List training jobs, newest first.

        Args:
            name_contains: Substring filter on the job name. Defaults to None.
            max_results: Maximum number of jobs. Defaults to 10.

        Returns:
            TrainingJobSummaries entries.
        """
        kwargs: dict[str, Any] = {
            "MaxResults": max_results,
            "SortBy": "CreationTime",
            "SortOrder": "Descending",
        }
        if name_contains:
            kwargs["NameContains"] = name_contains

        try:
            response = await self.client.call("list_training_jobs", **kwargs)
        except Exception as e:
            logger.error(f"Failed to list training jobs: {e}")
            raise

        summaries: list[dict[str, Any]] = response.get("TrainingJobSummaries", [])
        return summaries

    async def get_model_artifact_path(self, job_name: str) -> str | None:
        """Get the S3 path of model.tar.gz, or None unless the job Completed."""
        job = await self.describe_training_job(job_name)
        if job["TrainingJobStatus"] != "Completed":
            return None
        path: str | None = job.get("ModelArtifacts", {}).get("S3ModelArtifacts")
        return path

    async def print_training_job_details(self, job_name: str) -> None:
        """Print a training job summary to stdout."""
        job = await self.describe_training_job(job_name)
        resources = job.get("ResourceConfig", {})
        status = job["TrainingJobStatus"]

        print("==================== Training Job ====================")
        print(f"Name: {job['TrainingJobName']}")
        print(f"ARN: {job.get('TrainingJobArn')}")
        print(f"Status: {status}")
        print(f"Created: {job.get('CreationTime')}")
        print(f"Instance type: {resources.get('InstanceType')}")
        print(f"Instance count: {resources.get('InstanceCount')}")
        if status == "Completed":
            print(f"Training time: {job.get('TrainingTimeInSeconds')} s")
            print(f"Model artifacts: {job.get('ModelArtifacts', {}).get('S3ModelArtifacts')}")
        if status == "Failed":
            print(f"Failure reason: {job.get('FailureReason')}")
        print("=======================================================")

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
