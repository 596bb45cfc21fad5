"""SageMaker Model Monitor: baselines, monitoring schedules and executions.

A data quality monitor compares captured endpoint traffic against a baseline
(statistics.json and constraints.json) computed from the training dataset.
The endpoint must have data capture enabled, see EndpointConfig.
"""

import logging
from typing import Any, Final

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import (
    SAGEMAKER_PROCESSING_INPUT_PATH,
    SAGEMAKER_PROCESSING_OUTPUT_PATH,
)
from aws_toolkit.sagemaker.images import model_monitor_image
from aws_toolkit.sagemaker.models import MonitoringConfig

logger: Final = logging.getLogger(__name__)

BASELINE_INSTANCE_COUNT: Final = 1
BASELINE_VOLUME_SIZE_GB: Final = 20


def _s3_output(s3_uri: str | None) -> dict[str, Any]:
    return {
        "MonitoringOutputs": [
            {
                "S3Output": {
                    "S3Uri": s3_uri or "",
                    "LocalPath": SAGEMAKER_PROCESSING_OUTPUT_PATH,
                    "S3UploadMode": "EndOfJob",
                }
            }
        ]
    }


def _cluster(instance_type: str, instance_count: int, volume_size_gb: int) -> dict[str, Any]:
    return {
        "ClusterConfig": {
            "InstanceType": instance_type,
            "InstanceCount": instance_count,
            "VolumeSizeInGB": volume_size_gb,
        }
    }


class SageMakerMonitoringService:
    """Service for SageMaker Model Monitor schedules.

    Example:
        >>> service = SageMakerMonitoringService()
        >>> await service.create_data_quality_baseline(
        ...     "churn-baseline", role_arn, "s3://bucket/train/train.csv",
        ...     "s3://bucket/baseline", "ml.m5.xlarge",
        ... )
        >>> await service.create_monitoring_schedule(config)
        >>> await service.print_monitoring_execution_history(config.monitoring_schedule_name)
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("sagemaker", settings=self.settings)
        logger.info(
            f"Initialized SageMakerMonitoringService for region {self.settings.aws_region}"
        )

    def get_default_monitoring_image(self) -> str:
        """Model Monitor analyzer image of the configured region."""
        return model_monitor_image(self.settings.aws_region)

    async def create_data_quality_baseline(
        self,
        job_name: str,
        role_arn: str,
        baseline_dataset_uri: str,
        output_s3_uri: str,
        instance_type: str = "ml.m5.xlarge",
    ) -> str:
        """Create a data quality job definition that computes a baseline.

        The dataset is read as CSV with a header row. Results are written to
        ``{output_s3_uri}/statistics.json`` and ``{output_s3_uri}/constraints.json``.

        Args:
            job_name: Job definition name.
            role_arn: Execution role ARN.
            baseline_dataset_uri: S3 URI of the baseline dataset.
            output_s3_uri: S3 prefix for the baseline results.
            instance_type: Processing instance type. Defaults to 'ml.m5.xlarge'.

        Returns:
            Job definition ARN.
        """
        logger.info(f"Creating data quality baseline job {job_name}")

        kwargs: dict[str, Any] = {
            "JobDefinitionName": job_name,
            "RoleArn": role_arn,
            "DataQualityBaselineConfig": {
                "StatisticsResource": {"S3Uri": f"{output_s3_uri}/statistics.json"},
                "ConstraintsResource": {"S3Uri": f"{output_s3_uri}/constraints.json"},
            },
            "DataQualityAppSpecification": {"ImageUri": self.get_default_monitoring_image()},
            "DataQualityJobInput": {
                "BatchTransformInput": {
                    "DataCapturedDestinationS3Uri": baseline_dataset_uri,
                    "DatasetFormat": {"Csv": {"Header": True}},
                    "LocalPath": SAGEMAKER_PROCESSING_INPUT_PATH,
                }
            },
            "DataQualityJobOutputConfig": _s3_output(output_s3_uri),
            "JobResources": _cluster(
                instance_type, BASELINE_INSTANCE_COUNT, BASELINE_VOLUME_SIZE_GB
            ),
        }

        try:
            response = await self.client.call("create_data_quality_job_definition", **kwargs)
            arn: str = response["JobDefinitionArn"]
            logger.info(f"Created baseline job definition {arn}")
            return arn
        except Exception as e:
            logger.error(f"Failed to create baseline job {job_name}: {e}")
            raise

    async def create_monitoring_schedule(self, config: MonitoringConfig) -> str:
        """Create a monitoring schedule for an endpoint.

        The baseline is attached only for the constraints and statistics URIs
        that are set.

        Returns:
            Monitoring schedule ARN.
        """
        logger.info(
            f"Creating {config.monitoring_type.value} monitoring schedule "
            f"{config.monitoring_schedule_name} for {config.endpoint_name}"
        )

        baseline: dict[str, Any] = {}
        if config.baseline_constraints_uri:
            baseline["ConstraintsResource"] = {"S3Uri": config.baseline_constraints_uri}
        if config.baseline_statistics_uri:
            baseline["StatisticsResource"] = {"S3Uri": config.baseline_statistics_uri}

        job_definition: dict[str, Any] = {
            "MonitoringInputs": [
                {
                    "EndpointInput": {
                        "EndpointName": config.endpoint_name,
                        "LocalPath": SAGEMAKER_PROCESSING_INPUT_PATH,
                        "S3InputMode": "File",
                        "S3DataDistributionType": "FullyReplicated",
                    }
                }
            ],
            "MonitoringOutputConfig": _s3_output(config.s3_output_path),
            "MonitoringResources": _cluster(
                config.instance_type, config.instance_count, config.volume_size_gb
            ),
            "MonitoringAppSpecification": {"ImageUri": self.get_default_monitoring_image()},
        }
        if config.role_arn:
            job_definition["RoleArn"] = config.role_arn
        if baseline:
            job_definition["BaselineConfig"] = baseline
        if config.subnet_id and config.security_group_id:
            job_definition["NetworkConfig"] = {
                "VpcConfig": {
                    "Subnets": [config.subnet_id],
                    "SecurityGroupIds": [config.security_group_id],
                }
            }

        try:
            response = await self.client.call(
                "create_monitoring_schedule",
                MonitoringScheduleName=config.monitoring_schedule_name,
                MonitoringScheduleConfig={
                    "ScheduleConfig": {"ScheduleExpression": config.schedule_expression},
                    "MonitoringJobDefinition": job_definition,
                },
            )
            arn: str = response["MonitoringScheduleArn"]
            logger.info(f"Created monitoring schedule {arn}")
            return arn
        except Exception as e:
            logger.error(
                f"Failed to create monitoring schedule {config.monitoring_schedule_name}: {e}"
            )
            raise

    async def describe_monitoring_schedule(self, schedule_name: str) -> dict[str, Any]:
        try:
            response: dict[str, Any] = await self.client.call(
                "describe_monitoring_schedule", MonitoringScheduleName=schedule_name
            )
            return response
        except Exception as e:
            logger.error(f"Failed to describe monitoring schedule {schedule_name}: {e}")
            raise

    async def start_monitoring_schedule(self, schedule_name: str) -> None:
        await self._schedule_action("start_monitoring_schedule", schedule_name)

    async def stop_monitoring_schedule(self, schedule_name: str) -> None:
        await self._schedule_action("stop_monitoring_schedule", schedule_name)

    async def delete_monitoring_schedule(self, schedule_name: str) -> None:
        logger.warning(f"Deleting monitoring schedule {schedule_name}")
        await self._schedule_action("delete_monitoring_schedule", schedule_name)

    async def _schedule_action(self, operation: str, schedule_name: str) -> None:
        try:
            await self.client.call(operation, MonitoringScheduleName=schedule_name)
            logger.info(f"{operation} succeeded for {schedule_name}")
        except Exception as e:
            logger.error(f"{operation} failed for {schedule_name}: {e}")
            raise

    async def list_monitoring_schedules(
        self, endpoint_name: str | None = None, max_results: int = 10
    ) -> list[dict[str, Any]]:
        """List monitoring schedules, newest first, optionally for one endpoint."""
        kwargs: dict[str, Any] = {
            "MaxResults": max_results,
            "SortBy": "CreationTime",
            "SortOrder": "Descending",
        }
        if endpoint_name:
            kwargs["EndpointName"] = endpoint_name

        try:
            response = await self.client.call("list_monitoring_schedules", **kwargs)
        except Exception as e:
            logger.error(f"Failed to list monitoring schedules: {e}")
            raise

        summaries: list[dict[str, Any]] = response.get("MonitoringScheduleSummaries", [])
        return summaries

    async def list_monitoring_executions(
        self, schedule_name: str, max_results: int = 10
    ) -> list[dict[str, Any]]:
        """List executions of a schedule, most recently scheduled first."""
        try:
            response = await self.client.call(
                "list_monitoring_executions",
                MonitoringScheduleName=schedule_name,
                MaxResults=max_results,
                SortBy="ScheduledTime",
                SortOrder="Descending",
            )
        except Exception as e:
            logger.error(f"Failed to list executions of {schedule_name}: {e}")
            raise

        summaries: list[dict[str, Any]] = response.get("MonitoringExecutionSummaries", [])
        return summaries

    async def print_monitoring_schedule_details(self, schedule_name: str) -> None:
        """Print a monitoring schedule summary to stdout."""
        schedule = await self.describe_monitoring_schedule(schedule_name)

        print("==================== Monitoring Schedule ====================")
        print(f"Name: {schedule['MonitoringScheduleName']}")
        print(f"ARN: {schedule.get('MonitoringScheduleArn')}")
        print(f"Status: {schedule.get('MonitoringScheduleStatus')}")
        print(f"Created: {schedule.get('CreationTime')}")
        last = schedule.get("LastMonitoringExecutionSummary")
        if last:
            print(f"Last execution: {last.get('ScheduledTime')}")
            print(f"Last execution status: {last.get('MonitoringExecutionStatus')}")
        print("=============================================================")

    async def print_monitoring_execution_history(
        self, schedule_name: str, count: int = 10
    ) -> None:
        """Print the most recent executions of a schedule to stdout."""
        executions = await self.list_monitoring_executions(schedule_name, count)

        print("==================== Monitoring Executions ====================")
        print(f"Schedule: {schedule_name}")
        print(f"Executions: {len(executions)}")
        print()
        for execution in executions:
            print(f"Scheduled: {execution.get('ScheduledTime')}")
            print(f"  Status: {execution.get('MonitoringExecutionStatus')}")
            if execution.get("FailureReason"):
                print(f"  Failure reason: {execution['FailureReason']}")
            print()
        print("===============================================================")

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
