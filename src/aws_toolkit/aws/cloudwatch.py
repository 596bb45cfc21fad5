"""CloudWatch metrics for SageMaker training jobs and endpoints.

This module reads instance resource metrics (CPU, memory, GPU) of training
hosts and endpoint instances, SageMaker job and endpoint metrics, and manages
endpoint alarms. All operations go through the AWSClientWrapper.
"""

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any, Final

from pydantic import BaseModel, Field

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.aws.exceptions import ValidationError
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import SAGEMAKER_DEFAULT_VARIANT

logger: Final = logging.getLogger(__name__)

SAGEMAKER_NAMESPACE: Final = "AWS/SageMaker"
TRAINING_INSTANCE_NAMESPACE: Final = "/aws/sagemaker/TrainingJobs"
ENDPOINT_INSTANCE_NAMESPACE: Final = "/aws/sagemaker/Endpoints"

RESOURCE_STATISTICS: Final = ("Average", "Minimum", "Maximum")
ENDPOINT_STATISTICS: Final = ("Average", "Sum", "Maximum")

TRAINING_PERIOD: Final = 60
ENDPOINT_PERIOD: Final = 300
ALARM_LIST_LIMIT: Final = 50


class MetricDataPoint(BaseModel):
    """Model representing a CloudWatch metric data point.

    Attributes:
        timestamp: Data point timestamp.
        average: Average for the period (optional).
        minimum: Minimum value for the period (optional).
        maximum: Maximum value for the period (optional).
        sum: Sum of all values (optional).
        sample_count: Number of samples (optional).
        unit: Metric unit (e.g., "Percent", "Microseconds"). Optional.
    """

    timestamp: datetime
    average: float | None = None
    minimum: float | None = None
    maximum: float | None = None
    sum: float | None = None
    sample_count: float | None = None
    unit: str | None = None

    @classmethod
    def from_api(cls, data: Mapping[str, Any]) -> "MetricDataPoint":
        return cls(
            timestamp=data["Timestamp"],
            average=data.get("Average"),
            minimum=data.get("Minimum"),
            maximum=data.get("Maximum"),
            sum=data.get("Sum"),
            sample_count=data.get("SampleCount"),
            unit=data.get("Unit"),
        )


class CloudWatchMetric(BaseModel):
    """Model representing a CloudWatch metric.

    Attributes:
        namespace: CloudWatch namespace (e.g., "AWS/SageMaker").
        metric_name: Metric name (e.g., "ModelLatency").
        dimensions: Metric dimensions as key-value pairs. Defaults to empty dict.
    """

    namespace: str = Field(..., min_length=1, max_length=256)
    metric_name: str = Field(..., min_length=1)
    dimensions: dict[str, str] = Field(default_factory=dict)


def summarize(datapoints: Sequence[MetricDataPoint]) -> tuple[float, float] | None:
    """Mean of the averages and max of the maxima, or None without data.

    Missing statistics count as 0.
    """
    if not datapoints:
        return None
    mean = sum(dp.average or 0.0 for dp in datapoints) / len(datapoints)
    peak = max(dp.maximum or 0.0 for dp in datapoints)
    return mean, peak


def total(datapoints: Sequence[MetricDataPoint]) -> float:
    """Sum of the Sum statistic over all datapoints."""
    return sum(dp.sum or 0.0 for dp in datapoints)


def _last_hours(hours: int) -> tuple[datetime, datetime]:
    end_time = datetime.now(UTC)
    return end_time - timedelta(hours=hours), end_time


class CloudWatchMetricService:
    """Service for SageMaker metrics and alarms in CloudWatch.

    Example:
        >>> service = CloudWatchMetricService()
        >>> points = await service.get_endpoint_model_latency("churn-model-endpoint", hours=1)
        >>> await service.print_endpoint_health_summary("churn-model-endpoint", hours=24)
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("cloudwatch", settings=self.settings)
        logger.info(f"Initialized CloudWatchMetricService for region {self.settings.aws_region}")

    async def get_metric_statistics(
        self,
        namespace: str,
        metric_name: str,
        dimensions: Mapping[str, str],
        start_time: datetime,
        end_time: datetime,
        period: int,
        statistics: Sequence[str],
    ) -> list[MetricDataPoint]:
        """Get statistics for a CloudWatch metric.

        Args:
            namespace: CloudWatch namespace.
            metric_name: Metric name.
            dimensions: Dimensions to filter by (e.g., {"EndpointName": "my-endpoint"}).
            start_time: Start of time range (inclusive).
            end_time: End of time range (exclusive).
            period: Granularity in seconds.
            statistics: Statistics to retrieve (Average, Sum, Minimum, Maximum, SampleCount).

        Returns:
            Data points sorted by timestamp.

        Raises:
            ValidationError: If the time range or period is invalid.
        """
        if start_time >= end_time:
            raise ValidationError("start_time must be before end_time", service="cloudwatch")
        if period < 1:
            raise ValidationError("period must be at least 1 second", service="cloudwatch")

        logger.debug(
            f"Getting statistics for {namespace}/{metric_name} {dict(dimensions)} "
            f"from {start_time} to {end_time}"
        )

        try:
            response = await self.client.call(
                "get_metric_statistics",
                Namespace=namespace,
                MetricName=metric_name,
                Dimensions=[{"Name": k, "Value": v} for k, v in dimensions.items()],
                StartTime=start_time,
                EndTime=end_time,
                Period=period,
                Statistics=list(statistics),
            )
        except Exception as e:
            logger.error(f"Failed to get statistics for {namespace}/{metric_name}: {e}")
            raise

        datapoints = [MetricDataPoint.from_api(p) for p in response.get("Datapoints", [])]
        datapoints.sort(key=lambda d: d.timestamp)
        logger.info(f"Retrieved {len(datapoints)} data point(s) for {metric_name}")
        return datapoints

    async def list_metrics(
        self, namespace: str, dimensions: Mapping[str, str] | None = None
    ) -> list[CloudWatchMetric]:
        """List available metrics of a namespace, following pagination."""
        kwargs: dict[str, Any] = {"Namespace": namespace}
        if dimensions:
            kwargs["Dimensions"] = [{"Name": k, "Value": v} for k, v in dimensions.items()]

        metrics: list[CloudWatchMetric] = []
        try:
            while True:
                response = await self.client.call("list_metrics", **kwargs)
                for metric_data in response.get("Metrics", []):
                    metrics.append(
                        CloudWatchMetric(
                            namespace=metric_data["Namespace"],
                            metric_name=metric_data["MetricName"],
                            dimensions={
                                d["Name"]: d["Value"] for d in metric_data.get("Dimensions", [])
                            },
                        )
                    )
                next_token = response.get("NextToken")
                if not next_token:
                    break
                kwargs["NextToken"] = next_token
        except Exception as e:
            logger.error(f"Failed to list metrics in {namespace}: {e}")
            raise

        logger.info(f"Found {len(metrics)} metric(s)")
        return metrics

    # =========================================================================
    # Training Instance Resources
    # =========================================================================

    async def get_training_instance_resource_metric(
        self,
        training_job_name: str,
        host: str,
        metric_name: str,
        start_time: datetime,
        end_time: datetime,
        period: int = TRAINING_PERIOD,
    ) -> list[MetricDataPoint]:
        """Get a resource metric of one training host (e.g., 'algo-1').

        Training instance metrics are keyed by the Host dimension only.
        """
        logger.debug(f"Resource metric {metric_name} of {training_job_name} host {host}")
        return await self.get_metric_statistics(
            TRAINING_INSTANCE_NAMESPACE,
            metric_name,
            {"Host": host},
            start_time,
            end_time,
            period,
            RESOURCE_STATISTICS,
        )

    async def _recent_training_resource(
        self, training_job_name: str, host: str, metric_name: str, hours: int
    ) -> list[MetricDataPoint]:
        start_time, end_time = _last_hours(hours)
        return await self.get_training_instance_resource_metric(
            training_job_name, host, metric_name, start_time, end_time
        )

    async def get_training_cpu_utilization(
        self, training_job_name: str, host: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_training_resource(
            training_job_name, host, "CPUUtilization", hours
        )

    async def get_training_memory_utilization(
        self, training_job_name: str, host: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_training_resource(
            training_job_name, host, "MemoryUtilization", hours
        )

    async def get_training_gpu_utilization(
        self, training_job_name: str, host: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_training_resource(
            training_job_name, host, "GPUUtilization", hours
        )

    async def get_training_gpu_memory_utilization(
        self, training_job_name: str, host: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_training_resource(
            training_job_name, host, "GPUMemoryUtilization", hours
        )

    async def print_training_resource_summary(
        self, training_job_name: str, host: str, hours: int
    ) -> None:
        """Print CPU, memory and GPU utilization of a training host to stdout."""
        print("==================== Training Instance Resources ====================")
        print(f"Job name: {training_job_name}")
        print(f"Host: {host}")
        print(f"Time range: last {hours} hour(s)")
        print()
        _print_utilization(
            "CPU", await self.get_training_cpu_utilization(training_job_name, host, hours)
        )
        _print_utilization(
            "Memory", await self.get_training_memory_utilization(training_job_name, host, hours)
        )
        _print_utilization(
            "GPU",
            await self.get_training_gpu_utilization(training_job_name, host, hours),
            gpu=True,
        )
        _print_utilization(
            "GPU memory",
            await self.get_training_gpu_memory_utilization(training_job_name, host, hours),
            gpu=True,
        )
        print("=====================================================================")

    # =========================================================================
    # Endpoint Instance Resources
    # =========================================================================

    async def get_endpoint_instance_resource_metric(
        self,
        endpoint_name: str,
        variant_name: str,
        metric_name: str,
        start_time: datetime,
        end_time: datetime,
        period: int = ENDPOINT_PERIOD,
    ) -> list[MetricDataPoint]:
        """Get a resource metric of the instances behind an endpoint variant."""
        return await self.get_metric_statistics(
            ENDPOINT_INSTANCE_NAMESPACE,
            metric_name,
            {"EndpointName": endpoint_name, "VariantName": variant_name},
            start_time,
            end_time,
            period,
            RESOURCE_STATISTICS,
        )

    async def _recent_endpoint_resource(
        self, endpoint_name: str, metric_name: str, hours: int
    ) -> list[MetricDataPoint]:
        start_time, end_time = _last_hours(hours)
        return await self.get_endpoint_instance_resource_metric(
            endpoint_name, SAGEMAKER_DEFAULT_VARIANT, metric_name, start_time, end_time
        )

    async def get_endpoint_cpu_utilization(
        self, endpoint_name: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_endpoint_resource(endpoint_name, "CPUUtilization", hours)

    async def get_endpoint_memory_utilization(
        self, endpoint_name: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_endpoint_resource(endpoint_name, "MemoryUtilization", hours)

    async def get_endpoint_gpu_utilization(
        self, endpoint_name: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_endpoint_resource(endpoint_name, "GPUUtilization", hours)

    async def get_endpoint_gpu_memory_utilization(
        self, endpoint_name: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_endpoint_resource(endpoint_name, "GPUMemoryUtilization", hours)

    async def print_endpoint_resource_summary(self, endpoint_name: str, hours: int) -> None:
        """Print CPU, memory and GPU utilization of an endpoint to stdout."""
        print("==================== Endpoint Instance Resources ====================")
        print(f"Endpoint name: {endpoint_name}")
        print(f"Time range: last {hours} hour(s)")
        print()
        _print_utilization("CPU", await self.get_endpoint_cpu_utilization(endpoint_name, hours))
        _print_utilization(
            "Memory", await self.get_endpoint_memory_utilization(endpoint_name, hours)
        )
        _print_utilization(
            "GPU", await self.get_endpoint_gpu_utilization(endpoint_name, hours), gpu=True
        )
        _print_utilization(
            "GPU memory",
            await self.get_endpoint_gpu_memory_utilization(endpoint_name, hours),
            gpu=True,
        )
        print("=====================================================================")

    # =========================================================================
    # Training Job Metrics
    # =========================================================================

    async def get_training_job_metric(
        self,
        training_job_name: str,
        metric_name: str,
        start_time: datetime,
        end_time: datetime,
        period: int = TRAINING_PERIOD,
    ) -> list[MetricDataPoint]:
        """Get a metric emitted by a training job (e.g., 'train:loss')."""
        return await self.get_metric_statistics(
            SAGEMAKER_NAMESPACE,
            metric_name,
            {"TrainingJobName": training_job_name},
            start_time,
            end_time,
            period,
            RESOURCE_STATISTICS,
        )

    async def get_recent_training_metric(
        self, training_job_name: str, metric_name: str, hours: int
    ) -> list[MetricDataPoint]:
        start_time, end_time = _last_hours(hours)
        return await self.get_training_job_metric(
            training_job_name, metric_name, start_time, end_time, TRAINING_PERIOD
        )

    async def list_training_job_metrics(self, training_job_name: str) -> list[CloudWatchMetric]:
        return await self.list_metrics(
            SAGEMAKER_NAMESPACE, {"TrainingJobName": training_job_name}
        )

    # =========================================================================
    # Endpoint Metrics
    # =========================================================================

    async def get_endpoint_metric(
        self,
        endpoint_name: str,
        metric_name: str,
        start_time: datetime,
        end_time: datetime,
        period: int = ENDPOINT_PERIOD,
    ) -> list[MetricDataPoint]:
        """Get an invocation metric of the AllTraffic variant of an endpoint."""
        return await self.get_metric_statistics(
            SAGEMAKER_NAMESPACE,
            metric_name,
            {"EndpointName": endpoint_name, "VariantName": SAGEMAKER_DEFAULT_VARIANT},
            start_time,
            end_time,
            period,
            ENDPOINT_STATISTICS,
        )

    async def _recent_endpoint_metric(
        self, endpoint_name: str, metric_name: str, hours: int
    ) -> list[MetricDataPoint]:
        start_time, end_time = _last_hours(hours)
        return await self.get_endpoint_metric(endpoint_name, metric_name, start_time, end_time)

    async def get_endpoint_invocations(
        self, endpoint_name: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_endpoint_metric(endpoint_name, "Invocations", hours)

    async def get_endpoint_model_latency(
        self, endpoint_name: str, hours: int
    ) -> list[MetricDataPoint]:
        """ModelLatency datapoints, in microseconds."""
        return await self._recent_endpoint_metric(endpoint_name, "ModelLatency", hours)

    async def get_endpoint_4xx_errors(
        self, endpoint_name: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_endpoint_metric(endpoint_name, "Invocation4XXErrors", hours)

    async def get_endpoint_5xx_errors(
        self, endpoint_name: str, hours: int
    ) -> list[MetricDataPoint]:
        return await self._recent_endpoint_metric(endpoint_name, "Invocation5XXErrors", hours)

    async def list_endpoint_metrics(self, endpoint_name: str) -> list[CloudWatchMetric]:
        return await self.list_metrics(SAGEMAKER_NAMESPACE, {"EndpointName": endpoint_name})

    # =========================================================================
    # Alarms
    # =========================================================================

    async def create_endpoint_latency_alarm(
        self,
        alarm_name: str,
        endpoint_name: str,
        threshold_micros: float,
        sns_topic_arn: str | None = None,
    ) -> None:
        """Alarm when the average ModelLatency stays above a threshold for 10 minutes."""
        await self._put_endpoint_alarm(
            alarm_name,
            endpoint_name,
            description=f"Model latency of endpoint {endpoint_name} above threshold",
            metric_name="ModelLatency",
            statistic="Average",
            evaluation_periods=2,
            threshold=threshold_micros,
            sns_topic_arn=sns_topic_arn,
        )

    async def create_endpoint_error_alarm(
        self,
        alarm_name: str,
        endpoint_name: str,
        threshold: float,
        sns_topic_arn: str | None = None,
    ) -> None:
        """Alarm when the 5xx errors of a 5-minute period exceed a threshold."""
        await self._put_endpoint_alarm(
            alarm_name,
            endpoint_name,
            description=f"5xx errors of endpoint {endpoint_name} above threshold",
            metric_name="Invocation5XXErrors",
            statistic="Sum",
            evaluation_periods=1,
            threshold=threshold,
            sns_topic_arn=sns_topic_arn,
        )

    async def _put_endpoint_alarm(
        self,
        alarm_name: str,
        endpoint_name: str,
        description: str,
        metric_name: str,
        statistic: str,
        evaluation_periods: int,
        threshold: float,
        sns_topic_arn: str | None,
    ) -> None:
        logger.info(f"Creating alarm {alarm_name} on {metric_name} of {endpoint_name}")

        kwargs: dict[str, Any] = {
            "AlarmName": alarm_name,
            "AlarmDescription": description,
            "Namespace": SAGEMAKER_NAMESPACE,
            "MetricName": metric_name,
            "Dimensions": [
                {"Name": "EndpointName", "Value": endpoint_name},
                {"Name": "VariantName", "Value": SAGEMAKER_DEFAULT_VARIANT},
            ],
            "Statistic": statistic,
            "Period": ENDPOINT_PERIOD,
            "EvaluationPeriods": evaluation_periods,
            "Threshold": threshold,
            "ComparisonOperator": "GreaterThanThreshold",
        }
        if sns_topic_arn:
            kwargs["AlarmActions"] = [sns_topic_arn]

        try:
            await self.client.call("put_metric_alarm", **kwargs)
            logger.info(f"Created alarm {alarm_name}")
        except Exception as e:
            logger.error(f"Failed to create alarm {alarm_name}: {e}")
            raise

    async def list_sagemaker_alarms(
        self, alarm_name_prefix: str | None = None
    ) -> list[dict[str, Any]]:
        """List up to 50 metric alarms, optionally by name prefix."""
        kwargs: dict[str, Any] = {"MaxRecords": ALARM_LIST_LIMIT}
        if alarm_name_prefix:
            kwargs["AlarmNamePrefix"] = alarm_name_prefix

        try:
            response = await self.client.call("describe_alarms", **kwargs)
        except Exception as e:
            logger.error(f"Failed to list alarms: {e}")
            raise

        alarms: list[dict[str, Any]] = response.get("MetricAlarms", [])
        return alarms

    # =========================================================================
    # Reports
    # =========================================================================

    async def print_training_job_metrics(
        self, training_job_name: str, metric_name: str, hours: int
    ) -> None:
        """Print every datapoint of a training job metric to stdout."""
        datapoints = await self.get_recent_training_metric(training_job_name, metric_name, hours)

        print("==================== Training Metric ====================")
        print(f"Job name: {training_job_name}")
        print(f"Metric: {metric_name}")
        print(f"Time range: last {hours} hour(s)")
        print(f"Datapoints: {len(datapoints)}")
        print()
        for dp in datapoints:
            print(
                f"[{dp.timestamp.isoformat()}] avg: {dp.average or 0.0:.6f}, "
                f"min: {dp.minimum or 0.0:.6f}, max: {dp.maximum or 0.0:.6f}"
            )
        print("=========================================================")

    async def print_endpoint_health_summary(self, endpoint_name: str, hours: int) -> None:
        """Print invocations, latency, errors and the error rate of an endpoint."""
        print("==================== Endpoint Health ====================")
        print(f"Endpoint name: {endpoint_name}")
        print(f"Time range: last {hours} hour(s)")
        print()

        invocations = total(await self.get_endpoint_invocations(endpoint_name, hours))
        print(f"Total invocations: {invocations:.0f}")

        latency = summarize(await self.get_endpoint_model_latency(endpoint_name, hours))
        if latency is not None:
            mean, peak = latency
            print(f"Average latency: {mean:.2f} us ({mean / 1000:.2f} ms)")
            print(f"Max latency: {peak:.2f} us ({peak / 1000:.2f} ms)")

        errors_4xx = total(await self.get_endpoint_4xx_errors(endpoint_name, hours))
        print(f"4xx errors: {errors_4xx:.0f}")
        errors_5xx = total(await self.get_endpoint_5xx_errors(endpoint_name, hours))
        print(f"5xx errors: {errors_5xx:.0f}")

        if invocations > 0:
            print(f"Error rate: {(errors_4xx + errors_5xx) / invocations * 100:.2f}%")
        print("=========================================================")

    async def print_available_metrics(self, training_job_name: str) -> None:
        """Print the metrics a training job has published to stdout."""
        metrics = await self.list_training_job_metrics(training_job_name)

        print("==================== Available Metrics ====================")
        print(f"Job name: {training_job_name}")
        print()
        for metric in metrics:
            print(f"Metric: {metric.metric_name}")
            print(f"  Namespace: {metric.namespace}")
            for name, value in metric.dimensions.items():
                print(f"  Dimension: {name} = {value}")
            print()
        print("===========================================================")

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()


def _print_utilization(
    label: str, datapoints: Sequence[MetricDataPoint], gpu: bool = False
) -> None:
    stats = summarize(datapoints)
    if stats is None:
        suffix = " (not a GPU instance or not enabled)" if gpu else ""
        print(f"{label} utilization: no data{suffix}")
        return
    mean, peak = stats
    print(f"{label} utilization: avg {mean:.1f}%, max {peak:.1f}%")
