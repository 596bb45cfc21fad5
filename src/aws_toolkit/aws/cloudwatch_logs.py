"""CloudWatch Logs for SageMaker training jobs and endpoints."""

import logging
from datetime import UTC, datetime
from typing import Any, Final

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.config import Settings, get_settings

logger: Final = logging.getLogger(__name__)

TRAINING_LOG_GROUP: Final = "/aws/sagemaker/TrainingJobs"
ENDPOINT_LOG_GROUP: Final = "/aws/sagemaker/Endpoints"

DEFAULT_FILTER_LIMIT: Final = 200
LOSS_FILTER_LIMIT: Final = 500


def endpoint_log_group(endpoint_name: str) -> str:
    return f"{ENDPOINT_LOG_GROUP}/{endpoint_name}"


def format_event(event: dict[str, Any]) -> str:
    """Format a log event as ``[ISO timestamp] message``."""
    timestamp = datetime.fromtimestamp(event["timestamp"] / 1000, tz=UTC)
    return f"[{timestamp.isoformat()}] {event.get('message', '')}"


class CloudWatchLogService:
    """Service for reading and managing SageMaker log groups.

    Training job streams live in one shared log group and are named
    ``{job_name}/algo-{n}-{epoch}``. Each endpoint has its own group.

    Example:
        >>> logs = CloudWatchLogService()
        >>> events = await logs.get_training_job_logs("churn-xgb-001", limit=100)
        >>> await logs.print_filtered_training_logs("churn-xgb-001", "ERROR")
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("logs", settings=self.settings)
        logger.info(f"Initialized CloudWatchLogService for region {self.settings.aws_region}")

    # =========================================================================
    # Training Job Logs
    # =========================================================================

    async def get_training_job_log_streams(self, training_job_name: str) -> list[dict[str, Any]]:
        """List the log streams of a training job, most recently written first."""
        logger.debug(f"Listing log streams of training job {training_job_name}")
        streams = await self._describe_log_streams(
            TRAINING_LOG_GROUP, prefix=training_job_name
        )
        logger.info(f"Found {len(streams)} log stream(s) for {training_job_name}")
        return streams

    async def get_log_events(
        self, log_group_name: str, log_stream_name: str, limit: int
    ) -> list[dict[str, Any]]:
        """Read up to ``limit`` events of a stream, starting from the oldest."""
        try:
            response = await self.client.call(
                "get_log_events",
                logGroupName=log_group_name,
                logStreamName=log_stream_name,
                startFromHead=True,
                limit=limit,
            )
        except Exception as e:
            logger.error(f"Failed to read log stream {log_group_name}/{log_stream_name}: {e}")
            raise

        events: list[dict[str, Any]] = response.get("events", [])
        return events

    async def get_training_job_logs(
        self, training_job_name: str, limit: int
    ) -> list[dict[str, Any]]:
        """Read every stream of a training job and merge the events by timestamp.

        Args:
            training_job_name: Training job name.
            limit: Maximum events read per stream.

        Returns:
            Events of all hosts, oldest first.
        """
        events: list[dict[str, Any]] = []
        for stream in await self.get_training_job_log_streams(training_job_name):
            events.extend(
                await self.get_log_events(TRAINING_LOG_GROUP, stream["logStreamName"], limit)
            )
        events.sort(key=lambda e: e["timestamp"])
        logger.info(f"Read {len(events)} log event(s) for {training_job_name}")
        return events

    async def filter_training_job_logs(
        self,
        training_job_name: str,
        filter_pattern: str,
        start_time_ms: int | None = None,
        end_time_ms: int | None = None,
        limit: int = DEFAULT_FILTER_LIMIT,
    ) -> list[dict[str, Any]]:
        """Filter the events of a training job with a CloudWatch Logs pattern.

        Args:
            training_job_name: Training job name, used as stream prefix.
            filter_pattern: CloudWatch Logs filter pattern (e.g., 'Loss').
            start_time_ms: Epoch milliseconds lower bound. Defaults to None.
            end_time_ms: Epoch milliseconds upper bound. Defaults to None.
            limit: Maximum events returned. Defaults to 200.
        """
        kwargs: dict[str, Any] = {
            "logGroupName": TRAINING_LOG_GROUP,
            "logStreamNamePrefix": training_job_name,
            "filterPattern": filter_pattern,
            "limit": limit,
        }
        if start_time_ms is not None:
            kwargs["startTime"] = start_time_ms
        if end_time_ms is not None:
            kwargs["endTime"] = end_time_ms

        events = await self._filter_log_events(kwargs)
        logger.info(f"Filter '{filter_pattern}' matched {len(events)} event(s)")
        return events

    async def get_training_loss_logs(self, training_job_name: str) -> list[dict[str, Any]]:
        return await self.filter_training_job_logs(
            training_job_name, "Loss", limit=LOSS_FILTER_LIMIT
        )

    async def get_training_error_logs(self, training_job_name: str) -> list[dict[str, Any]]:
        return await self.filter_training_job_logs(
            training_job_name, "ERROR", limit=DEFAULT_FILTER_LIMIT
        )

    # =========================================================================
    # Endpoint Logs
    # =========================================================================

    async def get_endpoint_log_streams(self, endpoint_name: str) -> list[dict[str, Any]]:
        return await self._describe_log_streams(endpoint_log_group(endpoint_name))

    async def filter_endpoint_logs(
        self, endpoint_name: str, filter_pattern: str, limit: int = DEFAULT_FILTER_LIMIT
    ) -> list[dict[str, Any]]:
        return await self._filter_log_events(
            {
                "logGroupName": endpoint_log_group(endpoint_name),
                "filterPattern": filter_pattern,
                "limit": limit,
            }
        )

    async def _describe_log_streams(
        self, log_group_name: str, prefix: str | None = None
    ) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {"logGroupName": log_group_name, "descending": True}
        if prefix:
            # CloudWatch Logs rejects orderBy=LastEventTime combined with a prefix.
            kwargs["logStreamNamePrefix"] = prefix
        else:
            kwargs["orderBy"] = "LastEventTime"

        streams: list[dict[str, Any]] = []
        try:
            while True:
                response = await self.client.call("describe_log_streams", **kwargs)
                streams.extend(response.get("logStreams", []))
                next_token = response.get("nextToken")
                if not next_token:
                    break
                kwargs["nextToken"] = next_token
        except Exception as e:
            logger.error(f"Failed to list log streams of {log_group_name}: {e}")
            raise

        if prefix:
            streams.sort(key=lambda s: s.get("lastEventTimestamp", 0), reverse=True)
        return streams

    async def _filter_log_events(self, kwargs: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            response = await self.client.call("filter_log_events", **kwargs)
        except Exception as e:
            logger.error(f"Failed to filter log events of {kwargs['logGroupName']}: {e}")
            raise

        events: list[dict[str, Any]] = response.get("events", [])
        return events

    # =========================================================================
    # Retention and Cleanup
    # =========================================================================

    async def set_log_group_retention(self, log_group_name: str, retention_days: int) -> None:
        """Set how many days a log group keeps its events."""
        logger.info(f"Setting retention of {log_group_name} to {retention_days} day(s)")
        try:
            await self.client.call(
                "put_retention_policy",
                logGroupName=log_group_name,
                retentionInDays=retention_days,
            )
        except Exception as e:
            logger.error(f"Failed to set retention of {log_group_name}: {e}")
            raise

    async def set_training_log_retention(self, retention_days: int) -> None:
        await self.set_log_group_retention(TRAINING_LOG_GROUP, retention_days)

    async def set_endpoint_log_retention(self, endpoint_name: str, retention_days: int) -> None:
        await self.set_log_group_retention(endpoint_log_group(endpoint_name), retention_days)

    async def delete_log_group(self, log_group_name: str) -> None:
        logger.warning(f"Deleting log group {log_group_name}")
        try:
            await self.client.call("delete_log_group", logGroupName=log_group_name)
        except Exception as e:
            logger.error(f"Failed to delete log group {log_group_name}: {e}")
            raise

    async def delete_endpoint_log_group(self, endpoint_name: str) -> None:
        await self.delete_log_group(endpoint_log_group(endpoint_name))

    # =========================================================================
    # Reports
    # =========================================================================

    async def print_training_job_logs(self, training_job_name: str, limit: int) -> None:
        """Print the merged logs of a training job to stdout."""
        events = await self.get_training_job_logs(training_job_name, limit)

        print("==================== Training Job Logs ====================")
        print(f"Job name: {training_job_name}")
        print(f"Events: {len(events)}")
        print()
        for event in events:
            print(format_event(event))
        print("===========================================================")

    async def print_filtered_training_logs(
        self, training_job_name: str, filter_pattern: str
    ) -> None:
        """Print the training job events that match a filter pattern."""
        events = await self.filter_training_job_logs(training_job_name, filter_pattern)

        print("==================== Filtered Logs ====================")
        print(f"Job name: {training_job_name}")
        print(f"Filter: {filter_pattern}")
        print(f"Events: {len(events)}")
        print()
        for event in events:
            print(format_event(event))
        print("=======================================================")

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
