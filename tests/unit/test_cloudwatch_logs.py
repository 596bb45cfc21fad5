"""Tests for CloudWatch Logs access to SageMaker log groups."""

from unittest.mock import Mock

import pytest

from aws_toolkit.aws.cloudwatch_logs import (
    TRAINING_LOG_GROUP,
    CloudWatchLogService,
    endpoint_log_group,
    format_event,
)
from aws_toolkit.aws.exceptions import CloudWatchLogsError
from aws_toolkit.config import Settings


def test_endpoint_log_group() -> None:
    """Test the per-endpoint log group name."""
    assert endpoint_log_group("ep") == "/aws/sagemaker/Endpoints/ep"


def test_format_event() -> None:
    """Test formatting an event with an ISO timestamp."""
    event = {"timestamp": 1714564800000, "message": "epoch 1 loss 0.5"}

    assert format_event(event) == "[2024-05-01T12:00:00+00:00] epoch 1 loss 0.5"


class TestCloudWatchLogService:
    """Test suite for CloudWatchLogService."""

    @pytest.fixture
    def service(self, settings: Settings, mock_client: Mock) -> CloudWatchLogService:
        """Fixture providing a CloudWatchLogService with mocked client."""
        return CloudWatchLogService(settings=settings, client=mock_client)

    @pytest.mark.asyncio
    async def test_training_streams_use_prefix_without_order(
        self, service: CloudWatchLogService, mock_client: Mock
    ) -> None:
        """Test that prefixed stream listing is sorted client-side."""
        mock_client.call.return_value = {
            "logStreams": [
                {"logStreamName": "job/algo-1", "lastEventTimestamp": 100},
                {"logStreamName": "job/algo-2", "lastEventTimestamp": 300},
                {"logStreamName": "job/algo-3"},
            ]
        }

        streams = await service.get_training_job_log_streams("job")

        assert [s["logStreamName"] for s in streams] == ["job/algo-2", "job/algo-1", "job/algo-3"]
        mock_client.call.assert_awaited_once_with(
            "describe_log_streams",
            logGroupName=TRAINING_LOG_GROUP,
            descending=True,
            logStreamNamePrefix="job",
        )

    @pytest.mark.asyncio
    async def test_endpoint_streams_ordered_by_last_event(
        self, service: CloudWatchLogService, mock_client: Mock
    ) -> None:
        """Test that endpoint streams are ordered by the service."""
        mock_client.call.return_value = {"logStreams": []}

        await service.get_endpoint_log_streams("ep")

        mock_client.call.assert_awaited_once_with(
            "describe_log_streams",
            logGroupName="/aws/sagemaker/Endpoints/ep",
            descending=True,
            orderBy="LastEventTime",
        )

    @pytest.mark.asyncio
    async def test_log_streams_follow_next_token(
        self, service: CloudWatchLogService, mock_client: Mock
    ) -> None:
        """Test that every page of streams is collected."""
        mock_client.call.side_effect = [
            {"logStreams": [{"logStreamName": "job/algo-1"}], "nextToken": "page-2"},
            {"logStreams": [{"logStreamName": "job/algo-2"}]},
        ]

        streams = await service.get_training_job_log_streams("job")

        assert [s["logStreamName"] for s in streams] == ["job/algo-1", "job/algo-2"]
        assert mock_client.call.await_count == 2
        assert "nextToken" not in mock_client.call.call_args_list[0].kwargs
        assert mock_client.call.call_args_list[1].kwargs["nextToken"] == "page-2"

    @pytest.mark.asyncio
    async def test_get_training_job_logs_merges_streams(
        self, service: CloudWatchLogService, mock_client: Mock
    ) -> None:
        """Test that events of all hosts are merged by timestamp."""
        mock_client.call.side_effect = [
            {"logStreams": [{"logStreamName": "job/algo-1"}, {"logStreamName": "job/algo-2"}]},
            {"events": [{"timestamp": 1, "message": "a"}, {"timestamp": 4, "message": "c"}]},
            {"events": [{"timestamp": 2, "message": "b"}]},
        ]

        events = await service.get_training_job_logs("job", limit=50)

        assert [e["message"] for e in events] == ["a", "b", "c"]
        read_call = mock_client.call.call_args_list[1]
        assert read_call.args == ("get_log_events",)
        assert read_call.kwargs["startFromHead"] is True
        assert read_call.kwargs["limit"] == 50

    @pytest.mark.asyncio
    async def test_filter_training_job_logs_time_range(
        self, service: CloudWatchLogService, mock_client: Mock
    ) -> None:
        """Test the filter request with time bounds."""
        mock_client.call.return_value = {"events": [{"timestamp": 1, "message": "Loss 0.1"}]}

        events = await service.filter_training_job_logs(
            "job", "Loss", start_time_ms=1000, end_time_ms=2000
        )

        assert len(events) == 1
        mock_client.call.assert_awaited_once_with(
            "filter_log_events",
            logGroupName=TRAINING_LOG_GROUP,
            logStreamNamePrefix="job",
            filterPattern="Loss",
            limit=200,
            startTime=1000,
            endTime=2000,
        )

    @pytest.mark.asyncio
    async def test_loss_and_error_shortcuts(
        self, service: CloudWatchLogService, mock_client: Mock
    ) -> None:
        """Test the canned filter patterns and limits."""
        mock_client.call.return_value = {"events": []}

        await service.get_training_loss_logs("job")
        loss_kwargs = mock_client.call.call_args.kwargs
        await service.get_training_error_logs("job")
        error_kwargs = mock_client.call.call_args.kwargs

        assert (loss_kwargs["filterPattern"], loss_kwargs["limit"]) == ("Loss", 500)
        assert (error_kwargs["filterPattern"], error_kwargs["limit"]) == ("ERROR", 200)
        assert "startTime" not in loss_kwargs

    @pytest.mark.asyncio
    async def test_retention_and_delete(
        self, service: CloudWatchLogService, mock_client: Mock
    ) -> None:
        """Test retention and log group deletion calls."""
        await service.set_endpoint_log_retention("ep", 14)
        await service.delete_endpoint_log_group("ep")

        assert mock_client.call.call_args_list[0].kwargs == {
            "logGroupName": "/aws/sagemaker/Endpoints/ep",
            "retentionInDays": 14,
        }
        assert mock_client.call.call_args_list[1].args == ("delete_log_group",)

    @pytest.mark.asyncio
    async def test_errors_propagate(
        self, service: CloudWatchLogService, mock_client: Mock
    ) -> None:
        """Test that client errors are re-raised."""
        mock_client.call.side_effect = CloudWatchLogsError("boom", service="logs")

        with pytest.raises(CloudWatchLogsError):
            await service.filter_endpoint_logs("ep", "ERROR")

    @pytest.mark.asyncio
    async def test_print_filtered_training_logs(
        self,
        service: CloudWatchLogService,
        mock_client: Mock,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Test the printed filter report."""
        mock_client.call.return_value = {
            "events": [{"timestamp": 1714564800000, "message": "ERROR out of memory"}]
        }

        await service.print_filtered_training_logs("job", "ERROR")

        output = capsys.readouterr().out
        assert "Filter: ERROR" in output
        assert "Events: 1" in output
        assert "[2024-05-01T12:00:00+00:00] ERROR out of memory" in output
