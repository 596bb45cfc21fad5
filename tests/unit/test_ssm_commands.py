"""Tests for SSM command execution."""

from unittest.mock import AsyncMock, Mock, patch

import pytest

from aws_toolkit.aws.exceptions import ResourceNotFoundError, SSMError, TimeoutError, ValidationError
from aws_toolkit.aws.ssm_commands import CommandResult, SsmService
from aws_toolkit.config import Settings


class TestCommandResult:
    """Test suite for CommandResult."""

    def test_is_success(self) -> None:
        """Test the success flag."""
        assert CommandResult(command_id="c1", status="Success").is_success is True
        assert CommandResult(command_id="c1", status="Failed").is_success is False

    def test_str(self) -> None:
        """Test the short representation."""
        assert str(CommandResult(command_id="c1", status="TimedOut")) == (
            "CommandResult(id='c1', status='TimedOut')"
        )


class TestSsmService:
    """Test suite for SsmService."""

    @pytest.fixture
    def service(self, settings: Settings, mock_client: Mock) -> SsmService:
        """Fixture providing an SsmService with mocked client."""
        return SsmService(settings=settings, client=mock_client)

    @pytest.mark.asyncio
    async def test_execute_command(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test the send_command request."""
        mock_client.call.return_value = {"Command": {"CommandId": "cmd-123"}}

        command_id = await service.execute_command(sample_instance_id, ["uptime", "df -h"])

        assert command_id == "cmd-123"
        mock_client.call.assert_awaited_once_with(
            "send_command",
            InstanceIds=[sample_instance_id],
            DocumentName="AWS-RunShellScript",
            Parameters={"commands": ["uptime", "df -h"]},
            TimeoutSeconds=600,
        )

    @pytest.mark.asyncio
    async def test_execute_command_rejects_empty(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that an empty command list never reaches AWS."""
        with pytest.raises(ValidationError):
            await service.execute_command(sample_instance_id, [])

        mock_client.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mount_s3_bucket(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test the s3fs mount script."""
        mock_client.call.return_value = {"Command": {"CommandId": "cmd-mount"}}

        await service.mount_s3_with_defaults(sample_instance_id)

        commands = mock_client.call.call_args.kwargs["Parameters"]["commands"]
        assert "sudo mkdir -p /mnt/s3data" in commands
        assert any(c.startswith("sudo s3fs my-bucket /mnt/s3data -o iam_role=auto") for c in commands)
        assert commands[0] == "if ! command -v s3fs &> /dev/null; then"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("bucket", "mount_point"),
        [("bucket;rm -rf /", "/mnt/data"), ("my-bucket", "mnt/data"), ("my-bucket", "/mnt/$(id)")],
    )
    async def test_mount_rejects_unsafe_values(
        self,
        service: SsmService,
        mock_client: Mock,
        sample_instance_id: str,
        bucket: str,
        mount_point: str,
    ) -> None:
        """Test that unsafe bucket names and mount points are rejected."""
        with pytest.raises(ValidationError):
            await service.mount_s3_bucket(sample_instance_id, bucket, mount_point)

        mock_client.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_command_result_polls(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test polling until a terminal status."""
        mock_client.call.side_effect = [
            {"Status": "InProgress"},
            {
                "Status": "Success",
                "StandardOutputContent": "up 3 days",
                "StandardErrorContent": None,
            },
        ]

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            result = await service.get_command_result("cmd-123", sample_instance_id)

        assert result.is_success
        assert result.stdout == "up 3 days"
        assert result.stderr == ""
        mock_sleep.assert_awaited_once_with(2)

    @pytest.mark.asyncio
    async def test_get_command_result_failed_status(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that a failed command is returned, not raised."""
        mock_client.call.return_value = {"Status": "Failed", "StandardErrorContent": "boom"}

        result = await service.get_command_result("cmd-123", sample_instance_id)

        assert result.status == "Failed"
        assert result.stderr == "boom"

    @pytest.mark.asyncio
    async def test_get_command_result_retries_lookup(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that a not-yet-registered invocation is retried."""
        mock_client.call.side_effect = [
            ResourceNotFoundError("InvocationDoesNotExist", service="ssm"),
            {"Status": "Success"},
        ]

        with patch("asyncio.sleep", new_callable=AsyncMock):
            result = await service.get_command_result("cmd-123", sample_instance_id)

        assert result.is_success

    @pytest.mark.asyncio
    async def test_get_command_result_lookup_exhausted(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that the last failed lookup raises SSMError."""
        mock_client.call.side_effect = ResourceNotFoundError("gone", service="ssm")

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(SSMError) as exc_info:
                await service.get_command_result("cmd-123", sample_instance_id, max_attempts=2)

        assert isinstance(exc_info.value.__cause__, ResourceNotFoundError)

    @pytest.mark.asyncio
    async def test_get_command_result_timeout(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that a command stuck in progress times out."""
        mock_client.call.return_value = {"Status": "InProgress"}

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(TimeoutError):
                await service.get_command_result("cmd-123", sample_instance_id, max_attempts=3)

        assert mock_client.call.await_count == 3

    @pytest.mark.asyncio
    async def test_execute_and_wait(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test send and poll in one call."""
        mock_client.call.side_effect = [
            {"Command": {"CommandId": "cmd-9"}},
            {"Status": "Success", "StandardOutputContent": "ok"},
        ]

        result = await service.execute_and_wait(sample_instance_id, ["echo ok"])

        assert result.command_id == "cmd-9"
        assert result.stdout == "ok"

    @pytest.mark.asyncio
    async def test_cancel_command(
        self, service: SsmService, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test cancelling on one instance."""
        await service.cancel_command("cmd-123", sample_instance_id)

        mock_client.call.assert_awaited_once_with(
            "cancel_command", CommandId="cmd-123", InstanceIds=[sample_instance_id]
        )
