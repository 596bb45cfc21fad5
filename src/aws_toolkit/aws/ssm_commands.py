"""SSM command execution utilities for running shell commands on EC2 instances.

This module sends ``AWS-RunShellScript`` commands through AWS Systems Manager
and polls for their results. It also provides the s3fs mount helper used to
attach an S3 bucket to an instance.
"""

import asyncio
import logging
from collections.abc import Sequence
from typing import Any, Final

from pydantic import BaseModel, ConfigDict

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.aws.exceptions import SSMError, TimeoutError, ValidationError
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import (
    SSM_COMMAND_TIMEOUT,
    SSM_DOCUMENT_LINUX,
    SSM_MAX_ATTEMPTS,
    SSM_POLL_INTERVAL,
    SSM_TERMINAL_STATUSES,
)
from aws_toolkit.utils.ssm_validation import (
    validate_path,
    validate_shell_token,
    validate_ssm_commands,
)

logger: Final = logging.getLogger(__name__)


class CommandResult(BaseModel):
    """Final result of an SSM command invocation on one instance.

    Attributes:
        command_id: SSM command ID.
        status: Terminal status (Success, Failed, Cancelled or TimedOut).
        stdout: Standard output of the command.
        stderr: Standard error of the command.
    """

    model_config = ConfigDict(frozen=True)

    command_id: str
    status: str
    stdout: str = ""
    stderr: str = ""

    @property
    def is_success(self) -> bool:
        """True if the command finished with status Success."""
        return self.status == "Success"

    def __str__(self) -> str:
        return f"CommandResult(id={self.command_id!r}, status={self.status!r})"


class SsmService:
    """Service for running shell commands on instances via SSM.

    Example:
        >>> service = SsmService()
        >>> command_id = await service.execute_command("i-1234567890abcdef0", ["uptime"])
        >>> result = await service.get_command_result(command_id, "i-1234567890abcdef0")
        >>> print(result.stdout)
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        """Initialize SSM service.

        Args:
            settings: Toolkit settings. If None, uses get_settings().
            client: Optional pre-configured AWSClientWrapper. If None, creates a new one.
        """
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("ssm", settings=self.settings)
        logger.info(f"Initialized SsmService for region {self.settings.aws_region}")

    async def execute_command(self, instance_id: str, commands: Sequence[str]) -> str:
        """Send shell commands to an instance.

        Args:
            instance_id: Target EC2 instance ID.
            commands: Shell command lines, executed in order.

        Returns:
            SSM command ID.

        Raises:
            ValidationError: If the command list is empty or malformed.
            SSMError: If AWS API call fails.
        """
        is_valid, error = validate_ssm_commands(commands)
        if not is_valid:
            raise ValidationError(error, service="ssm", operation="send_command")

        logger.info(f"Sending {len(commands)} command(s) to {instance_id}")

        try:
            response = await self.client.call(
                "send_command",
                InstanceIds=[instance_id],
                DocumentName=SSM_DOCUMENT_LINUX,
                Parameters={"commands": list(commands)},
                TimeoutSeconds=SSM_COMMAND_TIMEOUT,
            )
            command_id: str = response["Command"]["CommandId"]
            logger.info(f"Command sent successfully: {command_id}")
            return command_id

        except Exception as e:
            logger.error(f"Failed to send command to {instance_id}: {e}")
            raise

    async def mount_s3_bucket(self, instance_id: str, bucket_name: str, mount_point: str) -> str:
        """Mount an S3 bucket on an instance with s3fs.

        s3fs-fuse is installed first if missing. The instance profile must
        grant access to the bucket (``iam_role=auto``).

        Args:
            instance_id: Target EC2 instance ID.
            bucket_name: S3 bucket to mount.
            mount_point: Absolute directory to mount on.

        Returns:
            SSM command ID.

        Raises:
            ValidationError: If the bucket name or mount point is unsafe.
        """
        for is_valid, error in (
            validate_shell_token(bucket_name, "Bucket name"),
            validate_path(mount_point, "Mount point"),
        ):
            if not is_valid:
                raise ValidationError(error, service="ssm", operation="mount_s3_bucket")

        commands = [
            "if ! command -v s3fs &> /dev/null; then",
            "    sudo yum install -y epel-release || sudo amazon-linux-extras install epel -y",
            "    sudo yum install -y s3fs-fuse",
            "fi",
            f"sudo mkdir -p {mount_point}",
            f"sudo s3fs {bucket_name} {mount_point} "
            "-o iam_role=auto -o allow_other -o use_cache=/tmp/s3fs",
            f"df -h {mount_point}",
            f"echo 'S3 bucket {bucket_name} mounted on {mount_point}'",
        ]
        logger.info(f"Mounting s3://{bucket_name} on {instance_id}:{mount_point}")
        return await self.execute_command(instance_id, commands)

    async def mount_s3_with_defaults(self, instance_id: str) -> str:
        """Mount the configured bucket on the configured mount point."""
        return await self.mount_s3_bucket(
            instance_id, self.settings.s3_bucket, self.settings.s3_mount_point
        )

    async def get_command_result(
        self,
        command_id: str,
        instance_id: str,
        max_attempts: int = SSM_MAX_ATTEMPTS,
        poll_interval: float = SSM_POLL_INTERVAL,
    ) -> CommandResult:
        """Poll until a command reaches a terminal status.

        Lookup errors (for example an invocation that is not registered yet)
        are retried until the last attempt.

        Args:
            command_id: SSM command ID.
            instance_id: EC2 instance ID the command was sent to.
            max_attempts: Number of polls. Defaults to 30.
            poll_interval: Seconds between polls. Defaults to 2.

        Returns:
            CommandResult with the terminal status and output.

        Raises:
            SSMError: If the last lookup attempt fails.
            TimeoutError: If no terminal status is seen within max_attempts.
        """
        for attempt in range(1, max_attempts + 1):
            try:
                response = await self.client.call(
                    "get_command_invocation", CommandId=command_id, InstanceId=instance_id
                )
            except Exception as e:
                if attempt >= max_attempts:
                    logger.error(f"Failed to get result of command {command_id}: {e}")
                    raise SSMError(
                        f"Failed to get result of command {command_id}: {e}",
                        service="ssm",
                        operation="get_command_invocation",
                    ) from e
                logger.debug(f"Invocation lookup for {command_id} failed, retrying: {e}")
                await asyncio.sleep(poll_interval)
                continue

            status = response.get("Status", "")
            if status in SSM_TERMINAL_STATUSES:
                logger.info(f"Command {command_id} completed with status: {status}")
                return self._to_result(command_id, response)

            logger.debug(
                f"Command {command_id} status: {status} "
                f"(attempt {attempt}/{max_attempts}), waiting {poll_interval}s..."
            )
            await asyncio.sleep(poll_interval)

        raise TimeoutError(
            f"Command {command_id} did not complete after {max_attempts} checks",
            service="ssm",
            operation="get_command_result",
        )

    async def execute_and_wait(self, instance_id: str, commands: Sequence[str]) -> CommandResult:
        """Send commands and wait for their result."""
        command_id = await self.execute_command(instance_id, commands)
        return await self.get_command_result(command_id, instance_id)

    async def cancel_command(self, command_id: str, instance_id: str | None = None) -> None:
        """Cancel a running command, optionally on one instance only."""
        logger.warning(f"Cancelling command {command_id}")

        parameters: dict[str, Any] = {"CommandId": command_id}
        if instance_id:
            parameters["InstanceIds"] = [instance_id]

        try:
            await self.client.call("cancel_command", **parameters)
        except Exception as e:
            logger.error(f"Failed to cancel command: {e}")
            raise

    @staticmethod
    def _to_result(command_id: str, response: dict[str, Any]) -> CommandResult:
        return CommandResult(
            command_id=command_id,
            status=response["Status"],
            stdout=response.get("StandardOutputContent") or "",
            stderr=response.get("StandardErrorContent") or "",
        )

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
