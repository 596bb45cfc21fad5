"""Facade combining the EC2, IAM, SSM and DCV services.

``Ec2Manager`` is the single entry point for day-to-day instance management:
launching and driving instances, tagging them, attaching IAM roles, running
commands, and producing a DCV login URL in one call.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Final

from aws_toolkit.aws.dcv import DcvService
from aws_toolkit.aws.ec2 import Ec2Service, InstanceInfo
from aws_toolkit.aws.exceptions import EC2Error, ResourceNotFoundError, SSMError
from aws_toolkit.aws.iam import IamService
from aws_toolkit.aws.ssm_commands import CommandResult, SsmService
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import DCV_DEFAULT_SESSION, DCV_DEFAULT_USER

logger: Final = logging.getLogger(__name__)


class Ec2Manager:
    """Unified entry point for EC2, IAM, SSM and DCV operations.

    Example:
        >>> manager = Ec2Manager()
        >>> instance_id = await manager.create_instance_with_defaults("desktop-01")
        >>> url = await manager.generate_dcv_presigned_url_for_instance(instance_id)
        >>> manager.close()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        ec2: Ec2Service | None = None,
        iam: IamService | None = None,
        ssm: SsmService | None = None,
        dcv: DcvService | None = None,
    ) -> None:
        """Initialize the manager and its services.

        Args:
            settings: Toolkit settings. If None, uses get_settings().
            ec2: Optional Ec2Service.
            iam: Optional IamService.
            ssm: Optional SsmService.
            dcv: Optional DcvService. Shares the manager's SsmService if None.
        """
        self.settings = settings or get_settings()
        self.ec2 = ec2 or Ec2Service(settings=self.settings)
        self.iam = iam or IamService(settings=self.settings)
        self.ssm = ssm or SsmService(settings=self.settings)
        self.dcv = dcv or DcvService(settings=self.settings, ssm=self.ssm)

    # =========================================================================
    # EC2
    # =========================================================================

    async def create_instance_with_defaults(self, instance_name: str | None = None) -> str:
        return await self.ec2.create_instance_with_defaults(instance_name)

    async def create_instance(
        self,
        ami_id: str,
        instance_type: str,
        key_name: str,
        security_group_ids: Sequence[str],
        subnet_id: str,
        ebs_size: int,
        ebs_type: str,
        instance_name: str,
        iam_instance_profile: str | None = None,
    ) -> str:
        return await self.ec2.create_instance(
            ami_id=ami_id,
            instance_type=instance_type,
            key_name=key_name,
            security_group_ids=security_group_ids,
            subnet_id=subnet_id,
            ebs_size=ebs_size,
            ebs_type=ebs_type,
            instance_name=instance_name,
            iam_instance_profile=iam_instance_profile,
        )

    async def start_instance(self, instance_id: str) -> None:
        await self.ec2.start_instance(instance_id)

    async def stop_instance(self, instance_id: str) -> None:
        await self.ec2.stop_instance(instance_id)

    async def terminate_instance(self, instance_id: str) -> None:
        await self.ec2.terminate_instance(instance_id)

    async def reboot_instance(self, instance_id: str) -> None:
        await self.ec2.reboot_instance(instance_id)

    async def get_instance_info(self, instance_id: str) -> InstanceInfo | None:
        return await self.ec2.get_instance_info(instance_id)

    async def list_all_instances(self) -> list[InstanceInfo]:
        return await self.ec2.list_all_instances()

    async def find_instances_by_tag(self, tag_key: str, tag_value: str) -> list[InstanceInfo]:
        return await self.ec2.find_instances_by_tag(tag_key, tag_value)

    # =========================================================================
    # Tags
    # =========================================================================

    async def add_tag(self, instance_id: str, key: str, value: str) -> None:
        await self.ec2.add_tag(instance_id, key, value)

    async def add_tags(self, instance_id: str, tags: Mapping[str, str]) -> None:
        await self.ec2.add_tags(instance_id, tags)

    async def delete_tag(self, instance_id: str, key: str) -> None:
        await self.ec2.delete_tag(instance_id, key)

    async def delete_tags(self, instance_id: str, keys: Sequence[str]) -> None:
        await self.ec2.delete_tags(instance_id, keys)

    async def update_tag(self, instance_id: str, key: str, value: str) -> None:
        await self.ec2.update_tag(instance_id, key, value)

    async def get_tags(self, instance_id: str) -> dict[str, str]:
        return await self.ec2.get_tags(instance_id)

    async def get_tag_value(self, instance_id: str, key: str) -> str | None:
        return await self.ec2.get_tag_value(instance_id, key)

    # =========================================================================
    # IAM
    # =========================================================================

    async def attach_iam_role(self, instance_id: str, instance_profile_name: str) -> str:
        return await self.iam.attach_iam_role(instance_id, instance_profile_name)

    async def disassociate_iam_role(self, instance_id: str) -> None:
        await self.iam.disassociate_iam_role(instance_id)

    async def create_instance_profile(self, profile_name: str, role_name: str) -> str:
        return await self.iam.create_instance_profile(profile_name, role_name)

    # =========================================================================
    # SSM
    # =========================================================================

    async def execute_command(self, instance_id: str, commands: Sequence[str]) -> str:
        return await self.ssm.execute_command(instance_id, commands)

    async def mount_s3_bucket(self, instance_id: str, bucket_name: str, mount_point: str) -> str:
        return await self.ssm.mount_s3_bucket(instance_id, bucket_name, mount_point)

    async def mount_s3_with_defaults(self, instance_id: str) -> str:
        return await self.ssm.mount_s3_with_defaults(instance_id)

    async def get_command_result(self, command_id: str, instance_id: str) -> CommandResult:
        return await self.ssm.get_command_result(command_id, instance_id)

    # =========================================================================
    # DCV
    # =========================================================================

    def generate_dcv_presigned_url(
        self, server_ip: str, session_id: str, auth_token: str, port: int | None = None
    ) -> str:
        return self.dcv.generate_presigned_url(server_ip, session_id, auth_token, port)

    async def generate_dcv_auth_token(
        self,
        instance_id: str,
        session_id: str = DCV_DEFAULT_SESSION,
        user: str = DCV_DEFAULT_USER,
    ) -> str:
        """Generate a DCV auth token on an instance.

        The token is the last non-empty line of the command output.

        Args:
            instance_id: EC2 instance running DCV Server.
            session_id: DCV session ID. Defaults to 'console'.
            user: DCV user. Defaults to 'ec2-user'.

        Returns:
            The auth token.

        Raises:
            SSMError: If the command fails or prints no token.
        """
        commands = self.dcv.get_token_generation_commands(session_id, user)
        result = await self.ssm.execute_and_wait(instance_id, commands)

        if not result.is_success:
            raise SSMError(
                f"Failed to generate DCV token: {result.stderr}",
                service="ssm",
                operation="generate_dcv_auth_token",
            )

        for line in reversed(result.stdout.splitlines()):
            if line.strip():
                return line.strip()

        raise SSMError(
            "No DCV token found in command output",
            service="ssm",
            operation="generate_dcv_auth_token",
        )

    async def generate_dcv_presigned_url_for_instance(
        self,
        instance_id: str,
        session_id: str = DCV_DEFAULT_SESSION,
        user: str = DCV_DEFAULT_USER,
    ) -> str:
        """Generate a token on the instance and return its DCV login URL.

        The public IP is preferred; the private IP is used otherwise.

        Raises:
            ResourceNotFoundError: If the instance does not exist.
            EC2Error: If the instance has no IP address.
            SSMError: If token generation fails.
        """
        info = await self.get_instance_info(instance_id)
        if info is None:
            raise ResourceNotFoundError(
                f"Instance not found: {instance_id}",
                service="ec2",
                operation="describe_instances",
            )

        ip = info.public_ip or info.private_ip
        if not ip:
            raise EC2Error(
                f"Instance {instance_id} has no IP address",
                service="ec2",
                operation="generate_dcv_presigned_url_for_instance",
            )

        token = await self.generate_dcv_auth_token(instance_id, session_id, user)
        return self.generate_dcv_presigned_url(ip, session_id, token, self.settings.dcv_port)

    def close(self) -> None:
        """Release every service client."""
        self.ec2.close()
        self.iam.close()
        self.ssm.close()
