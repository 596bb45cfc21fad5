"""Tests for the Ec2Manager facade."""

from unittest.mock import AsyncMock, Mock

import pytest

from aws_toolkit.aws.dcv import DcvService
from aws_toolkit.aws.ec2 import InstanceInfo
from aws_toolkit.aws.exceptions import EC2Error, ResourceNotFoundError, SSMError
from aws_toolkit.aws.ssm_commands import CommandResult
from aws_toolkit.config import Settings
from aws_toolkit.manager import Ec2Manager


class TestEc2Manager:
    """Test suite for Ec2Manager."""

    @pytest.fixture
    def ec2(self) -> Mock:
        """Fixture providing a mocked Ec2Service."""
        return Mock(
            create_instance_with_defaults=AsyncMock(return_value="i-1234567890abcdef0"),
            get_instance_info=AsyncMock(),
            add_tags=AsyncMock(),
            stop_instance=AsyncMock(),
        )

    @pytest.fixture
    def iam(self) -> Mock:
        """Fixture providing a mocked IamService."""
        return Mock(attach_iam_role=AsyncMock(return_value="iip-assoc-1"))

    @pytest.fixture
    def ssm(self) -> Mock:
        """Fixture providing a mocked SsmService."""
        return Mock(execute_and_wait=AsyncMock(), mount_s3_with_defaults=AsyncMock())

    @pytest.fixture
    def manager(self, settings: Settings, ec2: Mock, iam: Mock, ssm: Mock) -> Ec2Manager:
        """Fixture providing an Ec2Manager with mocked services and a real DcvService."""
        return Ec2Manager(settings=settings, ec2=ec2, iam=iam, ssm=ssm)

    def _instance(self, instance_id: str, **ips: str) -> InstanceInfo:
        return InstanceInfo(
            instance_id=instance_id, instance_type="g5.xlarge", state="running", **ips
        )

    def test_dcv_shares_ssm(self, manager: Ec2Manager, ssm: Mock) -> None:
        """Test that the default DCV service reuses the manager's SSM service."""
        assert isinstance(manager.dcv, DcvService)
        assert manager.dcv.ssm is ssm

    @pytest.mark.asyncio
    async def test_delegates_to_services(
        self, manager: Ec2Manager, ec2: Mock, iam: Mock, ssm: Mock, sample_instance_id: str
    ) -> None:
        """Test that facade calls reach the right service."""
        assert await manager.create_instance_with_defaults("desk") == sample_instance_id
        await manager.add_tags(sample_instance_id, {"team": "ml"})
        await manager.stop_instance(sample_instance_id)
        assert await manager.attach_iam_role(sample_instance_id, "profile") == "iip-assoc-1"
        await manager.mount_s3_with_defaults(sample_instance_id)

        ec2.create_instance_with_defaults.assert_awaited_once_with("desk")
        ec2.add_tags.assert_awaited_once_with(sample_instance_id, {"team": "ml"})
        ec2.stop_instance.assert_awaited_once_with(sample_instance_id)
        iam.attach_iam_role.assert_awaited_once_with(sample_instance_id, "profile")
        ssm.mount_s3_with_defaults.assert_awaited_once_with(sample_instance_id)

    @pytest.mark.asyncio
    async def test_generate_dcv_auth_token(
        self, manager: Ec2Manager, ssm: Mock, sample_instance_id: str
    ) -> None:
        """Test that the last non-empty output line is the token."""
        ssm.execute_and_wait.return_value = CommandResult(
            command_id="cmd-1", status="Success", stdout="warming up\nTOKEN-XYZ\n\n"
        )

        token = await manager.generate_dcv_auth_token(sample_instance_id)

        assert token == "TOKEN-XYZ"
        ssm.execute_and_wait.assert_awaited_once_with(
            sample_instance_id, ["dcv generate-auth-token --session console --user ec2-user"]
        )

    @pytest.mark.asyncio
    async def test_generate_dcv_auth_token_failed(
        self, manager: Ec2Manager, ssm: Mock, sample_instance_id: str
    ) -> None:
        """Test that a failed command raises SSMError."""
        ssm.execute_and_wait.return_value = CommandResult(
            command_id="cmd-1", status="Failed", stderr="dcv: command not found"
        )

        with pytest.raises(SSMError, match="command not found"):
            await manager.generate_dcv_auth_token(sample_instance_id)

    @pytest.mark.asyncio
    async def test_generate_dcv_auth_token_empty_output(
        self, manager: Ec2Manager, ssm: Mock, sample_instance_id: str
    ) -> None:
        """Test that blank output raises SSMError."""
        ssm.execute_and_wait.return_value = CommandResult(
            command_id="cmd-1", status="Success", stdout="\n  \n"
        )

        with pytest.raises(SSMError, match="No DCV token"):
            await manager.generate_dcv_auth_token(sample_instance_id)

    @pytest.mark.asyncio
    async def test_presigned_url_for_instance_prefers_public_ip(
        self, manager: Ec2Manager, ec2: Mock, ssm: Mock, sample_instance_id: str
    ) -> None:
        """Test the full URL flow with a public IP."""
        ec2.get_instance_info.return_value = self._instance(
            sample_instance_id, public_ip="54.1.2.3", private_ip="10.0.0.5"
        )
        ssm.execute_and_wait.return_value = CommandResult(
            command_id="cmd-1", status="Success", stdout="abc123\n"
        )

        url = await manager.generate_dcv_presigned_url_for_instance(sample_instance_id)

        assert url == "https://54.1.2.3:8443/?authToken=abc123#console"

    @pytest.mark.asyncio
    async def test_presigned_url_falls_back_to_private_ip(
        self, manager: Ec2Manager, ec2: Mock, ssm: Mock, sample_instance_id: str
    ) -> None:
        """Test the private IP fallback."""
        ec2.get_instance_info.return_value = self._instance(
            sample_instance_id, private_ip="10.0.0.5"
        )
        ssm.execute_and_wait.return_value = CommandResult(
            command_id="cmd-1", status="Success", stdout="abc123"
        )

        url = await manager.generate_dcv_presigned_url_for_instance(sample_instance_id, "dev")

        assert url == "https://10.0.0.5:8443/?authToken=abc123#dev"

    @pytest.mark.asyncio
    async def test_presigned_url_missing_instance(
        self, manager: Ec2Manager, ec2: Mock, sample_instance_id: str
    ) -> None:
        """Test that an unknown instance raises ResourceNotFoundError."""
        ec2.get_instance_info.return_value = None

        with pytest.raises(ResourceNotFoundError):
            await manager.generate_dcv_presigned_url_for_instance(sample_instance_id)

    @pytest.mark.asyncio
    async def test_presigned_url_without_ip(
        self, manager: Ec2Manager, ec2: Mock, ssm: Mock, sample_instance_id: str
    ) -> None:
        """Test that an instance without IP raises EC2Error before any command."""
        ec2.get_instance_info.return_value = self._instance(sample_instance_id)

        with pytest.raises(EC2Error):
            await manager.generate_dcv_presigned_url_for_instance(sample_instance_id)

        ssm.execute_and_wait.assert_not_awaited()

    def test_close(self, manager: Ec2Manager, ec2: Mock, iam: Mock, ssm: Mock) -> None:
        """Test that every client is released."""
        manager.close()

        ec2.close.assert_called_once()
        iam.close.assert_called_once()
        ssm.close.assert_called_once()
