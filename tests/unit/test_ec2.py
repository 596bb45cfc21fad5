"""Tests for EC2 instance, tag and AMI management."""

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, Mock, patch

import pytest
from pydantic import ValidationError as PydanticValidationError

from aws_toolkit.aws.ec2 import Ec2Service, ImageInfo, InstanceInfo
from aws_toolkit.aws.exceptions import (
    EC2Error,
    ResourceNotFoundError,
    TimeoutError,
    ValidationError,
)
from aws_toolkit.config import Settings


def _instance(instance_id: str, state: str = "running", **extra: Any) -> dict[str, Any]:
    return {
        "InstanceId": instance_id,
        "InstanceType": "t3.medium",
        "State": {"Name": state},
        **extra,
    }


def _reservations(*instances: dict[str, Any]) -> dict[str, Any]:
    return {"Reservations": [{"Instances": list(instances)}]}


class TestInstanceInfo:
    """Test suite for InstanceInfo Pydantic model."""

    def test_valid_instance_creation(self, sample_instance_id: str) -> None:
        """Test creating a valid InstanceInfo."""
        info = InstanceInfo(
            instance_id=sample_instance_id,
            instance_type="t3.micro",
            state="running",
            tags={"Name": "web"},
        )

        assert info.instance_id == sample_instance_id
        assert info.name == "web"

    def test_name_without_tag(self, sample_instance_id: str) -> None:
        """Test that name is None without a Name tag."""
        info = InstanceInfo(instance_id=sample_instance_id, instance_type="t3.micro", state="stopped")

        assert info.name is None

    def test_invalid_instance_id_format(self) -> None:
        """Test that an invalid instance ID raises a validation error."""
        with pytest.raises(PydanticValidationError):
            InstanceInfo(instance_id="invalid-id", instance_type="t3.micro", state="running")

    def test_invalid_state(self, sample_instance_id: str) -> None:
        """Test that an unknown state raises a validation error."""
        with pytest.raises(PydanticValidationError, match="Invalid instance state"):
            InstanceInfo(instance_id=sample_instance_id, instance_type="t3.micro", state="paused")

    def test_frozen(self, sample_instance_id: str) -> None:
        """Test that InstanceInfo is immutable."""
        info = InstanceInfo(instance_id=sample_instance_id, instance_type="t3.micro", state="running")

        with pytest.raises(PydanticValidationError):
            info.state = "stopped"  # type: ignore[misc]


class TestEc2ServiceLifecycle:
    """Test suite for instance launch and lifecycle operations."""

    @pytest.fixture
    def service(self, settings: Settings, mock_client: Mock) -> Ec2Service:
        """Fixture providing an Ec2Service with mocked client."""
        return Ec2Service(settings=settings, client=mock_client)

    @pytest.mark.asyncio
    async def test_create_instance(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that run_instances receives the full launch request."""
        mock_client.call.return_value = {"Instances": [{"InstanceId": sample_instance_id}]}

        instance_id = await service.create_instance(
            ami_id="ami-123",
            instance_type="g5.xlarge",
            key_name="my-key",
            security_group_ids=["sg-1"],
            subnet_id="subnet-1",
            ebs_size=200,
            ebs_type="gp3",
            instance_name="gpu-box",
            iam_instance_profile="ec2-profile",
            tags={"team": "ml"},
        )

        assert instance_id == sample_instance_id
        mock_client.call.assert_awaited_once()
        args, kwargs = mock_client.call.call_args
        assert args == ("run_instances",)
        assert kwargs["ImageId"] == "ami-123"
        assert kwargs["MinCount"] == kwargs["MaxCount"] == 1
        assert kwargs["KeyName"] == "my-key"
        assert kwargs["SecurityGroupIds"] == ["sg-1"]
        assert kwargs["SubnetId"] == "subnet-1"
        assert kwargs["IamInstanceProfile"] == {"Name": "ec2-profile"}
        ebs = kwargs["BlockDeviceMappings"][0]["Ebs"]
        assert kwargs["BlockDeviceMappings"][0]["DeviceName"] == "/dev/xvda"
        assert ebs == {
            "VolumeSize": 200,
            "VolumeType": "gp3",
            "DeleteOnTermination": True,
            "Encrypted": True,
        }
        assert kwargs["TagSpecifications"] == [
            {
                "ResourceType": "instance",
                "Tags": [{"Key": "Name", "Value": "gpu-box"}, {"Key": "team", "Value": "ml"}],
            }
        ]

    @pytest.mark.asyncio
    async def test_create_instance_omits_empty_optionals(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that empty key, subnet and profile are left out of the request."""
        mock_client.call.return_value = {"Instances": [{"InstanceId": sample_instance_id}]}

        await service.create_instance("ami-123", "t3.micro", "", [], "", 8, "gp3", "box")

        kwargs = mock_client.call.call_args.kwargs
        assert "KeyName" not in kwargs
        assert "SecurityGroupIds" not in kwargs
        assert "SubnetId" not in kwargs
        assert "IamInstanceProfile" not in kwargs

    @pytest.mark.asyncio
    async def test_create_instance_requires_ami(self, service: Ec2Service, mock_client: Mock) -> None:
        """Test that a missing AMI is rejected before calling AWS."""
        with pytest.raises(ValidationError):
            await service.create_instance("", "t3.micro", "", [], "", 8, "gp3", "box")

        mock_client.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_create_instance_with_defaults(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that launch defaults come from settings."""
        mock_client.call.return_value = {"Instances": [{"InstanceId": sample_instance_id}]}

        await service.create_instance_with_defaults()

        kwargs = mock_client.call.call_args.kwargs
        assert kwargs["ImageId"] == "ami-0default"
        assert kwargs["InstanceType"] == "t3.medium"
        assert kwargs["SecurityGroupIds"] == ["sg-0abc", "sg-0def"]
        assert kwargs["IamInstanceProfile"] == {"Name": "ec2-profile"}
        assert kwargs["TagSpecifications"][0]["Tags"] == [
            {"Key": "Name", "Value": "EC2-Instance"}
        ]

    @pytest.mark.asyncio
    async def test_start_instance_waits_for_running(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that start polls until the instance is running."""
        mock_client.call.side_effect = [
            {},
            _reservations(_instance(sample_instance_id, "pending")),
            _reservations(_instance(sample_instance_id, "running")),
        ]

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            await service.start_instance(sample_instance_id)

        assert mock_client.call.call_args_list[0].args == ("start_instances",)
        mock_sleep.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    async def test_terminate_instance(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that terminate waits for the terminated state."""
        mock_client.call.side_effect = [
            {},
            _reservations(_instance(sample_instance_id, "terminated")),
        ]

        with patch("asyncio.sleep", new_callable=AsyncMock):
            await service.terminate_instance(sample_instance_id)

        assert mock_client.call.call_args_list[0].kwargs == {"InstanceIds": [sample_instance_id]}

    @pytest.mark.asyncio
    async def test_reboot_does_not_wait(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that reboot issues a single call."""
        mock_client.call.return_value = {}

        await service.reboot_instance(sample_instance_id)

        mock_client.call.assert_awaited_once_with(
            "reboot_instances", InstanceIds=[sample_instance_id]
        )

    @pytest.mark.asyncio
    async def test_wait_for_state_times_out(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that polling gives up after max_attempts."""
        mock_client.call.return_value = _reservations(_instance(sample_instance_id, "pending"))

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(TimeoutError):
                await service.wait_for_state(sample_instance_id, "running", max_attempts=3)

        assert mock_client.call.await_count == 3
        assert mock_sleep.await_count == 3

    @pytest.mark.asyncio
    async def test_stop_propagates_errors(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that AWS errors are re-raised."""
        mock_client.call.side_effect = EC2Error("boom", service="ec2")

        with pytest.raises(EC2Error):
            await service.stop_instance(sample_instance_id)


class TestEc2ServiceQueries:
    """Test suite for instance queries."""

    @pytest.fixture
    def service(self, settings: Settings, mock_client: Mock) -> Ec2Service:
        """Fixture providing an Ec2Service with mocked client."""
        return Ec2Service(settings=settings, client=mock_client)

    @pytest.mark.asyncio
    async def test_get_instance_info_parses_fields(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that instance data is parsed into InstanceInfo."""
        mock_client.call.return_value = _reservations(
            _instance(
                sample_instance_id,
                PublicIpAddress="54.1.2.3",
                PrivateIpAddress="10.0.0.5",
                Placement={"AvailabilityZone": "us-east-1a"},
                IamInstanceProfile={"Arn": "arn:aws:iam::123:instance-profile/p"},
                LaunchTime=datetime(2024, 1, 2, tzinfo=UTC),
                Tags=[{"Key": "Name", "Value": "web"}],
            )
        )

        info = await service.get_instance_info(sample_instance_id)

        assert info is not None
        assert info.public_ip == "54.1.2.3"
        assert info.private_ip == "10.0.0.5"
        assert info.availability_zone == "us-east-1a"
        assert info.iam_instance_profile == "arn:aws:iam::123:instance-profile/p"
        assert info.launch_time == "2024-01-02T00:00:00+00:00"
        assert info.name == "web"

    @pytest.mark.asyncio
    async def test_get_instance_info_missing(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that an empty response gives None."""
        mock_client.call.return_value = {"Reservations": []}

        assert await service.get_instance_info(sample_instance_id) is None

    @pytest.mark.asyncio
    async def test_list_all_instances_paginates(
        self, service: Ec2Service, mock_client: Mock
    ) -> None:
        """Test that every page is read."""
        mock_client.call.side_effect = [
            {**_reservations(_instance("i-aaaaaaaa")), "NextToken": "page-2"},
            _reservations(_instance("i-bbbbbbbb", "stopped")),
        ]

        instances = await service.list_all_instances()

        assert [i.instance_id for i in instances] == ["i-aaaaaaaa", "i-bbbbbbbb"]
        assert mock_client.call.call_args_list[1].kwargs == {"NextToken": "page-2"}

    @pytest.mark.asyncio
    async def test_find_instances_by_tag(self, service: Ec2Service, mock_client: Mock) -> None:
        """Test the tag filter."""
        mock_client.call.return_value = _reservations(_instance("i-aaaaaaaa"))

        await service.find_instances_by_tag("team", "ml")

        mock_client.call.assert_awaited_once_with(
            "describe_instances", Filters=[{"Name": "tag:team", "Values": ["ml"]}]
        )

    @pytest.mark.asyncio
    async def test_unparseable_instance(self, service: Ec2Service, mock_client: Mock) -> None:
        """Test that malformed instance data raises ValidationError."""
        mock_client.call.return_value = _reservations(_instance("bad-id"))

        with pytest.raises(ValidationError):
            await service.list_all_instances()


class TestEc2ServiceTags:
    """Test suite for tag operations."""

    @pytest.fixture
    def service(self, settings: Settings, mock_client: Mock) -> Ec2Service:
        """Fixture providing an Ec2Service with mocked client."""
        return Ec2Service(settings=settings, client=mock_client)

    @pytest.mark.asyncio
    async def test_add_tags(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that tags are created in one call."""
        await service.add_tags(sample_instance_id, {"env": "dev", "team": "ml"})

        mock_client.call.assert_awaited_once_with(
            "create_tags",
            Resources=[sample_instance_id],
            Tags=[{"Key": "env", "Value": "dev"}, {"Key": "team", "Value": "ml"}],
        )

    @pytest.mark.asyncio
    async def test_update_tag_overwrites(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that update uses CreateTags."""
        await service.update_tag(sample_instance_id, "env", "prod")

        assert mock_client.call.call_args.args == ("create_tags",)

    @pytest.mark.asyncio
    async def test_empty_tags_rejected(self, service: Ec2Service, sample_instance_id: str) -> None:
        """Test that empty tag and key collections are rejected."""
        with pytest.raises(ValidationError):
            await service.add_tags(sample_instance_id, {})
        with pytest.raises(ValidationError):
            await service.delete_tags(sample_instance_id, [])

    @pytest.mark.asyncio
    async def test_delete_tag(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test that deletion sends keys without values."""
        await service.delete_tag(sample_instance_id, "env")

        mock_client.call.assert_awaited_once_with(
            "delete_tags", Resources=[sample_instance_id], Tags=[{"Key": "env"}]
        )

    @pytest.mark.asyncio
    async def test_get_tags_and_value(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test reading tags through DescribeTags."""
        mock_client.call.return_value = {
            "Tags": [{"Key": "Name", "Value": "web"}, {"Key": "env", "Value": "dev"}]
        }

        assert await service.get_tags(sample_instance_id) == {"Name": "web", "env": "dev"}
        assert await service.get_tag_value(sample_instance_id, "env") == "dev"
        assert await service.get_tag_value(sample_instance_id, "missing") is None

        filters = mock_client.call.call_args.kwargs["Filters"]
        assert {"Name": "resource-id", "Values": [sample_instance_id]} in filters


class TestEc2ServiceImages:
    """Test suite for AMI operations."""

    @pytest.fixture
    def service(self, settings: Settings, mock_client: Mock) -> Ec2Service:
        """Fixture providing an Ec2Service with mocked client."""
        return Ec2Service(settings=settings, client=mock_client)

    @pytest.mark.asyncio
    async def test_create_image(
        self, service: Ec2Service, mock_client: Mock, sample_instance_id: str
    ) -> None:
        """Test AMI creation without reboot by default."""
        mock_client.call.return_value = {"ImageId": "ami-new"}

        image_id = await service.create_image(sample_instance_id, "golden", "base image")

        assert image_id == "ami-new"
        mock_client.call.assert_awaited_once_with(
            "create_image",
            InstanceId=sample_instance_id,
            Name="golden",
            NoReboot=True,
            Description="base image",
        )

    @pytest.mark.asyncio
    async def test_wait_for_image_available(self, service: Ec2Service, mock_client: Mock) -> None:
        """Test polling until the AMI is available."""
        mock_client.call.side_effect = [
            {"Images": [{"ImageId": "ami-new", "State": "pending"}]},
            {"Images": [{"ImageId": "ami-new", "State": "available", "Name": "golden"}]},
        ]

        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            info = await service.wait_for_image_available("ami-new")

        assert isinstance(info, ImageInfo)
        assert info.name == "golden"
        mock_sleep.assert_awaited_once_with(15)

    @pytest.mark.asyncio
    async def test_wait_for_image_failed(self, service: Ec2Service, mock_client: Mock) -> None:
        """Test that a failed AMI raises EC2Error."""
        mock_client.call.return_value = {"Images": [{"ImageId": "ami-new", "State": "failed"}]}

        with pytest.raises(EC2Error, match="failed"):
            await service.wait_for_image_available("ami-new")

    @pytest.mark.asyncio
    async def test_wait_for_image_times_out(self, service: Ec2Service, mock_client: Mock) -> None:
        """Test that a pending AMI times out."""
        mock_client.call.return_value = {"Images": [{"ImageId": "ami-new", "State": "pending"}]}

        with patch("asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(TimeoutError):
                await service.wait_for_image_available(
                    "ami-new", max_wait_minutes=1, poll_interval=30
                )

        assert mock_client.call.await_count == 2

    @pytest.mark.asyncio
    async def test_get_image_info_not_found(self, service: Ec2Service, mock_client: Mock) -> None:
        """Test that a missing AMI gives None."""
        mock_client.call.side_effect = ResourceNotFoundError("gone", service="ec2")

        assert await service.get_image_info("ami-gone") is None

    @pytest.mark.asyncio
    async def test_list_owned_images_and_deregister(
        self, service: Ec2Service, mock_client: Mock
    ) -> None:
        """Test listing own AMIs and deregistering one."""
        mock_client.call.return_value = {"Images": [{"ImageId": "ami-1", "State": "available"}]}

        images = await service.list_owned_images()
        await service.deregister_image("ami-1")

        assert [i.image_id for i in images] == ["ami-1"]
        assert mock_client.call.call_args_list[0].kwargs == {"Owners": ["self"]}
        assert mock_client.call.call_args_list[1].kwargs == {"ImageId": "ami-1"}
