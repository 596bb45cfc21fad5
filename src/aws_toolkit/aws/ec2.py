"""EC2 instance, tag and AMI management utilities.

This module provides high-level utilities for launching EC2 instances, driving
their lifecycle, managing their tags, and creating AMIs from them. All
operations use the AWSClientWrapper for consistent error handling.
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.aws.exceptions import (
    EC2Error,
    ResourceNotFoundError,
    TimeoutError,
    ValidationError,
)
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import (
    AMI_POLL_INTERVAL,
    EC2_ROOT_DEVICE_NAME,
    EC2_STATE_MAX_ATTEMPTS,
    EC2_STATE_POLL_INTERVAL,
)

logger: Final = logging.getLogger(__name__)

VALID_INSTANCE_STATES: Final = frozenset(
    {"pending", "running", "shutting-down", "terminated", "stopping", "stopped"}
)


class InstanceInfo(BaseModel):
    """Snapshot of an EC2 instance as returned by DescribeInstances.

    Attributes:
        instance_id: EC2 instance ID (e.g., 'i-1234567890abcdef0').
        instance_type: EC2 instance type (e.g., 't3.medium').
        state: Current instance state.
        public_ip: Public IPv4 address, if any.
        private_ip: Private IPv4 address, if any.
        vpc_id: VPC the instance runs in.
        subnet_id: Subnet the instance runs in.
        key_name: Key pair name.
        image_id: AMI the instance was launched from.
        iam_instance_profile: ARN of the attached instance profile.
        availability_zone: Availability zone of the instance.
        launch_time: Launch timestamp as ISO string.
        tags: Instance tags.
    """

    model_config = ConfigDict(frozen=True)

    instance_id: str = Field(..., pattern=r"^i-[a-f0-9]{8,17}$")
    instance_type: str
    state: str
    public_ip: str | None = None
    private_ip: str | None = None
    vpc_id: str | None = None
    subnet_id: str | None = None
    key_name: str | None = None
    image_id: str | None = None
    iam_instance_profile: str | None = None
    availability_zone: str | None = None
    launch_time: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("state")
    @classmethod
    def validate_state(cls, v: str) -> str:
        """Validate instance state against known EC2 states.

        Args:
            v: Instance state string.

        Returns:
            Validated state string.

        Raises:
            ValueError: If state is not a valid EC2 instance state.
        """
        if v not in VALID_INSTANCE_STATES:
            raise ValueError(f"Invalid instance state: {v}. Must be one of {VALID_INSTANCE_STATES}")
        return v

    @property
    def name(self) -> str | None:
        """Value of the ``Name`` tag."""
        return self.tags.get("Name")


class ImageInfo(BaseModel):
    """Snapshot of an AMI as returned by DescribeImages."""

    model_config = ConfigDict(frozen=True)

    image_id: str
    name: str | None = None
    state: str
    architecture: str | None = None
    creation_date: str | None = None
    description: str | None = None
    owner_id: str | None = None


class Ec2Service:
    """Service for EC2 instance lifecycle, tag and AMI operations.

    State-changing calls (start, stop, terminate) block until the instance
    reaches the target state, polling every 5 seconds for up to 60 attempts.

    Example:
        >>> service = Ec2Service()
        >>> instance_id = await service.create_instance_with_defaults("build-box")
        >>> await service.add_tag(instance_id, "team", "ml")
        >>> await service.stop_instance(instance_id)
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        """Initialize EC2 service.

        Args:
            settings: Toolkit settings. If None, uses get_settings().
            client: Optional pre-configured AWSClientWrapper. If None, creates a new one.
        """
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("ec2", settings=self.settings)
        logger.info(f"Initialized Ec2Service for region {self.settings.aws_region}")

    # =========================================================================
    # Instance Lifecycle
    # =========================================================================

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
        tags: Mapping[str, str] | None = None,
    ) -> str:
        """Launch a single EC2 instance with an encrypted root volume.

        Args:
            ami_id: AMI to launch.
            instance_type: Instance type (e.g., 't3.medium').
            key_name: Key pair name. Omitted from the request when empty.
            security_group_ids: Security groups to attach.
            subnet_id: Subnet to launch into. Omitted when empty.
            ebs_size: Root volume size in GiB.
            ebs_type: Root volume type (e.g., 'gp3').
            instance_name: Value of the ``Name`` tag.
            iam_instance_profile: Instance profile name. Omitted when empty.
            tags: Extra tags applied at launch. Defaults to None.

        Returns:
            ID of the launched instance.

        Raises:
            ValidationError: If the AMI or instance type is missing.
            EC2Error: If AWS API call fails.
        """
        if not ami_id or not instance_type:
            raise ValidationError("ami_id and instance_type are required", service="ec2")

        logger.info(f"Launching {instance_type} instance '{instance_name}' from {ami_id}")

        instance_tags = [{"Key": "Name", "Value": instance_name}]
        instance_tags.extend({"Key": k, "Value": v} for k, v in (tags or {}).items() if k != "Name")

        kwargs: dict[str, Any] = {
            "ImageId": ami_id,
            "InstanceType": instance_type,
            "MinCount": 1,
            "MaxCount": 1,
            "BlockDeviceMappings": [
                {
                    "DeviceName": EC2_ROOT_DEVICE_NAME,
                    "Ebs": {
                        "VolumeSize": ebs_size,
                        "VolumeType": ebs_type,
                        "DeleteOnTermination": True,
                        "Encrypted": True,
                    },
                }
            ],
            "TagSpecifications": [{"ResourceType": "instance", "Tags": instance_tags}],
        }
        if key_name:
            kwargs["KeyName"] = key_name
        if security_group_ids:
            kwargs["SecurityGroupIds"] = list(security_group_ids)
        if subnet_id:
            kwargs["SubnetId"] = subnet_id
        if iam_instance_profile:
            kwargs["IamInstanceProfile"] = {"Name": iam_instance_profile}

        try:
            response = await self.client.call("run_instances", **kwargs)
            instance_id: str = response["Instances"][0]["InstanceId"]
            logger.info(f"Launched instance {instance_id}")
            return instance_id

        except Exception as e:
            logger.error(f"Failed to launch instance: {e}")
            raise

    async def create_instance_with_defaults(self, instance_name: str | None = None) -> str:
        """Launch an instance using the launch defaults from settings.

        Args:
            instance_name: ``Name`` tag value. Defaults to the configured name prefix.

        Returns:
            ID of the launched instance.
        """
        s = self.settings
        return await self.create_instance(
            ami_id=s.ami_default,
            instance_type=s.ec2_instance_type,
            key_name=s.ec2_key_name,
            security_group_ids=s.security_group_ids,
            subnet_id=s.subnet_id,
            ebs_size=s.ec2_ebs_size,
            ebs_type=s.ec2_ebs_type,
            instance_name=instance_name or s.ec2_name_prefix,
            iam_instance_profile=s.iam_instance_profile or None,
        )

    async def start_instance(self, instance_id: str) -> None:
        """Start an instance and wait until it is running."""
        logger.info(f"Starting instance {instance_id}")
        try:
            await self.client.call("start_instances", InstanceIds=[instance_id])
        except Exception as e:
            logger.error(f"Failed to start instance {instance_id}: {e}")
            raise
        await self.wait_for_state(instance_id, "running")

    async def stop_instance(self, instance_id: str) -> None:
        """Stop an instance and wait until it is stopped."""
        logger.info(f"Stopping instance {instance_id}")
        try:
            await self.client.call("stop_instances", InstanceIds=[instance_id])
        except Exception as e:
            logger.error(f"Failed to stop instance {instance_id}: {e}")
            raise
        await self.wait_for_state(instance_id, "stopped")

    async def terminate_instance(self, instance_id: str) -> None:
        """Terminate an instance and wait until it is terminated.

        Warning:
            This operation is destructive and cannot be undone.
        """
        logger.warning(f"Terminating instance {instance_id} - THIS IS DESTRUCTIVE")
        try:
            await self.client.call("terminate_instances", InstanceIds=[instance_id])
        except Exception as e:
            logger.error(f"Failed to terminate instance {instance_id}: {e}")
            raise
        await self.wait_for_state(instance_id, "terminated")

    async def reboot_instance(self, instance_id: str) -> None:
        """Request a reboot. Does not wait for the instance to come back."""
        logger.info(f"Rebooting instance {instance_id}")
        try:
            await self.client.call("reboot_instances", InstanceIds=[instance_id])
        except Exception as e:
            logger.error(f"Failed to reboot instance {instance_id}: {e}")
            raise

    async def wait_for_state(
        self,
        instance_id: str,
        target_state: str,
        max_attempts: int = EC2_STATE_MAX_ATTEMPTS,
        poll_interval: float = EC2_STATE_POLL_INTERVAL,
    ) -> None:
        """Poll until an instance reaches the target state.

        Args:
            instance_id: EC2 instance ID.
            target_state: State name to wait for (e.g., 'running').
            max_attempts: Number of checks before giving up. Defaults to 60.
            poll_interval: Seconds between checks. Defaults to 5.

        Raises:
            TimeoutError: If the state is not reached within max_attempts.
        """
        for attempt in range(1, max_attempts + 1):
            info = await self.get_instance_info(instance_id)
            if info is not None and info.state == target_state:
                logger.info(f"Instance {instance_id} reached state {target_state}")
                return

            logger.debug(
                f"Instance {instance_id} state {info.state if info else 'unknown'} "
                f"(attempt {attempt}/{max_attempts}), waiting {poll_interval}s..."
            )
            await asyncio.sleep(poll_interval)

        raise TimeoutError(
            f"Instance {instance_id} did not reach state {target_state} "
            f"after {max_attempts} checks",
            service="ec2",
            operation="wait_for_state",
        )

    # =========================================================================
    # Instance Queries
    # =========================================================================

    async def get_instance_info(self, instance_id: str) -> InstanceInfo | None:
        """Describe a single instance.

        Args:
            instance_id: EC2 instance ID.

        Returns:
            InstanceInfo, or None if the response contains no such instance.
        """
        logger.debug(f"Describing instance {instance_id}")
        instances = await self._describe_instances(InstanceIds=[instance_id])
        return next((i for i in instances if i.instance_id == instance_id), None)

    async def list_all_instances(self) -> list[InstanceInfo]:
        """List every instance in the region."""
        instances = await self._describe_instances()
        logger.info(f"Listed {len(instances)} instance(s)")
        return instances

    async def find_instances_by_tag(self, tag_key: str, tag_value: str) -> list[InstanceInfo]:
        """Find instances whose tag ``tag_key`` equals ``tag_value``."""
        instances = await self._describe_instances(
            Filters=[{"Name": f"tag:{tag_key}", "Values": [tag_value]}]
        )
        logger.info(f"Found {len(instances)} instance(s) with {tag_key}={tag_value}")
        return instances

    async def _describe_instances(self, **kwargs: Any) -> list[InstanceInfo]:
        instances: list[InstanceInfo] = []
        try:
            while True:
                response = await self.client.call("describe_instances", **kwargs)
                for reservation in response.get("Reservations", []):
                    for instance_data in reservation.get("Instances", []):
                        instances.append(self._parse_instance(instance_data))

                next_token = response.get("NextToken")
                if not next_token:
                    break
                kwargs["NextToken"] = next_token

        except Exception as e:
            logger.error(f"Failed to describe instances: {e}")
            raise

        return instances

    def _parse_instance(self, instance_data: dict[str, Any]) -> InstanceInfo:
        """Parse AWS API instance data into an InstanceInfo model.

        Raises:
            ValidationError: If instance data doesn't match schema.
        """
        tags = {tag["Key"]: tag["Value"] for tag in instance_data.get("Tags", [])}
        launch_time = instance_data.get("LaunchTime")

        try:
            return InstanceInfo(
                instance_id=instance_data["InstanceId"],
                instance_type=instance_data["InstanceType"],
                state=instance_data["State"]["Name"],
                public_ip=instance_data.get("PublicIpAddress"),
                private_ip=instance_data.get("PrivateIpAddress"),
                vpc_id=instance_data.get("VpcId"),
                subnet_id=instance_data.get("SubnetId"),
                key_name=instance_data.get("KeyName"),
                image_id=instance_data.get("ImageId"),
                iam_instance_profile=instance_data.get("IamInstanceProfile", {}).get("Arn"),
                availability_zone=instance_data.get("Placement", {}).get("AvailabilityZone"),
                launch_time=launch_time.isoformat() if launch_time else None,
                tags=tags,
            )
        except Exception as e:
            logger.error(f"Failed to parse instance data: {e}")
            raise ValidationError(
                f"Invalid instance data: {e}",
                service="ec2",
                operation="parse_instance",
            ) from e

    # =========================================================================
    # Tags
    # =========================================================================

    async def add_tag(self, instance_id: str, key: str, value: str) -> None:
        """Add or overwrite a single tag."""
        await self.add_tags(instance_id, {key: value})

    async def add_tags(self, instance_id: str, tags: Mapping[str, str]) -> None:
        """Add or overwrite several tags in one call."""
        if not tags:
            raise ValidationError("tags cannot be empty", service="ec2")

        try:
            await self.client.call(
                "create_tags",
                Resources=[instance_id],
                Tags=[{"Key": k, "Value": v} for k, v in tags.items()],
            )
            logger.info(f"Added {len(tags)} tag(s) to {instance_id}")
        except Exception as e:
            logger.error(f"Failed to add tags to {instance_id}: {e}")
            raise

    async def update_tag(self, instance_id: str, key: str, value: str) -> None:
        """Overwrite a tag value. CreateTags replaces existing keys."""
        await self.add_tag(instance_id, key, value)

    async def delete_tag(self, instance_id: str, key: str) -> None:
        """Remove a single tag regardless of its value."""
        await self.delete_tags(instance_id, [key])

    async def delete_tags(self, instance_id: str, keys: Sequence[str]) -> None:
        """Remove several tags regardless of their values."""
        if not keys:
            raise ValidationError("keys cannot be empty", service="ec2")

        try:
            await self.client.call(
                "delete_tags",
                Resources=[instance_id],
                Tags=[{"Key": k} for k in keys],
            )
            logger.info(f"Deleted {len(keys)} tag(s) from {instance_id}")
        except Exception as e:
            logger.error(f"Failed to delete tags from {instance_id}: {e}")
            raise

    async def get_tags(self, instance_id: str) -> dict[str, str]:
        """Get all tags of an instance.

        Args:
            instance_id: EC2 instance ID.

        Returns:
            Dictionary of tag keys to values.
        """
        kwargs: dict[str, Any] = {
            "Filters": [
                {"Name": "resource-id", "Values": [instance_id]},
                {"Name": "resource-type", "Values": ["instance"]},
            ]
        }
        tags: dict[str, str] = {}
        try:
            while True:
                response = await self.client.call("describe_tags", **kwargs)
                for tag in response.get("Tags", []):
                    tags[tag["Key"]] = tag["Value"]

                next_token = response.get("NextToken")
                if not next_token:
                    break
                kwargs["NextToken"] = next_token

        except Exception as e:
            logger.error(f"Failed to get tags for {instance_id}: {e}")
            raise

        return tags

    async def get_tag_value(self, instance_id: str, key: str) -> str | None:
        """Get one tag value, or None if the tag is not set."""
        return (await self.get_tags(instance_id)).get(key)

    # =========================================================================
    # AMIs
    # =========================================================================

    async def create_image(
        self,
        instance_id: str,
        name: str,
        description: str = "",
        no_reboot: bool = True,
    ) -> str:
        """Create an AMI from an instance.

        Args:
            instance_id: Source instance ID.
            name: AMI name; must be unique within the account and region.
            description: AMI description. Defaults to "".
            no_reboot: If True, snapshot without rebooting the instance. Defaults to True.

        Returns:
            ID of the new AMI (initially in the 'pending' state).
        """
        logger.info(f"Creating AMI '{name}' from {instance_id} (no_reboot={no_reboot})")

        kwargs: dict[str, Any] = {"InstanceId": instance_id, "Name": name, "NoReboot": no_reboot}
        if description:
            kwargs["Description"] = description

        try:
            response = await self.client.call("create_image", **kwargs)
            image_id: str = response["ImageId"]
            logger.info(f"AMI {image_id} is being created")
            return image_id
        except Exception as e:
            logger.error(f"Failed to create AMI from {instance_id}: {e}")
            raise

    async def wait_for_image_available(
        self,
        image_id: str,
        max_wait_minutes: int = 30,
        poll_interval: float = AMI_POLL_INTERVAL,
    ) -> ImageInfo:
        """Poll until an AMI is available.

        Args:
            image_id: AMI ID.
            max_wait_minutes: Upper bound on waiting. Defaults to 30.
            poll_interval: Seconds between checks. Defaults to 15.

        Returns:
            ImageInfo of the available AMI.

        Raises:
            EC2Error: If the AMI enters the 'failed' state.
            TimeoutError: If the AMI is not available in time.
        """
        max_attempts = max(1, int(max_wait_minutes * 60 // poll_interval))

        for attempt in range(1, max_attempts + 1):
            info = await self.get_image_info(image_id)
            if info is not None:
                if info.state == "available":
                    logger.info(f"AMI {image_id} is available")
                    return info
                if info.state == "failed":
                    raise EC2Error(
                        f"AMI {image_id} creation failed",
                        service="ec2",
                        operation="wait_for_image_available",
                    )

            logger.debug(f"AMI {image_id} not ready (attempt {attempt}/{max_attempts})")
            await asyncio.sleep(poll_interval)

        raise TimeoutError(
            f"AMI {image_id} not available within {max_wait_minutes} minutes",
            service="ec2",
            operation="wait_for_image_available",
        )

    async def get_image_info(self, image_id: str) -> ImageInfo | None:
        """Describe a single AMI, or return None if it does not exist."""
        try:
            images = await self._describe_images(ImageIds=[image_id])
        except ResourceNotFoundError:
            return None
        return images[0] if images else None

    async def list_owned_images(self) -> list[ImageInfo]:
        """List AMIs owned by the calling account."""
        images = await self._describe_images(Owners=["self"])
        logger.info(f"Found {len(images)} owned AMI(s)")
        return images

    async def deregister_image(self, image_id: str) -> None:
        """Deregister an AMI. Its snapshots are left in place."""
        logger.warning(f"Deregistering AMI {image_id}")
        try:
            await self.client.call("deregister_image", ImageId=image_id)
        except Exception as e:
            logger.error(f"Failed to deregister AMI {image_id}: {e}")
            raise

    async def _describe_images(self, **kwargs: Any) -> list[ImageInfo]:
        try:
            response = await self.client.call("describe_images", **kwargs)
        except Exception as e:
            logger.error(f"Failed to describe images: {e}")
            raise

        return [
            ImageInfo(
                image_id=image["ImageId"],
                name=image.get("Name"),
                state=image.get("State", "unknown"),
                architecture=image.get("Architecture"),
                creation_date=image.get("CreationDate"),
                description=image.get("Description"),
                owner_id=image.get("OwnerId"),
            )
            for image in response.get("Images", [])
        ]

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
