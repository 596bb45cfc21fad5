"""IAM role, policy and instance profile management.

This module covers both halves of giving an EC2 instance an identity: the IAM
side (roles, policies, instance profiles) and the EC2 side (associating an
instance profile with a running instance).
"""

import json
import logging
from typing import Any, Final

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.aws.exceptions import ValidationError
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import IAM_REGION
from aws_toolkit.utils.ssm_validation import validate_tenant_id

logger: Final = logging.getLogger(__name__)

TENANT_PLACEHOLDER: Final = "${TENANT_ID}"


def build_assume_role_policy(service_principal: str = "ec2.amazonaws.com") -> str:
    """Build a trust policy allowing an AWS service to assume a role.

    Args:
        service_principal: Service principal (e.g., 'sagemaker.amazonaws.com').

    Returns:
        Trust policy as a JSON string.

    Example:
        >>> doc = build_assume_role_policy("sagemaker.amazonaws.com")
        >>> json.loads(doc)["Statement"][0]["Principal"]
        {'Service': 'sagemaker.amazonaws.com'}
    """
    return json.dumps(
        {
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Principal": {"Service": service_principal},
                    "Action": "sts:AssumeRole",
                }
            ],
        }
    )


def render_tenant_policy(template: str, tenant_id: str) -> str:
    """Substitute a tenant ID into a policy template.

    Every ``${TENANT_ID}`` occurrence is replaced.

    Args:
        template: Policy document template.
        tenant_id: Tenant ID; letters, digits and hyphens only.

    Returns:
        Rendered policy document.

    Raises:
        ValidationError: If the tenant ID contains other characters.
    """
    is_valid, error = validate_tenant_id(tenant_id)
    if not is_valid:
        raise ValidationError(error, service="iam", operation="render_tenant_policy")
    return template.replace(TENANT_PLACEHOLDER, tenant_id)


class IamService:
    """Service for IAM roles, policies and instance profile associations.

    IAM is a global service, so its client always signs for us-east-1. EC2
    association calls use the configured region.

    Example:
        >>> service = IamService()
        >>> role_arn = await service.create_role(
        ...     "app-role", build_assume_role_policy(), "Application role"
        ... )
        >>> await service.create_instance_profile("app-profile", "app-role")
        >>> await service.attach_iam_role("i-1234567890abcdef0", "app-profile")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        ec2_client: AWSClientWrapper | None = None,
        iam_client: AWSClientWrapper | None = None,
    ) -> None:
        """Initialize IAM service.

        Args:
            settings: Toolkit settings. If None, uses get_settings().
            ec2_client: Optional EC2 AWSClientWrapper for association calls.
            iam_client: Optional IAM AWSClientWrapper.
        """
        self.settings = settings or get_settings()
        self.ec2_client = ec2_client or create_aws_client("ec2", settings=self.settings)
        self.iam_client = iam_client or create_aws_client(
            "iam", region=IAM_REGION, settings=self.settings
        )
        logger.info("Initialized IamService")

    # =========================================================================
    # Instance Profile Associations
    # =========================================================================

    async def attach_iam_role(self, instance_id: str, instance_profile_name: str) -> str:
        """Associate an instance profile with an instance.

        Any existing association is removed first, since an instance can
        carry only one.

        Args:
            instance_id: EC2 instance ID.
            instance_profile_name: Instance profile name.

        Returns:
            Association ID.
        """
        await self.disassociate_iam_role(instance_id)

        try:
            response = await self.ec2_client.call(
                "associate_iam_instance_profile",
                InstanceId=instance_id,
                IamInstanceProfile={"Name": instance_profile_name},
            )
            association_id: str = response["IamInstanceProfileAssociation"]["AssociationId"]
            logger.info(
                f"Associated {instance_profile_name} with {instance_id} ({association_id})"
            )
            return association_id

        except Exception as e:
            logger.error(f"Failed to associate {instance_profile_name} with {instance_id}: {e}")
            raise

    async def disassociate_iam_role(self, instance_id: str) -> None:
        """Remove every instance profile association of an instance."""
        try:
            response = await self.ec2_client.call(
                "describe_iam_instance_profile_associations",
                Filters=[{"Name": "instance-id", "Values": [instance_id]}],
            )
            for association in response.get("IamInstanceProfileAssociations", []):
                association_id = association["AssociationId"]
                await self.ec2_client.call(
                    "disassociate_iam_instance_profile", AssociationId=association_id
                )
                logger.info(f"Disassociated {association_id} from {instance_id}")

        except Exception as e:
            logger.error(f"Failed to disassociate IAM role from {instance_id}: {e}")
            raise

    # =========================================================================
    # IAM Resources
    # =========================================================================

    async def create_instance_profile(self, profile_name: str, role_name: str) -> str:
        """Create an instance profile and add a role to it.

        Returns:
            ARN of the instance profile.
        """
        try:
            response = await self.iam_client.call(
                "create_instance_profile", InstanceProfileName=profile_name
            )
            await self.iam_client.call(
                "add_role_to_instance_profile",
                InstanceProfileName=profile_name,
                RoleName=role_name,
            )
            arn: str = response["InstanceProfile"]["Arn"]
            logger.info(f"Created instance profile {profile_name} with role {role_name}")
            return arn

        except Exception as e:
            logger.error(f"Failed to create instance profile {profile_name}: {e}")
            raise

    async def create_policy(
        self, policy_name: str, policy_document: str, description: str = ""
    ) -> str:
        """Create a customer managed policy.

        Args:
            policy_name: Policy name.
            policy_document: Policy document as JSON.
            description: Policy description. Defaults to "".

        Returns:
            Policy ARN.
        """
        kwargs: dict[str, Any] = {"PolicyName": policy_name, "PolicyDocument": policy_document}
        if description:
            kwargs["Description"] = description

        try:
            response = await self.iam_client.call("create_policy", **kwargs)
            arn: str = response["Policy"]["Arn"]
            logger.info(f"Created IAM policy {arn}")
            return arn
        except Exception as e:
            logger.error(f"Failed to create policy {policy_name}: {e}")
            raise

    async def create_role(
        self, role_name: str, assume_role_policy_document: str, description: str = ""
    ) -> str:
        """Create a role with the given trust policy.

        Args:
            role_name: Role name.
            assume_role_policy_document: Trust policy as JSON, see build_assume_role_policy().
            description: Role description. Defaults to "".

        Returns:
            Role ARN.
        """
        kwargs: dict[str, Any] = {
            "RoleName": role_name,
            "AssumeRolePolicyDocument": assume_role_policy_document,
        }
        if description:
            kwargs["Description"] = description

        try:
            response = await self.iam_client.call("create_role", **kwargs)
            arn: str = response["Role"]["Arn"]
            logger.info(f"Created IAM role {arn}")
            return arn
        except Exception as e:
            logger.error(f"Failed to create role {role_name}: {e}")
            raise

    async def attach_role_policy(self, role_name: str, policy_arn: str) -> None:
        """Attach a managed policy to a role."""
        try:
            await self.iam_client.call(
                "attach_role_policy", RoleName=role_name, PolicyArn=policy_arn
            )
            logger.info(f"Attached {policy_arn} to {role_name}")
        except Exception as e:
            logger.error(f"Failed to attach {policy_arn} to {role_name}: {e}")
            raise

    async def detach_role_policy(self, role_name: str, policy_arn: str) -> None:
        """Detach a managed policy from a role."""
        try:
            await self.iam_client.call(
                "detach_role_policy", RoleName=role_name, PolicyArn=policy_arn
            )
            logger.info(f"Detached {policy_arn} from {role_name}")
        except Exception as e:
            logger.error(f"Failed to detach {policy_arn} from {role_name}: {e}")
            raise

    async def delete_policy(self, policy_arn: str) -> None:
        """Delete a managed policy. It must not be attached to anything."""
        logger.warning(f"Deleting IAM policy {policy_arn}")
        try:
            await self.iam_client.call("delete_policy", PolicyArn=policy_arn)
        except Exception as e:
            logger.error(f"Failed to delete policy {policy_arn}: {e}")
            raise

    async def delete_role(self, role_name: str) -> None:
        """Delete a role. Its policies must be detached first."""
        logger.warning(f"Deleting IAM role {role_name}")
        try:
            await self.iam_client.call("delete_role", RoleName=role_name)
        except Exception as e:
            logger.error(f"Failed to delete role {role_name}: {e}")
            raise

    async def get_role(self, role_name: str) -> dict[str, Any]:
        """Get a role description as returned by GetRole."""
        try:
            response = await self.iam_client.call("get_role", RoleName=role_name)
        except Exception as e:
            logger.error(f"Failed to get role {role_name}: {e}")
            raise
        role: dict[str, Any] = response["Role"]
        return role

    async def list_attached_role_policies(self, role_name: str) -> list[dict[str, str]]:
        """List managed policies attached to a role.

        Returns:
            List of dicts with 'PolicyName' and 'PolicyArn'.
        """
        kwargs: dict[str, Any] = {"RoleName": role_name}
        policies: list[dict[str, str]] = []
        try:
            while True:
                response = await self.iam_client.call("list_attached_role_policies", **kwargs)
                policies.extend(response.get("AttachedPolicies", []))
                if not response.get("IsTruncated"):
                    break
                kwargs["Marker"] = response["Marker"]

        except Exception as e:
            logger.error(f"Failed to list policies of {role_name}: {e}")
            raise

        logger.info(f"Role {role_name} has {len(policies)} attached policy(ies)")
        return policies

    def close(self) -> None:
        """Release the underlying clients."""
        self.ec2_client.close()
        self.iam_client.close()
