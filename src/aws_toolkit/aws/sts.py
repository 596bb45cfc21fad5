"""STS caller identity and AssumeRole helpers."""

import logging
from typing import Final

from pydantic import BaseModel, ConfigDict

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.config import Settings, get_settings

logger: Final = logging.getLogger(__name__)


class CallerIdentity(BaseModel):
    """Identity of the credentials in use."""

    model_config = ConfigDict(frozen=True)

    account: str
    arn: str
    user_id: str


class TemporaryCredentials(BaseModel):
    """Temporary credentials returned by AssumeRole."""

    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: str
    session_token: str
    expiration: str | None = None

    def apply_to(self, settings: Settings) -> None:
        """Make clients created from ``settings`` use these credentials."""
        settings.set_credentials(self.access_key_id, self.secret_access_key, self.session_token)


class StsService:
    """Service for STS identity lookups and role assumption.

    Example:
        >>> sts = StsService()
        >>> creds = await sts.assume_role("arn:aws:iam::123456789012:role/tenant", "job")
        >>> creds.apply_to(settings)
        >>> ec2 = Ec2Service(settings=settings)
    """

    def __init__(
        self, settings: Settings | None = None, client: AWSClientWrapper | None = None
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client or create_aws_client("sts", settings=self.settings)

    async def get_caller_identity(self) -> CallerIdentity:
        """Get the account, ARN and user ID of the current credentials."""
        try:
            response = await self.client.call("get_caller_identity")
        except Exception as e:
            logger.error(f"Failed to get caller identity: {e}")
            raise

        identity = CallerIdentity(
            account=response["Account"], arn=response["Arn"], user_id=response["UserId"]
        )
        logger.info(f"Caller identity: {identity.arn}")
        return identity

    async def assume_role(
        self, role_arn: str, session_name: str, duration_seconds: int = 3600
    ) -> TemporaryCredentials:
        """Assume a role and return its temporary credentials.

        Args:
            role_arn: ARN of the role to assume.
            session_name: Role session name recorded in CloudTrail.
            duration_seconds: Credential lifetime. Defaults to 3600.

        Returns:
            TemporaryCredentials for the assumed role.
        """
        logger.info(f"Assuming role {role_arn} as session {session_name}")
        try:
            response = await self.client.call(
                "assume_role",
                RoleArn=role_arn,
                RoleSessionName=session_name,
                DurationSeconds=duration_seconds,
            )
        except Exception as e:
            logger.error(f"Failed to assume role {role_arn}: {e}")
            raise

        credentials = response["Credentials"]
        expiration = credentials.get("Expiration")
        return TemporaryCredentials(
            access_key_id=credentials["AccessKeyId"],
            secret_access_key=credentials["SecretAccessKey"],
            session_token=credentials["SessionToken"],
            expiration=expiration.isoformat() if expiration else None,
        )

    def close(self) -> None:
        """Release the underlying client."""
        self.client.close()
