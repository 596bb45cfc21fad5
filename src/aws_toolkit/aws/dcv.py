"""NICE DCV remote desktop helpers.

DCV supports password-less login through an auth token generated on the
server with ``dcv generate-auth-token``. This module builds the token
generation command, the resulting browser URL, and changes the password of
the DCV login user through SSM.

Prerequisites: the instance runs DCV Server and its security group opens the
DCV port (8443 by default).
"""

import logging
from typing import Final

from aws_toolkit.aws.exceptions import ValidationError
from aws_toolkit.aws.ssm_commands import CommandResult, SsmService
from aws_toolkit.config import Settings, get_settings
from aws_toolkit.constants import DCV_DEFAULT_SESSION, DCV_DEFAULT_USER
from aws_toolkit.utils.ssm_validation import (
    validate_password,
    validate_shell_token,
    validate_username,
)

logger: Final = logging.getLogger(__name__)


class DcvService:
    """Service for DCV auth token commands, login URLs and user passwords.

    Example:
        >>> dcv = DcvService()
        >>> dcv.get_token_generation_commands()
        ['dcv generate-auth-token --session console --user ec2-user']
        >>> dcv.generate_presigned_url("203.0.113.10", "console", "token123")
        'https://203.0.113.10:8443/?authToken=token123#console'
    """

    def __init__(self, settings: Settings | None = None, ssm: SsmService | None = None) -> None:
        """Initialize DCV service.

        Args:
            settings: Toolkit settings. If None, uses get_settings().
            ssm: SsmService used to run commands on instances. Created on first
                use if None.
        """
        self.settings = settings or get_settings()
        self._ssm = ssm

    @property
    def ssm(self) -> SsmService:
        """SSM service used for remote commands."""
        if self._ssm is None:
            self._ssm = SsmService(settings=self.settings)
        return self._ssm

    def generate_presigned_url(
        self,
        server_ip: str,
        session_id: str,
        auth_token: str,
        port: int | None = None,
    ) -> str:
        """Build a password-less DCV web client URL.

        Args:
            server_ip: Public or private IP of the DCV server.
            session_id: DCV session ID (e.g., 'console').
            auth_token: Token from ``dcv generate-auth-token``.
            port: DCV server port. Defaults to the configured port.

        Returns:
            URL of the form ``https://{ip}:{port}/?authToken={token}#{session}``.
        """
        url = (
            f"https://{server_ip}:{port or self.settings.dcv_port}"
            f"/?authToken={auth_token}#{session_id}"
        )
        logger.info(f"Generated DCV URL for {server_ip} session {session_id}")
        return url

    def get_token_generation_commands(
        self, session_id: str | None = DCV_DEFAULT_SESSION, user: str | None = DCV_DEFAULT_USER
    ) -> list[str]:
        """Build the shell command that generates a DCV auth token.

        Args:
            session_id: DCV session ID. Empty falls back to 'console'.
            user: DCV user. Empty falls back to 'ec2-user'.

        Returns:
            Command lines to run via SSM.

        Raises:
            ValidationError: If the session ID or user is unsafe for a shell.
        """
        session = session_id or DCV_DEFAULT_SESSION
        dcv_user = user or DCV_DEFAULT_USER

        for is_valid, error in (
            validate_shell_token(session, "Session ID"),
            validate_username(dcv_user),
        ):
            if not is_valid:
                raise ValidationError(error, service="dcv", operation="generate_auth_token")

        return [f"dcv generate-auth-token --session {session} --user {dcv_user}"]

    async def change_user_password(
        self, instance_id: str, username: str, new_password: str
    ) -> CommandResult:
        """Change the password of a Linux user on an instance.

        Both values are checked against a whitelist before the command is
        built, so nothing reaches the shell that could break out of quoting.

        Args:
            instance_id: EC2 instance ID.
            username: Linux username (e.g., 'ubuntu').
            new_password: New password, 8 to 128 characters.

        Returns:
            CommandResult of the chpasswd command.

        Raises:
            ValidationError: If the username or password is rejected.
        """
        for is_valid, error in (validate_username(username), validate_password(new_password)):
            if not is_valid:
                raise ValidationError(error, service="dcv", operation="change_user_password")

        logger.info(f"Changing password of user {username} on {instance_id}")
        result = await self.ssm.execute_and_wait(
            instance_id, [f"echo '{username}:{new_password}' | sudo chpasswd"]
        )

        if result.is_success:
            logger.info(f"Password of {username} changed on {instance_id}")
        else:
            logger.error(f"Password change on {instance_id} ended with {result.status}")
        return result
