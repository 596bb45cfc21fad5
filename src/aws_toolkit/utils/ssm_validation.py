"""Validation utilities for values interpolated into SSM shell commands.

Every value that ends up inside an ``AWS-RunShellScript`` command line is
checked against a whitelist before the command is built. Checks return a
``(is_valid, error_message)`` tuple; services turn failures into
``ValidationError``.
"""

import logging
import re
from collections.abc import Sequence
from typing import Final

logger: Final = logging.getLogger(__name__)

USERNAME_PATTERN: Final = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")
"""POSIX-portable login name: lowercase, starting with a letter or underscore."""

PASSWORD_PATTERN: Final = re.compile(r"^[A-Za-z0-9!@#%^*_+=.,-]{8,128}$")
"""Password characters that need no quoting inside single quotes."""

SHELL_TOKEN_PATTERN: Final = re.compile(r"^[A-Za-z0-9._-]+$")
"""Plain identifiers such as DCV session IDs and S3 bucket names."""

PATH_PATTERN: Final = re.compile(r"^/[A-Za-z0-9._/-]*$")
"""Absolute paths without whitespace or shell metacharacters."""

TENANT_ID_PATTERN: Final = re.compile(r"^[a-zA-Z0-9-]+$")


def validate_username(username: str) -> tuple[bool, str]:
    """Validate a Linux username before it is placed in a shell command.

    Args:
        username: Username to check.

    Returns:
        Tuple of (is_valid, error_message).

    Example:
        >>> validate_username("ec2-user")
        (True, '')
        >>> validate_username("root; rm -rf /")[0]
        False
    """
    if not username:
        return False, "Username is empty"
    if not USERNAME_PATTERN.fullmatch(username):
        logger.warning("Rejected username %r", username[:40])
        return (
            False,
            "Username must start with a lowercase letter or underscore and contain "
            "only lowercase letters, digits, '_' or '-' (max 32 characters)",
        )
    return True, ""


def validate_password(password: str) -> tuple[bool, str]:
    """Validate a password before it is placed in a shell command.

    The password itself is never logged.

    Args:
        password: Password to check.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not password:
        return False, "Password is empty"
    if not 8 <= len(password) <= 128:
        return False, "Password must be between 8 and 128 characters"
    if not PASSWORD_PATTERN.fullmatch(password):
        return False, "Password contains characters outside [A-Za-z0-9!@#%^*_+=.,-]"
    return True, ""


def validate_shell_token(value: str, name: str) -> tuple[bool, str]:
    """Validate a plain identifier (session ID, bucket name) for shell use."""
    if not value or not SHELL_TOKEN_PATTERN.fullmatch(value):
        return False, f"{name} must contain only letters, digits, '.', '_' or '-'"
    return True, ""


def validate_path(value: str, name: str) -> tuple[bool, str]:
    """Validate an absolute filesystem path for shell use."""
    if not value or not PATH_PATTERN.fullmatch(value) or ".." in value.split("/"):
        return False, f"{name} must be an absolute path without special characters"
    return True, ""


def validate_tenant_id(tenant_id: str) -> tuple[bool, str]:
    """Validate a tenant ID used to render policy templates."""
    if not tenant_id or not TENANT_ID_PATTERN.fullmatch(tenant_id):
        return False, "Tenant ID may only contain letters, digits and hyphens"
    return True, ""


def validate_ssm_commands(commands: Sequence[str]) -> tuple[bool, str]:
    """Validate SSM commands before sending to AWS.

    Args:
        commands: Sequence of command strings to validate.

    Returns:
        Tuple of (is_valid, error_message):
        - is_valid: True if all commands are valid, False otherwise
        - error_message: Empty string if valid, error description otherwise

    Example:
        >>> validate_ssm_commands(["ls -la"])
        (True, '')
        >>> validate_ssm_commands([])
        (False, 'Commands list is empty')
    """
    if not commands:
        return False, "Commands list is empty"

    if isinstance(commands, str):
        return False, "Commands must be a list of strings, not a single string"

    for i, cmd in enumerate(commands):
        if not isinstance(cmd, str):
            return False, f"Command {i} is not a string: {type(cmd)}"

        if "\x00" in cmd:
            return False, f"Command {i} contains null bytes"

    logger.debug("Validated %d command(s) successfully", len(commands))
    return True, ""
