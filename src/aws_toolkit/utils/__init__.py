"""Utility modules for the AWS toolkit.

This package provides whitelist validation for values interpolated into
SSM shell commands and IAM policy templates.
"""

from aws_toolkit.utils.ssm_validation import (
    validate_password,
    validate_path,
    validate_shell_token,
    validate_ssm_commands,
    validate_tenant_id,
    validate_username,
)

__all__ = [
    "validate_password",
    "validate_path",
    "validate_shell_token",
    "validate_ssm_commands",
    "validate_tenant_id",
    "validate_username",
]
