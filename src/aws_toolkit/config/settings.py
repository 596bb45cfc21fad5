"""Application settings and configuration management.

This module provides Pydantic-based settings that load from a Java-style
``.properties`` file, environment variables and a ``.env`` file, with
validation and type safety. It also resolves which AWS credentials the
service clients use.
"""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import Field, PrivateAttr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from aws_toolkit.constants import (
    DEFAULT_PROPERTIES_FILE,
    PLACEHOLDER_CREDENTIAL_PREFIX,
    PROPERTIES_FILE_ENV_VAR,
)

logger = logging.getLogger(__name__)

PROPERTY_FIELDS: dict[str, str] = {
    "aws.accessKeyId": "aws_access_key_id",
    "aws.secretAccessKey": "aws_secret_access_key",
    "aws.region": "aws_region",
    "aws.vpc.id": "vpc_id",
    "aws.subnet.id": "subnet_id",
    "aws.availabilityZone": "availability_zone",
    "aws.securityGroup.ids": "security_group_ids",
    "aws.ami.default": "ami_default",
    "aws.ami.windows": "ami_windows",
    "aws.ami.ubuntu": "ami_ubuntu",
    "aws.ec2.instanceType": "ec2_instance_type",
    "aws.ec2.keyName": "ec2_key_name",
    "aws.ec2.ebsSize": "ec2_ebs_size",
    "aws.ec2.ebsType": "ec2_ebs_type",
    "aws.ec2.namePrefix": "ec2_name_prefix",
    "aws.iam.instanceProfile": "iam_instance_profile",
    "aws.dcv.port": "dcv_port",
    "aws.s3.bucket": "s3_bucket",
    "aws.s3.mountPoint": "s3_mount_point",
}
"""Maps dotted property keys onto Settings field names."""

_PROPERTY_SEPARATOR = re.compile(r"\s*[=:]\s*")


class ConfigurationError(Exception):
    """Raised when a configuration file exists but cannot be read."""


def load_properties(path: str | Path) -> dict[str, str]:
    """Parse a ``.properties`` file into a flat dictionary.

    Blank lines and lines starting with ``#`` or ``!`` are skipped. Each
    remaining line is split on the first ``=`` or ``:``; a key without a
    separator maps to an empty string.

    Args:
        path: Path to the properties file.

    Returns:
        Dictionary of raw property keys to stripped string values.

    Raises:
        OSError: If the file cannot be read.
    """
    properties: dict[str, str] = {}
    for raw_line in Path(path).read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith(("#", "!")):
            continue
        parts = _PROPERTY_SEPARATOR.split(line, maxsplit=1)
        key = parts[0].strip()
        properties[key] = parts[1].strip() if len(parts) > 1 else ""
    return properties


class Settings(BaseSettings):
    """Toolkit settings for AWS access and EC2 launch defaults.

    Values come from init kwargs, environment variables, a ``.env`` file and
    the field defaults, in that order. ``Settings.from_properties`` feeds the
    values of a ``.properties`` file in as init kwargs.

    Example:
        >>> settings = Settings.from_properties("application.properties")
        >>> print(settings.aws_region)
        'us-east-1'
        >>> print(settings.ec2_instance_type)
        't3.medium'
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # AWS Credentials and Region
    # =========================================================================

    aws_region: str = Field(
        default="us-east-1",
        description="AWS region for all regional service clients",
    )

    aws_access_key_id: str = Field(
        default="",
        description="Static access key ID (default credential chain is used when unset)",
    )

    aws_secret_access_key: str = Field(
        default="",
        description="Static secret access key",
    )

    # =========================================================================
    # VPC Configuration
    # =========================================================================

    vpc_id: str = Field(default="", description="VPC for launched instances")

    subnet_id: str = Field(default="", description="Subnet for launched instances")

    availability_zone: str = Field(default="", description="Preferred availability zone")

    security_group_ids: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Security groups attached to launched instances (comma separated)",
    )

    # =========================================================================
    # AMI Configuration
    # =========================================================================

    ami_default: str = Field(default="", description="Default AMI for new instances")

    ami_windows: str = Field(default="", description="Windows AMI")

    ami_ubuntu: str = Field(default="", description="Ubuntu AMI")

    # =========================================================================
    # EC2 Launch Defaults
    # =========================================================================

    ec2_instance_type: str = Field(default="t3.medium", description="Default instance type")

    ec2_key_name: str = Field(default="", description="Key pair name for SSH access")

    ec2_ebs_size: int = Field(default=50, ge=1, description="Root EBS volume size in GiB")

    ec2_ebs_type: str = Field(default="gp3", description="Root EBS volume type")

    ec2_name_prefix: str = Field(
        default="EC2-Instance",
        description="Prefix for generated instance names",
    )

    # =========================================================================
    # IAM, DCV and S3 Configuration
    # =========================================================================

    iam_instance_profile: str = Field(
        default="",
        description="Instance profile attached to launched instances",
    )

    dcv_port: int = Field(default=8443, ge=1, le=65535, description="NICE DCV server port")

    s3_bucket: str = Field(default="", description="Bucket mounted on instances via s3fs")

    s3_mount_point: str = Field(default="/mnt/s3data", description="s3fs mount point")

    # =========================================================================
    # Logging Configuration
    # =========================================================================

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Application log level",
    )

    _credentials: dict[str, str] | None = PrivateAttr(default=None)

    @field_validator("security_group_ids", mode="before")
    @classmethod
    def split_security_group_ids(cls, v: Any) -> Any:
        """Split a comma separated string into trimmed, non-empty IDs.

        Args:
            v: Raw value from the properties file or environment.

        Returns:
            List of security group IDs, or the value unchanged if not a string.
        """
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("ec2_ebs_size", "dcv_port", mode="before")
    @classmethod
    def parse_int_with_default(cls, v: Any, info: ValidationInfo) -> Any:
        """Fall back to the field default for empty or non-numeric strings.

        Args:
            v: Raw value.
            info: ValidationInfo carrying the field name.

        Returns:
            The parsed integer, the field default, or the value unchanged.
        """
        if not isinstance(v, str):
            return v

        assert info.field_name is not None
        default = cls.model_fields[info.field_name].default
        if not v.strip():
            return default
        try:
            return int(v.strip())
        except ValueError:
            logger.warning(
                "Invalid integer %r for %s, using default %s", v, info.field_name, default
            )
            return default

    @classmethod
    def from_properties(cls, path: str | Path, **overrides: Any) -> "Settings":
        """Create settings from a ``.properties`` file.

        A missing file is not an error: a warning is logged and the remaining
        sources (environment, ``.env``, defaults) apply.

        Args:
            path: Path to the properties file.
            **overrides: Field values that take precedence over the file.

        Returns:
            Validated Settings instance.

        Raises:
            ConfigurationError: If the file exists but cannot be read.
        """
        path = Path(path)
        if not path.is_file():
            logger.warning("Properties file %s not found, using defaults", path)
            return cls(**overrides)

        try:
            properties = load_properties(path)
        except OSError as e:
            raise ConfigurationError(f"Failed to load properties file {path}: {e}") from e

        values: dict[str, Any] = {
            field: properties[key] for key, field in PROPERTY_FIELDS.items() if key in properties
        }
        logger.info("Loaded %d setting(s) from %s", len(values), path)
        return cls(**{**values, **overrides})

    def has_static_credentials(self) -> bool:
        """Check whether usable static keys are configured.

        Returns:
            True if both keys are set and neither is a ``YOUR_...`` placeholder.
        """
        return all(
            value and not value.startswith(PLACEHOLDER_CREDENTIAL_PREFIX)
            for value in (self.aws_access_key_id, self.aws_secret_access_key)
        )

    def set_credentials(
        self,
        access_key_id: str,
        secret_access_key: str,
        session_token: str | None = None,
    ) -> None:
        """Override credentials for clients created from these settings.

        Typically used with temporary credentials from STS AssumeRole. Takes
        precedence over static keys and the default chain.

        Args:
            access_key_id: Access key ID.
            secret_access_key: Secret access key.
            session_token: Session token for temporary credentials. Defaults to None.
        """
        credentials = {
            "aws_access_key_id": access_key_id,
            "aws_secret_access_key": secret_access_key,
        }
        if session_token:
            credentials["aws_session_token"] = session_token
        self._credentials = credentials
        logger.info("Using explicitly provided credentials (AccessKeyId=%s****)", access_key_id[:4])

    def clear_credentials(self) -> None:
        """Drop explicitly provided credentials."""
        self._credentials = None

    def get_credentials_source(self) -> str:
        """Describe which credential source clients will use."""
        if self._credentials:
            return "explicit credentials"
        if self.has_static_credentials():
            return f"static keys (AccessKeyId={self.aws_access_key_id[:4]}****)"
        return "default credential chain"

    def get_client_kwargs(self) -> dict[str, str]:
        """Get the credential kwargs for ``boto3.client``.

        Returns:
            Credential kwargs, or an empty dict to let boto3 resolve the
            default credential chain.
        """
        logger.debug("Credential source: %s", self.get_credentials_source())
        if self._credentials:
            return dict(self._credentials)
        if self.has_static_credentials():
            return {
                "aws_access_key_id": self.aws_access_key_id,
                "aws_secret_access_key": self.aws_secret_access_key,
            }
        return {}

    def summary(self) -> str:
        """Render the non-secret settings as a printable block."""
        lines = [
            "==================== AWS Configuration ====================",
            f"Region: {self.aws_region}",
            f"Credentials: {self.get_credentials_source()}",
            f"VPC ID: {self.vpc_id}",
            f"Subnet ID: {self.subnet_id}",
            f"Security Groups: {', '.join(self.security_group_ids)}",
            f"Default AMI: {self.ami_default}",
            f"Instance Type: {self.ec2_instance_type}",
            f"Key Name: {self.ec2_key_name}",
            f"EBS: {self.ec2_ebs_size}GB {self.ec2_ebs_type}",
            f"Instance Profile: {self.iam_instance_profile}",
            f"DCV Port: {self.dcv_port}",
            f"S3: {self.s3_bucket} -> {self.s3_mount_point}",
            "============================================================",
        ]
        return "\n".join(lines)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Loads ``application.properties`` from the working directory, or the file
    named by the ``AWS_TOOLKIT_PROPERTIES`` environment variable.

    Returns:
        Validated Settings instance.

    Example:
        >>> settings = get_settings()
        >>> print(settings.dcv_port)
        8443
    """
    return Settings.from_properties(os.environ.get(PROPERTIES_FILE_ENV_VAR, DEFAULT_PROPERTIES_FILE))
