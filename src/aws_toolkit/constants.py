"""Constants used throughout the AWS toolkit.

This module contains application constants that do not depend on runtime
configuration. For file or environment based configuration, see the config
module.
"""

from typing import Final

# =============================================================================
# Configuration Files
# =============================================================================

DEFAULT_PROPERTIES_FILE: Final[str] = "application.properties"
"""Properties file loaded by get_settings() when no override is given."""

PROPERTIES_FILE_ENV_VAR: Final[str] = "AWS_TOOLKIT_PROPERTIES"
"""Environment variable that overrides the properties file path."""

PLACEHOLDER_CREDENTIAL_PREFIX: Final[str] = "YOUR_"
"""Credential values starting with this prefix are template placeholders."""

IAM_REGION: Final[str] = "us-east-1"
"""IAM is a global service; its endpoint signs requests for us-east-1."""

# =============================================================================
# EC2 Configuration
# =============================================================================

EC2_ROOT_DEVICE_NAME: Final[str] = "/dev/xvda"

EC2_STATE_POLL_INTERVAL: Final[int] = 5
"""Seconds between instance state checks."""

EC2_STATE_MAX_ATTEMPTS: Final[int] = 60
"""Instance state checks before giving up (5 minutes at the default interval)."""

AMI_POLL_INTERVAL: Final[int] = 15
"""Seconds between AMI state checks."""

INSTANCE_TYPES_PAGE_SIZE: Final[int] = 100

# =============================================================================
# SSM (AWS Systems Manager) Configuration
# =============================================================================

SSM_DOCUMENT_LINUX: Final[str] = "AWS-RunShellScript"
"""SSM document name for executing shell scripts on Linux instances."""

SSM_COMMAND_TIMEOUT: Final[int] = 600
"""Execution timeout in seconds passed to SendCommand."""

SSM_POLL_INTERVAL: Final[int] = 2
"""Interval in seconds between command invocation polls."""

SSM_MAX_ATTEMPTS: Final[int] = 30
"""Command invocation polls before giving up."""

SSM_TERMINAL_STATUSES: Final[frozenset[str]] = frozenset(
    {"Success", "Failed", "Cancelled", "TimedOut"}
)

# =============================================================================
# DCV Configuration
# =============================================================================

DCV_DEFAULT_SESSION: Final[str] = "console"
DCV_DEFAULT_USER: Final[str] = "ec2-user"

# =============================================================================
# SageMaker Configuration
# =============================================================================

SAGEMAKER_POLL_INTERVAL: Final[int] = 30
"""Seconds between training job and endpoint status checks."""

SAGEMAKER_DEFAULT_VARIANT: Final[str] = "AllTraffic"

SAGEMAKER_PROCESSING_INPUT_PATH: Final[str] = "/opt/ml/processing/input"
SAGEMAKER_PROCESSING_OUTPUT_PATH: Final[str] = "/opt/ml/processing/output"

# =============================================================================
# Amazon Bedrock Configuration
# =============================================================================

BEDROCK_MAX_TOKENS: Final[int] = 4096
BEDROCK_TEMPERATURE: Final[float] = 0.7
BEDROCK_TOP_P: Final[float] = 0.9
