"""AWS service integrations for the AWS toolkit.

This package provides:
- A boto3 client wrapper that runs calls off the event loop
- Custom exception hierarchy for AWS errors
- EC2 instance, AMI, tag and instance type management
- IAM roles, policies and instance profiles
- SSM command execution and DCV remote desktop helpers
- ECR repositories, CloudWatch metrics and logs, and Textract OCR

Example:
    >>> from aws_toolkit.aws import Ec2Service, SsmService
    >>>
    >>> ec2 = Ec2Service()
    >>> instance_id = await ec2.create_instance_with_defaults("gpu-workstation")
    >>> await ec2.wait_for_state(instance_id, "running")
    >>>
    >>> ssm = SsmService()
    >>> result = await ssm.execute_and_wait(instance_id, ["nvidia-smi"])
"""

from aws_toolkit.aws.client import AWSClientWrapper, create_aws_client
from aws_toolkit.aws.cloudwatch import CloudWatchMetricService
from aws_toolkit.aws.cloudwatch_logs import CloudWatchLogService
from aws_toolkit.aws.dcv import DcvService
from aws_toolkit.aws.ec2 import Ec2Service, ImageInfo, InstanceInfo
from aws_toolkit.aws.ecr import EcrService
from aws_toolkit.aws.exceptions import (
    AWSError,
    BedrockError,
    CloudWatchError,
    CloudWatchLogsError,
    EC2Error,
    ECRError,
    IAMError,
    PermissionError,
    ResourceNotFoundError,
    SageMakerError,
    SSMError,
    STSError,
    TextractError,
    ThrottlingError,
    TimeoutError,
    ValidationError,
)
from aws_toolkit.aws.iam import IamService
from aws_toolkit.aws.instance_types import Ec2InstanceTypeService, GpuInfo, InstanceTypeInfo
from aws_toolkit.aws.ssm_commands import CommandResult, SsmService
from aws_toolkit.aws.sts import StsService
from aws_toolkit.aws.textract import TextractService

__all__ = [
    "AWSClientWrapper",
    "AWSError",
    "BedrockError",
    "CloudWatchError",
    "CloudWatchLogService",
    "CloudWatchLogsError",
    "CloudWatchMetricService",
    "CommandResult",
    "DcvService",
    "EC2Error",
    "ECRError",
    "Ec2InstanceTypeService",
    "Ec2Service",
    "EcrService",
    "GpuInfo",
    "IAMError",
    "IamService",
    "ImageInfo",
    "InstanceInfo",
    "InstanceTypeInfo",
    "PermissionError",
    "ResourceNotFoundError",
    "SSMError",
    "STSError",
    "SageMakerError",
    "SsmService",
    "StsService",
    "TextractError",
    "TextractService",
    "ThrottlingError",
    "TimeoutError",
    "ValidationError",
    "create_aws_client",
]
