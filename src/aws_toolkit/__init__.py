"""AWS toolkit - async wrappers for EC2, SageMaker and related AWS services.

This package provides thin service classes over boto3 for EC2 instances and
AMIs, IAM, SSM commands, DCV remote desktop access, SageMaker training,
hosting and monitoring, ECR, CloudWatch, Bedrock and Textract, configured
from a Java-style ``application.properties`` file.
"""

from aws_toolkit.version import __version__

__author__ = "AWS Toolkit Contributors"
__license__ = "MIT"

__all__ = ["__author__", "__license__", "__version__"]
